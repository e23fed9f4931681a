"""
Crowd level cache.

Stores the latest crowd estimate per restaurant with a fixed time-to-live.
Reads return rows even after they expire (callers judge staleness with
is_expired); expired rows are only removed by an explicit sweep_expired().
"""

import logging
import re
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nearbite.config.settings import CROWD_DATA_TTL_MS
from nearbite.models.database import CrowdData
from nearbite.models.schemas import CrowdLevel, CrowdRecordCreate, CrowdStatistics

logger = logging.getLogger(__name__)


class CrowdDataError(Exception):
    """Custom exception for crowd data storage errors"""
    pass


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    # SQLite hands timestamps back without tzinfo; everything is stored in UTC
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def slugify_name(name: str) -> str:
    return re.sub(r"\s+", "-", name.strip().lower())


class CrowdLevelCache:
    def __init__(
        self,
        ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.ttl = ttl if ttl is not None else timedelta(milliseconds=CROWD_DATA_TTL_MS)
        if self.ttl <= timedelta(0):
            raise ValueError("Crowd data TTL must be positive")
        self._clock = clock
        logger.info(f"CrowdLevelCache initialized with ttl={self.ttl}")

    def now(self) -> datetime:
        return _as_utc(self._clock())

    def is_expired(self, row: CrowdData, now: Optional[datetime] = None) -> bool:
        now = _as_utc(now) if now is not None else self.now()
        return _as_utc(row.expires_at) < now

    def store(self, db: Session, record: CrowdRecordCreate) -> CrowdData:
        """
        Upsert the crowd estimate for one restaurant.

        The row for the restaurant is overwritten in full and its expiry
        pushed to now + ttl.

        Raises:
            CrowdDataError: If the record cannot be stored
        """
        now = self.now()
        last_updated = _as_utc(record.last_updated) if record.last_updated else now
        expires_at = now + self.ttl
        if expires_at <= last_updated:
            raise CrowdDataError(
                f"last_updated {last_updated.isoformat()} is not before expiry {expires_at.isoformat()}"
            )
        restaurant_id = record.restaurant_id.strip() or slugify_name(record.restaurant_name)

        try:
            row = (
                db.query(CrowdData)
                .filter(CrowdData.restaurant_id == restaurant_id)
                .order_by(CrowdData.last_updated.desc())
                .first()
            )
            if row is None:
                row = CrowdData(restaurant_id=restaurant_id)
                db.add(row)

            row.restaurant_name = record.restaurant_name
            row.crowd_level = record.crowd_level.value
            row.crowd_percentage = record.crowd_percentage
            row.peak_hours = record.peak_hours
            row.last_updated = last_updated
            row.expires_at = expires_at
            row.source = record.source
            row.extra = dict(record.metadata)

            db.commit()
            db.refresh(row)
        except SQLAlchemyError as e:
            db.rollback()
            raise CrowdDataError(f"Failed to store crowd data: {str(e)}") from e

        logger.info(f"Stored crowd data for {record.restaurant_name}, expires at {expires_at.isoformat()}")
        return row

    def get_latest(self, db: Session, restaurant_id: str) -> Optional[CrowdData]:
        """Most recently updated row for the restaurant, expired or not."""
        return (
            db.query(CrowdData)
            .filter(CrowdData.restaurant_id == restaurant_id)
            .order_by(CrowdData.last_updated.desc())
            .first()
        )

    def get_by_name(self, db: Session, restaurant_name: str) -> Optional[CrowdData]:
        return (
            db.query(CrowdData)
            .filter(CrowdData.restaurant_name == restaurant_name)
            .order_by(CrowdData.last_updated.desc())
            .first()
        )

    def search_by_name(self, db: Session, fragment: str, limit: int = 20) -> List[CrowdData]:
        """Rows whose restaurant name contains fragment, newest first."""
        return (
            db.query(CrowdData)
            .filter(CrowdData.restaurant_name.ilike(f"%{fragment}%"))
            .order_by(CrowdData.last_updated.desc())
            .limit(limit)
            .all()
        )

    def get_batch(self, db: Session, restaurant_ids: Iterable[str]) -> Dict[str, CrowdData]:
        """Latest row per requested id; ids with no rows are left out."""
        ids = list(set(restaurant_ids))
        if not ids:
            return {}

        latest: Dict[str, CrowdData] = {}
        for row in db.query(CrowdData).filter(CrowdData.restaurant_id.in_(ids)).all():
            current = latest.get(row.restaurant_id)
            if current is None or _as_utc(current.last_updated) < _as_utc(row.last_updated):
                latest[row.restaurant_id] = row
        return latest

    def sweep_expired(self, db: Session) -> int:
        """
        Delete every row whose expiry has passed.

        Returns:
            Number of deleted rows
        """
        now = self.now()
        try:
            deleted = (
                db.query(CrowdData)
                .filter(CrowdData.expires_at < now)
                .delete(synchronize_session=False)
            )
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise CrowdDataError(f"Failed to delete expired data: {str(e)}") from e

        logger.info(f"Deleted {deleted} expired crowd data records")
        return deleted

    def statistics(self, db: Session) -> CrowdStatistics:
        counts = dict(
            db.query(CrowdData.crowd_level, func.count(CrowdData.id))
            .group_by(CrowdData.crowd_level)
            .all()
        )
        average = db.query(func.avg(CrowdData.crowd_percentage)).scalar()
        return CrowdStatistics(
            total_records=sum(counts.values()),
            busy_count=counts.get(CrowdLevel.BUSY.value, 0),
            moderate_count=counts.get(CrowdLevel.MODERATE.value, 0),
            not_busy_count=counts.get(CrowdLevel.NOT_BUSY.value, 0),
            unknown_count=counts.get(CrowdLevel.UNKNOWN.value, 0),
            average_percentage=float(average) if average is not None else None,
        )
