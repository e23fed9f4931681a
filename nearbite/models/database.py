from sqlalchemy import Column, Integer, String, DateTime, JSON, Index
from sqlalchemy.sql import func
from nearbite.database import Base


class CrowdData(Base):
    """Live crowd estimate for a restaurant, valid until expires_at."""
    __tablename__ = "crowd_data"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(String, nullable=False)  # place_id / fsq_id, or a name slug
    restaurant_name = Column(String, nullable=False)
    crowd_level = Column(String, nullable=False)  # "busy", "moderate", "not_busy", "unknown"
    crowd_percentage = Column(Integer, nullable=True)  # 0-100
    peak_hours = Column(JSON, nullable=True)
    last_updated = Column(DateTime(timezone=True), nullable=False)
    expires_at = Column(DateTime(timezone=True), nullable=False)  # Always after last_updated
    source = Column(String, nullable=False, default="google")
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        Index('idx_crowd_restaurant_id', 'restaurant_id'),
        Index('idx_crowd_expires_at', 'expires_at'),
    )

    def __repr__(self):
        return f"<CrowdData(id={self.id}, restaurant_id='{self.restaurant_id}', level='{self.crowd_level}')>"
