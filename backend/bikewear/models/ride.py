from sqlalchemy import Column, DateTime, Float, ForeignKey, Index, Integer, Text
from sqlalchemy.orm import relationship
from bikewear.models.base import BaseModel


class Ride(BaseModel):
    __tablename__ = "rides"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    bike_id = Column(Integer, ForeignKey("bikes.id", ondelete="SET NULL"), nullable=True)
    start_time = Column(DateTime, nullable=False)
    duration_seconds = Column(Integer, default=0, nullable=False)
    distance_miles = Column(Float, default=0.0, nullable=False)
    notes = Column(Text)

    __table_args__ = (
        Index('ix_ride_user_bike', 'user_id', 'bike_id'),
    )

    # Relationships
    bike = relationship("Bike", back_populates="rides")
