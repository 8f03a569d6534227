from sqlalchemy import Column, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from bikewear.models.base import BaseModel


class Bike(BaseModel):
    __tablename__ = "bikes"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    manufacturer = Column(String(120), nullable=False)
    model = Column(String(120), nullable=False)
    nickname = Column(String(120))
    year = Column(Integer)
    travel_fork_mm = Column(Integer)
    travel_shock_mm = Column(Integer)
    notes = Column(Text)

    # Relationships
    user = relationship("User", back_populates="bikes")
    components = relationship("Component", back_populates="bike")
    installs = relationship("BikeComponentInstall", back_populates="bike", cascade="all, delete-orphan")
    rides = relationship("Ride", back_populates="bike")
