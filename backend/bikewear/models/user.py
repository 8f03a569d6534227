from sqlalchemy import Column, DateTime, String
from sqlalchemy.orm import relationship
from bikewear.models.base import BaseModel


class User(BaseModel):
    __tablename__ = "users"

    email = Column(String(100), unique=True, nullable=False, index=True)
    display_name = Column(String(100))
    paired_component_migration_seen_at = Column(DateTime)

    # Relationships
    bikes = relationship("Bike", back_populates="user", cascade="all, delete-orphan")
