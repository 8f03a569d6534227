from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, Text
from sqlalchemy.orm import relationship
from bikewear.models.base import BaseModel


class ServiceLog(BaseModel):
    __tablename__ = "service_logs"

    component_id = Column(Integer, ForeignKey("components.id", ondelete="CASCADE"), nullable=False, index=True)
    performed_at = Column(DateTime, nullable=False)
    notes = Column(Text)
    hours_at_service = Column(Float, nullable=False)  # hours_used snapshot before the reset

    # Relationships
    component = relationship("Component", back_populates="service_logs")
