from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String, text
from sqlalchemy.orm import relationship
from bikewear.models.base import BaseModel, utcnow


class BikeComponentInstall(BaseModel):
    """Append-only history of a component occupying a bike slot."""

    __tablename__ = "bike_component_installs"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    bike_id = Column(Integer, ForeignKey("bikes.id", ondelete="CASCADE"), nullable=False, index=True)
    component_id = Column(Integer, ForeignKey("components.id", ondelete="CASCADE"), nullable=False, index=True)
    slot_key = Column(String(50), nullable=False)
    installed_at = Column(DateTime, default=utcnow, nullable=False)
    removed_at = Column(DateTime)  # NULL while the install is active

    __table_args__ = (
        Index('ix_install_bike_removed', 'bike_id', 'removed_at'),
        # Only one active install per bike/slot
        Index(
            'unique_active_install_per_slot',
            'bike_id', 'slot_key',
            unique=True,
            postgresql_where=text('removed_at IS NULL'),
            sqlite_where=text('removed_at IS NULL'),
        ),
        # A component can only be actively installed once
        Index(
            'unique_active_component_install',
            'component_id',
            unique=True,
            postgresql_where=text('removed_at IS NULL'),
            sqlite_where=text('removed_at IS NULL'),
        ),
    )

    # Relationships
    bike = relationship("Bike", back_populates="installs")
    component = relationship("Component", back_populates="installs")
