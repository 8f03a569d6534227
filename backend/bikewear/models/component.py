from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Enum as SQLEnum,
)
from sqlalchemy.orm import relationship
from bikewear.models.base import BaseModel
import enum


class ComponentType(str, enum.Enum):
    FORK = "FORK"
    SHOCK = "SHOCK"
    CHAIN = "CHAIN"
    CASSETTE = "CASSETTE"
    CRANK = "CRANK"
    REAR_DERAILLEUR = "REAR_DERAILLEUR"
    DRIVETRAIN = "DRIVETRAIN"
    BRAKES = "BRAKES"
    BRAKE_PAD = "BRAKE_PAD"
    BRAKE_ROTOR = "BRAKE_ROTOR"
    WHEEL_HUBS = "WHEEL_HUBS"
    RIMS = "RIMS"
    TIRES = "TIRES"
    STEM = "STEM"
    HANDLEBAR = "HANDLEBAR"
    SADDLE = "SADDLE"
    SEATPOST = "SEATPOST"
    DROPPER = "DROPPER"
    PIVOT_BEARINGS = "PIVOT_BEARINGS"
    HEADSET = "HEADSET"
    BOTTOM_BRACKET = "BOTTOM_BRACKET"


class ComponentLocation(str, enum.Enum):
    FRONT = "FRONT"
    REAR = "REAR"
    NONE = "NONE"


class ComponentStatus(str, enum.Enum):
    INVENTORY = "INVENTORY"
    INSTALLED = "INSTALLED"
    RETIRED = "RETIRED"


class BaselineMethod(str, enum.Enum):
    DEFAULT = "DEFAULT"
    SLIDER = "SLIDER"
    DATES = "DATES"


class BaselineConfidence(str, enum.Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class Component(BaseModel):
    __tablename__ = "components"

    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Set iff the component is mounted on a bike
    bike_id = Column(Integer, ForeignKey("bikes.id", ondelete="SET NULL"), nullable=True, index=True)

    type = Column(SQLEnum(ComponentType), nullable=False)
    location = Column(SQLEnum(ComponentLocation), default=ComponentLocation.NONE, nullable=False)

    # Descriptive
    brand = Column(String(120), nullable=False)
    model = Column(String(120), nullable=False)
    notes = Column(Text)
    is_stock = Column(Boolean, default=True, nullable=False)

    # Wear
    hours_used = Column(Float, default=0.0, nullable=False)
    service_interval_hours = Column(Float)  # overrides the catalog interval
    service_due_at_hours = Column(Float)
    last_serviced_at = Column(DateTime)

    # Baseline calibration
    baseline_wear_percent = Column(Float, default=0.0, nullable=False)
    baseline_method = Column(SQLEnum(BaselineMethod), default=BaselineMethod.DEFAULT, nullable=False)
    baseline_confidence = Column(SQLEnum(BaselineConfidence), default=BaselineConfidence.LOW, nullable=False)
    baseline_set_at = Column(DateTime)

    # Lifecycle
    status = Column(SQLEnum(ComponentStatus), default=ComponentStatus.INSTALLED, nullable=False)
    installed_at = Column(DateTime)
    retired_at = Column(DateTime)
    replaced_by_id = Column(Integer, ForeignKey("components.id", ondelete="SET NULL"), unique=True)
    pair_group_id = Column(String(36), index=True)

    __table_args__ = (
        UniqueConstraint('bike_id', 'type', 'location', name='uq_component_bike_type_location'),
        Index('ix_component_user_type', 'user_id', 'type'),
    )

    # Relationships
    bike = relationship("Bike", back_populates="components")
    replaced_by = relationship("Component", remote_side="Component.id", uselist=False)
    service_logs = relationship(
        "ServiceLog",
        back_populates="component",
        cascade="all, delete-orphan",
        order_by="ServiceLog.performed_at",
    )
    installs = relationship("BikeComponentInstall", back_populates="component", cascade="all, delete-orphan")

    @property
    def is_spare(self) -> bool:
        return self.status == ComponentStatus.INVENTORY

    def __repr__(self):
        return (
            f"<Component id={self.id} type={self.type} location={self.location} "
            f"bike_id={self.bike_id} status={self.status}>"
        )
