"""
Component Catalog
Single source of truth for component definitions, service intervals and
applicability rules, plus BikeSpec derivation from bike/catalog data.
"""

import enum
import re
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional

from bikewear.models.component import ComponentType


# ============================================================================
# BIKE SPEC
# ============================================================================


class BrakeType(str, enum.Enum):
    DISC = "disc"
    RIM = "rim"


class DrivetrainType(str, enum.Enum):
    ONE_BY = "1x"
    TWO_BY = "2x"
    THREE_BY = "3x"


@dataclass(frozen=True)
class BikeSpec:
    """Normalized bike features that decide which components apply."""
    has_front_suspension: bool
    has_rear_suspension: bool
    brake_type: Optional[BrakeType] = BrakeType.DISC
    drivetrain_type: Optional[DrivetrainType] = DrivetrainType.ONE_BY


@dataclass(frozen=True)
class CatalogComponentData:
    """Brand/model hints for one component as supplied by the bike catalog lookup."""
    maker: Optional[str] = None
    model: Optional[str] = None
    description: Optional[str] = None
    kind: Optional[str] = None  # seatpost: 'dropper' | 'rigid'


# ============================================================================
# CATALOG DEFINITIONS
# ============================================================================


class ComponentCategory(str, enum.Enum):
    SUSPENSION = "SUSPENSION"
    DRIVETRAIN = "DRIVETRAIN"
    BRAKES = "BRAKES"
    WHEELS = "WHEELS"
    COCKPIT = "COCKPIT"
    FRAME = "FRAME"


class Applicability(str, enum.Enum):
    """Which bikes a component definition applies to."""
    ALWAYS = "ALWAYS"
    FRONT_SUSPENSION = "FRONT_SUSPENSION"
    REAR_SUSPENSION = "REAR_SUSPENSION"
    DISC_BRAKES = "DISC_BRAKES"


@dataclass(frozen=True)
class ComponentDefinition:
    type: ComponentType
    display_name: str
    category: ComponentCategory
    service_interval_hours: float
    applies_to: Applicability = Applicability.ALWAYS
    requires_pairing: bool = False
    catalog_key: Optional[str] = None  # key in the bike catalog's component data


COMPONENT_CATALOG: List[ComponentDefinition] = [
    # Suspension
    ComponentDefinition(ComponentType.FORK, "Fork", ComponentCategory.SUSPENSION, 50,
                        Applicability.FRONT_SUSPENSION, catalog_key="fork"),
    ComponentDefinition(ComponentType.SHOCK, "Rear Shock", ComponentCategory.SUSPENSION, 50,
                        Applicability.REAR_SUSPENSION, catalog_key="rearShock"),

    # Drivetrain
    ComponentDefinition(ComponentType.CHAIN, "Chain", ComponentCategory.DRIVETRAIN, 70, catalog_key="chain"),
    ComponentDefinition(ComponentType.CASSETTE, "Cassette", ComponentCategory.DRIVETRAIN, 200, catalog_key="cassette"),
    ComponentDefinition(ComponentType.CRANK, "Crankset", ComponentCategory.DRIVETRAIN, 500, catalog_key="crank"),
    ComponentDefinition(ComponentType.REAR_DERAILLEUR, "Rear Derailleur", ComponentCategory.DRIVETRAIN, 200,
                        catalog_key="rearDerailleur"),
    ComponentDefinition(ComponentType.DRIVETRAIN, "Drivetrain Clean/Lube", ComponentCategory.DRIVETRAIN, 6),

    # Brakes
    ComponentDefinition(ComponentType.BRAKES, "Brake Fluid", ComponentCategory.BRAKES, 100,
                        requires_pairing=True, catalog_key="brakes"),
    ComponentDefinition(ComponentType.BRAKE_PAD, "Brake Pads", ComponentCategory.BRAKES, 40,
                        Applicability.DISC_BRAKES, requires_pairing=True),
    ComponentDefinition(ComponentType.BRAKE_ROTOR, "Brake Rotors", ComponentCategory.BRAKES, 200,
                        Applicability.DISC_BRAKES, requires_pairing=True, catalog_key="discRotors"),

    # Wheels
    ComponentDefinition(ComponentType.WHEEL_HUBS, "Wheel Hubs", ComponentCategory.WHEELS, 250, catalog_key="wheels"),
    ComponentDefinition(ComponentType.RIMS, "Rims", ComponentCategory.WHEELS, 500, catalog_key="rims"),
    ComponentDefinition(ComponentType.TIRES, "Tires", ComponentCategory.WHEELS, 120,
                        requires_pairing=True, catalog_key="tires"),

    # Cockpit
    ComponentDefinition(ComponentType.STEM, "Stem", ComponentCategory.COCKPIT, 1000, catalog_key="stem"),
    ComponentDefinition(ComponentType.HANDLEBAR, "Handlebar", ComponentCategory.COCKPIT, 1000,
                        catalog_key="handlebar"),
    ComponentDefinition(ComponentType.SADDLE, "Saddle", ComponentCategory.COCKPIT, 1000, catalog_key="saddle"),
    ComponentDefinition(ComponentType.SEATPOST, "Seatpost", ComponentCategory.COCKPIT, 500, catalog_key="seatpost"),
    ComponentDefinition(ComponentType.DROPPER, "Dropper Post", ComponentCategory.COCKPIT, 150),

    # Frame
    ComponentDefinition(ComponentType.PIVOT_BEARINGS, "Pivot Bearings", ComponentCategory.FRAME, 250,
                        Applicability.REAR_SUSPENSION),
    ComponentDefinition(ComponentType.HEADSET, "Headset", ComponentCategory.FRAME, 250, catalog_key="headset"),
    ComponentDefinition(ComponentType.BOTTOM_BRACKET, "Bottom Bracket", ComponentCategory.FRAME, 250,
                        catalog_key="bottomBracket"),
]

_CATALOG_BY_TYPE: Dict[ComponentType, ComponentDefinition] = {d.type: d for d in COMPONENT_CATALOG}

DEFAULT_INTERVAL_HOURS = 100.0


# ============================================================================
# LOOKUPS
# ============================================================================


def is_applicable(definition: ComponentDefinition, spec: BikeSpec) -> bool:
    """Pure predicate: does this definition apply to a bike with this spec?"""
    if definition.applies_to == Applicability.FRONT_SUSPENSION:
        return spec.has_front_suspension
    if definition.applies_to == Applicability.REAR_SUSPENSION:
        return spec.has_rear_suspension
    if definition.applies_to == Applicability.DISC_BRAKES:
        return spec.brake_type == BrakeType.DISC
    return True


def get_applicable_components(spec: BikeSpec) -> List[ComponentDefinition]:
    return [d for d in COMPONENT_CATALOG if is_applicable(d, spec)]


def get_component_definition(component_type: ComponentType) -> Optional[ComponentDefinition]:
    return _CATALOG_BY_TYPE.get(ComponentType(component_type))


def requires_pairing(component_type: ComponentType) -> bool:
    definition = get_component_definition(component_type)
    return bool(definition and definition.requires_pairing)


def paired_component_types() -> List[ComponentType]:
    return [d.type for d in COMPONENT_CATALOG if d.requires_pairing]


def get_service_interval(component_type: ComponentType) -> float:
    definition = get_component_definition(component_type)
    return definition.service_interval_hours if definition else DEFAULT_INTERVAL_HOURS


def component_label(component_type: ComponentType) -> str:
    definition = get_component_definition(component_type)
    if definition:
        return definition.display_name
    return ComponentType(component_type).value.replace("_", " ").title()


# ============================================================================
# SPEC DERIVATION
# ============================================================================

DISC_BRAKE_HINTS = ("disc", "hydraulic", "shimano", "sram", "magura", "hope", "hayes", "tektro")
RIM_BRAKE_HINTS = ("rim", "v-brake", "v brake", "caliper", "cantilever")


def _has_component_data(data: Optional[CatalogComponentData]) -> bool:
    if data is None:
        return False
    if data.description and data.description.strip():
        return True
    return bool((data.maker or "").strip() and (data.model or "").strip())


def parse_travel_from_description(description: Optional[str]) -> Optional[int]:
    """Pull a suspension travel like '160mm' out of a description (30-220mm only)."""
    if not description:
        return None
    match = re.search(r"(\d{2,3})\s*mm", description, re.IGNORECASE)
    if match:
        value = int(match.group(1))
        if 30 <= value <= 220:
            return value
    return None


def detect_brake_type(description: Optional[str]) -> BrakeType:
    # Modern mountain bikes default to disc
    if not description:
        return BrakeType.DISC
    lower = description.lower()
    if any(hint in lower for hint in DISC_BRAKE_HINTS):
        return BrakeType.DISC
    if any(hint in lower for hint in RIM_BRAKE_HINTS):
        return BrakeType.RIM
    return BrakeType.DISC


def detect_drivetrain_type(description: Optional[str]) -> DrivetrainType:
    if not description:
        return DrivetrainType.ONE_BY
    normalized = description.upper()

    for marker, drivetrain in (("1", DrivetrainType.ONE_BY), ("2", DrivetrainType.TWO_BY), ("3", DrivetrainType.THREE_BY)):
        if f"{marker}X" in normalized or f"{marker} X" in normalized:
            return drivetrain

    speed = re.search(r"\b(\d{1,2})[- ]SPEED", normalized)
    # 9-speed groups are usually double/triple on older bikes; 10+ is typically 1x
    if speed and int(speed.group(1)) <= 9:
        return DrivetrainType.TWO_BY
    return DrivetrainType.ONE_BY


def derive_bike_spec(
    travel_fork_mm: Optional[int] = None,
    travel_shock_mm: Optional[int] = None,
    catalog_components: Optional[Mapping[str, CatalogComponentData]] = None,
) -> BikeSpec:
    """
    Derive a BikeSpec from travel numbers and optional catalog component data.

    Catalog fork/shock data wins over travel values; travel is the fallback
    for manually entered bikes.
    """
    catalog_components = catalog_components or {}
    brakes = catalog_components.get("brakes")
    derailleur = catalog_components.get("rearDerailleur")

    return BikeSpec(
        has_front_suspension=_has_component_data(catalog_components.get("fork")) or (travel_fork_mm or 0) > 0,
        has_rear_suspension=_has_component_data(catalog_components.get("rearShock")) or (travel_shock_mm or 0) > 0,
        brake_type=detect_brake_type(brakes.description if brakes else None),
        drivetrain_type=detect_drivetrain_type(derailleur.description if derailleur else None),
    )
