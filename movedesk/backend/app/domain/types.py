# app/domain/types.py
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum


class ServiceType(str, Enum):
    moving_service = "movingService"
    labor_only = "laborOnly"
    single_item = "singleItem"


class HomeType(str, Enum):
    apartment = "apartment"
    house = "house"


class BusinessUnit(str, Enum):
    primary = "primary"
    secondary = "secondary"


class AppointmentStatus(str, Enum):
    confirmed = "confirmed"
    cancelled = "cancelled"


@dataclass(frozen=True)
class BuildingDetails:
    home_type: HomeType = HomeType.house
    stairs: int = 0


@dataclass(frozen=True)
class QuoteRequest:
    """
    Ephemeral input to the pricing engine. Never persisted as-is.

    crew_size is only meaningful for moving/labor-only work; hours only for
    labor-only (movingService derives duration from drive time).
    """
    service_type: ServiceType
    crew_size: int | None = None
    distance_miles: float = 0.0
    drive_time_minutes: float = 0.0
    hours: float | None = None

    pickup: BuildingDetails = field(default_factory=BuildingDetails)
    dropoff: BuildingDetails = field(default_factory=BuildingDetails)

    # specialty item flags, e.g. {"piano": True, "safe": True}
    inventory: dict[str, bool] = field(default_factory=dict)

    packing: bool = False
    moving_blankets: bool = False
    blanket_quantity: int | None = None
    packing_materials: dict[str, int] = field(default_factory=dict)

    insurance_requested: bool = False
    declared_value: float | None = None


@dataclass(frozen=True)
class Estimate:
    subtotal: float
    labor_cost: float
    travel_fee: float
    service_charge: float
    stairs_fee: float
    specialty_items_fee: float
    additional_services_fee: float
    packing_materials_fee: float
    insurance_fee: float
    total: float
    estimated_duration_hours: float

    def to_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class AvailabilityRules:
    working_days: tuple[int, ...] = (1, 2, 3, 4, 5, 6)  # 0=Sunday .. 6=Saturday
    start_time: str = "08:00"
    end_time: str = "18:00"  # last arrival window start, inclusive
    slot_minutes: int = 60
    slot_capacity: int = 1
    max_appointments_per_day: int = 5


@dataclass(frozen=True)
class AvailabilitySlot:
    date: str
    time: str
    label: str
    available: bool
    reason: str | None = None


@dataclass(frozen=True)
class SlotCheck:
    available: bool
    reason: str | None = None
