# app/domain/pricing.py
from __future__ import annotations

import logging
import math
from decimal import ROUND_HALF_UP, Decimal

from .errors import ValidationError
from .policies import validate_crew_size
from .pricing_config import PricingConfiguration
from .types import BuildingDetails, Estimate, HomeType, QuoteRequest, ServiceType

log = logging.getLogger(__name__)

# Fixed labor assumption for moving and single-item jobs, before travel / extras.
BASE_LABOR_HOURS = 3.0
LABOR_ONLY_MINIMUM_HOURS = 2.0

_CENT = Decimal("0.01")


def round_money(x: float) -> float:
    """Half-up to the cent, the way customers see prices in quotes and emails."""
    return float(Decimal(str(x)).quantize(_CENT, rounding=ROUND_HALF_UP))


def _require_non_negative(name: str, value: float | int | None) -> None:
    if value is None:
        return
    if not math.isfinite(value):
        raise ValidationError(f"{name} must be a finite number, got {value}")
    if value < 0:
        raise ValidationError(f"{name} must be >= 0, got {value}")


def _validate(req: QuoteRequest) -> None:
    if not isinstance(req.service_type, ServiceType):
        raise ValidationError(f"Unknown service type: {req.service_type!r}")

    _require_non_negative("distance", req.distance_miles)
    _require_non_negative("driveTime", req.drive_time_minutes)
    _require_non_negative("hours", req.hours)
    _require_non_negative("pickup stairs", req.pickup.stairs)
    _require_non_negative("dropoff stairs", req.dropoff.stairs)
    _require_non_negative("blanketsQuantity", req.blanket_quantity)
    _require_non_negative("declaredValue", req.declared_value)
    for kind, qty in req.packing_materials.items():
        _require_non_negative(f"packingMaterials.{kind}", qty)

    if req.service_type in (ServiceType.moving_service, ServiceType.labor_only):
        validate_crew_size(req.crew_size)


def _stair_fee(side: BuildingDetails, cfg: PricingConfiguration) -> float:
    if side.home_type == HomeType.apartment:
        rate = cfg.stair_fees.apartment_rate_per_flight
    else:
        rate = cfg.stair_fees.house_rate_per_flight
    return side.stairs * rate


def _base_service(req: QuoteRequest, cfg: PricingConfiguration) -> tuple[float, float, float, float]:
    """Returns (labor_cost, travel_fee, service_charge_fraction, duration_hours)."""
    crew_delta = (req.crew_size or 2) - 2
    distance = req.distance_miles

    if req.service_type == ServiceType.moving_service:
        rates = cfg.moving_service
        hourly = (
            rates.base_hourly_rate
            + distance * rates.per_mile_distance_adjustment
            + crew_delta * rates.per_extra_crew_member_rate
        )
        duration = BASE_LABOR_HOURS + req.drive_time_minutes / 60
        return hourly * duration, 0.0, rates.service_charge_fraction, duration

    if req.service_type == ServiceType.labor_only:
        rates = cfg.labor_only_service
        hours = req.hours if req.hours else LABOR_ONLY_MINIMUM_HOURS
        hourly = (
            rates.base_hourly_rate
            + crew_delta * rates.per_extra_crew_member_rate
            + distance * rates.per_mile_distance_adjustment
        )
        travel = distance * 2 * rates.round_trip_travel_rate_per_mile
        return hourly * hours, travel, rates.service_charge_fraction, hours

    rates = cfg.single_item_service
    travel = distance * rates.per_mile_distance_rate
    return rates.base_flat_rate, travel, rates.service_charge_fraction, BASE_LABOR_HOURS


def calculate_estimate(req: QuoteRequest, cfg: PricingConfiguration) -> Estimate:
    """
    Price a quote against a rate card. Pure: same inputs, same Estimate.

    Every component is rounded to the cent on its own and the total is the
    sum of the rounded components, so the displayed line items always add up.
    """
    _validate(req)

    labor, travel, charge_fraction, duration = _base_service(req, cfg)
    subtotal = labor + travel
    service_charge = subtotal * charge_fraction

    stairs = _stair_fee(req.pickup, cfg) + _stair_fee(req.dropoff, cfg)

    specialty = 0.0
    for item, flagged in sorted(req.inventory.items()):
        if not flagged:
            continue
        fee = cfg.specialty_item_flat_fees.get(item)
        if fee is None:
            log.warning("ignoring unpriced specialty item %r", item)
            continue
        specialty += fee.flat_fee
        duration += fee.extra_time_hours

    extras = cfg.additional_services
    additional = 0.0
    if req.packing:
        additional += extras.packing_fee
    if req.moving_blankets:
        qty = req.blanket_quantity if req.blanket_quantity is not None else extras.default_blanket_quantity
        additional += qty * extras.per_blanket_rate

    materials = 0.0
    for kind, qty in sorted(req.packing_materials.items()):
        if qty <= 0:
            continue
        material = cfg.packing_materials.get(kind)
        if material is None:
            log.warning("ignoring unknown packing material %r", kind)
            continue
        materials += qty * material.unit_price

    insurance = 0.0
    if req.insurance_requested and req.declared_value:
        insurance = req.declared_value * extras.insurance_rate_fraction

    parts = {
        "subtotal": round_money(subtotal),
        "service_charge": round_money(service_charge),
        "stairs_fee": round_money(stairs),
        "specialty_items_fee": round_money(specialty),
        "additional_services_fee": round_money(additional),
        "packing_materials_fee": round_money(materials),
        "insurance_fee": round_money(insurance),
    }
    total = round_money(sum(parts.values()))

    return Estimate(
        labor_cost=round_money(labor),
        travel_fee=round_money(travel),
        total=total,
        estimated_duration_hours=round_money(duration),
        **parts,
    )
