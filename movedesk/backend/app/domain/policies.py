# app/domain/policies.py
from __future__ import annotations

import re
import time
import uuid

from .errors import ValidationError
from .types import BusinessUnit, ServiceType

ALLOWED_CREW_SIZES = (2, 3, 4)

BOOKING_ID_PREFIX: dict[BusinessUnit, str] = {
    BusinessUnit.primary: "WF",
    BusinessUnit.secondary: "QM",
}

# Labels the older chatbot / voice / admin pages still send.
_LEGACY_SERVICE_LABELS: dict[str, ServiceType] = {
    "moving service": ServiceType.moving_service,
    "moving": ServiceType.moving_service,
    "labor only": ServiceType.labor_only,
    "labor-only": ServiceType.labor_only,
    "single item move": ServiceType.single_item,
    "single item": ServiceType.single_item,
}

_CREW_LABEL = re.compile(r"^\s*(\d+)[\s-]*person[\s-]*crew\s*$", re.IGNORECASE)


def parse_service_type(raw: str | None) -> tuple[ServiceType, int | None]:
    """
    Map a channel's service label to (ServiceType, crew size hint).

    Accepts the canonical enum values and the legacy labels, including
    "3 Person Crew" / "3-person-crew" which imply a moving job and its crew.
    Anything else is rejected; there is no zero-cost fallback.
    """
    if raw is None or not str(raw).strip():
        raise ValidationError("serviceType is required")

    s = str(raw).strip()
    for st in ServiceType:
        if s == st.value or s == st.name:
            return st, None

    m = _CREW_LABEL.match(s)
    if m:
        return ServiceType.moving_service, int(m.group(1))

    legacy = _LEGACY_SERVICE_LABELS.get(s.lower())
    if legacy is not None:
        return legacy, None

    raise ValidationError(f"Unknown service type: {raw!r}")


def validate_crew_size(crew_size: int | None) -> None:
    """Out-of-range crews are rejected rather than clamped; None means the 2-person default."""
    if crew_size is None:
        return
    if crew_size not in ALLOWED_CREW_SIZES:
        raise ValidationError(f"crewSize must be one of {list(ALLOWED_CREW_SIZES)}, got {crew_size}")


def determine_business_unit(
    service_type: ServiceType,
    requested: BusinessUnit | None,
    *,
    route_labor_only_to_secondary: bool,
) -> BusinessUnit:
    if requested is not None:
        return requested
    if service_type == ServiceType.labor_only and route_labor_only_to_secondary:
        return BusinessUnit.secondary
    return BusinessUnit.primary


def generate_booking_id(unit: BusinessUnit) -> str:
    """e.g. WF-1718900000000-3F9A1C0B2"""
    millis = int(time.time() * 1000)
    return f"{BOOKING_ID_PREFIX[unit]}-{millis}-{uuid.uuid4().hex[:9].upper()}"
