import pytest

from app.domain.errors import ValidationError
from app.domain.policies import parse_service_type
from app.domain.pricing import calculate_estimate, round_money
from app.domain.pricing_config import default_pricing_configuration
from app.domain.types import BuildingDetails, HomeType, QuoteRequest, ServiceType

CFG = default_pricing_configuration()

COMPONENTS = (
    "subtotal",
    "service_charge",
    "stairs_fee",
    "specialty_items_fee",
    "additional_services_fee",
    "packing_materials_fee",
    "insurance_fee",
)


def _moving(**kw) -> QuoteRequest:
    base = dict(service_type=ServiceType.moving_service, crew_size=2, distance_miles=10, drive_time_minutes=20)
    base.update(kw)
    return QuoteRequest(**base)


def test_moving_service_two_person_crew_scenario():
    est = calculate_estimate(_moving(), CFG)

    assert est.labor_cost == 666.67
    assert est.travel_fee == 0.0
    assert est.subtotal == 666.67
    assert est.service_charge == 93.33
    assert est.total == 760.00
    assert est.estimated_duration_hours == 3.33


def test_labor_only_three_person_crew_scenario():
    req = QuoteRequest(
        service_type=ServiceType.labor_only,
        crew_size=3,
        hours=4,
        distance_miles=15,
    )
    est = calculate_estimate(req, CFG)

    assert est.labor_cost == 710.00
    assert est.travel_fee == 48.00
    assert est.subtotal == 758.00
    assert est.service_charge == 60.64
    assert est.total == 818.64
    assert est.estimated_duration_hours == 4.0


def test_labor_only_without_hours_uses_two_hour_minimum():
    est = calculate_estimate(QuoteRequest(service_type=ServiceType.labor_only, crew_size=2), CFG)
    assert est.labor_cost == 230.00
    assert est.estimated_duration_hours == 2.0


def test_single_item_ignores_crew_size():
    a = calculate_estimate(QuoteRequest(service_type=ServiceType.single_item, distance_miles=10), CFG)
    b = calculate_estimate(QuoteRequest(service_type=ServiceType.single_item, distance_miles=10, crew_size=7), CFG)

    assert a == b
    assert a.labor_cost == 249.00
    assert a.travel_fee == 15.00
    assert a.service_charge == round_money(264.0 * 0.14)


def test_stairs_fee_is_home_type_aware_and_additive():
    req = _moving(
        pickup=BuildingDetails(home_type=HomeType.apartment, stairs=2),
        dropoff=BuildingDetails(home_type=HomeType.house, stairs=1),
    )
    est = calculate_estimate(req, CFG)
    assert est.stairs_fee == 2 * 25.00 + 1 * 15.00

    pickup_only = calculate_estimate(_moving(pickup=BuildingDetails(HomeType.apartment, 2)), CFG)
    dropoff_only = calculate_estimate(_moving(dropoff=BuildingDetails(HomeType.house, 1)), CFG)
    assert est.stairs_fee == pickup_only.stairs_fee + dropoff_only.stairs_fee


def test_specialty_items_add_fees_and_time_independently():
    plain = calculate_estimate(_moving(), CFG)
    est = calculate_estimate(_moving(inventory={"piano": True, "safe": True, "hotTub": False}), CFG)

    assert est.specialty_items_fee == 350.00
    assert plain.estimated_duration_hours == 3.33
    assert est.estimated_duration_hours == 4.58
    # labor is priced on the base duration only
    assert est.labor_cost == plain.labor_cost


def test_unknown_specialty_item_is_ignored():
    est = calculate_estimate(_moving(inventory={"grandfatherClock": True}), CFG)
    assert est.specialty_items_fee == 0.0


def test_additional_services_materials_and_insurance():
    req = _moving(
        packing=True,
        moving_blankets=True,
        packing_materials={"smallBox": 10, "bubbleWrap": 1, "mysteryCrate": 3},
        insurance_requested=True,
        declared_value=5000,
    )
    est = calculate_estimate(req, CFG)

    # packing 50 + default 10 blankets at 2
    assert est.additional_services_fee == 70.00
    assert est.packing_materials_fee == 10 * 2.50 + 15.00
    assert est.insurance_fee == 50.00


def test_insurance_not_charged_unless_requested():
    est = calculate_estimate(_moving(declared_value=5000), CFG)
    assert est.insurance_fee == 0.0


@pytest.mark.parametrize(
    "req",
    [
        _moving(),
        _moving(crew_size=4, distance_miles=37.3, drive_time_minutes=47, packing=True, moving_blankets=True, blanket_quantity=13),
        QuoteRequest(service_type=ServiceType.labor_only, crew_size=3, hours=2.5, distance_miles=11.1),
        QuoteRequest(
            service_type=ServiceType.single_item,
            distance_miles=3.33,
            inventory={"piano": True},
            insurance_requested=True,
            declared_value=1234.56,
        ),
    ],
)
def test_total_is_sum_of_rounded_components(req):
    est = calculate_estimate(req, CFG)
    assert est.total == round_money(sum(getattr(est, f) for f in COMPONENTS))
    for f in COMPONENTS + ("labor_cost", "travel_fee", "total"):
        value = getattr(est, f)
        assert value == round_money(value)


@pytest.mark.parametrize("service_type", [ServiceType.moving_service, ServiceType.labor_only])
def test_labor_cost_never_decreases_with_crew_size(service_type):
    costs = [
        calculate_estimate(
            QuoteRequest(service_type=service_type, crew_size=c, hours=3, distance_miles=12, drive_time_minutes=25),
            CFG,
        ).labor_cost
        for c in (2, 3, 4)
    ]
    assert costs == sorted(costs)


def test_pricing_is_idempotent():
    req = _moving(inventory={"piano": True}, packing_materials={"largeBox": 4})
    assert calculate_estimate(req, CFG) == calculate_estimate(req, CFG)


@pytest.mark.parametrize("crew_size", [1, 5])
def test_out_of_range_crew_is_rejected(crew_size):
    with pytest.raises(ValidationError):
        calculate_estimate(_moving(crew_size=crew_size), CFG)


@pytest.mark.parametrize(
    "kw",
    [
        {"distance_miles": -1},
        {"drive_time_minutes": -5},
        {"pickup": BuildingDetails(HomeType.house, -1)},
        {"packing_materials": {"smallBox": -2}},
        {"declared_value": -10},
    ],
)
def test_negative_inputs_are_rejected(kw):
    with pytest.raises(ValidationError):
        calculate_estimate(_moving(**kw), CFG)


@pytest.mark.parametrize(
    "kw",
    [
        {"distance_miles": float("inf")},
        {"distance_miles": float("nan")},
        {"drive_time_minutes": float("nan")},
        {"declared_value": float("inf")},
    ],
)
def test_non_finite_inputs_are_rejected(kw):
    with pytest.raises(ValidationError):
        calculate_estimate(_moving(**kw), CFG)


def test_round_money_is_half_up():
    assert round_money(2.675) == 2.68
    assert round_money(0.125) == 0.13
    assert round_money(1.004) == 1.0


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("movingService", (ServiceType.moving_service, None)),
        ("laborOnly", (ServiceType.labor_only, None)),
        ("3 Person Crew", (ServiceType.moving_service, 3)),
        ("4-person-crew", (ServiceType.moving_service, 4)),
        ("Labor Only", (ServiceType.labor_only, None)),
        ("Single Item Move", (ServiceType.single_item, None)),
    ],
)
def test_parse_service_type_accepts_channel_labels(raw, expected):
    assert parse_service_type(raw) == expected


@pytest.mark.parametrize("raw", ["", None, "Piano Tuning"])
def test_parse_service_type_rejects_unknown(raw):
    with pytest.raises(ValidationError):
        parse_service_type(raw)
