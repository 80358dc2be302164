# app/domain/pricing_config.py
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _RateCard(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
        allow_inf_nan=False,
    )


class MovingServiceRates(_RateCard):
    base_hourly_rate: float = Field(..., ge=0)
    per_mile_distance_adjustment: float = Field(0.0, ge=0)
    per_extra_crew_member_rate: float = Field(0.0, ge=0)
    service_charge_fraction: float = Field(0.0, ge=0, le=1)


class LaborOnlyRates(_RateCard):
    base_hourly_rate: float = Field(..., ge=0)
    per_extra_crew_member_rate: float = Field(0.0, ge=0)
    per_mile_distance_adjustment: float = Field(0.0, ge=0)
    round_trip_travel_rate_per_mile: float = Field(0.0, ge=0)
    service_charge_fraction: float = Field(0.0, ge=0, le=1)


class SingleItemRates(_RateCard):
    base_flat_rate: float = Field(..., ge=0)
    per_mile_distance_rate: float = Field(0.0, ge=0)
    service_charge_fraction: float = Field(0.0, ge=0, le=1)


class StairFees(_RateCard):
    apartment_rate_per_flight: float = Field(0.0, ge=0)
    house_rate_per_flight: float = Field(0.0, ge=0)


class SpecialtyItemFee(_RateCard):
    flat_fee: float = Field(..., ge=0)
    extra_time_hours: float = Field(0.0, ge=0)


class PackingMaterial(_RateCard):
    unit_price: float = Field(..., ge=0)


class AdditionalServiceRates(_RateCard):
    packing_fee: float = Field(50.0, ge=0)
    per_blanket_rate: float = Field(2.0, ge=0)
    default_blanket_quantity: int = Field(10, ge=0)
    insurance_rate_fraction: float = Field(0.01, ge=0, le=1)


class PricingConfiguration(_RateCard):
    """
    The admin-editable rate card. One version is active at a time; every
    channel prices against whatever is active at request time.
    """
    moving_service: MovingServiceRates
    labor_only_service: LaborOnlyRates
    single_item_service: SingleItemRates
    stair_fees: StairFees = Field(default_factory=StairFees)
    specialty_item_flat_fees: dict[str, SpecialtyItemFee] = Field(default_factory=dict)
    packing_materials: dict[str, PackingMaterial] = Field(default_factory=dict)
    additional_services: AdditionalServiceRates = Field(default_factory=AdditionalServiceRates)

    def to_document(self) -> dict:
        return self.model_dump(by_alias=True)


def default_pricing_configuration() -> PricingConfiguration:
    """Seed rate card written by scripts/seed_defaults.py on a fresh install."""
    return PricingConfiguration(
        moving_service=MovingServiceRates(
            base_hourly_rate=192.50,
            per_mile_distance_adjustment=0.75,
            per_extra_crew_member_rate=65.00,
            service_charge_fraction=0.14,
        ),
        labor_only_service=LaborOnlyRates(
            base_hourly_rate=115.00,
            per_extra_crew_member_rate=55.00,
            per_mile_distance_adjustment=0.50,
            round_trip_travel_rate_per_mile=1.60,
            service_charge_fraction=0.08,
        ),
        single_item_service=SingleItemRates(
            base_flat_rate=249.00,
            per_mile_distance_rate=1.50,
            service_charge_fraction=0.14,
        ),
        stair_fees=StairFees(apartment_rate_per_flight=25.00, house_rate_per_flight=15.00),
        specialty_item_flat_fees={
            "piano": SpecialtyItemFee(flat_fee=200.00, extra_time_hours=0.75),
            "poolTable": SpecialtyItemFee(flat_fee=300.00, extra_time_hours=1.0),
            "hotTub": SpecialtyItemFee(flat_fee=250.00, extra_time_hours=1.0),
            "safe": SpecialtyItemFee(flat_fee=150.00, extra_time_hours=0.5),
        },
        packing_materials={
            "smallBox": PackingMaterial(unit_price=2.50),
            "mediumBox": PackingMaterial(unit_price=3.50),
            "largeBox": PackingMaterial(unit_price=4.50),
            "wardrobeBox": PackingMaterial(unit_price=12.00),
            "packingTape": PackingMaterial(unit_price=4.00),
            "packingPaper": PackingMaterial(unit_price=8.00),
            "bubbleWrap": PackingMaterial(unit_price=15.00),
        },
        additional_services=AdditionalServiceRates(),
    )
