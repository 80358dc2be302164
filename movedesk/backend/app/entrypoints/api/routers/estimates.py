# app/entrypoints/api/routers/estimates.py
from __future__ import annotations

from fastapi import APIRouter, Depends

from ....domain.policies import parse_service_type
from ....schemas import EstimateOut, EstimateResponse, QuoteIn
from ....service_layer.config_provider import ConfigProvider
from ....service_layer.estimates import estimate_quote
from ..deps import get_config_provider

router = APIRouter(tags=["estimates"])


@router.post("/estimate", response_model=EstimateResponse)
async def estimate(
    body: QuoteIn,
    provider: ConfigProvider = Depends(get_config_provider),
) -> EstimateResponse:
    service_type, crew_hint = parse_service_type(body.service_type)
    res = await estimate_quote(provider, body.to_domain(service_type, crew_hint))
    return EstimateResponse(estimate=EstimateOut.from_domain(res.estimate), config_version=res.config_version)


# older channels still post here
router.add_api_route(
    "/calculate-estimate",
    estimate,
    methods=["POST"],
    response_model=EstimateResponse,
    include_in_schema=False,
)
