"""
Library router - the measure catalogue.

Exposes the measure definitions loaded from measures.yaml so clients can
build entry forms (bounds, units, direction, MCID/MDC) without hardcoding
them.

No authentication required for read-only catalogue access.
"""
import logging
from typing import List, Optional

from fastapi import APIRouter, Query
from pydantic import BaseModel

from outcome_svc.core.exceptions import InvalidInputError
from outcome_svc.core.measure_library import (
    FAMILY_MMT,
    FAMILY_OUTCOME,
    FAMILY_ROM,
    MeasureDefinition,
    get_measure,
    list_measures,
)

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/library",
    tags=["Measure Library"],
    # No authentication - public read-only endpoints
)

FAMILIES = (FAMILY_OUTCOME, FAMILY_ROM, FAMILY_MMT)


# =============================================================================
# RESPONSE MODELS
# =============================================================================

class MeasureDefinitionResponse(BaseModel):
    """Single measure definition for API response."""
    key: str
    family: str
    display_name: str
    display_name_vi: str
    category: str
    unit: str
    min_value: float
    max_value: float
    higher_is_better: bool
    mcid: Optional[float] = None
    mdc: Optional[float] = None
    threshold: Optional[float] = None  # MCID, else MDC
    step: Optional[float] = None
    normal_value: Optional[float] = None
    aliases: List[str]


class MeasureListResponse(BaseModel):
    measures: List[MeasureDefinitionResponse]
    total: int


def _measure_to_response(measure: MeasureDefinition) -> MeasureDefinitionResponse:
    """Convert internal MeasureDefinition to API response model."""
    return MeasureDefinitionResponse(
        key=measure.key,
        family=measure.family,
        display_name=measure.display_name,
        display_name_vi=measure.display_name_vi,
        category=measure.category,
        unit=measure.unit,
        min_value=measure.min_value,
        max_value=measure.max_value,
        higher_is_better=measure.higher_is_better,
        mcid=measure.mcid,
        mdc=measure.mdc,
        threshold=measure.threshold,
        step=measure.step,
        normal_value=measure.normal_value,
        aliases=list(measure.aliases),
    )


# =============================================================================
# ENDPOINTS
# =============================================================================

@router.get(
    "/measures",
    response_model=MeasureListResponse,
    summary="List measure definitions",
    description="All measures in the library, optionally filtered by family "
                "(outcome_measure, rom, mmt). MMT is listed for the common muscle groups; "
                "any muscle group is accepted when recording."
)
async def list_measure_definitions(
    family: Optional[str] = Query(None, description="outcome_measure, rom or mmt", example="outcome_measure")
) -> MeasureListResponse:
    if family is not None and family not in FAMILIES:
        raise InvalidInputError(
            detail=f"Unknown measure family '{family}'. Expected one of: {', '.join(FAMILIES)}",
            family=family,
        )
    measures = list_measures(family)
    return MeasureListResponse(
        measures=[_measure_to_response(m) for m in measures],
        total=len(measures),
    )


@router.get(
    "/measures/{measure_key}",
    response_model=MeasureDefinitionResponse,
    summary="Get a measure definition",
    description="Look up a measure by key or alias (case-insensitive). Returns 404 for unknown keys."
)
async def get_measure_definition(measure_key: str) -> MeasureDefinitionResponse:
    return _measure_to_response(get_measure(measure_key))
