from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel

from api.dependencies import TokenDep
from config import settings
from policy_engine.stats import get_decision_stats

router = APIRouter()


class FilterOptionsResponse(BaseModel):
    strict: bool
    unified: bool
    track_x_tls_header: bool
    info_url: str


@router.get("/options", response_model=FilterOptionsResponse)
async def get_filter_options(token: TokenDep):
    options = settings.filter_options
    return FilterOptionsResponse(
        strict=options.strict,
        unified=options.unified,
        track_x_tls_header=options.track_x_tls_header,
        info_url=options.info_url,
    )


@router.get("/stats", response_model=Dict[str, Any])
async def get_filter_stats(token: TokenDep):
    return get_decision_stats().snapshot()
