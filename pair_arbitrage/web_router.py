"""
Read-only REST API over the result store.

Every endpoint is a pass-through over a ResultStore query wrapped in the
``{"success": ..., "data": ..., "count": ...}`` envelope.
"""

import time
from datetime import timedelta
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dex.config import ScannerConfig
from dex.store import ResultStore
from pair_arbitrage.exceptions import PersistenceFailure
from pair_arbitrage.utils import get_logger, parse_iso_date, timestamp_to_iso, utc_today
from pair_arbitrage.version import __version__

logger = get_logger(__name__)

SERVICE_NAME = "Crypto Arbitrage Bot"


class ApiResponse(BaseModel):
    success: bool
    data: Any = None
    count: Optional[int] = None


class HealthResponse(BaseModel):
    success: bool
    status: str
    timestamp: str
    uptime_seconds: float


class ApiState:
    """What the endpoints need: the store, the config and the start time."""

    def __init__(self, config: ScannerConfig, store: ResultStore):
        self.config = config
        self.store = store
        self.started_at = time.time()


def get_api_state(request: Request) -> ApiState:
    return request.app.state.api


def _listing(rows: List[Dict[str, Any]]) -> ApiResponse:
    return ApiResponse(success=True, data=rows, count=len(rows))


async def persistence_error_handler(request: Request, exc: PersistenceFailure) -> JSONResponse:
    logger.error(f"{request.url.path} failed: {exc}")
    return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})


router = APIRouter()


@router.get("/")
async def root(state: ApiState = Depends(get_api_state)):
    return {
        "success": True,
        "service": SERVICE_NAME,
        "status": "running",
        "pair": state.config.pair_name,
        "exchanges": [ex.id for ex in state.config.exchanges],
        "version": __version__,
    }


@router.get("/opportunities", response_model=ApiResponse)
async def get_opportunities(
    limit: int = Query(100, ge=1, le=10_000), state: ApiState = Depends(get_api_state)
):
    return _listing(await state.store.recent_scans(limit))


@router.get("/opportunities/profitable", response_model=ApiResponse)
async def get_profitable_opportunities(
    limit: int = Query(50, ge=1, le=10_000), state: ApiState = Depends(get_api_state)
):
    return _listing(await state.store.profitable_opportunities(limit))


@router.get("/summary/daily", response_model=ApiResponse)
async def get_daily_summary(
    days: int = Query(7, ge=1, le=3650), state: ApiState = Depends(get_api_state)
):
    return _listing(await state.store.daily_summary(days))


@router.get("/performance", response_model=ApiResponse)
async def get_performance(
    start: Optional[str] = None,
    end: Optional[str] = None,
    state: ApiState = Depends(get_api_state),
):
    try:
        end_date = parse_iso_date(end if end else utc_today())
        start_date = parse_iso_date(start) if start else end_date - timedelta(days=7)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=f"Dates must be YYYY-MM-DD: {e}")

    rows = await state.store.performance_metrics(start_date.isoformat(), end_date.isoformat())
    return _listing(rows)


@router.get("/exchanges", response_model=ApiResponse)
async def get_exchanges(state: ApiState = Depends(get_api_state)):
    exchanges = [ex.to_dict() for ex in state.config.exchanges]
    return ApiResponse(success=True, data=exchanges, count=len(exchanges))


@router.get("/health", response_model=HealthResponse)
async def health_check(state: ApiState = Depends(get_api_state)):
    now = time.time()
    return HealthResponse(
        success=True,
        status="healthy",
        timestamp=timestamp_to_iso(now),
        uptime_seconds=round(now - state.started_at, 3),
    )
