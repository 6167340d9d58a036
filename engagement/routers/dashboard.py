"""
Dashboard router: the full metric set in one response.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from engagement.engine.assembler import DashboardAssembler, DashboardLoadError
from engagement.utils.logging import get_logger

from .dependencies import get_assembler

logger = get_logger(__name__)
router = APIRouter()

LOAD_FAILED_MESSAGE = "Failed to load dashboard metrics. Please try again."


@router.get("")
async def get_dashboard(assembler: DashboardAssembler = Depends(get_assembler)):
    """
    All dashboard metrics, grouped into kpis, trends, demographics and summaries.

    Metrics served from a fallback default are listed under ``degraded``.
    Any failed metric fails the whole request with 503.
    """
    try:
        dashboard = await assembler.get_all_metrics()
    except DashboardLoadError as e:
        logger.warning("dashboard_unavailable", failures=e.failures)
        return JSONResponse(
            status_code=503,
            content={"success": False, "error": LOAD_FAILED_MESSAGE},
        )

    logger.info("dashboard_served", degraded=len(dashboard.degraded))
    return {"success": True, "data": dashboard.model_dump(mode="json")}
