"""
Metrics router: metric catalog and single-metric computation.
"""

from fastapi import APIRouter, Depends, HTTPException

from engagement.engine.aggregators import REGISTRY
from engagement.engine.assembler import DashboardAssembler
from engagement.models.enums import MetricKey
from engagement.utils.logging import get_logger

from .dependencies import get_assembler

logger = get_logger(__name__)
router = APIRouter()


@router.get("")
async def list_metrics(assembler: DashboardAssembler = Depends(get_assembler)):
    """Every metric key with its dashboard section and backend error policy."""
    data = [
        {
            "key": key.value,
            "section": entry.section.value,
            "error_policy": assembler.policies[key].value,
        }
        for key, entry in REGISTRY.items()
    ]
    return {"success": True, "data": data}


@router.get("/{metric_key}")
async def get_metric(
    metric_key: str,
    assembler: DashboardAssembler = Depends(get_assembler),
):
    """
    Compute one metric.

    Returns the aggregation outcome: status, value and (when degraded or
    failed) the reason.
    """
    try:
        key = MetricKey(metric_key)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Unknown metric: {metric_key}")

    logger.info("metric_requested", metric=key.value)
    outcome = await assembler.get_metric(key)
    return {"success": True, "data": outcome.model_dump(mode="json")}
