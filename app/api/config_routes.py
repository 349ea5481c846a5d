"""NAPWATCH — Audit Configuration API Routes."""

from typing import Any, Dict

from fastapi import APIRouter, Body, Depends, HTTPException

from app.analyzer.pipeline import AuditEngine
from app.api.deps import get_engine
from app.core.exceptions import ConfigurationError
from app.core.logging import get_logger
from app.models.config_models import AuditConfiguration

logger = get_logger("api.config")

router = APIRouter(tags=["Configuration"])


@router.get("/config", response_model=AuditConfiguration)
async def get_config(engine: AuditEngine = Depends(get_engine)):
    return engine.get_config()


@router.patch("/config", response_model=AuditConfiguration)
async def update_config(
    partial: Dict[str, Any] = Body(
        ...,
        examples=[{"audit_frequency_hours": 12, "alert_thresholds": {"score_drop": 5}}],
    ),
    engine: AuditEngine = Depends(get_engine),
):
    """Validate and apply a partial configuration.

    Takes effect on the next audit and reschedules the periodic jobs.
    """
    try:
        return engine.update_config(partial)
    except ConfigurationError as e:
        logger.warning(f"Config update rejected: {e}")
        raise HTTPException(
            status_code=422, detail={"message": str(e), "errors": e.errors}
        )
