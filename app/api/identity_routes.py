"""NAPWATCH — Master Record & Platform API Routes."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from app.analyzer.pipeline import AuditEngine
from app.api.deps import get_engine
from app.core.exceptions import IdentityRecordError
from app.core.logging import get_logger
from app.models.audit_models import AuditReport
from app.models.identity_models import MasterIdentityRecord

logger = get_logger("api.identity")

router = APIRouter(tags=["Identity"])


class AddressUpdate(BaseModel):
    street: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None


class MasterRecordUpdate(BaseModel):
    """Request body for PATCH /master. Only supplied fields are changed."""

    name: Optional[str] = None
    address: Optional[AddressUpdate] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {"phone": "+49 30 87654321"},
                {"address": {"street": "Solarstraße 2"}},
            ]
        }
    }


class MasterRecordResponse(BaseModel):
    status: str = "success"
    record: MasterIdentityRecord
    report: Optional[AuditReport] = None


@router.get("/master", response_model=MasterIdentityRecord)
async def get_master_record(engine: AuditEngine = Depends(get_engine)):
    """The canonical identity record."""
    return engine.get_master_record()


@router.patch("/master", response_model=MasterRecordResponse)
async def update_master_record(
    request: MasterRecordUpdate,
    run_audit: bool = Query(False, description="Run a full audit after updating"),
    engine: AuditEngine = Depends(get_engine),
):
    """Merge the supplied fields into the master record."""
    try:
        record = engine.update_master_record(request.model_dump(exclude_unset=True))
    except IdentityRecordError as e:
        raise HTTPException(status_code=422, detail=str(e))

    report = await engine.run_full_audit() if run_audit else None
    return MasterRecordResponse(record=record, report=report)


@router.get("/platforms")
async def list_platforms(engine: AuditEngine = Depends(get_engine)):
    """Current snapshot of every audited platform."""
    snapshots = engine.get_platform_snapshots()
    return {
        "status": "success",
        "count": len(snapshots),
        "platforms": list(snapshots.values()),
    }


@router.get("/platforms/{name}")
async def get_platform(name: str, engine: AuditEngine = Depends(get_engine)):
    snapshot = engine.get_platform_snapshot(name)
    if snapshot is None:
        raise HTTPException(status_code=404, detail=f"No snapshot for platform '{name}'")
    return snapshot
