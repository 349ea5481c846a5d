"""NAPWATCH — Audit API Routes."""

from typing import List

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from pydantic import BaseModel

from app.analyzer.pipeline import AuditEngine
from app.api.deps import get_engine
from app.core.logging import get_logger
from app.models.audit_models import AlertEvent, AuditReport

logger = get_logger("api.audits")

router = APIRouter(tags=["Audits"])


# ── Response Models ──


class RunAuditResponse(BaseModel):
    """Response for POST /audits/run."""

    status: str = "success"
    report: AuditReport


class RecheckResponse(BaseModel):
    status: str = "success"
    changed_platforms: List[str] = []


class AlertSweepResponse(BaseModel):
    status: str = "success"
    alerts: List[AlertEvent] = []


# ── Endpoints ──


@router.post("/audits/run", response_model=RunAuditResponse)
async def trigger_audit(engine: AuditEngine = Depends(get_engine)):
    """Trigger a full audit.

    If an audit is already running, no second audit is started and the
    latest completed report is returned instead.
    """
    report = await engine.run_full_audit()
    return RunAuditResponse(status="success", report=report)


@router.get("/audits/latest")
async def get_latest_report(engine: AuditEngine = Depends(get_engine)):
    """Get the most recent audit report."""
    report = engine.latest_report
    if report is None:
        return {"status": "no_data", "message": "No audit has been run yet."}
    return {"status": "success", "report": report}


@router.get("/audits/latest/export")
async def export_latest_report(engine: AuditEngine = Depends(get_engine)):
    """Latest report as a downloadable JSON document."""
    return Response(
        content=engine.export_latest_report(),
        media_type="application/json",
        headers={"Content-Disposition": 'attachment; filename="nap-audit-report.json"'},
    )


@router.get("/audits/history")
async def get_history(
    limit: int = Query(10, ge=1, le=100),
    engine: AuditEngine = Depends(get_engine),
):
    """Retained audit reports, newest first."""
    reports = list(reversed(engine.get_history()))[:limit]
    return {
        "status": "success",
        "count": len(reports),
        "results": [
            {
                "id": r.id,
                "timestamp": r.timestamp.isoformat(),
                "overall_score": r.overall_score,
                "critical_issues": r.critical_issues,
                "trends": r.trends,
            }
            for r in reports
        ],
    }


@router.post("/audits/recheck", response_model=RecheckResponse)
async def trigger_recheck(engine: AuditEngine = Depends(get_engine)):
    """Run the lightweight consistency re-check now."""
    changed = await engine.run_consistency_recheck()
    return RecheckResponse(changed_platforms=changed)


@router.post("/alerts/sweep", response_model=AlertSweepResponse)
async def trigger_alert_sweep(engine: AuditEngine = Depends(get_engine)):
    """Re-evaluate alert thresholds against the latest report."""
    events = await engine.run_alert_sweep()
    return AlertSweepResponse(alerts=events)
