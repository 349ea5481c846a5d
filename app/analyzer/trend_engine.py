"""NAPWATCH — Trend Engine.

Compares the new audit report with the previous one.
Produces the trend summary and threshold alerts.
"""

from typing import List, Optional

from app.core.logging import get_logger
from app.models.audit_models import (
    AlertEvent,
    AlertType,
    AuditReport,
    PlatformSnapshot,
    Severity,
    Trend,
    TrendSummary,
)
from app.models.config_models import AlertThresholds
from app.notify.sinks import NotificationSink

logger = get_logger("analyzer.trend")

TREND_BAND = 5  # points; changes within ±5 are "stable"


def _direction(score_change: int) -> Trend:
    if score_change > TREND_BAND:
        return Trend.IMPROVING
    elif score_change < -TREND_BAND:
        return Trend.DECLINING
    return Trend.STABLE


def compute_trend(
    overall_score: int,
    critical_issues: int,
    previous: Optional[AuditReport],
) -> TrendSummary:
    """Score / critical-issue deltas against the previous report."""
    if previous is None:
        return TrendSummary()

    score_change = overall_score - previous.overall_score
    return TrendSummary(
        score_change=score_change,
        consistency_trend=_direction(score_change),
        critical_issues_trend=critical_issues - previous.critical_issues,
    )


def _critical_platforms(platforms: List[PlatformSnapshot]) -> List[str]:
    return [
        p.platform
        for p in platforms
        if any(d.severity == Severity.CRITICAL for d in p.discrepancies)
    ]


def evaluate_alerts(
    report: AuditReport,
    previous: Optional[AuditReport],
    thresholds: AlertThresholds,
) -> List[AlertEvent]:
    """At most one event per firing condition."""
    events: List[AlertEvent] = []

    # 1. Score drop — only meaningful with a previous report
    if previous is not None:
        score_drop = previous.overall_score - report.overall_score
        if score_drop >= thresholds.score_drop:
            events.append(
                AlertEvent(
                    type=AlertType.SCORE_DROP,
                    payload={
                        "report_id": report.id,
                        "current_score": report.overall_score,
                        "previous_score": previous.overall_score,
                        "score_drop": score_drop,
                    },
                )
            )

    # 2. Critical issues
    if report.critical_issues >= thresholds.min_critical_issues:
        events.append(
            AlertEvent(
                type=AlertType.CRITICAL_ISSUES,
                payload={
                    "report_id": report.id,
                    "critical_issues": report.critical_issues,
                    "platforms": _critical_platforms(report.platforms),
                },
            )
        )

    return events


async def dispatch_alerts(sink: NotificationSink, events: List[AlertEvent]) -> int:
    """Deliver events; delivery failures are logged, never raised.

    Returns the number of events the sink accepted.
    """
    delivered = 0
    for event in events:
        try:
            await sink.emit(event)
            delivered += 1
        except Exception as e:
            logger.error(
                f"Alert delivery failed for {event.type.value}: {e}",
                extra={"alert_type": event.type.value},
            )
    if events:
        logger.info(f"Dispatched {delivered}/{len(events)} alerts")
    return delivered
