"""NAPWATCH — Audit Pipeline Orchestrator.

Runs the full data flow:
  fetch per platform → analyze → score → assemble report → recommend →
  trend / alert → append history → persist

The engine is an explicitly constructed service object; nothing here is a
module-level singleton.
"""

import asyncio
import threading
from typing import Any, Callable, Dict, List, Optional

from pydantic import ValidationError

from app.analyzer.consistency_engine import compare
from app.analyzer.recommendation_engine import compute_recommendations
from app.analyzer.scoring_engine import (
    classify_status,
    clamp_score,
    compute_score,
    overall_score,
)
from app.analyzer.trend_engine import compute_trend, dispatch_alerts, evaluate_alerts
from app.config import settings
from app.connectors.platforms.base import PlatformProvider
from app.core.exceptions import ConfigurationError
from app.core.identity_store import MasterIdentityStore, default_master_record
from app.core.logging import get_logger, log_duration
from app.models.audit_models import (
    AlertEvent,
    AlertType,
    AuditReport,
    EngineState,
    PlatformSnapshot,
    PlatformStatus,
    Severity,
)
from app.models.config_models import AuditConfiguration, ComparisonPolicy
from app.models.identity_models import (
    FailureReason,
    FetchFailure,
    MasterIdentityRecord,
    PlatformTarget,
    RawSnapshot,
)
from app.notify.sinks import LogNotificationSink, NotificationSink
from app.storage.report_store import ReportStore

logger = get_logger("analyzer.pipeline")

ConfigListener = Callable[[AuditConfiguration], None]


def _merge_partial(current: Dict[str, Any], partial: Dict[str, Any]) -> Dict[str, Any]:
    """Nested sections (thresholds, comparison, severity map) merge key-by-key;
    lists and scalars replace."""
    merged = dict(current)
    for key, value in partial.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge_partial(merged[key], value)
        else:
            merged[key] = value
    return merged


def _analyze(
    raw: RawSnapshot, master: MasterIdentityRecord, policy: ComparisonPolicy
) -> PlatformSnapshot:
    """Analyzer + scorer for one successfully fetched snapshot."""
    discrepancies = compare(raw, master, policy)
    return PlatformSnapshot(
        platform=raw.platform,
        url=raw.url,
        name=raw.name,
        address=raw.address,
        phone=raw.phone,
        email=raw.email,
        website=raw.website,
        verified=raw.verified,
        last_updated=raw.last_updated,
        status=classify_status(discrepancies),
        discrepancies=discrepancies,
        score=clamp_score(compute_score(discrepancies), raw.platform),
    )


def _error_snapshot(failure: FetchFailure) -> PlatformSnapshot:
    """A failed fetch never reaches the analyzer."""
    return PlatformSnapshot(
        platform=failure.platform,
        status=PlatformStatus.ERROR,
        discrepancies=[],
        score=0,
        failure_reason=failure.reason,
    )


def _as_raw(snapshot: PlatformSnapshot) -> RawSnapshot:
    """Rebuild the published values of a stored snapshot for re-analysis."""
    return RawSnapshot(
        platform=snapshot.platform,
        url=snapshot.url,
        name=snapshot.name,
        address=snapshot.address,
        phone=snapshot.phone,
        email=snapshot.email,
        website=snapshot.website,
        verified=snapshot.verified,
        last_updated=snapshot.last_updated,
    )


def empty_report() -> AuditReport:
    """Placeholder returned before the first audit completes."""
    return AuditReport(schema_version=settings.report_schema_version)


class AuditEngine:
    """Identity consistency audit engine. One instance per process."""

    def __init__(
        self,
        provider: PlatformProvider,
        sink: Optional[NotificationSink] = None,
        store: Optional[ReportStore] = None,
        identity_store: Optional[MasterIdentityStore] = None,
        config: Optional[AuditConfiguration] = None,
    ):
        self.provider = provider
        self.sink = sink or LogNotificationSink()
        self.store = store
        self.identity = identity_store or MasterIdentityStore(default_master_record())
        self._config = config or AuditConfiguration()
        self._config_listeners: List[ConfigListener] = []

        self._audit_lock = asyncio.Lock()
        self._state_lock = threading.Lock()
        self._state = EngineState.IDLE
        self._history: tuple[AuditReport, ...] = ()
        self._snapshots: Dict[str, PlatformSnapshot] = {}
        self._alerted: Dict[str, set[AlertType]] = {}
        self._generation = 0  # bumped on every completed full audit

    # ── State & Queries ──

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def latest_report(self) -> Optional[AuditReport]:
        history = self._history
        return history[-1] if history else None

    def get_latest_report(self) -> AuditReport:
        return self.latest_report or empty_report()

    def get_history(self) -> List[AuditReport]:
        return list(self._history)

    def get_platform_snapshot(self, name: str) -> Optional[PlatformSnapshot]:
        return self._snapshots.get(name)

    def get_platform_snapshots(self) -> Dict[str, PlatformSnapshot]:
        return dict(self._snapshots)

    def get_health_status(self) -> Dict[str, Any]:
        latest = self.get_latest_report()
        return {
            "status": "active" if self._config.enabled else "inactive",
            "state": self._state.value,
            "last_audit": self.latest_report.timestamp if self.latest_report else None,
            "platforms_monitored": len(self._snapshots),
            "overall_score": latest.overall_score,
            "critical_issues": latest.critical_issues,
            "reports_retained": len(self._history),
        }

    def export_latest_report(self) -> str:
        report = self.get_latest_report()
        if self.store is not None:
            return self.store.export_json(report)
        return report.model_dump_json(indent=2)

    def load_history(self, reports: List[AuditReport]) -> None:
        """Seed history (e.g. from the report store at startup)."""
        limit = self._config.history_limit
        with self._state_lock:
            self._history = tuple(reports)[-limit:]
            latest = self._history[-1] if self._history else None
            self._snapshots = {p.platform: p for p in latest.platforms} if latest else {}
            # Alerts for restored reports were handled by a previous process
            self._alerted = {r.id: set(AlertType) for r in self._history}
        logger.info(f"Loaded {len(self._history)} reports into history")

    def _append_history(self, report: AuditReport, limit: int) -> None:
        """Append and evict as one reference swap."""
        with self._state_lock:
            history = (*self._history, report)[-limit:]
            kept = {r.id for r in history}
            self._alerted = {k: v for k, v in self._alerted.items() if k in kept}
            self._history = history

    # ── Configuration ──

    def get_config(self) -> AuditConfiguration:
        return self._config.model_copy(deep=True)

    def add_config_listener(self, listener: ConfigListener) -> None:
        self._config_listeners.append(listener)

    def update_config(self, partial: Dict[str, Any]) -> AuditConfiguration:
        """Validate and apply a partial configuration.

        Raises ConfigurationError without touching the current configuration.
        Takes effect on the next audit; listeners (the scheduler) are notified.
        """
        merged = _merge_partial(self._config.model_dump(), partial)
        try:
            config = AuditConfiguration.model_validate(merged)
        except ValidationError as e:
            logger.warning(f"Rejected configuration update: {e.error_count()} errors")
            raise ConfigurationError(
                "Invalid audit configuration",
                errors=e.errors(include_url=False, include_context=False),
            ) from e

        self._config = config
        logger.info(f"Configuration updated: {sorted(partial.keys())}")
        for listener in self._config_listeners:
            try:
                listener(config.model_copy(deep=True))
            except Exception as e:
                logger.error(f"Config listener failed: {e}")
        return config.model_copy(deep=True)

    # ── Master Record ──

    def get_master_record(self) -> MasterIdentityRecord:
        return self.identity.get()

    def update_master_record(self, partial: Dict[str, Any]) -> MasterIdentityRecord:
        """Does not start an audit; callers decide whether to request one."""
        return self.identity.update(partial)

    # ── Platform Audit ──

    async def _audit_platform(
        self,
        target: PlatformTarget,
        master: MasterIdentityRecord,
        policy: ComparisonPolicy,
        semaphore: asyncio.Semaphore,
    ) -> PlatformSnapshot:
        async with semaphore:
            try:
                result = await self.provider.fetch_snapshot(target)
            except Exception as e:
                # Providers must not raise; treat it as a transport failure
                logger.error(
                    f"Provider raised for {target.name}: {e}",
                    extra={"platform": target.name},
                )
                result = FetchFailure(
                    platform=target.name, reason=FailureReason.NETWORK, message=str(e)
                )

        if isinstance(result, FetchFailure):
            return _error_snapshot(result.model_copy(update={"platform": target.name}))
        if not isinstance(result, RawSnapshot):
            return _error_snapshot(
                FetchFailure(platform=target.name, reason=FailureReason.PARSE_ERROR)
            )

        raw = result.model_copy(update={"platform": target.name})
        return _analyze(raw, master, policy)

    async def _audit_platforms(
        self,
        targets: List[PlatformTarget],
        master: MasterIdentityRecord,
        config: AuditConfiguration,
    ) -> List[PlatformSnapshot]:
        semaphore = asyncio.Semaphore(config.max_concurrent_fetches)
        return list(
            await asyncio.gather(
                *(
                    self._audit_platform(t, master, config.comparison, semaphore)
                    for t in targets
                )
            )
        )

    def _build_report(
        self,
        platforms: List[PlatformSnapshot],
        config: AuditConfiguration,
        previous: Optional[AuditReport],
    ) -> AuditReport:
        consistent = sum(1 for p in platforms if p.status == PlatformStatus.CONSISTENT)
        inconsistent = sum(
            1 for p in platforms if p.status == PlatformStatus.INCONSISTENT
        )
        critical = sum(
            1
            for p in platforms
            for d in p.discrepancies
            if d.severity == Severity.CRITICAL
        )
        score = overall_score([p.score for p in platforms])

        return AuditReport(
            schema_version=settings.report_schema_version,
            overall_score=score,
            total_platforms=len(platforms),
            consistent_platforms=consistent,
            inconsistent_platforms=inconsistent,
            critical_issues=critical,
            platforms=platforms,
            recommendations=compute_recommendations(
                platforms, auto_fix_enabled=config.auto_fix_enabled
            ),
            trends=compute_trend(score, critical, previous),
        )

    async def _persist(self, report: AuditReport) -> None:
        if self.store is None:
            return
        try:
            await asyncio.to_thread(self.store.persist, report)
        except Exception as e:
            logger.error(f"Report persistence failed: {e}", extra={"report_id": report.id})

    async def _alert(
        self,
        report: AuditReport,
        previous: Optional[AuditReport],
        config: AuditConfiguration,
    ) -> List[AlertEvent]:
        """Evaluate and deliver alerts not yet emitted for ``report``."""
        already = self._alerted.setdefault(report.id, set())
        events = [
            e
            for e in evaluate_alerts(report, previous, config.alert_thresholds)
            if e.type not in already
        ]
        already.update(e.type for e in events)
        await dispatch_alerts(self.sink, events)
        return events

    # ── Full Audit ──

    async def run_full_audit(self) -> AuditReport:
        """Audit every configured platform and produce a new report.

        While an audit is running a second request does not start another;
        it returns the latest completed report.
        """
        if self._audit_lock.locked():
            logger.info("NAP audit already in progress, returning latest report")
            return self.get_latest_report()

        async with self._audit_lock:
            self._state = EngineState.AUDITING
            try:
                config = self.get_config()
                master = self.identity.get()
                logger.info(
                    f"Starting NAP audit across {len(config.target_platforms)} platforms"
                )

                with log_duration(logger, "NAP audit completed") as context:
                    platforms = await self._audit_platforms(
                        config.target_platforms, master, config
                    )
                    previous = self.latest_report
                    report = self._build_report(platforms, config, previous)

                    with self._state_lock:
                        self._snapshots = {p.platform: p for p in platforms}
                        self._generation += 1
                    self._append_history(report, config.history_limit)

                    await self._persist(report)
                    await self._alert(report, previous, config)
                    context.update(report_id=report.id, score=report.overall_score)
                return report
            finally:
                self._state = EngineState.IDLE

    # ── Consistency Re-check ──

    async def run_consistency_recheck(self) -> List[str]:
        """Lightweight drift scan between full audits.

        Re-analyzes every stored snapshot against the current master record
        without network I/O, then re-fetches only the watch subset: platforms
        in error, or with a discrepancy on a critical field. Returns names of
        platforms whose status or score changed. History is not modified.
        """
        if self._audit_lock.locked():
            logger.info("Full audit in progress, skipping consistency re-check")
            return []

        current = dict(self._snapshots)
        if not current:
            logger.info("No snapshots yet, nothing to re-check")
            return []

        generation = self._generation
        config = self.get_config()
        master = self.identity.get()
        targets = {t.name: t for t in config.target_platforms}
        critical_fields = set(config.critical_fields)

        updated: Dict[str, PlatformSnapshot] = {}
        watch: List[PlatformTarget] = []
        for name, snapshot in current.items():
            target = targets.get(name)
            if target is None:
                continue
            if snapshot.status == PlatformStatus.ERROR:
                watch.append(target)
                continue
            refreshed = _analyze(_as_raw(snapshot), master, config.comparison)
            updated[name] = refreshed
            if any(d.field in critical_fields for d in refreshed.discrepancies):
                watch.append(target)

        if watch:
            updated.update(
                (s.platform, s)
                for s in await self._audit_platforms(watch, master, config)
            )

        with self._state_lock:
            if generation != self._generation or self._audit_lock.locked():
                logger.info("Full audit ran during re-check, discarding results")
                return []
            self._snapshots = {**current, **updated}

        changed = [
            name
            for name, s in updated.items()
            if s.status != current[name].status or s.score != current[name].score
        ]
        logger.info(
            f"Consistency re-check: {len(watch)} re-fetched, {len(changed)} changed"
        )
        return changed

    # ── Alert Sweep ──

    async def run_alert_sweep(self) -> List[AlertEvent]:
        """Re-evaluate thresholds against the latest report without auditing."""
        history = self._history
        if not history:
            return []
        latest = history[-1]
        previous = history[-2] if len(history) > 1 else None
        events = await self._alert(latest, previous, self.get_config())
        logger.info(f"Alert sweep emitted {len(events)} alerts")
        return events

    async def close(self) -> None:
        await self.provider.close()
        await self.sink.close()
