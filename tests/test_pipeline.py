# ruff: noqa: S101
"""End-to-end tests for the audit engine."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import ValidationError

from app.analyzer.pipeline import AuditEngine
from app.core.exceptions import ConfigurationError
from app.core.identity_store import MasterIdentityStore
from app.models.audit_models import (
    AlertType,
    AuditReport,
    EngineState,
    PlatformSnapshot,
    PlatformStatus,
    Priority,
    Severity,
    Trend,
)
from app.models.config_models import AuditConfiguration
from app.models.identity_models import (
    FailureReason,
    FetchFailure,
    MasterIdentityRecord,
)
from app.storage.report_store import InMemoryReportStore

from tests.fakes import FailingSink, FakeProvider, RecordingSink, matching_raw


@pytest.mark.asyncio
async def test_consistent_platforms_score_100(engine: AuditEngine) -> None:
    report = await engine.run_full_audit()

    assert report.overall_score == 100
    assert report.total_platforms == 2
    assert report.consistent_platforms == 2
    assert report.inconsistent_platforms == 0
    assert report.critical_issues == 0
    assert report.recommendations == ()
    for snapshot in report.platforms:
        assert snapshot.score == 100
        assert snapshot.status == PlatformStatus.CONSISTENT


@pytest.mark.asyncio
async def test_reformatted_phone_is_not_a_discrepancy(
    engine: AuditEngine, provider: FakeProvider, master: MasterIdentityRecord
) -> None:
    provider.responses["Platform B"] = matching_raw(
        master, "Platform B", phone="030 12345678"
    )
    report = await engine.run_full_audit()

    assert report.overall_score == 100
    assert engine.get_platform_snapshot("Platform B").status == PlatformStatus.CONSISTENT


@pytest.mark.asyncio
async def test_city_variant_scores_85_and_overall_93(
    engine: AuditEngine, provider: FakeProvider, master: MasterIdentityRecord
) -> None:
    provider.responses["Platform B"] = matching_raw(
        master, "Platform B", address={"city": "Berlin-Mitte"}
    )
    report = await engine.run_full_audit()

    snapshot = engine.get_platform_snapshot("Platform B")
    assert snapshot.score == 85
    assert snapshot.status == PlatformStatus.INCONSISTENT
    [discrepancy] = snapshot.discrepancies
    assert discrepancy.severity == Severity.MAJOR
    assert discrepancy.platform == "Platform B"
    assert report.overall_score == 93
    assert report.inconsistent_platforms == 1
    assert report.recommendations[0].priority == Priority.HIGH


@pytest.mark.asyncio
async def test_overall_is_rounded_mean_of_platform_scores(
    engine: AuditEngine, provider: FakeProvider, master: MasterIdentityRecord
) -> None:
    engine.update_config({"comparison": {"normalize_phone": False}})
    provider.responses["Platform B"] = matching_raw(
        master, "Platform B", phone="030 12345678"
    )
    report = await engine.run_full_audit()

    assert [p.score for p in report.platforms] == [100, 75]
    assert report.overall_score == 88
    assert report.critical_issues == 1


@pytest.mark.asyncio
async def test_fetch_failures_become_error_snapshots(
    engine: AuditEngine, provider: FakeProvider
) -> None:
    provider.responses["Platform A"] = FetchFailure(
        platform="Platform A", reason=FailureReason.TIMEOUT, message="slow"
    )
    provider.responses["Platform B"] = RuntimeError("provider bug")
    report = await engine.run_full_audit()

    a = engine.get_platform_snapshot("Platform A")
    b = engine.get_platform_snapshot("Platform B")
    assert a.status == PlatformStatus.ERROR
    assert a.score == 0
    assert a.failure_reason == FailureReason.TIMEOUT
    assert a.discrepancies == ()
    assert b.status == PlatformStatus.ERROR
    assert b.failure_reason == FailureReason.NETWORK
    assert report.overall_score == 0
    assert report.inconsistent_platforms == 0
    assert engine.state == EngineState.IDLE


@pytest.mark.asyncio
async def test_one_failed_platform_does_not_hide_the_others(
    engine: AuditEngine, provider: FakeProvider
) -> None:
    provider.responses["Platform A"] = FetchFailure(
        platform="Platform A", reason=FailureReason.NOT_FOUND
    )
    report = await engine.run_full_audit()

    assert engine.get_platform_snapshot("Platform B").score == 100
    assert report.overall_score == 50
    assert report.consistent_platforms == 1


@pytest.mark.asyncio
async def test_recommendations_capped_at_ten(
    engine: AuditEngine, provider: FakeProvider, master: MasterIdentityRecord
) -> None:
    broken = {
        "name": "Acme",
        "phone": "+1 555 0100",
        "address": {"street": "Elm 1", "city": "Hamburg", "postal_code": "20095"},
        "email": "x@acme.test",
    }
    provider.responses["Platform A"] = matching_raw(master, "Platform A", **broken)
    provider.responses["Platform B"] = matching_raw(master, "Platform B", **broken)
    report = await engine.run_full_audit()

    assert sum(len(p.discrepancies) for p in report.platforms) == 12
    assert len(report.recommendations) == 10
    priorities = [r.priority for r in report.recommendations]
    assert priorities[:4] == [Priority.CRITICAL] * 4
    assert priorities[4:8] == [Priority.HIGH] * 4
    assert report.critical_issues == 4
    assert all(p.score == 10 for p in report.platforms)


@pytest.mark.asyncio
async def test_second_audit_request_while_running_returns_latest(
    engine: AuditEngine, provider: FakeProvider
) -> None:
    first = await engine.run_full_audit()
    provider.calls.clear()
    provider.started.clear()
    provider.gate = asyncio.Event()

    running = asyncio.create_task(engine.run_full_audit())
    await provider.started.wait()
    assert engine.state == EngineState.AUDITING

    duplicate = await engine.run_full_audit()
    assert duplicate.id == first.id

    provider.gate.set()
    second = await running

    assert second.id != first.id
    assert sorted(provider.calls) == ["Platform A", "Platform B"]
    assert len(engine.get_history()) == 2
    assert engine.state == EngineState.IDLE


@pytest.mark.asyncio
async def test_fetch_concurrency_is_bounded(master: MasterIdentityRecord) -> None:
    names = [f"P{i}" for i in range(6)]
    provider = FakeProvider({n: matching_raw(master, n) for n in names}, delay=0.01)
    engine = AuditEngine(
        provider=provider,
        identity_store=MasterIdentityStore(master),
        config=AuditConfiguration(target_platforms=names, max_concurrent_fetches=2),
    )
    report = await engine.run_full_audit()

    assert report.total_platforms == 6
    assert provider.max_in_flight == 2


@pytest.mark.asyncio
async def test_history_is_capped_fifo(engine: AuditEngine) -> None:
    reports = [await engine.run_full_audit() for _ in range(31)]
    history = engine.get_history()

    assert len(history) == 30
    assert reports[0].id not in {r.id for r in history}
    assert history[0].id == reports[1].id
    assert history[-1].id == reports[-1].id
    assert engine.get_latest_report().id == reports[-1].id


@pytest.mark.asyncio
async def test_history_limit_is_configurable(engine: AuditEngine) -> None:
    engine.update_config({"history_limit": 3})
    for _ in range(5):
        await engine.run_full_audit()
    assert len(engine.get_history()) == 3


@pytest.mark.asyncio
async def test_trend_and_score_drop_alert(
    engine: AuditEngine,
    provider: FakeProvider,
    sink: RecordingSink,
    master: MasterIdentityRecord,
) -> None:
    await engine.run_full_audit()
    provider.responses["Platform B"] = matching_raw(
        master, "Platform B", phone="+49 30 87654321"
    )
    report = await engine.run_full_audit()

    assert report.overall_score == 88
    assert report.trends.score_change == -12
    assert report.trends.consistency_trend == Trend.DECLINING
    assert report.trends.critical_issues_trend == 1
    assert [e.type for e in sink.events] == [AlertType.SCORE_DROP]
    assert sink.events[0].payload["score_drop"] == 12


@pytest.mark.asyncio
async def test_improving_trend(
    engine: AuditEngine, provider: FakeProvider, master: MasterIdentityRecord
) -> None:
    provider.responses["Platform B"] = matching_raw(
        master, "Platform B", phone="+49 30 87654321"
    )
    await engine.run_full_audit()
    provider.responses["Platform B"] = matching_raw(master, "Platform B")
    report = await engine.run_full_audit()

    assert report.trends.score_change == 12
    assert report.trends.consistency_trend == Trend.IMPROVING
    assert report.trends.critical_issues_trend == -1


@pytest.mark.asyncio
async def test_critical_issue_alert(
    engine: AuditEngine,
    provider: FakeProvider,
    sink: RecordingSink,
    master: MasterIdentityRecord,
) -> None:
    for name in ("Platform A", "Platform B"):
        provider.responses[name] = matching_raw(master, name, phone="+1 555 0100")
    await engine.run_full_audit()

    [event] = sink.events
    assert event.type == AlertType.CRITICAL_ISSUES
    assert event.payload["critical_issues"] == 2
    assert event.payload["platforms"] == ["Platform A", "Platform B"]


@pytest.mark.asyncio
async def test_failing_sink_does_not_fail_audit(
    provider: FakeProvider, master: MasterIdentityRecord
) -> None:
    for name in ("Platform A", "Platform B"):
        provider.responses[name] = matching_raw(master, name, phone="+1 555 0100")
    engine = AuditEngine(
        provider=provider,
        sink=FailingSink(),
        identity_store=MasterIdentityStore(master),
        config=AuditConfiguration(target_platforms=["Platform A", "Platform B"]),
    )
    report = await engine.run_full_audit()
    assert report.critical_issues == 2
    assert engine.get_latest_report().id == report.id


@pytest.mark.asyncio
async def test_reports_are_persisted_and_exported(
    engine: AuditEngine, store: InMemoryReportStore
) -> None:
    report = await engine.run_full_audit()
    assert store.reports == [report]

    exported = engine.export_latest_report()
    assert '"overall_score": 100' in exported
    assert '"consistency_trend": "stable"' in exported


def test_latest_report_before_any_audit(engine: AuditEngine) -> None:
    report = engine.get_latest_report()
    assert report.overall_score == 0
    assert report.platforms == ()
    assert engine.latest_report is None
    assert engine.get_platform_snapshot("Platform A") is None


# ── Configuration ──


def test_update_config_validates(engine: AuditEngine) -> None:
    before = engine.get_config()
    for bad in (
        {"audit_frequency_hours": 0},
        {"target_platforms": []},
        {"alert_thresholds": {"score_drop": -1}},
        {"alert_thresholds": {"min_critical_issues": -2}},
    ):
        with pytest.raises(ConfigurationError):
            engine.update_config(bad)
    assert engine.get_config() == before


def test_update_config_merges_and_notifies(engine: AuditEngine) -> None:
    seen: list[AuditConfiguration] = []
    engine.add_config_listener(seen.append)

    config = engine.update_config(
        {
            "target_platforms": ["Yelp", "Yelp", {"name": "BBB", "endpoint": "https://bbb.test"}],
            "alert_thresholds": {"score_drop": 5},
        }
    )

    assert [t.name for t in config.target_platforms] == ["Yelp", "BBB"]
    assert config.target_platforms[1].endpoint == "https://bbb.test"
    assert config.alert_thresholds.score_drop == 5
    assert config.alert_thresholds.min_critical_issues == 2
    assert seen == [config]


@pytest.mark.asyncio
async def test_config_update_applies_to_next_audit_only(
    engine: AuditEngine, provider: FakeProvider, master: MasterIdentityRecord
) -> None:
    first = await engine.run_full_audit()
    provider.responses["Platform C"] = matching_raw(master, "Platform C")
    engine.update_config({"target_platforms": ["Platform A", "Platform B", "Platform C"]})

    assert first.total_platforms == 2
    second = await engine.run_full_audit()
    assert second.total_platforms == 3
    assert engine.get_history()[0].total_platforms == 2


# ── Master record ──


@pytest.mark.asyncio
async def test_master_update_does_not_trigger_audit(
    engine: AuditEngine, provider: FakeProvider
) -> None:
    record = engine.update_master_record({"phone": "+49 30 87654321"})

    assert record.phone == "+49 30 87654321"
    assert engine.get_master_record().phone == "+49 30 87654321"
    assert provider.calls == []
    assert engine.get_history() == []

    report = await engine.run_full_audit()
    assert report.critical_issues == 2


# ── Consistency re-check ──


@pytest.mark.asyncio
async def test_recheck_reanalyzes_against_new_master(
    engine: AuditEngine, provider: FakeProvider, master: MasterIdentityRecord
) -> None:
    provider.responses["Platform B"] = matching_raw(
        master, "Platform B", address={"city": "Berlin-Mitte"}
    )
    report = await engine.run_full_audit()
    provider.calls.clear()

    engine.update_master_record({"address": {"city": "Berlin-Mitte"}})
    changed = await engine.run_consistency_recheck()

    assert sorted(changed) == ["Platform A", "Platform B"]
    # A now has an address discrepancy (a critical field) and is re-fetched
    assert provider.calls == ["Platform A"]
    assert engine.get_platform_snapshot("Platform A").score == 85
    assert engine.get_platform_snapshot("Platform B").score == 100
    # history is not touched
    assert engine.get_history() == [report]


@pytest.mark.asyncio
async def test_recheck_refetches_errored_platforms(
    engine: AuditEngine, provider: FakeProvider, master: MasterIdentityRecord
) -> None:
    provider.responses["Platform A"] = [
        FetchFailure(platform="Platform A", reason=FailureReason.NETWORK),
        matching_raw(master, "Platform A"),
    ]
    await engine.run_full_audit()
    assert engine.get_platform_snapshot("Platform A").status == PlatformStatus.ERROR
    provider.calls.clear()

    changed = await engine.run_consistency_recheck()

    assert changed == ["Platform A"]
    assert provider.calls == ["Platform A"]
    assert engine.get_platform_snapshot("Platform A").status == PlatformStatus.CONSISTENT


@pytest.mark.asyncio
async def test_recheck_without_snapshots_is_noop(
    engine: AuditEngine, provider: FakeProvider
) -> None:
    assert await engine.run_consistency_recheck() == []
    assert provider.calls == []


# ── Alert sweep ──


@pytest.mark.asyncio
async def test_alert_sweep_uses_current_thresholds_once(
    engine: AuditEngine,
    provider: FakeProvider,
    sink: RecordingSink,
    master: MasterIdentityRecord,
) -> None:
    provider.responses["Platform B"] = matching_raw(
        master, "Platform B", phone="+49 30 87654321"
    )
    await engine.run_full_audit()
    assert sink.events == []

    engine.update_config({"alert_thresholds": {"min_critical_issues": 1}})
    [event] = await engine.run_alert_sweep()
    assert event.type == AlertType.CRITICAL_ISSUES
    assert await engine.run_alert_sweep() == []
    assert len(sink.events) == 1


@pytest.mark.asyncio
async def test_alert_sweep_without_reports(engine: AuditEngine) -> None:
    assert await engine.run_alert_sweep() == []


def test_health_status(engine: AuditEngine) -> None:
    health = engine.get_health_status()
    assert health["status"] == "active"
    assert health["state"] == "idle"
    assert health["last_audit"] is None
    assert health["platforms_monitored"] == 0


def test_load_history_trims_and_restores_snapshots(engine: AuditEngine) -> None:
    reports = [
        AuditReport(
            overall_score=i,
            platforms=[
                PlatformSnapshot(
                    platform="Platform A", status=PlatformStatus.CONSISTENT, score=100
                )
            ],
        )
        for i in range(35)
    ]
    engine.load_history(reports)

    assert len(engine.get_history()) == 30
    assert engine.get_latest_report().overall_score == 34
    assert engine.get_platform_snapshot("Platform A").score == 100


@pytest.mark.asyncio
async def test_reports_cannot_be_changed_through_queries(engine: AuditEngine) -> None:
    report = await engine.run_full_audit()
    snapshot = engine.get_platform_snapshot("Platform A")

    with pytest.raises(ValidationError):
        snapshot.score = 0
    with pytest.raises(ValidationError):
        report.trends.score_change = 99
    with pytest.raises(AttributeError):
        report.platforms.append(snapshot)

    assert engine.get_latest_report().platforms[0].score == 100
    assert engine.get_latest_report().trends.score_change == 0


def test_unknown_config_keys_are_rejected(engine: AuditEngine) -> None:
    before = engine.get_config()
    for bad in (
        {"audit_frequency": 0},
        {"alert_thresholds": {"score_dropp": 5}},
        {"comparison": {"normalise_phone": False}},
        {"comparison": {"address_component_severity": {"zip": "major"}}},
    ):
        with pytest.raises(ConfigurationError):
            engine.update_config(bad)
    assert engine.get_config() == before


def test_partial_severity_update_merges_into_current_map(engine: AuditEngine) -> None:
    engine.update_config({"comparison": {"address_component_severity": {"street": "major"}}})
    config = engine.update_config(
        {"comparison": {"address_component_severity": {"country": "critical"}}}
    )

    assert config.comparison.address_component_severity == {
        "street": Severity.MAJOR,
        "city": Severity.MAJOR,
        "region": Severity.MINOR,
        "postal_code": Severity.MAJOR,
        "country": Severity.CRITICAL,
    }
