# ruff: noqa: S101
"""Shared fixtures for the audit engine tests."""

from __future__ import annotations

import pytest

from app.analyzer.pipeline import AuditEngine
from app.core.identity_store import MasterIdentityStore, default_master_record
from app.models.config_models import AuditConfiguration
from app.models.identity_models import MasterIdentityRecord
from app.storage.report_store import InMemoryReportStore

from tests.fakes import FakeProvider, RecordingSink, matching_raw


@pytest.fixture
def master() -> MasterIdentityRecord:
    return default_master_record()


@pytest.fixture
def two_platform_config() -> AuditConfiguration:
    return AuditConfiguration(target_platforms=["Platform A", "Platform B"])


@pytest.fixture
def provider(master: MasterIdentityRecord) -> FakeProvider:
    return FakeProvider(
        {
            "Platform A": matching_raw(master, "Platform A"),
            "Platform B": matching_raw(master, "Platform B"),
        }
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def store() -> InMemoryReportStore:
    return InMemoryReportStore()


@pytest.fixture
def engine(
    provider: FakeProvider,
    sink: RecordingSink,
    store: InMemoryReportStore,
    master: MasterIdentityRecord,
    two_platform_config: AuditConfiguration,
) -> AuditEngine:
    return AuditEngine(
        provider=provider,
        sink=sink,
        store=store,
        identity_store=MasterIdentityStore(master),
        config=two_platform_config,
    )
