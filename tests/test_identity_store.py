# ruff: noqa: S101
"""Tests for the master identity store."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from app.core.exceptions import IdentityRecordError
from app.core.identity_store import MasterIdentityStore
from app.models.identity_models import MasterIdentityRecord


def test_get_returns_a_copy(master: MasterIdentityRecord) -> None:
    store = MasterIdentityStore(master)
    copy = store.get()
    copy.phone = "changed"
    copy.address = copy.address.model_copy(update={"city": "changed"})
    assert store.get().phone == master.phone
    assert store.get().address.city == master.address.city


def test_address_is_immutable(master: MasterIdentityRecord) -> None:
    with pytest.raises(ValidationError):
        master.address.city = "Potsdam"


def test_update_merges_fields(master: MasterIdentityRecord) -> None:
    store = MasterIdentityStore(master)
    record = store.update({"phone": "+49 30 87654321", "address": {"city": "Potsdam"}})

    assert record.phone == "+49 30 87654321"
    assert record.address.city == "Potsdam"
    assert record.address.street == master.address.street
    assert record.name == master.name
    assert store.get() == record
    assert store.version == 2


def test_invalid_update_leaves_record_untouched(master: MasterIdentityRecord) -> None:
    store = MasterIdentityStore(master)
    with pytest.raises(IdentityRecordError):
        store.update({"name": None})
    assert store.get() == master
    assert store.version == 1
