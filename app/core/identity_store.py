"""NAPWATCH — Master Identity Store.

Holds the canonical identity record. The record is never mutated in place:
every update builds a fresh validated record and swaps it under a lock, so a
reader always observes one complete version.
"""

import threading
from typing import Any, Dict

from pydantic import ValidationError

from app.core.exceptions import IdentityRecordError
from app.core.logging import get_logger
from app.models.identity_models import MasterIdentityRecord

logger = get_logger("identity_store")


class MasterIdentityStore:
    """Owner of the single MasterIdentityRecord."""

    def __init__(self, record: MasterIdentityRecord):
        self._record = record.model_copy(deep=True)
        self._lock = threading.Lock()
        self._version = 1

    @property
    def version(self) -> int:
        return self._version

    def get(self) -> MasterIdentityRecord:
        """Return a read-only copy of the current record."""
        with self._lock:
            return self._record.model_copy(deep=True)

    def update(self, partial: Dict[str, Any]) -> MasterIdentityRecord:
        """Merge supplied fields into the record and return the new record.

        Address components are merged individually. Does not trigger an audit.
        """
        with self._lock:
            merged = self._record.model_dump()
            for key, value in partial.items():
                if key == "address" and isinstance(value, dict):
                    merged["address"] = {**merged["address"], **value}
                else:
                    merged[key] = value
            try:
                record = MasterIdentityRecord.model_validate(merged)
            except ValidationError as e:
                raise IdentityRecordError(
                    "Invalid master identity update", errors=e.errors()
                ) from e
            self._record = record
            self._version += 1
            logger.info(
                f"Master identity record updated to v{self._version}: "
                f"{sorted(partial.keys())}"
            )
            return record.model_copy(deep=True)


def default_master_record() -> MasterIdentityRecord:
    """Seed record used until an operator supplies the real one."""
    return MasterIdentityRecord.model_validate(
        {
            "name": "ZOE Solar",
            "address": {
                "street": "Solarstraße 1",
                "city": "Berlin",
                "region": "Berlin",
                "postal_code": "10115",
                "country": "Deutschland",
            },
            "phone": "+49 30 12345678",
            "email": "info@zoe-solar.de",
            "website": "https://zoe-solar.de",
            "latitude": 52.520008,
            "longitude": 13.404954,
        }
    )
