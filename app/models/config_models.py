"""NAPWATCH — Audit Configuration Models.

Runtime configuration owned by the engine. Unlike ``app.config.settings``
(process environment), this is mutable through ``AuditEngine.update_config``.
"""

from typing import Dict, List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from app.models.audit_models import Severity
from app.models.identity_models import ADDRESS_COMPONENTS, PlatformTarget

DEFAULT_PLATFORMS = [
    "Google My Business",
    "Facebook",
    "Yelp",
    "Yellow Pages",
    "Local Directory",
    "Industry Directories",
    "Chamber of Commerce",
    "BBB",
]

AUDITABLE_FIELDS = {"name", "phone", "email", "address", "website"}


class AlertThresholds(BaseModel):
    """When to notify."""

    score_drop: float = Field(default=10, ge=0)
    """Alert when previous - new overall score reaches this."""
    min_critical_issues: int = Field(default=2, ge=0)
    """Alert when the report holds at least this many critical discrepancies."""

    model_config = ConfigDict(extra="forbid")


DEFAULT_ADDRESS_SEVERITY = {
    "street": Severity.MINOR,
    "city": Severity.MAJOR,
    "region": Severity.MINOR,
    "postal_code": Severity.MAJOR,
    "country": Severity.MINOR,
}


class ComparisonPolicy(BaseModel):
    """How platform values are compared with the master record."""

    normalize_phone: bool = True
    default_country_code: str = "49"
    normalize_address: bool = True
    address_component_severity: Dict[str, Severity] = dict(DEFAULT_ADDRESS_SEVERITY)
    """Partial maps are merged over the defaults."""
    brand_tokens: List[str] = []
    """Empty: first word of the master name."""
    category_tokens: List[str] = []
    """Empty: remaining words of the master name."""
    check_website: bool = True

    model_config = ConfigDict(extra="forbid")

    @field_validator("address_component_severity", mode="before")
    @classmethod
    def _merge_severity(cls, v):
        if not isinstance(v, dict):
            return v
        unknown = set(v) - set(ADDRESS_COMPONENTS)
        if unknown:
            raise ValueError(f"unknown address components: {sorted(unknown)}")
        return {**DEFAULT_ADDRESS_SEVERITY, **v}

    @field_validator("default_country_code")
    @classmethod
    def _digits_only(cls, v: str) -> str:
        v = v.lstrip("+")
        if v and not v.isdigit():
            raise ValueError("default_country_code must contain digits only")
        return v


class AuditConfiguration(BaseModel):
    """Audit scheduling, targets, thresholds and comparison policy."""

    enabled: bool = True
    audit_frequency_hours: float = Field(default=24, gt=0)
    recheck_interval_hours: float = Field(default=6, gt=0)
    alert_sweep_interval_hours: float = Field(default=2, gt=0)
    target_platforms: List[PlatformTarget] = Field(
        default_factory=lambda: [PlatformTarget(name=n) for n in DEFAULT_PLATFORMS],
        min_length=1,
    )
    critical_fields: List[str] = ["name", "phone", "address"]
    monitoring_enabled: bool = True
    alert_thresholds: AlertThresholds = AlertThresholds()
    auto_fix_enabled: bool = False  # flags eligibility only, never executes
    history_limit: int = Field(default=30, ge=1)
    max_concurrent_fetches: int = Field(default=4, ge=1)
    comparison: ComparisonPolicy = ComparisonPolicy()

    model_config = ConfigDict(extra="forbid")

    @field_validator("target_platforms", mode="before")
    @classmethod
    def _coerce_targets(cls, v):
        """Accept bare platform names and collapse duplicates (first wins)."""
        if not isinstance(v, list):
            return v
        seen = set()
        targets = []
        for item in v:
            if isinstance(item, str):
                item = {"name": item}
            if isinstance(item, PlatformTarget):
                name = item.name
            elif isinstance(item, dict):
                name = item.get("name")
            else:
                targets.append(item)
                continue
            if name in seen:
                continue
            seen.add(name)
            targets.append(item)
        return targets

    @field_validator("critical_fields")
    @classmethod
    def _known_fields(cls, v: List[str]) -> List[str]:
        unknown = set(v) - AUDITABLE_FIELDS
        if unknown:
            raise ValueError(f"unknown critical fields: {sorted(unknown)}")
        return v
