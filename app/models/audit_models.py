"""NAPWATCH — Audit Output Models (Versioned)."""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field
from sqlmodel import SQLModel, Field as SQLField

from app.models.identity_models import Address, FailureReason


# ─────────────────────────────────────────────
# DATABASE MODEL — Stores versioned audit reports
# ─────────────────────────────────────────────


class AuditReportRecord(SQLModel, table=True):
    """Versioned audit report stored in DB."""

    __tablename__ = "audit_reports"

    id: Optional[int] = SQLField(default=None, primary_key=True)
    report_id: str = SQLField(index=True, unique=True)
    created_at: datetime = SQLField(default_factory=lambda: datetime.now(timezone.utc))
    schema_version: str = SQLField(description="e.g. 1.0.0")
    overall_score: int = SQLField(default=0)
    critical_issues: int = SQLField(default=0)
    result_json: str = SQLField(description="Full AuditReport as JSON")


# ─────────────────────────────────────────────
# PYDANTIC SCHEMAS — Audit Report v1
# ─────────────────────────────────────────────


class Severity(str, Enum):
    CRITICAL = "critical"
    MAJOR = "major"
    MINOR = "minor"


class Impact(str, Enum):
    LOCAL_PACK = "local_pack"
    ORGANIC = "organic"
    CITATIONS = "citations"
    BRAND = "brand"


class PlatformStatus(str, Enum):
    CONSISTENT = "consistent"
    INCONSISTENT = "inconsistent"
    MISSING = "missing"
    ERROR = "error"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Level(str, Enum):
    """Coarse high/medium/low scale used for impact and effort estimates."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Trend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class EngineState(str, Enum):
    IDLE = "idle"
    AUDITING = "auditing"


# ─────────────────────────────────────────────
# PER-PLATFORM RESULTS
# ─────────────────────────────────────────────


class Discrepancy(BaseModel):
    """One mismatched field between a platform and the master record."""

    field: str  # "name" | "phone" | "email" | "address" | "website"
    current_value: str
    expected_value: str
    severity: Severity
    impact: Impact
    fixable: bool = True
    platform: str
    component: Optional[str] = None  # address sub-field, e.g. "city"

    model_config = ConfigDict(frozen=True)


class PlatformSnapshot(BaseModel):
    """One platform's audited state for one audit run."""

    platform: str
    url: str = ""
    name: str = ""
    address: Address = Address()
    phone: str = ""
    email: Optional[str] = None
    website: str = ""
    verified: bool = False
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    status: PlatformStatus
    discrepancies: Tuple[Discrepancy, ...] = ()
    score: int = Field(ge=0, le=100)
    failure_reason: Optional[FailureReason] = None

    model_config = ConfigDict(frozen=True)


# ─────────────────────────────────────────────
# REPORT
# ─────────────────────────────────────────────


class Recommendation(BaseModel):
    """Actionable remediation step derived from one discrepancy."""

    priority: Priority
    action: str
    platform: str
    field: str
    expected_value: str
    estimated_impact: Level
    effort: Level
    instructions: Tuple[str, ...] = ()
    auto_fix_eligible: bool = False

    model_config = ConfigDict(frozen=True)


class TrendSummary(BaseModel):
    """Change versus the previous audit report."""

    score_change: int = 0
    consistency_trend: Trend = Trend.STABLE
    critical_issues_trend: int = 0

    model_config = ConfigDict(frozen=True)


class AuditReport(BaseModel):
    """Immutable result of one full audit run."""

    id: str = Field(default_factory=lambda: uuid4().hex)
    schema_version: str = "1.0.0"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    overall_score: int = Field(default=0, ge=0, le=100)
    total_platforms: int = 0
    consistent_platforms: int = 0
    inconsistent_platforms: int = 0
    critical_issues: int = 0
    platforms: Tuple[PlatformSnapshot, ...] = ()
    recommendations: Tuple[Recommendation, ...] = Field(default=(), max_length=10)
    trends: TrendSummary = TrendSummary()

    model_config = ConfigDict(frozen=True)


class AlertType(str, Enum):
    SCORE_DROP = "score_drop"
    CRITICAL_ISSUES = "critical_issues"


class AlertEvent(BaseModel):
    """Event delivered to the notification sink."""

    type: AlertType
    payload: dict = {}
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
