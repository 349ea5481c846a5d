"""NAPWATCH — Report Store.

Persists audit reports and exports them as JSON with stable field names.
"""

from abc import ABC, abstractmethod
from typing import List

from sqlalchemy.engine import Engine
from sqlmodel import Session, select

from app.core.logging import get_logger
from app.models.audit_models import AuditReport, AuditReportRecord

logger = get_logger("storage.reports")


class ReportStore(ABC):
    """Abstract persistence for audit reports."""

    @abstractmethod
    def persist(self, report: AuditReport) -> None: ...

    def export_json(self, report: AuditReport) -> str:
        """Serialize a report; field names match the AuditReport model."""
        return report.model_dump_json(indent=2)

    def recent(self, limit: int) -> List[AuditReport]:
        """Most recent reports, oldest first. Empty when unsupported."""
        return []


class SQLModelReportStore(ReportStore):
    """Stores each report as a JSON row in ``audit_reports``."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def persist(self, report: AuditReport) -> None:
        record = AuditReportRecord(
            report_id=report.id,
            created_at=report.timestamp,
            schema_version=report.schema_version,
            overall_score=report.overall_score,
            critical_issues=report.critical_issues,
            result_json=report.model_dump_json(),
        )
        with Session(self.engine) as session:
            session.add(record)
            session.commit()
            logger.info(
                f"Stored report as row id {record.id}", extra={"report_id": report.id}
            )

    def recent(self, limit: int) -> List[AuditReport]:
        with Session(self.engine) as session:
            rows = session.exec(
                select(AuditReportRecord)
                .order_by(AuditReportRecord.id.desc())  # type: ignore
                .limit(limit)
            ).all()
        reports = []
        for row in reversed(rows):
            try:
                reports.append(AuditReport.model_validate_json(row.result_json))
            except ValueError as e:
                logger.error(f"Skipping unreadable report row {row.id}: {e}")
        return reports


class InMemoryReportStore(ReportStore):
    """Keeps persisted reports in a list. For tests and single-run tooling."""

    def __init__(self):
        self.reports: List[AuditReport] = []

    def persist(self, report: AuditReport) -> None:
        self.reports.append(report)

    def recent(self, limit: int) -> List[AuditReport]:
        return self.reports[-limit:]
