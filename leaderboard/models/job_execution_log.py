"""
Job Execution Log Model

One row per metrics refresh run, scheduled or triggered over HTTP.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text, Uuid

from leaderboard.core.database import Base

# Errors kept per run; a bad master secret fails every entry
MAX_LOGGED_ERRORS = 10


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobExecutionLog(Base):
    """Outcome and timing of a metrics refresh run"""
    __tablename__ = "job_execution_logs"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4, index=True)

    job_name = Column(String(100), nullable=False, index=True)
    job_id = Column(String(100), nullable=False)

    started_at = Column(DateTime(timezone=True), nullable=False, index=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_seconds = Column(Float, nullable=True)

    status = Column(String(20), nullable=False, index=True)  # 'running', 'success', 'partial', 'error'
    error_message = Column(Text, nullable=True)

    entries_succeeded = Column(Integer, default=0)
    entries_failed = Column(Integer, default=0)
    entries_removed = Column(Integer, default=0)

    triggered_manually = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), default=_utcnow, index=True)

    @classmethod
    def begin(cls, job_name: str, job_id: str, triggered_manually: bool = False) -> "JobExecutionLog":
        return cls(
            job_name=job_name,
            job_id=job_id,
            started_at=_utcnow(),
            status="running",
            entries_succeeded=0,
            entries_failed=0,
            entries_removed=0,
            triggered_manually=triggered_manually
        )

    def _stop_clock(self) -> None:
        self.completed_at = _utcnow()
        self.duration_seconds = (self.completed_at - self.started_at).total_seconds()

    def record_report(self, report) -> None:
        """Copy a RefreshReport's counts; any failed entry makes the run partial"""
        self._stop_clock()
        self.entries_succeeded = report.succeeded
        self.entries_failed = report.failed
        self.entries_removed = report.removed
        self.status = "partial" if report.failed else "success"
        if report.errors:
            self.error_message = "; ".join(
                f"startup {error.startup_id}: {error.message}"
                for error in report.errors[:MAX_LOGGED_ERRORS]
            )

    def record_failure(self, error: Exception) -> None:
        self._stop_clock()
        self.status = "error"
        self.error_message = str(error) or type(error).__name__

    @property
    def entries_total(self) -> int:
        return (self.entries_succeeded or 0) + (self.entries_failed or 0) + (self.entries_removed or 0)

    def __repr__(self):
        return f"<JobExecutionLog(job_name='{self.job_name}', status='{self.status}', duration={self.duration_seconds}s)>"

    @property
    def execution_summary(self) -> dict:
        """Return a summary of the job execution"""
        def iso(value: Optional[datetime]) -> Optional[str]:
            return value.isoformat() if value else None

        return {
            "id": str(self.id) if self.id else None,
            "job_name": self.job_name,
            "status": self.status,
            "started_at": iso(self.started_at),
            "completed_at": iso(self.completed_at),
            "duration_seconds": self.duration_seconds,
            "entries_total": self.entries_total,
            "entries_succeeded": self.entries_succeeded,
            "entries_failed": self.entries_failed,
            "entries_removed": self.entries_removed,
            "error_message": self.error_message,
            "triggered_manually": self.triggered_manually
        }
