"""SQLAlchemy ORM models for controlwatch."""

from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import JSON, Column, DateTime, String, Text
from sqlalchemy import Enum as SQLEnum
from sqlalchemy.types import TypeDecorator

from . import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends without tz support (SQLite)."""

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        value = as_utc(value)
        return value.replace(tzinfo=None) if value is not None else None

    def process_result_value(self, value, dialect):
        return as_utc(value)


class EvaluationStatus(str, Enum):
    """Evaluation status enumeration."""

    PENDING = "PENDING"
    COMPLIANT = "COMPLIANT"
    NOT_COMPLIANT = "NOT_COMPLIANT"
    COMPLIANT_MANUALLY = "COMPLIANT_MANUALLY"
    NOT_COMPLIANT_MANUALLY = "NOT_COMPLIANT_MANUALLY"

    @property
    def is_manual(self) -> bool:
        return self in MANUAL_STATUSES


MANUAL_STATUSES = frozenset(
    {EvaluationStatus.COMPLIANT_MANUALLY, EvaluationStatus.NOT_COMPLIANT_MANUALLY}
)


class EvaluationResult(Base):
    """Compliance verdict for one control of one target at one point in time.

    Rows are append-only: every evaluation tick and every manual entry inserts a new row.
    """

    __tablename__ = "evaluation_results"

    id = Column(String(36), primary_key=True)
    control_id = Column(String(100), nullable=False, index=True)
    control_category_name = Column(String(255), nullable=False)
    control_catalog_id = Column(String(100), nullable=False, index=True)
    parent_control_id = Column(String(100), nullable=True, index=True)
    target_id = Column(String(36), nullable=False, index=True)
    status = Column(SQLEnum(EvaluationStatus), nullable=False, index=True)
    timestamp = Column(UTCDateTime, default=utcnow, nullable=False, index=True)
    valid_until = Column(UTCDateTime, nullable=True)
    comment = Column(Text, nullable=True)
    failing_assessment_result_ids = Column(JSON, default=list, nullable=False)

    def __repr__(self):
        return (
            f"<EvaluationResult(control={self.control_id}, target={self.target_id}, "
            f"status={self.status})>"
        )
