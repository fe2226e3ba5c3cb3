"""Database models for weekly stock-pick reports and their import audit trail."""

import uuid
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from weekly_picks.database.connection import Base


class PickSide(str, Enum):
    """Trade direction of a pick."""
    LONG = "long"
    SHORT = "short"


class ImportStatus(str, Enum):
    """Terminal outcome of an import attempt."""
    SUCCESS = "success"
    FAILED = "failed"


class ImportCategory(str, Enum):
    """Failure classification reported by the import engine."""
    VALIDATION = "validation"
    DUPLICATE = "duplicate"
    PAYLOAD_TOO_LARGE = "payload_too_large"
    INTERNAL = "internal"


PayloadJSON = JSON().with_variant(JSONB(), "postgresql")


class Profile(Base):
    """Admin console user."""
    __tablename__ = "profiles"

    user_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    display_name = Column(String(200))
    is_admin = Column(Boolean, nullable=False, default=False)
    api_token_hash = Column(String(64), unique=True, index=True)  # SHA-256 of bearer token

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Report(Base):
    """Weekly report header; immutable once published."""
    __tablename__ = "reports"

    report_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    permalink = Column(String(200), nullable=False)
    period_key = Column(String(8), nullable=False)  # ISO week, e.g. "2025-W02"
    version = Column(String(20), nullable=False, default="v1")
    title = Column(String(300), nullable=False)
    summary = Column(Text, nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=False)
    source_checksum = Column(String(128))

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    # Relationships
    picks = relationship(
        "Pick",
        back_populates="report",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="Pick.ticker",
    )

    __table_args__ = (
        UniqueConstraint("period_key", "version", name="uq_reports_period_version"),
        UniqueConstraint("permalink", name="uq_reports_permalink"),
        Index("ix_reports_published_at", "published_at"),
    )


class Pick(Base):
    """Single stock pick belonging to a report."""
    __tablename__ = "picks"

    pick_id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    report_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("reports.report_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    ticker = Column(String(16), nullable=False)
    exchange = Column(String(32), nullable=False)
    side = Column(String(5), nullable=False)  # PickSide enum
    target_change_pct = Column(Numeric(10, 2), nullable=False)
    rationale = Column(Text, nullable=False)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    report = relationship("Report", back_populates="picks")

    __table_args__ = (
        UniqueConstraint("report_id", "ticker", "side", name="uq_picks_report_ticker_side"),
        CheckConstraint("side IN ('long', 'short')", name="ck_picks_side"),
        CheckConstraint(
            "target_change_pct BETWEEN -1000 AND 1000",
            name="ck_picks_target_change_pct",
        ),
    )


class ImportAttempt(Base):
    """One audit row per import engine call; never updated after insert."""
    __tablename__ = "import_attempts"

    attempt_id = Column(Uuid(as_uuid=True), primary_key=True)
    actor_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("profiles.user_id", ondelete="SET NULL"),
        nullable=True,
    )
    filename = Column(String(255), nullable=False)
    declared_checksum = Column(String(128))
    schema_version = Column(String(32), nullable=False)

    status = Column(String(10), nullable=False)  # ImportStatus enum
    error_category = Column(String(32))  # ImportCategory enum, failed only
    error_detail = Column(Text)

    raw_payload = Column(PayloadJSON)
    report_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("reports.report_id", ondelete="SET NULL"),
        nullable=True,
    )

    started_at = Column(DateTime(timezone=True), nullable=False)
    finished_at = Column(DateTime(timezone=True), nullable=False)

    report = relationship("Report")

    __table_args__ = (
        CheckConstraint("status IN ('success', 'failed')", name="ck_import_attempts_status"),
        Index("ix_import_attempts_started_at", "started_at"),
        Index("ix_import_attempts_status", "status"),
        Index("ix_import_attempts_actor", "actor_id"),
    )


class PicksHistory(Base):
    """Denormalized report x pick projection; rebuilt after successful imports."""
    __tablename__ = "picks_history"

    pick_id = Column(Uuid(as_uuid=True), primary_key=True)
    report_id = Column(Uuid(as_uuid=True), nullable=False)
    published_at = Column(DateTime(timezone=True), nullable=False)
    period_key = Column(String(8), nullable=False)
    ticker = Column(String(16), nullable=False)
    exchange = Column(String(32), nullable=False)
    side = Column(String(5), nullable=False)
    target_change_pct = Column(Numeric(10, 2), nullable=False)

    __table_args__ = (
        Index("ix_picks_history_published_at", "published_at"),
        Index("ix_picks_history_ticker", "ticker"),
    )
