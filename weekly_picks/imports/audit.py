"""Append-only writer for import attempt audit rows."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session
from structlog import get_logger

from weekly_picks.database.models import ImportAttempt, ImportStatus

logger = get_logger()

MAX_ERROR_DETAIL_CHARS = 2000
MAX_FILENAME_CHARS = 255


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditLogWriter:
    """Adds one immutable ImportAttempt row per call.

    The row is flushed, not committed; the caller owns the transaction.
    There is intentionally no update or delete method.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(
        self,
        attempt_id: uuid.UUID,
        filename: str,
        schema_version: str,
        status: ImportStatus,
        started_at: datetime,
        actor_id: Optional[uuid.UUID] = None,
        declared_checksum: Optional[str] = None,
        error_category: Optional[str] = None,
        error_detail: Optional[str] = None,
        raw_payload: Any = None,
        report_id: Optional[uuid.UUID] = None,
    ) -> ImportAttempt:
        if status == ImportStatus.SUCCESS:
            error_category = None
            error_detail = None
        elif not error_detail:
            error_detail = "import failed"

        attempt = ImportAttempt(
            attempt_id=attempt_id,
            actor_id=actor_id,
            filename=(filename or "")[:MAX_FILENAME_CHARS],
            declared_checksum=declared_checksum,
            schema_version=(schema_version or "unknown")[:32],
            status=status.value,
            error_category=error_category,
            error_detail=error_detail[:MAX_ERROR_DETAIL_CHARS] if error_detail else None,
            raw_payload=raw_payload,
            report_id=report_id if status == ImportStatus.SUCCESS else None,
            started_at=started_at,
            finished_at=utcnow(),
        )
        self.db.add(attempt)
        self.db.flush()

        logger.debug(
            "import_attempt_recorded",
            attempt_id=str(attempt_id),
            status=attempt.status,
            error_category=error_category,
        )
        return attempt
