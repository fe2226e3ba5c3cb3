"""Import engine: validate, deduplicate, write atomically, always audit.

Every call to :meth:`ImportEngine.run` ends with exactly one committed
``import_attempts`` row. The report and its picks are written inside a
SAVEPOINT so a failed write can be undone while the surrounding transaction
stays usable for the audit insert.
"""

import time
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from structlog import get_logger

from weekly_picks.config import settings as default_settings
from weekly_picks.database.models import (
    ImportCategory,
    ImportStatus,
    Pick,
    Report,
)
from weekly_picks.exceptions import (
    DuplicateReportError,
    InternalImportError,
    OversizedPayloadError,
    ReportImportError,
)
from weekly_picks.imports.audit import AuditLogWriter, utcnow
from weekly_picks.imports.read_view import ReadViewRefresher
from weekly_picks.imports.schemas import ImportResponse, PickEntryV1
from weekly_picks.imports.validation import (
    MAX_PAYLOAD_BYTES,
    ValidatedReport,
    calculate_payload_size,
    declared_checksum,
    declared_schema_version,
    validate_report_payload,
)
from weekly_picks.instrumentation.metrics import record_import

logger = get_logger()

CATEGORY_STATUS_CODES = {
    ImportCategory.VALIDATION.value: 422,
    ImportCategory.DUPLICATE.value: 409,
    ImportCategory.PAYLOAD_TOO_LARGE.value: 413,
    ImportCategory.INTERNAL.value: 500,
}


@dataclass
class ImportResult:
    """Outcome of one engine call."""
    attempt_id: uuid.UUID
    status: ImportStatus
    category: Optional[str] = None
    report_id: Optional[uuid.UUID] = None
    permalink: Optional[str] = None
    error: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.status == ImportStatus.SUCCESS

    @property
    def http_status(self) -> int:
        if self.succeeded:
            return 201
        return CATEGORY_STATUS_CODES.get(self.category, 500)

    def to_response(self) -> ImportResponse:
        return ImportResponse(
            attempt_id=self.attempt_id,
            status=self.status,
            report_id=self.report_id,
            permalink=self.permalink,
            error=self.error,
        )


class ImportEngine:
    """Runs the import state machine against one database session."""

    def __init__(
        self,
        db: Session,
        refresher: Optional[ReadViewRefresher] = None,
        settings: Optional[Dict[str, Any]] = None,
    ):
        self.db = db
        self.settings = settings or default_settings
        self.refresher = refresher or ReadViewRefresher(db)
        self.audit = AuditLogWriter(db)

    def run(self, filename: str, payload: Any, actor_id: Optional[uuid.UUID] = None) -> ImportResult:
        attempt_id = uuid.uuid4()
        started_at = utcnow()
        clock = time.perf_counter()

        schema_version = declared_schema_version(payload)
        checksum = declared_checksum(payload)
        size_bytes = calculate_payload_size(payload)
        raw_payload = payload if size_bytes <= MAX_PAYLOAD_BYTES else None

        log = logger.bind(attempt_id=str(attempt_id), filename=filename, actor_id=str(actor_id) if actor_id else None)
        log.info("import_started", schema_version=schema_version, size_bytes=size_bytes)

        pick_count = 0
        try:
            if size_bytes > MAX_PAYLOAD_BYTES:
                raise OversizedPayloadError(size_bytes, MAX_PAYLOAD_BYTES)

            validated = validate_report_payload(
                filename,
                payload,
                default_version=self.settings.get("DEFAULT_REPORT_VERSION", "v1"),
                permalink_suffix=self.settings.get("PERMALINK_SUFFIX", "us-market-report"),
            )
            self._check_duplicates(validated)
            report_id = self._write_report(validated)
            pick_count = len(validated.picks)
            result = ImportResult(
                attempt_id=attempt_id,
                status=ImportStatus.SUCCESS,
                report_id=report_id,
                permalink=validated.permalink,
            )
        except ReportImportError as exc:
            result = self._failure(attempt_id, exc)
        except Exception as exc:
            log.exception("import_unexpected_error", error_type=type(exc).__name__)
            result = self._failure(attempt_id, InternalImportError("import", "unexpected error"))
            self._rollback_quietly()

        try:
            self.audit.append(
                attempt_id=attempt_id,
                filename=filename,
                schema_version=schema_version,
                status=result.status,
                started_at=started_at,
                actor_id=actor_id,
                declared_checksum=checksum,
                error_category=result.category,
                error_detail=result.error,
                raw_payload=raw_payload,
                report_id=result.report_id,
            )
            self.db.commit()
        except Exception as exc:
            # Nothing from this attempt is durable yet. The fallback row
            # carries no actor, checksum or payload, since any of them may be
            # what the database refused.
            log.exception("import_commit_failed", error_type=type(exc).__name__)
            self.db.rollback()
            original = result.category or result.status.value
            result = self._failure(attempt_id, InternalImportError("commit", "transaction could not be committed"))
            pick_count = 0
            self.audit.append(
                attempt_id=attempt_id,
                filename=filename,
                schema_version=schema_version,
                status=result.status,
                started_at=started_at,
                error_category=result.category,
                error_detail=f"{result.error} (outcome before commit: {original}; {type(exc).__name__})",
            )
            self.db.commit()

        duration = time.perf_counter() - clock
        record_import(result.status.value, result.category, duration, pick_count)

        if result.succeeded:
            log.info(
                "import_succeeded",
                report_id=str(result.report_id),
                permalink=result.permalink,
                picks=pick_count,
                duration_ms=round(duration * 1000, 2),
            )
            self._refresh_read_view(log)
        else:
            log.warning(
                "import_failed",
                category=result.category,
                error=result.error,
                duration_ms=round(duration * 1000, 2),
            )
        return result

    def _failure(self, attempt_id: uuid.UUID, exc: ReportImportError) -> ImportResult:
        return ImportResult(
            attempt_id=attempt_id,
            status=ImportStatus.FAILED,
            category=exc.category,
            error=exc.message,
        )

    def _find_conflict(self, validated: ValidatedReport) -> Optional[Tuple[str, str]]:
        """Return (key, value) of an existing report that blocks this one."""
        existing = (
            self.db.query(Report.report_id)
            .filter(Report.period_key == validated.period_key, Report.version == validated.version)
            .first()
        )
        if existing is not None:
            return "(period_key, version)", f"({validated.period_key}, {validated.version})"

        existing = self.db.query(Report.report_id).filter(Report.permalink == validated.permalink).first()
        if existing is not None:
            return "permalink", validated.permalink
        return None

    def _check_duplicates(self, validated: ValidatedReport) -> None:
        conflict = self._find_conflict(validated)
        if conflict is not None:
            raise DuplicateReportError(*conflict)

    def _write_report(self, validated: ValidatedReport) -> uuid.UUID:
        """Insert the report and its picks as one unit; return the report id."""
        report_id = uuid.uuid4()
        try:
            with self.db.begin_nested():
                report = Report(
                    report_id=report_id,
                    permalink=validated.permalink,
                    period_key=validated.period_key,
                    version=validated.version,
                    title=validated.title,
                    summary=validated.summary,
                    published_at=validated.published_at,
                    source_checksum=validated.source_checksum,
                )
                self.db.add(report)
                self.db.flush()
                self._insert_picks(report_id, validated.picks)
                self.db.flush()
        except IntegrityError as exc:
            # Lost a race against a concurrent import of the same key.
            conflict = self._lookup_conflict_after_error(validated)
            if conflict is not None:
                raise DuplicateReportError(*conflict) from exc
            logger.error("report_write_integrity_error", error=str(exc.orig)[:500])
            raise InternalImportError("report write", "constraint violation") from exc
        except Exception as exc:
            logger.exception("report_write_failed", error_type=type(exc).__name__)
            raise InternalImportError("report write", "storage failure") from exc
        return report_id

    def _lookup_conflict_after_error(self, validated: ValidatedReport) -> Optional[Tuple[str, str]]:
        try:
            return self._find_conflict(validated)
        except Exception as exc:
            logger.error("duplicate_recheck_failed", error_type=type(exc).__name__)
            return None

    def _insert_picks(self, report_id: uuid.UUID, picks: List[PickEntryV1]) -> None:
        for entry in picks:
            self.db.add(
                Pick(
                    report_id=report_id,
                    ticker=entry.ticker,
                    exchange=entry.exchange,
                    side=entry.side.value,
                    target_change_pct=entry.target_change_pct,
                    rationale=entry.rationale,
                )
            )

    def _rollback_quietly(self) -> None:
        try:
            self.db.rollback()
        except Exception as exc:
            logger.error("import_rollback_failed", error_type=type(exc).__name__)

    def _refresh_read_view(self, log) -> None:
        try:
            rows = self.refresher.refresh()
            log.debug("read_view_refresh_completed", rows=rows)
        except Exception as exc:
            log.warning("read_view_refresh_failed", error_type=type(exc).__name__, error=str(exc)[:500])
