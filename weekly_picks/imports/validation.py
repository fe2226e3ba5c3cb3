"""Validation and server-side derivation for report imports."""

import json
import re
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, List, Optional

from pydantic import ValidationError
from structlog import get_logger

from weekly_picks.exceptions import ReportValidationError
from weekly_picks.imports.schemas import (
    DEFAULT_SCHEMA_VERSION,
    PAYLOAD_SCHEMAS,
    PickEntryV1,
)

logger = get_logger()

FILENAME_PATTERN = re.compile(r"^(\d{4}-\d{2}-\d{2})report\.json$")

# Hard ceiling enforced by the server, and the softer limit applied to
# browser uploads from the admin console.
MAX_PAYLOAD_BYTES = 5 * 1024 * 1024
CLIENT_UPLOAD_MAX_BYTES = 2 * 1024 * 1024


@dataclass
class ValidatedReport:
    """Payload that passed validation, with server-derived fields attached."""
    schema_version: str
    published_at: datetime
    period_key: str
    permalink: str
    version: str
    title: str
    summary: str
    source_checksum: Optional[str]
    picks: List[PickEntryV1]


def is_valid_filename(filename: Any) -> bool:
    """Check the YYYY-MM-DDreport.json naming convention."""
    return isinstance(filename, str) and FILENAME_PATTERN.match(filename) is not None


def calculate_payload_size(payload: Any) -> int:
    """Byte size of the payload as compact UTF-8 JSON."""
    return len(json.dumps(payload, separators=(",", ":"), ensure_ascii=False, default=str).encode("utf-8"))


def _reject_constant(name: str):
    raise ValueError(f"{name} is not a valid JSON value")


def load_json_document(data) -> Any:
    """Parse strict JSON from bytes or text.

    ``NaN``, ``Infinity`` and ``-Infinity`` are rejected.

    Raises:
        ValueError: the data is not UTF-8 or not valid JSON
    """
    if isinstance(data, bytes):
        data = data.decode("utf-8")
    return json.loads(data, parse_constant=_reject_constant)


def to_utc(value: datetime) -> datetime:
    """Normalize to an aware UTC datetime; naive input is taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def derive_period_key(value) -> str:
    """ISO week key (``YYYY-Www``) for a date or datetime."""
    if isinstance(value, datetime):
        value = to_utc(value).date()
    iso_year, iso_week, _ = value.isocalendar()
    return f"{iso_year}-W{iso_week:02d}"


def derive_permalink(published_at: datetime, suffix: str) -> str:
    """Stable permalink from the UTC publish date."""
    return f"{to_utc(published_at).date().isoformat()}-{suffix}"


def filename_date(filename: str) -> date:
    """Date embedded in a report filename."""
    match = FILENAME_PATTERN.match(filename or "")
    if not match:
        raise ReportValidationError(["filename must match format: YYYY-MM-DDreport.json"])
    try:
        return date.fromisoformat(match.group(1))
    except ValueError:
        raise ReportValidationError([f"filename date {match.group(1)} is not a calendar date"])


def declared_schema_version(payload: Any) -> str:
    """Schema tag as declared by the payload, for audit purposes."""
    if isinstance(payload, dict):
        value = payload.get("schema_version")
        if value is None:
            return DEFAULT_SCHEMA_VERSION
        return str(value)[:32]
    return "unknown"


def declared_checksum(payload: Any) -> Optional[str]:
    if isinstance(payload, dict):
        value = payload.get("source_checksum")
        if isinstance(value, str) and value:
            return value[:128]
    return None


def _format_issues(exc: ValidationError) -> List[str]:
    issues = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ()))
        message = err.get("msg", "invalid value")
        issues.append(f"{location}: {message}" if location else message)
    return issues


def validate_report_payload(
    filename: str,
    payload: Any,
    default_version: str = "v1",
    permalink_suffix: str = "us-market-report",
) -> ValidatedReport:
    """Validate a report payload and derive its server-controlled fields.

    Raises:
        ReportValidationError: schema violation, unknown schema version, or a
            filename date that falls outside the payload's publish week.
    """
    file_day = filename_date(filename)

    if not isinstance(payload, dict):
        raise ReportValidationError(["payload must be a JSON object"])

    schema_version = declared_schema_version(payload)
    model = PAYLOAD_SCHEMAS.get(schema_version)
    if model is None:
        raise ReportValidationError([
            f"unsupported schema_version {schema_version!r}; expected one of {sorted(PAYLOAD_SCHEMAS)}"
        ])

    try:
        parsed = model.model_validate(payload)
    except ValidationError as exc:
        issues = _format_issues(exc)
        logger.warning(
            "report_payload_invalid",
            filename=filename,
            schema_version=schema_version,
            issue_count=len(issues),
            issues=issues[:5],
        )
        raise ReportValidationError(issues) from exc

    published_at = to_utc(parsed.published_at)
    period_key = derive_period_key(published_at)

    client_period = payload.get("period_key") or payload.get("report_week")
    if client_period and client_period != period_key:
        logger.info(
            "client_period_key_ignored",
            filename=filename,
            client_period_key=str(client_period)[:32],
            period_key=period_key,
        )

    file_period = derive_period_key(file_day)
    if file_period != period_key:
        raise ReportValidationError([
            f"filename date {file_day.isoformat()} falls in {file_period} "
            f"but published_at falls in {period_key}"
        ])

    return ValidatedReport(
        schema_version=schema_version,
        published_at=published_at,
        period_key=period_key,
        permalink=derive_permalink(published_at, permalink_suffix),
        version=parsed.version or default_version,
        title=parsed.title,
        summary=parsed.summary,
        source_checksum=parsed.source_checksum,
        picks=list(parsed.picks),
    )
