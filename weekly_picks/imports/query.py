"""Read-only access to the import audit log."""

import math
import uuid
from datetime import datetime
from typing import Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from structlog import get_logger

from weekly_picks.database.models import ImportAttempt, ImportStatus
from weekly_picks.exceptions import (
    ImportAttemptNotFoundError,
    InvalidQueryError,
    handle_database_error,
)
from weekly_picks.imports.schemas import (
    ImportAttemptDetail,
    ImportAttemptPage,
    ImportAttemptSummary,
)
from weekly_picks.imports.validation import to_utc

logger = get_logger()

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20


class ImportsListQuery(BaseModel):
    """Filters and paging for the audit list."""
    model_config = ConfigDict(extra="ignore")

    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE)
    status: Optional[ImportStatus] = None
    started_after: Optional[datetime] = None
    started_before: Optional[datetime] = None
    uploader: Optional[uuid.UUID] = None

    @field_validator("started_after", "started_before")
    @classmethod
    def normalize_to_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_utc(v) if v is not None else None

    @model_validator(mode="after")
    def check_range(self) -> "ImportsListQuery":
        if self.started_after and self.started_before and self.started_after > self.started_before:
            raise ValueError("started_after must be before or equal to started_before")
        return self


def parse_imports_query(params: Mapping[str, str]) -> ImportsListQuery:
    """Build an ImportsListQuery from raw query-string values.

    Blank values count as absent.

    Raises:
        InvalidQueryError: any parameter is malformed or out of range.
    """
    cleaned = {key: value for key, value in params.items() if value not in (None, "")}
    try:
        return ImportsListQuery.model_validate(cleaned)
    except ValidationError as exc:
        issues = []
        for err in exc.errors():
            location = ".".join(str(part) for part in err.get("loc", ()))
            message = err.get("msg", "invalid value")
            issues.append(f"{location}: {message}" if location else message)
        raise InvalidQueryError(issues) from exc


class AuditQueryService:
    """Paginated, filtered reads over ``import_attempts``."""

    def __init__(self, db: Session):
        self.db = db

    def list_attempts(self, query: ImportsListQuery) -> ImportAttemptPage:
        conditions = []
        if query.status is not None:
            conditions.append(ImportAttempt.status == query.status.value)
        if query.started_after is not None:
            conditions.append(ImportAttempt.started_at >= query.started_after)
        if query.started_before is not None:
            conditions.append(ImportAttempt.started_at <= query.started_before)
        if query.uploader is not None:
            conditions.append(ImportAttempt.actor_id == query.uploader)

        count_stmt = select(func.count()).select_from(ImportAttempt).where(*conditions)
        list_stmt = (
            select(ImportAttempt)
            .where(*conditions)
            .order_by(ImportAttempt.started_at.desc(), ImportAttempt.attempt_id)
            .offset((query.page - 1) * query.page_size)
            .limit(query.page_size)
        )

        try:
            total_items = self.db.execute(count_stmt).scalar_one()
            rows = self.db.execute(list_stmt).scalars().all()
        except SQLAlchemyError as e:
            logger.error("audit_list_failed", error_type=type(e).__name__)
            raise handle_database_error(e, "list import attempts") from e

        return ImportAttemptPage(
            items=[ImportAttemptSummary.model_validate(row) for row in rows],
            page=query.page,
            page_size=query.page_size,
            total_items=total_items,
            total_pages=max(1, math.ceil(total_items / query.page_size)),
        )

    def get_attempt(self, attempt_id: str) -> ImportAttemptDetail:
        try:
            key = uuid.UUID(str(attempt_id))
        except ValueError:
            raise InvalidQueryError([f"attempt_id: {attempt_id!r} is not a valid UUID"])

        try:
            attempt = self.db.get(ImportAttempt, key)
        except SQLAlchemyError as e:
            logger.error("audit_detail_failed", error_type=type(e).__name__)
            raise handle_database_error(e, "get import attempt") from e

        if attempt is None:
            raise ImportAttemptNotFoundError(str(key))

        detail = ImportAttemptDetail.model_validate(attempt)
        if attempt.report is not None:
            detail.permalink = attempt.report.permalink
        return detail
