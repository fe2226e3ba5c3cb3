"""Report payload models and API response shapes for the import pipeline.

Payloads are dispatched on their ``schema_version`` tag through
``PAYLOAD_SCHEMAS``; a new payload version is a new model registered there,
existing versions are left untouched.
"""

import re
import uuid
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Type

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from weekly_picks.database.models import ImportStatus, PickSide

TICKER_PATTERN = re.compile(r"^[A-Z0-9][A-Z0-9.\-]{0,15}$")
PCT_QUANTUM = Decimal("0.01")


class PickEntryV1(BaseModel):
    """One pick inside a v1 report payload."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    ticker: str = Field(min_length=1, max_length=16)
    exchange: str = Field(min_length=1, max_length=32)
    side: PickSide
    target_change_pct: Decimal = Field(ge=-1000, le=1000)
    rationale: str = Field(min_length=1)

    @field_validator("ticker")
    @classmethod
    def normalize_ticker(cls, v: str) -> str:
        v = v.upper()
        if not TICKER_PATTERN.match(v):
            raise ValueError("ticker may contain only letters, digits, '.' and '-'")
        return v

    @field_validator("exchange")
    @classmethod
    def normalize_exchange(cls, v: str) -> str:
        return v.upper()

    @field_validator("target_change_pct")
    @classmethod
    def quantize_pct(cls, v: Decimal) -> Decimal:
        if not v.is_finite():
            raise ValueError("target_change_pct must be a finite number")
        return v.quantize(PCT_QUANTUM, rounding=ROUND_HALF_UP)


class ReportPayloadV1(BaseModel):
    """Weekly report document, schema version v1.

    Server-controlled fields (``report_id``, ``period_key``, ``permalink``)
    are not part of the model; client copies of them are dropped.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    schema_version: Literal["v1"] = "v1"
    published_at: datetime
    version: Optional[str] = Field(default=None, max_length=20, pattern=r"^[A-Za-z0-9._-]+$")
    title: str = Field(min_length=1, max_length=300)
    summary: str = Field(min_length=1)
    source_checksum: Optional[str] = Field(default=None, max_length=128)
    picks: Annotated[List[PickEntryV1], Field(min_length=1, max_length=5)]

    @field_validator("source_checksum")
    @classmethod
    def empty_checksum_is_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @model_validator(mode="after")
    def unique_ticker_side(self) -> "ReportPayloadV1":
        seen = set()
        for pick in self.picks:
            key = (pick.ticker, pick.side)
            if key in seen:
                raise ValueError(
                    f"duplicate pick for ticker {pick.ticker} with side {pick.side.value}"
                )
            seen.add(key)
        return self


PAYLOAD_SCHEMAS: Dict[str, Type[BaseModel]] = {
    "v1": ReportPayloadV1,
}

DEFAULT_SCHEMA_VERSION = "v1"


# API response shapes
class ImportResponse(BaseModel):
    """Body returned by POST /admin/imports."""
    attempt_id: uuid.UUID
    status: ImportStatus
    report_id: Optional[uuid.UUID] = None
    permalink: Optional[str] = None
    error: Optional[str] = None

    def to_body(self) -> Dict[str, Any]:
        if self.status == ImportStatus.SUCCESS:
            keys = {"attempt_id", "status", "report_id", "permalink"}
        else:
            keys = {"attempt_id", "status", "error"}
        return self.model_dump(mode="json", include=keys)


class ImportAttemptSummary(BaseModel):
    """Import attempt as listed in the admin console (no raw payload)."""
    model_config = ConfigDict(from_attributes=True)

    attempt_id: uuid.UUID
    actor_id: Optional[uuid.UUID] = None
    filename: str
    declared_checksum: Optional[str] = None
    schema_version: str
    status: ImportStatus
    error_category: Optional[str] = None
    error_detail: Optional[str] = None
    started_at: datetime
    finished_at: datetime


class ImportAttemptDetail(ImportAttemptSummary):
    """Single import attempt including payload and linked report."""
    report_id: Optional[uuid.UUID] = None
    permalink: Optional[str] = None
    raw_payload: Optional[Any] = None


class ImportAttemptPage(BaseModel):
    """Paginated list of import attempts."""
    items: List[ImportAttemptSummary]
    page: int
    page_size: int
    total_items: int
    total_pages: int
