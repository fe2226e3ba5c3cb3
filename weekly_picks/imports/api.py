"""Admin import endpoints: upload a report, browse the audit log."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from structlog import get_logger

from weekly_picks.config import settings
from weekly_picks.database.connection import get_db
from weekly_picks.imports.engine import ImportEngine
from weekly_picks.imports.gateway import extract_submission
from weekly_picks.imports.query import AuditQueryService, parse_imports_query
from weekly_picks.imports.schemas import ImportAttemptDetail, ImportAttemptPage
from weekly_picks.security import AdminIdentity, RequireAdmin, check_rate_limit

logger = get_logger()

router = APIRouter(prefix="/admin", tags=["Admin Imports"])


@router.post("/imports", status_code=201)
async def create_import(
    request: Request,
    admin: AdminIdentity = RequireAdmin,
    db: Session = Depends(get_db),
):
    """Import one weekly report.

    Accepts ``multipart/form-data`` (``file`` plus optional ``filename``) or
    ``application/json`` ``{"filename": ..., "payload": {...}}``.

    - **201**: `{attempt_id, status: "success", report_id, permalink}`
    - **409 / 413 / 422 / 500**: `{attempt_id, status: "failed", error}`
    - **400 / 413** before the engine runs: error envelope, no attempt id
    """
    check_rate_limit(f"admin:imports:upload:{admin.user_id}", settings["IMPORTS_UPLOAD_RATE_LIMIT"])

    submission = await extract_submission(request)
    logger.info(
        "import_submission_received",
        filename=submission.filename,
        source=submission.source,
        size_bytes=submission.size_bytes,
        actor_id=str(admin.user_id),
    )

    result = ImportEngine(db).run(submission.filename, submission.payload, actor_id=admin.user_id)
    return JSONResponse(status_code=result.http_status, content=result.to_response().to_body())


@router.get("/imports", response_model=ImportAttemptPage)
async def list_imports(
    request: Request,
    admin: AdminIdentity = RequireAdmin,
    db: Session = Depends(get_db),
):
    """List import attempts, newest first.

    Query parameters: `page`, `page_size` (max 100), `status`,
    `started_after`, `started_before`, `uploader`.
    """
    check_rate_limit(f"admin:imports:{admin.user_id}", settings["IMPORTS_LIST_RATE_LIMIT"])

    query = parse_imports_query(dict(request.query_params))
    return AuditQueryService(db).list_attempts(query)


@router.get("/imports/{attempt_id}", response_model=ImportAttemptDetail)
async def get_import(
    attempt_id: str,
    admin: AdminIdentity = RequireAdmin,
    db: Session = Depends(get_db),
):
    """Single import attempt including its raw payload and linked report."""
    check_rate_limit(f"admin:imports:{admin.user_id}", settings["IMPORTS_LIST_RATE_LIMIT"])

    return AuditQueryService(db).get_attempt(attempt_id)
