"""Global error handling middleware for the weekly picks service."""

import time
import traceback
import uuid
from typing import Callable

from fastapi import HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import DatabaseError as SQLDatabaseError, IntegrityError
from starlette.middleware.base import BaseHTTPMiddleware
from structlog import get_logger

from weekly_picks.config import settings
from weekly_picks.exceptions import WeeklyPicksError

logger = get_logger()


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Maps exceptions escaping the routers onto the JSON error envelope."""

    status_map = {
        "UnsupportedMediaTypeError": 400,
        "MalformedRequestError": 400,
        "InvalidFilenameError": 400,
        "PayloadTooLargeError": 413,
        "InvalidQueryError": 400,
        "ImportAttemptNotFoundError": 404,
        "ReportValidationError": 422,
        "DuplicateReportError": 409,
        "OversizedPayloadError": 413,
        "InternalImportError": 500,
        "DatabaseError": 503,
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        try:
            response = await call_next(request)

            process_time = time.time() - start_time
            logger.info(
                "request_completed",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                process_time=round(process_time, 3)
            )

            response.headers["X-Request-ID"] = request_id
            return response

        except HTTPException as e:
            logger.warning(
                "http_exception",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=e.status_code,
                detail=e.detail,
            )
            headers = dict(e.headers or {})
            headers["X-Request-ID"] = request_id
            return JSONResponse(
                status_code=e.status_code,
                content={"error": {"code": e.status_code, "message": e.detail, "request_id": request_id}},
                headers=headers
            )

        except ValidationError as e:
            logger.error(
                "validation_error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                errors=e.errors(include_url=False),
            )
            return JSONResponse(
                status_code=422,
                content={
                    "error": {
                        "code": 422,
                        "message": "Validation error",
                        "details": e.errors(include_url=False, include_context=False),
                        "request_id": request_id
                    }
                },
                headers={"X-Request-ID": request_id}
            )

        except WeeklyPicksError as e:
            status_code = self._get_status_code_for_error(e)
            log = logger.error if status_code >= 500 else logger.warning
            log(
                "weekly_picks_error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                status_code=status_code,
                error_type=e.__class__.__name__,
                error_code=e.error_code,
                message=e.message,
            )
            return JSONResponse(
                status_code=status_code,
                content={"error": {**e.to_dict(), "request_id": request_id}},
                headers={"X-Request-ID": request_id}
            )

        except IntegrityError as e:
            logger.error(
                "database_integrity_error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                error=str(e.orig)[:500],
            )
            return JSONResponse(
                status_code=409,
                content={
                    "error": {
                        "code": 409,
                        "message": "Database integrity error - possible duplicate or constraint violation",
                        "request_id": request_id
                    }
                },
                headers={"X-Request-ID": request_id}
            )

        except SQLDatabaseError as e:
            logger.error(
                "database_error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                error_type=type(e).__name__,
            )
            return JSONResponse(
                status_code=503,
                content={
                    "error": {
                        "code": 503,
                        "message": "Database service temporarily unavailable",
                        "request_id": request_id
                    }
                },
                headers={"X-Request-ID": request_id}
            )

        except Exception as e:
            # Full traceback stays in the log; the client gets a generic message
            logger.error(
                "unexpected_error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                error=str(e),
                error_type=type(e).__name__,
                traceback=traceback.format_exc(),
            )
            return JSONResponse(
                status_code=500,
                content={
                    "error": {
                        "code": 500,
                        "message": "An unexpected error occurred",
                        "request_id": request_id
                    }
                },
                headers={"X-Request-ID": request_id}
            )

    def _get_status_code_for_error(self, error: WeeklyPicksError) -> int:
        """Map custom exceptions to HTTP status codes."""
        return self.status_map.get(error.__class__.__name__, 500)


class RequestValidationMiddleware(BaseHTTPMiddleware):
    """Rejects oversized declared bodies and adds security headers."""

    def __init__(self, app, max_request_bytes: int = None):
        super().__init__(app)
        self.max_request_bytes = max_request_bytes or settings.get("MAX_REQUEST_BYTES", 6 * 1024 * 1024)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                if int(content_length) > self.max_request_bytes:
                    return JSONResponse(
                        status_code=413,
                        content={
                            "error": {
                                "code": 413,
                                "error_code": "payload_too_large",
                                "message": f"Request entity too large (max {self.max_request_bytes} bytes)"
                            }
                        }
                    )
            except ValueError:
                pass

        response = await call_next(request)

        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"

        return response
