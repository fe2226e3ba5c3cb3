"""Custom exception classes for the weekly picks import service."""

from typing import Any, Dict, List, Optional


class WeeklyPicksError(Exception):
    """Base exception for all weekly picks errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


# Transport Exceptions (rejected before the import engine runs, never audited)
class TransportError(WeeklyPicksError):
    """Base exception for request-level upload failures."""
    pass


class UnsupportedMediaTypeError(TransportError):
    """Request body is neither multipart/form-data nor JSON."""

    def __init__(self, content_type: str):
        super().__init__(
            message="Content-Type must be multipart/form-data or application/json",
            error_code="unsupported_media_type",
            details={"content_type": content_type}
        )


class MalformedRequestError(TransportError):
    """Request body could not be turned into a filename and payload."""

    def __init__(self, reason: str):
        super().__init__(
            message=reason,
            error_code="bad_request",
            details={"reason": reason}
        )


class InvalidFilenameError(TransportError):
    """Filename does not follow the YYYY-MM-DDreport.json convention."""

    def __init__(self, filename: str):
        super().__init__(
            message="Filename must match format: YYYY-MM-DDreport.json",
            error_code="invalid_filename",
            details={"filename": filename[:255]}
        )


class PayloadTooLargeError(TransportError):
    """Upload exceeds the allowed size."""

    def __init__(self, size_bytes: int, limit_bytes: int):
        super().__init__(
            message=f"Payload size exceeds {limit_bytes // (1024 * 1024)}MB limit",
            error_code="payload_too_large",
            details={"size_bytes": size_bytes, "limit_bytes": limit_bytes}
        )


# Import Pipeline Exceptions (always end in a failed import attempt row)
class ReportImportError(WeeklyPicksError):
    """Base exception for failures inside the import engine."""

    category = "internal"


class ReportValidationError(ReportImportError):
    """Payload failed schema or cross-field validation."""

    category = "validation"

    def __init__(self, issues: List[str]):
        super().__init__(
            message="validation failed: " + "; ".join(issues),
            error_code="VALIDATION_FAILED",
            details={"issues": issues}
        )


class DuplicateReportError(ReportImportError):
    """A report already exists for the same period/version or permalink."""

    category = "duplicate"

    def __init__(self, conflict_key: str, conflict_value: str):
        super().__init__(
            message=f"duplicate report: {conflict_key}={conflict_value} already exists",
            error_code="DUPLICATE_REPORT",
            details={"conflict_key": conflict_key, "conflict_value": conflict_value}
        )


class OversizedPayloadError(ReportImportError):
    """Payload reached the engine above the hard size ceiling."""

    category = "payload_too_large"

    def __init__(self, size_bytes: int, limit_bytes: int):
        super().__init__(
            message=f"payload too large: {size_bytes} bytes exceeds {limit_bytes} bytes",
            error_code="PAYLOAD_TOO_LARGE",
            details={"size_bytes": size_bytes, "limit_bytes": limit_bytes}
        )


class InternalImportError(ReportImportError):
    """Unexpected storage failure while writing the report."""

    category = "internal"

    def __init__(self, operation: str, reason: str):
        super().__init__(
            message=f"internal error during {operation}: {reason}",
            error_code="IMPORT_INTERNAL_ERROR",
            details={"operation": operation}
        )


# Audit Query Exceptions
class InvalidQueryError(WeeklyPicksError):
    """Query parameters failed validation."""

    def __init__(self, issues: List[str]):
        super().__init__(
            message="; ".join(issues),
            error_code="bad_request",
            details={"issues": issues}
        )


class ImportAttemptNotFoundError(WeeklyPicksError):
    """Import attempt not found error."""

    def __init__(self, attempt_id: str):
        super().__init__(
            message="Import audit record not found",
            error_code="not_found",
            details={"attempt_id": attempt_id}
        )


# Database Exceptions
class DatabaseError(WeeklyPicksError):
    """Base exception for database errors."""
    pass


def handle_database_error(e: Exception, operation: str) -> DatabaseError:
    """Convert generic database exceptions to a DatabaseError without leaking the DSN."""
    return DatabaseError(
        message=f"Database error during {operation}",
        error_code="DB_GENERIC_ERROR",
        details={"operation": operation, "error_type": type(e).__name__}
    )
