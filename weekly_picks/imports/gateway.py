"""Request boundary for report uploads.

Turns a multipart upload or a JSON body into ``(filename, payload)``.
Everything rejected here is a transport error: the engine is not invoked
and no audit row is written.
"""

from dataclasses import dataclass
from typing import Any, Optional

from fastapi import Request
from starlette.datastructures import UploadFile

from weekly_picks.exceptions import (
    InvalidFilenameError,
    MalformedRequestError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
)
from weekly_picks.imports.validation import (
    CLIENT_UPLOAD_MAX_BYTES,
    MAX_PAYLOAD_BYTES,
    calculate_payload_size,
    is_valid_filename,
    load_json_document,
)

# Header the admin upload form sends so its 2 MiB limit applies.
UPLOAD_CLIENT_HEADER = "x-upload-client"
UPLOAD_FORM_CLIENT = "upload-form"


@dataclass
class ImportSubmission:
    filename: str
    payload: Any
    size_bytes: int
    source: str  # "multipart" or "json"


def _declared_length(request: Request) -> Optional[int]:
    value = request.headers.get("content-length")
    if value is None:
        return None
    try:
        return int(value)
    except ValueError:
        raise MalformedRequestError("Content-Length header is not an integer")


def _parse_json(data: bytes, what: str) -> Any:
    try:
        return load_json_document(data)
    except ValueError:
        raise MalformedRequestError(f"{what} is not valid JSON")


def _upload_limit(request: Request) -> int:
    # Only uploads that identify as the admin upload form get the softer limit.
    client = request.headers.get(UPLOAD_CLIENT_HEADER, "").strip().lower()
    if client == UPLOAD_FORM_CLIENT:
        return CLIENT_UPLOAD_MAX_BYTES
    return MAX_PAYLOAD_BYTES


async def _from_multipart(request: Request) -> ImportSubmission:
    form = await request.form()
    upload = form.get("file")
    if not isinstance(upload, UploadFile):
        raise MalformedRequestError("multipart body must contain a 'file' part")

    upload_name = upload.filename or ""
    if upload_name and not upload_name.lower().endswith(".json"):
        raise MalformedRequestError("uploaded file must have a .json extension")

    override = form.get("filename")
    filename = override if isinstance(override, str) and override.strip() else upload_name
    filename = filename.strip()
    if not filename.lower().endswith(".json"):
        raise MalformedRequestError("uploaded file must have a .json extension")

    data = await upload.read()
    await upload.close()
    limit = _upload_limit(request)
    if len(data) > limit:
        raise PayloadTooLargeError(len(data), limit)

    payload = _parse_json(data, "uploaded file")
    return ImportSubmission(filename=filename, payload=payload, size_bytes=len(data), source="multipart")


async def _from_json(request: Request) -> ImportSubmission:
    body = await request.body()
    if len(body) > MAX_PAYLOAD_BYTES:
        raise PayloadTooLargeError(len(body), MAX_PAYLOAD_BYTES)

    document = _parse_json(body, "request body")
    if not isinstance(document, dict):
        raise MalformedRequestError("JSON body must be an object with 'filename' and 'payload'")

    filename = document.get("filename")
    if not isinstance(filename, str) or not filename.strip():
        raise MalformedRequestError("JSON body is missing 'filename'")
    if "payload" not in document or document["payload"] is None:
        raise MalformedRequestError("JSON body is missing 'payload'")

    payload = document["payload"]
    return ImportSubmission(
        filename=filename.strip(),
        payload=payload,
        size_bytes=calculate_payload_size(payload),
        source="json",
    )


async def extract_submission(request: Request) -> ImportSubmission:
    """Extract and pre-check an upload.

    Raises:
        UnsupportedMediaTypeError, MalformedRequestError, InvalidFilenameError,
        PayloadTooLargeError: the request never reaches the import engine.
    """
    declared = _declared_length(request)
    if declared is not None and declared > MAX_PAYLOAD_BYTES:
        raise PayloadTooLargeError(declared, MAX_PAYLOAD_BYTES)

    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";")[0].strip().lower()

    if media_type == "multipart/form-data":
        submission = await _from_multipart(request)
    elif media_type == "application/json":
        submission = await _from_json(request)
    else:
        raise UnsupportedMediaTypeError(content_type)

    if not is_valid_filename(submission.filename):
        raise InvalidFilenameError(submission.filename)

    limit = _upload_limit(request)
    if submission.size_bytes > limit:
        raise PayloadTooLargeError(submission.size_bytes, limit)

    return submission
