"""Error kinds surfaced by the capture service and their response envelopes."""
import logging
from enum import Enum
from typing import Optional


class ErrorCode(str, Enum):
    """Error codes returned in the ``error`` field of failure responses."""

    INVALID_AUTH = "INVALID_AUTH"
    CLIENT_NOT_ALLOWED = "CLIENT_NOT_ALLOWED"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    DURATION_TOO_LONG = "DURATION_TOO_LONG"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    CONVERSION_FAILED = "CONVERSION_FAILED"
    TRANSCRIPTION_FAILED = "TRANSCRIPTION_FAILED"
    FORWARDING_FAILED = "FORWARDING_FAILED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


ERROR_STATUS_MAP = {
    ErrorCode.INVALID_AUTH: 401,
    ErrorCode.CLIENT_NOT_ALLOWED: 403,
    ErrorCode.FILE_TOO_LARGE: 400,
    ErrorCode.DURATION_TOO_LONG: 400,
    ErrorCode.RATE_LIMIT_EXCEEDED: 429,
    ErrorCode.CONVERSION_FAILED: 400,
    ErrorCode.TRANSCRIPTION_FAILED: 502,
    ErrorCode.FORWARDING_FAILED: 503,
    ErrorCode.INTERNAL_ERROR: 500,
}


def status_for(code: ErrorCode) -> int:
    """HTTP status for an error code (500 when unmapped)."""
    return ERROR_STATUS_MAP.get(code, 500)


def error_response(code: ErrorCode, message: str) -> dict:
    return {
        "success": False,
        "error": code.value,
        "message": message,
    }


def success_response(message: str, request_id: Optional[str] = None) -> dict:
    response = {
        "success": True,
        "message": message,
    }
    if request_id:
        response["requestId"] = request_id
    return response


class CaptureError(Exception):
    """Base class for every failure that crosses the request boundary."""

    code = ErrorCode.INTERNAL_ERROR
    log_level = logging.WARNING
    http_status: Optional[int] = None

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    @property
    def status_code(self) -> int:
        if self.http_status is not None:
            return self.http_status
        return status_for(self.code)

    def to_response(self) -> dict:
        return error_response(self.code, self.message)


class InvalidAuth(CaptureError):
    code = ErrorCode.INVALID_AUTH


class ClientNotAllowed(CaptureError):
    code = ErrorCode.CLIENT_NOT_ALLOWED


class FileTooLarge(CaptureError):
    code = ErrorCode.FILE_TOO_LARGE


class DurationTooLong(CaptureError):
    code = ErrorCode.DURATION_TOO_LONG


class MissingAudio(CaptureError):
    code = ErrorCode.INTERNAL_ERROR
    http_status = 400


class RateLimitExceeded(CaptureError):
    code = ErrorCode.RATE_LIMIT_EXCEEDED

    def __init__(self, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.retry_after = retry_after


class ConversionFailed(CaptureError):
    """Audio could not be normalized; ``stage`` names the step that failed."""

    code = ErrorCode.CONVERSION_FAILED

    def __init__(self, stage: str, detail: str):
        super().__init__(f"Audio conversion failed: {detail}")
        self.stage = stage
        self.detail = detail


class TranscriptionFailed(CaptureError):
    code = ErrorCode.TRANSCRIPTION_FAILED
    log_level = logging.ERROR


class ForwardingFailed(CaptureError):
    code = ErrorCode.FORWARDING_FAILED
    log_level = logging.ERROR


class InternalError(CaptureError):
    code = ErrorCode.INTERNAL_ERROR
    log_level = logging.ERROR
