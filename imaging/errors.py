from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ErrorCode(str, Enum):
    UPLOAD_ERROR = "UPLOAD_ERROR"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    TOO_MANY_FILES = "TOO_MANY_FILES"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    INVALID_IMAGE = "INVALID_IMAGE"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# Short human-readable label sent as the ``error`` field of error bodies.
ERROR_LABELS = {
    ErrorCode.UPLOAD_ERROR: "File upload error",
    ErrorCode.FILE_TOO_LARGE: "File too large",
    ErrorCode.TOO_MANY_FILES: "Too many files",
    ErrorCode.INVALID_FILE_TYPE: "Invalid file type",
    ErrorCode.INVALID_IMAGE: "Invalid image",
    ErrorCode.VALIDATION_ERROR: "Validation error",
    ErrorCode.INTERNAL_ERROR: "Internal server error",
}


@dataclass(eq=False)
class ServiceError(Exception):
    code: ErrorCode
    http_status: int
    message: str

    def __str__(self) -> str:  # pragma: no cover - convenience
        return f"{self.code.value} ({self.http_status}): {self.message}"


def validation_error(message: str) -> ServiceError:
    return ServiceError(ErrorCode.VALIDATION_ERROR, 400, message)


def error_body(code: ErrorCode, message: str, request_id: str | None = None) -> dict:
    return {
        "success": False,
        "error": ERROR_LABELS[code],
        "message": message,
        "code": code.value,
        "request_id": request_id,
    }


__all__ = [
    "ErrorCode",
    "ERROR_LABELS",
    "ServiceError",
    "validation_error",
    "error_body",
]
