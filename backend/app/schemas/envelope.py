"""
Result envelope — the only shape callers of the gateway ever see.

Every gateway operation resolves to a ResultEnvelope instead of raising.
Exactly one of ``data`` / ``error`` is meaningful, chosen by ``success``.
"""

import re
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, model_validator

T = TypeVar("T")

# ── Error codes ────────────────────────────────────────────────────────────
NETWORK_ERROR = "NETWORK_ERROR"
DECODE_ERROR = "DECODE_ERROR"
VALIDATION_ERROR = "VALIDATION_ERROR"

_HTTP_CODE = re.compile(r"^HTTP_(\d{3})$")


def http_error_code(status: int) -> str:
    return f"HTTP_{status}"


class ApiError(BaseModel):
    code: str
    message: str
    details: Optional[Any] = None

    @property
    def status(self) -> Optional[int]:
        """HTTP status behind this error, if it came from an HTTP response."""
        match = _HTTP_CODE.match(self.code)
        if match:
            return int(match.group(1))
        if isinstance(self.details, dict) and isinstance(self.details.get("status"), int):
            return self.details["status"]
        return None

    @property
    def retryable(self) -> bool:
        """
        Network failures and 5xx responses may be retried by the caller.
        4xx, decode and validation errors never succeed on a plain retry.
        """
        if self.code == NETWORK_ERROR:
            return True
        status = self.status
        return status is not None and status >= 500


class PageMeta(BaseModel):
    total: Optional[int] = None
    page: Optional[int] = None
    limit: Optional[int] = None
    has_more: Optional[bool] = None


class ResultEnvelope(BaseModel, Generic[T]):
    success: bool
    data: Optional[T] = None
    error: Optional[ApiError] = None
    meta: Optional[PageMeta] = None

    @model_validator(mode="after")
    def _check_shape(self) -> "ResultEnvelope":
        if self.success and self.error is not None:
            raise ValueError("successful envelope must not carry an error")
        if not self.success:
            if self.error is None:
                raise ValueError("failed envelope must carry an error")
            if self.data is not None:
                raise ValueError("failed envelope must not carry data")
        return self

    @classmethod
    def ok(cls, data: Any = None, meta: Optional[PageMeta] = None) -> "ResultEnvelope":
        return cls(success=True, data=data, meta=meta)

    @classmethod
    def fail(cls, code: str, message: str, details: Any = None) -> "ResultEnvelope":
        return cls(success=False, error=ApiError(code=code, message=message, details=details))
