"""
errors.py — AppError base class and error code registry.

Every error returned by the Secret Santa API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - New error codes require: add constant here + add a test that triggers it.
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - Never conflate 401 (unauthenticated) with 403 (unauthorized). See AUTH section below.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field  # which request field caused the error

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        return {"error": payload}

    def __repr__(self) -> str:
        return (
            f"AppError(code={self.code!r}, "
            f"http_status={self.http_status}, "
            f"message={self.message!r})"
        )


# ── Error Code Registry ────────────────────────────────────────────────────
#
# Organised by category. HTTP status is indicated in the comment.
#
# IMPORTANT: these are the string values sent in the API response.
# Do not rename them without a major version bump.
# ──────────────────────────────────────────────────────────────────────────

class ErrorCode:

    # ── Schema / Input Errors (400) ────────────────────────────────────────
    MISSING_FIELD              = "MISSING_FIELD"
    INVALID_FIELD              = "INVALID_FIELD"
    INVALID_WISHLIST           = "INVALID_WISHLIST"
    NOT_ENOUGH_PARTICIPANTS    = "NOT_ENOUGH_PARTICIPANTS"
    PASSWORD_REQUIRED          = "PASSWORD_REQUIRED"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    DUPLICATE_EMAIL            = "DUPLICATE_EMAIL"
    ALREADY_MEMBER             = "ALREADY_MEMBER"
    GROUP_FULL                 = "GROUP_FULL"
    GROUP_CLOSED               = "GROUP_CLOSED"
    DRAW_NOT_COMPLETED         = "DRAW_NOT_COMPLETED"
    STALE_WRITE                = "STALE_WRITE"     # optimistic save lost the race

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    USER_NOT_FOUND             = "USER_NOT_FOUND"
    GROUP_NOT_FOUND            = "GROUP_NOT_FOUND"
    RECEIVER_NOT_FOUND         = "RECEIVER_NOT_FOUND"

    # ── Auth Errors ────────────────────────────────────────────────────────
    # 401 = we do not know who you are (unauthenticated)
    # 403 = we know who you are, but you are not allowed (unauthorized)
    # These must NEVER be swapped.
    INVALID_CREDENTIALS        = "INVALID_CREDENTIALS"     # 401
    TOKEN_MISSING              = "TOKEN_MISSING"           # 401
    TOKEN_INVALID              = "TOKEN_INVALID"           # 401
    TOKEN_EXPIRED              = "TOKEN_EXPIRED"           # 401
    FORBIDDEN                  = "FORBIDDEN"               # 403
    INVALID_GROUP_PASSWORD     = "INVALID_GROUP_PASSWORD"  # 403, join password mismatch

    # ── System Errors (5xx) ────────────────────────────────────────────────
    DRAW_FAILED                = "DRAW_FAILED"             # 503, retry budget exhausted
    INTERNAL_ERROR             = "INTERNAL_ERROR"
