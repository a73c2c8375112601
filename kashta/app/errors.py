"""
errors.py — AppError base class and error code registry.

Every error returned by the Kashta API must use a code defined here.
Do not raise strings or generic exceptions from service or route code.

Rules:
  - Error codes are a versioned contract. They do not change once published.
  - Error messages are human-readable prose. They may be improved at any time.
  - A valid event with zero participants is NOT a not-found condition; it
    returns an empty settlement.
"""

from __future__ import annotations


class AppError(Exception):

    def __init__(
            self,
            code: str,
            message: str,
            http_status: int,
            field: str | None = None,
            retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.code        = code
        self.message     = message
        self.http_status = http_status
        self.field       = field      # which request field caused the error
        self.retryable   = retryable  # caller may safely repeat the request

    def to_dict(self) -> dict:
        payload = {
            "code":    self.code,
            "message": self.message,
        }
        if self.field is not None:
            payload["field"] = self.field
        if self.retryable:
            payload["retryable"] = True
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
    INVALID_AMOUNT_PRECISION   = "INVALID_AMOUNT_PRECISION"
    INVALID_STATUS             = "INVALID_STATUS"

    # ── Conflict Errors (409) ──────────────────────────────────────────────
    ALREADY_IN_EVENT           = "ALREADY_IN_EVENT"
    EVENT_HAS_SETTLEMENTS      = "EVENT_HAS_SETTLEMENTS"
    EVENT_HAS_COSTS            = "EVENT_HAS_COSTS"
    PARTICIPANT_HAS_DEBTS      = "PARTICIPANT_HAS_DEBTS"

    # ── Not Found Errors (404) ─────────────────────────────────────────────
    EVENT_NOT_FOUND            = "EVENT_NOT_FOUND"
    PARTICIPANT_NOT_FOUND      = "PARTICIPANT_NOT_FOUND"
    ITEM_NOT_FOUND             = "ITEM_NOT_FOUND"
    CONTRIBUTION_NOT_FOUND     = "CONTRIBUTION_NOT_FOUND"
    SETTLEMENT_NOT_FOUND       = "SETTLEMENT_NOT_FOUND"

    # ── Business Rule Violations (422) ────────────────────────────────────
    PARTICIPANT_NOT_IN_EVENT   = "PARTICIPANT_NOT_IN_EVENT"

    # ── Storage Errors (503) ───────────────────────────────────────────────
    # A reconcile or toggle failed mid-write and was rolled back. Nothing
    # previously committed was touched; the request can be retried.
    STORAGE_CONFLICT           = "STORAGE_CONFLICT"

    # ── System Errors (500) ────────────────────────────────────────────────
    INTERNAL_ERROR             = "INTERNAL_ERROR"
