"""Domain exceptions for clawdtm.

API handlers translate every ``ClawdtmError`` into the uniform
``{success: false, error, hint}`` envelope using ``status_code`` and ``hint``.
"""

from __future__ import annotations

from typing import Any


class ClawdtmError(Exception):
    """Base exception for clawdtm domain errors."""

    status_code = 500

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": False, "error": self.message}
        if self.hint:
            payload["hint"] = self.hint
        return payload


class CatalogFetchError(ClawdtmError):
    """Raised when the external catalog keeps failing after all retries."""

    status_code = 502

    def __init__(self, message: str, *, attempts: int, status_code: int | None = None) -> None:
        super().__init__(message)
        self.attempts = attempts
        self.upstream_status = status_code


class DatabaseConfigError(ClawdtmError):
    """Raised when the database URL is missing or uses an unsupported driver."""


class RecordValidationError(ClawdtmError):
    """Raised when a catalog payload record cannot be parsed."""

    status_code = 422

    def __init__(self, message: str, *, slug: str | None = None) -> None:
        super().__init__(message)
        self.slug = slug


class CheckpointConflictError(ClawdtmError):
    """Raised when a checkpoint row changed underneath a compare-and-swap write."""

    status_code = 409

    def __init__(self, key: str, expected_version: int) -> None:
        super().__init__(f"checkpoint '{key}' changed concurrently (expected version {expected_version})")
        self.key = key
        self.expected_version = expected_version


class ValidationFailedError(ClawdtmError):
    """Raised when request input is rejected before any write."""

    status_code = 400


class NotFoundError(ClawdtmError):
    """Raised when the requested subject does not exist."""

    status_code = 404


class AuthorizationError(ClawdtmError):
    """Raised when credentials are missing or invalid."""

    status_code = 401


class AgentAuthError(AuthorizationError):
    """Raised when a bot agent API key is malformed, unknown or revoked."""


class ForbiddenError(ClawdtmError):
    """Raised when the caller is authenticated but not allowed."""

    status_code = 403


class RateLimitedError(ClawdtmError):
    """Raised when a fixed-window quota is exhausted."""

    status_code = 429

    def __init__(self, message: str, *, retry_after: int, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.retry_after = retry_after

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        payload["retry_after"] = self.retry_after
        return payload


class WebhookVerificationError(ClawdtmError):
    """Raised when an identity-provider webhook fails verification."""

    status_code = 400
