"""Structured errors for curation steps.

Every failure a step can hit ends up as a `CurationError`, whose message is
what lands in the curator's status conditions.
"""

from __future__ import annotations

from typing import Any

from kubernetes import client


HTTP_TOO_MANY_REQUESTS = 429
HTTP_SERVER_ERROR = 500


class CurationError(RuntimeError):
    """A curation step failed."""

    def __init__(
        self,
        *,
        code: str,
        step: str,
        message: str,
        retryable: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.step = step
        self.message = message
        self.retryable = retryable
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Log fields for this error."""
        return {
            "code": self.code,
            "step": self.step,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
        }


def api_error(error: client.ApiException, step: str) -> CurationError:
    """Curation error for a failed Kubernetes API call.

    Throttling and server-side errors are retryable, anything else
    (forbidden, invalid, conflict) is not.
    """
    status = error.status or 0
    return CurationError(
        code="kubernetes_api_error",
        step=step,
        message=f"Kubernetes API error ({status}): {error.reason}",
        retryable=status == HTTP_TOO_MANY_REQUESTS or status >= HTTP_SERVER_ERROR,
        details={"status": status},
    )


def ensure_curation_error(
    error: Exception,
    *,
    step: str = "curation",
) -> CurationError:
    """Turn whatever a step raised into a `CurationError`."""
    if isinstance(error, CurationError):
        return error
    if isinstance(error, client.ApiException):
        return api_error(error, step)

    return CurationError(
        code="curation_unexpected_error",
        step=step,
        message=str(error) or type(error).__name__,
        details={"exception_type": type(error).__name__},
    )


__all__ = [
    "CurationError",
    "api_error",
    "ensure_curation_error",
]
