"""Centralized error handling with actionable messages.

The approval guardrail raises the FgacError family. Databricks SDK errors
coming back from the policy store are passed through untouched and only
turned into text here, at the tool boundary.
"""
from databricks.sdk.errors import (
    BadRequest,
    DatabricksError,
    NotFound,
    PermissionDenied,
    ResourceAlreadyExists,
    TooManyRequests,
)


class FgacError(Exception):
    """Base class for errors raised by the approval guardrail."""

    code = "FGAC_ERROR"


class ChangeRequestError(FgacError, ValueError):
    """A proposed policy change is missing fields or has the wrong shape."""

    code = "BAD_CHANGE_REQUEST"


class PermissionDeniedError(FgacError, PermissionError):
    """The caller is not a member of the configured admin group."""

    code = "PERMISSION_DENIED"


class MissingApprovalTokenError(FgacError, ValueError):
    """A mutating call was made without an approval token."""

    code = "MISSING_APPROVAL_TOKEN"


class InvalidOrExpiredTokenError(FgacError):
    """The approval token was rejected.

    Carries no detail on the cause: malformed, forged, expired and
    mismatched tokens all surface as this single error.
    """

    code = "INVALID_OR_EXPIRED_TOKEN"

    def __init__(self):
        super().__init__(
            "Invalid or expired approval token. "
            "Run fgac_preview_policy_change again and get a fresh approval."
        )


def handle_error(e: Exception) -> str:
    """Return a human-readable, actionable error message.

    Distinguishes between:
    - Guardrail rejections (admin group, approval token, request shape)
    - Databricks API errors (not found, conflict, permission, quota)
    - Transient infrastructure errors (timeouts, rate limits)
    """
    # --- Guardrail errors ---

    if isinstance(e, PermissionDeniedError):
        return f"Error [{e.code}]: {e}"

    if isinstance(e, InvalidOrExpiredTokenError):
        return f"Error [{e.code}]: {e}"

    if isinstance(e, MissingApprovalTokenError):
        return (
            f"Error [{e.code}]: {e} "
            "Call fgac_preview_policy_change first, show the preview to a human, "
            "and pass the returned approval_token once they approve."
        )

    if isinstance(e, ChangeRequestError):
        return f"Error [{e.code}]: {e}"

    # --- Databricks API errors ---

    if isinstance(e, ResourceAlreadyExists):
        return (
            f"Error [ALREADY_EXISTS]: {e}. A policy with this name already exists "
            "on the securable. Use fgac_update_policy or pick another name."
        )

    if isinstance(e, NotFound):
        return (
            f"Error [NOT_FOUND]: {e}. "
            "Use fgac_list_policies to check policy names and scopes."
        )

    if isinstance(e, PermissionDenied):
        return (
            f"Error [PERMISSION_DENIED]: {e}. Unity Catalog rejected the call; "
            "MANAGE on the securable is required to change its policies."
        )

    if isinstance(e, TooManyRequests):
        return (
            f"Error [RATE_LIMITED]: {e}. The policy API is throttling requests. "
            "Wait a moment and try again."
        )

    if isinstance(e, BadRequest):
        return f"Error [BAD_REQUEST]: {e}. Check the policy parameters and try again."

    if isinstance(e, DatabricksError):
        return f"Error [{e.error_code or 'DATABRICKS_ERROR'}]: {e}"

    if isinstance(e, TimeoutError):
        return (
            "Error [TIMEOUT]: The Databricks workspace did not respond in time. "
            "Retry shortly; previews stay valid for 10 minutes."
        )

    return f"Error: {type(e).__name__} — {str(e)}"
