from __future__ import annotations

import json
from typing import Any, Optional


class QuickBooksActionError(RuntimeError):
    pass


class QuickBooksValidationError(QuickBooksActionError):
    """User input cannot be turned into a QuickBooks request."""


class UnsupportedOperationError(QuickBooksActionError):
    def __init__(self, resource: str, operation: str):
        self.resource = resource
        self.operation = operation
        super().__init__(f"The operation '{operation}' is not supported for resource '{resource}'")


class QuickBooksApiError(QuickBooksActionError):
    """QuickBooks answered with an error or with an unexpected payload."""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        details: Optional[list[dict[str, Any]]] = None,
    ):
        self.status_code = status_code
        self.body = body
        self.details = details or []
        super().__init__(message)

    @property
    def error_code(self) -> Optional[str]:
        for detail in self.details:
            code = detail.get("code")
            if code:
                return str(code)
        return None


def parse_fault(body: Optional[str]) -> list[dict[str, Any]]:
    """Return the entries of a QuickBooks `Fault.Error` payload, if any."""
    if not body:
        return []
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return []
    if not isinstance(payload, dict):
        return []
    fault = payload.get("Fault") or payload.get("fault") or {}
    if not isinstance(fault, dict):
        return []
    errors = fault.get("Error") or fault.get("error") or []
    if isinstance(errors, dict):
        errors = [errors]
    return [error for error in errors if isinstance(error, dict)]


def api_error_from_response(status_code: int, body: str, *, action: str) -> QuickBooksApiError:
    details = parse_fault(body)
    if details:
        messages = "|".join(str(error.get("Message", "")) for error in details)
        descriptions = "|".join(str(error.get("Detail", "")) for error in details if error.get("Detail"))
        message = f"QuickBooks {action} failed ({status_code}): {messages}"
        if descriptions:
            message = f"{message} - {descriptions}"
    else:
        message = f"QuickBooks {action} failed ({status_code}): {body}"
    return QuickBooksApiError(message, status_code=status_code, body=body, details=details)
