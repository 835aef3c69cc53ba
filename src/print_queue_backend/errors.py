"""
Exception hierarchy for the print queue core.

Every error carries the HTTP status it maps to so the API layer can translate
it with a single exception handler.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class PrintQueueError(Exception):
    """Base error for all failures raised by the print queue core."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details or {}


class ValidationError(PrintQueueError):
    """Upload metadata failed the extension or size constraints."""

    status_code = 400


class AccessDeniedError(PrintQueueError):
    status_code = 403

    def __init__(self, message: str = "Access denied", details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message, details)


class NotFoundError(PrintQueueError):
    status_code = 404

    def __init__(self, resource_type: str, resource_id: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(f"{resource_type} '{resource_id}' not found", details)
        self.resource_type = resource_type
        self.resource_id = resource_id


class InvalidTransition(PrintQueueError):
    status_code = 409

    def __init__(self, current: str, target: str) -> None:
        super().__init__(f"Cannot move job from '{current}' to '{target}'")
        self.current = current
        self.target = target


class TransportFailure(PrintQueueError):
    """The object store rejected or failed a file operation."""

    status_code = 502
