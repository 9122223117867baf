"""
Error taxonomy.

Every failure that reaches a client is one of these. main.py turns them into
JSON responses with the matching status code.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class FishLogError(Exception):
    """Base class; carries the message shown to the caller."""

    status_code = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ValidationError(FishLogError):
    """Missing required field or unusable coordinates. Never retried."""

    status_code = 400


class NotFoundError(FishLogError):
    """No row matches the requested id."""

    status_code = 404


class UpstreamError(FishLogError):
    """Weather provider unreachable, non-200, or returned no data."""

    status_code = 502


class ConstraintError(FishLogError):
    """The database rejected a write (foreign key, unique, not null)."""

    status_code = 500
