"""Application error taxonomy.

Services raise these; ``nest.main`` renders them as
``{"success": false, "error": {"message": ...}}`` with the matching status.
"""

from __future__ import annotations


class NestError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(NestError):
    """Missing or malformed input."""

    status_code = 400


class AuthenticationError(NestError):
    """Missing, invalid or expired credential."""

    status_code = 401


class AuthorizationError(NestError):
    """Valid credential, insufficient permission."""

    status_code = 403


class NotFoundError(NestError):
    """Referenced entity does not exist."""

    status_code = 404


class UpstreamError(NestError):
    """A critical collaborator (storage, AI) failed."""

    status_code = 500
