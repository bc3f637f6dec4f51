# services/errors.py
from __future__ import annotations

from fastapi import HTTPException


class DistributionError(Exception):
    """Base for every business error surfaced to callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(DistributionError):
    status_code = 400


class NotEligible(DistributionError):
    status_code = 400


class Conflict(DistributionError):
    status_code = 400


class NotFound(DistributionError):
    status_code = 404


class Unavailable(DistributionError):
    status_code = 503


class AuditFailure(DistributionError):
    """
    The callback outcome could not be written to the audit log.
    The status transition that preceded it is already committed.
    """

    status_code = 500


def raise_http_from_error(exc: Exception) -> None:
    """
    Convert known business errors into HTTP responses; otherwise fail closed.
    """
    if isinstance(exc, DistributionError):
        raise HTTPException(status_code=exc.status_code, detail=exc.message)

    raise HTTPException(status_code=500, detail="Internal server error")
