"""
Error taxonomy and the result type returned across the core boundary.

Inside the core, business-rule failures are raised as LeagueError subclasses.
Public operations are wrapped with @as_result so callers always get an
OperationResult back and can tell a lockout from a validation failure.
"""

import functools
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError

from .logging_config import get_logger

logger = get_logger(__name__)


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    LOCKED = "locked"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    FORBIDDEN = "forbidden"
    FAILURE = "failure"


class RejectReason(str, Enum):
    ROSTER_FULL = "roster_full"
    POSITION_CAP_REACHED = "position_cap_reached"
    SUBSTITUTE_CAP_REACHED = "substitute_cap_reached"
    ALREADY_OWNED = "already_owned"
    NOT_OWNED = "not_owned"
    INSUFFICIENT_BUDGET = "insufficient_budget"
    POSITION_MISMATCH = "position_mismatch"
    SUBSTITUTE_CANNOT_CAPTAIN = "substitute_cannot_captain"
    NOT_A_SUBSTITUTE = "not_a_substitute"
    NOT_IN_MAIN_ROSTER = "not_in_main_roster"
    ROUND_NOT_ACTIVE = "round_not_active"
    INVALID_INPUT = "invalid_input"


class LeagueError(Exception):
    kind = ErrorKind.FAILURE

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(LeagueError):
    kind = ErrorKind.VALIDATION

    def __init__(self, reason: RejectReason, message: str):
        super().__init__(message)
        self.reason = reason


class LockedError(LeagueError):
    kind = ErrorKind.LOCKED

    def __init__(self, message: str = "Team changes are locked for the current round"):
        super().__init__(message)


class NotFoundError(LeagueError):
    kind = ErrorKind.NOT_FOUND

    def __init__(self, entity: str, key: Any):
        super().__init__(f"{entity} {key} not found")
        self.entity = entity
        self.key = key


class ConflictError(LeagueError):
    kind = ErrorKind.CONFLICT


class ForbiddenError(LeagueError):
    kind = ErrorKind.FORBIDDEN

    def __init__(self, message: str = "Administrator access required"):
        super().__init__(message)


@dataclass
class OperationResult:
    """Discriminated outcome of a core operation."""
    ok: bool
    message: str
    data: Any = None
    error: Optional[ErrorKind] = None
    reason: Optional[RejectReason] = None

    @classmethod
    def success(cls, message: str, data: Any = None) -> "OperationResult":
        return cls(ok=True, message=message, data=data)

    @classmethod
    def failure(cls, error: LeagueError) -> "OperationResult":
        return cls(
            ok=False,
            message=error.message,
            error=error.kind,
            reason=getattr(error, "reason", None),
        )

    def to_dict(self) -> dict:
        d = {"ok": self.ok, "message": self.message}
        if self.data is not None:
            d["data"] = self.data
        if self.error is not None:
            d["error"] = self.error.value
        if self.reason is not None:
            d["reason"] = self.reason.value
        return d


def as_result(func):
    """
    Run a core operation and fold its outcome into an OperationResult.

    The wrapped function returns either an OperationResult or a
    (message, data) tuple on success.
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            outcome = func(*args, **kwargs)
        except LeagueError as e:
            logger.info(f"{func.__name__} rejected ({e.kind.value}): {e.message}")
            return OperationResult.failure(e)
        except SQLAlchemyError as e:
            logger.exception(f"{func.__name__} failed in the persistence layer")
            return OperationResult(ok=False, message=f"Persistence failure: {e}", error=ErrorKind.FAILURE)
        if isinstance(outcome, OperationResult):
            return outcome
        message, data = outcome
        return OperationResult.success(message, data)
    return wrapper
