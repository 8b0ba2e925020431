from __future__ import annotations

from dataclasses import dataclass
from typing import Any, ClassVar


@dataclass
class ApplyError(Exception):
    """Canonical error type for domain apply and dispatch failures."""

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


class _CodedApplyError(ApplyError):
    """ApplyError with a fixed code; callers only supply reason + details."""

    CODE: ClassVar[str] = "apply_error"

    def __init__(self, reason: str = "", details: Any | None = None) -> None:
        super().__init__(self.CODE, reason or self.CODE, details)


class InvalidTerm(_CodedApplyError):
    CODE = "invalid_term"


class PositionExists(_CodedApplyError):
    CODE = "position_exists"


class NoPosition(_CodedApplyError):
    CODE = "no_position"


class NotMature(_CodedApplyError):
    CODE = "not_mature"


class AlreadyMature(_CodedApplyError):
    CODE = "already_mature"


class InsufficientBalance(_CodedApplyError):
    CODE = "insufficient_balance"


class BelowMinStake(_CodedApplyError):
    CODE = "below_min_stake"


class AboveMaxTerm(_CodedApplyError):
    CODE = "above_max_term"


class ExceedsBalance(_CodedApplyError):
    CODE = "exceeds_balance"


class Unauthorized(_CodedApplyError):
    CODE = "unauthorized"


class InsufficientAllowance(_CodedApplyError):
    CODE = "insufficient_allowance"


class InvalidPayload(_CodedApplyError):
    CODE = "invalid_payload"


class InvariantViolation(RuntimeError):
    """Raised when aggregate counters or supply accounting drift from a full scan."""


__all__ = [
    "AboveMaxTerm",
    "AlreadyMature",
    "ApplyError",
    "BelowMinStake",
    "ExceedsBalance",
    "InsufficientAllowance",
    "InsufficientBalance",
    "InvalidPayload",
    "InvalidTerm",
    "InvariantViolation",
    "NoPosition",
    "NotMature",
    "PositionExists",
    "Unauthorized",
]
