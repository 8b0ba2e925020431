"""buha.ledger.types

Per-account accrual records.

A position is either present (a MintPosition / StakePosition stored under the
account id) or absent (no key at all). There is no "empty" sentinel record:
a zero term or zero amount never stands in for "no position".
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict

from buha.ledger.constants import SECONDS_PER_DAY

Json = Dict[str, Any]


def _coerce_int(v: Any, *, field: str) -> int:
    # bool is an int subclass; disallow it explicitly
    if isinstance(v, bool):
        raise ValueError(f"position schema error: field '{field}' must be int (got bool)")
    try:
        return int(v)
    except Exception as e:
        raise ValueError(f"position schema error: field '{field}' must be int-coercible (got {type(v).__name__})") from e


def maturity_for(started_at: int, term_days: int) -> int:
    return int(started_at) + int(term_days) * SECONDS_PER_DAY


@dataclass(frozen=True, slots=True)
class MintPosition:
    term_days: int
    started_at: int
    maturity_at: int

    @classmethod
    def open(cls, *, term_days: int, now: int) -> "MintPosition":
        return cls(term_days=int(term_days), started_at=int(now), maturity_at=maturity_for(now, term_days))

    def is_mature(self, now: int) -> bool:
        return int(now) >= self.maturity_at

    def elapsed(self, now: int) -> int:
        return max(0, int(now) - self.started_at)

    @classmethod
    def from_json(cls, j: Any) -> "MintPosition":
        if not isinstance(j, dict):
            raise ValueError(f"position schema error: mint record must be dict (got {type(j).__name__})")
        return cls(
            term_days=_coerce_int(j.get("term_days"), field="term_days"),
            started_at=_coerce_int(j.get("started_at"), field="started_at"),
            maturity_at=_coerce_int(j.get("maturity_at"), field="maturity_at"),
        )

    def to_json(self) -> Json:
        return {
            "term_days": self.term_days,
            "started_at": self.started_at,
            "maturity_at": self.maturity_at,
        }


@dataclass(frozen=True, slots=True)
class StakePosition:
    amount: int
    term_days: int
    started_at: int
    maturity_at: int

    @classmethod
    def open(cls, *, amount: int, term_days: int, now: int) -> "StakePosition":
        return cls(
            amount=int(amount),
            term_days=int(term_days),
            started_at=int(now),
            maturity_at=maturity_for(now, term_days),
        )

    def is_mature(self, now: int) -> bool:
        return int(now) >= self.maturity_at

    def elapsed(self, now: int) -> int:
        return max(0, int(now) - self.started_at)

    @classmethod
    def from_json(cls, j: Any) -> "StakePosition":
        if not isinstance(j, dict):
            raise ValueError(f"position schema error: stake record must be dict (got {type(j).__name__})")
        return cls(
            amount=_coerce_int(j.get("amount"), field="amount"),
            term_days=_coerce_int(j.get("term_days"), field="term_days"),
            started_at=_coerce_int(j.get("started_at"), field="started_at"),
            maturity_at=_coerce_int(j.get("maturity_at"), field="maturity_at"),
        )

    def to_json(self) -> Json:
        return {
            "amount": self.amount,
            "term_days": self.term_days,
            "started_at": self.started_at,
            "maturity_at": self.maturity_at,
        }


__all__ = ["MintPosition", "StakePosition", "maturity_for"]
