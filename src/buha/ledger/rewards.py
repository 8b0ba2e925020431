# src/buha/ledger/rewards.py
from __future__ import annotations

from dataclasses import asdict, dataclass, fields, replace
from typing import Any, Dict

from buha.ledger.constants import (
    BPS,
    DAYS_PER_YEAR,
    MAX_MINT_TERM_DAYS,
    MAX_STAKE_TERM_DAYS,
    MAX_UINT256,
    MIN_STAKE_AMOUNT,
    SECONDS_PER_DAY,
    UNIT,
)

Json = Dict[str, Any]


def _as_int(x: Any, default: int = 0) -> int:
    if isinstance(x, bool):
        return int(default)
    try:
        return int(x)
    except Exception:
        return int(default)


def _strict_int(name: str, x: Any) -> int:
    if isinstance(x, bool):
        raise ValueError(f"{name} must be an integer; got: {x!r}")
    if isinstance(x, int):
        return int(x)
    if isinstance(x, str) and x.strip().lstrip("-").isdigit():
        return int(x.strip())
    raise ValueError(f"{name} must be an integer; got: {x!r}")


@dataclass(frozen=True, slots=True)
class RewardPolicy:
    """Integer-only reward curve for term mints and term stakes.

    Full-term rewards grow with the committed term (a longer commitment earns a
    higher per-day rate through the term bonus). Partial rewards accrue
    linearly with elapsed seconds and never reach the full-term value before
    maturity.
    """

    max_mint_term_days: int = MAX_MINT_TERM_DAYS
    max_stake_term_days: int = MAX_STAKE_TERM_DAYS
    min_stake_amount: int = MIN_STAKE_AMOUNT

    # Mint: base units earned per committed day, before the term bonus.
    mint_daily_reward: int = UNIT
    # Extra rate (bps) reached at the maximum mint term, scaled linearly below it.
    mint_term_bonus_bps: int = 10_000
    # Haircut (bps) applied to the pro-rata reward of an early claim.
    mint_early_penalty_bps: int = 2_000

    # Stake: annual rate (bps) on the locked principal.
    stake_apr_bps: int = 1_000
    stake_term_bonus_bps: int = 5_000

    def validate(self) -> None:
        if self.max_mint_term_days < 1:
            raise ValueError(f"max_mint_term_days must be >= 1; got: {self.max_mint_term_days}")
        if self.max_stake_term_days < 1:
            raise ValueError(f"max_stake_term_days must be >= 1; got: {self.max_stake_term_days}")
        if self.min_stake_amount < 1:
            # Stake positions always lock a positive principal.
            raise ValueError(f"min_stake_amount must be >= 1; got: {self.min_stake_amount}")
        if self.mint_daily_reward < 1:
            raise ValueError(f"mint_daily_reward must be >= 1; got: {self.mint_daily_reward}")
        for name in ("mint_term_bonus_bps", "stake_apr_bps", "stake_term_bonus_bps"):
            if int(getattr(self, name)) < 0:
                raise ValueError(f"{name} must be >= 0; got: {getattr(self, name)}")
        if not 0 <= self.mint_early_penalty_bps <= BPS:
            raise ValueError(f"mint_early_penalty_bps must be 0..{BPS}; got: {self.mint_early_penalty_bps}")
        if self.mint_full_reward(self.max_mint_term_days) > MAX_UINT256:
            raise ValueError("mint_daily_reward overflows uint256 at the maximum term")

    # ----------------------------
    # Mint curve
    # ----------------------------

    def mint_full_reward(self, term_days: int) -> int:
        term = max(0, int(term_days))
        if term == 0:
            return 0
        bonus = self.mint_term_bonus_bps * min(term, self.max_mint_term_days) // self.max_mint_term_days
        return self.mint_daily_reward * term * (BPS + bonus) // BPS

    def mint_reward(self, term_days: int, elapsed_s: int, matured: bool) -> int:
        full = self.mint_full_reward(term_days)
        if matured:
            return full

        term_s = max(1, int(term_days) * SECONDS_PER_DAY)
        elapsed = min(max(0, int(elapsed_s)), term_s - 1)
        pro_rata = full * elapsed // term_s
        return pro_rata * (BPS - self.mint_early_penalty_bps) // BPS

    # ----------------------------
    # Stake curve
    # ----------------------------

    def stake_full_reward(self, amount: int, term_days: int) -> int:
        amt = max(0, int(amount))
        term = max(0, int(term_days))
        if amt == 0 or term == 0:
            return 0
        bonus = self.stake_term_bonus_bps * min(term, self.max_stake_term_days) // self.max_stake_term_days
        return amt * self.stake_apr_bps * term * (BPS + bonus) // (BPS * BPS * DAYS_PER_YEAR)

    def stake_reward(self, amount: int, term_days: int, elapsed_s: int) -> int:
        full = self.stake_full_reward(amount, term_days)
        elapsed = int(elapsed_s)
        term_s = int(term_days) * SECONDS_PER_DAY

        if elapsed <= 0 or full == 0:
            return 0
        if elapsed >= term_s:
            return full

        r = full * elapsed // term_s
        if full >= 2:
            # Partial accrual stays strictly inside (0, full).
            r = min(max(r, 1), full - 1)
        return r

    # ----------------------------
    # Serialization
    # ----------------------------

    def to_json(self) -> Json:
        return asdict(self)

    @classmethod
    def from_json(cls, raw: Any) -> "RewardPolicy":
        d = cls()
        if not isinstance(raw, dict):
            return d
        kwargs = {f.name: _as_int(raw.get(f.name), getattr(d, f.name)) for f in fields(cls)}
        return cls(**kwargs)

    def with_overrides(self, raw: Any) -> "RewardPolicy":
        if not isinstance(raw, dict):
            return self
        known = {f.name for f in fields(self)}
        updates = {k: _strict_int(k, v) for k, v in raw.items() if k in known}
        return replace(self, **updates)


DEFAULT_POLICY = RewardPolicy()


__all__ = ["DEFAULT_POLICY", "RewardPolicy"]
