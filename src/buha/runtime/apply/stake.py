# src/buha/runtime/apply/stake.py
from __future__ import annotations

from typing import Any, Dict, Optional, Set

from buha.ledger.balances import BalanceLedger
from buha.ledger.types import StakePosition
from buha.runtime import events
from buha.runtime.apply.common import (
    bump_counter,
    payload_of,
    policy,
    require_int,
    require_term,
    signer_of,
    stakes,
)
from buha.runtime.errors import (
    AboveMaxTerm,
    AlreadyMature,
    BelowMinStake,
    InsufficientBalance,
    InvalidPayload,
    InvalidTerm,
    NoPosition,
    PositionExists,
)

Json = Dict[str, Any]


def open_stake(state: Json, account: str, amount: int, term_days: int, *, now: int) -> Json:
    """Lock `amount` of the account's spendable balance for `term_days`.

    Check order: balance, minimum amount, term, existing position, reward headroom.
    """
    pol = policy(state)
    ledger = BalanceLedger(state)

    bal = ledger.balance_of(account)
    if amount > bal:
        raise InsufficientBalance("stake_exceeds_balance", {"account": account, "balance": bal, "amount": amount})
    if amount < pol.min_stake_amount:
        raise BelowMinStake("stake_below_minimum", {"amount": amount, "min_stake_amount": pol.min_stake_amount})
    if term_days > pol.max_stake_term_days:
        raise AboveMaxTerm("stake_term_above_max", {"term_days": term_days, "max": pol.max_stake_term_days})
    if term_days < 1:
        raise InvalidTerm("stake_term_below_min", {"term_days": term_days})

    registry = stakes(state)
    if account in registry:
        raise PositionExists("stake_already_active", {"account": account})
    if pol.stake_full_reward(amount, term_days) > ledger.headroom():
        raise InvalidPayload("reward_overflows_supply", {"amount": amount, "term_days": term_days})

    ledger.debit(account, amount)
    pos = StakePosition.open(amount=amount, term_days=term_days, now=now)
    registry[account] = pos.to_json()
    bump_counter(state, "active_stakes", +1)
    bump_counter(state, "total_staked", +amount)

    return events.staked(account, amount, term_days)


def _take_position(state: Json, account: str) -> StakePosition:
    rec = stakes(state).get(account)
    if not isinstance(rec, dict):
        raise NoPosition("no_active_stake", {"account": account})
    return StakePosition.from_json(rec)


def close_stake(state: Json, account: str, *, now: int, early: bool = False) -> Json:
    """Return principal plus the time-proportional reward and clear the position."""
    pos = _take_position(state, account)
    if early and pos.is_mature(now):
        raise AlreadyMature("stake_already_mature", {"account": account, "maturity_at": pos.maturity_at, "now": now})

    ledger = BalanceLedger(state)
    reward = policy(state).stake_reward(pos.amount, pos.term_days, pos.elapsed(now))
    # Other positions may have consumed the headroom checked at open time.
    reward = min(reward, ledger.headroom())

    ledger.release(account, pos.amount)
    if reward:
        ledger.credit(account, reward)

    del stakes(state)[account]
    bump_counter(state, "active_stakes", -1)
    bump_counter(state, "total_staked", -pos.amount)

    return events.withdrawn(account, pos.amount, reward)


def _apply_stake(state: Json, env: Any, *, now: int) -> Json:
    account = signer_of(env)
    payload = payload_of(env)
    amount = require_int(payload, "amount")
    term_days = require_term(payload)
    ev = open_stake(state, account, amount, term_days, now=now)
    return {"applied": "STAKE", "amount": amount, "term_days": term_days, "events": [ev]}


def _apply_withdraw(state: Json, env: Any, *, now: int, early: bool) -> Json:
    account = signer_of(env)
    ev = close_stake(state, account, now=now, early=early)
    return {
        "applied": "STAKE_WITHDRAW_EARLY" if early else "STAKE_WITHDRAW",
        "principal": ev["principal"],
        "reward": ev["reward"],
        "events": [ev],
    }


STAKE_TX_TYPES: Set[str] = {
    "STAKE",
    "STAKE_WITHDRAW",
    "STAKE_WITHDRAW_EARLY",
}


def apply_stake(state: Json, env: Any, *, now: int) -> Optional[Json]:
    """
    Returns:
      - dict: applied result (events + receipt fields)
      - None: tx_type not in the stake domain
    """
    t = str(getattr(env, "tx_type", "") or "").strip().upper()
    if t not in STAKE_TX_TYPES:
        return None

    if t == "STAKE":
        return _apply_stake(state, env, now=now)

    if t == "STAKE_WITHDRAW":
        return _apply_withdraw(state, env, now=now, early=False)

    if t == "STAKE_WITHDRAW_EARLY":
        return _apply_withdraw(state, env, now=now, early=True)

    return None


__all__ = ["STAKE_TX_TYPES", "apply_stake", "close_stake", "open_stake"]
