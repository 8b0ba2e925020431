# src/buha/runtime/apply/mint.py
from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Set, Tuple

from buha.ledger.balances import BalanceLedger
from buha.ledger.constants import SECONDS_PER_DAY
from buha.ledger.types import MintPosition
from buha.runtime import events
from buha.runtime.apply.common import (
    bump_counter,
    mints,
    payload_of,
    policy,
    require_int,
    require_term,
    signer_of,
)
from buha.runtime.apply.stake import open_stake
from buha.runtime.errors import AlreadyMature, InvalidPayload, InvalidTerm, NoPosition, NotMature, PositionExists

Json = Dict[str, Any]


def start_mint(state: Json, account: str, term_days: int, *, now: int) -> Json:
    pol = policy(state)
    if term_days < 1 or term_days > pol.max_mint_term_days:
        raise InvalidTerm(
            "mint_term_out_of_range",
            {"term_days": term_days, "min": 1, "max": pol.max_mint_term_days},
        )

    registry = mints(state)
    if account in registry:
        raise PositionExists("mint_already_active", {"account": account})
    if pol.mint_full_reward(term_days) > BalanceLedger(state).headroom():
        raise InvalidPayload("reward_overflows_supply", {"term_days": term_days})

    pos = MintPosition.open(term_days=term_days, now=now)
    registry[account] = pos.to_json()
    bump_counter(state, "active_minters", +1)

    return events.mint_started(account, pos.term_days, pos.maturity_at)


def _take_position(state: Json, account: str) -> MintPosition:
    rec = mints(state).get(account)
    if not isinstance(rec, dict):
        raise NoPosition("no_active_mint", {"account": account})
    return MintPosition.from_json(rec)


def _settle(state: Json, account: str, reward: int) -> Json:
    ledger = BalanceLedger(state)
    reward = min(reward, ledger.headroom())
    if reward:
        ledger.credit(account, reward)
    del mints(state)[account]
    bump_counter(state, "active_minters", -1)
    return events.claimed(account, reward)


def claim(state: Json, account: str, *, now: int) -> Tuple[int, Json]:
    """Pay the full-term reward for a matured mint. Returns (reward, event)."""
    pos = _take_position(state, account)
    if not pos.is_mature(now):
        raise NotMature("mint_not_mature", {"account": account, "maturity_at": pos.maturity_at, "now": now})

    reward = policy(state).mint_reward(pos.term_days, pos.term_days * SECONDS_PER_DAY, matured=True)
    ev = _settle(state, account, reward)
    return ev["reward"], ev


def claim_early(state: Json, account: str, *, now: int) -> Tuple[int, Json]:
    """Pay the penalised pro-rata reward for an immature mint. Returns (reward, event)."""
    pos = _take_position(state, account)
    if pos.is_mature(now):
        raise AlreadyMature("mint_already_mature", {"account": account, "maturity_at": pos.maturity_at, "now": now})

    reward = policy(state).mint_reward(pos.term_days, pos.elapsed(now), matured=False)
    ev = _settle(state, account, reward)
    return ev["reward"], ev


def claim_and_stake(state: Json, account: str, percentage: int, term_days: int, *, now: int) -> Tuple[int, int, List[Json]]:
    """Claim a matured mint and stake `percentage`% of the fresh reward.

    Both halves run against a private copy of the state; the caller's state is
    only replaced once the stake half has succeeded, so a failing stake also
    undoes the claim.

    Returns (reward, staked_amount, events).
    """
    if not 0 <= int(percentage) <= 100:
        raise InvalidPayload("percentage_out_of_range", {"percentage": percentage})

    working = copy.deepcopy(state)

    reward, ev_claim = claim(working, account, now=now)
    amount = reward * int(percentage) // 100
    ev_stake = open_stake(working, account, amount, term_days, now=now)

    state.clear()
    state.update(working)
    return reward, amount, [ev_claim, ev_stake]


def _apply_mint_start(state: Json, env: Any, *, now: int) -> Json:
    account = signer_of(env)
    term_days = require_term(payload_of(env))
    ev = start_mint(state, account, term_days, now=now)
    return {"applied": "MINT_START", "term_days": term_days, "maturity_at": ev["maturity_at"], "events": [ev]}


def _apply_mint_claim(state: Json, env: Any, *, now: int) -> Json:
    reward, ev = claim(state, signer_of(env), now=now)
    return {"applied": "MINT_CLAIM", "reward": reward, "events": [ev]}


def _apply_mint_claim_early(state: Json, env: Any, *, now: int) -> Json:
    reward, ev = claim_early(state, signer_of(env), now=now)
    return {"applied": "MINT_CLAIM_EARLY", "reward": reward, "events": [ev]}


def _apply_mint_claim_and_stake(state: Json, env: Any, *, now: int) -> Json:
    account = signer_of(env)
    payload = payload_of(env)
    percentage = require_int(payload, "percentage", minimum=0, maximum=100)
    term_days = require_term(payload)
    reward, amount, evs = claim_and_stake(state, account, percentage, term_days, now=now)
    return {
        "applied": "MINT_CLAIM_AND_STAKE",
        "reward": reward,
        "staked": amount,
        "term_days": term_days,
        "events": evs,
    }


MINT_TX_TYPES: Set[str] = {
    "MINT_START",
    "MINT_CLAIM",
    "MINT_CLAIM_EARLY",
    "MINT_CLAIM_AND_STAKE",
}


def apply_mint(state: Json, env: Any, *, now: int) -> Optional[Json]:
    """
    Returns:
      - dict: applied result (events + receipt fields)
      - None: tx_type not in the mint domain
    """
    t = str(getattr(env, "tx_type", "") or "").strip().upper()
    if t not in MINT_TX_TYPES:
        return None

    if t == "MINT_START":
        return _apply_mint_start(state, env, now=now)

    if t == "MINT_CLAIM":
        return _apply_mint_claim(state, env, now=now)

    if t == "MINT_CLAIM_EARLY":
        return _apply_mint_claim_early(state, env, now=now)

    if t == "MINT_CLAIM_AND_STAKE":
        return _apply_mint_claim_and_stake(state, env, now=now)

    return None


__all__ = ["MINT_TX_TYPES", "apply_mint", "claim", "claim_and_stake", "claim_early", "start_mint"]
