# src/buha/runtime/apply/token.py
from __future__ import annotations

from typing import Any, Dict, Optional, Set

from buha.ledger.balances import BalanceLedger
from buha.runtime import events
from buha.runtime.apply.common import _as_int, burns, payload_of, require_account, require_int, signer_of

Json = Dict[str, Any]


def burn(state: Json, account: str, amount: int) -> Json:
    """Destroy spendable balance and record it in the account's burn total.

    Positions are untouched; only spendable balance can be burned.
    """
    BalanceLedger(state).burn(account, amount)
    registry = burns(state)
    registry[account] = _as_int(registry.get(account), 0) + int(amount)
    return events.burned(account, amount)


def _apply_token_burn(state: Json, env: Any) -> Json:
    account = signer_of(env)
    amount = require_int(payload_of(env), "amount")
    ev = burn(state, account, amount)
    return {"applied": "TOKEN_BURN", "amount": amount, "burned_total": burns(state)[account], "events": [ev]}


def _apply_token_transfer(state: Json, env: Any) -> Json:
    frm = signer_of(env)
    payload = payload_of(env)
    to = require_account(payload, "to", "target", "account")
    amount = require_int(payload, "amount")
    BalanceLedger(state).transfer(frm, to, amount)
    return {"applied": "TOKEN_TRANSFER", "from": frm, "to": to, "amount": amount, "events": [events.transfer(frm, to, amount)]}


def _apply_token_approve(state: Json, env: Any) -> Json:
    owner = signer_of(env)
    payload = payload_of(env)
    spender = require_account(payload, "spender")
    amount = require_int(payload, "amount")
    BalanceLedger(state).approve(owner, spender, amount)
    return {"applied": "TOKEN_APPROVE", "spender": spender, "amount": amount, "events": [events.approval(owner, spender, amount)]}


def _apply_token_transfer_from(state: Json, env: Any) -> Json:
    spender = signer_of(env)
    payload = payload_of(env)
    frm = require_account(payload, "from", "owner")
    to = require_account(payload, "to", "target")
    amount = require_int(payload, "amount")
    BalanceLedger(state).transfer_from(spender, frm, to, amount)
    return {
        "applied": "TOKEN_TRANSFER_FROM",
        "from": frm,
        "to": to,
        "amount": amount,
        "events": [events.transfer(frm, to, amount)],
    }


TOKEN_TX_TYPES: Set[str] = {
    "TOKEN_BURN",
    "TOKEN_TRANSFER",
    "TOKEN_APPROVE",
    "TOKEN_TRANSFER_FROM",
}


def apply_token(state: Json, env: Any, *, now: int) -> Optional[Json]:
    t = str(getattr(env, "tx_type", "") or "").strip().upper()
    if t not in TOKEN_TX_TYPES:
        return None

    if t == "TOKEN_BURN":
        return _apply_token_burn(state, env)

    if t == "TOKEN_TRANSFER":
        return _apply_token_transfer(state, env)

    if t == "TOKEN_APPROVE":
        return _apply_token_approve(state, env)

    if t == "TOKEN_TRANSFER_FROM":
        return _apply_token_transfer_from(state, env)

    return None


__all__ = ["TOKEN_TX_TYPES", "apply_token", "burn"]
