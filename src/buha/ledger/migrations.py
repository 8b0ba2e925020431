# src/buha/ledger/migrations.py
from __future__ import annotations

from typing import Any, Callable, Dict

from buha.ledger.constants import TOKEN_DECIMALS, TOKEN_NAME, TOKEN_SYMBOL

Json = Dict[str, Any]

# Increment this when you add a new migration step.
CURRENT_STATE_VERSION = 1


def _as_int(v: Any, default: int = 0) -> int:
    try:
        if isinstance(v, bool):
            return default
        return int(v)
    except Exception:
        return default


def _ensure_dict(root: Json, key: str) -> Json:
    v = root.get(key)
    if not isinstance(v, dict):
        v = {}
        root[key] = v
    return v


def _ensure_list(root: Json, key: str) -> list:
    v = root.get(key)
    if not isinstance(v, list):
        v = []
        root[key] = v
    return v


def _ensure_int(root: Json, key: str, default: int = 0) -> int:
    if key not in root:
        root[key] = int(default)
        return int(default)
    x = _as_int(root.get(key), default)
    root[key] = int(x)
    return int(x)


def _migrate_v0_to_v1(st: Json) -> Json:
    """
    v0 -> v1: introduce explicit state_version and normalize the accrual roots.

    v0 characteristics:
      - no 'state_version'
      - may have missing roots or wrong shapes
    """
    _ensure_int(st, "seq", 0)
    _ensure_int(st, "last_ts", 0)

    accounts = _ensure_dict(st, "accounts")
    for aid, acct in list(accounts.items()):
        if not isinstance(acct, dict):
            accounts[aid] = {}
            acct = accounts[aid]
        _ensure_int(acct, "balance", 0)
        _ensure_dict(acct, "allowances")

    token = _ensure_dict(st, "token")
    token.setdefault("name", TOKEN_NAME)
    token.setdefault("symbol", TOKEN_SYMBOL)
    _ensure_int(token, "decimals", TOKEN_DECIMALS)
    _ensure_int(token, "total_supply", 0)
    _ensure_int(token, "locked", 0)

    accrual = _ensure_dict(st, "accrual")
    _ensure_dict(accrual, "mints")
    _ensure_dict(accrual, "stakes")
    _ensure_dict(accrual, "burns")
    counters = _ensure_dict(accrual, "counters")
    _ensure_int(counters, "active_minters", 0)
    _ensure_int(counters, "active_stakes", 0)
    _ensure_int(counters, "total_staked", 0)

    params = _ensure_dict(st, "params")
    _ensure_dict(params, "policy")
    _ensure_int(params, "policy_version", 1)
    _ensure_list(params, "upgraders")

    st["state_version"] = 1
    return st


_MIGRATIONS: Dict[int, Callable[[Json], Json]] = {
    0: _migrate_v0_to_v1,
}


def migrate_state_dict(raw: Any) -> Json:
    """
    Upgrade a raw persisted JSON dict to CURRENT_STATE_VERSION.

    - Best-effort: never raises for simple shape issues; it normalizes.
    - If raw isn't a dict, returns an empty vCURRENT state skeleton.
    """
    st: Json = raw if isinstance(raw, dict) else {}

    v = _as_int(st.get("state_version"), 0)
    if v > CURRENT_STATE_VERSION:
        # Future state created by a newer binary; refuse to downgrade silently.
        raise ValueError(
            f"Ledger state version {v} is newer than this binary supports (max {CURRENT_STATE_VERSION})."
        )

    while v < CURRENT_STATE_VERSION:
        step = _MIGRATIONS.get(v)
        if step is None:
            raise ValueError(f"No migration path from state_version={v} to {CURRENT_STATE_VERSION}.")
        st = step(st)
        v = _as_int(st.get("state_version"), v + 1)

    st["state_version"] = CURRENT_STATE_VERSION
    return st


__all__ = ["CURRENT_STATE_VERSION", "migrate_state_dict"]
