# src/buha/runtime/state_invariants.py
from __future__ import annotations

"""State invariants / normalization helpers.

Accrual state is a nested JSON-like dict mutated deterministically by the
apply_* modules. This module is the single place that:

  - validates the state is dict-like
  - ensures the core containers exist (so domain modules can rely on them)
  - re-derives the aggregate counters by a full scan and compares them with the
    incrementally maintained values
"""

from collections.abc import MutableMapping
from typing import Any, Dict

from buha.ledger.balances import ensure_token_root
from buha.runtime.errors import InvariantViolation

Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _require_dict(st: Json, key: str) -> Json:
    v = st.get(key)
    if v is None:
        v = {}
        st[key] = v
    elif not isinstance(v, dict):
        # Fail closed: do not attempt to coerce arbitrary types.
        raise TypeError(f"state[{key!r}] must be dict, got {type(v)}")
    return v


def ensure_state(st: Any) -> Json:
    """Ensure `st` is a dict and contains the core keys.

    Returns the (possibly mutated) dict.

    Raises:
        TypeError: if st is not a MutableMapping
    """
    if not isinstance(st, MutableMapping):
        raise TypeError(f"state must be MutableMapping, got {type(st)}")

    _require_dict(st, "accounts")  # type: ignore[arg-type]
    ensure_token_root(st)  # type: ignore[arg-type]

    accrual = _require_dict(st, "accrual")  # type: ignore[arg-type]
    for key in ("mints", "stakes", "burns"):
        _require_dict(accrual, key)
    counters = _require_dict(accrual, "counters")
    counters.setdefault("active_minters", 0)
    counters.setdefault("active_stakes", 0)
    counters.setdefault("total_staked", 0)

    params = _require_dict(st, "params")  # type: ignore[arg-type]
    params.setdefault("policy", {})
    params.setdefault("policy_version", 1)
    params.setdefault("upgraders", [])

    return st  # type: ignore[return-value]


def scan_aggregates(st: Json) -> Json:
    """Derive the aggregate counters from the per-account registries."""
    accrual = st.get("accrual") if isinstance(st.get("accrual"), dict) else {}
    mints = accrual.get("mints") if isinstance(accrual.get("mints"), dict) else {}
    stakes = accrual.get("stakes") if isinstance(accrual.get("stakes"), dict) else {}

    total_staked = 0
    for rec in stakes.values():
        if isinstance(rec, dict):
            total_staked += _as_int(rec.get("amount"), 0)

    return {
        "active_minters": sum(1 for rec in mints.values() if isinstance(rec, dict)),
        "active_stakes": sum(1 for rec in stakes.values() if isinstance(rec, dict)),
        "total_staked": int(total_staked),
    }


def recount_aggregates(st: Json) -> Json:
    """Overwrite the stored counters with a full-scan recount. Returns them."""
    ensure_state(st)
    fresh = scan_aggregates(st)
    st["accrual"]["counters"] = dict(fresh)
    return fresh


def check_invariants(st: Json) -> None:
    """Raise InvariantViolation if counters or supply accounting drifted."""
    ensure_state(st)
    stored = st["accrual"]["counters"]
    fresh = scan_aggregates(st)
    for key, want in fresh.items():
        have = _as_int(stored.get(key), -1)
        if have != want:
            raise InvariantViolation(f"counter {key} drifted: stored={have} scanned={want}")

    token = st["token"]
    locked = _as_int(token.get("locked"), 0)
    if locked != fresh["total_staked"]:
        raise InvariantViolation(f"locked pool {locked} != total staked {fresh['total_staked']}")

    balances = 0
    for aid, acct in st["accounts"].items():
        if not isinstance(acct, dict):
            raise InvariantViolation(f"account {aid!r} has bad shape")
        bal = _as_int(acct.get("balance"), 0)
        if bal < 0:
            raise InvariantViolation(f"account {aid!r} has negative balance {bal}")
        balances += bal

    supply = _as_int(token.get("total_supply"), 0)
    if supply != balances + locked:
        raise InvariantViolation(f"total_supply {supply} != balances {balances} + locked {locked}")

    for aid, burned in st["accrual"]["burns"].items():
        if _as_int(burned, -1) < 0:
            raise InvariantViolation(f"burn total for {aid!r} is negative")


__all__ = ["check_invariants", "ensure_state", "recount_aggregates", "scan_aggregates"]
