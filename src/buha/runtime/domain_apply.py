# src/buha/runtime/domain_apply.py
# ---------------------------------------------------------------------------
# Public, stable import path for applying tx envelopes.
# ---------------------------------------------------------------------------

from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional

from buha.runtime.apply.mint import apply_mint
from buha.runtime.apply.stake import apply_stake
from buha.runtime.apply.token import apply_token
from buha.runtime.apply.upgrade import apply_upgrade
from buha.runtime.errors import ApplyError
from buha.runtime.state_invariants import ensure_state
from buha.runtime.supported_txs import SUPPORTED_TX_TYPES
from buha.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]
ApplyFn = Callable[..., Optional[Json]]

# Domain appliers (each returns Optional[Json]; returning None means "not claimed")
_APPLIERS: List[ApplyFn] = [
    apply_mint,
    apply_stake,
    apply_token,
    apply_upgrade,
]


def _tx_type(env: Any) -> str:
    if isinstance(env, dict):
        return str(env.get("tx_type") or "").strip().upper()
    return str(getattr(env, "tx_type", "") or "").strip().upper()


def apply_tx(state: Json, env: Any, *, now: int) -> Json:
    """Route one envelope to its domain applier.

    Mutates `state` in place. Callers that need all-or-nothing semantics use
    apply_tx_atomic().
    """
    ensure_state(state)
    env_norm = TxEnvelope.from_json(env) if isinstance(env, dict) else env

    t = _tx_type(env_norm)
    if not t:
        raise ApplyError("invalid_payload", "missing_tx_type", {})
    if t not in SUPPORTED_TX_TYPES:
        raise ApplyError("tx_unimplemented", "tx_type_not_implemented", {"tx_type": t})

    for fn in _APPLIERS:
        meta = fn(state, env_norm, now=int(now))
        if meta is not None:
            return meta

    raise ApplyError("tx_unimplemented", "tx_type_not_routed", {"tx_type": t})


def apply_tx_atomic(state: Json, env: Any, *, now: int) -> Json:
    """Apply a tx with fail-atomic semantics.

    On success:
      - state is updated as if apply_tx() ran directly.

    On ApplyError (or any other exception):
      - state remains unchanged.
    """
    snapshot = copy.deepcopy(state)

    meta = apply_tx(snapshot, env, now=now)

    # Commit by replacing contents in-place so callers holding references
    # to `state` see the updated view.
    state.clear()
    state.update(snapshot)
    return meta


__all__ = ["ApplyError", "apply_tx", "apply_tx_atomic", "Json"]
