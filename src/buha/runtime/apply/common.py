# src/buha/runtime/apply/common.py
from __future__ import annotations

"""Shared registry accessors and payload parsing for the accrual appliers."""

from typing import Any, Dict, List

from buha.ledger.constants import MAX_UINT256
from buha.ledger.rewards import RewardPolicy
from buha.runtime.errors import InvalidPayload
from buha.runtime.state_invariants import ensure_state

Json = Dict[str, Any]


def _as_str(v: Any) -> str:
    return str(v).strip() if isinstance(v, (str, int)) and not isinstance(v, bool) else ""


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


# ----------------------------
# Registries
# ----------------------------


def accrual_root(state: Json) -> Json:
    ensure_state(state)
    return state["accrual"]


def mints(state: Json) -> Json:
    return accrual_root(state)["mints"]


def stakes(state: Json) -> Json:
    return accrual_root(state)["stakes"]


def burns(state: Json) -> Json:
    return accrual_root(state)["burns"]


def counters(state: Json) -> Json:
    return accrual_root(state)["counters"]


def bump_counter(state: Json, key: str, delta: int) -> int:
    c = counters(state)
    v = _as_int(c.get(key), 0) + int(delta)
    if v < 0:
        # Counters mirror registry contents; going negative means the registry
        # and the counter were mutated out of step.
        raise ValueError(f"counter underflow: {key}={v}")
    c[key] = v
    return v


def policy(state: Json) -> RewardPolicy:
    ensure_state(state)
    return RewardPolicy.from_json(state["params"].get("policy"))


def upgraders(state: Json) -> List[str]:
    ensure_state(state)
    raw = state["params"].get("upgraders")
    if not isinstance(raw, list):
        raw = []
        state["params"]["upgraders"] = raw
    return raw


# ----------------------------
# Envelope / payload parsing
# ----------------------------


def signer_of(env: Any) -> str:
    s = _as_str(getattr(env, "signer", ""))
    if not s:
        raise InvalidPayload("missing_signer", {"tx_type": getattr(env, "tx_type", "")})
    return s


def payload_of(env: Any) -> Json:
    return _as_dict(getattr(env, "payload", None))


def _parse_int(payload: Json, key: str) -> int:
    if key not in payload:
        raise InvalidPayload(f"missing_{key}", {"field": key})
    raw = payload.get(key)
    if isinstance(raw, bool):
        raise InvalidPayload(f"bad_{key}", {"field": key, "value": raw})
    if isinstance(raw, str):
        s = raw.strip()
        if not s.lstrip("-").isdigit():
            raise InvalidPayload(f"bad_{key}", {"field": key, "value": raw})
        try:
            raw = int(s)
        except ValueError:
            # digit strings past the interpreter int-conversion limit
            raise InvalidPayload(f"bad_{key}", {"field": key, "value": s[:32]})
    if not isinstance(raw, int):
        raise InvalidPayload(f"bad_{key}", {"field": key, "value": raw})
    return int(raw)


def require_int(payload: Json, key: str, *, minimum: int = 0, maximum: int = MAX_UINT256) -> int:
    raw = _parse_int(payload, key)
    if raw < minimum or raw > maximum:
        raise InvalidPayload(f"{key}_out_of_range", {"field": key, "value": raw, "min": minimum, "max": maximum})
    return int(raw)


def require_term(payload: Json, key: str = "term_days") -> int:
    """Parse a term; range checks belong to the domain so they raise domain errors."""
    return _parse_int(payload, key)


def require_account(payload: Json, *keys: str) -> str:
    for k in keys:
        s = _as_str(payload.get(k))
        if s:
            return s
    raise InvalidPayload(f"missing_{keys[0]}", {"fields": list(keys)})
