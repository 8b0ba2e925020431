# src/buha/runtime/apply/upgrade.py
from __future__ import annotations

"""Privileged upgrade path.

An upgrade swaps the engine's reward policy while every registry, counter and
balance stays in place. Only holders of the upgrade role may upgrade or change
the role set; no accrual operation consults the role.
"""

from typing import Any, Dict, Optional, Set

from buha.ledger.rewards import RewardPolicy
from buha.runtime import events
from buha.runtime.apply.common import _as_dict, _as_int, payload_of, policy, require_account, signer_of, upgraders
from buha.runtime.errors import ApplyError, InvalidPayload, Unauthorized

Json = Dict[str, Any]


def has_upgrade_role(state: Json, account: str) -> bool:
    a = str(account or "").strip()
    return bool(a) and a in upgraders(state)


def _require_upgrade_role(state: Json, account: str, tx_type: str) -> None:
    if not has_upgrade_role(state, account):
        raise Unauthorized("upgrade_role_required", {"account": account, "tx_type": tx_type})


def upgrade_policy(state: Json, account: str, overrides: Json) -> Json:
    _require_upgrade_role(state, account, "POLICY_UPGRADE")

    if not overrides:
        raise InvalidPayload("missing_policy", {})
    try:
        new_policy: RewardPolicy = policy(state).with_overrides(overrides)
        new_policy.validate()
    except ValueError as e:
        raise InvalidPayload("bad_policy", {"error": str(e)})

    params = state["params"]
    params["policy"] = new_policy.to_json()
    params["policy_version"] = _as_int(params.get("policy_version"), 1) + 1
    return events.policy_upgraded(account, params["policy_version"])


def grant_upgrade_role(state: Json, account: str, grantee: str) -> Json:
    _require_upgrade_role(state, account, "UPGRADE_ROLE_GRANT")
    holders = upgraders(state)
    if grantee in holders:
        raise ApplyError("invalid_state", "role_already_held", {"account": grantee})
    holders.append(grantee)
    holders.sort()
    return events.upgrade_role_granted(account, grantee)


def revoke_upgrade_role(state: Json, account: str, revokee: str) -> Json:
    _require_upgrade_role(state, account, "UPGRADE_ROLE_REVOKE")
    holders = upgraders(state)
    if revokee not in holders:
        raise ApplyError("not_found", "role_not_held", {"account": revokee})
    if len(holders) == 1:
        raise ApplyError("invalid_state", "cannot_revoke_last_upgrader", {"account": revokee})
    holders.remove(revokee)
    return events.upgrade_role_revoked(account, revokee)


def _apply_policy_upgrade(state: Json, env: Any) -> Json:
    account = signer_of(env)
    overrides = _as_dict(payload_of(env).get("policy"))
    ev = upgrade_policy(state, account, overrides)
    return {"applied": "POLICY_UPGRADE", "policy_version": ev["policy_version"], "events": [ev]}


def _apply_role_grant(state: Json, env: Any) -> Json:
    account = signer_of(env)
    grantee = require_account(payload_of(env), "account")
    ev = grant_upgrade_role(state, account, grantee)
    return {"applied": "UPGRADE_ROLE_GRANT", "account": grantee, "events": [ev]}


def _apply_role_revoke(state: Json, env: Any) -> Json:
    account = signer_of(env)
    revokee = require_account(payload_of(env), "account")
    ev = revoke_upgrade_role(state, account, revokee)
    return {"applied": "UPGRADE_ROLE_REVOKE", "account": revokee, "events": [ev]}


UPGRADE_TX_TYPES: Set[str] = {
    "POLICY_UPGRADE",
    "UPGRADE_ROLE_GRANT",
    "UPGRADE_ROLE_REVOKE",
}


def apply_upgrade(state: Json, env: Any, *, now: int) -> Optional[Json]:
    t = str(getattr(env, "tx_type", "") or "").strip().upper()
    if t not in UPGRADE_TX_TYPES:
        return None

    if t == "POLICY_UPGRADE":
        return _apply_policy_upgrade(state, env)

    if t == "UPGRADE_ROLE_GRANT":
        return _apply_role_grant(state, env)

    if t == "UPGRADE_ROLE_REVOKE":
        return _apply_role_revoke(state, env)

    return None


__all__ = [
    "UPGRADE_TX_TYPES",
    "apply_upgrade",
    "grant_upgrade_role",
    "has_upgrade_role",
    "revoke_upgrade_role",
    "upgrade_policy",
]
