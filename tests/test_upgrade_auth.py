from __future__ import annotations

import pytest

from buha.ledger.migrations import migrate_state_dict
from buha.ledger.rewards import RewardPolicy
from buha.ledger.state import AccrualView
from buha.runtime.apply.upgrade import has_upgrade_role
from buha.runtime.domain_apply import apply_tx
from buha.runtime.errors import ApplyError, InvalidPayload, Unauthorized

T0 = 1_700_000_000


def _state(*upgraders: str) -> dict:
    st = migrate_state_dict({})
    st["params"]["upgraders"] = sorted(upgraders)
    return st


def _tx(tx_type: str, signer: str, **payload) -> dict:
    return {"tx_type": tx_type, "signer": signer, "payload": payload}


def test_policy_upgrade_requires_role() -> None:
    st = _state("admin")
    with pytest.raises(Unauthorized):
        apply_tx(st, _tx("POLICY_UPGRADE", "mallory", policy={"stake_apr_bps": 9_999}), now=T0)
    assert AccrualView.from_state(st).policy_version() == 1


def test_policy_upgrade_swaps_policy_and_keeps_storage() -> None:
    st = _state("admin")
    apply_tx(st, _tx("MINT_START", "alice", term_days=10), now=T0)

    meta = apply_tx(st, _tx("POLICY_UPGRADE", "admin", policy={"stake_apr_bps": 2_000}), now=T0 + 1)
    assert meta["policy_version"] == 2
    assert meta["events"] == [{"event": "PolicyUpgraded", "account": "admin", "policy_version": 2}]

    view = AccrualView.from_state(st)
    assert view.policy().stake_apr_bps == 2_000
    assert view.user_mints("alice") is not None
    assert view.active_minters() == 1


@pytest.mark.parametrize(
    "policy",
    [{}, {"max_mint_term_days": 0}, {"stake_apr_bps": "abc"}, {"stake_apr_bps": True}, {"stake_apr_bps": 1.5}],
)
def test_policy_upgrade_rejects_bad_policy(policy: dict) -> None:
    st = _state("admin")
    with pytest.raises(InvalidPayload):
        apply_tx(st, _tx("POLICY_UPGRADE", "admin", policy=policy), now=T0)
    view = AccrualView.from_state(st)
    assert view.policy_version() == 1
    assert view.policy().stake_apr_bps == RewardPolicy().stake_apr_bps


def test_grant_and_revoke_upgrade_role() -> None:
    st = _state("admin")
    apply_tx(st, _tx("UPGRADE_ROLE_GRANT", "admin", account="ops"), now=T0)
    assert has_upgrade_role(st, "ops")
    assert AccrualView.from_state(st).upgraders() == ["admin", "ops"]

    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _tx("UPGRADE_ROLE_GRANT", "admin", account="ops"), now=T0)
    assert ei.value.code == "invalid_state"

    apply_tx(st, _tx("UPGRADE_ROLE_REVOKE", "ops", account="admin"), now=T0)
    assert not has_upgrade_role(st, "admin")

    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _tx("UPGRADE_ROLE_REVOKE", "ops", account="admin"), now=T0)
    assert ei.value.code == "not_found"


def test_last_upgrader_cannot_be_revoked() -> None:
    st = _state("admin")
    with pytest.raises(ApplyError) as ei:
        apply_tx(st, _tx("UPGRADE_ROLE_REVOKE", "admin", account="admin"), now=T0)
    assert ei.value.code == "invalid_state"
    assert has_upgrade_role(st, "admin")


def test_non_holder_cannot_grant() -> None:
    st = _state("admin")
    with pytest.raises(Unauthorized):
        apply_tx(st, _tx("UPGRADE_ROLE_GRANT", "mallory", account="mallory"), now=T0)
