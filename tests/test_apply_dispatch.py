from __future__ import annotations

import copy

import pytest

from buha.ledger.migrations import migrate_state_dict
from buha.runtime.domain_apply import apply_tx, apply_tx_atomic
from buha.runtime.errors import ApplyError, InvalidPayload
from buha.runtime.supported_txs import SUPPORTED_TX_TYPES, is_supported, supported_sorted
from buha.runtime.tx_types import TxEnvelope

T0 = 1_700_000_000


def test_missing_tx_type_fails_closed() -> None:
    with pytest.raises(ApplyError) as ei:
        apply_tx(migrate_state_dict({}), {"signer": "alice"}, now=T0)
    assert ei.value.code == "invalid_payload"


def test_unknown_tx_type_fails_closed() -> None:
    with pytest.raises(ApplyError) as ei:
        apply_tx(migrate_state_dict({}), {"tx_type": "MINT_EVERYTHING", "signer": "alice"}, now=T0)
    assert ei.value.code == "tx_unimplemented"


def test_missing_signer_rejected() -> None:
    with pytest.raises(InvalidPayload):
        apply_tx(migrate_state_dict({}), {"tx_type": "MINT_START", "payload": {"term_days": 1}}, now=T0)


def test_envelope_objects_and_lowercase_types_are_accepted() -> None:
    st = migrate_state_dict({})
    meta = apply_tx(st, TxEnvelope(tx_type="mint_start", signer="alice", payload={"term_days": 3}), now=T0)
    assert meta["applied"] == "MINT_START"


def test_atomic_apply_leaves_state_untouched_on_error() -> None:
    st = migrate_state_dict({})
    apply_tx_atomic(st, {"tx_type": "MINT_START", "signer": "alice", "payload": {"term_days": 3}}, now=T0)
    before = copy.deepcopy(st)

    with pytest.raises(ApplyError):
        apply_tx_atomic(st, {"tx_type": "MINT_START", "signer": "alice", "payload": {"term_days": 3}}, now=T0)
    assert st == before


def test_supported_set_covers_every_domain() -> None:
    assert supported_sorted() == sorted(SUPPORTED_TX_TYPES)
    for t in ("MINT_START", "MINT_CLAIM_AND_STAKE", "STAKE_WITHDRAW_EARLY", "TOKEN_BURN", "POLICY_UPGRADE"):
        assert is_supported(t)
    assert is_supported(" token_transfer ")
    assert not is_supported("SYSTEM_HALT")
