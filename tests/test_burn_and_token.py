from __future__ import annotations

import pytest

from buha.ledger.balances import BalanceLedger
from buha.ledger.migrations import migrate_state_dict
from buha.ledger.state import AccrualView
from buha.runtime.domain_apply import apply_tx
from buha.runtime.errors import ExceedsBalance, InsufficientAllowance, InsufficientBalance, InvalidPayload

T0 = 1_700_000_000


def _funded(**balances: int) -> dict:
    st = migrate_state_dict({})
    led = BalanceLedger(st)
    for acct, amt in balances.items():
        led.credit(acct, amt)
    return st


def _tx(tx_type: str, signer: str, **payload) -> dict:
    return {"tx_type": tx_type, "signer": signer, "payload": payload}


def test_burn_records_total_and_reduces_supply() -> None:
    st = _funded(alice=1_000)
    meta = apply_tx(st, _tx("TOKEN_BURN", "alice", amount=300), now=T0)
    assert meta["burned_total"] == 300
    assert meta["events"] == [{"event": "Burned", "account": "alice", "amount": 300}]

    apply_tx(st, _tx("TOKEN_BURN", "alice", amount=200), now=T0)
    view = AccrualView.from_state(st)
    assert view.user_burns("alice") == 500
    assert view.balance_of("alice") == 500
    assert view.total_supply() == 500
    assert view.user_burns("bob") == 0


def test_burn_exceeding_balance_rejected_without_side_effects() -> None:
    st = _funded(alice=10)
    with pytest.raises(ExceedsBalance):
        apply_tx(st, _tx("TOKEN_BURN", "alice", amount=11), now=T0)
    view = AccrualView.from_state(st)
    assert view.user_burns("alice") == 0
    assert view.total_supply() == 10


def test_burn_entire_balance() -> None:
    st = _funded(alice=250)
    apply_tx(st, _tx("TOKEN_BURN", "alice", amount=250), now=T0)
    view = AccrualView.from_state(st)
    assert view.balance_of("alice") == 0
    assert view.user_burns("alice") == 250
    assert view.total_supply() == 0


def test_burn_zero_is_allowed() -> None:
    st = _funded(alice=10)
    meta = apply_tx(st, _tx("TOKEN_BURN", "alice", amount=0), now=T0)
    assert meta["burned_total"] == 0


def test_staked_principal_cannot_be_burned() -> None:
    st = _funded(alice=100)
    apply_tx(st, _tx("STAKE", "alice", amount=80, term_days=10), now=T0)
    with pytest.raises(ExceedsBalance):
        apply_tx(st, _tx("TOKEN_BURN", "alice", amount=21), now=T0)


def test_transfer_approve_transfer_from() -> None:
    st = _funded(alice=100)
    meta = apply_tx(st, _tx("TOKEN_TRANSFER", "alice", to="bob", amount=40), now=T0)
    assert meta["events"][0] == {"event": "Transfer", "account": "alice", "from": "alice", "to": "bob", "amount": 40}

    apply_tx(st, _tx("TOKEN_APPROVE", "alice", spender="carol", amount=25), now=T0)
    assert AccrualView.from_state(st).allowance("alice", "carol") == 25

    apply_tx(st, _tx("TOKEN_TRANSFER_FROM", "carol", **{"from": "alice", "to": "dave", "amount": 20}), now=T0)
    view = AccrualView.from_state(st)
    assert view.balance_of("alice") == 40
    assert view.balance_of("bob") == 40
    assert view.balance_of("dave") == 20
    assert view.allowance("alice", "carol") == 5

    with pytest.raises(InsufficientAllowance):
        apply_tx(st, _tx("TOKEN_TRANSFER_FROM", "carol", **{"from": "alice", "to": "dave", "amount": 6}), now=T0)
    with pytest.raises(InsufficientBalance):
        apply_tx(st, _tx("TOKEN_TRANSFER", "bob", to="alice", amount=41), now=T0)


@pytest.mark.parametrize(
    "payload",
    [
        {},
        {"amount": "ten"},
        {"amount": -1},
        {"amount": True},
        {"amount": 2**256},
    ],
)
def test_burn_payload_validation(payload: dict) -> None:
    st = _funded(alice=10)
    with pytest.raises(InvalidPayload):
        apply_tx(st, {"tx_type": "TOKEN_BURN", "signer": "alice", "payload": payload}, now=T0)


def test_transfer_requires_recipient() -> None:
    st = _funded(alice=10)
    with pytest.raises(InvalidPayload):
        apply_tx(st, _tx("TOKEN_TRANSFER", "alice", amount=1), now=T0)
