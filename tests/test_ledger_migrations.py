from __future__ import annotations

import copy

import pytest

from buha.ledger.migrations import CURRENT_STATE_VERSION, migrate_state_dict


def _assert_minimal_shape(st: dict) -> None:
    assert isinstance(st, dict)
    assert st.get("state_version") == CURRENT_STATE_VERSION

    assert isinstance(st.get("seq"), int)
    assert isinstance(st.get("last_ts"), int)
    assert isinstance(st.get("accounts"), dict)

    token = st.get("token")
    assert isinstance(token, dict)
    assert token["symbol"] == "BUHA"
    assert isinstance(token.get("total_supply"), int)
    assert isinstance(token.get("locked"), int)

    accrual = st.get("accrual")
    assert isinstance(accrual, dict)
    for key in ("mints", "stakes", "burns", "counters"):
        assert isinstance(accrual.get(key), dict)

    params = st.get("params")
    assert isinstance(params, dict)
    assert isinstance(params.get("policy_version"), int)
    assert isinstance(params.get("upgraders"), list)


def test_migrate_non_dict_input_yields_current_skeleton() -> None:
    st = migrate_state_dict(None)
    _assert_minimal_shape(st)


def test_migrate_empty_dict_is_upgraded() -> None:
    st = migrate_state_dict({})
    _assert_minimal_shape(st)
    assert st["accrual"]["counters"] == {"active_minters": 0, "active_stakes": 0, "total_staked": 0}


def test_migrate_normalizes_bad_shapes() -> None:
    raw = {
        "seq": "7",
        "accounts": {"alice": "garbage", "bob": {"balance": "12"}},
        "accrual": {"mints": [], "counters": {"active_minters": "0"}},
        "params": {"upgraders": "admin"},
    }
    st = migrate_state_dict(raw)
    _assert_minimal_shape(st)
    assert st["seq"] == 7
    assert st["accounts"]["alice"] == {"balance": 0, "allowances": {}}
    assert st["accounts"]["bob"]["balance"] == 12
    assert st["params"]["upgraders"] == []


def test_migrate_current_version_is_idempotent() -> None:
    st = migrate_state_dict({})
    again = migrate_state_dict(copy.deepcopy(st))
    assert again == st


def test_migrate_refuses_future_version() -> None:
    with pytest.raises(ValueError):
        migrate_state_dict({"state_version": CURRENT_STATE_VERSION + 1})
