from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from buha.ledger.constants import SECONDS_PER_DAY, UNIT
from buha.runtime.clock import ManualClock
from buha.runtime.executor import AccrualExecutor

T0 = 1_700_000_000


@pytest.fixture()
def env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BUHA_MODE", "dev")
    monkeypatch.delenv("BUHA_ALLOW_UNSIGNED_TXS", raising=False)
    monkeypatch.setenv("BUHA_METRICS_ENABLED", "1")

    from buha.api.app import create_app

    clock = ManualClock(T0)
    ex = AccrualExecutor(
        db_path=str(tmp_path / "api.db"),
        clock=clock,
        upgraders=("admin",),
        genesis_balances={"alice": 1_000 * UNIT},
    )
    app = create_app(boot_runtime=False)
    app.state.executor = ex
    with TestClient(app) as client:
        yield SimpleNamespace(client=client, clock=clock, ex=ex)


def _tx(client: TestClient, tx_type: str, signer: str, **payload):
    return client.post("/v1/tx", json={"tx_type": tx_type, "signer": signer, "payload": payload})


def test_health_and_token(env) -> None:
    r = env.client.get("/v1/health")
    assert r.status_code == 200
    assert r.json()["ready"] is True
    assert "x-request-id" in r.headers

    tok = env.client.get("/v1/token").json()
    assert tok["name"] == "BuhaToken"
    assert tok["symbol"] == "BUHA"
    assert tok["decimals"] == 18
    assert tok["total_supply"] == str(1_000 * UNIT)
    assert tok["policy_version"] == 1


def test_mint_lifecycle_over_http(env) -> None:
    r = _tx(env.client, "MINT_START", "alice", term_days=10)
    assert r.status_code == 200, r.text
    body = r.json()
    assert body["ok"] is True
    assert body["events"][0]["event"] == "MintStarted"

    acct = env.client.get("/v1/accounts/alice").json()
    assert acct["mint"]["term_days"] == 10
    assert acct["stake"] is None

    env.clock.advance_days(10)
    r = _tx(env.client, "MINT_CLAIM", "alice")
    assert r.status_code == 200
    assert r.json()["reward"] > 0

    evs = env.client.get("/v1/events", params={"since": 0}).json()
    assert [e["event"] for e in evs["events"]] == ["MintStarted", "Claimed"]
    assert evs["next_since"] == 2


@pytest.mark.parametrize(
    "tx_type,payload,status,code",
    [
        ("MINT_CLAIM", {}, 404, "no_position"),
        ("MINT_START", {"term_days": 0}, 400, "invalid_term"),
        ("STAKE", {"amount": 10**40, "term_days": 5}, 400, "insufficient_balance"),
        ("POLICY_UPGRADE", {"policy": {"stake_apr_bps": 1}}, 403, "unauthorized"),
        ("TOKEN_BURN", {"amount": "lots"}, 400, "invalid_payload"),
    ],
)
def test_apply_errors_map_to_http(env, tx_type: str, payload: dict, status: int, code: str) -> None:
    r = _tx(env.client, tx_type, "alice", **payload)
    assert r.status_code == status
    body = r.json()
    assert body["ok"] is False
    assert body["error"]["code"] == code


def test_conflicts_are_409(env) -> None:
    assert _tx(env.client, "STAKE", "alice", amount=UNIT, term_days=5).status_code == 200
    r = _tx(env.client, "STAKE", "alice", amount=UNIT, term_days=5)
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "position_exists"

    env.clock.advance(5 * SECONDS_PER_DAY)
    r = _tx(env.client, "STAKE_WITHDRAW_EARLY", "alice")
    assert r.status_code == 409
    assert r.json()["error"]["code"] == "already_mature"


def test_unknown_tx_type_rejected(env) -> None:
    r = _tx(env.client, "MINT_EVERYTHING", "alice")
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "unknown_tx_type"


def test_allowance_and_transfer(env) -> None:
    assert _tx(env.client, "TOKEN_APPROVE", "alice", spender="bob", amount=7).status_code == 200
    r = env.client.get("/v1/accounts/alice/allowance/bob").json()
    assert r["allowance"] == "7"

    assert _tx(env.client, "TOKEN_TRANSFER_FROM", "bob", **{"from": "alice", "to": "bob", "amount": 7}).status_code == 200
    assert env.client.get("/v1/accounts/bob").json()["balance"] == "7"


def test_events_filter_by_account(env) -> None:
    _tx(env.client, "TOKEN_BURN", "alice", amount=1)
    _tx(env.client, "TOKEN_TRANSFER", "alice", to="bob", amount=5)
    _tx(env.client, "TOKEN_BURN", "bob", amount=1)
    evs = env.client.get("/v1/events", params={"account": "bob"}).json()["events"]
    assert [e["event"] for e in evs] == ["Burned"]


def test_metrics_exposed_when_enabled(env) -> None:
    _tx(env.client, "MINT_START", "alice", term_days=1)
    r = env.client.get("/v1/metrics")
    assert r.status_code == 200
    assert "buha_tx_applied 1" in r.text
    assert "buha_active_minters 1" in r.text


def test_tx_submission_disabled_in_prod(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BUHA_MODE", "prod")
    monkeypatch.delenv("BUHA_ALLOW_UNSIGNED_TXS", raising=False)

    from buha.api.app import create_app

    app = create_app(boot_runtime=False)
    app.state.executor = AccrualExecutor(db_path=str(tmp_path / "p.db"), clock=ManualClock(T0), upgraders=("admin",))
    with TestClient(app) as client:
        r = _tx(client, "MINT_START", "alice", term_days=1)
        assert r.status_code == 403
        assert r.json()["error"]["code"] == "unsigned_tx_forbidden"

        # Reads stay available.
        assert client.get("/v1/token").status_code == 200
