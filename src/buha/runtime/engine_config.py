from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from buha.ledger.constants import MAX_UINT256
from buha.ledger.rewards import RewardPolicy

Json = Dict[str, Any]


def _as_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_str(v: Any, default: str) -> str:
    if v is None:
        return str(default)
    s = str(v)
    return s if s.strip() else str(default)


def _as_accounts(v: Any, default: Tuple[str, ...]) -> Tuple[str, ...]:
    if v is None:
        return tuple(default)
    if isinstance(v, str):
        v = v.split(",")
    if not isinstance(v, (list, tuple)):
        return tuple(default)
    out = []
    for a in v:
        s = str(a).strip()
        if s and s not in out:
            out.append(s)
    return tuple(sorted(out))


def _as_allocations(v: Any) -> Dict[str, int]:
    if not isinstance(v, dict):
        return {}
    out: Dict[str, int] = {}
    for k, amt in v.items():
        s = str(k).strip()
        if s:
            out[s] = _as_int(amt, -1)
    return out


@dataclass(frozen=True)
class EngineConfig:
    mode: str  # "dev" | "testnet" | "prod"

    # Single SQLite DB file path for snapshot + event log.
    db_path: str
    # Process-level single-writer lock file ("" disables it).
    lock_path: str

    api_host: str
    api_port: int

    log_level: str

    # Accounts holding the upgrade role at genesis.
    upgraders: Tuple[str, ...] = ()
    # Initial spendable balances credited when the ledger is first created.
    genesis_balances: Dict[str, int] = field(default_factory=dict)
    policy: RewardPolicy = field(default_factory=RewardPolicy)


_ALLOWED_MODES = {"dev", "testnet", "prod"}


def validate_engine_config(cfg: EngineConfig) -> None:
    """Fail-fast validation for operator config.

    Prevent silent misconfiguration that could start the engine with an
    unusable policy or an unreachable API.
    """
    mode = str(cfg.mode or "").strip().lower()
    if mode not in _ALLOWED_MODES:
        raise ValueError(f"mode must be one of {_ALLOWED_MODES}; got: {cfg.mode!r}")

    if not isinstance(cfg.db_path, str) or not cfg.db_path.strip():
        raise ValueError("db_path must be a non-empty string")

    if int(cfg.api_port) <= 0 or int(cfg.api_port) > 65535:
        raise ValueError(f"api_port must be 1..65535; got: {cfg.api_port}")

    for acct, amt in cfg.genesis_balances.items():
        if int(amt) < 0 or int(amt) > MAX_UINT256:
            raise ValueError(f"genesis balance for {acct!r} must be 0..2**256-1; got: {amt}")
    if sum(int(a) for a in cfg.genesis_balances.values()) > MAX_UINT256:
        raise ValueError("genesis balances overflow the uint256 supply")

    if mode == "prod" and not cfg.upgraders:
        raise ValueError("prod mode requires at least one upgrader account")

    cfg.policy.validate()


def default_engine_config() -> EngineConfig:
    return EngineConfig(
        # Production-safe defaults.
        mode="prod",
        db_path="./data/buha.db",
        lock_path="./data/buha.lock",
        api_host="127.0.0.1",
        api_port=8080,
        log_level="INFO",
        upgraders=("admin",),
        genesis_balances={},
        policy=RewardPolicy(),
    )


def engine_config_from_json(raw: Any) -> EngineConfig:
    if not isinstance(raw, dict):
        raise ValueError("engine config must be a JSON object")

    d = default_engine_config()
    cfg = EngineConfig(
        mode=_as_str(raw.get("mode"), d.mode).strip().lower(),
        db_path=_as_str(raw.get("db_path"), d.db_path),
        lock_path=str(raw.get("lock_path", d.lock_path) or ""),
        api_host=_as_str(raw.get("api_host"), d.api_host),
        api_port=_as_int(raw.get("api_port"), d.api_port),
        log_level=_as_str(raw.get("log_level"), d.log_level).strip().upper(),
        upgraders=_as_accounts(raw.get("upgraders"), d.upgraders),
        genesis_balances=_as_allocations(raw.get("genesis_balances")),
        policy=d.policy.with_overrides(raw.get("policy")),
    )
    validate_engine_config(cfg)
    return cfg


def read_engine_config_file(path: str) -> EngineConfig:
    p = Path(path)
    raw = json.loads(p.read_text(encoding="utf-8"))
    return engine_config_from_json(raw)


def _apply_env_overrides(cfg: EngineConfig) -> EngineConfig:
    """BUHA_* environment variables win over file/default values."""
    env = os.environ
    upgraders = cfg.upgraders
    if env.get("BUHA_UPGRADERS") is not None:
        upgraders = _as_accounts(env.get("BUHA_UPGRADERS"), cfg.upgraders)

    out = EngineConfig(
        mode=_as_str(env.get("BUHA_MODE"), cfg.mode).strip().lower(),
        db_path=_as_str(env.get("BUHA_DB_PATH"), cfg.db_path),
        lock_path=str(env.get("BUHA_LOCK_PATH", cfg.lock_path) or ""),
        api_host=_as_str(env.get("BUHA_API_HOST"), cfg.api_host),
        api_port=_as_int(env.get("BUHA_API_PORT"), cfg.api_port),
        log_level=_as_str(env.get("BUHA_LOG_LEVEL"), cfg.log_level).strip().upper(),
        upgraders=upgraders,
        genesis_balances=dict(cfg.genesis_balances),
        policy=cfg.policy,
    )
    validate_engine_config(out)
    return out


def load_engine_config(*, config_path: Optional[str] = None) -> EngineConfig:
    p = config_path or os.environ.get("BUHA_ENGINE_CONFIG_PATH")
    if p:
        return _apply_env_overrides(read_engine_config_file(p))

    cfg = default_engine_config()
    return _apply_env_overrides(cfg)


def apply_engine_config_to_env(cfg: EngineConfig) -> None:
    validate_engine_config(cfg)
    os.environ["BUHA_MODE"] = (cfg.mode or "prod").strip().lower()
    os.environ["BUHA_DB_PATH"] = cfg.db_path
    os.environ["BUHA_LOCK_PATH"] = cfg.lock_path
    os.environ["BUHA_API_HOST"] = cfg.api_host
    os.environ["BUHA_API_PORT"] = str(int(cfg.api_port))
    os.environ["BUHA_LOG_LEVEL"] = cfg.log_level
    os.environ["BUHA_UPGRADERS"] = ",".join(cfg.upgraders)
