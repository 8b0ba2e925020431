import os
from dataclasses import dataclass


def _is_truthy(v: str | None) -> bool:
    if v is None:
        return False
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class ApiConfig:
    mode: str  # "dev" | "testnet" | "prod"
    allow_unsigned_txs: bool
    docs_enabled: bool


def load_api_config() -> ApiConfig:
    """
    Read API posture from the environment.

    POST /v1/tx trusts the `signer` field of the body. That is only acceptable
    behind an authenticating gateway or in dev/testnet, so it is off by default
    in prod; BUHA_ALLOW_UNSIGNED_TXS overrides the mode default.
    """
    mode = os.getenv("BUHA_MODE", "prod").strip().lower()
    raw = os.getenv("BUHA_ALLOW_UNSIGNED_TXS")
    allow = _is_truthy(raw) if raw is not None else mode != "prod"
    return ApiConfig(mode=mode, allow_unsigned_txs=allow, docs_enabled=mode != "prod")
