# src/buha/runtime/executor_boot.py

from __future__ import annotations

from typing import Optional

from buha.runtime.engine_config import EngineConfig, load_engine_config
from buha.runtime.executor import AccrualExecutor


def build_executor(cfg: Optional[EngineConfig] = None) -> AccrualExecutor:
    """
    Build an AccrualExecutor from an explicit engine config or, if omitted,
    from BUHA_ENGINE_CONFIG_PATH / BUHA_* environment variables.

    This keeps the API stable for `buha.api.app`, which calls build_executor()
    with no args in production.
    """
    c = cfg or load_engine_config()
    return AccrualExecutor.from_config(c)
