from __future__ import annotations

import json
import logging
import time
from typing import Any, Dict


Json = Dict[str, Any]


def _now_ms() -> int:
    return int(time.time() * 1000)


def log_event(logger: logging.Logger, event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    """Emit a single JSONL log event.

    Dependency-free and safe for low-level subsystems (ledger/runtime/etc.).
    Amounts are logged as strings so uint256 values survive JSON consumers.
    """
    payload: Json = {"ts_ms": _now_ms(), "event": str(event)}
    for k, v in fields.items():
        payload[k] = str(v) if isinstance(v, int) and not isinstance(v, bool) and abs(v) > 2**53 else v
    try:
        logger.log(level, json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False))
    except (TypeError, ValueError):
        parts = [f"event={event}"] + [f"{k}={fields.get(k)!r}" for k in sorted(fields.keys())]
        logger.log(level, " ".join(parts))
