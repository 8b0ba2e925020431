from __future__ import annotations

from typing import Any, Dict

from fastapi import Request

from buha.api.errors import ApiError

Json = Dict[str, Any]


def _executor(request: Request):
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        raise ApiError.internal("not_ready", "executor not attached to app.state", {})
    return ex


def _int_param(v: Any, default: int) -> int:
    """Parse an int-ish query param safely."""
    if v is None:
        return int(default)
    try:
        return int(str(v).strip())
    except Exception:
        return int(default)


def _account_param(v: Any) -> str:
    a = str(v or "").strip()
    if not a:
        raise ApiError.bad_request("bad_request", "account is required", {})
    return a


def _amount(v: int) -> str:
    # uint256 amounts overflow JS numbers; serialize as decimal strings.
    return str(int(v))
