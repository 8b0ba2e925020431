from __future__ import annotations

from fastapi import APIRouter, Request

from buha.api.routes_public_parts.common import Json, _amount, _executor

router = APIRouter()


@router.get("/token")
def token_info(request: Request) -> Json:
    view = _executor(request).view()
    counters = view.counters()
    counters["total_staked"] = _amount(counters["total_staked"])
    return {
        "ok": True,
        "name": view.name,
        "symbol": view.symbol,
        "decimals": view.decimals,
        "total_supply": _amount(view.total_supply()),
        **counters,
        "policy_version": view.policy_version(),
        "policy": view.policy().to_json(),
    }
