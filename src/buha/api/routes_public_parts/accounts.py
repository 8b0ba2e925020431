from __future__ import annotations

from fastapi import APIRouter, Request

from buha.api.routes_public_parts.common import Json, _account_param, _amount, _executor

router = APIRouter()


@router.get("/accounts/{account}")
def account_get(account: str, request: Request) -> Json:
    """Balance plus open positions for one account.

    Unknown accounts are not an error: they read as zero balance, no positions.
    """
    a = _account_param(account)
    view = _executor(request).view()

    out = view.account_summary(a)
    out["balance"] = _amount(out["balance"])
    out["burned"] = _amount(out["burned"])
    if out["stake"] is not None:
        out["stake"]["amount"] = _amount(out["stake"]["amount"])
    out["upgrader"] = a in view.upgraders()
    return {"ok": True, **out}


@router.get("/accounts/{account}/allowance/{spender}")
def allowance_get(account: str, spender: str, request: Request) -> Json:
    owner = _account_param(account)
    sp = _account_param(spender)
    view = _executor(request).view()
    return {"ok": True, "owner": owner, "spender": sp, "allowance": _amount(view.allowance(owner, sp))}
