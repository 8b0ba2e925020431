from __future__ import annotations

from fastapi import APIRouter, Request

from buha.api.errors import ApiError
from buha.api.routes_public_parts.common import Json, _executor
from buha.api.schemas import TxSubmitRequest
from buha.runtime.supported_txs import is_supported, supported_sorted
from buha.runtime.tx_types import TxEnvelope

router = APIRouter()


@router.get("/tx/types")
def tx_types() -> Json:
    return {"ok": True, "tx_types": supported_sorted()}


@router.post("/tx")
def tx_submit(body: TxSubmitRequest, request: Request) -> Json:
    """Apply one tx synchronously and return its receipt.

    Rejected txs surface as ApplyError and are mapped to 4xx by the app's
    exception handler; nothing is persisted for them.
    """
    cfg = getattr(request.app.state, "cfg", None)
    if cfg is not None and not cfg.allow_unsigned_txs:
        raise ApiError.forbidden(
            "unsigned_tx_forbidden",
            "tx submission over the public API is disabled in this mode",
            {"tx_type": body.tx_type},
        )

    tx_type = body.tx_type.strip().upper()
    if not is_supported(tx_type):
        raise ApiError.bad_request("unknown_tx_type", "tx_type is not supported", {"tx_type": tx_type})

    env = TxEnvelope(tx_type=tx_type, signer=body.signer.strip(), payload=dict(body.payload), nonce=body.nonce)
    return _executor(request).execute(env)
