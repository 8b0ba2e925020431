from __future__ import annotations

from typing import Any, Dict

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
def health(request: Request) -> Dict[str, Any]:
    """Liveness plus the last committed sequence number when an executor is attached."""
    ex = getattr(request.app.state, "executor", None)
    if ex is None:
        return {"ok": True, "ready": False}
    st = ex.read_state()
    return {
        "ok": True,
        "ready": True,
        "seq": int(st.get("seq", 0)),
        "last_ts": int(st.get("last_ts", 0)),
    }
