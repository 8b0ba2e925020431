from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Request

from buha.api.routes_public_parts.common import Json, _executor, _int_param

router = APIRouter()


@router.get("/events")
def events_list(
    request: Request,
    since: Optional[str] = None,
    limit: Optional[str] = None,
    account: Optional[str] = None,
) -> Json:
    """Page through the event log in commit order.

    Use the last returned `event_seq` as the next `since` cursor.
    """
    since_i = max(0, _int_param(since, 0))
    limit_i = max(1, min(_int_param(limit, 100), 1000))
    acct = str(account or "").strip()

    evs = _executor(request).events_since(since_i, limit=limit_i, account=acct)
    next_since = evs[-1]["event_seq"] if evs else since_i
    return {"ok": True, "events": evs, "next_since": next_since}
