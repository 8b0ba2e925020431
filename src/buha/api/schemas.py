from __future__ import annotations

"""Pydantic request schemas for the public API.

Keep this module intentionally small and stable. The canonical payload rules
live in the domain appliers; these models only validate the HTTP envelope.
"""

from typing import Any, Dict

from pydantic import BaseModel, Field


class TxSubmitRequest(BaseModel):
    tx_type: str = Field(..., min_length=1, description="Tx type, e.g. MINT_START")
    signer: str = Field(..., min_length=1, description="Acting account id")
    payload: Dict[str, Any] = Field(default_factory=dict, description="Tx-type specific fields")
    nonce: int = Field(default=0, ge=0, description="Client-side sequence hint")

    # Any extra fields are ignored (forward compatible)
    model_config = {"extra": "ignore"}
