# src/buha/runtime/supported_txs.py
"""Tx types this build knows how to apply.

The apply router uses SUPPORTED_TX_TYPES as a coarse gate: anything outside it
fails closed with `tx_unimplemented` before any domain applier runs.
"""

from __future__ import annotations

from typing import AbstractSet, FrozenSet

from buha.runtime.apply.mint import MINT_TX_TYPES
from buha.runtime.apply.stake import STAKE_TX_TYPES
from buha.runtime.apply.token import TOKEN_TX_TYPES
from buha.runtime.apply.upgrade import UPGRADE_TX_TYPES

SUPPORTED_TX_TYPES: FrozenSet[str] = frozenset(
    set(MINT_TX_TYPES) | set(STAKE_TX_TYPES) | set(TOKEN_TX_TYPES) | set(UPGRADE_TX_TYPES)
)


def is_supported(tx_type: str) -> bool:
    return str(tx_type or "").strip().upper() in SUPPORTED_TX_TYPES


def supported_sorted(types: AbstractSet[str] = SUPPORTED_TX_TYPES) -> list[str]:
    return sorted(types)
