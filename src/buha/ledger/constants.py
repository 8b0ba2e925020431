# src/buha/ledger/constants.py
from __future__ import annotations

"""BuhaToken monetary and term constants.

Token anchors:
- ERC-20 style metadata: name "BuhaToken", symbol "BUHA", 18 decimals
- Zero supply at deployment; supply only grows through mint/claim payouts
- Amounts are unsigned 256-bit integers (base units)
"""

TOKEN_NAME: str = "BuhaToken"
TOKEN_SYMBOL: str = "BUHA"

# Monetary precision (1 BUHA = 1e-18 units)
TOKEN_DECIMALS: int = 18
UNIT: int = 10**TOKEN_DECIMALS

# Every balance, supply and payload amount must fit in a uint256.
MAX_UINT256: int = 2**256 - 1

SECONDS_PER_DAY: int = 86_400
DAYS_PER_YEAR: int = 365

# Basis points denominator for rates and bonuses.
BPS: int = 10_000

# Default term limits (overridable through RewardPolicy).
MAX_MINT_TERM_DAYS: int = 365
MAX_STAKE_TERM_DAYS: int = 1_095
MIN_STAKE_AMOUNT: int = 1
