from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from buha.ledger.constants import TOKEN_DECIMALS, TOKEN_NAME, TOKEN_SYMBOL
from buha.ledger.rewards import RewardPolicy
from buha.ledger.types import MintPosition, StakePosition

Json = Dict[str, Any]


def _as_int(v: Any, default: int = 0) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


def _as_dict(v: Any) -> Json:
    return v if isinstance(v, dict) else {}


@dataclass(frozen=True, slots=True)
class AccrualView:
    """
    Immutable read-only view over the accrual state (query surface).
    """

    accounts: Dict[str, Any] = field(default_factory=dict)
    token: Dict[str, Any] = field(default_factory=dict)
    accrual: Dict[str, Any] = field(default_factory=dict)
    params: Dict[str, Any] = field(default_factory=dict)
    last_ts: int = 0
    seq: int = 0

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "AccrualView":
        return cls(
            accounts=copy.deepcopy(_as_dict(state.get("accounts"))),
            token=copy.deepcopy(_as_dict(state.get("token"))),
            accrual=copy.deepcopy(_as_dict(state.get("accrual"))),
            params=copy.deepcopy(_as_dict(state.get("params"))),
            last_ts=_as_int(state.get("last_ts"), 0),
            seq=_as_int(state.get("seq"), 0),
        )

    # ----------------------------
    # Token
    # ----------------------------

    @property
    def name(self) -> str:
        return str(self.token.get("name") or TOKEN_NAME)

    @property
    def symbol(self) -> str:
        return str(self.token.get("symbol") or TOKEN_SYMBOL)

    @property
    def decimals(self) -> int:
        return _as_int(self.token.get("decimals"), TOKEN_DECIMALS)

    def total_supply(self) -> int:
        return _as_int(self.token.get("total_supply"), 0)

    def balance_of(self, account: str) -> int:
        return _as_int(_as_dict(self.accounts.get(account)).get("balance"), 0)

    def allowance(self, owner: str, spender: str) -> int:
        allowances = _as_dict(_as_dict(self.accounts.get(owner)).get("allowances"))
        return _as_int(allowances.get(spender), 0)

    # ----------------------------
    # Registries
    # ----------------------------

    def user_mints(self, account: str) -> Optional[MintPosition]:
        rec = _as_dict(self.accrual.get("mints")).get(account)
        return MintPosition.from_json(rec) if isinstance(rec, dict) else None

    def user_stakes(self, account: str) -> Optional[StakePosition]:
        rec = _as_dict(self.accrual.get("stakes")).get(account)
        return StakePosition.from_json(rec) if isinstance(rec, dict) else None

    def user_burns(self, account: str) -> int:
        return _as_int(_as_dict(self.accrual.get("burns")).get(account), 0)

    # ----------------------------
    # Global counters
    # ----------------------------

    def _counter(self, key: str) -> int:
        return _as_int(_as_dict(self.accrual.get("counters")).get(key), 0)

    def active_minters(self) -> int:
        return self._counter("active_minters")

    def active_stakes(self) -> int:
        return self._counter("active_stakes")

    def total_staked(self) -> int:
        return self._counter("total_staked")

    def counters(self) -> Json:
        return {
            "active_minters": self.active_minters(),
            "active_stakes": self.active_stakes(),
            "total_staked": self.total_staked(),
        }

    # ----------------------------
    # Params
    # ----------------------------

    def policy(self) -> RewardPolicy:
        return RewardPolicy.from_json(self.params.get("policy"))

    def policy_version(self) -> int:
        return _as_int(self.params.get("policy_version"), 1)

    def upgraders(self) -> List[str]:
        raw = self.params.get("upgraders")
        if not isinstance(raw, list):
            return []
        return [str(a) for a in raw if str(a).strip()]

    def account_summary(self, account: str) -> Json:
        mint = self.user_mints(account)
        stake = self.user_stakes(account)
        return {
            "account": account,
            "balance": self.balance_of(account),
            "mint": mint.to_json() if mint is not None else None,
            "stake": stake.to_json() if stake is not None else None,
            "burned": self.user_burns(account),
        }
