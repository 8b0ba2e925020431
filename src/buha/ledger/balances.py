# src/buha/ledger/balances.py
from __future__ import annotations

from typing import Any, Dict

from buha.ledger.constants import MAX_UINT256, TOKEN_DECIMALS, TOKEN_NAME, TOKEN_SYMBOL
from buha.runtime.errors import (
    ApplyError,
    ExceedsBalance,
    InsufficientAllowance,
    InsufficientBalance,
    InvalidPayload,
)

Json = Dict[str, Any]


def _as_int(x: Any, default: int = 0) -> int:
    try:
        return int(x)
    except Exception:
        return int(default)


def _require_amount(amount: Any) -> int:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidPayload("bad_amount", {"amount": amount})
    if amount < 0 or amount > MAX_UINT256:
        raise InvalidPayload("amount_out_of_range", {"amount": amount})
    return int(amount)


def _require_account_id(account: Any) -> str:
    a = str(account).strip() if isinstance(account, str) else ""
    if not a:
        raise InvalidPayload("missing_account", {"account": account})
    return a


def ensure_token_root(state: Json) -> Json:
    tok = state.get("token")
    if not isinstance(tok, dict):
        tok = {}
        state["token"] = tok
    tok.setdefault("name", TOKEN_NAME)
    tok.setdefault("symbol", TOKEN_SYMBOL)
    tok.setdefault("decimals", TOKEN_DECIMALS)
    tok.setdefault("total_supply", 0)
    tok.setdefault("locked", 0)
    return tok


def _ensure_accounts(state: Json) -> Json:
    accts = state.get("accounts")
    if not isinstance(accts, dict):
        accts = {}
        state["accounts"] = accts
    return accts


class BalanceLedger:
    """Spendable balances + total supply over the JSON ledger state.

    This is the only writer of `accounts[*].balance`, `token.total_supply` and
    `token.locked`. Supply accounting:

        total_supply == sum(balances) + locked

    `locked` holds principal debited into active stakes; it leaves the
    spendable balance without leaving the supply.
    """

    def __init__(self, state: Json) -> None:
        self._state = state
        self._token = ensure_token_root(state)
        self._accounts = _ensure_accounts(state)

    # ----------------------------
    # Reads
    # ----------------------------

    def balance_of(self, account: str) -> int:
        acct = self._accounts.get(account)
        if not isinstance(acct, dict):
            return 0
        return _as_int(acct.get("balance"), 0)

    def total_supply(self) -> int:
        return _as_int(self._token.get("total_supply"), 0)

    def locked(self) -> int:
        return _as_int(self._token.get("locked"), 0)

    def headroom(self) -> int:
        """New supply that can still be minted before total_supply hits 2**256-1."""
        return MAX_UINT256 - self.total_supply()

    def allowance(self, owner: str, spender: str) -> int:
        acct = self._accounts.get(owner)
        if not isinstance(acct, dict):
            return 0
        allowances = acct.get("allowances")
        if not isinstance(allowances, dict):
            return 0
        return _as_int(allowances.get(spender), 0)

    # ----------------------------
    # Internal writers
    # ----------------------------

    def _account(self, account: str) -> Json:
        a = _require_account_id(account)
        acct = self._accounts.get(a)
        if not isinstance(acct, dict):
            acct = {"balance": 0, "allowances": {}}
            self._accounts[a] = acct
        acct.setdefault("balance", 0)
        acct.setdefault("allowances", {})
        return acct

    def _set_balance(self, account: str, value: int) -> None:
        if value < 0 or value > MAX_UINT256:
            raise ApplyError("invalid_state", "balance_out_of_range", {"account": account, "balance": value})
        self._account(account)["balance"] = int(value)

    def _set_supply(self, value: int) -> None:
        if value < 0 or value > MAX_UINT256:
            raise ApplyError("invalid_state", "supply_out_of_range", {"total_supply": value})
        self._token["total_supply"] = int(value)

    def _set_locked(self, value: int) -> None:
        if value < 0:
            raise ApplyError("invalid_state", "locked_underflow", {"locked": value})
        self._token["locked"] = int(value)

    # ----------------------------
    # Ledger contract
    # ----------------------------

    def credit(self, account: str, amount: int) -> None:
        """Mint `amount` of new supply into the account's spendable balance."""
        amt = _require_amount(amount)
        self._set_supply(self.total_supply() + amt)
        self._set_balance(account, self.balance_of(account) + amt)

    def debit(self, account: str, amount: int) -> None:
        """Move `amount` from the spendable balance into the locked pool."""
        amt = _require_amount(amount)
        bal = self.balance_of(account)
        if amt > bal:
            raise InsufficientBalance("insufficient_funds", {"account": account, "balance": bal, "amount": amt})
        self._set_balance(account, bal - amt)
        self._set_locked(self.locked() + amt)

    def release(self, account: str, amount: int) -> None:
        """Return `amount` from the locked pool to the account's spendable balance."""
        amt = _require_amount(amount)
        locked = self.locked()
        if amt > locked:
            raise ApplyError("invalid_state", "locked_underflow", {"locked": locked, "amount": amt})
        self._set_locked(locked - amt)
        self._set_balance(account, self.balance_of(account) + amt)

    def burn(self, account: str, amount: int) -> None:
        amt = _require_amount(amount)
        bal = self.balance_of(account)
        if amt > bal:
            raise ExceedsBalance("burn_amount_exceeds_balance", {"account": account, "balance": bal, "amount": amt})
        self._set_balance(account, bal - amt)
        self._set_supply(self.total_supply() - amt)

    def transfer(self, frm: str, to: str, amount: int) -> None:
        amt = _require_amount(amount)
        _require_account_id(to)
        bal = self.balance_of(frm)
        if amt > bal:
            raise InsufficientBalance("insufficient_funds", {"account": frm, "balance": bal, "amount": amt})
        self._set_balance(frm, bal - amt)
        self._set_balance(to, self.balance_of(to) + amt)

    def approve(self, owner: str, spender: str, amount: int) -> None:
        amt = _require_amount(amount)
        sp = _require_account_id(spender)
        self._account(owner)["allowances"][sp] = amt

    def transfer_from(self, spender: str, frm: str, to: str, amount: int) -> None:
        amt = _require_amount(amount)
        allowed = self.allowance(frm, spender)
        if amt > allowed:
            raise InsufficientAllowance(
                "allowance_exceeded",
                {"owner": frm, "spender": spender, "allowance": allowed, "amount": amt},
            )
        self.transfer(frm, to, amt)
        self._account(frm)["allowances"][spender] = allowed - amt


__all__ = ["BalanceLedger", "ensure_token_root"]
