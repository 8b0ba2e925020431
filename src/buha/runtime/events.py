# src/buha/runtime/events.py
from __future__ import annotations

"""Notification events emitted by committed operations.

Events are plain JSON dicts so they persist in the event log unchanged:

    {"event": "MintStarted", "account": ..., "term_days": ..., "maturity_at": ...}

Every successful operation returns its events in emission order; rejected
operations emit nothing.
"""

from typing import Any, Dict

Json = Dict[str, Any]

MINT_STARTED = "MintStarted"
CLAIMED = "Claimed"
STAKED = "Staked"
WITHDRAWN = "Withdrawn"
BURNED = "Burned"
TRANSFER = "Transfer"
APPROVAL = "Approval"
POLICY_UPGRADED = "PolicyUpgraded"
UPGRADE_ROLE_GRANTED = "UpgradeRoleGranted"
UPGRADE_ROLE_REVOKED = "UpgradeRoleRevoked"


def mint_started(account: str, term_days: int, maturity_at: int) -> Json:
    return {"event": MINT_STARTED, "account": account, "term_days": int(term_days), "maturity_at": int(maturity_at)}


def claimed(account: str, reward: int) -> Json:
    return {"event": CLAIMED, "account": account, "reward": int(reward)}


def staked(account: str, amount: int, term_days: int) -> Json:
    return {"event": STAKED, "account": account, "amount": int(amount), "term_days": int(term_days)}


def withdrawn(account: str, principal: int, reward: int) -> Json:
    return {"event": WITHDRAWN, "account": account, "principal": int(principal), "reward": int(reward)}


def burned(account: str, amount: int) -> Json:
    return {"event": BURNED, "account": account, "amount": int(amount)}


def transfer(frm: str, to: str, amount: int) -> Json:
    return {"event": TRANSFER, "account": frm, "from": frm, "to": to, "amount": int(amount)}


def approval(owner: str, spender: str, amount: int) -> Json:
    return {"event": APPROVAL, "account": owner, "owner": owner, "spender": spender, "amount": int(amount)}


def policy_upgraded(account: str, policy_version: int) -> Json:
    return {"event": POLICY_UPGRADED, "account": account, "policy_version": int(policy_version)}


def upgrade_role_granted(account: str, grantee: str) -> Json:
    return {"event": UPGRADE_ROLE_GRANTED, "account": account, "grantee": grantee}


def upgrade_role_revoked(account: str, revokee: str) -> Json:
    return {"event": UPGRADE_ROLE_REVOKED, "account": account, "revokee": revokee}
