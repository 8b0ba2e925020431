from __future__ import annotations

import copy
import logging
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Protocol

from buha.ledger.balances import BalanceLedger
from buha.ledger.migrations import migrate_state_dict
from buha.ledger.rewards import RewardPolicy
from buha.ledger.state import AccrualView
from buha.ledger.types import MintPosition, StakePosition
from buha.runtime.clock import SystemClock
from buha.runtime.domain_apply import apply_tx
from buha.runtime.errors import ApplyError, InvariantViolation
from buha.runtime.metrics import inc_counter, set_gauge
from buha.runtime.runtime_logging import log_event
from buha.runtime.single_writer import SingleWriterLock
from buha.runtime.sqlite_db import SqliteDB, SqliteLedgerStore
from buha.runtime.state_invariants import check_invariants
from buha.runtime.tx_types import TxEnvelope

Json = Dict[str, Any]

log = logging.getLogger("buha.executor")


class Clock(Protocol):
    def now(self) -> int: ...


class ExecutorError(RuntimeError):
    pass


def _safe_int(v: Any, default: int) -> int:
    try:
        return int(v)
    except Exception:
        return int(default)


class AccrualExecutor:
    """Accrual engine host: one writer, one clock read per operation.

    Every public operation runs under a single re-entrant lock:

      1. read the clock once (clamped so it never runs behind the last commit)
      2. apply the envelope to a deep copy of the state
      3. persist snapshot + events in one SQLite write transaction
      4. swap the in-memory state

    A rejected operation (ApplyError) or a failed persist leaves both the
    in-memory and the on-disk state untouched.
    """

    def __init__(
        self,
        *,
        db_path: str,
        clock: Optional[Clock] = None,
        policy: Optional[RewardPolicy] = None,
        upgraders: Iterable[str] = (),
        genesis_balances: Optional[Mapping[str, int]] = None,
        lock_path: str = "",
        verify_invariants: bool = False,
    ) -> None:
        self.db_path = str(db_path)
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

        self.clock: Clock = clock if clock is not None else SystemClock()
        self.verify_invariants = bool(verify_invariants)
        self._lock = threading.RLock()

        self._writer_lock: Optional[SingleWriterLock] = None
        if lock_path:
            self._writer_lock = SingleWriterLock(lock_path)
            self._writer_lock.acquire()

        try:
            self._db = SqliteDB(path=self.db_path)
            self._db.init_schema()
            self._store = SqliteLedgerStore(db=self._db)

            if self._store.exists():
                self.state = migrate_state_dict(self._store.read())
            else:
                self.state = self._initial_state(
                    policy=policy or RewardPolicy(),
                    upgraders=upgraders,
                    genesis_balances=genesis_balances or {},
                )
                self._store.write(self.state)

            # Fail-closed if the persisted snapshot does not reconcile.
            try:
                check_invariants(self.state)
            except InvariantViolation as e:
                raise ExecutorError(f"db_invariant_violation: {e}. Refuse to start.") from e
        except BaseException:
            self.close()
            raise

        self._refresh_gauges()
        log_event(
            log,
            "executor_started",
            db_path=self.db_path,
            seq=_safe_int(self.state.get("seq"), 0),
            policy_version=_safe_int(self.state["params"].get("policy_version"), 1),
        )

    def _initial_state(
        self,
        *,
        policy: RewardPolicy,
        upgraders: Iterable[str],
        genesis_balances: Mapping[str, int],
    ) -> Json:
        policy.validate()
        st = migrate_state_dict({})
        st["params"]["policy"] = policy.to_json()
        st["params"]["upgraders"] = sorted({str(a).strip() for a in upgraders if str(a).strip()})
        st["created_ts"] = int(self.clock.now())

        ledger = BalanceLedger(st)
        for acct in sorted(genesis_balances):
            amt = int(genesis_balances[acct])
            if amt:
                ledger.credit(acct, amt)
        return st

    @classmethod
    def from_config(cls, cfg: Any, *, clock: Optional[Clock] = None) -> "AccrualExecutor":
        return cls(
            db_path=cfg.db_path,
            clock=clock,
            policy=cfg.policy,
            upgraders=cfg.upgraders,
            genesis_balances=cfg.genesis_balances,
            lock_path=cfg.lock_path,
        )

    def close(self) -> None:
        if self._writer_lock is not None:
            self._writer_lock.release()

    # ----------------------------
    # Core execution path
    # ----------------------------

    def _now(self) -> int:
        ts = int(self.clock.now())
        last = _safe_int(self.state.get("last_ts"), 0)
        return ts if ts >= last else last

    def execute(self, env: Any) -> Json:
        """Apply one envelope atomically; returns the receipt or raises ApplyError."""
        env_norm = TxEnvelope.from_json(env)
        tx_type = str(env_norm.tx_type or "").strip().upper()

        with self._lock:
            now = self._now()
            working: Json = copy.deepcopy(self.state)

            try:
                meta = apply_tx(working, env_norm, now=now)
            except ApplyError as e:
                inc_counter("tx_rejected")
                inc_counter(f"tx_rejected_{e.code}")
                log_event(
                    log,
                    "tx_rejected",
                    tx_type=tx_type,
                    signer=env_norm.signer,
                    code=e.code,
                    reason=e.reason,
                    ts=now,
                )
                raise

            if self.verify_invariants:
                check_invariants(working)

            seq = _safe_int(self.state.get("seq"), 0) + 1
            working["seq"] = seq
            working["last_ts"] = now

            evs: List[Json] = list(meta.pop("events", []) or [])
            event_seqs = self._store.commit(working, evs, ts=now)
            self.state = working

            out_events = [dict(ev, event_seq=es) for ev, es in zip(evs, event_seqs)]

        inc_counter("tx_applied")
        inc_counter(f"tx_applied_{tx_type}")
        self._refresh_gauges()
        log_event(
            log,
            "tx_applied",
            tx_type=tx_type,
            signer=env_norm.signer,
            seq=seq,
            ts=now,
            events=[ev.get("event") for ev in evs],
        )
        return {"ok": True, "seq": seq, "ts": now, **meta, "events": out_events}

    def _refresh_gauges(self) -> None:
        counters = self.state.get("accrual", {}).get("counters", {})
        set_gauge("active_minters", _safe_int(counters.get("active_minters"), 0))
        set_gauge("active_stakes", _safe_int(counters.get("active_stakes"), 0))
        set_gauge("total_staked", _safe_int(counters.get("total_staked"), 0))

    def _op(self, tx_type: str, signer: str, payload: Optional[Json] = None) -> Json:
        return self.execute(TxEnvelope(tx_type=tx_type, signer=signer, payload=dict(payload or {})))

    # ----------------------------
    # Public operations
    # ----------------------------

    def start_mint(self, account: str, term_days: int) -> Json:
        return self._op("MINT_START", account, {"term_days": term_days})

    def claim(self, account: str) -> Json:
        return self._op("MINT_CLAIM", account)

    def claim_early(self, account: str) -> Json:
        return self._op("MINT_CLAIM_EARLY", account)

    def claim_and_stake(self, account: str, percentage: int, term_days: int) -> Json:
        return self._op("MINT_CLAIM_AND_STAKE", account, {"percentage": percentage, "term_days": term_days})

    def stake(self, account: str, amount: int, term_days: int) -> Json:
        return self._op("STAKE", account, {"amount": amount, "term_days": term_days})

    def withdraw(self, account: str) -> Json:
        return self._op("STAKE_WITHDRAW", account)

    def withdraw_early(self, account: str) -> Json:
        return self._op("STAKE_WITHDRAW_EARLY", account)

    def burn(self, account: str, amount: int) -> Json:
        return self._op("TOKEN_BURN", account, {"amount": amount})

    def transfer(self, account: str, to: str, amount: int) -> Json:
        return self._op("TOKEN_TRANSFER", account, {"to": to, "amount": amount})

    def approve(self, account: str, spender: str, amount: int) -> Json:
        return self._op("TOKEN_APPROVE", account, {"spender": spender, "amount": amount})

    def transfer_from(self, spender: str, frm: str, to: str, amount: int) -> Json:
        return self._op("TOKEN_TRANSFER_FROM", spender, {"from": frm, "to": to, "amount": amount})

    def upgrade_policy(self, account: str, overrides: Json) -> Json:
        return self._op("POLICY_UPGRADE", account, {"policy": dict(overrides)})

    def grant_upgrade_role(self, account: str, grantee: str) -> Json:
        return self._op("UPGRADE_ROLE_GRANT", account, {"account": grantee})

    def revoke_upgrade_role(self, account: str, revokee: str) -> Json:
        return self._op("UPGRADE_ROLE_REVOKE", account, {"account": revokee})

    # ----------------------------
    # Query surface
    # ----------------------------

    def read_state(self) -> Json:
        with self._lock:
            return copy.deepcopy(self.state)

    def view(self) -> AccrualView:
        with self._lock:
            return AccrualView.from_state(self.state)

    def user_mints(self, account: str) -> Optional[MintPosition]:
        return self.view().user_mints(account)

    def user_stakes(self, account: str) -> Optional[StakePosition]:
        return self.view().user_stakes(account)

    def user_burns(self, account: str) -> int:
        return self.view().user_burns(account)

    def active_minters(self) -> int:
        return self.view().active_minters()

    def active_stakes(self) -> int:
        return self.view().active_stakes()

    def total_staked(self) -> int:
        return self.view().total_staked()

    def balance_of(self, account: str) -> int:
        return self.view().balance_of(account)

    def total_supply(self) -> int:
        return self.view().total_supply()

    def has_upgrade_role(self, account: str) -> bool:
        return str(account or "").strip() in self.view().upgraders()

    def events_since(self, since: int = 0, *, limit: int = 100, account: str = "") -> List[Json]:
        return self._store.read_events(since=since, limit=limit, account=account)
