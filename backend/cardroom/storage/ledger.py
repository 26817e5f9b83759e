"""Per-agent daily bankroll ledger with an append-only settled-round history.

Balances are keyed by (agent_id, day) and seeded lazily to the daily
allowance on first access; nothing carries over between days. Every
mutation holds the per-key lock, so a balance never goes negative even when
the API threadpool and the scheduler touch the same agent at once.
"""

import logging
import threading
from collections.abc import Iterable, Sequence
from contextlib import ExitStack
from datetime import datetime
from pathlib import Path
from typing import Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from cardroom.clock import Clock, utc_now
from cardroom.storage.files import atomic_write_yaml, load_yaml
from cardroom.table.exceptions import RoundAbortedError

logger = logging.getLogger(__name__)

LedgerKey = tuple[str, str]
RoundMode = Literal["single", "vs"]
HandOutcome = Literal["win", "loss", "push"]


# ============================================================================
# Pydantic Models
# ============================================================================


class SettledHand(BaseModel):
    """One agent's finished hand, ready to be committed."""

    agent_id: str
    day: str
    seat: Literal["a", "b"] = "a"
    wager_cents: int = Field(gt=0)
    player_cards: list[str]
    dealer_cards: list[str]
    decisions: list[str] = Field(default_factory=list)
    outcome: HandOutcome
    pnl_cents: int
    rationale: str | None = None


class RoundRecord(BaseModel):
    """Immutable settled-round entry. The market reads only these."""

    model_config = ConfigDict(frozen=True)

    id: str
    round_id: str
    mode: RoundMode
    agent_id: str
    day: str
    seat: Literal["a", "b"]
    wager_cents: int
    player_cards: list[str]
    dealer_cards: list[str]
    decisions: list[str]
    outcome: HandOutcome
    pnl_cents: int
    rationale: str | None = None
    balance_after_cents: int
    created_at: datetime


class DebitResult(BaseModel):
    accepted: bool
    balance_cents: int


class DailyState(BaseModel):
    """Bankroll snapshot for one agent on one day."""

    agent_id: str
    day: str
    balance_cents: int
    rounds_played: int
    pnl_cents: int


class LedgerSnapshot(BaseModel):
    """On-disk shape of data/ledger.yaml."""

    balances: dict[str, dict[str, int]] = Field(default_factory=dict)
    rounds: list[RoundRecord] = Field(default_factory=list)


# ============================================================================
# Ledger
# ============================================================================


class BankrollLedger:
    """Exclusive owner of bankroll balances."""

    def __init__(
        self,
        daily_allowance_cents: int,
        path: Path | None = None,
        clock: Clock = utc_now,
    ):
        if daily_allowance_cents < 0:
            raise ValueError("daily_allowance_cents must be >= 0")
        self.daily_allowance_cents = daily_allowance_cents
        self._path = path
        self._clock = clock

        self._balances: dict[LedgerKey, int] = {}
        self._records: list[RoundRecord] = []

        self._locks: dict[LedgerKey, threading.Lock] = {}
        self._locks_guard = threading.Lock()
        self._persist_lock = threading.Lock()

        if path is not None:
            self._load()

    # ------------------------------------------------------------------
    # Locking and persistence
    # ------------------------------------------------------------------

    def _lock_for(self, key: LedgerKey) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    def _hold(self, keys: Iterable[LedgerKey]) -> ExitStack:
        """Acquire several key locks in a stable order."""
        stack = ExitStack()
        for key in sorted(set(keys)):
            stack.enter_context(self._lock_for(key))
        return stack

    def _seed(self, key: LedgerKey) -> int:
        # Caller holds the key lock
        if key not in self._balances:
            self._balances[key] = self.daily_allowance_cents
            logger.debug(f"Seeded bankroll {key[0]} on {key[1]}")
        return self._balances[key]

    def _load(self) -> None:
        raw = load_yaml(self._path)
        if raw is None:
            return
        snapshot = LedgerSnapshot(**raw)
        for agent_id, days in snapshot.balances.items():
            for day, balance in days.items():
                self._balances[(agent_id, day)] = balance
        self._records = list(snapshot.rounds)
        logger.info(
            f"Loaded ledger: {len(self._balances)} bankrolls, {len(self._records)} rounds"
        )

    def _persist(self) -> None:
        if self._path is None:
            return
        with self._persist_lock:
            balances: dict[str, dict[str, int]] = {}
            for (agent_id, day), balance in sorted(dict(self._balances).items()):
                balances.setdefault(agent_id, {})[day] = balance
            snapshot = LedgerSnapshot(balances=balances, rounds=list(self._records))
            atomic_write_yaml(self._path, snapshot.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Balance operations
    # ------------------------------------------------------------------

    def get_or_init_balance(self, agent_id: str, day: str) -> int:
        """Current balance, seeding the daily allowance on first access.

        A seed is not written to disk; reloading reseeds the same allowance.
        """
        key = (agent_id, day)
        with self._lock_for(key):
            return self._seed(key)

    def debit(self, agent_id: str, day: str, amount_cents: int) -> DebitResult:
        """Take amount from the balance. Declined, not raised, when it would overdraw."""
        if amount_cents < 0:
            raise ValueError("Debit amount must be >= 0")
        key = (agent_id, day)
        with self._lock_for(key):
            balance = self._seed(key)
            if amount_cents > balance:
                return DebitResult(accepted=False, balance_cents=balance)
            balance -= amount_cents
            self._balances[key] = balance
        self._persist()
        return DebitResult(accepted=True, balance_cents=balance)

    def credit(self, agent_id: str, day: str, amount_cents: int) -> int:
        if amount_cents < 0:
            raise ValueError("Credit amount must be >= 0")
        key = (agent_id, day)
        with self._lock_for(key):
            balance = self._seed(key) + amount_cents
            self._balances[key] = balance
        self._persist()
        return balance

    # ------------------------------------------------------------------
    # Round settlement
    # ------------------------------------------------------------------

    def commit_round(
        self,
        hands: Sequence[SettledHand],
        mode: RoundMode = "single",
        round_id: str | None = None,
    ) -> list[RoundRecord]:
        """Settle every hand of one round, or none of them.

        Each hand's wager is debited and ``wager + pnl`` credited back, then
        one RoundRecord per hand is appended.

        Raises:
            RoundAbortedError: a wager exceeds its balance; nothing was applied
            ValueError: malformed hand (empty round or impossible P/L)
        """
        if not hands:
            raise ValueError("commit_round needs at least one hand")
        for hand in hands:
            if hand.pnl_cents not in (hand.wager_cents, -hand.wager_cents, 0):
                raise ValueError(
                    f"P/L {hand.pnl_cents} impossible for wager {hand.wager_cents}"
                )

        round_id = round_id or f"rnd_{uuid4().hex[:8]}"
        keys = [(hand.agent_id, hand.day) for hand in hands]
        created_at = self._clock()

        with self._hold(keys):
            required: dict[LedgerKey, int] = {}
            for key, hand in zip(keys, hands):
                required[key] = required.get(key, 0) + hand.wager_cents
            for key, amount in required.items():
                balance = self._seed(key)
                if amount > balance:
                    raise RoundAbortedError(
                        f"Wager {amount} exceeds balance {balance} for {key[0]}; "
                        "round not committed"
                    )

            records: list[RoundRecord] = []
            for key, hand in zip(keys, hands):
                balance = self._balances[key] - hand.wager_cents
                balance += hand.wager_cents + hand.pnl_cents
                self._balances[key] = balance
                records.append(
                    RoundRecord(
                        id=f"hand_{uuid4().hex[:8]}",
                        round_id=round_id,
                        mode=mode,
                        balance_after_cents=balance,
                        created_at=created_at,
                        **hand.model_dump(),
                    )
                )
            self._records.extend(records)

        self._persist()
        for record in records:
            logger.info(
                f"Settled {record.agent_id} {record.outcome} "
                f"{record.pnl_cents:+d}c (balance {record.balance_after_cents}c)"
            )
        return records

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def history(self, agent_id: str | None = None, day: str | None = None) -> list[RoundRecord]:
        """Settled rounds in commit order, optionally filtered."""
        return [
            r
            for r in list(self._records)
            if (agent_id is None or r.agent_id == agent_id)
            and (day is None or r.day == day)
        ]

    def daily_state(self, agent_id: str, day: str) -> DailyState:
        balance = self.get_or_init_balance(agent_id, day)
        rounds = self.history(agent_id, day)
        return DailyState(
            agent_id=agent_id,
            day=day,
            balance_cents=balance,
            rounds_played=len(rounds),
            pnl_cents=sum(r.pnl_cents for r in rounds),
        )
