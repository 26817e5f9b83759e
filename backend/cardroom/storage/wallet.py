"""Shared anonymous participant wallet used to place spectator wagers."""

import logging
import threading
from pathlib import Path

from pydantic import BaseModel

from cardroom.clock import Clock, day_key, utc_now
from cardroom.market.exceptions import DailyClaimError
from cardroom.storage.files import atomic_write_yaml, load_yaml

logger = logging.getLogger(__name__)


class WalletState(BaseModel):
    balance_cents: int = 0
    last_claim_day: str | None = None


class WalletView(BaseModel):
    balance_cents: int
    daily_claimed_today: bool


class ParticipantWallet:
    """Single balance shared by every spectator (no accounts)."""

    def __init__(self, daily_cents: int, path: Path | None = None, clock: Clock = utc_now):
        self.daily_cents = daily_cents
        self._path = path
        self._clock = clock
        self._lock = threading.Lock()
        self._state = WalletState()

        if path is not None:
            raw = load_yaml(path)
            if raw is not None:
                self._state = WalletState(**raw)

    def _persist(self) -> None:
        if self._path is not None:
            atomic_write_yaml(self._path, self._state.model_dump(mode="json"))

    @property
    def balance_cents(self) -> int:
        return self._state.balance_cents

    def view(self) -> WalletView:
        with self._lock:
            return WalletView(
                balance_cents=self._state.balance_cents,
                daily_claimed_today=self._state.last_claim_day == day_key(self._clock()),
            )

    def claim_daily(self) -> int:
        """Add the daily allowance once per UTC day.

        Raises:
            DailyClaimError: already claimed today
        """
        today = day_key(self._clock())
        with self._lock:
            if self._state.last_claim_day == today:
                raise DailyClaimError(today)
            self._state.last_claim_day = today
            self._state.balance_cents += self.daily_cents
            balance = self._state.balance_cents
            self._persist()
        logger.info(f"Daily allowance claimed, wallet balance {balance}c")
        return balance

    def debit(self, amount_cents: int) -> bool:
        """Deduct a stake. Returns False, leaving the balance alone, when it cannot be covered."""
        if amount_cents <= 0:
            raise ValueError("Debit amount must be > 0")
        with self._lock:
            if self._state.balance_cents < amount_cents:
                return False
            self._state.balance_cents -= amount_cents
            self._persist()
        return True

    def credit(self, amount_cents: int) -> int:
        if amount_cents < 0:
            raise ValueError("Credit amount must be >= 0")
        with self._lock:
            if amount_cents:
                self._state.balance_cents += amount_cents
                self._persist()
            return self._state.balance_cents
