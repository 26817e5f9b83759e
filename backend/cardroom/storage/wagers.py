"""Wager book: every spectator wager placed, pending or settled."""

import logging
import threading
from pathlib import Path

from pydantic import BaseModel, Field

from cardroom.market.models import HeadToHeadWager, PerformanceWager
from cardroom.storage.files import atomic_write_yaml, load_yaml

logger = logging.getLogger(__name__)


class WagerBookSnapshot(BaseModel):
    """On-disk shape of data/wagers.yaml."""

    performance: list[PerformanceWager] = Field(default_factory=list)
    head_to_head: list[HeadToHeadWager] = Field(default_factory=list)


class WagerBook:
    """Stores wagers in placement order. Only the market service writes here."""

    def __init__(self, path: Path | None = None):
        self._path = path
        self._lock = threading.Lock()
        self._performance: dict[str, PerformanceWager] = {}
        self._head_to_head: dict[str, HeadToHeadWager] = {}

        if path is not None:
            raw = load_yaml(path)
            if raw is not None:
                snapshot = WagerBookSnapshot(**raw)
                self._performance = {w.id: w for w in snapshot.performance}
                self._head_to_head = {w.id: w for w in snapshot.head_to_head}
                logger.info(
                    f"Loaded wager book: {len(self._performance)} performance, "
                    f"{len(self._head_to_head)} head-to-head"
                )

    def _persist(self) -> None:
        # Caller holds the lock
        if self._path is None:
            return
        snapshot = WagerBookSnapshot(
            performance=list(self._performance.values()),
            head_to_head=list(self._head_to_head.values()),
        )
        atomic_write_yaml(self._path, snapshot.model_dump(mode="json"))

    def save_performance(self, wager: PerformanceWager) -> None:
        """Insert or replace a performance wager."""
        with self._lock:
            self._performance[wager.id] = wager
            self._persist()

    def save_head_to_head(self, wager: HeadToHeadWager) -> None:
        """Insert or replace a head-to-head wager."""
        with self._lock:
            self._head_to_head[wager.id] = wager
            self._persist()

    def performance_wagers(
        self,
        agent_id: str | None = None,
        period: str | None = None,
    ) -> list[PerformanceWager]:
        with self._lock:
            wagers = list(self._performance.values())
        return [
            w
            for w in wagers
            if (agent_id is None or w.agent_id == agent_id)
            and (period is None or w.period == period)
        ]

    def head_to_head_wagers(
        self,
        agent_a: str | None = None,
        agent_b: str | None = None,
        day: str | None = None,
    ) -> list[HeadToHeadWager]:
        with self._lock:
            wagers = list(self._head_to_head.values())
        return [
            w
            for w in wagers
            if (agent_a is None or w.agent_a == agent_a)
            and (agent_b is None or w.agent_b == agent_b)
            and (day is None or w.day == day)
        ]
