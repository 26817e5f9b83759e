"""Parimutuel settlement of spectator wagers, odds history and leaderboards.

Everything here is derived from two sources: the wager book and the ledger's
settled-round history. Settlement passes are idempotent (settled wagers are
skipped by outcome) and serialized by one lock, so the scheduler's sweep and
API-triggered passes can overlap safely.
"""

import logging
import threading
from datetime import date
from uuid import uuid4

from cardroom.agents.registry import AgentProfile, AgentRegistry
from cardroom.clock import Clock, day_key, utc_now
from cardroom.config import MarketConfig
from cardroom.market.exceptions import InsufficientBalanceError, InvalidWagerError
from cardroom.market.models import (
    HeadToHeadSide,
    HeadToHeadWager,
    LeaderboardPoint,
    LeaderboardRow,
    LeaderboardSeries,
    OddsPoint,
    PerformanceSide,
    PerformanceWager,
    SettlementSummary,
)
from cardroom.services.audit import AuditPublisher
from cardroom.storage.ledger import BankrollLedger
from cardroom.storage.wagers import WagerBook
from cardroom.storage.wallet import ParticipantWallet
from cardroom.table.exceptions import UnknownAgentError

logger = logging.getLogger(__name__)


def parimutuel_payout(stake_cents: int, pool_cents: int, winning_cents: int) -> int:
    """Winner's share of the whole pool, rounded half up to the cent.

    With no stake on the winning side the divisor is 1.
    """
    divisor = winning_cents if winning_cents > 0 else 1
    return (2 * stake_cents * pool_cents + divisor) // (2 * divisor)


def implied_pct(side_cents: int, total_cents: int) -> float:
    """Implied probability in percent, one decimal. 50 when the pool is empty."""
    if total_cents <= 0:
        return 50.0
    return round(100 * side_cents / total_cents, 1)


class MarketService:
    """Sole writer of the wager lifecycle and sole creditor of the wallet."""

    def __init__(
        self,
        ledger: BankrollLedger,
        wallet: ParticipantWallet,
        book: WagerBook,
        config: MarketConfig,
        registry: AgentRegistry | None = None,
        audit: AuditPublisher | None = None,
        clock: Clock = utc_now,
    ):
        self.ledger = ledger
        self.wallet = wallet
        self.book = book
        self.config = config
        self.registry = registry
        self.audit = audit
        self._clock = clock
        self._settle_lock = threading.Lock()

    def today(self) -> str:
        return day_key(self._clock())

    def profiles(self) -> list[AgentProfile]:
        return self.registry.profiles() if self.registry is not None else []

    def _name_for(self, agent_id: str) -> str:
        for profile in self.profiles():
            if profile.id == agent_id:
                return profile.name
        return agent_id

    def canonical_id(self, agent_id: str) -> str:
        """Map an alias (any letter case, or the model name) to the agent's id.

        Without a registry every non-empty id is taken as given.

        Raises:
            InvalidWagerError: empty or unknown agent
        """
        if not agent_id:
            raise InvalidWagerError("Agent id required")
        if self.registry is None:
            return agent_id
        try:
            return self.registry.resolve(agent_id).id
        except UnknownAgentError:
            raise InvalidWagerError(f"Unknown agent: {agent_id}")

    def _take_stake(self, stake_cents: int) -> None:
        if stake_cents <= 0:
            raise InvalidWagerError("Stake must be positive")
        if not self.wallet.debit(stake_cents):
            raise InsufficientBalanceError(stake_cents, self.wallet.balance_cents)

    # ------------------------------------------------------------------
    # Placement
    # ------------------------------------------------------------------

    def place_performance_wager(
        self,
        agent_id: str,
        period: str,
        side: PerformanceSide,
        stake_cents: int,
    ) -> PerformanceWager:
        """Bet on whether agent_id ends ``period`` with positive P/L.

        Betting on a period closes when the period ends.
        """
        if side not in ("yes", "no"):
            raise InvalidWagerError(f"Invalid side: {side}")
        agent_id = self.canonical_id(agent_id)
        try:
            period = date.fromisoformat(period).isoformat()
        except ValueError:
            raise InvalidWagerError(f"Period must be YYYY-MM-DD, got {period!r}")
        if period < self.today():
            raise InvalidWagerError(f"Betting on {period} is closed")
        self._take_stake(stake_cents)

        wager = PerformanceWager(
            id=f"pw_{uuid4().hex[:8]}",
            agent_id=agent_id,
            period=period,
            side=side,
            stake_cents=stake_cents,
            placed_at=self._clock(),
        )
        self.book.save_performance(wager)
        logger.info(f"Performance wager {wager.id}: {side} on {agent_id} {period} {stake_cents}c")
        return wager

    def place_head_to_head_wager(
        self,
        agent_a: str,
        agent_b: str,
        side: HeadToHeadSide,
        stake_cents: int,
    ) -> HeadToHeadWager:
        """Bet on which agent gains more over each one's next window of rounds."""
        if side not in ("a", "b"):
            raise InvalidWagerError(f"Invalid side: {side}")
        agent_a = self.canonical_id(agent_a)
        agent_b = self.canonical_id(agent_b)
        if agent_a == agent_b:
            raise InvalidWagerError("Head-to-head needs two different agents")
        self._take_stake(stake_cents)

        day = self.today()
        state_a = self.ledger.daily_state(agent_a, day)
        state_b = self.ledger.daily_state(agent_b, day)
        wager = HeadToHeadWager(
            id=f"h2h_{uuid4().hex[:8]}",
            agent_a=agent_a,
            agent_b=agent_b,
            side=side,
            stake_cents=stake_cents,
            day=day,
            rounds_a_at_placement=state_a.rounds_played,
            pnl_a_at_placement=state_a.pnl_cents,
            rounds_b_at_placement=state_b.rounds_played,
            pnl_b_at_placement=state_b.pnl_cents,
            placed_at=self._clock(),
        )
        self.book.save_head_to_head(wager)
        logger.info(f"Head-to-head wager {wager.id}: {side} in {agent_a} vs {agent_b} {stake_cents}c")
        return wager

    # ------------------------------------------------------------------
    # Settlement
    # ------------------------------------------------------------------

    def settle_performance_period(self, period: str) -> SettlementSummary:
        """Settle every pending performance wager of a finished period.

        Periods that are today or later are left alone.
        """
        summary = SettlementSummary()
        if period >= self.today():
            return summary

        with self._settle_lock:
            wagers = self.book.performance_wagers(period=period)
            for agent_id in sorted({w.agent_id for w in wagers if w.outcome == "pending"}):
                pool = [w for w in wagers if w.agent_id == agent_id]
                yes_cents = sum(w.stake_cents for w in pool if w.side == "yes")
                no_cents = sum(w.stake_cents for w in pool if w.side == "no")
                pnl = sum(r.pnl_cents for r in self.ledger.history(agent_id, period))
                winning_side = "yes" if pnl > 0 else "no"
                winning_cents = yes_cents if winning_side == "yes" else no_cents

                for wager in pool:
                    if wager.outcome != "pending":
                        continue
                    won = wager.side == winning_side
                    payout = (
                        parimutuel_payout(wager.stake_cents, yes_cents + no_cents, winning_cents)
                        if won
                        else 0
                    )
                    settled = wager.model_copy(
                        update={
                            "outcome": "win" if won else "loss",
                            "payout_cents": payout,
                            "settled_at": self._clock(),
                        }
                    )
                    self.book.save_performance(settled)
                    self.wallet.credit(payout)
                    summary.performance_settled += 1
                    summary.credited_cents += payout
                    self._publish_settlement("performance_settled", settled.id, settled.outcome, payout)

                logger.info(
                    f"Settled performance market {agent_id} {period}: "
                    f"P/L {pnl}c, {winning_side} wins, pool {yes_cents + no_cents}c"
                )
        return summary

    def settle_head_to_head(self) -> SettlementSummary:
        """Settle pending head-to-head wagers whose round window has elapsed."""
        summary = SettlementSummary()
        window = self.config.head_to_head_window

        with self._settle_lock:
            for wager in self.book.head_to_head_wagers():
                if wager.outcome != "pending":
                    continue
                state_a = self.ledger.daily_state(wager.agent_a, wager.day)
                state_b = self.ledger.daily_state(wager.agent_b, wager.day)
                if state_a.rounds_played < wager.rounds_a_at_placement + window:
                    continue
                if state_b.rounds_played < wager.rounds_b_at_placement + window:
                    continue

                gain_a = state_a.pnl_cents - wager.pnl_a_at_placement
                gain_b = state_b.pnl_cents - wager.pnl_b_at_placement
                if gain_a == gain_b:
                    outcome, payout = "push", wager.stake_cents
                else:
                    winning_side = "a" if gain_a > gain_b else "b"
                    if wager.side == winning_side:
                        pool = self.book.head_to_head_wagers(
                            wager.agent_a, wager.agent_b, wager.day
                        )
                        total = sum(w.stake_cents for w in pool)
                        winning = sum(w.stake_cents for w in pool if w.side == winning_side)
                        outcome = "win"
                        payout = parimutuel_payout(wager.stake_cents, total, winning)
                    else:
                        outcome, payout = "loss", 0

                settled = wager.model_copy(
                    update={
                        "outcome": outcome,
                        "payout_cents": payout,
                        "settled_at": self._clock(),
                    }
                )
                self.book.save_head_to_head(settled)
                self.wallet.credit(payout)
                summary.head_to_head_settled += 1
                summary.credited_cents += payout
                self._publish_settlement("head_to_head_settled", settled.id, outcome, payout)
                logger.info(
                    f"Settled head-to-head {wager.id}: gains {gain_a}c vs {gain_b}c -> {outcome}"
                )
        return summary

    def settle_due(self) -> SettlementSummary:
        """Settle everything whose conditions are met. Safe to call repeatedly."""
        summary = SettlementSummary()
        today = self.today()
        periods = sorted(
            {
                w.period
                for w in self.book.performance_wagers()
                if w.outcome == "pending" and w.period < today
            }
        )
        for period in periods:
            part = self.settle_performance_period(period)
            summary.performance_settled += part.performance_settled
            summary.credited_cents += part.credited_cents

        part = self.settle_head_to_head()
        summary.head_to_head_settled = part.head_to_head_settled
        summary.credited_cents += part.credited_cents

        if summary.performance_settled or summary.head_to_head_settled:
            logger.info(
                f"Settlement sweep: {summary.performance_settled} performance, "
                f"{summary.head_to_head_settled} head-to-head, {summary.credited_cents}c credited"
            )
        return summary

    def _publish_settlement(self, kind: str, wager_id: str, outcome: str, payout: int) -> None:
        if self.audit is not None:
            self.audit.publish(
                {"kind": kind, "wager_id": wager_id, "outcome": outcome, "payout_cents": payout}
            )

    # ------------------------------------------------------------------
    # Odds
    # ------------------------------------------------------------------

    def performance_odds(self, agent_id: str, period: str) -> list[OddsPoint]:
        """Implied "yes" percentage after each placement, in placement order."""
        wagers = sorted(
            self.book.performance_wagers(agent_id=agent_id, period=period),
            key=lambda w: w.placed_at,
        )
        return _odds_series((w.side == "yes", w.stake_cents, w.placed_at) for w in wagers)

    def head_to_head_odds(self, agent_a: str, agent_b: str, day: str) -> list[OddsPoint]:
        """Implied "a wins" percentage after each placement on this pair and day."""
        wagers = sorted(
            self.book.head_to_head_wagers(agent_a, agent_b, day),
            key=lambda w: w.placed_at,
        )
        return _odds_series((w.side == "a", w.stake_cents, w.placed_at) for w in wagers)

    # ------------------------------------------------------------------
    # Leaderboard
    # ------------------------------------------------------------------

    def leaderboard(self, period: str) -> list[LeaderboardRow]:
        """P/L per agent for one day, best first. Known agents appear even with no rounds."""
        rows: dict[str, LeaderboardRow] = {
            p.id: LeaderboardRow(agent_id=p.id, name=p.name, pnl_cents=0, rounds_played=0)
            for p in self.profiles()
        }
        for record in self.ledger.history(day=period):
            row = rows.get(record.agent_id)
            if row is None:
                row = rows[record.agent_id] = LeaderboardRow(
                    agent_id=record.agent_id,
                    name=self._name_for(record.agent_id),
                    pnl_cents=0,
                    rounds_played=0,
                )
            row.pnl_cents += record.pnl_cents
            row.rounds_played += 1
        return sorted(rows.values(), key=lambda r: r.pnl_cents, reverse=True)

    def leaderboard_history(self, period: str) -> list[LeaderboardSeries]:
        """Cumulative P/L after each round, per agent, for one day."""
        series: dict[str, LeaderboardSeries] = {}
        running: dict[str, int] = {}
        for record in self.ledger.history(day=period):
            line = series.get(record.agent_id)
            if line is None:
                line = series[record.agent_id] = LeaderboardSeries(
                    agent_id=record.agent_id, name=self._name_for(record.agent_id)
                )
            running[record.agent_id] = running.get(record.agent_id, 0) + record.pnl_cents
            line.points.append(
                LeaderboardPoint(
                    round_index=len(line.points) + 1,
                    cumulative_pnl_cents=running[record.agent_id],
                )
            )
        return list(series.values())


def _odds_series(placements) -> list[OddsPoint]:
    points: list[OddsPoint] = []
    first = second = 0
    for on_first, stake, placed_at in placements:
        if on_first:
            first += stake
        else:
            second += stake
        points.append(
            OddsPoint(
                time=placed_at,
                implied_pct=implied_pct(first, first + second),
                first_side_cents=first,
                second_side_cents=second,
            )
        )
    return points
