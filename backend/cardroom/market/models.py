"""Pydantic models for spectator wagers, odds and leaderboards."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

PerformanceSide = Literal["yes", "no"]
HeadToHeadSide = Literal["a", "b"]
WagerOutcome = Literal["pending", "win", "loss", "push"]


class PerformanceWager(BaseModel):
    """Bet that an agent finishes a period (UTC day) with positive P/L ("yes")."""

    id: str
    agent_id: str
    period: str
    side: PerformanceSide
    stake_cents: int = Field(gt=0)
    outcome: Literal["pending", "win", "loss"] = "pending"
    payout_cents: int | None = None
    placed_at: datetime
    settled_at: datetime | None = None


class HeadToHeadWager(BaseModel):
    """Bet on which of two agents gains more over its next window of rounds.

    The rounds/P&L snapshot taken at placement drives resolution, not the clock.
    """

    id: str
    agent_a: str
    agent_b: str
    side: HeadToHeadSide
    stake_cents: int = Field(gt=0)
    day: str
    rounds_a_at_placement: int
    pnl_a_at_placement: int
    rounds_b_at_placement: int
    pnl_b_at_placement: int
    outcome: WagerOutcome = "pending"
    payout_cents: int | None = None
    placed_at: datetime
    settled_at: datetime | None = None


class OddsPoint(BaseModel):
    """Implied probability after one placement. Derived, never stored."""

    time: datetime
    implied_pct: float
    first_side_cents: int
    second_side_cents: int


class LeaderboardRow(BaseModel):
    agent_id: str
    name: str
    pnl_cents: int
    rounds_played: int


class LeaderboardPoint(BaseModel):
    round_index: int
    cumulative_pnl_cents: int


class LeaderboardSeries(BaseModel):
    agent_id: str
    name: str
    points: list[LeaderboardPoint] = Field(default_factory=list)


class SettlementSummary(BaseModel):
    """Counts from one settlement sweep."""

    performance_settled: int = 0
    head_to_head_settled: int = 0
    credited_cents: int = 0
