"""Ordered, typed events describing round progress.

Every event carries a run-scoped ``sequence``; per-agent events also carry the
``seat`` ("a" or "b") and ``agent_id``. The sequence alone is enough to rebuild
each round with :func:`replay`. Delivery is strictly observational: a sink
that fails is detached and the round carries on.
"""

import asyncio
import inspect
import logging
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable
from typing import Annotated, Literal
from uuid import uuid4

from pydantic import BaseModel, Field, TypeAdapter

logger = logging.getLogger(__name__)

Seat = Literal["a", "b"]


# ============================================================================
# Events
# ============================================================================


class BaseEvent(BaseModel):
    sequence: int = 0
    run_id: str = ""


class SeatCards(BaseModel):
    seat: Seat
    agent_id: str
    cards: list[str]
    total: int


class RoundStarted(BaseEvent):
    type: Literal["round_started"] = "round_started"
    round_index: int
    total_rounds: int
    round_id: str
    mode: Literal["single", "vs"]
    agent_ids: list[str]


class CardsDealt(BaseEvent):
    type: Literal["cards_dealt"] = "cards_dealt"
    hands: list[SeatCards]
    dealer_upcard: str


class WagerPlaced(BaseEvent):
    type: Literal["wager_placed"] = "wager_placed"
    seat: Seat
    agent_id: str
    wager_cents: int
    rationale: str | None = None


class ReasoningFragment(BaseEvent):
    type: Literal["reasoning_fragment"] = "reasoning_fragment"
    seat: Seat
    agent_id: str
    text: str


class DecisionMade(BaseEvent):
    type: Literal["decision_made"] = "decision_made"
    seat: Seat
    agent_id: str
    decision: Literal["hit", "stand"]
    rationale: str | None = None


class CardDrawn(BaseEvent):
    type: Literal["card_drawn"] = "card_drawn"
    seat: Seat
    agent_id: str
    card: str
    cards: list[str]
    total: int


class DealerRevealed(BaseEvent):
    type: Literal["dealer_revealed"] = "dealer_revealed"
    cards: list[str]
    total: int


class DealerDrew(BaseEvent):
    type: Literal["dealer_drew"] = "dealer_drew"
    card: str
    cards: list[str]
    total: int


class OutcomeReached(BaseEvent):
    type: Literal["outcome"] = "outcome"
    seat: Seat
    agent_id: str
    outcome: Literal["win", "loss", "push"]
    pnl_cents: int
    balance_cents: int


class RoundEnded(BaseEvent):
    type: Literal["round_ended"] = "round_ended"
    round_index: int
    round_id: str


class ErrorRaised(BaseEvent):
    type: Literal["error"] = "error"
    message: str
    code: str | None = None


class RunDone(BaseEvent):
    type: Literal["done"] = "done"
    rounds_completed: int
    stop_reason: str


TelemetryEvent = Annotated[
    RoundStarted
    | CardsDealt
    | WagerPlaced
    | ReasoningFragment
    | DecisionMade
    | CardDrawn
    | DealerRevealed
    | DealerDrew
    | OutcomeReached
    | RoundEnded
    | ErrorRaised
    | RunDone,
    Field(discriminator="type"),
]

event_adapter: TypeAdapter[TelemetryEvent] = TypeAdapter(TelemetryEvent)


def parse_event(data: dict | str | bytes) -> BaseEvent:
    """Parse one serialized event back into its typed model."""
    if isinstance(data, dict):
        return event_adapter.validate_python(data)
    return event_adapter.validate_json(data)


def to_sse(event: BaseEvent) -> str:
    """Format an event as a Server-Sent Events frame."""
    return f"data: {event.model_dump_json()}\n\n"


# ============================================================================
# Channel and sinks
# ============================================================================

Sink = Callable[[BaseEvent], Awaitable[None] | None]


class TelemetryChannel:
    """Fan-out of run events to any number of sinks.

    ``emit`` never raises. A sink that raises is logged and detached.
    """

    def __init__(self, run_id: str | None = None, keep_history: bool = True):
        self.run_id = run_id or f"run_{uuid4().hex[:8]}"
        self._sinks: list[Sink] = []
        self._sequence = 0
        self._keep_history = keep_history
        self.history: list[BaseEvent] = []
        # Bumped by the producer right after each ledger commit
        self.rounds_committed = 0

    def subscribe(self, sink: Sink) -> None:
        self._sinks.append(sink)

    def unsubscribe(self, sink: Sink) -> None:
        if sink in self._sinks:
            self._sinks.remove(sink)

    @property
    def sink_count(self) -> int:
        return len(self._sinks)

    async def emit(self, event: BaseEvent) -> BaseEvent:
        self._sequence += 1
        event = event.model_copy(update={"sequence": self._sequence, "run_id": self.run_id})
        if self._keep_history:
            self.history.append(event)

        for sink in list(self._sinks):
            try:
                result = sink(event)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.warning(f"Telemetry sink failed, detaching: {e}")
                self.unsubscribe(sink)
        return event


class QueueSink:
    """Bridges a channel to an asyncio.Queue consumed by a streaming response."""

    def __init__(self, maxsize: int = 0):
        self.queue: asyncio.Queue[BaseEvent | None] = asyncio.Queue(maxsize=maxsize)
        self.closed = False

    def __call__(self, event: BaseEvent) -> None:
        if self.closed:
            raise RuntimeError("Consumer disconnected")
        self.queue.put_nowait(event)
        if isinstance(event, RunDone):
            self.close()

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self.queue.put_nowait(None)

    async def events(self) -> AsyncIterator[BaseEvent]:
        """Yield events until the run finishes or the sink is closed."""
        while True:
            event = await self.queue.get()
            if event is None:
                return
            yield event


# ============================================================================
# Replay
# ============================================================================


class SeatView(BaseModel):
    seat: Seat
    agent_id: str
    cards: list[str] = Field(default_factory=list)
    wager_cents: int | None = None
    decisions: list[str] = Field(default_factory=list)
    reasoning: str = ""
    outcome: Literal["win", "loss", "push"] | None = None
    pnl_cents: int | None = None
    balance_cents: int | None = None


class RoundView(BaseModel):
    """Round state rebuilt from events alone."""

    round_index: int
    round_id: str
    mode: Literal["single", "vs"]
    seats: dict[str, SeatView] = Field(default_factory=dict)
    dealer_cards: list[str] = Field(default_factory=list)
    completed: bool = False


def replay(events: Iterable[BaseEvent]) -> list[RoundView]:
    """Rebuild every round's hands, wagers, decisions and outcomes."""
    rounds: list[RoundView] = []
    current: RoundView | None = None

    for event in sorted(events, key=lambda e: e.sequence):
        if isinstance(event, RoundStarted):
            current = RoundView(
                round_index=event.round_index,
                round_id=event.round_id,
                mode=event.mode,
            )
            rounds.append(current)
            continue
        if current is None:
            continue

        if isinstance(event, CardsDealt):
            for hand in event.hands:
                current.seats[hand.seat] = SeatView(
                    seat=hand.seat, agent_id=hand.agent_id, cards=list(hand.cards)
                )
            current.dealer_cards = [event.dealer_upcard]
        elif isinstance(event, WagerPlaced):
            current.seats[event.seat].wager_cents = event.wager_cents
        elif isinstance(event, ReasoningFragment):
            current.seats[event.seat].reasoning += event.text
        elif isinstance(event, DecisionMade):
            current.seats[event.seat].decisions.append(event.decision)
        elif isinstance(event, CardDrawn):
            current.seats[event.seat].cards = list(event.cards)
        elif isinstance(event, (DealerRevealed, DealerDrew)):
            current.dealer_cards = list(event.cards)
        elif isinstance(event, OutcomeReached):
            seat = current.seats[event.seat]
            seat.outcome = event.outcome
            seat.pnl_cents = event.pnl_cents
            seat.balance_cents = event.balance_cents
        elif isinstance(event, RoundEnded):
            current.completed = True
            current = None

    return rounds
