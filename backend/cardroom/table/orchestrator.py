"""Round orchestration for one agent or two agents sharing a dealer ("VS").

Per round: deal, ask each seat for a wager (after it has seen its cards),
let each seat hit or stand, play the dealer out when somebody is still
standing, resolve, then commit every seat to the ledger in one call.
Telemetry is emitted at every transition but never gates a ledger effect.
"""

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any, Literal
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field

from cardroom.agents.gateway import (
    AgentGateway,
    AgentReply,
    GatewayError,
    StreamChunk,
    StreamingAgentGateway,
)
from cardroom.agents.registry import AgentRegistry
from cardroom.clock import Clock, day_key, utc_now
from cardroom.config import TableConfig
from cardroom.services.audit import AuditPublisher
from cardroom.storage.ledger import BankrollLedger, RoundRecord, SettledHand
from cardroom.table.engine import (
    Card,
    codes,
    draw,
    is_bust,
    new_shuffled_deck,
    play_dealer,
    profit_for,
    resolve,
    value_of,
)
from cardroom.table.exceptions import (
    DeckExhaustedError,
    InsufficientBankrollError,
    RoundAbortedError,
    TableError,
)
from cardroom.table.parsing import parse_decision, parse_reply, parse_wager_cents, reply_text
from cardroom.table.prompts import build_play_prompt, build_wager_prompt
from cardroom.table.telemetry import (
    CardDrawn,
    CardsDealt,
    DealerDrew,
    DealerRevealed,
    DecisionMade,
    ErrorRaised,
    OutcomeReached,
    ReasoningFragment,
    RoundEnded,
    RoundStarted,
    RunDone,
    SeatCards,
    TelemetryChannel,
    WagerPlaced,
)

logger = logging.getLogger(__name__)

StopReason = Literal["completed", "insufficient_bankroll", "aborted"]
DeckFactory = Callable[[], list[Card]]


class RunResult(BaseModel):
    """What a run did. Records hold every committed hand, in order."""

    run_id: str
    mode: Literal["single", "vs"]
    agent_ids: list[str]
    rounds_requested: int
    rounds_completed: int = 0
    stop_reason: StopReason = "completed"
    error: str | None = None
    records: list[RoundRecord] = Field(default_factory=list)


class _SeatState(BaseModel):
    """Mutable per-seat state during a single round."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    seat: Literal["a", "b"]
    agent_id: str
    gateway: Any
    cards: list[Card] = Field(default_factory=list)
    wager_cents: int = 0
    decisions: list[str] = Field(default_factory=list)
    rationale: str | None = None


class RoundOrchestrator:
    """Drives runs of rounds against the ledger."""

    def __init__(
        self,
        registry: AgentRegistry,
        ledger: BankrollLedger,
        table: TableConfig,
        audit: AuditPublisher | None = None,
        deck_factory: DeckFactory = new_shuffled_deck,
        clock: Clock = utc_now,
    ):
        self.registry = registry
        self.ledger = ledger
        self.table = table
        self.audit = audit
        self._deck_factory = deck_factory
        self._clock = clock

    # ------------------------------------------------------------------
    # Limits
    # ------------------------------------------------------------------

    def clamp_rounds(self, rounds: int) -> int:
        return max(1, min(rounds, self.table.max_rounds_per_run))

    def effective_max_wager(self, max_wager_cents: int = 0) -> int:
        """Caller cap, never above the table maximum. Zero or less means the table maximum."""
        if max_wager_cents <= 0:
            return self.table.max_wager_cents
        return min(max_wager_cents, self.table.max_wager_cents)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def play_run(
        self,
        agent_id: str,
        rounds: int,
        channel: TelemetryChannel | None = None,
        max_wager_cents: int = 0,
    ) -> RunResult:
        """Play up to ``rounds`` single-agent rounds.

        Raises:
            UnknownAgentError: agent_id has no gateway (nothing mutated)
        """
        agent_id = self.registry.resolve(agent_id).id
        gateway = self.registry.require(agent_id)
        seats = [_SeatState(seat="a", agent_id=agent_id, gateway=gateway)]
        return await self._run("single", seats, rounds, channel, max_wager_cents)

    async def play_vs_run(
        self,
        agent_a: str,
        agent_b: str,
        rounds: int,
        channel: TelemetryChannel | None = None,
        max_wager_cents: int = 0,
    ) -> RunResult:
        """Play up to ``rounds`` rounds with two agents at one table.

        Raises:
            TableError: both seats name the same agent
            UnknownAgentError: either agent has no gateway (nothing mutated)
        """
        agent_a = self.registry.resolve(agent_a).id
        agent_b = self.registry.resolve(agent_b).id
        if agent_a == agent_b:
            raise TableError("VS mode needs two different agents", code="SAME_AGENT")
        gateway_a = self.registry.require(agent_a)
        gateway_b = self.registry.require(agent_b)
        seats = [
            _SeatState(seat="a", agent_id=agent_a, gateway=gateway_a),
            _SeatState(seat="b", agent_id=agent_b, gateway=gateway_b),
        ]
        return await self._run("vs", seats, rounds, channel, max_wager_cents)

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    async def _run(
        self,
        mode: Literal["single", "vs"],
        seats: list[_SeatState],
        rounds: int,
        channel: TelemetryChannel | None,
        max_wager_cents: int,
    ) -> RunResult:
        channel = channel or TelemetryChannel()
        total_rounds = self.clamp_rounds(rounds)
        max_wager = self.effective_max_wager(max_wager_cents)
        result = RunResult(
            run_id=channel.run_id,
            mode=mode,
            agent_ids=[s.agent_id for s in seats],
            rounds_requested=total_rounds,
        )
        logger.info(f"Run {result.run_id} starting: {mode} {result.agent_ids} x{total_rounds}")

        for round_index in range(1, total_rounds + 1):
            day = day_key(self._clock())
            try:
                self._check_bankrolls(seats, day)
                records = await self._play_round(
                    mode, seats, day, round_index, total_rounds, channel, max_wager
                )
            except InsufficientBankrollError as e:
                logger.info(f"Run {result.run_id} stopped: {e}")
                result.stop_reason = "insufficient_bankroll"
                result.error = str(e)
                await channel.emit(ErrorRaised(message=str(e), code=e.code))
                break
            except (GatewayError, RoundAbortedError, DeckExhaustedError) as e:
                logger.error(f"Run {result.run_id} round {round_index} aborted: {e}")
                result.stop_reason = "aborted"
                result.error = str(e)
                await channel.emit(
                    ErrorRaised(message=str(e), code=getattr(e, "code", None) or "GATEWAY_ERROR")
                )
                break

            result.records.extend(records)
            result.rounds_completed += 1

        await channel.emit(
            RunDone(rounds_completed=result.rounds_completed, stop_reason=result.stop_reason)
        )
        logger.info(
            f"Run {result.run_id} finished: {result.rounds_completed}/{total_rounds} "
            f"rounds ({result.stop_reason})"
        )
        return result

    def _check_bankrolls(self, seats: list[_SeatState], day: str) -> None:
        for seat in seats:
            balance = self.ledger.get_or_init_balance(seat.agent_id, day)
            if balance < self.table.min_wager_cents:
                raise InsufficientBankrollError(
                    seat.agent_id, balance, self.table.min_wager_cents
                )

    # ------------------------------------------------------------------
    # Round
    # ------------------------------------------------------------------

    async def _play_round(
        self,
        mode: Literal["single", "vs"],
        seats: list[_SeatState],
        day: str,
        round_index: int,
        total_rounds: int,
        channel: TelemetryChannel,
        max_wager: int,
    ) -> list[RoundRecord]:
        round_id = f"rnd_{uuid4().hex[:8]}"
        for seat in seats:
            seat.cards, seat.decisions, seat.wager_cents, seat.rationale = [], [], 0, None

        await channel.emit(
            RoundStarted(
                round_index=round_index,
                total_rounds=total_rounds,
                round_id=round_id,
                mode=mode,
                agent_ids=[s.agent_id for s in seats],
            )
        )

        # Every seat's two cards come off the deck before the dealer's
        deck = self._deck_factory()
        for seat in seats:
            seat.cards = [draw(deck), draw(deck)]
        upcard = draw(deck)
        hole = draw(deck)

        await channel.emit(
            CardsDealt(
                hands=[
                    SeatCards(
                        seat=s.seat,
                        agent_id=s.agent_id,
                        cards=codes(s.cards),
                        total=value_of(s.cards),
                    )
                    for s in seats
                ],
                dealer_upcard=upcard.code,
            )
        )

        for seat in seats:
            await self._take_wager(seat, day, upcard, max_wager, channel)

        for seat in seats:
            await self._play_hand(seat, deck, upcard, channel)

        dealer = [upcard, hole]
        await channel.emit(DealerRevealed(cards=codes(dealer), total=value_of(dealer)))
        if any(not is_bust(seat.cards) for seat in seats):
            dealer, drawn = play_dealer(deck, dealer)
            shown = dealer[: len(dealer) - len(drawn)]
            for card in drawn:
                shown.append(card)
                await channel.emit(
                    DealerDrew(card=card.code, cards=codes(shown), total=value_of(shown))
                )

        hands = []
        for seat in seats:
            outcome = resolve(seat.cards, dealer)
            hands.append(
                SettledHand(
                    agent_id=seat.agent_id,
                    day=day,
                    seat=seat.seat,
                    wager_cents=seat.wager_cents,
                    player_cards=codes(seat.cards),
                    dealer_cards=codes(dealer),
                    decisions=list(seat.decisions),
                    outcome=outcome,
                    pnl_cents=profit_for(outcome, seat.wager_cents),
                    rationale=seat.rationale,
                )
            )

        records = self.ledger.commit_round(hands, mode=mode, round_id=round_id)
        channel.rounds_committed += 1

        for record in records:
            await channel.emit(
                OutcomeReached(
                    seat=record.seat,
                    agent_id=record.agent_id,
                    outcome=record.outcome,
                    pnl_cents=record.pnl_cents,
                    balance_cents=record.balance_after_cents,
                )
            )
            self._publish(record)

        await channel.emit(RoundEnded(round_index=round_index, round_id=round_id))
        return records

    async def _take_wager(
        self,
        seat: _SeatState,
        day: str,
        upcard: Card,
        max_wager: int,
        channel: TelemetryChannel,
    ) -> None:
        balance = self.ledger.get_or_init_balance(seat.agent_id, day)
        cap = min(balance, max_wager)
        prompt = build_wager_prompt(
            balance, self.table.min_wager_cents, cap, seat.cards, upcard
        )
        reply = await self._ask(seat.gateway, seat.agent_id, prompt)
        seat.wager_cents = parse_wager_cents(
            reply_text(reply), self.table.min_wager_cents, cap
        )
        await channel.emit(
            WagerPlaced(
                seat=seat.seat,
                agent_id=seat.agent_id,
                wager_cents=seat.wager_cents,
                rationale=reply.rationale,
            )
        )

    async def _play_hand(
        self,
        seat: _SeatState,
        deck: list[Card],
        upcard: Card,
        channel: TelemetryChannel,
    ) -> None:
        """Ask hit/stand until the seat stands or busts."""
        while True:
            prompt = build_play_prompt(seat.cards, upcard)
            if isinstance(seat.gateway, StreamingAgentGateway):
                reply = await self._ask_streaming(seat, prompt, channel)
            else:
                reply = await self._ask(seat.gateway, seat.agent_id, prompt)

            decision = parse_decision(reply.decision)
            seat.decisions.append(decision)
            seat.rationale = reply.rationale
            await channel.emit(
                DecisionMade(
                    seat=seat.seat,
                    agent_id=seat.agent_id,
                    decision=decision,
                    rationale=reply.rationale,
                )
            )
            if decision != "hit":
                return

            card = draw(deck)
            seat.cards.append(card)
            await channel.emit(
                CardDrawn(
                    seat=seat.seat,
                    agent_id=seat.agent_id,
                    card=card.code,
                    cards=codes(seat.cards),
                    total=value_of(seat.cards),
                )
            )
            if is_bust(seat.cards):
                return

    # ------------------------------------------------------------------
    # Gateway calls
    # ------------------------------------------------------------------

    async def _ask(self, gateway: AgentGateway, agent_id: str, prompt: str) -> AgentReply:
        try:
            return await gateway.ask(prompt)
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(agent_id, str(e)) from e

    async def _ask_streaming(
        self,
        seat: _SeatState,
        prompt: str,
        channel: TelemetryChannel,
    ) -> AgentReply:
        """Forward chunks as reasoning fragments until the terminal reply."""
        parts: list[str] = []
        reply: AgentReply | None = None
        try:
            async for message in seat.gateway.ask_stream(prompt):
                if isinstance(message, StreamChunk):
                    parts.append(message.text)
                    await channel.emit(
                        ReasoningFragment(
                            seat=seat.seat, agent_id=seat.agent_id, text=message.text
                        )
                    )
                elif isinstance(message, AgentReply):
                    reply = message
        except GatewayError:
            raise
        except Exception as e:
            raise GatewayError(seat.agent_id, str(e)) from e

        accumulated = "".join(parts)
        if reply is None:
            reply = parse_reply(accumulated)
        if reply.rationale is None and accumulated.strip():
            reply = reply.model_copy(update={"rationale": accumulated.strip()})
        return reply

    def _publish(self, record: RoundRecord) -> None:
        if self.audit is None:
            return
        self.audit.publish(
            {
                "kind": "hand_settled",
                "round_id": record.round_id,
                "hand_id": record.id,
                "mode": record.mode,
                "agent_id": record.agent_id,
                "day": record.day,
                "wager_cents": record.wager_cents,
                "outcome": record.outcome,
                "pnl_cents": record.pnl_cents,
                "player_cards": record.player_cards,
                "dealer_cards": record.dealer_cards,
                "decisions": record.decisions,
                "rationale": record.rationale,
            }
        )


# ============================================================================
# Detached runs
# ============================================================================


def start_detached_run(
    run: Coroutine[Any, Any, RunResult],
    channel: TelemetryChannel,
    timeout_seconds: float,
) -> asyncio.Task[RunResult | None]:
    """Run independently of whoever is watching the channel.

    A consumer going away only detaches its sink; the task keeps playing and
    committing. On timeout the run is cancelled between ledger commits and an
    error plus a done marker are emitted.
    """

    async def _guarded() -> RunResult | None:
        try:
            return await asyncio.wait_for(run, timeout=timeout_seconds)
        except TimeoutError:
            logger.error(f"Run {channel.run_id} timed out after {timeout_seconds}s")
            await channel.emit(ErrorRaised(message="Run timed out", code="RUN_TIMEOUT"))
            await channel.emit(RunDone(rounds_completed=channel.rounds_committed, stop_reason="aborted"))
            return None
        except TableError as e:
            logger.warning(f"Run {channel.run_id} rejected: {e}")
            await channel.emit(ErrorRaised(message=str(e), code=e.code))
            await channel.emit(RunDone(rounds_completed=channel.rounds_committed, stop_reason="aborted"))
            return None
        except Exception as e:
            logger.error(f"Run {channel.run_id} failed: {e}", exc_info=True)
            await channel.emit(ErrorRaised(message=str(e), code="RUN_FAILED"))
            await channel.emit(RunDone(rounds_completed=channel.rounds_committed, stop_reason="aborted"))
            return None

    return asyncio.get_running_loop().create_task(_guarded())
