"""Shared fixtures: scripted agents, stacked decks and a frozen clock."""

from collections.abc import Sequence
from datetime import datetime, timedelta, timezone

import pytest

from cardroom.agents.gateway import AgentReply, GatewayError, StreamChunk
from cardroom.agents.registry import AgentProfile, AgentRegistry
from cardroom.config import MarketConfig, TableConfig
from cardroom.llm_providers import LLMProvider
from cardroom.market.service import MarketService
from cardroom.storage.ledger import BankrollLedger
from cardroom.storage.wagers import WagerBook
from cardroom.storage.wallet import ParticipantWallet
from cardroom.table.engine import deck_from_codes
from cardroom.table.orchestrator import RoundOrchestrator
from cardroom.table.parsing import parse_reply

TODAY = "2026-03-14"
YESTERDAY = "2026-03-13"


class FrozenClock:
    """Clock that only moves when a test moves it."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class ScriptedGateway:
    """Answers prompts from a fixed script and records every prompt."""

    def __init__(self, replies: Sequence[str], default: str = "DECISION: stand"):
        self._replies = list(replies)
        self._default = default
        self.prompts: list[str] = []

    def _next(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self._replies.pop(0) if self._replies else self._default

    async def ask(self, prompt: str) -> AgentReply:
        return parse_reply(self._next(prompt))


class StreamingScriptedGateway(ScriptedGateway):
    """Streams each scripted reply word by word, then the parsed reply."""

    async def ask_stream(self, prompt: str):
        text = self._next(prompt)
        for word in text.split(" "):
            yield StreamChunk(text=word + " ")
        yield parse_reply(text)


class FailingGateway:
    """Every call fails like an unreachable provider."""

    def __init__(self, agent_id: str = "broken"):
        self.agent_id = agent_id
        self.calls = 0

    async def ask(self, prompt: str) -> AgentReply:
        self.calls += 1
        raise GatewayError(self.agent_id, "connection refused")


def make_profile(agent_id: str) -> AgentProfile:
    return AgentProfile(
        id=agent_id,
        name=agent_id.title(),
        provider=LLMProvider.OPENAI,
        model="openai:test",
    )


def make_registry(**gateways) -> AgentRegistry:
    """Registry holding only the given gateways, keyed by agent id."""
    registry = AgentRegistry(profiles=[])
    for agent_id, gateway in gateways.items():
        registry.register(make_profile(agent_id), gateway)
    return registry


def stacked_decks(*decks: Sequence[str]):
    """Deck factory dealing the given decks in turn, repeating the last one."""
    remaining = [list(d) for d in decks]

    def factory():
        codes = remaining.pop(0) if len(remaining) > 1 else remaining[0]
        return deck_from_codes(codes)

    return factory


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def table_config() -> TableConfig:
    return TableConfig()


@pytest.fixture
def ledger(clock) -> BankrollLedger:
    return BankrollLedger(TableConfig().daily_allowance_cents, clock=clock)


@pytest.fixture
def wallet(clock) -> ParticipantWallet:
    return ParticipantWallet(100_000, clock=clock)


@pytest.fixture
def book() -> WagerBook:
    return WagerBook()


@pytest.fixture
def market(ledger, wallet, book, clock) -> MarketService:
    registry = AgentRegistry(profiles=[make_profile("alpha"), make_profile("beta"), make_profile("gamma")])
    return MarketService(ledger, wallet, book, MarketConfig(), registry=registry, clock=clock)


@pytest.fixture
def make_orchestrator(ledger, table_config, clock):
    """Build an orchestrator over the shared ledger with a stacked deck."""

    def _make(registry: AgentRegistry, *decks: Sequence[str], **kwargs) -> RoundOrchestrator:
        return RoundOrchestrator(
            registry,
            kwargs.pop("ledger", ledger),
            kwargs.pop("table", table_config),
            deck_factory=stacked_decks(*decks),
            clock=clock,
            **kwargs,
        )

    return _make
