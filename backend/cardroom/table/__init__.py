"""Blackjack table: engine, prompts, reply parsing, round orchestration and telemetry."""

from cardroom.table.engine import Card, Hand, Outcome
from cardroom.table.exceptions import (
    DeckExhaustedError,
    InsufficientBankrollError,
    RoundAbortedError,
    TableError,
    UnknownAgentError,
)

__all__ = [
    "Card",
    "DeckExhaustedError",
    "Hand",
    "InsufficientBankrollError",
    "Outcome",
    "RoundAbortedError",
    "TableError",
    "UnknownAgentError",
]
