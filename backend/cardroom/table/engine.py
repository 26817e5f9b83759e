"""Blackjack engine: deck, hand value, dealer behavior, outcome resolution.

Pure functions only. Given a deck order every result here is deterministic,
so tests stack the deck instead of mocking randomness.
"""

import random
from collections.abc import Iterable, Sequence
from typing import Literal

from pydantic import BaseModel, ConfigDict, field_validator

from cardroom.table.exceptions import DeckExhaustedError

RANKS = ("2", "3", "4", "5", "6", "7", "8", "9", "10", "J", "Q", "K", "A")
SUITS = ("H", "D", "C", "S")
SUIT_NAMES = {"H": "Hearts", "D": "Diamonds", "C": "Clubs", "S": "Spades"}

BLACKJACK = 21
DEALER_STANDS_ON = 17

Outcome = Literal["win", "loss", "push"]


class Card(BaseModel):
    """A single playing card. Immutable."""

    model_config = ConfigDict(frozen=True)

    rank: str
    suit: str

    @field_validator("rank")
    @classmethod
    def _check_rank(cls, v: str) -> str:
        v = v.upper()
        if v not in RANKS:
            raise ValueError(f"Invalid rank: {v}")
        return v

    @field_validator("suit")
    @classmethod
    def _check_suit(cls, v: str) -> str:
        v = v.upper()
        if v not in SUITS:
            raise ValueError(f"Invalid suit: {v}")
        return v

    @classmethod
    def from_code(cls, code: str) -> "Card":
        """Parse a compact code such as '10S' or 'kd'."""
        code = code.strip()
        return cls(rank=code[:-1], suit=code[-1])

    @property
    def code(self) -> str:
        return f"{self.rank}{self.suit}"

    @property
    def label(self) -> str:
        """Human-readable name used in prompts (e.g. '10 of Spades')."""
        return f"{self.rank} of {SUIT_NAMES[self.suit]}"

    @property
    def points(self) -> int:
        if self.rank == "A":
            return 11
        if self.rank in ("K", "Q", "J"):
            return 10
        return int(self.rank)

    def __str__(self) -> str:
        return self.code


Hand = list[Card]


def new_deck() -> list[Card]:
    """Build an ordered 52-card deck."""
    return [Card(rank=rank, suit=suit) for rank in RANKS for suit in SUITS]


def new_shuffled_deck(rng: random.Random | None = None) -> list[Card]:
    """Build a uniformly shuffled 52-card deck."""
    deck = new_deck()
    (rng or random).shuffle(deck)
    return deck


def deck_from_codes(codes: Iterable[str]) -> list[Card]:
    """Build a stacked deck that deals cards in exactly the given order."""
    cards = [Card.from_code(code) for code in codes]
    cards.reverse()
    return cards


def draw(deck: list[Card]) -> Card:
    """Take the next card off the deck."""
    if not deck:
        raise DeckExhaustedError("Deck is empty")
    return deck.pop()


def value_of(hand: Sequence[Card]) -> int:
    """Best blackjack total: Aces count 11 unless that would bust, then 1."""
    total = sum(card.points for card in hand)
    aces = sum(1 for card in hand if card.rank == "A")
    while total > BLACKJACK and aces:
        total -= 10
        aces -= 1
    return total


def is_bust(hand: Sequence[Card]) -> bool:
    return value_of(hand) > BLACKJACK


def is_natural(hand: Sequence[Card]) -> bool:
    """Two-card 21."""
    return len(hand) == 2 and value_of(hand) == BLACKJACK


def play_dealer(deck: list[Card], hand: Sequence[Card]) -> tuple[Hand, Hand]:
    """Dealer draws until reaching 17 or more.

    Returns:
        (final_hand, drawn_cards) - drawn_cards in the order they were dealt
    """
    final = list(hand)
    drawn: Hand = []
    while value_of(final) < DEALER_STANDS_ON:
        card = draw(deck)
        final.append(card)
        drawn.append(card)
    return final, drawn


def resolve(player: Sequence[Card], dealer: Sequence[Card]) -> Outcome:
    """Resolve a player hand against the final dealer hand."""
    player_total = value_of(player)
    dealer_total = value_of(dealer)
    if player_total > BLACKJACK:
        return "loss"
    if dealer_total > BLACKJACK:
        return "win"
    if player_total > dealer_total:
        return "win"
    if player_total < dealer_total:
        return "loss"
    return "push"


def profit_for(outcome: Outcome, wager_cents: int) -> int:
    """Signed P/L of an even-money hand."""
    if outcome == "win":
        return wager_cents
    if outcome == "loss":
        return -wager_cents
    return 0


def codes(hand: Iterable[Card]) -> list[str]:
    return [card.code for card in hand]
