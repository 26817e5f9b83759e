"""Prompts sent to table players.

Only minimal visible state goes out: no strategy hints, no odds tables.
The table measures each agent's own judgment.
"""

from collections.abc import Sequence

from cardroom.table.engine import Card, value_of


def _dollars(cents: int) -> str:
    return f"{cents / 100:,.0f}"


def _describe_hand(cards: Sequence[Card]) -> str:
    return f"{', '.join(card.label for card in cards)} (total {value_of(cards)})"


WAGER_REPLY_FORMAT = """Reply with:
BET: N
where N is the dollar amount (e.g. BET: 100 or BET: 50).
Optionally add a line: REASONING: your reason for this bet amount."""


PLAY_REPLY_FORMAT = """Reply with exactly one of:
DECISION: hit
or
DECISION: stand
Optionally add a line: REASONING: your reason."""


def build_wager_prompt(
    balance_cents: int,
    min_wager_cents: int,
    max_wager_cents: int,
    player_cards: Sequence[Card] | None = None,
    dealer_upcard: Card | None = None,
) -> str:
    """Ask how much to wager on this round.

    When the hand and the dealer upcard are given, the agent sizes its wager
    with its cards already visible.
    """
    limits = (
        f"Minimum bet ${_dollars(min_wager_cents)}, "
        f"maximum bet ${_dollars(max_wager_cents)}. "
        "You cannot bet more than your balance."
    )

    if player_cards and dealer_upcard is not None:
        return f"""You are playing blackjack. You have been dealt: {_describe_hand(player_cards)}. Dealer shows: {dealer_upcard.label}. Your current balance is ${_dollars(balance_cents)}.

Now decide how much to bet this hand (in whole dollars). {limits}

{WAGER_REPLY_FORMAT}"""

    return f"""You are playing blackjack with a daily bankroll. Your current balance is ${_dollars(balance_cents)}.

Decide how much to bet this hand (in whole dollars). {limits}

{WAGER_REPLY_FORMAT}"""


def build_play_prompt(player_cards: Sequence[Card], dealer_upcard: Card) -> str:
    """Ask for a single hit/stand decision."""
    return f"""You are playing blackjack. You have: {_describe_hand(player_cards)}. Dealer shows: {dealer_upcard.label}.

{PLAY_REPLY_FORMAT}"""
