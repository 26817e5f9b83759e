"""Defensive parsing of free-text agent replies.

Nothing in here raises on any input. Malformed or adversarial replies fall
back to the minimum wager and to "stand", and any parsed wager is clamped
into range instead of rejected.
"""

import re
from typing import Literal

from cardroom.agents.gateway import AgentReply

Decision = Literal["hit", "stand"]

_DECISION_RE = re.compile(r"DECISION:\s*([A-Za-z]+)", re.IGNORECASE)
_REASONING_RE = re.compile(r"REASONING:\s*(.+?)(?=\n\s*\n|$)", re.IGNORECASE | re.DOTALL)
_BET_RE = re.compile(r"BET:\s*\$?\s*(\d+(?:\.\d+)?)", re.IGNORECASE)
_AMOUNT_RE = re.compile(r"^\$?(\d+(?:\.\d+)?)$")


def _first_token(text: str) -> str:
    parts = text.split()
    return parts[0] if parts else ""


def parse_reply(text: str | None) -> AgentReply:
    """Split a raw completion into decision / rationale fields."""
    content = (text or "").strip()

    decision_match = _DECISION_RE.search(content)
    decision = decision_match.group(1) if decision_match else _first_token(content)

    reasoning_match = _REASONING_RE.search(content)
    rationale = reasoning_match.group(1).strip() if reasoning_match else None

    return AgentReply(
        decision=(decision or "stand").lower(),
        rationale=rationale or None,
        raw=content,
    )


def parse_decision(text: str | None) -> Decision:
    """Normalize a reply to hit or stand. Anything unrecognized stands."""
    content = (text or "").strip()
    match = _DECISION_RE.search(content)
    token = match.group(1) if match else _first_token(content)
    return "hit" if token.lower().startswith("hit") else "stand"


def parse_wager_cents(text: str | None, min_cents: int, max_cents: int) -> int:
    """Extract a dollar wager and clamp it into [min_cents, max_cents].

    Prefers an explicit ``BET: N`` field, else a numeric first token.
    Unparseable input yields the minimum.
    """
    content = (text or "").strip()
    upper = max(min_cents, max_cents)

    match = _BET_RE.search(content)
    amount = match.group(1) if match else None
    if amount is None:
        token_match = _AMOUNT_RE.match(_first_token(content).replace(",", ""))
        amount = token_match.group(1) if token_match else None

    if amount is None:
        return min_cents

    try:
        cents = round(float(amount) * 100)
    except (OverflowError, ValueError):
        return min_cents

    return max(min_cents, min(upper, cents))


def reply_text(reply: AgentReply) -> str:
    """Full text of a reply, for parsers that need more than the decision."""
    if reply.raw:
        return reply.raw
    return " ".join(part for part in (reply.decision, reply.rationale) if part)
