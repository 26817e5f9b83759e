"""Tests for prompts and defensive reply parsing."""

from cardroom.agents.gateway import AgentReply
from cardroom.table.engine import Card
from cardroom.table.parsing import parse_decision, parse_reply, parse_wager_cents, reply_text
from cardroom.table.prompts import build_play_prompt, build_wager_prompt


def test_wager_prompt_shows_hand_and_upcard_after_deal():
    prompt = build_wager_prompt(
        10_000_000,
        100,
        100_000,
        [Card.from_code("10S"), Card.from_code("6H")],
        Card.from_code("KD"),
    )
    assert "10 of Spades, 6 of Hearts (total 16)" in prompt
    assert "Dealer shows: K of Diamonds" in prompt
    assert "$100,000" in prompt
    assert "Minimum bet $1, maximum bet $1,000" in prompt
    assert "BET:" in prompt


def test_wager_prompt_without_cards():
    prompt = build_wager_prompt(50_000, 100, 20_000)
    assert "Dealer shows" not in prompt
    assert "$500" in prompt


def test_play_prompt_offers_only_hit_or_stand():
    prompt = build_play_prompt([Card.from_code("AS"), Card.from_code("5D")], Card.from_code("9C"))
    assert "total 16" in prompt
    assert "DECISION: hit" in prompt
    assert "DECISION: stand" in prompt
    assert "strategy" not in prompt.lower()


def test_parse_reply_fields():
    reply = parse_reply("DECISION: HIT\nREASONING: sixteen against a ten")
    assert reply.decision == "hit"
    assert reply.rationale == "sixteen against a ten"


def test_parse_reply_without_marker_uses_first_token():
    assert parse_reply("Stand, I'm happy").decision == "stand,"
    assert parse_reply("").decision == "stand"


def test_malformed_play_reply_defaults_to_stand():
    assert parse_decision("I think I'll go for it") == "stand"
    assert parse_decision(None) == "stand"
    assert parse_decision("") == "stand"


def test_parse_decision_prefers_labelled_field():
    assert parse_decision("Well... DECISION: hit") == "hit"
    assert parse_decision("hit me") == "hit"
    assert parse_decision("Hitting is risky. DECISION: stand") == "stand"


def test_parse_wager_reads_dollars():
    assert parse_wager_cents("BET: 250", 100, 100_000) == 25_000
    assert parse_wager_cents("bet: $12.50", 100, 100_000) == 1_250
    assert parse_wager_cents("40", 100, 100_000) == 4_000
    assert parse_wager_cents("$1,000 please", 100, 1_000_000) == 100_000


def test_parse_wager_clamps_into_range():
    assert parse_wager_cents("BET: 1000000", 100, 100_000) == 100_000
    assert parse_wager_cents("BET: 0", 100, 100_000) == 100


def test_unparseable_wager_defaults_to_minimum():
    assert parse_wager_cents("all in, obviously", 100, 100_000) == 100
    assert parse_wager_cents(None, 100, 100_000) == 100
    assert parse_wager_cents("BET: lots", 100, 100_000) == 100


def test_parse_wager_when_range_is_inverted():
    """A cap below the minimum still yields the minimum."""
    assert parse_wager_cents("BET: 500", 100, 50) == 100


def test_reply_text_falls_back_to_fields():
    assert reply_text(AgentReply(decision="BET: 5", raw="BET: 5 REASONING: hi")) == "BET: 5 REASONING: hi"
    assert reply_text(AgentReply(decision="BET:", rationale="20")) == "BET: 20"
