"""Tests for spectator wagers: placement, parimutuel settlement, odds and leaderboards."""

import pytest

from conftest import TODAY, YESTERDAY
from cardroom.market.exceptions import InsufficientBalanceError, InvalidWagerError
from cardroom.market.service import implied_pct, parimutuel_payout
from cardroom.storage.ledger import SettledHand


def play(ledger, agent_id: str, outcome: str, wager: int = 100, day: str = TODAY) -> None:
    """Commit one settled single-agent round straight to the ledger."""
    pnl = {"win": wager, "loss": -wager, "push": 0}[outcome]
    ledger.commit_round(
        [
            SettledHand(
                agent_id=agent_id,
                day=day,
                wager_cents=wager,
                player_cards=["10S", "8H"],
                dealer_cards=["9D", "9C"],
                decisions=["stand"],
                outcome=outcome,
                pnl_cents=pnl,
            )
        ]
    )


# ============================================================================
# Payout math
# ============================================================================


def test_parimutuel_payout_rounds_half_up():
    assert parimutuel_payout(3_000, 4_000, 3_000) == 4_000
    assert parimutuel_payout(1, 3, 2) == 2
    assert parimutuel_payout(500, 500, 0) == 250_000


def test_payouts_sum_to_pool_when_shares_round_evenly():
    payouts = [parimutuel_payout(stake, 1_000, 600) for stake in (100, 200, 300)]
    assert payouts == [167, 333, 500]
    assert sum(payouts) == 1_000


def test_implied_pct():
    assert implied_pct(0, 0) == 50.0
    assert implied_pct(3_000, 4_000) == 75.0
    assert implied_pct(1, 3) == 33.3


# ============================================================================
# Performance market
# ============================================================================


def test_performance_market_pays_yes_side(market, wallet, ledger, clock):
    """$30 on yes and $10 on no; the agent finishes up, so yes takes the $40 pool."""
    wallet.claim_daily()
    yes = market.place_performance_wager("alpha", TODAY, "yes", 3_000)
    no = market.place_performance_wager("alpha", TODAY, "no", 1_000)
    assert wallet.balance_cents == 96_000

    play(ledger, "alpha", "win")
    clock.advance(days=1)
    summary = market.settle_performance_period(TODAY)

    assert summary.performance_settled == 2
    assert summary.credited_cents == 4_000
    settled = {w.id: w for w in market.book.performance_wagers()}
    assert settled[yes.id].outcome == "win"
    assert settled[yes.id].payout_cents == 4_000
    assert settled[no.id].outcome == "loss"
    assert settled[no.id].payout_cents == 0
    assert settled[yes.id].settled_at is not None
    assert wallet.balance_cents == 100_000


def test_flat_day_settles_as_no(market, wallet, ledger, clock):
    wallet.claim_daily()
    yes = market.place_performance_wager("beta", TODAY, "yes", 1_000)
    no = market.place_performance_wager("beta", TODAY, "no", 1_000)
    play(ledger, "beta", "push")
    clock.advance(days=1)

    market.settle_performance_period(TODAY)

    settled = {w.id: w for w in market.book.performance_wagers()}
    assert settled[yes.id].outcome == "loss"
    assert settled[no.id].outcome == "win"
    assert settled[no.id].payout_cents == 2_000


def test_current_period_is_not_settled(market, wallet, clock):
    wallet.claim_daily()
    wager = market.place_performance_wager("alpha", TODAY, "no", 1_000)

    assert market.settle_performance_period(TODAY).performance_settled == 0
    assert market.settle_due().performance_settled == 0
    assert market.book.performance_wagers()[0].outcome == "pending"

    clock.advance(days=1)
    summary = market.settle_due()
    assert summary.performance_settled == 1
    assert market.book.performance_wagers()[0].id == wager.id
    assert market.book.performance_wagers()[0].outcome == "win"


def test_settlement_is_idempotent(market, wallet, ledger, clock):
    wallet.claim_daily()
    market.place_performance_wager("alpha", TODAY, "yes", 1_000)
    play(ledger, "alpha", "win")
    clock.advance(days=1)

    first = market.settle_due()
    balance = wallet.balance_cents
    second = market.settle_due()

    assert first.performance_settled == 1
    assert second.performance_settled == 0
    assert second.credited_cents == 0
    assert wallet.balance_cents == balance


def test_three_way_pool_payouts(market, wallet, ledger, clock):
    wallet.claim_daily()
    for stake in (100, 200, 300):
        market.place_performance_wager("gamma", TODAY, "yes", stake)
    market.place_performance_wager("gamma", TODAY, "no", 400)
    play(ledger, "gamma", "win")
    clock.advance(days=1)

    summary = market.settle_performance_period(TODAY)

    payouts = sorted(w.payout_cents for w in market.book.performance_wagers())
    assert payouts == [0, 167, 333, 500]
    assert summary.credited_cents == 1_000


def test_finished_period_is_closed_to_new_wagers(market, wallet, ledger, clock):
    """Once a day ends nobody can back the side that is already known to win."""
    wallet.claim_daily()
    market.place_performance_wager("alpha", TODAY, "yes", 3_000)
    market.place_performance_wager("alpha", TODAY, "no", 1_000)
    play(ledger, "alpha", "win")
    clock.advance(days=1)
    first = market.settle_due()
    balance = wallet.balance_cents

    with pytest.raises(InvalidWagerError):
        market.place_performance_wager("alpha", TODAY, "yes", 1_000)
    with pytest.raises(InvalidWagerError):
        market.place_performance_wager("alpha", YESTERDAY, "no", 1_000)
    second = market.settle_due()

    assert first.credited_cents == 4_000
    assert second.credited_cents == 0
    assert wallet.balance_cents == balance
    assert len(market.book.performance_wagers()) == 2


def test_wagers_accept_agent_aliases(market, wallet):
    wallet.claim_daily()
    wager = market.place_performance_wager("ALPHA", TODAY, "yes", 1_000)
    assert wager.agent_id == "alpha"
    assert [p.first_side_cents for p in market.performance_odds("alpha", TODAY)] == [1_000]

    h2h = market.place_head_to_head_wager("Alpha", "BETA", "a", 1_000)
    assert (h2h.agent_a, h2h.agent_b) == ("alpha", "beta")

    with pytest.raises(InvalidWagerError):
        market.place_head_to_head_wager("alpha", "ALPHA", "a", 1_000)
    assert wallet.balance_cents == 98_000


def test_placement_rejections_leave_wallet_untouched(market, wallet):
    with pytest.raises(InsufficientBalanceError):
        market.place_performance_wager("alpha", TODAY, "yes", 1_000)

    wallet.claim_daily()
    with pytest.raises(InvalidWagerError):
        market.place_performance_wager("alpha", TODAY, "maybe", 1_000)
    with pytest.raises(InvalidWagerError):
        market.place_performance_wager("nobody", TODAY, "yes", 1_000)
    with pytest.raises(InvalidWagerError):
        market.place_performance_wager("alpha", "yesterday", "yes", 1_000)
    with pytest.raises(InvalidWagerError):
        market.place_performance_wager("alpha", TODAY, "yes", 0)
    with pytest.raises(InvalidWagerError):
        market.place_head_to_head_wager("alpha", "alpha", "a", 1_000)
    with pytest.raises(InsufficientBalanceError):
        market.place_head_to_head_wager("alpha", "beta", "a", 100_001)

    assert wallet.balance_cents == 100_000
    assert market.book.performance_wagers() == []
    assert market.book.head_to_head_wagers() == []


# ============================================================================
# Head-to-head market
# ============================================================================


def test_head_to_head_waits_for_window(market, wallet, ledger):
    wallet.claim_daily()
    play(ledger, "alpha", "loss", wager=700)
    bet_a = market.place_head_to_head_wager("alpha", "beta", "a", 2_000)
    bet_b = market.place_head_to_head_wager("alpha", "beta", "b", 1_000)
    assert bet_a.rounds_a_at_placement == 1
    assert bet_a.pnl_a_at_placement == -700

    for _ in range(2):
        play(ledger, "alpha", "win")
        play(ledger, "beta", "loss")
    assert market.settle_head_to_head().head_to_head_settled == 0

    play(ledger, "alpha", "win")
    play(ledger, "beta", "loss")
    summary = market.settle_head_to_head()

    assert summary.head_to_head_settled == 2
    settled = {w.id: w for w in market.book.head_to_head_wagers()}
    assert settled[bet_a.id].outcome == "win"
    assert settled[bet_a.id].payout_cents == 3_000
    assert settled[bet_b.id].outcome == "loss"
    assert settled[bet_b.id].payout_cents == 0
    assert wallet.balance_cents == 100_000


def test_head_to_head_tie_refunds_stake(market, wallet, ledger):
    wallet.claim_daily()
    wager = market.place_head_to_head_wager("alpha", "beta", "b", 1_500)
    for _ in range(3):
        play(ledger, "alpha", "push")
        play(ledger, "beta", "push")

    market.settle_head_to_head()

    settled = market.book.head_to_head_wagers()[0]
    assert settled.id == wager.id
    assert settled.outcome == "push"
    assert settled.payout_cents == 1_500
    assert wallet.balance_cents == 100_000


def test_head_to_head_pool_is_per_pair(market, wallet, ledger):
    wallet.claim_daily()
    mine = market.place_head_to_head_wager("alpha", "beta", "a", 1_000)
    market.place_head_to_head_wager("alpha", "gamma", "b", 5_000)
    for _ in range(3):
        play(ledger, "alpha", "win")
        play(ledger, "beta", "loss")
        play(ledger, "gamma", "push")

    market.settle_head_to_head()

    settled = {w.id: w for w in market.book.head_to_head_wagers()}
    assert settled[mine.id].payout_cents == 1_000


# ============================================================================
# Odds and leaderboards
# ============================================================================


def test_performance_odds_track_each_placement(market, wallet, clock):
    wallet.claim_daily()
    assert market.performance_odds("alpha", TODAY) == []

    market.place_performance_wager("alpha", TODAY, "yes", 3_000)
    clock.advance(minutes=1)
    market.place_performance_wager("alpha", TODAY, "no", 1_000)

    points = market.performance_odds("alpha", TODAY)
    assert [p.implied_pct for p in points] == [100.0, 75.0]
    assert points[-1].first_side_cents == 3_000
    assert points[-1].second_side_cents == 1_000


def test_head_to_head_odds(market, wallet, clock):
    wallet.claim_daily()
    market.place_head_to_head_wager("alpha", "beta", "b", 1_000)
    clock.advance(minutes=1)
    market.place_head_to_head_wager("alpha", "beta", "a", 1_000)

    points = market.head_to_head_odds("alpha", "beta", TODAY)
    assert [p.implied_pct for p in points] == [0.0, 50.0]


def test_leaderboard_sorted_by_pnl(market, ledger):
    play(ledger, "alpha", "win", wager=500)
    play(ledger, "beta", "loss", wager=200)
    play(ledger, "alpha", "loss", wager=100)

    rows = market.leaderboard(TODAY)

    assert [r.agent_id for r in rows] == ["alpha", "gamma", "beta"]
    assert rows[0].pnl_cents == 400
    assert rows[0].rounds_played == 2
    assert rows[1].rounds_played == 0
    assert rows[0].name == "Alpha"


def test_leaderboard_history_is_cumulative(market, ledger):
    play(ledger, "alpha", "win", wager=500)
    play(ledger, "alpha", "loss", wager=100)
    play(ledger, "beta", "push")
    play(ledger, "alpha", "win", wager=50, day=YESTERDAY)

    series = {s.agent_id: s for s in market.leaderboard_history(TODAY)}

    assert [p.cumulative_pnl_cents for p in series["alpha"].points] == [500, 400]
    assert [p.round_index for p in series["alpha"].points] == [1, 2]
    assert [p.cumulative_pnl_cents for p in series["beta"].points] == [0]
