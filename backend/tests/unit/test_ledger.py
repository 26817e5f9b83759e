"""Tests for the bankroll ledger."""

import threading

import pytest

from conftest import TODAY, YESTERDAY
from cardroom.storage.ledger import BankrollLedger, SettledHand
from cardroom.table.exceptions import RoundAbortedError


def settled(agent_id: str, wager: int, outcome: str, day: str = TODAY, seat: str = "a") -> SettledHand:
    pnl = {"win": wager, "loss": -wager, "push": 0}[outcome]
    return SettledHand(
        agent_id=agent_id,
        day=day,
        seat=seat,
        wager_cents=wager,
        player_cards=["10S", "9H"],
        dealer_cards=["KD", "8C"],
        decisions=["stand"],
        outcome=outcome,
        pnl_cents=pnl,
    )


def test_first_access_seeds_allowance_once(ledger):
    assert ledger.get_or_init_balance("alpha", TODAY) == 10_000_000
    ledger.debit("alpha", TODAY, 500)
    assert ledger.get_or_init_balance("alpha", TODAY) == 9_999_500


def test_new_day_starts_fresh(ledger):
    ledger.debit("alpha", YESTERDAY, 9_000_000)
    assert ledger.get_or_init_balance("alpha", YESTERDAY) == 1_000_000
    assert ledger.get_or_init_balance("alpha", TODAY) == 10_000_000


def test_debit_declines_overdraw(ledger):
    result = ledger.debit("alpha", TODAY, 10_000_001)
    assert not result.accepted
    assert result.balance_cents == 10_000_000
    assert ledger.get_or_init_balance("alpha", TODAY) == 10_000_000


def test_debit_entire_balance_is_allowed(ledger):
    result = ledger.debit("alpha", TODAY, 10_000_000)
    assert result.accepted
    assert result.balance_cents == 0


def test_negative_amounts_rejected(ledger):
    with pytest.raises(ValueError):
        ledger.debit("alpha", TODAY, -1)
    with pytest.raises(ValueError):
        ledger.credit("alpha", TODAY, -1)


def test_credit_adds_to_balance(ledger):
    assert ledger.credit("alpha", TODAY, 250) == 10_000_250


def test_commit_round_applies_pnl(ledger):
    records = ledger.commit_round([settled("alpha", 100_000, "loss")])
    assert len(records) == 1
    record = records[0]
    assert record.pnl_cents == -100_000
    assert record.balance_after_cents == 9_900_000
    assert record.mode == "single"
    assert ledger.get_or_init_balance("alpha", TODAY) == 9_900_000


def test_commit_round_win_and_push(ledger):
    ledger.commit_round([settled("alpha", 5_000, "win")])
    ledger.commit_round([settled("alpha", 5_000, "push")])
    state = ledger.daily_state("alpha", TODAY)
    assert state.balance_cents == 10_005_000
    assert state.rounds_played == 2
    assert state.pnl_cents == 5_000


def test_vs_round_shares_round_id(ledger):
    records = ledger.commit_round(
        [settled("alpha", 1_000, "win"), settled("beta", 2_000, "loss", seat="b")],
        mode="vs",
        round_id="rnd_test",
    )
    assert {r.round_id for r in records} == {"rnd_test"}
    assert [r.seat for r in records] == ["a", "b"]
    assert ledger.get_or_init_balance("beta", TODAY) == 9_998_000


def test_commit_round_is_all_or_nothing():
    """A wager one seat cannot cover leaves both seats untouched."""
    ledger = BankrollLedger(10_000)
    ledger.debit("beta", TODAY, 9_500)

    with pytest.raises(RoundAbortedError):
        ledger.commit_round(
            [settled("alpha", 1_000, "win"), settled("beta", 1_000, "loss", seat="b")],
            mode="vs",
        )

    assert ledger.get_or_init_balance("alpha", TODAY) == 10_000
    assert ledger.get_or_init_balance("beta", TODAY) == 500
    assert ledger.history() == []


def test_commit_round_rejects_impossible_pnl(ledger):
    hand = settled("alpha", 1_000, "win").model_copy(update={"pnl_cents": 1_500})
    with pytest.raises(ValueError):
        ledger.commit_round([hand])
    with pytest.raises(ValueError):
        ledger.commit_round([])


def test_history_filters_by_agent_and_day(ledger):
    ledger.commit_round([settled("alpha", 100, "win", day=YESTERDAY)])
    ledger.commit_round([settled("alpha", 100, "loss")])
    ledger.commit_round([settled("beta", 100, "push")])

    assert len(ledger.history()) == 3
    assert len(ledger.history("alpha")) == 2
    assert [r.outcome for r in ledger.history("alpha", TODAY)] == ["loss"]


def test_ledger_survives_restart(tmp_path, clock):
    path = tmp_path / "ledger.yaml"
    ledger = BankrollLedger(10_000, path=path, clock=clock)
    ledger.commit_round([settled("alpha", 2_000, "loss")])

    reloaded = BankrollLedger(10_000, path=path, clock=clock)
    assert reloaded.get_or_init_balance("alpha", TODAY) == 8_000
    history = reloaded.history("alpha")
    assert len(history) == 1
    assert history[0].player_cards == ["10S", "9H"]
    assert history[0].created_at == clock()


def test_concurrent_debits_never_overdraw():
    ledger = BankrollLedger(1_000)
    accepted: list[bool] = []
    guard = threading.Lock()

    def worker():
        for _ in range(50):
            result = ledger.debit("alpha", TODAY, 7)
            with guard:
                accepted.append(result.accepted)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    balance = ledger.get_or_init_balance("alpha", TODAY)
    assert balance >= 0
    assert balance == 1_000 - 7 * sum(accepted)
    assert sum(accepted) == 1_000 // 7


def test_reads_do_not_write_snapshot(tmp_path, clock):
    path = tmp_path / "ledger.yaml"
    ledger = BankrollLedger(10_000, path=path, clock=clock)

    assert ledger.get_or_init_balance("alpha", TODAY) == 10_000
    assert ledger.daily_state("beta", TODAY).balance_cents == 10_000
    assert ledger.debit("alpha", TODAY, 20_000).accepted is False
    assert not path.exists()

    ledger.commit_round([settled("alpha", 1_000, "win")])
    assert path.exists()
    assert BankrollLedger(10_000, path=path, clock=clock).get_or_init_balance("beta", TODAY) == 10_000
