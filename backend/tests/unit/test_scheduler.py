"""Tests for the background jobs."""

import asyncio
import json

import httpx
from apscheduler.schedulers.blocking import BlockingScheduler

from conftest import ScriptedGateway, make_profile
from cardroom.config import AuditConfig, AutoPlayConfig, Settings
from cardroom.context import build_context
from cardroom.scheduler import autoplay_job, register_jobs, settlement_job


def _context(tmp_path, **autoplay):
    settings = Settings(data_dir=tmp_path, autoplay=AutoPlayConfig(**autoplay))
    ctx = build_context(settings, persist=False)
    for agent_id in (settings.autoplay.agent_a, settings.autoplay.agent_b):
        ctx.registry.register(
            make_profile(agent_id),
            ScriptedGateway([], default="BET: 1\nDECISION: stand"),
        )
    return ctx


def test_jobs_registered_when_autoplay_enabled(tmp_path):
    scheduler = BlockingScheduler()
    register_jobs(scheduler, Settings(data_dir=tmp_path, autoplay=AutoPlayConfig(enabled=True)))
    assert sorted(job.id for job in scheduler.get_jobs()) == ["autoplay-vs", "settlement-sweep"]


def test_only_settlement_when_autoplay_disabled(tmp_path):
    scheduler = BlockingScheduler()
    register_jobs(scheduler, Settings(data_dir=tmp_path))
    assert [job.id for job in scheduler.get_jobs()] == ["settlement-sweep"]


def test_autoplay_job_plays_one_vs_round(tmp_path):
    ctx = _context(tmp_path, enabled=True)

    autoplay_job(ctx)

    records = ctx.ledger.history()
    assert len(records) == 2
    assert {r.mode for r in records} == {"vs"}
    assert len({r.round_id for r in records}) == 1


def test_autoplay_job_survives_bad_configuration(tmp_path):
    ctx = _context(tmp_path, enabled=True, agent_b="openai-gpt-4o-mini")

    autoplay_job(ctx)

    assert ctx.ledger.history() == []


def test_settlement_job_runs_sweep(tmp_path):
    ctx = _context(tmp_path)
    ctx.wallet.claim_daily()
    ctx.market.place_head_to_head_wager("openai-gpt-4o-mini", "openai-gpt-4o", "a", 1_000)
    for _ in range(3):
        autoplay_job(ctx)

    settlement_job(ctx)

    assert ctx.book.head_to_head_wagers()[0].outcome != "pending"


def test_autoplay_job_waits_for_audit_delivery(tmp_path):
    received = []

    async def slow_endpoint(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(0.05)
        received.append(json.loads(request.content)["kind"])
        return httpx.Response(201)

    ctx = _context(tmp_path, enabled=True)
    ctx.audit.config = AuditConfig(endpoint_url="https://audit.test/facts")
    ctx.audit._transport = httpx.MockTransport(slow_endpoint)

    autoplay_job(ctx)

    assert len(ctx.ledger.history()) == 2
    assert received == ["hand_settled", "hand_settled"]
