"""FastAPI server for the cardroom: live table runs, bankrolls and the spectator market."""

import asyncio
import logging
from typing import Literal

from fastapi import Depends, FastAPI, Header, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from cardroom import __version__
from cardroom.context import CardroomContext, get_context
from cardroom.market.exceptions import MarketError
from cardroom.table.exceptions import TableError
from cardroom.table.orchestrator import start_detached_run
from cardroom.table.telemetry import QueueSink, TelemetryChannel, to_sse

logger = logging.getLogger(__name__)

app = FastAPI(title="Cardroom API", version=__version__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://localhost:5173"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Detached runs outlive their requests; hold a reference until they finish
_active_runs: set[asyncio.Task] = set()


# ============================================================================
# Request bodies
# ============================================================================


class PlayRequest(BaseModel):
    agent_id: str | None = None
    agent_a: str | None = None
    agent_b: str | None = None
    rounds: int = 1
    max_wager_cents: int = 0


class PerformanceWagerRequest(BaseModel):
    agent_id: str
    period: str | None = None
    side: Literal["yes", "no"]
    stake_cents: int = Field(gt=0)


class HeadToHeadWagerRequest(BaseModel):
    agent_a: str
    agent_b: str
    side: Literal["a", "b"]
    stake_cents: int = Field(gt=0)


def _table_error(e: TableError) -> HTTPException:
    return HTTPException(status_code=400, detail=str(e))


def _market_error(e: MarketError) -> HTTPException:
    return HTTPException(status_code=e.status_code, detail=str(e))


# ============================================================================
# Agents and bankrolls
# ============================================================================


@app.get("/api/agents")
async def list_agents(ctx: CardroomContext = Depends(get_context)):
    """List every table player."""
    return [profile.model_dump() for profile in ctx.registry.profiles()]


@app.get("/api/bankroll/{agent_id}")
async def get_bankroll(
    agent_id: str,
    day: str | None = None,
    ctx: CardroomContext = Depends(get_context),
):
    """Today's (or ``day``'s) balance, rounds played and P/L for one agent."""
    try:
        agent_id = ctx.registry.resolve(agent_id).id
    except TableError as e:
        raise _table_error(e)
    return ctx.ledger.daily_state(agent_id, day or ctx.market.today()).model_dump()


@app.get("/api/history/{agent_id}")
async def get_history(
    agent_id: str,
    day: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    ctx: CardroomContext = Depends(get_context),
):
    """Settled rounds for an agent, newest first."""
    try:
        agent_id = ctx.registry.resolve(agent_id).id
    except TableError as e:
        raise _table_error(e)
    records = ctx.ledger.history(agent_id, day)
    return [r.model_dump(mode="json") for r in reversed(records[-limit:])]


# ============================================================================
# Live table
# ============================================================================


@app.post("/api/play-stream")
async def play_stream(
    body: PlayRequest,
    x_table_mode: str | None = Header(default=None),
    ctx: CardroomContext = Depends(get_context),
):
    """Start a run and stream its events as Server-Sent Events.

    ``X-Table-Mode: vs`` seats ``agent_a`` and ``agent_b`` at one table.
    Disconnecting stops the stream, not the run.
    """
    vs = (x_table_mode or "").strip().lower() == "vs"
    orchestrator = ctx.orchestrator

    try:
        if vs:
            if not body.agent_a or not body.agent_b:
                raise HTTPException(status_code=400, detail="agent_a and agent_b required")
            agent_a = ctx.registry.resolve(body.agent_a).id
            agent_b = ctx.registry.resolve(body.agent_b).id
            if agent_a == agent_b:
                raise HTTPException(status_code=400, detail="agent_a and agent_b must differ")
        else:
            if not body.agent_id:
                raise HTTPException(status_code=400, detail="agent_id required")
            agent_id = ctx.registry.resolve(body.agent_id).id
    except TableError as e:
        raise _table_error(e)

    channel = TelemetryChannel()
    sink = QueueSink()
    channel.subscribe(sink)

    if vs:
        run = orchestrator.play_vs_run(agent_a, agent_b, body.rounds, channel, body.max_wager_cents)
    else:
        run = orchestrator.play_run(agent_id, body.rounds, channel, body.max_wager_cents)

    task = start_detached_run(run, channel, ctx.settings.table.run_timeout_seconds)
    _active_runs.add(task)
    task.add_done_callback(_active_runs.discard)
    logger.info(f"Started run {channel.run_id} ({'vs' if vs else 'single'})")

    async def event_stream():
        try:
            async for event in sink.events():
                yield to_sse(event)
        finally:
            channel.unsubscribe(sink)
            sink.closed = True

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


# ============================================================================
# Participant wallet
# ============================================================================


@app.get("/api/wallet")
async def get_wallet(ctx: CardroomContext = Depends(get_context)):
    return ctx.wallet.view().model_dump()


@app.post("/api/wallet/daily")
async def claim_daily(ctx: CardroomContext = Depends(get_context)):
    """Claim the once-per-day participant allowance."""
    try:
        ctx.wallet.claim_daily()
    except MarketError as e:
        raise _market_error(e)
    return ctx.wallet.view().model_dump()


# ============================================================================
# Market
# ============================================================================


@app.post("/api/market/performance")
async def place_performance_wager(
    body: PerformanceWagerRequest,
    ctx: CardroomContext = Depends(get_context),
):
    try:
        wager = ctx.market.place_performance_wager(
            body.agent_id,
            body.period or ctx.market.today(),
            body.side,
            body.stake_cents,
        )
    except MarketError as e:
        raise _market_error(e)
    return wager.model_dump(mode="json")


@app.post("/api/market/head-to-head")
async def place_head_to_head_wager(
    body: HeadToHeadWagerRequest,
    ctx: CardroomContext = Depends(get_context),
):
    try:
        wager = ctx.market.place_head_to_head_wager(
            body.agent_a, body.agent_b, body.side, body.stake_cents
        )
    except MarketError as e:
        raise _market_error(e)
    return wager.model_dump(mode="json")


@app.get("/api/market/wagers")
async def list_wagers(ctx: CardroomContext = Depends(get_context)):
    """All wagers, after settling whatever has become due."""
    ctx.market.settle_due()
    return {
        "performance": [w.model_dump(mode="json") for w in ctx.book.performance_wagers()],
        "head_to_head": [w.model_dump(mode="json") for w in ctx.book.head_to_head_wagers()],
    }


@app.get("/api/market/leaderboard")
async def get_leaderboard(
    period: str | None = None,
    ctx: CardroomContext = Depends(get_context),
):
    """P/L per agent for a day. Reading a finished day settles its performance market."""
    period = period or ctx.market.today()
    if period < ctx.market.today():
        ctx.market.settle_performance_period(period)
    return {
        "period": period,
        "leaderboard": [row.model_dump() for row in ctx.market.leaderboard(period)],
    }


@app.get("/api/market/leaderboard-history")
async def get_leaderboard_history(
    period: str | None = None,
    ctx: CardroomContext = Depends(get_context),
):
    period = period or ctx.market.today()
    return {
        "period": period,
        "series": [s.model_dump() for s in ctx.market.leaderboard_history(period)],
    }


@app.get("/api/market/odds")
async def get_odds(
    agent_id: str,
    period: str | None = None,
    ctx: CardroomContext = Depends(get_context),
):
    period = period or ctx.market.today()
    try:
        agent_id = ctx.market.canonical_id(agent_id)
    except MarketError as e:
        raise _market_error(e)
    return {
        "agent_id": agent_id,
        "period": period,
        "series": [p.model_dump(mode="json") for p in ctx.market.performance_odds(agent_id, period)],
    }


@app.get("/api/market/odds-head-to-head")
async def get_head_to_head_odds(
    agent_a: str,
    agent_b: str,
    day: str | None = None,
    ctx: CardroomContext = Depends(get_context),
):
    day = day or ctx.market.today()
    try:
        agent_a = ctx.market.canonical_id(agent_a)
        agent_b = ctx.market.canonical_id(agent_b)
    except MarketError as e:
        raise _market_error(e)
    series = ctx.market.head_to_head_odds(agent_a, agent_b, day)
    return {
        "agent_a": agent_a,
        "agent_b": agent_b,
        "day": day,
        "series": [p.model_dump(mode="json") for p in series],
    }


@app.get("/api/health")
async def health():
    return {"status": "ok", "version": __version__}
