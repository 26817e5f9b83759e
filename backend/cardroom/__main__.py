"""Cardroom CLI entry point."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dotenv import load_dotenv
from pydantic import ValidationError

env_file = Path(__file__).parent.parent / ".env"
load_dotenv(env_file)

from cardroom import __version__
from cardroom.config import get_settings
from cardroom.context import get_context
from cardroom.scheduler import start_scheduler
from cardroom.table.exceptions import TableError
from cardroom.table.telemetry import (
    BaseEvent,
    CardDrawn,
    CardsDealt,
    DealerDrew,
    DealerRevealed,
    DecisionMade,
    ErrorRaised,
    OutcomeReached,
    RoundStarted,
    TelemetryChannel,
    WagerPlaced,
)

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

logger = logging.getLogger(__name__)

CONFIG_TEMPLATE = """# Cardroom Configuration
# Operational parameters for the table and the spectator market.
# API keys and secrets belong in .env, not here. Amounts are in cents.

table:
  daily_allowance_cents: 10000000
  min_wager_cents: 100
  max_wager_cents: 100000
  max_rounds_per_run: 100
  run_timeout_seconds: 300

market:
  head_to_head_window: 3
  participant_daily_cents: 100000

autoplay:
  enabled: false
  interval_minutes: 5
  agent_a: openai-gpt-4o-mini
  agent_b: openai-gpt-4o
  settlement_sweep_minutes: 10

audit:
  endpoint_url: ""
  max_message_bytes: 1024
  timeout_seconds: 10
"""


def _init_logfire() -> None:
    """Initialize Logfire if available, without failing commands."""
    try:
        from cardroom.observability import initialize_logfire

        initialize_logfire(get_settings())
    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")


def _dollars(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def _print_event(event: BaseEvent) -> None:
    """Console sink for live runs."""
    if isinstance(event, RoundStarted):
        print(f"\n--- Round {event.round_index}/{event.total_rounds} ({event.mode}) ---")
    elif isinstance(event, CardsDealt):
        for hand in event.hands:
            print(f"  [{hand.seat}] {hand.agent_id}: {' '.join(hand.cards)} ({hand.total})")
        print(f"  Dealer shows: {event.dealer_upcard}")
    elif isinstance(event, WagerPlaced):
        print(f"  [{event.seat}] wagers {_dollars(event.wager_cents)}")
    elif isinstance(event, DecisionMade):
        print(f"  [{event.seat}] {event.decision}")
    elif isinstance(event, CardDrawn):
        print(f"  [{event.seat}] draws {event.card} ({event.total})")
    elif isinstance(event, (DealerRevealed, DealerDrew)):
        print(f"  Dealer: {' '.join(event.cards)} ({event.total})")
    elif isinstance(event, OutcomeReached):
        print(
            f"  [{event.seat}] {event.outcome.upper()} {event.pnl_cents / 100:+,.2f} "
            f"-> balance {_dollars(event.balance_cents)}"
        )
    elif isinstance(event, ErrorRaised):
        print(f"  ❌ {event.message}")


def cmd_init(args: argparse.Namespace) -> int:
    """Initialize data directory and configuration file."""
    data_dir = Path("data").resolve()

    try:
        data_dir.mkdir(exist_ok=True)
        logger.info(f"Created data directory: {data_dir}")

        config_path = data_dir / "config.yaml"
        if not config_path.exists():
            config_path.write_text(CONFIG_TEMPLATE)
            logger.info(f"Created config template: {config_path}")
        else:
            logger.info(f"Config file already exists: {config_path}")

        print(f"\n✓ Data directory initialized at {data_dir}")
        print("\nNext steps:")
        print("1. Copy .env.example to .env and add your API keys")
        print("2. Review and customize data/config.yaml if needed")
        print("3. Run 'python -m cardroom config' to verify configuration")
        print("4. Run 'python -m cardroom play --agent openai-gpt-4o-mini' to play a round\n")

        return 0

    except Exception as e:
        logger.error(f"Failed to initialize: {e}")
        print(f"\n❌ Initialization failed: {e}\n")
        return 1


def cmd_config(args: argparse.Namespace) -> int:
    """Display merged configuration."""
    try:
        settings = get_settings()

        print("\n=== Cardroom Configuration ===\n")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Table:")
        print(f"  Daily Allowance: {_dollars(settings.table.daily_allowance_cents)}")
        print(f"  Min Wager: {_dollars(settings.table.min_wager_cents)}")
        print(f"  Max Wager: {_dollars(settings.table.max_wager_cents)}")
        print(f"  Max Rounds per Run: {settings.table.max_rounds_per_run}")
        print(f"  Run Timeout: {settings.table.run_timeout_seconds:.0f}s\n")

        print("Market:")
        print(f"  Head-to-head Window: {settings.market.head_to_head_window} rounds")
        print(f"  Participant Daily Claim: {_dollars(settings.market.participant_daily_cents)}\n")

        print("Auto-play:")
        print(f"  Enabled: {settings.autoplay.enabled}")
        print(f"  Agents: {settings.autoplay.agent_a} vs {settings.autoplay.agent_b}")
        print(f"  Interval: {settings.autoplay.interval_minutes} min")
        print(f"  Settlement Sweep: {settings.autoplay.settlement_sweep_minutes} min\n")

        print("Audit:")
        print(f"  Endpoint: {settings.audit.endpoint_url or '(disabled)'}")
        print(f"  Max Message: {settings.audit.max_message_bytes} bytes\n")

        print("API Keys:")
        print(f"  OpenAI: {'✓ Set' if settings.openai_api_key else '✗ Not set'}")
        print(f"  Anthropic: {'✓ Set' if settings.anthropic_api_key else '✗ Not set'}")
        print(f"  Logfire: {'✓ Set' if settings.logfire_token else '✗ Not set'}\n")

        return 0

    except ValidationError as e:
        print("\n❌ Configuration Error:\n")
        for error in e.errors():
            print(f"  • {'.'.join(str(x) for x in error['loc'])}: {error['msg']}")
        print()
        return 1
    except Exception as e:
        logger.error(f"Failed to load config: {e}")
        print(f"\n❌ Failed to load configuration: {e}\n")
        return 1


def cmd_agents(args: argparse.Namespace) -> int:
    """List table players."""
    ctx = get_context()
    print("\n=== Agents ===\n")
    for profile in ctx.registry.profiles():
        print(f"  {profile.id:<30} {profile.name:<20} {profile.model}")
    print()
    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Display today's bankrolls, the participant wallet and pending wagers."""
    try:
        ctx = get_context()
        today = ctx.market.today()

        print(f"\n=== Cardroom Status ({today}) ===\n")

        print("Bankrolls:")
        for row in ctx.market.leaderboard(today):
            state = ctx.ledger.daily_state(row.agent_id, today)
            print(
                f"  {row.name:<20} {_dollars(state.balance_cents):>14}  "
                f"P/L {state.pnl_cents / 100:+,.2f}  ({state.rounds_played} rounds)"
            )

        wallet = ctx.wallet.view()
        print(f"\nWallet: {_dollars(wallet.balance_cents)}"
              f" (daily {'claimed' if wallet.daily_claimed_today else 'available'})")

        pending_perf = [w for w in ctx.book.performance_wagers() if w.outcome == "pending"]
        pending_h2h = [w for w in ctx.book.head_to_head_wagers() if w.outcome == "pending"]
        print(f"Pending wagers: {len(pending_perf)} performance, {len(pending_h2h)} head-to-head\n")

        return 0

    except Exception as e:
        logger.error(f"Failed to read status: {e}")
        print(f"\n❌ Failed to read status: {e}\n")
        return 1


def _run_and_report(args: argparse.Namespace, vs: bool) -> int:
    _init_logfire()
    ctx = get_context()
    channel = TelemetryChannel(keep_history=False)
    channel.subscribe(_print_event)

    try:
        if vs:
            print(f"\n=== VS: {args.agent_a} vs {args.agent_b} ===")
            run = ctx.orchestrator.play_vs_run(
                args.agent_a, args.agent_b, args.rounds, channel, args.max_wager_cents
            )
        else:
            print(f"\n=== Table: {args.agent} ===")
            run = ctx.orchestrator.play_run(args.agent, args.rounds, channel, args.max_wager_cents)

        async def _play():
            result = await asyncio.wait_for(run, timeout=ctx.settings.table.run_timeout_seconds)
            await ctx.audit.drain()
            return result

        result = asyncio.run(_play())

    except TableError as e:
        print(f"\n❌ {e}\n")
        return 1
    except Exception as e:
        logger.error(f"Run failed: {e}", exc_info=True)
        print(f"\n❌ Run failed: {e}\n")
        return 1

    print(f"\n✓ {result.rounds_completed}/{result.rounds_requested} rounds ({result.stop_reason})\n")
    return 0 if result.stop_reason != "aborted" else 1


def cmd_play(args: argparse.Namespace) -> int:
    """Play single-agent rounds."""
    return _run_and_report(args, vs=False)


def cmd_vs(args: argparse.Namespace) -> int:
    """Play two agents at one table."""
    return _run_and_report(args, vs=True)


def cmd_settle(args: argparse.Namespace) -> int:
    """Run one settlement sweep."""
    try:
        summary = get_context().market.settle_due()
        print("\n✓ Settlement complete\n")
        print(f"Performance wagers settled: {summary.performance_settled}")
        print(f"Head-to-head wagers settled: {summary.head_to_head_settled}")
        print(f"Credited to wallet: {_dollars(summary.credited_cents)}\n")
        return 0
    except Exception as e:
        logger.error(f"Settlement failed: {e}", exc_info=True)
        print(f"\n❌ Settlement failed: {e}\n")
        return 1


def cmd_serve(args: argparse.Namespace) -> int:
    """Serve the HTTP API."""
    import uvicorn

    _init_logfire()
    uvicorn.run("cardroom.api.server:app", host=args.host, port=args.port, reload=False)
    return 0


def cmd_run(args: argparse.Namespace) -> int:
    """Start auto-play and settlement jobs."""
    try:
        _init_logfire()

        if args.debug:
            logging.getLogger().setLevel(logging.DEBUG)

        settings = get_settings()

        print("\n=== Cardroom Scheduler ===\n")
        print(f"Version: {__version__}")
        print(f"Auto-play: {'ON' if settings.autoplay.enabled else 'OFF'}")
        print(f"Data Directory: {settings.data_dir}\n")

        print("Starting scheduler...\n")
        start_scheduler(settings)

        return 0

    except KeyboardInterrupt:
        print("\n\nReceived interrupt signal. Shutting down...\n")
        return 0
    except Exception as e:
        logger.error(f"Failed to start scheduler: {e}", exc_info=True)
        print(f"\nFailed to start: {e}\n")
        return 1


def _add_run_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--rounds", type=int, default=1, help="Rounds to play (1-100)")
    parser.add_argument(
        "--max-wager-cents",
        type=int,
        default=0,
        help="Per-run wager cap in cents (0 = table maximum)",
    )


def main() -> int:
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Cardroom: AI agents play blackjack while spectators wager on them",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"Cardroom {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    parser_init = subparsers.add_parser(
        "init",
        help="Initialize data directory and configuration file",
    )
    parser_init.set_defaults(func=cmd_init)

    parser_config = subparsers.add_parser(
        "config",
        help="Display merged configuration",
    )
    parser_config.set_defaults(func=cmd_config)

    parser_agents = subparsers.add_parser(
        "agents",
        help="List table players",
    )
    parser_agents.set_defaults(func=cmd_agents)

    parser_status = subparsers.add_parser(
        "status",
        help="Display bankrolls, wallet and pending wagers",
    )
    parser_status.set_defaults(func=cmd_status)

    parser_play = subparsers.add_parser(
        "play",
        help="Play single-agent rounds",
    )
    parser_play.add_argument("--agent", required=True, help="Agent ID")
    _add_run_options(parser_play)
    parser_play.set_defaults(func=cmd_play)

    parser_vs = subparsers.add_parser(
        "vs",
        help="Play two agents at one table",
    )
    parser_vs.add_argument("--agent-a", required=True, help="Agent in seat A")
    parser_vs.add_argument("--agent-b", required=True, help="Agent in seat B")
    _add_run_options(parser_vs)
    parser_vs.set_defaults(func=cmd_vs)

    parser_settle = subparsers.add_parser(
        "settle",
        help="Settle every wager that is due",
    )
    parser_settle.set_defaults(func=cmd_settle)

    parser_serve = subparsers.add_parser(
        "serve",
        help="Serve the HTTP API",
    )
    parser_serve.add_argument("--host", default="127.0.0.1")
    parser_serve.add_argument("--port", type=int, default=8000)
    parser_serve.set_defaults(func=cmd_serve)

    parser_run = subparsers.add_parser(
        "run",
        help="Start auto-play and settlement jobs",
    )
    parser_run.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    parser_run.set_defaults(func=cmd_run)

    args = parser.parse_args()

    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
