"""Process-wide wiring of the ledger, wallet, wager book and services."""

import logging
from functools import lru_cache

from pydantic import BaseModel, ConfigDict

from cardroom.agents.registry import AgentRegistry
from cardroom.config import Settings, get_settings
from cardroom.market.service import MarketService
from cardroom.services.audit import AuditPublisher
from cardroom.storage.ledger import BankrollLedger
from cardroom.storage.wagers import WagerBook
from cardroom.storage.wallet import ParticipantWallet
from cardroom.table.orchestrator import RoundOrchestrator

logger = logging.getLogger(__name__)


class CardroomContext(BaseModel):
    """Explicit handles shared by the API, the CLI and the scheduler."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    settings: Settings
    registry: AgentRegistry
    ledger: BankrollLedger
    wallet: ParticipantWallet
    book: WagerBook
    audit: AuditPublisher
    orchestrator: RoundOrchestrator
    market: MarketService


def build_context(settings: Settings, persist: bool = True) -> CardroomContext:
    """Build every component from settings.

    With ``persist`` the ledger, wallet and wager book snapshot to YAML files
    under the data directory.
    """
    data_dir = settings.data_dir
    if persist:
        data_dir.mkdir(parents=True, exist_ok=True)

    registry = AgentRegistry(settings=settings)
    ledger = BankrollLedger(
        settings.table.daily_allowance_cents,
        path=data_dir / "ledger.yaml" if persist else None,
    )
    wallet = ParticipantWallet(
        settings.market.participant_daily_cents,
        path=data_dir / "wallet.yaml" if persist else None,
    )
    book = WagerBook(path=data_dir / "wagers.yaml" if persist else None)
    audit = AuditPublisher(settings.audit)

    orchestrator = RoundOrchestrator(registry, ledger, settings.table, audit=audit)
    market = MarketService(
        ledger,
        wallet,
        book,
        settings.market,
        registry=registry,
        audit=audit,
    )
    logger.debug(f"Built cardroom context (persist={persist}, data_dir={data_dir})")

    return CardroomContext(
        settings=settings,
        registry=registry,
        ledger=ledger,
        wallet=wallet,
        book=book,
        audit=audit,
        orchestrator=orchestrator,
        market=market,
    )


@lru_cache()
def get_context() -> CardroomContext:
    """Get singleton context built from the global settings."""
    return build_context(get_settings())
