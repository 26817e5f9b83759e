"""Storage layer: bankroll ledger, participant wallet and wager book."""

from cardroom.storage.files import atomic_write_yaml, load_yaml
from cardroom.storage.ledger import (
    BankrollLedger,
    DailyState,
    DebitResult,
    RoundRecord,
    SettledHand,
)
from cardroom.storage.wagers import WagerBook
from cardroom.storage.wallet import ParticipantWallet, WalletView

__all__ = [
    # Files
    "atomic_write_yaml",
    "load_yaml",
    # Ledger
    "BankrollLedger",
    "DailyState",
    "DebitResult",
    "RoundRecord",
    "SettledHand",
    # Market storage
    "ParticipantWallet",
    "WagerBook",
    "WalletView",
]
