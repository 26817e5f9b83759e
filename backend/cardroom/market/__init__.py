"""Spectator wagering: parimutuel performance and head-to-head markets.

The settlement service lives in :mod:`cardroom.market.service`.
"""

from cardroom.market.exceptions import (
    DailyClaimError,
    InsufficientBalanceError,
    InvalidWagerError,
    MarketError,
)
from cardroom.market.models import (
    HeadToHeadWager,
    LeaderboardRow,
    LeaderboardSeries,
    OddsPoint,
    PerformanceWager,
)

__all__ = [
    "DailyClaimError",
    "HeadToHeadWager",
    "InsufficientBalanceError",
    "InvalidWagerError",
    "LeaderboardRow",
    "LeaderboardSeries",
    "MarketError",
    "OddsPoint",
    "PerformanceWager",
]
