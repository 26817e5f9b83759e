"""Custom exceptions for spectator wagering."""


class MarketError(Exception):
    """Base exception for market errors."""

    def __init__(self, message: str, status_code: int = 400):
        super().__init__(message)
        self.status_code = status_code


class InvalidWagerError(MarketError):
    """Wager rejected before any balance was touched (bad stake, same agent twice...)."""


class InsufficientBalanceError(MarketError):
    """Participant wallet cannot cover the stake."""

    def __init__(self, stake_cents: int, balance_cents: int):
        super().__init__(
            f"Insufficient balance: stake {stake_cents} > balance {balance_cents} cents"
        )
        self.stake_cents = stake_cents
        self.balance_cents = balance_cents


class DailyClaimError(MarketError):
    """The daily allowance was already claimed today."""

    def __init__(self, day: str):
        super().__init__(f"Daily bonus already claimed for {day}")
        self.day = day
