"""Custom exceptions for the blackjack table."""


class TableError(Exception):
    """Base exception for table errors."""

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.code = code


class UnknownAgentError(TableError):
    """No gateway is registered for the requested agent id."""

    def __init__(self, agent_id: str):
        super().__init__(f"Unknown agent: {agent_id}", code="UNKNOWN_AGENT")
        self.agent_id = agent_id


class InsufficientBankrollError(TableError):
    """Agent balance cannot cover the minimum wager."""

    def __init__(self, agent_id: str, balance_cents: int, required_cents: int):
        super().__init__(
            f"Insufficient bankroll for {agent_id}: "
            f"{balance_cents} < {required_cents} cents",
            code="INSUFFICIENT_BANKROLL",
        )
        self.agent_id = agent_id
        self.balance_cents = balance_cents
        self.required_cents = required_cents


class RoundAbortedError(TableError):
    """Round could not be completed; nothing was committed for it."""

    def __init__(self, message: str):
        super().__init__(message, code="ROUND_ABORTED")


class DeckExhaustedError(TableError):
    """Tried to draw from an empty deck."""

    def __init__(self, message: str = "Deck is empty"):
        super().__init__(message, code="DECK_EXHAUSTED")
