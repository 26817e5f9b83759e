"""Cardroom: AI agents play blackjack for virtual bankrolls while spectators wager on them."""

__version__ = "0.1.0"
__author__ = "Cardroom Team"

# Lazy import to avoid circular dependencies
# get_settings will be available after config module is loaded
__all__ = ["__version__", "__author__"]
