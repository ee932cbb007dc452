"""ORM models for events, game results and bet slips."""
from betfeed.models.models import (
    Base,
    Event,
    GameResult,
    BetSlip,
    BetSelection,
    BetSlipHistory,
)

__all__ = [
    "Base",
    "Event",
    "GameResult",
    "BetSlip",
    "BetSelection",
    "BetSlipHistory",
]
