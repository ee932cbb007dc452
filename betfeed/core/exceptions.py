"""
Exception hierarchy for betfeed.

Errors internal to one unit of work (one event, one sync cycle) are contained
where they happen; the classes below are the ones that cross a boundary.
"""
from typing import Optional


class BetfeedError(Exception):
    """Base class for all application errors."""


# ============================================================================
# Upstream feed
# ============================================================================

class FeedError(BetfeedError):
    """The upstream feed could not be reached or answered with an error."""

    def __init__(self, endpoint: str, message: str, status_code: Optional[int] = None):
        self.endpoint = endpoint
        self.status_code = status_code
        super().__init__(f"{endpoint}: {message}")


# ============================================================================
# Sync control misuse
# ============================================================================

class SyncControlError(BetfeedError):
    """Base class for invalid sync control requests."""


class AlreadyActiveError(SyncControlError):
    def __init__(self):
        super().__init__("Robust auto-sync already active")


class NotActiveError(SyncControlError):
    def __init__(self):
        super().__init__("Robust auto-sync not active")


class NoGamesEnabledError(SyncControlError):
    def __init__(self):
        super().__init__("No enabled games found")


class StartInterruptedError(SyncControlError):
    def __init__(self):
        super().__init__("Robust auto-sync was stopped before its timers were armed")


class UnknownGameError(SyncControlError):
    def __init__(self, game_type: str):
        self.game_type = game_type
        super().__init__(f"Game configuration not found for: {game_type}")


class GameNotEnabledError(SyncControlError):
    def __init__(self, game_type: str):
        self.game_type = game_type
        super().__init__(f"Game {game_type} is not enabled")


# ============================================================================
# Booking
# ============================================================================

class BookingError(BetfeedError):
    """Base class for bet slip errors."""


class MalformedBetObjectError(BookingError):
    """The BetObject string could not be parsed into a JSON object."""


class EmptyBetSlipError(BookingError):
    def __init__(self):
        super().__init__("No single bets found in bet object")


class DuplicateBetSlipError(BookingError):
    def __init__(self, slip_id: str):
        self.slip_id = slip_id
        super().__init__(f"Bet slip with ID {slip_id} already exists")


class BetSlipNotFoundError(BookingError):
    def __init__(self, slip_id: str):
        self.slip_id = slip_id
        super().__init__(f"Bet slip not found: {slip_id}")
