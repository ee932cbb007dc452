"""
Repository layer for data access.

Usage:
    from betfeed.repositories import EventRepository
    from betfeed.core.database import SessionLocal

    db = SessionLocal()
    event_repo = EventRepository(db)
    event = event_repo.find_by_event_id("90-12345")
    db.close()
"""

from betfeed.repositories.base import BaseRepository
from betfeed.repositories.event_repository import EventRepository
from betfeed.repositories.result_repository import ResultRepository
from betfeed.repositories.bet_slip_repository import BetSlipRepository

__all__ = [
    "BaseRepository",
    "EventRepository",
    "ResultRepository",
    "BetSlipRepository",
]
