"""
Event repository for data access.
"""
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy import desc
from sqlalchemy.orm import Session

from betfeed.models.models import Event, GameResult
from betfeed.repositories.base import BaseRepository

# Fields written on both insert and update of an event
EVENT_FIELDS = (
    "game_name",
    "game_number",
    "start_time",
    "finish_time",
    "is_finished",
    "status_value",
    "raw_payload",
)


class EventRepository(BaseRepository[Event]):
    """Repository for Event data access."""

    def __init__(self, db: Session):
        super().__init__(Event, db)

    def find_by_event_id(self, event_id: str) -> Optional[Event]:
        return self.where_first(Event.event_id == event_id)

    def upsert(self, event_id: str, fields: Dict[str, Any]) -> Tuple[Event, bool]:
        """
        Insert or update an event by its upstream identifier.

        Args:
            event_id: Upstream event identifier
            fields: Normalized event fields (see EVENT_FIELDS)

        Returns:
            (event, created) where created is True for a first sighting
        """
        values = {key: fields.get(key) for key in EVENT_FIELDS}
        values["is_finished"] = bool(values["is_finished"])

        event = self.find_by_event_id(event_id)
        if event is None:
            event = self.create(event_id=event_id, **values)
            self.flush()
            return event, True

        self.apply(event, **values)
        self.flush()
        return event, False

    def list_events(
        self,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
        finished: Optional[bool] = None,
        limit: int = 100,
    ) -> List[Event]:
        """Stored events filtered by start time window and finished flag, newest first."""
        query = self.query()
        if start_from is not None:
            query = query.filter(Event.start_time >= start_from)
        if start_to is not None:
            query = query.filter(Event.start_time <= start_to)
        if finished is not None:
            query = query.filter(Event.is_finished == finished)
        return query.order_by(desc(Event.start_time), desc(Event.id)).limit(limit).all()

    def list_events_with_results(
        self,
        start_from: Optional[datetime] = None,
        start_to: Optional[datetime] = None,
        finished: Optional[bool] = None,
        limit: int = 100,
    ) -> List[Tuple[Event, Optional[GameResult]]]:
        """Events left-joined with their result on the upstream identifier."""
        query = self.db.query(Event, GameResult).outerjoin(
            GameResult, GameResult.event_id == Event.event_id
        )
        if start_from is not None:
            query = query.filter(Event.start_time >= start_from)
        if start_to is not None:
            query = query.filter(Event.start_time <= start_to)
        if finished is not None:
            query = query.filter(Event.is_finished == finished)
        return query.order_by(desc(Event.start_time), desc(Event.id)).limit(limit).all()

    # ========================================================================
    # Finishing sweep queries
    # ========================================================================

    def find_overdue_unfinished(
        self, game_name: str, now: Optional[datetime] = None, limit: int = 20
    ) -> List[Event]:
        """Unfinished events of a game whose finish time has passed, newest first."""
        now = now or datetime.now(timezone.utc)
        return (
            self.query()
            .filter(
                Event.game_name == game_name,
                Event.is_finished.is_(False),
                Event.finish_time.isnot(None),
                Event.finish_time < now,
            )
            .order_by(desc(Event.finish_time))
            .limit(limit)
            .all()
        )

    def find_finished_without_result(self, game_name: str, limit: int = 10) -> List[Event]:
        """Finished events of a game that have no stored result, newest first."""
        return (
            self.query()
            .outerjoin(GameResult, GameResult.event_id == Event.event_id)
            .filter(
                Event.game_name == game_name,
                Event.is_finished.is_(True),
                GameResult.id.is_(None),
            )
            .order_by(desc(Event.start_time), desc(Event.id))
            .limit(limit)
            .all()
        )
