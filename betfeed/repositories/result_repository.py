"""
Game result repository for data access.
"""
from typing import Optional, List, Dict, Any

from sqlalchemy import desc
from sqlalchemy.orm import Session

from betfeed.models.models import GameResult
from betfeed.repositories.base import BaseRepository


class ResultRepository(BaseRepository[GameResult]):
    """Repository for GameResult data access."""

    def __init__(self, db: Session):
        super().__init__(GameResult, db)

    def find_by_event_id(self, event_id: str) -> Optional[GameResult]:
        return self.where_first(GameResult.event_id == event_id)

    def has_winning_values(self, event_id: str) -> bool:
        """True when a stored result already carries non-empty winning values."""
        result = self.find_by_event_id(event_id)
        return bool(result is not None and result.winning_values)

    def upsert(self, processed: Dict[str, Any]) -> GameResult:
        """
        Insert or replace the result for one event.

        Args:
            processed: Output of process_game_result()

        Returns:
            The stored result (flushed, not committed)
        """
        values = {
            "game_name": processed.get("game_name"),
            "result_type": processed.get("result_type") or "unknown",
            "winning_values": processed.get("winning_values"),
            "result_data": processed.get("result_data"),
            "game_number": processed.get("game_number"),
        }

        result = self.find_by_event_id(processed["event_id"])
        if result is None:
            result = self.create(event_id=processed["event_id"], **values)
        else:
            self.apply(result, **values)
        self.flush()
        return result

    def recent(self, game_name: Optional[str] = None, limit: int = 50) -> List[GameResult]:
        """Most recently declared results, optionally for one game."""
        query = self.query()
        if game_name:
            query = query.filter(GameResult.game_name == game_name)
        return query.order_by(desc(GameResult.declared_at), desc(GameResult.id)).limit(limit).all()
