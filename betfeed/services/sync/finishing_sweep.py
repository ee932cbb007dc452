"""
Finishing sweep for numbers-draw events.

The list endpoint often stops returning a keno round before its winning
numbers are published, so after every sync cycle this sweep:

1. marks stored rounds finished once their finish time has passed
2. fetches the detail of finished rounds that still have no result and
   stores the winning numbers when the detail carries them
"""
from datetime import datetime
from typing import Dict, Optional

from sqlalchemy.orm import Session

from betfeed.core.logging import get_logger
from betfeed.core.metrics import sync_results_stored_total
from betfeed.repositories.event_repository import EventRepository
from betfeed.repositories.result_repository import ResultRepository
from betfeed.services.feed.feed_client import FeedClient
from betfeed.services.sync.result_extractor import KENO_GAME, process_game_result

logger = get_logger(__name__)

MARK_LIMIT = 20
PROCESS_LIMIT = 10


class FinishingSweep:
    """
    Sweep over stored events of one game type.

    Attributes:
        db: Database session owned by the caller
        feed_client: Client used for detail fetches
        game_name: Game type the sweep is scoped to
    """

    def __init__(self, db: Session, feed_client: FeedClient, game_name: str = KENO_GAME):
        self.db = db
        self.feed_client = feed_client
        self.game_name = game_name
        self.events = EventRepository(db)
        self.results = ResultRepository(db)

    def mark_overdue_finished(self, now: Optional[datetime] = None) -> int:
        """Set is_finished on rounds whose finish time is past. Returns the number marked."""
        marked = 0
        for event in self.events.find_overdue_unfinished(self.game_name, now=now, limit=MARK_LIMIT):
            try:
                self.events.apply(event, is_finished=True)
                self.db.commit()
                marked += 1
                logger.info(f"Marked finished: {event.event_id} (Number: {event.game_number})")
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to mark {event.event_id} as finished: {e}")
        return marked

    async def process_missing_results(self) -> Dict[str, int]:
        """Fetch and store results for finished rounds without one."""
        processed = 0
        errors = 0

        for event in self.events.find_finished_without_result(self.game_name, limit=PROCESS_LIMIT):
            event_id = event.event_id
            try:
                detail = await self.feed_client.get_event_detail(event_id)
                if not isinstance(detail, dict) or not detail.get("Event"):
                    logger.warning(f"No game detail found for {event_id}")
                    errors += 1
                    continue

                result = process_game_result(detail)
                numbers = (result or {}).get("winning_values", {}).get("winningNumbers") or []
                if not numbers:
                    logger.warning(f"No winning numbers found for {event_id}")
                    errors += 1
                    continue

                self.results.upsert(result)
                self.db.commit()
                sync_results_stored_total.labels(game_type=self.game_name).inc()
                processed += 1
                logger.info(
                    f"Stored winning numbers for {event_id} "
                    f"(Number: {result['game_number']}): {', '.join(str(n) for n in numbers)}"
                )
            except Exception as e:
                self.db.rollback()
                logger.error(f"Failed to process finished game {event_id}: {e}")
                errors += 1

        return {"processed": processed, "errors": errors}

    async def run(self, now: Optional[datetime] = None) -> Dict[str, int]:
        """
        Mark then process.

        Returns:
            {"marked", "processed", "errors"}; never raises
        """
        summary = {"marked": 0, "processed": 0, "errors": 0}
        try:
            summary["marked"] = self.mark_overdue_finished(now=now)
            summary.update(await self.process_missing_results())
        except Exception as e:
            self.db.rollback()
            logger.error(f"Finishing sweep for {self.game_name} failed: {e}")
            summary["errors"] += 1

        logger.info(
            f"Finishing sweep ({self.game_name}): {summary['marked']} marked, "
            f"{summary['processed']} processed, {summary['errors']} errors"
        )
        return summary
