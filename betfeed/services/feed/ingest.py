"""
Manual ingestion of upstream events outside the sync timers.

Used by the ``betfeed ingest`` command to seed or repair the events table.
"""
from typing import Any, Dict

from sqlalchemy.orm import Session

from betfeed.core.config import GameConfig
from betfeed.core.logging import get_logger
from betfeed.repositories.event_repository import EventRepository
from betfeed.services.feed.feed_client import FeedClient
from betfeed.services.sync.normalizer import map_list_response, normalize_event

logger = get_logger(__name__)


async def ingest_list(db: Session, feed_client: FeedClient, game: GameConfig) -> Dict[str, Any]:
    """
    Fetch the event list for a game and upsert every event in it.

    Returns:
        {"game_type", "events_processed", "events_upserted"}
    """
    logger.info(f"Starting list ingestion for {game.type_name}")
    response = await feed_client.get_events_by_type(game)

    events = map_list_response(response)
    logger.info(f"Found {len(events)} events in response")

    repo = EventRepository(db)
    upserted = 0
    for event in events:
        try:
            repo.upsert(event.event_id, event.to_fields())
            db.commit()
            upserted += 1
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to upsert event {event.event_id}: {e}")

    logger.info(f"Upserted {upserted}/{len(events)} events for {game.type_name}")
    return {
        "game_type": game.type_name,
        "events_processed": len(events),
        "events_upserted": upserted,
    }


async def ingest_detail(db: Session, feed_client: FeedClient, event_id: str) -> Dict[str, Any]:
    """
    Fetch one event's detail and upsert it with the detailed payload.

    Raises:
        ValueError: event_id is empty
        FeedError: the detail request failed
    """
    if not event_id:
        raise ValueError("Event ID is required")

    logger.info(f"Starting detail ingestion for event: {event_id}")
    response = await feed_client.get_event_detail(event_id)

    event = normalize_event(response)
    if not event.event_id:
        logger.warning(f"No event ID found in detail response for {event_id}")
        return {"event_id": event_id, "event_upserted": False}

    EventRepository(db).upsert(event.event_id, event.to_fields())
    db.commit()
    logger.info(f"Upserted event detail: {event.event_id}")
    return {"event_id": event.event_id, "event_upserted": True}
