"""
Read access to stored events and game results.
"""
from datetime import datetime
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from betfeed.core.database import get_db
from betfeed.core.rate_limit import limiter
from betfeed.models.models import Event, GameResult
from betfeed.repositories.event_repository import EventRepository
from betfeed.repositories.result_repository import ResultRepository

router = APIRouter(tags=["events"])


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def parse_finished(value: Optional[str]) -> Optional[bool]:
    """Query flag: "true"/"1" -> True, any other non-empty value -> False, empty -> no filter."""
    if value is None or value == "":
        return None
    return value in ("true", "1")


def event_to_dict(event: Event, include_raw: bool = False) -> Dict[str, Any]:
    data = {
        "event_id": event.event_id,
        "game_name": event.game_name,
        "game_number": event.game_number,
        "start_time": _iso(event.start_time),
        "finish_time": _iso(event.finish_time),
        "is_finished": event.is_finished,
        "status_value": event.status_value,
        "created_at": _iso(event.created_at),
        "updated_at": _iso(event.updated_at),
    }
    if include_raw:
        data["raw_payload"] = event.raw_payload
    return data


def result_to_dict(result: GameResult) -> Dict[str, Any]:
    return {
        "event_id": result.event_id,
        "game_name": result.game_name,
        "result_type": result.result_type,
        "winning_values": result.winning_values,
        "game_number": result.game_number,
        "declared_at": _iso(result.declared_at),
        "created_at": _iso(result.created_at),
        "updated_at": _iso(result.updated_at),
    }


@router.get("/events")
@limiter.limit("60/minute")
async def list_events(
    request: Request,
    start_from: Optional[datetime] = Query(None, alias="from", description="Start time lower bound"),
    start_to: Optional[datetime] = Query(None, alias="to", description="Start time upper bound"),
    finished: Optional[str] = Query(None, description="true/1 for finished events"),
    db: Session = Depends(get_db),
) -> Dict:
    """Stored events, newest first (max 100)."""
    events = EventRepository(db).list_events(start_from, start_to, parse_finished(finished), limit=100)
    return {
        "success": True,
        "count": len(events),
        "events": [event_to_dict(e) for e in events],
    }


@router.get("/events/{event_id}")
@limiter.limit("60/minute")
async def get_event(request: Request, event_id: str, db: Session = Depends(get_db)):
    """One event with its raw payload."""
    event = EventRepository(db).find_by_event_id(event_id)
    if event is None:
        return JSONResponse(status_code=404, content={"success": False, "error": "Event not found"})
    return {"success": True, "event": event_to_dict(event), "raw": event.raw_payload}


@router.get("/api/events-with-results")
@limiter.limit("60/minute")
async def list_events_with_results(
    request: Request,
    start_from: Optional[datetime] = Query(None, alias="from"),
    start_to: Optional[datetime] = Query(None, alias="to"),
    finished: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> Dict:
    """Events joined with their results (result fields are null when none exists)."""
    rows = EventRepository(db).list_events_with_results(start_from, start_to, parse_finished(finished), limit=100)
    events = []
    for event, result in rows:
        data = event_to_dict(event)
        data["result_type"] = result.result_type if result else None
        data["winning_values"] = result.winning_values if result else None
        data["declared_at"] = _iso(result.declared_at) if result else None
        events.append(data)
    return {"success": True, "count": len(events), "events": events}


@router.get("/api/results")
@limiter.limit("60/minute")
async def list_results(
    request: Request,
    game_name: Optional[str] = Query(None, description="Filter by game type"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> Dict:
    """Most recent results."""
    results = ResultRepository(db).recent(game_name=game_name, limit=limit)
    return {"success": True, "count": len(results), "results": [result_to_dict(r) for r in results]}


@router.get("/api/results/{event_id}")
@limiter.limit("60/minute")
async def get_result(request: Request, event_id: str, db: Session = Depends(get_db)):
    """One result."""
    result = ResultRepository(db).find_by_event_id(event_id)
    if result is None:
        return JSONResponse(status_code=404, content={"success": False, "error": "Result not found"})
    return {"success": True, "result": result_to_dict(result)}
