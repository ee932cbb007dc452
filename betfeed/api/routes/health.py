"""Liveness and connectivity checks."""
from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import sessionmaker

from betfeed.core.database import check_connection, get_session_factory
from betfeed.core.rate_limit import limiter
from betfeed.services.feed.feed_client import FeedClient, get_feed_client

router = APIRouter(tags=["health"])


@router.get("/healthz")
@limiter.limit("120/minute")  # Higher limit for health checks
async def healthz(request: Request) -> Dict:
    """Liveness probe."""
    return {"ok": True, "timestamp": datetime.now(timezone.utc).isoformat()}


@router.get("/test")
@limiter.limit("30/minute")
async def test_connections(
    request: Request,
    session_factory: sessionmaker = Depends(get_session_factory),
    feed_client: FeedClient = Depends(get_feed_client),
) -> Dict:
    """Database and upstream connectivity."""
    db_ok = check_connection(session_factory)
    api_ok = await feed_client.check_connection()
    return {
        "database": "connected" if db_ok else "error",
        "api": "connected" if api_ok else "error",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
