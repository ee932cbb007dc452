"""Sync control routes.

Provides endpoints for:
- Starting and stopping the per-game sync jobs
- Status and cumulative statistics
- One manual cycle for a single game

Misuse (start twice, stop while idle, unknown game) is reported as
{"success": false, "error": ...} rather than raised.
"""
from typing import Dict

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from betfeed.core.exceptions import SyncControlError, UnknownGameError
from betfeed.core.logging import get_logger
from betfeed.core.rate_limit import limiter
from betfeed.services.sync.orchestrator import SyncOrchestrator, get_orchestrator

logger = get_logger(__name__)

router = APIRouter(prefix="/api/robust-auto-sync", tags=["sync"])


@router.post("/start")
@limiter.limit("10/minute")
async def start_sync(request: Request, orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> Dict:
    """Run one cycle per enabled game and arm the interval jobs."""
    try:
        return await orchestrator.start()
    except SyncControlError as e:
        logger.warning(f"Start rejected: {e}")
        return {"success": False, "error": str(e)}


@router.post("/stop")
@limiter.limit("10/minute")
async def stop_sync(request: Request, orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> Dict:
    """Remove every sync job and return the final statistics."""
    try:
        return orchestrator.stop()
    except SyncControlError as e:
        logger.warning(f"Stop rejected: {e}")
        return {"success": False, "error": str(e)}


@router.get("/status")
@limiter.limit("60/minute")
async def sync_status(request: Request, orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> Dict:
    """Active flag, totals and per-game timing."""
    return {"success": True, **orchestrator.status()}


@router.get("/stats")
@limiter.limit("60/minute")
async def sync_stats(request: Request, orchestrator: SyncOrchestrator = Depends(get_orchestrator)) -> Dict:
    """Cumulative statistics since the last start."""
    return {"success": True, "stats": orchestrator.stats()}


@router.post("/manual/{game_type}")
@limiter.limit("10/minute")
async def manual_sync(
    request: Request,
    game_type: str,
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
):
    """Run one cycle for a configured, enabled game."""
    try:
        return await orchestrator.manual_sync(game_type)
    except UnknownGameError as e:
        return JSONResponse(status_code=404, content={"success": False, "error": str(e)})
    except SyncControlError as e:
        return {"success": False, "error": str(e)}
