"""
Bet slip booking and bet slip management endpoints.
"""
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from betfeed.core.database import get_db
from betfeed.core.exceptions import BetSlipNotFoundError, MalformedBetObjectError
from betfeed.core.logging import get_logger
from betfeed.core.rate_limit import limiter
from betfeed.services.booking.bet_slip_store import BetSlipStore
from betfeed.services.booking.booking_service import BookingService, booking_envelope

logger = get_logger(__name__)

router = APIRouter(tags=["booking"])


class BookingRequest(BaseModel):
    """Front end booking payload; BetObject is a JSON-encoded string."""

    model_config = ConfigDict(extra="allow")

    BetObject: Any = None


class StatusUpdateRequest(BaseModel):
    status: Optional[str] = None
    changedBy: str = "system"
    reason: str = ""


@router.post("/booking")
@limiter.limit("30/minute")
async def book_bet_slip(request: Request, payload: BookingRequest, db: Session = Depends(get_db)):
    """Store a bet slip and return the booking envelope."""
    try:
        return BookingService(db).book(payload.BetObject)
    except MalformedBetObjectError as e:
        logger.error(f"Failed to parse BetObject: {e}")
        return JSONResponse(status_code=400, content=booking_envelope(1, "Invalid bet object format"))
    except Exception as e:
        logger.error(f"Error in booking endpoint: {e}", exc_info=True)
        return JSONResponse(status_code=500, content=booking_envelope(1, "Internal server error"))


@router.get("/api/betslips")
@limiter.limit("60/minute")
async def list_bet_slips(
    request: Request,
    status: Optional[str] = Query(None, description="Filter by slip status"),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
) -> Dict:
    """Bet slips with selection counts, newest first."""
    slips = BetSlipStore(db).list_bet_slips(status=status, limit=limit)
    return {"success": True, "count": len(slips), "betSlips": slips}


@router.get("/api/betslips/{slip_id}")
@limiter.limit("60/minute")
async def get_bet_slip(request: Request, slip_id: str, db: Session = Depends(get_db)):
    """One bet slip with its selections and status history."""
    store = BetSlipStore(db)
    bet_slip = store.get_bet_slip(slip_id)
    if bet_slip is None:
        return JSONResponse(status_code=404, content={"success": False, "error": "Bet slip not found"})
    bet_slip["history"] = store.history(slip_id)
    return {"success": True, "betSlip": bet_slip}


@router.put("/api/betslips/{slip_id}/status")
@limiter.limit("30/minute")
async def update_bet_slip_status(
    request: Request,
    slip_id: str,
    body: StatusUpdateRequest,
    db: Session = Depends(get_db),
):
    """Change a slip's status; the transition is recorded in its history."""
    if not body.status:
        return JSONResponse(status_code=400, content={"success": False, "error": "Status is required"})
    try:
        result = BetSlipStore(db).update_bet_slip_status(slip_id, body.status, body.changedBy, body.reason)
    except BetSlipNotFoundError as e:
        return JSONResponse(status_code=404, content={"success": False, "error": str(e)})
    return {"success": True, "result": result}
