"""
Booking handler for bet slips submitted by the front end.

Input is ``{"BetObject": "<json string>"}``. The slip is stored first and the
legs are validated afterwards; the response uses the envelope the front end
expects (StatusCode / Error / Warning / Content).
"""
import json
import random
import string
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from betfeed.core.exceptions import MalformedBetObjectError
from betfeed.core.logging import get_logger
from betfeed.core.metrics import bookings_total
from betfeed.services.booking.bet_slip_store import BetSlipStore, single_bet_legs, to_number

logger = get_logger(__name__)

REDEEM_CODE_ALPHABET = string.ascii_uppercase + string.digits
PENDING_REFRESH_PERIOD = 30
INVALID_STAKE_MESSAGE = "Invalid stake amount"


def generate_redeem_code(length: int = 8) -> str:
    """Short human-readable code; independent draws, not cryptographic."""
    return "".join(random.choices(REDEEM_CODE_ALPHABET, k=length))


def booking_envelope(
    status_code: int,
    error: Optional[str],
    slip_id: Optional[str] = None,
    redeem_code: Optional[str] = None,
    failed_bets: Optional[List[Dict[str, Any]]] = None,
    valid_bets: Optional[List[Dict[str, Any]]] = None,
    multiples: Optional[List[Dict[str, Any]]] = None,
) -> Dict[str, Any]:
    """Response body shared by success and error paths."""
    return {
        "StatusCode": status_code,
        "Error": error,
        "Warning": None,
        "Content": {
            "ID": slip_id,
            "RedeemCode": redeem_code,
            "ExpiredBets": [],
            "FailedBets": failed_bets or [],
            "ValidBets": valid_bets or [],
            "Multiples": multiples or [],
            "PendingRefreshPeriod": PENDING_REFRESH_PERIOD,
            "RegulationModel": {
                "CustomMessage": "",
                "RealityCheck": 0,
                "StopGamePlay": False,
            },
        },
    }


def parse_bet_object(raw: Any) -> Dict[str, Any]:
    """
    Decode the BetObject string.

    Raises:
        MalformedBetObjectError: not a string holding a JSON object
    """
    if not isinstance(raw, str):
        raise MalformedBetObjectError("BetObject must be a JSON string")
    try:
        bet_object = json.loads(raw)
    except json.JSONDecodeError as e:
        raise MalformedBetObjectError(f"BetObject is not valid JSON: {e}") from e
    if not isinstance(bet_object, dict):
        raise MalformedBetObjectError("BetObject must decode to an object")
    return bet_object


def validate_legs(bet_object: Dict[str, Any]) -> Dict[str, List[Dict[str, Any]]]:
    """
    Stake check per leg.

    Legs are the same ones the store persists. A leg whose stake is missing,
    non-finite or not positive is reported in FailedBets and also in
    ValidBets with HasErrorOccured set.
    """
    failed: List[Dict[str, Any]] = []
    valid: List[Dict[str, Any]] = []
    for i, bet in enumerate(single_bet_legs(bet_object)):
        bet_id = bet.get("ID") or f"bet_{i}"
        stake = to_number(bet.get("Stake"))
        if stake is None or not stake > 0:
            entry = {"ID": bet_id, "HasErrorOccured": True, "ErrorMessage": INVALID_STAKE_MESSAGE}
            failed.append(entry)
            valid.append(dict(entry))
        else:
            valid.append({"ID": bet_id, "HasErrorOccured": False, "ErrorMessage": ""})
    return {"failed": failed, "valid": valid}


class BookingService:
    """Books bet slips against the database session it is given."""

    def __init__(self, db: Session):
        self.db = db
        self.store = BetSlipStore(db)

    def book(self, raw_bet_object: Any) -> Dict[str, Any]:
        """
        Store a bet slip and build the booking response.

        Raises:
            MalformedBetObjectError: the BetObject could not be parsed
            BookingError / SQLAlchemyError: storage failed (transaction rolled back)
        """
        try:
            bet_object = parse_bet_object(raw_bet_object)
        except MalformedBetObjectError:
            bookings_total.labels(outcome="malformed").inc()
            raise

        single_bets = bet_object.get("SingleBets")
        multi_groups = bet_object.get("MultiGroups")
        logger.info(
            "Processing booking request",
            extra={
                "single_bets": len(single_bets) if isinstance(single_bets, list) else 0,
                "multi_groups": len(multi_groups) if isinstance(multi_groups, list) else 0,
            },
        )

        slip_id = str(uuid.uuid4())
        redeem_code = generate_redeem_code(8)

        try:
            self.store.store_bet_slip(bet_object, slip_id, redeem_code, bet_object.get("SessionGuid"))
        except Exception:
            bookings_total.labels(outcome="storage_error").inc()
            raise

        legs = validate_legs(bet_object)
        multiples = [
            {"Level": idx + 1, "HasErrorOccured": False, "ErrorMessage": ""}
            for idx, _ in enumerate(multi_groups if isinstance(multi_groups, list) else [])
        ]
        has_failures = bool(legs["failed"])
        bookings_total.labels(outcome="rejected_legs" if has_failures else "accepted").inc()

        logger.info(
            f"Booked slip {slip_id} (redeem code {redeem_code}): "
            f"{len(legs['valid'])} legs, {len(legs['failed'])} failed"
        )
        return booking_envelope(
            status_code=1 if has_failures else 0,
            error="Some bets failed" if has_failures else None,
            slip_id=slip_id,
            redeem_code=redeem_code,
            failed_bets=legs["failed"],
            valid_bets=legs["valid"],
            multiples=multiples,
        )
