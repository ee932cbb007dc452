"""
Bet slip storage.

A slip, all of its selections and the initial history row are written in a
single transaction: either everything is committed or nothing is.
"""
import math
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from betfeed.core.exceptions import BetSlipNotFoundError, DuplicateBetSlipError, EmptyBetSlipError
from betfeed.core.logging import get_logger
from betfeed.models.models import BetSelection, BetSlip
from betfeed.repositories.bet_slip_repository import BetSlipRepository
from betfeed.services.sync.normalizer import parse_dotnet_date

logger = get_logger(__name__)

# Game type value (second part of FeedEventId) -> game name
GAME_TYPE_NAMES = {
    1: "DashingDerby",
    3: "HarnessRacing",
    5: "CycleRacing",
    6: "MotorRacing",
    16: "SteepleChase",
    17: "SpeedSkating",
    18: "SingleSeaterMotorRacing",
    19: "SmartPlayKeno",
    24: "SpinAndWin",
}


def to_number(value: Any) -> Optional[float]:
    """Finite numeric value of a bet field, None when absent, NaN, infinite or not a number."""
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value)
        except ValueError:
            return None
    else:
        return None
    return number if math.isfinite(number) else None


def single_bet_legs(bet_object: Dict[str, Any]) -> List[Dict[str, Any]]:
    """The SingleBets entries that are objects; anything else is not a leg."""
    single_bets = bet_object.get("SingleBets")
    if not isinstance(single_bets, list):
        return []
    return [b for b in single_bets if isinstance(b, dict)]


def _int(value: Any) -> Optional[int]:
    number = to_number(value)
    return int(number) if number is not None else None


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def extract_event_info(bet: Dict[str, Any]) -> Dict[str, Any]:
    """
    Event id, game name, game number and game type value of one leg.

    FeedEventId has the form ``FeedId-TypeValue-EventId``; the type value is
    mapped to a game name. A nested Event.type (front end) or Event.Type
    object overrides name and type value.
    """
    event_id = bet.get("FeedEventId")
    game_name = "Unknown"
    game_number = None
    game_type_value = None

    if isinstance(event_id, str) and "-" in event_id:
        parts = event_id.split("-")
        if len(parts) >= 3:
            game_type_value = _int(parts[1])
            game_number = _int(bet.get("EventNumber"))
            game_name = GAME_TYPE_NAMES.get(game_type_value, "Unknown")

    event = bet.get("Event") if isinstance(bet.get("Event"), dict) else {}
    if isinstance(event.get("type"), dict):
        event_type = event["type"]
        game_name = event_type.get("name") or event_type.get("eventTypeCategoryEnum") or game_name
        game_type_value = _int(event_type.get("value")) or game_type_value
    elif isinstance(event.get("Type"), dict):
        event_type = event["Type"]
        game_name = event_type.get("Name") or game_name
        game_type_value = _int(event_type.get("Value")) or game_type_value

    return {
        "event_id": _str(event_id) or None,
        "game_name": game_name,
        "game_number": game_number,
        "game_type_value": game_type_value,
    }


def build_selection_row(slip_id: str, bet: Dict[str, Any]) -> Dict[str, Any]:
    """Column values for one bet_selections row."""
    stake = to_number(bet.get("Stake")) or 0.0
    odds = to_number(bet.get("Odds")) or 0.0
    potential_win = to_number(bet.get("PotentialWin")) or stake * odds
    market_class = bet.get("MarketClass") if isinstance(bet.get("MarketClass"), dict) else {}

    selection_ids = bet.get("SelectionIds")
    if isinstance(selection_ids, list):
        selection_ids = [s for s in selection_ids if s]
    else:
        selection_ids = [bet["SelectionId"]] if bet.get("SelectionId") else []

    return {
        "slip_id": slip_id,
        "bet_id": _str(bet.get("_id") or bet.get("ID") or 0),
        "selection_id": _str(bet.get("SelectionId")),
        "display_description": bet.get("DisplayDescription") or "",
        "selection_ids": selection_ids,
        "market_class_value": _int(market_class.get("value") or bet.get("MarketClassValue")) or 0,
        "market_class_name": market_class.get("name") or "Unknown",
        "market_class_display": market_class.get("display") or "Unknown",
        "stake": stake,
        "odds": odds,
        "potential_win": potential_win or 0.0,
        "bet_type_value": _int(bet.get("BetTypeValue")) or 1,
        "number_of_combinations": _int(bet.get("NumberOfCombinations")) or 1,
        "min_odds": to_number(bet.get("MinOdds")) or odds,
        "max_odds": to_number(bet.get("MaxOdds")) or odds,
        "notation": _str(bet.get("Notation")),
        "element_id": _str(bet.get("ElementId")),
        "extra_description": bet.get("ExtraDescription") or "",
        "combo_selections": bet.get("ComboSelections") or None,
        "bet_combination": bet.get("BetCombination") or None,
        "min_notation": _str(bet.get("MinNotation")),
        "max_notation": _str(bet.get("MaxNotation")),
        "betting_layout_value": _str(bet.get("BettingLayoutValue")),
        "draw_count": _int(bet.get("DrawCount")),
        "executing_feed_id": _str(bet.get("ExecutingFeedId")),
        "event_start_date_time": parse_dotnet_date(bet.get("EventStartDateTime")),
        "event_start_time": _str(bet.get("EventStartTime")),
        "event_type_value": _int(bet.get("EventTypeValue")),
    }


def _log_storage_error(slip_id: str, error: Exception) -> None:
    """Log an aborted transaction with whatever detail the driver exposes."""
    orig = getattr(error, "orig", None)
    diag = getattr(orig, "diag", None)
    logger.error(
        f"Transaction rolled back for bet slip {slip_id}: {error}",
        extra={
            "error_name": type(error).__name__,
            "error_code": getattr(orig, "pgcode", None),
            "error_detail": getattr(diag, "message_detail", None),
            "error_hint": getattr(diag, "message_hint", None),
        },
        exc_info=isinstance(error, SQLAlchemyError),
    )


def _slip_to_dict(slip: BetSlip) -> Dict[str, Any]:
    return {
        "slip_id": slip.slip_id,
        "session_guid": slip.session_guid,
        "betslip_type_value": slip.betslip_type_value,
        "event_id": slip.event_id,
        "game_name": slip.game_name,
        "game_number": slip.game_number,
        "game_type_value": slip.game_type_value,
        "total_stake": slip.total_stake,
        "total_potential_win": slip.total_potential_win,
        "global_single_stake": slip.global_single_stake,
        "status": slip.status,
        "customer_id": slip.customer_id,
        "shop_id": slip.shop_id,
        "redeem_code": slip.redeem_code,
        "placed_at": slip.placed_at.isoformat() if slip.placed_at else None,
        "from_pending_bet": slip.from_pending_bet,
        "retailer_guid": slip.retailer_guid,
        "is_ssbt_retailer": slip.is_ssbt_retailer,
        "created_at": slip.created_at.isoformat() if slip.created_at else None,
        "updated_at": slip.updated_at.isoformat() if slip.updated_at else None,
    }


def _selection_to_dict(selection: BetSelection) -> Dict[str, Any]:
    return {
        "id": selection.id,
        "bet_id": selection.bet_id,
        "selection_id": selection.selection_id,
        "display_description": selection.display_description,
        "stake": selection.stake,
        "odds": selection.odds,
        "potential_win": selection.potential_win,
        "market_class_name": selection.market_class_name,
    }


class BetSlipStore:
    """Transactional storage and lookup of bet slips."""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BetSlipRepository(db)

    def store_bet_slip(
        self,
        bet_object: Dict[str, Any],
        slip_id: str,
        redeem_code: str,
        session_guid: Optional[str],
    ) -> Dict[str, Any]:
        """
        Store a slip with all its legs and the initial history row.

        Raises:
            DuplicateBetSlipError: slip_id already stored
            EmptyBetSlipError: SingleBets is missing or empty
            SQLAlchemyError: any database failure (after rollback)
        """
        logger.info(f"Storing bet slip: {slip_id}")
        try:
            if self.repo.exists_slip(slip_id):
                raise DuplicateBetSlipError(slip_id)

            legs = single_bet_legs(bet_object)
            if not legs:
                raise EmptyBetSlipError()

            total_stake = sum(to_number(b.get("Stake")) or 0.0 for b in legs)
            total_potential_win = sum(to_number(b.get("PotentialWin")) or 0.0 for b in legs)
            event_info = extract_event_info(legs[0])

            slip = self.repo.create(
                slip_id=slip_id,
                session_guid=session_guid,
                betslip_type_value=_int(bet_object.get("BetslipTypeValue")) or 1,
                total_stake=total_stake,
                total_potential_win=total_potential_win,
                global_single_stake=to_number(bet_object.get("GlobalSingleStake")) or total_stake,
                status="pending",
                customer_id=bet_object.get("CustomerId") or None,
                shop_id=bet_object.get("ShopId") or None,
                redeem_code=redeem_code,
                raw_payload=bet_object,
                from_pending_bet=bool(bet_object.get("FromPendingBet")),
                retailer_guid=_str(bet_object.get("RetailerGuid")),
                is_ssbt_retailer=bool(bet_object.get("IsSSBTRetailer")),
                **event_info,
            )
            self.repo.flush()

            for bet in legs:
                self.repo.add_selection(**build_selection_row(slip_id, bet))
            self.repo.add_history(slip_id, None, "pending", "system", "Initial bet slip creation")

            self.db.commit()
        except Exception as e:
            self.db.rollback()
            _log_storage_error(slip_id, e)
            raise

        logger.info(f"Bet slip {slip_id} committed with {len(legs)} selections")
        return {
            "success": True,
            "bet_slip_id": slip_id,
            "redeem_code": redeem_code,
            "bet_slip": {"id": slip.id, "slip_id": slip.slip_id, "status": slip.status},
            "selection_count": len(legs),
        }

    def get_bet_slip(self, slip_id: str) -> Optional[Dict[str, Any]]:
        """Slip with its selections, or None."""
        slip = self.repo.find_by_slip_id(slip_id, with_selections=True)
        if slip is None:
            return None
        data = _slip_to_dict(slip)
        data["selections"] = [_selection_to_dict(s) for s in slip.selections]
        return data

    def update_bet_slip_status(
        self,
        slip_id: str,
        new_status: str,
        changed_by: str = "system",
        reason: str = "",
    ) -> Dict[str, Any]:
        """
        Change a slip's status and append a history row.

        Raises:
            BetSlipNotFoundError: unknown slip_id
        """
        slip = self.repo.find_by_slip_id(slip_id)
        if slip is None:
            raise BetSlipNotFoundError(slip_id)

        previous = slip.status
        try:
            self.repo.apply(slip, status=new_status)
            self.repo.add_history(slip_id, previous, new_status, changed_by, reason)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.error(f"Error updating bet slip status for {slip_id}", exc_info=True)
            raise

        logger.info(f"Bet slip {slip_id} status {previous} -> {new_status} by {changed_by}")
        return {"id": slip.id, "slip_id": slip.slip_id, "status": slip.status}

    def list_bet_slips(self, status: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
        """Slip summaries with selection counts, newest first."""
        return [
            {**_slip_to_dict(slip), "selection_count": count}
            for slip, count in self.repo.list_with_selection_counts(status=status, limit=limit)
        ]

    def history(self, slip_id: str) -> List[Dict[str, Any]]:
        return [
            {
                "status_from": h.status_from,
                "status_to": h.status_to,
                "changed_by": h.changed_by,
                "reason": h.reason,
                "changed_at": h.changed_at.isoformat() if h.changed_at else None,
            }
            for h in self.repo.history_for(slip_id)
        ]
