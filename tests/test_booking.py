"""Tests for bet slip booking and storage.

Test Strategy:
1. BetObject parsing and the response envelope
2. Stake validation per leg (stored first, validated after)
3. All-or-nothing storage of slip, selections and history
4. Status updates and history
"""
import json
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from conftest import bet_leg

from betfeed.core.exceptions import (
    BetSlipNotFoundError,
    DuplicateBetSlipError,
    EmptyBetSlipError,
    MalformedBetObjectError,
)
from betfeed.models import BetSelection, BetSlip, BetSlipHistory
from betfeed.repositories.bet_slip_repository import BetSlipRepository
from betfeed.services.booking.bet_slip_store import BetSlipStore, extract_event_info
from betfeed.services.booking.booking_service import (
    BookingService,
    generate_redeem_code,
    parse_bet_object,
    validate_legs,
)


# =============================================================================
# PARSING AND VALIDATION
# =============================================================================

class TestParseBetObject:

    @pytest.mark.parametrize("raw", [None, 42, {"SingleBets": []}, "not json", "[1, 2]"])
    def test_malformed(self, raw):
        with pytest.raises(MalformedBetObjectError):
            parse_bet_object(raw)

    def test_valid(self, bet_object):
        assert parse_bet_object(json.dumps(bet_object)) == bet_object


class TestValidateLegs:

    def test_invalid_stakes_are_reported_twice(self):
        legs = validate_legs({"SingleBets": [
            bet_leg("ok", stake=5),
            bet_leg("zero", stake=0),
            bet_leg("negative", stake=-1),
            bet_leg("text", stake="abc"),
        ]})

        assert [f["ID"] for f in legs["failed"]] == ["zero", "negative", "text"]
        assert all(f["ErrorMessage"] == "Invalid stake amount" for f in legs["failed"])
        assert [v["HasErrorOccured"] for v in legs["valid"]] == [False, True, True, True]

    def test_missing_leg_id(self):
        legs = validate_legs({"SingleBets": [{"Stake": 0}]})
        assert legs["failed"][0]["ID"] == "bet_0"

    @pytest.mark.parametrize("stake", ["NaN", float("nan"), "inf", float("-inf"), "Infinity"])
    def test_non_finite_stakes_fail(self, stake):
        legs = validate_legs({"SingleBets": [bet_leg(stake=stake)]})
        assert [f["ID"] for f in legs["failed"]] == ["leg-1"]
        assert legs["valid"][0]["HasErrorOccured"] is True

    def test_non_object_legs_are_ignored(self):
        legs = validate_legs({"SingleBets": [bet_leg("leg-1"), "junk", None]})
        assert [v["ID"] for v in legs["valid"]] == ["leg-1"]
        assert legs["failed"] == []


class TestEventInfo:

    def test_from_feed_event_id(self):
        info = extract_event_info(bet_leg(FeedEventId="90-6-123456", EventNumber=1001))
        assert info == {
            "event_id": "90-6-123456",
            "game_name": "MotorRacing",
            "game_number": 1001,
            "game_type_value": 6,
        }

    def test_nested_event_type_overrides(self):
        info = extract_event_info(bet_leg(Event={"type": {"name": "SmartPlayKeno", "value": 19}}))
        assert info["game_name"] == "SmartPlayKeno"
        assert info["game_type_value"] == 19


def test_redeem_code_shape():
    code = generate_redeem_code()
    assert len(code) == 8
    assert code.isalnum() and code.upper() == code


# =============================================================================
# BOOKING
# =============================================================================

class TestBookingService:

    def test_successful_booking(self, db_session: Session, bet_object):
        response = BookingService(db_session).book(json.dumps(bet_object))

        assert response["StatusCode"] == 0
        assert response["Error"] is None
        content = response["Content"]
        assert len(content["RedeemCode"]) == 8
        assert content["FailedBets"] == []
        assert [v["ID"] for v in content["ValidBets"]] == ["leg-1", "leg-2"]
        assert content["PendingRefreshPeriod"] == 30

        slip = db_session.query(BetSlip).filter_by(slip_id=content["ID"]).one()
        assert slip.status == "pending"
        assert slip.total_stake == 20
        assert slip.session_guid == "session-123"
        assert slip.game_name == "MotorRacing"
        assert db_session.query(BetSelection).filter_by(slip_id=slip.slip_id).count() == 2
        history = db_session.query(BetSlipHistory).filter_by(slip_id=slip.slip_id).one()
        assert (history.status_from, history.status_to) == (None, "pending")

    def test_failed_legs_are_still_stored(self, db_session: Session, bet_object):
        bet_object["SingleBets"][1]["Stake"] = 0

        response = BookingService(db_session).book(json.dumps(bet_object))

        assert response["StatusCode"] == 1
        assert response["Error"] == "Some bets failed"
        assert response["Content"]["FailedBets"] == [
            {"ID": "leg-2", "HasErrorOccured": True, "ErrorMessage": "Invalid stake amount"},
        ]
        assert db_session.query(BetSelection).count() == 2

    def test_nan_stake_is_failed_and_not_totalled(self, db_session: Session, bet_object):
        bet_object["SingleBets"][1]["Stake"] = float("nan")

        # json.dumps writes a bare NaN literal, which json.loads accepts
        response = BookingService(db_session).book(json.dumps(bet_object))

        assert [f["ID"] for f in response["Content"]["FailedBets"]] == ["leg-2"]
        slip = db_session.query(BetSlip).filter_by(slip_id=response["Content"]["ID"]).one()
        assert slip.total_stake == 10

    def test_reported_legs_match_stored_legs(self, db_session: Session, bet_object):
        bet_object["SingleBets"].append("not a leg")

        response = BookingService(db_session).book(json.dumps(bet_object))

        assert [v["ID"] for v in response["Content"]["ValidBets"]] == ["leg-1", "leg-2"]
        assert db_session.query(BetSelection).count() == 2

    def test_multiples_echo_groups(self, db_session: Session, bet_object):
        bet_object["MultiGroups"] = [{"Stake": 1}, {"Stake": 2}]

        response = BookingService(db_session).book(json.dumps(bet_object))

        assert [m["Level"] for m in response["Content"]["Multiples"]] == [1, 2]

    def test_empty_slip_raises(self, db_session: Session):
        with pytest.raises(EmptyBetSlipError):
            BookingService(db_session).book(json.dumps({"SingleBets": []}))
        assert db_session.query(BetSlip).count() == 0

    def test_malformed_raises(self, db_session: Session):
        with pytest.raises(MalformedBetObjectError):
            BookingService(db_session).book("{broken")


# =============================================================================
# STORAGE
# =============================================================================

class TestBetSlipStore:

    def test_duplicate_slip_id(self, db_session: Session, bet_object):
        store = BetSlipStore(db_session)
        store.store_bet_slip(bet_object, "slip-1", "ABCD1234", None)

        with pytest.raises(DuplicateBetSlipError):
            store.store_bet_slip(bet_object, "slip-1", "ZZZZ9999", None)

        assert db_session.query(BetSlip).count() == 1
        assert db_session.query(BetSelection).count() == 2

    def test_failure_mid_transaction_leaves_nothing(self, db_session: Session, bet_object):
        store = BetSlipStore(db_session)
        failure = OperationalError("INSERT INTO bet_slip_history", {}, Exception("disk I/O error"))

        with patch.object(BetSlipRepository, "add_history", side_effect=failure):
            with pytest.raises(OperationalError):
                store.store_bet_slip(bet_object, "slip-1", "ABCD1234", None)

        assert db_session.query(BetSlip).count() == 0
        assert db_session.query(BetSelection).count() == 0

    def test_store_result_shape(self, db_session: Session, bet_object):
        result = BetSlipStore(db_session).store_bet_slip(bet_object, "slip-1", "ABCD1234", "sess")

        assert result["success"] is True
        assert result["bet_slip_id"] == "slip-1"
        assert result["selection_count"] == 2
        assert result["bet_slip"]["status"] == "pending"

    def test_selection_fields(self, db_session: Session):
        bet_object = {"SingleBets": [bet_leg("leg-1", stake="4", odds="2.5", PotentialWin=None)]}
        BetSlipStore(db_session).store_bet_slip(bet_object, "slip-1", "ABCD1234", None)

        selection = db_session.query(BetSelection).one()
        assert selection.stake == 4.0
        assert selection.potential_win == 10.0  # stake * odds when absent
        assert selection.selection_ids == ["sel-1"]
        assert selection.market_class_name == "Win"
        assert selection.event_start_date_time is not None

    def test_status_update_and_history(self, db_session: Session, bet_object):
        store = BetSlipStore(db_session)
        store.store_bet_slip(bet_object, "slip-1", "ABCD1234", None)

        result = store.update_bet_slip_status("slip-1", "settled", changed_by="cashier", reason="paid")

        assert result["status"] == "settled"
        history = store.history("slip-1")
        assert [(h["status_from"], h["status_to"]) for h in history] == [(None, "pending"), ("pending", "settled")]
        assert history[1]["changed_by"] == "cashier"

    def test_status_update_unknown_slip(self, db_session: Session):
        with pytest.raises(BetSlipNotFoundError):
            BetSlipStore(db_session).update_bet_slip_status("missing", "settled")

    def test_list_with_counts(self, db_session: Session, bet_object):
        store = BetSlipStore(db_session)
        store.store_bet_slip(bet_object, "slip-1", "ABCD1234", None)
        store.store_bet_slip(bet_object, "slip-2", "EFGH5678", None)
        store.update_bet_slip_status("slip-2", "cancelled")

        pending = store.list_bet_slips(status="pending")

        assert [s["slip_id"] for s in pending] == ["slip-1"]
        assert pending[0]["selection_count"] == 2
        assert len(store.list_bet_slips()) == 2
