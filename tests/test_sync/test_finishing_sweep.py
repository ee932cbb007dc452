"""Tests for the keno finishing sweep.

Test Strategy:
1. Overdue rounds are marked finished
2. Finished rounds without a result get their winning numbers stored
3. Missing or empty details are counted as errors
4. The sweep never raises, even when every detail fetch fails
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from sqlalchemy.orm import Session

sys.path.insert(0, str(Path(__file__).parent.parent))
from conftest import keno_detail

from betfeed.core.exceptions import FeedError
from betfeed.models import Event, GameResult
from betfeed.services.sync.finishing_sweep import FinishingSweep

NOW = datetime(2025, 10, 9, 12, 0, tzinfo=timezone.utc)


def add_keno_event(db: Session, event_id: str, finish_offset_minutes: int, is_finished: bool, number: int = 1):
    event = Event(
        event_id=event_id,
        game_name="SmartPlayKeno",
        game_number=number,
        start_time=NOW + timedelta(minutes=finish_offset_minutes - 3),
        finish_time=NOW + timedelta(minutes=finish_offset_minutes),
        is_finished=is_finished,
    )
    db.add(event)
    db.commit()
    return event


class TestMarkOverdue:

    def test_marks_only_past_unfinished_rounds(self, db_session: Session, feed_client):
        add_keno_event(db_session, "k-past", -1, False)
        add_keno_event(db_session, "k-future", 2, False)
        add_keno_event(db_session, "k-done", -10, True)

        marked = FinishingSweep(db_session, feed_client).mark_overdue_finished(now=NOW)

        assert marked == 1
        db_session.expire_all()
        flags = {e.event_id: e.is_finished for e in db_session.query(Event).all()}
        assert flags == {"k-past": True, "k-future": False, "k-done": True}

    def test_other_games_untouched(self, db_session: Session, feed_client):
        db_session.add(Event(
            event_id="m-1", game_name="MotorRacing", finish_time=NOW - timedelta(minutes=5), is_finished=False,
        ))
        db_session.commit()

        assert FinishingSweep(db_session, feed_client).mark_overdue_finished(now=NOW) == 0


class TestProcessMissingResults:

    @pytest.mark.asyncio
    async def test_stores_winning_numbers(self, db_session: Session, feed_client):
        add_keno_event(db_session, "k-1", -1, True, number=500)
        feed_client.get_event_detail.return_value = keno_detail("k-1", [2, 5, 7], number=500)

        summary = await FinishingSweep(db_session, feed_client).process_missing_results()

        assert summary == {"processed": 1, "errors": 0}
        feed_client.get_event_detail.assert_awaited_once_with("k-1")
        result = db_session.query(GameResult).filter_by(event_id="k-1").one()
        assert result.winning_values["winningNumbers"] == ["2", "5", "7"]
        assert result.game_number == 500

    @pytest.mark.asyncio
    async def test_detail_without_event_is_an_error(self, db_session: Session, feed_client):
        add_keno_event(db_session, "k-1", -1, True)
        feed_client.get_event_detail.return_value = {"Message": "not found"}

        summary = await FinishingSweep(db_session, feed_client).process_missing_results()

        assert summary == {"processed": 0, "errors": 1}
        assert db_session.query(GameResult).count() == 0

    @pytest.mark.asyncio
    async def test_detail_without_numbers_is_an_error(self, db_session: Session, feed_client):
        add_keno_event(db_session, "k-1", -1, True)
        feed_client.get_event_detail.return_value = keno_detail("k-1", [])

        summary = await FinishingSweep(db_session, feed_client).process_missing_results()

        assert summary == {"processed": 0, "errors": 1}

    @pytest.mark.asyncio
    async def test_rounds_with_results_are_skipped(self, db_session: Session, feed_client):
        add_keno_event(db_session, "k-1", -1, True)
        db_session.add(GameResult(event_id="k-1", game_name="SmartPlayKeno", result_type="finished"))
        db_session.commit()

        summary = await FinishingSweep(db_session, feed_client).process_missing_results()

        assert summary == {"processed": 0, "errors": 0}
        feed_client.get_event_detail.assert_not_awaited()


class TestRun:

    @pytest.mark.asyncio
    async def test_never_raises_when_every_fetch_fails(self, db_session: Session, feed_client):
        add_keno_event(db_session, "k-1", -1, False)
        add_keno_event(db_session, "k-2", -2, True)
        feed_client.get_event_detail.side_effect = FeedError("/Home/GetEventDetail", "HTTP 503", 503)

        summary = await FinishingSweep(db_session, feed_client).run(now=NOW)

        assert summary == {"marked": 1, "processed": 0, "errors": 2}
