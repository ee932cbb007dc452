"""Tests for the betfeed command line entry point."""
import json
from unittest.mock import AsyncMock, patch

import pytest

from conftest import race_item

from betfeed import cli
from betfeed.core.exceptions import FeedError


@pytest.fixture
def mock_feed():
    feed = AsyncMock()
    with patch.object(cli, "FeedClient", return_value=feed):
        yield feed


class TestParser:

    def test_ingest_list_with_game(self):
        args = cli.build_parser().parse_args(["ingest", "list", "--game", "SmartPlayKeno"])
        assert (args.command, args.ingest_command, args.game) == ("ingest", "list", "SmartPlayKeno")

    def test_ingest_detail_requires_event_id(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args(["ingest", "detail"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.build_parser().parse_args([])


class TestIngest:

    def test_ingest_list(self, mock_feed, capsys):
        mock_feed.get_events_by_type.return_value = {"Data": [race_item("90-6-1"), race_item("90-6-2")]}

        exit_code = cli.main(["ingest", "list", "--game", "MotorRacing"])

        assert exit_code == 0
        output = json.loads(capsys.readouterr().out)
        assert output == {"game_type": "MotorRacing", "events_processed": 2, "events_upserted": 2}
        mock_feed.close.assert_awaited_once()

    def test_ingest_detail(self, mock_feed, capsys):
        mock_feed.get_event_detail.return_value = race_item("90-6-7")

        exit_code = cli.main(["ingest", "detail", "90-6-7"])

        assert exit_code == 0
        assert json.loads(capsys.readouterr().out) == {"event_id": "90-6-7", "event_upserted": True}

    def test_ingest_failure_exit_code(self, mock_feed):
        mock_feed.get_event_detail.side_effect = FeedError("/Home/GetEventDetail", "HTTP 502", 502)

        assert cli.main(["ingest", "detail", "90-6-7"]) == 1
