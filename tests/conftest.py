"""Shared pytest fixtures for betfeed tests."""
import os

# Must be set before betfeed is imported: the engine and settings are built at import time
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["LOG_JSON"] = "false"

from typing import Any, Dict, Generator, List
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from betfeed.core.config import GameConfig, GameRegistry
from betfeed.core.database import init_db


@pytest.fixture(scope="function")
def engine():
    """Isolated in-memory database shared by every session of one test."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


# =============================================================================
# GAMES AND FEED
# =============================================================================

def make_game(type_name: str, feed_id: int = 90, duration: int = 240, enabled: bool = True) -> GameConfig:
    return GameConfig(
        type_name=type_name,
        feed_id=feed_id,
        duration_seconds=duration,
        description=f"{type_name} test game",
        enabled=enabled,
    )


@pytest.fixture
def registry() -> GameRegistry:
    """MotorRacing and SmartPlayKeno enabled, roulette disabled."""
    return GameRegistry(
        [
            make_game("MotorRacing", 90, 240),
            make_game("SmartPlayKeno", 19, 180),
            make_game("HorseRacingRouletteV2", 30, 120, enabled=False),
        ],
        defaults={"LANGUAGE_CODE": "en"},
    )


@pytest.fixture
def feed_client() -> AsyncMock:
    """Feed client double; tests set return values per endpoint."""
    client = AsyncMock()
    client.get_events_by_type.return_value = {"Data": []}
    client.get_event_detail.return_value = {}
    client.check_connection.return_value = True
    return client


def race_item(event_id: str, number: int = 1001, **event_fields: Any) -> Dict[str, Any]:
    """List item in the wrapper shape the feed uses for racing games."""
    event = {
        "ID": event_id,
        "TypeName": "MotorRacing",
        "Number": number,
        "AdjustedStartTime": "/Date(1760000000000)/",
        "AdjustedFinishTime": "/Date(1760000240000)/",
        "StatusValue": 1,
    }
    event.update(event_fields)
    return {"ID": event_id, "Event": event}


def keno_selections(winning: List[int], total: int = 10) -> List[Dict[str, Any]]:
    return [
        {"FeedId": str(n), "DisplayDescription": str(n), "IsWinner": n in winning}
        for n in range(1, total + 1)
    ]


def keno_detail(event_id: str, winning: List[int], number: int = 500) -> Dict[str, Any]:
    """Detail response carrying the KenoWin market tree."""
    return {
        "ID": event_id,
        "Event": {
            "ID": event_id,
            "TypeName": "SmartPlayKeno",
            "Number": number,
            "IsFinished": True,
            "Markets": [{"Name": "KenoWin", "KenoSelections": keno_selections(winning)}],
        },
    }


# =============================================================================
# BET OBJECTS
# =============================================================================

def bet_leg(bet_id: str = "leg-1", stake: Any = 10, odds: Any = 2.5, **fields: Any) -> Dict[str, Any]:
    leg = {
        "ID": bet_id,
        "FeedEventId": "90-6-123456",
        "EventNumber": 1001,
        "SelectionId": "sel-1",
        "DisplayDescription": "Car 3 to win",
        "MarketClass": {"value": 1, "name": "Win", "display": "Win"},
        "Stake": stake,
        "Odds": odds,
        "PotentialWin": 25,
        "EventStartDateTime": "/Date(1760000000000)/",
    }
    leg.update(fields)
    return leg


@pytest.fixture
def bet_object() -> Dict[str, Any]:
    return {
        "SessionGuid": "session-123",
        "BetslipTypeValue": 1,
        "GlobalSingleStake": 20,
        "SingleBets": [bet_leg("leg-1"), bet_leg("leg-2", stake=10, odds=3)],
        "MultiGroups": [],
    }
