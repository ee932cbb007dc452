"""
Response normalizer for upstream event payloads.

The feed is inconsistent about casing, wrapper objects and date encodings,
so every field is read through an ordered list of candidate keys: the first
present value wins. Nothing in this module raises on malformed input; an
absent or unreadable value becomes None.

Usage:
    from betfeed.services.sync.normalizer import normalize_event, map_list_response

    events = map_list_response(response)
    for event in events:
        repo.upsert(event.event_id, event.to_fields())
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

# ============================================================================
# Candidate keys, in priority order
# ============================================================================

ID_KEYS = ("ID", "id", "eventId", "EventId", "compositeId")
NAME_KEYS = ("TypeName", "gameName", "name", "title", "game")
TYPE_VALUE_KEYS = ("TypeValue", "typeValue", "GameTypeValue", "gameTypeValue")
NUMBER_KEYS = ("Number", "number", "gameNumber", "GameNumber", "eventNumber", "EventNumber")
FINISHED_KEYS = ("IsFinished", "isFinished")
STATUS_KEYS = ("StatusValue", "statusValue", "status")
START_TIME_KEYS = ("AdjustedStartTime", "StartDateTimeAsWords", "startTime", "start")
FINISH_TIME_KEYS = ("AdjustedFinishTime", "EstimatedFinishTime", "finishTime", "finish")

# Case-sensitive
STATUS_LABELS = {
    "Upcoming": 1,
    "InProgress": 2,
    "Finished": 3,
    "Settled": 3,
    "Cancelled": 4,
}

STATUS_FINISHED = 3

_DOTNET_DATE = re.compile(r"/Date\((-?\d+)(?:[+-]\d{4})?\)/")
_SLASH_DATE = re.compile(r"^(\d{4})/(\d{2})/(\d{2})")


@dataclass
class NormalizedEvent:
    """Canonical event record produced from one upstream item."""

    event_id: Optional[str]
    game_name: Optional[str] = None
    game_type_value: Optional[int] = None
    game_number: Optional[int] = None
    start_time: Optional[datetime] = None
    finish_time: Optional[datetime] = None
    is_finished: bool = False
    status_value: Optional[int] = None
    raw_payload: Any = field(default=None, repr=False)

    def to_fields(self) -> Dict[str, Any]:
        """Column values for the events table (everything but event_id)."""
        return {
            "game_name": self.game_name,
            "game_number": self.game_number,
            "start_time": self.start_time,
            "finish_time": self.finish_time,
            "is_finished": self.is_finished,
            "status_value": self.status_value,
            "raw_payload": self.raw_payload,
        }


# ============================================================================
# Primitive helpers
# ============================================================================

def _first_truthy(data: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return None


def _first_present(data: Dict[str, Any], keys: Iterable[str]) -> Any:
    for key in keys:
        value = data.get(key)
        if value is not None:
            return value
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str) and value.strip().lstrip("-").isdecimal():
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def unwrap_event(payload: Any) -> Dict[str, Any]:
    """Return the inner ``Event`` object when present, else the payload itself."""
    if not isinstance(payload, dict):
        return {}
    inner = payload.get("Event")
    if isinstance(inner, dict) and inner:
        return inner
    return payload


def parse_dotnet_date(value: Any) -> Optional[datetime]:
    """
    Parse a feed timestamp into an aware UTC datetime.

    Accepts ``/Date(<epoch ms>)/``, ISO-8601 strings and ``YYYY/MM/DD HH:mm:ss``.
    Naive values are taken as UTC. Anything else returns None.
    """
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if not isinstance(value, str) or not value.strip():
        return None

    text = value.strip()
    match = _DOTNET_DATE.fullmatch(text)
    if match:
        try:
            return datetime.fromtimestamp(int(match.group(1)) / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None

    text = _SLASH_DATE.sub(r"\1-\2-\3", text)
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is None:
            return parsed.replace(tzinfo=timezone.utc)
        return parsed.astimezone(timezone.utc)
    except (ValueError, OverflowError):
        return None


# ============================================================================
# Field extractors
# ============================================================================

def extract_event_id(event: Dict[str, Any]) -> Optional[str]:
    """Identifier from id-like fields, else composed as ``FeedId-EventId``."""
    if not isinstance(event, dict):
        return None
    value = _first_truthy(event, ID_KEYS)
    if value:
        return str(value)
    if event.get("FeedId") and event.get("EventId"):
        return f"{event['FeedId']}-{event['EventId']}"
    return None


def resolve_event_id(payload: Any) -> Optional[str]:
    """Identifier of a list item: the wrapper's ``ID`` first, then the inner event."""
    if not isinstance(payload, dict):
        return None
    if payload.get("ID"):
        return str(payload["ID"])
    return extract_event_id(unwrap_event(payload))


def extract_game_name(event: Dict[str, Any]) -> Optional[str]:
    value = _first_truthy(event, NAME_KEYS)
    return str(value) if value else None


def extract_game_type_value(event: Dict[str, Any]) -> Optional[int]:
    return _as_int(_first_present(event, TYPE_VALUE_KEYS))


def extract_game_number(event: Dict[str, Any]) -> Optional[int]:
    return _as_int(_first_present(event, NUMBER_KEYS))


def extract_status_value(event: Dict[str, Any]) -> Optional[int]:
    """Numeric status; string labels are mapped, unknown labels give None."""
    value = _first_present(event, STATUS_KEYS)
    if value is None:
        return None
    if isinstance(value, str) and value in STATUS_LABELS:
        return STATUS_LABELS[value]
    return _as_int(value)


def parse_start_time(event: Dict[str, Any]) -> Optional[datetime]:
    return parse_dotnet_date(_first_truthy(event, START_TIME_KEYS))


def parse_finish_time(event: Dict[str, Any]) -> Optional[datetime]:
    return parse_dotnet_date(_first_truthy(event, FINISH_TIME_KEYS))


def is_event_finished(event: Dict[str, Any], now: Optional[datetime] = None) -> bool:
    """
    Finished flag.

    An explicit boolean wins. Otherwise a known status decides (3 means
    finished). Without either, a finish time in the past means finished.
    """
    for key in FINISHED_KEYS:
        value = event.get(key)
        if isinstance(value, bool):
            return value

    status = extract_status_value(event)
    if status is not None:
        return status == STATUS_FINISHED

    finish_time = parse_finish_time(event)
    if finish_time is not None:
        return finish_time < (now or datetime.now(timezone.utc))
    return False


# ============================================================================
# Whole-payload mapping
# ============================================================================

def normalize_event(payload: Any, now: Optional[datetime] = None) -> NormalizedEvent:
    """
    Map one upstream item (list entry or detail response) to a NormalizedEvent.

    The raw payload is kept verbatim for traceability.
    """
    event = unwrap_event(payload)
    return NormalizedEvent(
        event_id=resolve_event_id(payload),
        game_name=extract_game_name(event),
        game_type_value=extract_game_type_value(event),
        game_number=extract_game_number(event),
        start_time=parse_start_time(event),
        finish_time=parse_finish_time(event),
        is_finished=is_event_finished(event, now=now),
        status_value=extract_status_value(event),
        raw_payload=payload,
    )


def list_items(response: Any) -> List[Any]:
    """Raw items of a list response: ``{"Data": [...]}``, a bare list, or one ``{"Event": ...}``."""
    if isinstance(response, list):
        return response
    if isinstance(response, dict):
        data = response.get("Data")
        if isinstance(data, list):
            return data
        if isinstance(response.get("Event"), dict):
            return [response]
    return []


def map_list_response(response: Any, now: Optional[datetime] = None) -> List[NormalizedEvent]:
    """Normalize every item of a list response, dropping items without an identifier."""
    events = [normalize_event(item, now=now) for item in list_items(response)]
    return [e for e in events if e.event_id]
