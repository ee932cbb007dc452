"""
Result extraction from upstream event payloads.

Each game family declares its outcome differently:

- numbers draw (SmartPlayKeno): winner-flagged selections of the KenoWin market
- racing: Race object, Win/Place markets, PrimaryMarkets, then Race.Result
- roulette racing (HorseRacingRouletteV2): participant finishing positions
- anything else: the first winner-flagged selection in any market

All functions here are pure and never raise: missing data produces empty or
None fields.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from betfeed.services.sync.normalizer import (
    extract_game_name,
    extract_game_number,
    extract_status_value,
    resolve_event_id,
    unwrap_event,
)

KENO_GAME = "SmartPlayKeno"
ROULETTE_GAME = "HorseRacingRouletteV2"
RACING_GAMES = frozenset({
    "MotorRacing",
    "DashingDerby",
    "PlatinumHounds",
    "HarnessRacing",
    "CycleRacing",
    "SteepleChase",
    "SpeedSkating",
    "SingleSeaterMotorRacing",
})

SELECTION_TYPES = (
    "KenoSelections",
    "RaceSelections",
    "BoxingSelections",
    "PlayerVsPlayerSelections",
)

STATUS_CANCELLED = 4
STATUS_SUSPENDED = 5


# ============================================================================
# Winning values, one shape per game family
# ============================================================================

@dataclass(frozen=True)
class KenoWinningValues:
    winning_numbers: Tuple[Any, ...] = ()
    family: str = field(default="keno", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "winningNumbers": list(self.winning_numbers),
            "totalWinningNumbers": len(self.winning_numbers),
        }


@dataclass(frozen=True)
class RacingWinningValues:
    winner: Any = None
    winning_time: Any = None
    positions: Tuple[Dict[str, Any], ...] = ()
    race_result: Optional[str] = None
    race_name: Optional[str] = None
    distance: Any = None
    game_type: Optional[str] = None
    family: str = field(default="racing", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "winner": self.winner,
            "winningTime": self.winning_time,
            "positions": list(self.positions),
            "raceResult": self.race_result,
            "totalPositions": len(self.positions),
            "raceName": self.race_name,
            "distance": self.distance,
            "gameType": self.game_type,
        }


@dataclass(frozen=True)
class RouletteWinningValues:
    winner: Any = None
    positions: Tuple[Dict[str, Any], ...] = ()
    participants: Tuple[Dict[str, Any], ...] = ()
    race_name: Optional[str] = None
    distance: Any = None
    game_type: str = ROULETTE_GAME
    family: str = field(default="roulette", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "winner": self.winner,
            "positions": list(self.positions),
            "participants": list(self.participants),
            "totalParticipants": len(self.participants),
            "totalPositions": len(self.positions),
            "raceName": self.race_name,
            "distance": self.distance,
            "gameType": self.game_type,
        }


@dataclass(frozen=True)
class GenericWinningValues:
    winner: Any = None
    winning_value: Any = None
    result: Any = None
    payout: Any = None
    game_type: Optional[str] = None
    family: str = field(default="generic", init=False)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "winner": self.winner,
            "winningValue": self.winning_value,
            "result": self.result,
            "payout": self.payout,
            "gameType": self.game_type,
        }


WinningValues = Union[KenoWinningValues, RacingWinningValues, RouletteWinningValues, GenericWinningValues]


# ============================================================================
# Helpers
# ============================================================================

def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _markets(event: Dict[str, Any], key: str = "Markets") -> List[Dict[str, Any]]:
    return [m for m in _as_list(event.get(key)) if isinstance(m, dict)]


def _find_market(markets: List[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    for market in markets:
        if market.get("Name") == name:
            return market
    return None


def _winners(selections: Any) -> List[Dict[str, Any]]:
    return [s for s in _as_list(selections) if isinstance(s, dict) and s.get("IsWinner") is True]


def _selection_label(selection: Dict[str, Any]) -> Any:
    return selection.get("FeedId") or selection.get("DisplayDescription")


def _first_winner(markets: List[Dict[str, Any]]) -> Optional[Tuple[Dict[str, Any], Dict[str, Any]]]:
    """First (market, selection) pair with a winner flag across the known selection lists."""
    for market in markets:
        for selection_type in SELECTION_TYPES:
            winners = _winners(market.get(selection_type))
            if winners:
                return market, winners[0]
    return None


def has_winning_selection(payload: Any) -> bool:
    """True when any market (primary or full) carries a winner-flagged selection."""
    event = unwrap_event(payload)
    return _first_winner(_markets(event) + _markets(event, "PrimaryMarkets")) is not None


def _place_positions(selections: List[Dict[str, Any]]) -> Tuple[Dict[str, Any], ...]:
    return tuple(
        {
            "position": index + 1,
            "selection": _selection_label(selection),
            "name": selection.get("DisplayDescription") or selection.get("FeedDescription"),
            "odds": selection.get("Odds") or None,
        }
        for index, selection in enumerate(selections)
    )


# ============================================================================
# Per-family extraction
# ============================================================================

def extract_keno(event: Dict[str, Any]) -> KenoWinningValues:
    """Winning numbers from the KenoWin market, falling back to WinningSelectionID."""
    market = _find_market(_markets(event), "KenoWin")
    if market is None:
        return KenoWinningValues()

    numbers = [s.get("FeedId") for s in _winners(market.get("KenoSelections"))]
    if not numbers:
        raw = market.get("WinningSelectionID")
        if isinstance(raw, str) and raw.strip():
            numbers = [part.strip() for part in raw.split(",")]
    return KenoWinningValues(winning_numbers=tuple(numbers))


def extract_racing(event: Dict[str, Any]) -> RacingWinningValues:
    """
    Racing outcome.

    Sources, later ones overriding or filling in earlier ones:
    Race object, Win market, Place market, PrimaryMarkets (fill only),
    first token of Race.Result (winner only, when still missing).
    """
    winner = None
    winning_time = None
    positions: Tuple[Dict[str, Any], ...] = ()
    race_result = None
    race_name = None
    distance = None

    race = _as_dict(event.get("Race"))
    if race:
        race_result = race.get("Result")
        winner = race.get("Winner") or race.get("winner") or None
        winning_time = race.get("WinningTime") or race.get("winningTime") or None
        positions = tuple(p for p in _as_list(race.get("Positions") or race.get("positions")))
        race_name = race.get("Name") or None
        distance = race.get("Distance") or None

    markets = _markets(event)
    win_market = _find_market(markets, "Win")
    if win_market is not None:
        winners = _winners(win_market.get("RaceSelections"))
        if winners:
            winner = _selection_label(winners[0])
    place_market = _find_market(markets, "Place")
    if place_market is not None:
        placed = _winners(place_market.get("RaceSelections"))
        if placed:
            positions = _place_positions(placed)

    primary = _markets(event, "PrimaryMarkets")
    primary_win = _find_market(primary, "Win")
    if primary_win is not None and not winner:
        winners = _winners(primary_win.get("RaceSelections"))
        if winners:
            winner = _selection_label(winners[0])
    primary_place = _find_market(primary, "Place")
    if primary_place is not None and not positions:
        placed = _winners(primary_place.get("RaceSelections"))
        if placed:
            positions = _place_positions(placed)

    if not winner and isinstance(race_result, str) and race_result.strip():
        winner = race_result.split(",")[0].strip() or None

    return RacingWinningValues(
        winner=winner,
        winning_time=winning_time,
        positions=positions,
        race_result=race_result if isinstance(race_result, str) else None,
        race_name=race_name,
        distance=distance,
        game_type=event.get("TypeName"),
    )


def extract_roulette(event: Dict[str, Any]) -> RouletteWinningValues:
    """Participants and finishing order of a roulette race."""
    roulette = _as_dict(event.get("RacingRouletteV2"))
    if not roulette:
        return RouletteWinningValues()

    participants = tuple(
        {
            "name": p.get("Name"),
            "colour": p.get("Colour"),
            "feedId": p.get("FeedId"),
            "finish": p.get("Finish"),
            "winMarketColumn": p.get("WinMarketColumn"),
            "winMarketOrder": p.get("WinMarketOrder"),
        }
        for p in _as_list(roulette.get("Participants"))
        if isinstance(p, dict)
    )

    winner = next((p["name"] for p in participants if p["finish"] == 1), None)
    finished = sorted(
        (p for p in participants if isinstance(p["finish"], (int, float)) and not isinstance(p["finish"], bool)),
        key=lambda p: p["finish"],
    )
    positions = tuple(
        {"position": p["finish"], "name": p["name"], "colour": p["colour"], "feedId": p["feedId"]}
        for p in finished
    )

    return RouletteWinningValues(
        winner=winner,
        positions=positions,
        participants=participants,
        race_name=roulette.get("Name"),
        distance=roulette.get("Distance"),
    )


def extract_generic(event: Dict[str, Any]) -> GenericWinningValues:
    """First winner-flagged selection in any market, with the market's winning description."""
    found = _first_winner(_markets(event))
    if found is None:
        return GenericWinningValues(game_type=event.get("TypeName"))
    market, selection = found
    return GenericWinningValues(
        winner=_selection_label(selection),
        winning_value=market.get("WinningSelectionID") or market.get("WinningSelectionDescription"),
        game_type=event.get("TypeName"),
    )


def extract_winning_values(payload: Any) -> WinningValues:
    """Dispatch on TypeName to the matching family extractor."""
    event = unwrap_event(payload)
    game_type = event.get("TypeName")
    if game_type == KENO_GAME:
        return extract_keno(event)
    if game_type in RACING_GAMES:
        return extract_racing(event)
    if game_type == ROULETTE_GAME:
        return extract_roulette(event)
    return extract_generic(event)


def determine_result_type(payload: Any) -> str:
    """
    Classify the outcome as cancelled, suspended, winner, finished or unknown.

    Only an explicit finished flag leads to winner/finished.
    """
    event = unwrap_event(payload)
    if not event:
        return "unknown"

    status = extract_status_value(event)
    if status == STATUS_CANCELLED:
        return "cancelled"
    if status == STATUS_SUSPENDED:
        return "suspended"

    if event.get("IsFinished") is True or event.get("isFinished") is True:
        if _first_winner(_markets(event)) is not None:
            return "winner"
        if event.get("IsWinner") is True or event.get("isWinner") is True:
            return "winner"
        return "finished"

    return "unknown"


def process_game_result(payload: Any) -> Optional[Dict[str, Any]]:
    """
    Bundle everything needed to store a result.

    Returns:
        Dict with event_id, game_name, result_type, winning_values (JSON form),
        winning (the typed value), result_data and game_number; None when the
        payload has no identifier or no game name.
    """
    event = unwrap_event(payload)
    event_id = resolve_event_id(payload)
    game_name = extract_game_name(event)
    if not event_id or not game_name:
        return None

    winning = extract_winning_values(payload)
    return {
        "event_id": event_id,
        "game_name": game_name,
        "result_type": determine_result_type(payload),
        "winning": winning,
        "winning_values": winning.to_dict(),
        "result_data": payload,
        "game_number": extract_game_number(event),
    }
