"""
Running totals for the sync orchestrator.

All counters go through one lock so concurrent per-game cycles never lose
an increment.
"""
import math
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


@dataclass
class SyncTotals:
    total_cycles: int = 0
    total_games_processed: int = 0
    total_new_games: int = 0
    total_updated_games: int = 0
    total_results_processed: int = 0
    total_errors: int = 0


class SyncStats:
    """Lock-guarded accumulator; reset() starts a new session."""

    def __init__(self):
        self._lock = threading.Lock()
        self._totals = SyncTotals()
        self.start_time: Optional[datetime] = None

    def reset(self, start_time: Optional[datetime] = None) -> None:
        with self._lock:
            self._totals = SyncTotals()
            self.start_time = start_time or datetime.now(timezone.utc)

    def next_cycle(self) -> int:
        """Count a new cycle and return its id."""
        with self._lock:
            self._totals.total_cycles += 1
            return self._totals.total_cycles

    def add(
        self,
        games_processed: int = 0,
        new_games: int = 0,
        updated_games: int = 0,
        results_processed: int = 0,
        errors: int = 0,
    ) -> None:
        with self._lock:
            self._totals.total_games_processed += games_processed
            self._totals.total_new_games += new_games
            self._totals.total_updated_games += updated_games
            self._totals.total_results_processed += results_processed
            self._totals.total_errors += errors

    def totals(self) -> Dict[str, Any]:
        """Snapshot in the camelCase shape returned by the API."""
        with self._lock:
            t = self._totals
            return {
                "totalCycles": t.total_cycles,
                "totalGamesProcessed": t.total_games_processed,
                "totalNewGames": t.total_new_games,
                "totalUpdatedGames": t.total_updated_games,
                "totalResultsProcessed": t.total_results_processed,
                "totalErrors": t.total_errors,
                "startTime": self.start_time.isoformat() if self.start_time else None,
            }

    def runtime_ms(self, now: Optional[datetime] = None) -> int:
        if self.start_time is None:
            return 0
        now = now or datetime.now(timezone.utc)
        return int((now - self.start_time).total_seconds() * 1000)

    def summary(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Totals plus derived figures.

        averageGamesPerCycle: games processed / cycles, rounded
        successRate: percentage of processed games without error, rounded
        """
        snapshot = self.totals()
        cycles = snapshot["totalCycles"]
        processed = snapshot["totalGamesProcessed"]
        errors = snapshot["totalErrors"]
        snapshot["runtime"] = self.runtime_ms(now)
        snapshot["averageGamesPerCycle"] = _round_half_up(processed / cycles) if cycles > 0 else 0
        snapshot["successRate"] = _round_half_up((processed - errors) / processed * 100) if processed > 0 else 0
        return snapshot
