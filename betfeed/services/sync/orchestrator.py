"""
Sync orchestrator for the upstream events feed.

One APScheduler interval job per enabled game type polls the feed every
GAME_DURATION_VALUE seconds. Each cycle:
- fetches the current event list for the game
- inserts new events and updates known ones
- extracts and stores results for events that are finished or already
  carry winner flags
- runs the keno finishing sweep

Control operations (start, stop, manual sync) raise SyncControlError
subclasses on misuse; the HTTP layer turns those into {"success": false}.
"""
import time
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional

from apscheduler.job import Job
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy.orm import Session

from betfeed.core.config import GameConfig, GameRegistry
from betfeed.core.exceptions import (
    AlreadyActiveError,
    GameNotEnabledError,
    NoGamesEnabledError,
    NotActiveError,
    StartInterruptedError,
    UnknownGameError,
)
from betfeed.core.logging import clear_correlation_id, get_logger, set_correlation_id
from betfeed.core.metrics import (
    record_sync_cycle,
    record_sync_event,
    sync_jobs_armed,
    sync_results_stored_total,
)
from betfeed.repositories.event_repository import EventRepository
from betfeed.repositories.result_repository import ResultRepository
from betfeed.services.feed.feed_client import FeedClient
from betfeed.services.sync.finishing_sweep import FinishingSweep
from betfeed.services.sync.normalizer import list_items, normalize_event, resolve_event_id
from betfeed.services.sync.result_extractor import KENO_GAME, has_winning_selection, process_game_result
from betfeed.services.sync.stats import SyncStats

logger = get_logger(__name__)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class GameSyncState:
    """Per-game runtime state owned by the orchestrator."""

    game: GameConfig
    job: Optional[Job] = None
    last_sync_time: Optional[datetime] = None
    last_status: Optional[Dict[str, Any]] = None


class SyncOrchestrator:
    """
    Coordinates the per-game sync jobs.

    Attributes:
        registry: Configured games
        feed_client: Upstream client shared by all cycles
        session_factory: Callable returning a new database session per cycle
        active: True between start() and stop()
    """

    def __init__(
        self,
        registry: GameRegistry,
        feed_client: FeedClient,
        session_factory: Callable[[], Session],
    ):
        self.registry = registry
        self.feed_client = feed_client
        self.session_factory = session_factory
        self.active = False
        self._scheduler: Optional[AsyncIOScheduler] = None
        self._games: Dict[str, GameSyncState] = {}
        self._stats = SyncStats()
        # Bumped by every start() and stop(); a start() whose generation changed
        # while its initial cycles ran must not arm timers
        self._generation = 0

    def _state(self, game: GameConfig) -> GameSyncState:
        state = self._games.get(game.type_name)
        if state is None:
            state = GameSyncState(game=game)
            self._games[game.type_name] = state
        return state

    # ========================================================================
    # One cycle
    # ========================================================================

    async def _store_result(
        self, db: Session, game: GameConfig, event_id: str, item: Dict[str, Any], cycle_id: int
    ) -> bool:
        """Extract and store a result for one actionable item. True when a result was written."""
        payload = item
        if game.type_name == KENO_GAME:
            # The list payload lacks the KenoWin market tree
            try:
                detail = await self.feed_client.get_event_detail(event_id)
            except Exception as e:
                logger.warning(f"[Cycle {cycle_id}] Detail fetch failed for {event_id}, using list data: {e}")
            else:
                if isinstance(detail, dict) and detail.get("Event"):
                    payload = detail
                else:
                    logger.warning(f"[Cycle {cycle_id}] No detail for {event_id}, using list data")

        processed = process_game_result(payload)
        if not processed or not processed["winning_values"]:
            return False
        processed["event_id"] = event_id

        results = ResultRepository(db)
        if results.has_winning_values(event_id):
            logger.debug(f"[Cycle {cycle_id}] Winning values already exist for {event_id}")
            return False

        results.upsert(processed)
        db.commit()
        sync_results_stored_total.labels(game_type=game.type_name).inc()
        logger.info(
            f"[Cycle {cycle_id}] Stored {processed['result_type']} result for {event_id} "
            f"(Number: {processed['game_number']})"
        )
        return True

    async def run_one_cycle(self, game: GameConfig) -> Dict[str, Any]:
        """
        Run one sync cycle for a game.

        Per-item failures are counted and never abort the cycle. A failed list
        fetch yields {"success": False, "error": ...}.

        Returns:
            Cycle summary (camelCase keys, as served by the status API)
        """
        game_type = game.type_name
        cycle_id = self._stats.next_cycle()
        token = set_correlation_id(f"sync-{game_type}-{cycle_id}")
        started = time.monotonic()
        state = self._state(game)
        db = self.session_factory()

        try:
            logger.info(f"[Cycle {cycle_id}] Starting sync for {game_type}")
            try:
                response = await self.feed_client.get_events_by_type(game)
            except Exception as e:
                sync_time = datetime.now(timezone.utc)
                self._stats.add(errors=1)
                state.last_sync_time = sync_time
                state.last_status = {
                    "cycleId": cycle_id,
                    "lastSync": sync_time.isoformat(),
                    "error": str(e),
                    "success": False,
                }
                record_sync_cycle(game_type, False, time.monotonic() - started)
                logger.error(f"[Cycle {cycle_id}] Sync failed for {game_type}: {e}")
                return {
                    "success": False,
                    "cycleId": cycle_id,
                    "gameType": game_type,
                    "error": str(e),
                    "timestamp": sync_time.isoformat(),
                }

            items = list_items(response)
            events = EventRepository(db)
            new_games = updated_games = results_processed = errors = skipped = 0

            for item in items:
                event_id = resolve_event_id(item)
                if not event_id:
                    logger.warning(f"[Cycle {cycle_id}] Item without event id for {game_type}, skipping")
                    skipped += 1
                    record_sync_event(game_type, "skipped")
                    continue

                try:
                    normalized = normalize_event(item)
                    _, created = events.upsert(event_id, normalized.to_fields())
                    db.commit()
                    if created:
                        new_games += 1
                        self._stats.add(new_games=1)
                        record_sync_event(game_type, "new")
                    else:
                        updated_games += 1
                        self._stats.add(updated_games=1)
                        record_sync_event(game_type, "updated")

                    if normalized.is_finished or has_winning_selection(item):
                        if await self._store_result(db, game, event_id, item, cycle_id):
                            results_processed += 1
                            self._stats.add(results_processed=1)

                    self._stats.add(games_processed=1)
                except Exception as e:
                    db.rollback()
                    errors += 1
                    self._stats.add(errors=1)
                    record_sync_event(game_type, "error")
                    logger.error(f"[Cycle {cycle_id}] Failed to sync {event_id}: {e}")

            sweep = await FinishingSweep(db, self.feed_client).run()

            duration_ms = int((time.monotonic() - started) * 1000)
            sync_time = datetime.now(timezone.utc)
            summary = {
                "cycleId": cycle_id,
                "gameType": game_type,
                "newGames": new_games,
                "updatedGames": updated_games,
                "resultsProcessed": results_processed,
                "errors": errors,
                "skipped": skipped,
                "total": len(items),
                "duration": duration_ms,
            }
            state.last_sync_time = sync_time
            state.last_status = {**summary, "lastSync": sync_time.isoformat(), "success": True}
            record_sync_cycle(game_type, True, duration_ms / 1000)

            logger.info(
                f"[Cycle {cycle_id}] {game_type} done in {duration_ms}ms: new {new_games}, "
                f"updated {updated_games}, results {results_processed}, errors {errors}, skipped {skipped}"
            )
            return {
                "success": True,
                **summary,
                "finishingSweep": sweep,
                "timestamp": sync_time.isoformat(),
            }
        finally:
            db.close()
            clear_correlation_id(token)

    # ========================================================================
    # Control
    # ========================================================================

    async def _run_scheduled(self, game_type: str) -> None:
        state = self._games.get(game_type)
        if not self.active or state is None:
            return
        try:
            await self.run_one_cycle(state.game)
        except Exception as e:
            logger.error(f"Timer error for {game_type}: {e}")

    async def start(self) -> Dict[str, Any]:
        """
        Run one cycle per enabled game, then arm one interval job per game.

        Raises:
            AlreadyActiveError: sync is already running
            NoGamesEnabledError: no game is enabled
            StartInterruptedError: stop() or another start() ran during the initial cycles
        """
        if self.active:
            raise AlreadyActiveError()

        games = self.registry.enabled_games()
        if not games:
            raise NoGamesEnabledError()

        logger.info(f"Starting auto-sync for {len(games)} games")
        self.active = True
        self._generation += 1
        generation = self._generation
        self._stats.reset()
        self._games = {g.type_name: GameSyncState(game=g) for g in games}

        for game in games:
            await self.run_one_cycle(game)

        if not self.active or generation != self._generation:
            logger.warning("Auto-sync start interrupted before timers were armed")
            raise StartInterruptedError()

        self._scheduler = AsyncIOScheduler(
            timezone="UTC",
            job_defaults={
                "coalesce": True,  # Combine missed runs into one
                "max_instances": 1,  # Never overlap cycles of the same game
            },
        )
        for game in games:
            self._games[game.type_name].job = self._scheduler.add_job(
                self._run_scheduled,
                trigger=IntervalTrigger(seconds=game.duration_seconds),
                args=[game.type_name],
                id=game.type_name,
                name=f"Sync {game.type_name}",
                replace_existing=True,
            )
            logger.info(f"Scheduled: {game.type_name} every {game.duration_seconds}s")
        self._scheduler.start()
        sync_jobs_armed.set(len(games))

        return {
            "success": True,
            "message": f"Robust auto-sync started for {len(games)} games",
            "games": [
                {"type": g.type_name, "duration": g.duration_seconds, "syncInterval": g.duration_seconds}
                for g in games
            ],
            "startTime": _iso(self._stats.start_time),
        }

    def stop(self) -> Dict[str, Any]:
        """
        Remove every sync job. In-flight cycles run to completion.

        Raises:
            NotActiveError: sync is not running
        """
        if not self.active:
            raise NotActiveError()

        if self._scheduler is not None:
            for state in self._games.values():
                if state.job is not None:
                    self._scheduler.remove_job(state.job.id)
                    logger.info(f"Stopped auto-sync for {state.game.type_name}")
                state.job = None
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
        sync_jobs_armed.set(0)
        self.active = False
        self._generation += 1

        end_time = datetime.now(timezone.utc)
        final_stats = self._stats.totals()
        final_stats["endTime"] = end_time.isoformat()
        final_stats["runtime"] = self._stats.runtime_ms(end_time)
        logger.info(
            f"Auto-sync stopped: {final_stats['totalCycles']} cycles, "
            f"{final_stats['totalGamesProcessed']} games processed, {final_stats['totalErrors']} errors"
        )
        return {"success": True, "message": "Robust auto-sync stopped", "finalStats": final_stats}

    def status(self) -> Dict[str, Any]:
        """Active flag, totals and per enabled game timing."""
        games = []
        for game in self.registry.enabled_games():
            state = self._games.get(game.type_name)
            last_sync = state.last_sync_time if state else None
            has_timer = bool(state and state.job is not None)
            next_sync = None
            if self.active and last_sync and has_timer:
                next_sync = last_sync + timedelta(seconds=game.duration_seconds)
            games.append({
                "type": game.type_name,
                "enabled": game.enabled,
                "durationSeconds": game.duration_seconds,
                "syncIntervalSeconds": game.duration_seconds,
                "hasTimer": has_timer,
                "lastSyncTime": _iso(last_sync),
                "nextSyncTime": _iso(next_sync),
                "syncStatus": state.last_status if state else None,
            })

        return {
            "active": self.active,
            "startTime": _iso(self._stats.start_time),
            "totalStats": self._stats.totals(),
            "games": games,
        }

    def stats(self) -> Dict[str, Any]:
        """Totals with runtime, averageGamesPerCycle and successRate."""
        return self._stats.summary()

    async def manual_sync(self, game_type: str) -> Dict[str, Any]:
        """
        Run one cycle for a configured, enabled game.

        Raises:
            UnknownGameError: no such game in the configuration
            GameNotEnabledError: the game exists but is disabled
        """
        game = self.registry.get(game_type)
        if game is None:
            raise UnknownGameError(game_type)
        if not game.enabled:
            raise GameNotEnabledError(game_type)

        logger.info(f"Manual sync requested for {game_type}")
        return await self.run_one_cycle(game)


_orchestrator: Optional[SyncOrchestrator] = None


def get_orchestrator() -> SyncOrchestrator:
    """Process-wide orchestrator, built on first use from the default wiring."""
    global _orchestrator
    if _orchestrator is None:
        from betfeed.core.config import get_game_registry
        from betfeed.core.database import SessionLocal
        from betfeed.services.feed.feed_client import get_feed_client

        _orchestrator = SyncOrchestrator(get_game_registry(), get_feed_client(), SessionLocal)
    return _orchestrator


def set_orchestrator(orchestrator: Optional[SyncOrchestrator]) -> None:
    """Replace the process-wide orchestrator (tests, app startup)."""
    global _orchestrator
    _orchestrator = orchestrator
