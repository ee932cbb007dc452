"""
Command line entry point.

Usage:
    betfeed serve                      # Run the HTTP API (uvicorn)
    betfeed sync                       # Run the sync jobs without the HTTP API
    betfeed ingest list [--game TYPE]  # Upsert the current event list once
    betfeed ingest detail EVENT_ID     # Upsert one event from its detail
"""
import argparse
import asyncio
import json
import signal
import sys
from typing import List, Optional

from betfeed.core.config import get_game_registry, settings
from betfeed.core.database import SessionLocal, init_db
from betfeed.core.exceptions import BetfeedError, SyncControlError
from betfeed.core.logging import configure_logging, get_logger
from betfeed.services.feed.feed_client import FeedClient
from betfeed.services.feed.ingest import ingest_detail, ingest_list
from betfeed.services.sync.orchestrator import SyncOrchestrator

logger = get_logger(__name__)


class SyncRunner:
    """Runs the sync orchestrator until SIGINT/SIGTERM."""

    def __init__(self):
        self.shutdown = False
        self.feed_client = FeedClient()
        self.orchestrator = SyncOrchestrator(get_game_registry(), self.feed_client, SessionLocal)

    async def start(self) -> None:
        logger.info("🚀 Starting sync runner...")
        await self.orchestrator.start()

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._set_shutdown)

        try:
            while not self.shutdown:
                await asyncio.sleep(1)
        finally:
            self.orchestrator.stop()
            await self.feed_client.close()
            logger.info("✅ Sync runner stopped")

    def _set_shutdown(self) -> None:
        logger.info("⏹️  Shutdown signal received")
        self.shutdown = True


async def _run_ingest(args: argparse.Namespace) -> dict:
    feed_client = FeedClient()
    db = SessionLocal()
    try:
        if args.ingest_command == "list":
            registry = get_game_registry()
            game = registry.get(args.game) if args.game else registry.current_game()
            if game is None:
                raise SystemExit(f"Unknown or no enabled game: {args.game or '(default)'}")
            return await ingest_list(db, feed_client, game)
        return await ingest_detail(db, feed_client, args.event_id)
    finally:
        db.close()
        await feed_client.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="betfeed", description="Betting feed sync service")
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("serve", help="Run the HTTP API")
    sub.add_parser("sync", help="Run the sync jobs in the foreground")

    ingest = sub.add_parser("ingest", help="Ingest events once")
    ingest_sub = ingest.add_subparsers(dest="ingest_command", required=True)
    ingest_list_parser = ingest_sub.add_parser("list", help="Ingest the event list of a game")
    ingest_list_parser.add_argument("--game", metavar="TYPE", help="Game type (default: first enabled game)")
    ingest_detail_parser = ingest_sub.add_parser("detail", help="Ingest one event detail")
    ingest_detail_parser.add_argument("event_id", metavar="EVENT_ID")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)
    configure_logging(level=settings.LOG_LEVEL, json_output=settings.LOG_JSON)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("betfeed.main:app", host=settings.HOST, port=settings.PORT)
        return 0

    init_db()

    if args.command == "sync":
        try:
            asyncio.run(SyncRunner().start())
        except SyncControlError as e:
            logger.error(f"❌ Cannot start sync: {e}")
            return 1
        return 0

    try:
        result = asyncio.run(_run_ingest(args))
    except (BetfeedError, ValueError) as e:
        logger.error(f"❌ Ingestion failed: {e}")
        return 1
    print(json.dumps(result, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
