"""Command-line interface for auction-finalizer.

Usage:
    auction-finalizer watch --auction-id=ID --end-time=ISO [--mode=MODE]
    auction-finalizer finalize --auction-id=ID [--mode=MODE]
    auction-finalizer queue list|add|remove
    auction-finalizer status
    auction-finalizer version
"""

import argparse
import asyncio
import logging
import os
import sys
from pathlib import Path

from .config import load_config, Config
from .models.types import FinalizeOutcome, parse_timestamp
from .storage.queue_store import SqliteWorkQueueStore
from .watcher import Watcher, RunMode


def setup_logging(level: str = "INFO", log_file: str = None) -> None:
    """Configure logging."""
    log_format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    handlers = [logging.StreamHandler(sys.stdout)]

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=log_format,
        handlers=handlers,
    )


def _build_watcher(args: argparse.Namespace, config: Config) -> Watcher:
    """Create a watcher, reading credentials from the environment."""
    mode = args.mode or os.environ.get("FINALIZER_MODE", RunMode.PAPER)

    if mode == RunMode.LIVE and not args.confirm_live:
        raise ValueError("Add --confirm-live to end auctions on the live backend")

    return Watcher(
        config=config,
        mode=mode,
        supabase_url=os.environ.get("SUPABASE_URL"),
        supabase_key=os.environ.get("SUPABASE_KEY"),
    )


def cmd_watch(args: argparse.Namespace) -> int:
    """Watch an auction until it ends."""
    config = load_config(args.config)

    setup_logging(os.environ.get("LOG_LEVEL", "INFO"), os.environ.get("LOG_FILE"))
    logger = logging.getLogger(__name__)

    try:
        end_time = parse_timestamp(args.end_time)
        watcher = _build_watcher(args, config)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    async def run() -> bool:
        await watcher.start()
        try:
            return await watcher.watch(args.auction_id, end_time)
        finally:
            await watcher.stop()

    try:
        finalized = asyncio.run(run())
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        finalized = False

    stats = watcher.get_stats()["scheduler_stats"]
    print("\nFinal Statistics:")
    print(f"  Deadline checks: {stats['checks']}")
    print(f"  End attempts: {stats['attempts']}")
    print(f"  Failed attempts: {stats['failures']}")
    print(f"  Queue cleanup failures: {stats['cleanup_failures']}")

    return 0 if finalized else 1


def cmd_finalize(args: argparse.Namespace) -> int:
    """End an auction immediately."""
    config = load_config(args.config)

    setup_logging(os.environ.get("LOG_LEVEL", "INFO"), os.environ.get("LOG_FILE"))

    try:
        watcher = _build_watcher(args, config)
    except ValueError as e:
        print(f"Error: {e}")
        return 1

    async def run() -> FinalizeOutcome:
        await watcher.start()
        try:
            return await watcher.finalize_now(args.auction_id)
        finally:
            await watcher.stop()

    try:
        outcome = asyncio.run(run())
    except KeyboardInterrupt:
        logging.getLogger(__name__).info("Interrupted by user")
        return 1

    print(f"Auction {args.auction_id}: {outcome.name.lower()}")
    return 0 if outcome is FinalizeOutcome.COMPLETED else 1


def cmd_queue(args: argparse.Namespace) -> int:
    """Inspect or edit the local work queue."""
    config = load_config(args.config)
    store = SqliteWorkQueueStore(config.database)
    store.connect()

    try:
        if args.queue_command == "add":
            scheduled = parse_timestamp(args.scheduled_time) if args.scheduled_time else None
            entry = store.enqueue(args.auction_id, args.position, scheduled)
            print(f"Queued {entry.auction_id} at position {entry.position}")
        elif args.queue_command == "remove":
            removed = store.delete(args.auction_id)
            print(f"Removed {removed} entr{'y' if removed == 1 else 'ies'}")
        else:
            entries = store.list_pending()
            if not entries:
                print("Queue is empty")
            for entry in entries:
                scheduled = entry.scheduled_time.isoformat() if entry.scheduled_time else "-"
                print(f"  {entry.position:>4}  {entry.auction_id}  {scheduled}")
    except ValueError as e:
        print(f"Error: {e}")
        return 1
    finally:
        store.close()

    return 0


def cmd_status(args: argparse.Namespace) -> int:
    """Show configuration."""
    print("Auction Finalizer Status")
    print("=" * 40)

    config = load_config(args.config)
    print(f"  Poll interval: {config.scheduler.poll_interval_seconds}s")
    print(f"  Supabase URL: {config.supabase.url or os.environ.get('SUPABASE_URL') or '-'}")
    print(f"  End RPC: {config.supabase.end_auction_rpc}")
    print(f"  Queue table: {config.supabase.queue_table}")
    print(f"  Local queue: {Path(config.database.data_dir) / config.database.queue_db}")

    return 0


def cmd_version(args: argparse.Namespace) -> int:
    """Show version information."""
    from . import __version__
    print(f"auction-finalizer version {__version__}")
    return 0


def _add_mode_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--mode", "-m",
        choices=[RunMode.PAPER, RunMode.LIVE],
        default=None,
        help="Backend mode (default: paper)",
    )
    parser.add_argument(
        "--confirm-live",
        action="store_true",
        help="Confirm ending auctions on the live backend",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="auction-finalizer",
        description="Ends auctions once their end time has passed",
    )
    parser.add_argument(
        "--config", "-c",
        help="Path to config file",
        default=None,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # watch command
    watch_parser = subparsers.add_parser("watch", help="Watch an auction until it ends")
    watch_parser.add_argument("--auction-id", "-a", required=True, help="Auction identifier")
    watch_parser.add_argument("--end-time", "-e", required=True, help="End time (ISO 8601)")
    _add_mode_arguments(watch_parser)
    watch_parser.set_defaults(func=cmd_watch)

    # finalize command
    fin_parser = subparsers.add_parser("finalize", help="End an auction now")
    fin_parser.add_argument("--auction-id", "-a", required=True, help="Auction identifier")
    _add_mode_arguments(fin_parser)
    fin_parser.set_defaults(func=cmd_finalize)

    # queue command
    queue_parser = subparsers.add_parser("queue", help="Manage the local work queue")
    queue_sub = queue_parser.add_subparsers(dest="queue_command")
    queue_sub.add_parser("list", help="List queued auctions")
    add_parser = queue_sub.add_parser("add", help="Queue an auction")
    add_parser.add_argument("--auction-id", "-a", required=True)
    add_parser.add_argument("--position", "-p", type=int, default=None)
    add_parser.add_argument("--scheduled-time", "-t", default=None, help="ISO 8601")
    remove_parser = queue_sub.add_parser("remove", help="Remove a queued auction")
    remove_parser.add_argument("--auction-id", "-a", required=True)
    queue_parser.set_defaults(func=cmd_queue)

    # status command
    status_parser = subparsers.add_parser("status", help="Show configuration")
    status_parser.set_defaults(func=cmd_status)

    # version command
    version_parser = subparsers.add_parser("version", help="Show version")
    version_parser.set_defaults(func=cmd_version)

    return parser


def main() -> int:
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
