"""
Command line entry point.

Usage:
    python -m librarysync sync [--store epic --store gog] [--force-enrich] [--skip-enrichment]
    python -m librarysync list [--store steam]
    python -m librarysync search "witcher"
    python -m librarysync status
    python -m librarysync cache-stats
    python -m librarysync clear-cache [--game ID | --provider NAME]
"""
import argparse
import asyncio
import json
import logging
import sys
from typing import List, Optional

from .app import build_library
from .config import load_settings
from .services.library_service import LibraryService
from .services.sync_service import SyncInProgressError
from .stores.base import Store
from .utils.paths import SETTINGS_PATH

logger = logging.getLogger(__name__)

STORE_CHOICES = [s.value for s in Store]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="librarysync",
                                     description="Sync and enrich a multi-store game library")
    parser.add_argument("--settings", default=SETTINGS_PATH, help="Path to settings.json")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    sync = sub.add_parser("sync", help="Sync libraries from the stores")
    sync.add_argument("--store", action="append", choices=STORE_CHOICES,
                      help="Store to sync (repeatable, default: all)")
    sync.add_argument("--force-enrich", action="store_true",
                      help="Enrich every fetched game, not only new ones")
    sync.add_argument("--skip-enrichment", action="store_true", help="Only save store data")

    list_cmd = sub.add_parser("list", help="List games in the library")
    list_cmd.add_argument("--store", choices=STORE_CHOICES)

    search = sub.add_parser("search", help="Search by title or developer")
    search.add_argument("query")

    sub.add_parser("status", help="Show store authentication and sync status")
    sub.add_parser("cache-stats", help="Show enrichment cache statistics")

    clear = sub.add_parser("clear-cache", help="Clear cached enrichment data")
    group = clear.add_mutually_exclusive_group()
    group.add_argument("--game", help="Only this game id")
    group.add_argument("--provider", help="Only this provider")

    return parser


def _print(data) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run_command(library: LibraryService, args: argparse.Namespace) -> int:
    if args.command == "sync":
        try:
            result = await library.sync_library(
                args.store, force_enrich=args.force_enrich, skip_enrichment=args.skip_enrichment
            )
        except SyncInProgressError as e:
            logger.error(str(e))
            return 1
        _print(result.to_dict())
        return 0 if result.success else 2

    if args.command == "list":
        games = await (library.get_games_by_store(args.store) if args.store else library.get_all_games())
        _print([g.to_dict() for g in games])
        return 0

    if args.command == "search":
        _print([g.to_dict() for g in await library.search_games(args.query)])
        return 0

    if args.command == "status":
        _print(await library.get_stores_status())
        return 0

    if args.command == "cache-stats":
        _print((await library.get_cache_stats()).to_dict())
        return 0

    if args.command == "clear-cache":
        cleared = await library.clear_cache(game_id=args.game, provider=args.provider)
        _print({'cleared': cleared})
        return 0

    return 1


async def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        stream=sys.stderr,
    )

    library = build_library(load_settings(args.settings), settings_path=args.settings)
    await library.initialize()
    try:
        return await run_command(library, args)
    finally:
        await library.close()


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
