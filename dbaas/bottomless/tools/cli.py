"""
Operational CLI for bottomless.

Lists, inspects, prunes and restores the generations a replicator has
written to the bucket. The tool never talks to a live replicator session.

Usage:
    bottomless-cli [-e ENDPOINT] [-b BUCKET] [-d DATABASE] ls [-g GEN] [-l N]
        [--older-than DATE] [--newer-than DATE] [-v]
    bottomless-cli ... restore [-g GEN] [-o OUTPUT] [--dry-run]
    bottomless-cli ... rm (-g GEN | --older-than DATE) [-v]

Invariants:
    - Read operations never modify the bucket
    - rm requires an explicit generation or date
    - Failures print "Error: <message>" and exit with status 1

How to change safely:
    - Keep output format stable; operators script against it
    - Add new subcommands additively
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from datetime import date
from typing import Optional, Sequence

import json_log_formatter

from ..catalog.catalog import GenerationCatalog, GenerationInfo, detect_db
from ..catalog.metadata import SnapshotSummary
from ..config import BottomlessConfig, ObservabilityConfig
from ..errors import BottomlessError
from ..generation import GenerationClock
from ..restore import GenerationRestorer
from ..storage.base import ObjectStore, create_object_store

logger = logging.getLogger(__name__)


def setup_logging(config: ObservabilityConfig) -> None:
    """Configure logging based on configuration.

    Args:
        config: Observability configuration
    """
    level = getattr(logging, config.log_level.upper(), logging.INFO)

    if config.log_format == "json":
        formatter = json_log_formatter.JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = [handler]

    # Reduce noise from libraries
    for name in ("botocore", "aiobotocore", "urllib3"):
        logging.getLogger(name).setLevel(logging.WARNING)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date '{value}', expected YYYY-MM-DD")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bottomless-cli", description="Bottomless CLI")
    parser.add_argument("-e", "--endpoint", help="Storage endpoint URL")
    parser.add_argument("-b", "--bucket", help="Bucket name")
    parser.add_argument("-d", "--database", help="Database name (auto-detected when omitted)")

    commands = parser.add_subparsers(dest="command", required=True)

    ls = commands.add_parser("ls", help="List available generations")
    ls.add_argument("-g", "--generation", help="List details about single generation")
    ls.add_argument("-l", "--limit", type=int, help="List only <limit> newest generations")
    ls.add_argument(
        "--older-than", type=_parse_date, help="List only generations older than given date"
    )
    ls.add_argument(
        "--newer-than", type=_parse_date, help="List only generations newer than given date"
    )
    ls.add_argument(
        "-v", "--verbose", action="store_true", help="Print detailed information on each generation"
    )

    restore = commands.add_parser("restore", help="Restore the database")
    restore.add_argument(
        "-g",
        "--generation",
        help="Generation to restore from. Skip this parameter to restore from the newest generation.",
    )
    restore.add_argument("-o", "--output", help="Target database file (defaults to the database name)")
    restore.add_argument("--dry-run", action="store_true", help="Don't write the database file")

    rm = commands.add_parser("rm", help="Remove given generation from remote storage")
    rm.add_argument("-g", "--generation", help="Generation to remove")
    rm.add_argument(
        "--older-than", type=_parse_date, help="Remove generations older than given date"
    )
    rm.add_argument("-v", "--verbose", action="store_true")

    return parser


def _print_snapshot(snapshot: Optional[SnapshotSummary]) -> None:
    if snapshot is None:
        return
    if snapshot.error:
        print(f"\tfailed to fetch main database snapshot info: {snapshot.error}")
    elif not snapshot.present:
        print("\tno main database snapshot file found")
    else:
        last_modified = snapshot.last_modified.isoformat() if snapshot.last_modified else "never"
        print("\tmain database snapshot:")
        print(f"\t\tobject size:   {snapshot.size_bytes}")
        print(f"\t\tlast modified: {last_modified}")


def _print_details(info: GenerationInfo) -> None:
    print(f"\tcreated at (UTC):     {info.created_at.replace(tzinfo=None)}")
    print(f"\tchange counter:       {info.change_counter}")
    print(f"\tconsistent WAL frame: {info.consistent_frame}")
    _print_snapshot(info.snapshot)


async def run(args: argparse.Namespace, store: ObjectStore) -> int:
    """Execute a parsed command against a connected store.

    Returns:
        Process exit status
    """
    database = args.database
    if not database:
        database = await detect_db(store)
        if not database:
            print("Could not autodetect the database. Please pass it explicitly with -d option")
            return 0
    logger.info(f"Database: {database}")

    clock = GenerationClock()
    catalog = GenerationCatalog(store, database, clock)

    if args.command == "ls":
        if args.generation:
            info = await catalog.list_generation(args.generation)
            print(f"Generation {info.generation} for {database}")
            _print_details(info)
            return 0
        generations = await catalog.list_generations(
            limit=args.limit,
            older_than=args.older_than,
            newer_than=args.newer_than,
            verbose=args.verbose,
        )
        if not generations:
            print("No generations found")
        for info in generations:
            print(info.generation)
            if args.verbose:
                _print_details(info)
                print()
        return 0

    if args.command == "restore":
        restorer = GenerationRestorer(store, database, clock)
        result = await restorer.restore(
            args.output or database, generation=args.generation, dry_run=args.dry_run
        )
        if not result.success:
            print(f"Restore failed: {result.error}")
            return 1
        print("Restore completed successfully")
        print(f"  Generation: {result.generation}")
        print(f"  Pages restored: {result.pages_restored}")
        print(f"  Target: {result.target_path}")
        print(f"  Duration: {result.duration_ms}ms")
        return 0

    # rm
    if args.generation and args.older_than:
        print("rm accepts either --generation or --older-than, not both")
        return 1
    if args.older_than:
        removed = await catalog.remove_many(args.older_than, args.verbose)
        print(f"Removed {removed} generations")
    elif args.generation:
        removed = await catalog.remove(clock.parse(args.generation), args.verbose)
        if removed == 0:
            print("No objects found")
        else:
            print(f"Removed {removed} objects")
    else:
        print("rm command cannot be run without parameters; see -h or --help for details")
    return 0


async def _main(args: argparse.Namespace, config: BottomlessConfig) -> int:
    store = create_object_store(config.s3, max_keys=config.replicator.list_page_size)
    await store.connect()
    try:
        return await run(args, store)
    finally:
        await store.close()


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command == "ls" and args.generation and (
        args.limit is not None or args.older_than or args.newer_than
    ):
        parser.error("--generation cannot be combined with --limit/--older-than/--newer-than")

    try:
        config = BottomlessConfig.from_env()
    except ValueError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        sys.exit(1)

    s3 = config.s3
    if args.endpoint:
        s3 = replace(s3, endpoint_url=args.endpoint)
    if args.bucket:
        s3 = replace(s3, bucket=args.bucket)
    config = replace(config, s3=s3)

    setup_logging(config.observability)

    try:
        status = asyncio.run(_main(args, config))
    except BottomlessError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    sys.exit(status)


if __name__ == "__main__":
    main()
