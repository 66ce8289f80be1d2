#!/usr/bin/env python3
"""Command-line entry point for kgprox.

Subcommands:
  rebuild   Build a snapshot from the database, backfill canonical self-references,
            materialize hop distances and print the distance distribution.
  dedupe    Delete duplicate facts from the database (lowest id kept).
  query     Run a bounded, proximity-ranked query and print JSON.
  actor     Run an actor-scoped query and print JSON.

Usage:
  kgprox --database sqlite:///document_analysis.db rebuild
  kgprox query --limit 200 --clusters 3,7
  kgprox actor "Jeff E." --clusters 3
"""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

from kgprox.config import Settings, load_settings
from kgprox.dedupe import dedupe_facts
from kgprox.errors import KgproxError
from kgprox.logging import setup_logging
from kgprox.service import QueryService
from kgprox.snapshot import SnapshotManager
from kgprox.storage.sqlite import SQLiteStore

logger = setup_logging()

_QUERY_FLAGS = (
    ("--limit", "limit", "Maximum number of facts to return"),
    ("--clusters", "clusters", "Comma-separated tag cluster ids"),
    ("--categories", "categories", "Comma-separated document categories"),
    ("--year-min", "yearMin", "Earliest year (inclusive)"),
    ("--year-max", "yearMax", "Latest year (inclusive)"),
    ("--include-undated", "includeUndated", "Whether undated facts pass a date filter (true/false)"),
    ("--keywords", "keywords", "Comma-separated keywords (any may match)"),
    ("--max-hops", "maxHops", "Maximum relevance distance, or 'any'"),
)


def _add_query_flags(parser: argparse.ArgumentParser) -> None:
    for flag, dest, help_text in _QUERY_FLAGS:
        parser.add_argument(flag, dest=dest, default=None, help=help_text)


def parse_arguments(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kgprox",
        description="Entity canonicalization and proximity-ranked fact retrieval.",
    )
    parser.add_argument("--config", type=Path, default=None, help="Path to a kgprox.toml config file")
    parser.add_argument("--database", default=None, help="Database URL (overrides config), e.g. sqlite:///document_analysis.db")
    parser.add_argument("--principal", default=None, help="Principal entity name (overrides config)")
    parser.add_argument("--tag-clusters", type=Path, default=None, help="Tag cluster JSON file (overrides config)")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("rebuild", help="Rebuild the snapshot and materialize hop distances")
    dedupe = sub.add_parser("dedupe", help="Delete duplicate facts from the database")
    dedupe.add_argument("--dry-run", action="store_true", help="Report duplicates without deleting them")

    query = sub.add_parser("query", help="Bounded, proximity-ranked query")
    _add_query_flags(query)

    actor = sub.add_parser("actor", help="All facts for one entity and its aliases")
    actor.add_argument("name", help="Entity name or alias")
    _add_query_flags(actor)
    return parser.parse_args(argv)


def _query_params(args: argparse.Namespace) -> dict[str, Optional[str]]:
    return {dest: getattr(args, dest) for _, dest, _ in _QUERY_FLAGS}


def run_rebuild(store: SQLiteStore, settings: Settings) -> int:
    manager = SnapshotManager(store, store, settings)
    snapshot = manager.rebuild()
    print(f"Snapshot v{snapshot.version}: {len(snapshot.facts)} facts, {snapshot.graph.node_count} entities")
    if snapshot.duplicates_removed:
        print(f"  {snapshot.duplicates_removed} duplicate facts ignored (run 'kgprox dedupe' to delete them)")
    print(f"  {snapshot.backfilled} canonical self-references backfilled")
    if not snapshot.principal_found:
        print(f"  WARNING: principal {settings.principal!r} not found in graph")
    print("Hop distance distribution:")
    for distance, count in snapshot.distances.distribution().items():
        label = "disconnected" if distance == snapshot.distances.sentinel else f"{distance} hops"
        print(f"  {label}: {count} entities")
    return 0


def run_dedupe(store: SQLiteStore, dry_run: bool) -> int:
    before = store.count_facts()
    report = dedupe_facts(store.scan_facts())
    print(f"Total facts: {before}; {len(report.duplicate_groups)} duplicate groups, {report.removed_count} to remove")
    for group in report.duplicate_groups[:5]:
        print(f"  ids {list(group)} -> keep {group[0]}")
    if dry_run or not report.removed_ids:
        return 0
    deleted = store.delete_facts(report.removed_ids)
    logger.info({"message": "Deleted duplicate facts", "deleted": deleted, "before": before, "after": store.count_facts()})
    print(f"Deleted {deleted} duplicate facts; {store.count_facts()} remain")
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_arguments(argv)
    settings = load_settings(
        config_path=args.config,
        database_url=args.database,
        principal=args.principal,
        tag_clusters_path=args.tag_clusters,
    )
    store = SQLiteStore.from_url(settings.database_url)
    try:
        if args.command == "rebuild":
            return run_rebuild(store, settings)
        if args.command == "dedupe":
            return run_dedupe(store, args.dry_run)

        manager = SnapshotManager(store, store, settings.model_copy(update={"persist_hop_distances": False}))
        manager.rebuild()
        service = QueryService(manager.handle, settings)
        if args.command == "query":
            result = service.relationships(_query_params(args))
        else:
            result = service.actor_relationships(args.name, _query_params(args))
        print(json.dumps(result.model_dump(by_alias=True), indent=2))
        return 0
    except KgproxError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
