#!/usr/bin/env python3
"""Knowledge base maintenance: re-embed everything, optionally organize.

Run after changing the embedding model, or periodically (e.g. via cron) to:
1. Regenerate embeddings for every knowledge item
2. Ask the model to organize items that have no category or tags yet
3. Print a structure summary of the knowledge base

Usage:
    python scripts/reindex_knowledge.py [--config config/replyloop.yaml] [--organize [--apply]]
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime

from replyloop.core.services import Services, build_services
from replyloop.feedback.knowledge_graph import analyze_structure
from replyloop.lib.config import ConfigLoader
from replyloop.lib.logger import setup_logging

logger = logging.getLogger(__name__)


def unorganized_item_ids(services: Services) -> list[str]:
    return [
        item.id
        for item in services.knowledge_store.all_items()
        if not item.category or not item.tags
    ]


async def run_maintenance(services: Services, organize: bool = False, apply: bool = False) -> int:
    """Run the maintenance passes.

    Returns:
        Number of failed items across all passes
    """
    print(f"\n{'=' * 60}")
    print(f"Knowledge maintenance - {datetime.now().strftime('%Y-%m-%d %H:%M')}")
    print(f"{'=' * 60}\n")

    failures = 0

    print(f"Regenerating embeddings with {services.gateway.model}...")
    embedded = await services.gateway.regenerate_all()
    failures += embedded.failed
    print(f"   {embedded.success}/{embedded.processed} items embedded")
    for status in embedded.items:
        if not status.success:
            print(f"   - {status.id}: {status.error}")
    print()

    if organize:
        item_ids = unorganized_item_ids(services)
        if item_ids:
            print(f"Organizing {len(item_ids)} items without category or tags...")
            organized = await services.organization.batch_organize(item_ids, auto_apply=apply)
            failures += organized.failed
            print(f"   {organized.success}/{organized.processed} items organized"
                  + (" and applied" if apply else " (suggestions only)"))
        else:
            print("   Every item already has a category and tags")
        print()

    report = analyze_structure(services.knowledge_store.all_items())
    print("Knowledge base summary:")
    for category, count in sorted(report.category_distribution.items()):
        print(f"   - {category}: {count}")
    print(f"\n   Total: {report.total_items} items, {report.isolated_items} without relations")
    print(f"   Embeddings stored: {services.vector_store.count('knowledge_item')}")

    print(f"\n{'=' * 60}")
    print("Maintenance completed" + (f" with {failures} failures" if failures else " successfully"))
    print(f"{'=' * 60}\n")
    return failures


async def _main(args: argparse.Namespace) -> int:
    config = ConfigLoader(config_path=args.config).load()
    services = build_services(config)
    try:
        return await run_maintenance(services, organize=args.organize, apply=args.apply)
    finally:
        await services.close()


def main():
    parser = argparse.ArgumentParser(
        description="Re-embed and organize the knowledge base",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--config", default=None, help="Path to YAML config file")
    parser.add_argument(
        "--organize",
        action="store_true",
        help="Request organization suggestions for items lacking category or tags",
    )
    parser.add_argument(
        "--apply",
        action="store_true",
        help="Apply organization suggestions instead of only reporting them",
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    setup_logging(
        log_level="DEBUG" if args.debug else "INFO",
        structured=False,
        quiet=not args.debug,
    )

    try:
        failures = asyncio.run(_main(args))
    except Exception as e:
        logger.error(f"Maintenance failed: {e}", exc_info=True)
        print(f"\nMaintenance failed: {e}\n")
        sys.exit(1)
    sys.exit(1 if failures else 0)


if __name__ == "__main__":
    main()
