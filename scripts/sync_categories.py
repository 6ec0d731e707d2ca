"""
Refresh the target category tree from the marketplace.

Usage:
    # Fetch and flatten only, print what would be stored
    python scripts/sync_categories.py --dry-run

    # Overwrite the target_categories table
    python scripts/sync_categories.py

Exit code is 0 when the tree was fetched (and stored); 1 when the API
call failed, returned no categories or the table could not be written.
"""

import argparse
import os
import sys

# Allow imports from the project root when running as a script
_root_dir = os.path.join(os.path.dirname(__file__), "..")
sys.path.insert(0, _root_dir)

from dotenv import load_dotenv
load_dotenv(os.path.join(_root_dir, ".env"))

import structlog

from config import configure_logging
from exceptions import AppError

logger = structlog.get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Refresh the target category tree from the marketplace API."
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Fetch and flatten without writing the target_categories table",
    )

    args = parser.parse_args()

    configure_logging()

    try:
        from services.taxonomy_sync_service import get_taxonomy_sync_service

        result = get_taxonomy_sync_service().sync(dry_run=args.dry_run)
    except AppError as e:
        logger.error("category_refresh_failed", code=e.code, error=e.message)
        print(f"ERROR: {e.message}")
        sys.exit(1)

    print("=" * 60)
    print(f"  Category refresh{' (DRY-RUN)' if result.dry_run else ''}")
    print("=" * 60)
    print(f"  Fetched: {result.fetched}")
    print(f"  Leaves:  {result.leaf_count}")
    print(f"  Written: {result.written}")
    sys.exit(0)


if __name__ == "__main__":
    main()
