"""
Batch sync: push scraped product records to the marketplace.

Usage:
    # Dry run over the first 10 pending records
    python scripts/run_sync.py --input data/products.csv --limit 10 --dry-run

    # Real run, shipping bands from a rate table instead of the database
    python scripts/run_sync.py --input data/products.xlsx \
        --shipping-rates data/shipping_rates.xlsx

Exit code is 0 whenever the batch completed, whatever the per-record
outcomes; 1 when the input could not be read or services could not start.
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
from models.category import MatchType
from models.sync import BatchResult, SyncAction, SyncStatus
from parsers.product_feed_parser import parse_product_feed

logger = structlog.get_logger(__name__)


def build_service(shipping_rates: str = ""):
    """SyncService on Supabase stores, optionally with file-based shipping bands."""
    from integrations.marketplace_client import MarketplaceClient
    from integrations.stores import FileShippingRateStore
    from integrations.supabase_stores import (
        SupabaseMappingStore,
        SupabaseProductRecordStore,
        SupabaseShippingRateStore,
        SupabaseTaxonomyStore,
    )
    from services.reference_cache_service import ReferenceDataCache
    from services.sync_service import SyncService

    rate_store = FileShippingRateStore(shipping_rates) if shipping_rates else SupabaseShippingRateStore()
    cache = ReferenceDataCache(SupabaseMappingStore(), SupabaseTaxonomyStore(), rate_store)

    return SyncService(
        record_store=SupabaseProductRecordStore(),
        marketplace=MarketplaceClient(),
        cache=cache,
    )


def print_summary(result: BatchResult) -> None:
    summary = result.summary

    print("=" * 60)
    print(f"  Summary{' (DRY-RUN)' if result.dry_run else ''}")
    print("=" * 60)
    for status in SyncStatus:
        print(f"  {status.value:<10} {summary.by_status[status]}")
    print("")
    print(f"  Successful: {summary.successful} of {summary.total}")
    print(f"  Mode:       CREATE={summary.by_action[SyncAction.CREATE]}  UPDATE={summary.by_action[SyncAction.UPDATE]}")
    print(
        f"  Category:   MANUAL={summary.by_match_type[MatchType.MANUAL]}  "
        f"AUTO={summary.by_match_type[MatchType.AUTO]}  "
        f"FALLBACK={summary.by_match_type[MatchType.FALLBACK]}"
    )

    failed = [d for d in result.decisions if d.status == SyncStatus.FAILED]
    if failed:
        print("")
        print("  Failed records:")
        for decision in failed:
            print(f"    {decision.key}: {decision.message}")

    review = [d for d in result.decisions if d.needs_review and d.status != SyncStatus.NO_CHANGE]
    if review:
        print("")
        print(f"  {len(review)} record(s) used the FALLBACK category (review required)")


def main():
    parser = argparse.ArgumentParser(
        description="Sync scraped product records to the marketplace."
    )
    parser.add_argument(
        "--input",
        required=True,
        help="Product feed file (csv, xlsx, json or jsonl)",
    )
    parser.add_argument(
        "--limit",
        type=int,
        default=None,
        help="Process at most N pending records (NO_CHANGE records not counted)",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Compute decisions and payloads without remote calls or persistence",
    )
    parser.add_argument(
        "--shipping-rates",
        default="",
        help="Shipping rate table (csv/xlsx) to use instead of the shipping_rates table",
    )

    args = parser.parse_args()

    if args.limit is not None and args.limit < 1:
        print("ERROR: --limit must be a positive number.")
        sys.exit(1)

    configure_logging()

    try:
        feed = parse_product_feed(args.input)
    except (AppError, OSError) as e:
        print(f"ERROR: Could not read {args.input}: {e}")
        sys.exit(1)

    for row_error in feed.errors:
        print(f"  Row {row_error.row} ignored: {row_error.error}")

    try:
        service = build_service(args.shipping_rates)
    except Exception as e:
        logger.error("sync_service_start_failed", error=str(e))
        print(f"ERROR: Could not start sync services: {e}")
        sys.exit(1)

    result = service.run_batch(feed.records, limit=args.limit, dry_run=args.dry_run)
    print_summary(result)
    sys.exit(0)


if __name__ == "__main__":
    main()
