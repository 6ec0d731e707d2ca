"""
Sync orchestrator.

Decides per product record whether to CREATE, UPDATE or leave the remote
listing alone, fills in category and price, calls the marketplace and
writes the outcome back to the record store.

State machine:
    UNSYNCED       no remote id            → CREATE (mandatory fields required)
    SYNCED_CLEAN   remote id, not dirty    → NO_CHANGE, zero remote calls
    SYNCED_DIRTY   remote id, dirty        → UPDATE changed + required fields
    SYNC_FAILED    last attempt failed     → retried like CREATE/UPDATE

Every error is turned into a SyncDecision; a batch always completes.
"""

import time
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional
import structlog

from config import settings
from exceptions import (
    AppError,
    FieldResolutionError,
    MissingFieldError,
    RemoteCallFailure,
)
from integrations.stores import MarketplaceApi, ProductRecordStore
from models.category import CategoryResolution, MatchType
from models.product import PROTECTED_FIELDS, ProductRecord, is_blank
from models.sync import (
    BatchResult,
    ChangeFlag,
    RemoteResponse,
    SyncAction,
    SyncDecision,
    SyncState,
    SyncStatus,
)
from services.category_resolver_service import CategoryResolverService
from services.change_tracker_service import ChangeTrackerService
from services.price_service import PriceService
from services.reference_cache_service import ReferenceDataCache
from utils.text_utils import normalize_image_url, parse_positive_decimal

logger = structlog.get_logger(__name__)


# Payload field → ProductRecord attribute
RECORD_FIELDS = {
    "category_id": "target_category_id",
    "title": "title",
    "sale_price": "sale_price",
    "standard_image": "standard_image",
    "description": "description",
    "weight_kg": "weight_kg",
}

# Compared against the stored snapshot to find what an UPDATE must send
UPDATABLE_FIELDS = tuple(RECORD_FIELDS)

NUMERIC_FIELDS = ("sale_price", "weight_kg")

# Always sent on UPDATE, changed or not
UPDATE_REQUIRED_FIELDS = ("category_id", "title", "shipping_no", "production_place_type")


def _text(value: Any) -> str:
    if value is None:
        return ""
    return " ".join(str(value).split())


def _same_value(field: str, old: Any, new: Any) -> bool:
    """Numbers compare by value ("0.6" == "0.60"), everything else as text."""
    if field in NUMERIC_FIELDS:
        old_number, new_number = parse_positive_decimal(old), parse_positive_decimal(new)
        if old_number is not None and new_number is not None:
            return old_number == new_number
    return _text(old) == _text(new)


def _options_payload(options: Any) -> Optional[dict]:
    """Options are only sent as {"type": ..., "values": [...]} with values."""
    if isinstance(options, dict) and options.get("type") and options.get("values"):
        return options
    return None


class SyncService:
    """
    Orchestrates category resolution, pricing, change tracking and remote
    calls for product records.
    """

    def __init__(
        self,
        record_store: ProductRecordStore,
        marketplace: MarketplaceApi,
        cache: ReferenceDataCache,
        resolver: Optional[CategoryResolverService] = None,
        price_service: Optional[PriceService] = None,
        tracker: Optional[ChangeTrackerService] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.record_store = record_store
        self.marketplace = marketplace
        self.cache = cache
        self.resolver = resolver or CategoryResolverService(cache)
        self.price_service = price_service or PriceService(cache)
        self.tracker = tracker or ChangeTrackerService()
        self.sleep = sleep

        self.max_retries = settings.max_retries
        self.retry_delay = settings.retry_delay_seconds
        self.defaults = settings.business_defaults

    # ===================
    # BATCH
    # ===================

    def run_batch(
        self,
        records: Iterable[ProductRecord],
        limit: Optional[int] = None,
        dry_run: bool = False,
    ) -> BatchResult:
        """
        Process records one at a time.

        Args:
            records: Observations in processing order
            limit: Stop after this many pending records (NO_CHANGE not counted)
            dry_run: Compute decisions without remote calls or persistence

        Returns:
            BatchResult with every decision and the summary counts
        """
        self.cache.reset()
        result = BatchResult(dry_run=dry_run, limit=limit)
        pending = 0

        logger.info("sync_batch_started", limit=limit, dry_run=dry_run)

        for record in records:
            if limit is not None and pending >= limit:
                logger.info("sync_batch_limit_reached", limit=limit)
                break

            decision = self._process_safely(record, dry_run)
            result.decisions.append(decision)
            result.summary.add(decision)

            if decision.status != SyncStatus.NO_CHANGE:
                pending += 1

        logger.info(
            "sync_batch_completed",
            total=result.summary.total,
            successful=result.summary.successful,
            by_status={k.value: v for k, v in result.summary.by_status.items() if v}
        )

        return result

    def _process_safely(self, record: ProductRecord, dry_run: bool) -> SyncDecision:
        try:
            return self.process_record(record, dry_run=dry_run)
        except Exception as e:
            logger.error(
                "sync_record_unexpected_error",
                key=record.key,
                error=str(e),
                exc_info=True
            )
            return SyncDecision(
                key=record.key,
                status=SyncStatus.FAILED,
                message=str(e),
                error_code="UNEXPECTED_ERROR",
                processed_at=datetime.now(timezone.utc),
            )

    # ===================
    # SINGLE RECORD
    # ===================

    def process_record(self, observation: ProductRecord, dry_run: bool = False) -> SyncDecision:
        """
        Run one sync pass for one record.

        Returns:
            SyncDecision. Business and remote errors are reported in it,
            never raised.
        """
        key = observation.key
        if not key:
            logger.warning("sync_record_skipped", reason="missing key")
            return SyncDecision(
                status=SyncStatus.SKIPPED,
                message="Missing vendor_item_id and item_id",
                error_code="MISSING_FIELD",
                processed_at=datetime.now(timezone.utc),
            )

        snapshot = self.record_store.get_by_key(key)
        changes = self.tracker.diff(snapshot, observation)
        record = self.tracker.apply(snapshot, observation, changes)
        state = self._state(record)

        # Every branch below sets the final status
        decision = SyncDecision(
            key=key,
            state=state,
            status=SyncStatus.FAILED,
            change_flags=sorted(record.change_flags, key=lambda flag: flag.value),
            remote_id=record.remote_id or None,
        )

        logger.info("sync_record_started", key=key, state=state.value, dry_run=dry_run)

        try:
            if state == SyncState.UNSYNCED or (state == SyncState.SYNC_FAILED and not record.remote_id):
                self._create(record, decision, dry_run)
            else:
                self._update(record, snapshot, decision, dry_run)

        except MissingFieldError as e:
            decision.status = SyncStatus.SKIPPED
            decision.message = e.message
            decision.error_code = e.code
            logger.info("sync_record_skipped", key=key, reason=e.message)

        except AppError as e:
            decision.status = SyncStatus.FAILED
            decision.message = e.message
            decision.error_code = e.code
            logger.warning("sync_record_failed", key=key, code=e.code, error=e.message)

        decision.processed_at = datetime.now(timezone.utc)

        if not dry_run:
            self._write_back(record, decision)

        return decision

    def _state(self, record: ProductRecord) -> SyncState:
        if record.sync_status == SyncStatus.FAILED:
            return SyncState.SYNC_FAILED
        if not record.remote_id:
            return SyncState.UNSYNCED
        if record.needs_update:
            return SyncState.SYNCED_DIRTY
        return SyncState.SYNCED_CLEAN

    # ===================
    # CATEGORY
    # ===================

    def _resolve_category(self, record: ProductRecord, decision: SyncDecision, dry_run: bool) -> CategoryResolution:
        """Resolve the category, letting a stored MANUAL assignment win."""
        resolution = self.resolver.resolve(
            record.category_path2,
            record.category_path3,
            record.source_category_id,
            persist=not dry_run,
        )

        override = (
            record.category_match_type == MatchType.MANUAL
            and record.target_category_id
            and record.target_category_id != resolution.target_category_id
        )

        if override:
            logger.info(
                "category_manual_override",
                key=record.key,
                stored=record.target_category_id,
                resolved=resolution.target_category_id
            )
            resolution = CategoryResolution(
                target_category_id=record.target_category_id,
                match_type=MatchType.MANUAL,
                confidence=record.category_confidence if record.category_confidence is not None else 1.0,
                source_key=resolution.source_key,
            )
            if ChangeFlag.CATEGORY_OVERRIDE not in decision.change_flags:
                decision.change_flags.append(ChangeFlag.CATEGORY_OVERRIDE)

        decision.category = resolution
        return resolution

    # ===================
    # CREATE
    # ===================

    def _check_mandatory(self, record: ProductRecord) -> None:
        if is_blank(record.cost_price):
            raise MissingFieldError("cost_price")
        if is_blank(record.weight_kg):
            raise MissingFieldError("weight_kg")
        if is_blank(record.category_path3) and is_blank(record.category_path2):
            raise MissingFieldError("category_path")
        if is_blank(record.title):
            raise MissingFieldError("title")
        if is_blank(record.standard_image):
            raise MissingFieldError("standard_image")

    def build_create_payload(self, record: ProductRecord, resolution: CategoryResolution, price: int) -> dict:
        """Full field set for a new listing."""
        cdn = settings.image_cdn_base

        payload = {
            "category_id": resolution.target_category_id,
            "title": record.title,
            "sale_price": str(price),
            "quantity": self.defaults["quantity"],
            "shipping_no": self.defaults["shipping_no"],
            "standard_image": normalize_image_url(record.standard_image, cdn),
            "extra_images": [normalize_image_url(url, cdn) for url in record.extra_images if url],
            "description": record.description or record.title,
            "production_place_type": self.defaults["production_place_type"],
            "production_place": self.defaults["production_place"],
            "weight_kg": record.weight_kg,
            "seller_code": record.seller_code or f"auto_{record.key}",
        }

        options = _options_payload(record.options)
        if options is not None:
            payload["options"] = options

        return payload

    def _create(self, record: ProductRecord, decision: SyncDecision, dry_run: bool) -> None:
        decision.action = SyncAction.CREATE
        self._check_mandatory(record)

        resolution = self._resolve_category(record, decision, dry_run)
        quote = self.price_service.quote(record.cost_price, record.weight_kg)
        decision.price_quote = quote
        decision.price = quote.final_price

        decision.payload = self.build_create_payload(record, resolution, quote.final_price)
        decision.changed_fields = sorted(decision.payload)

        if dry_run:
            decision.status = SyncStatus.DRY_RUN
            decision.message = self._dry_run_message(resolution)
            return

        response, attempts = self._call_with_retry(
            "create",
            lambda: self.marketplace.create(decision.payload),
            require_remote_id=True,
        )
        decision.attempts = attempts
        decision.remote_id = response.remote_id
        self._mark_success(decision, resolution, "Registered successfully")

    # ===================
    # UPDATE
    # ===================

    def _update(
        self,
        record: ProductRecord,
        snapshot: Optional[ProductRecord],
        decision: SyncDecision,
        dry_run: bool
    ) -> None:
        if decision.state == SyncState.SYNCED_CLEAN:
            decision.status = SyncStatus.NO_CHANGE
            decision.message = "Listing up to date"
            return

        decision.action = SyncAction.UPDATE
        resolution = self._resolve_category(record, decision, dry_run)
        override = ChangeFlag.CATEGORY_OVERRIDE in decision.change_flags

        new_values = self._new_values(record, resolution, decision)
        changed = self._changed_fields(snapshot, new_values)
        if override and "category_id" not in changed:
            changed.append("category_id")

        if not changed:
            decision.action = SyncAction.NONE
            decision.status = SyncStatus.NO_CHANGE
            decision.message = "No changes detected. Update skipped."
            record.needs_update = False
            record.change_flags = []
            logger.info("sync_update_skipped", key=record.key)
            return

        payload = {field: new_values[field] for field in changed}
        payload.update(self._resolve_required(record, snapshot, new_values, payload, dry_run))

        decision.payload = payload
        decision.changed_fields = sorted(changed)

        if dry_run:
            decision.status = SyncStatus.DRY_RUN
            decision.message = self._dry_run_message(resolution)
            return

        response, attempts = self._call_with_retry(
            "update",
            lambda: self.marketplace.update(record.remote_id, payload),
        )
        decision.attempts = attempts
        self._mark_success(decision, resolution, "Updated successfully")

    def _new_values(self, record: ProductRecord, resolution: CategoryResolution, decision: SyncDecision) -> dict:
        """Values this pass would send, before comparing with the snapshot."""
        values = {
            "title": record.title,
            "standard_image": normalize_image_url(record.standard_image, settings.image_cdn_base),
            "description": record.description,
            "weight_kg": record.weight_kg,
        }

        # A fallback never replaces a category the listing already has
        if not (resolution.match_type == MatchType.FALLBACK and record.target_category_id):
            values["category_id"] = resolution.target_category_id

        if not is_blank(record.cost_price) and not is_blank(record.weight_kg):
            quote = self.price_service.quote(record.cost_price, record.weight_kg)
            decision.price_quote = quote
            decision.price = quote.final_price
            values["sale_price"] = str(quote.final_price)

        return {field: value for field, value in values.items() if not is_blank(value)}

    def _changed_fields(self, snapshot: Optional[ProductRecord], new_values: dict) -> list[str]:
        changed = []
        for field in UPDATABLE_FIELDS:
            if field not in new_values:
                continue
            old = getattr(snapshot, RECORD_FIELDS[field]) if snapshot is not None else None
            if field == "standard_image" and old:
                old = normalize_image_url(old, settings.image_cdn_base)
            if not _same_value(field, old, new_values[field]):
                changed.append(field)
        return changed

    def _resolve_required(
        self,
        record: ProductRecord,
        snapshot: Optional[ProductRecord],
        new_values: dict,
        payload: dict,
        dry_run: bool
    ) -> dict:
        """
        Fill every required UPDATE field from an ordered list of sources.

        Sources, first non-empty value wins: new input, current record,
        persisted snapshot, business defaults, live remote listing.

        Raises:
            FieldResolutionError: No source had a value
        """
        remote_cache: dict[str, dict] = {}

        def from_remote(field: str) -> Any:
            if dry_run:
                return None
            if "fields" not in remote_cache:
                try:
                    remote_cache["fields"] = self.marketplace.fetch_current(record.remote_id) or {}
                except RemoteCallFailure as e:
                    logger.warning("remote_fetch_failed", key=record.key, error=e.message)
                    remote_cache["fields"] = {}
            return remote_cache["fields"].get(field)

        def from_record(source: Optional[ProductRecord]) -> Callable[[str], Any]:
            def provider(field: str) -> Any:
                attribute = RECORD_FIELDS.get(field)
                return getattr(source, attribute) if source is not None and attribute else None
            return provider

        providers = [
            ("input", new_values.get),
            ("record", from_record(record)),
            ("snapshot", from_record(snapshot)),
            ("defaults", self.defaults.get),
            ("remote", from_remote),
        ]

        resolved = {}
        for field in UPDATE_REQUIRED_FIELDS:
            if field in payload:
                continue
            for source, provider in providers:
                value = provider(field)
                if not is_blank(value):
                    resolved[field] = str(value) if not isinstance(value, str) else value
                    logger.debug("required_field_resolved", key=record.key, field=field, source=source)
                    break
            else:
                raise FieldResolutionError(field, [name for name, _ in providers])

        return resolved

    # ===================
    # REMOTE CALLS
    # ===================

    def _call_with_retry(
        self,
        operation: str,
        call: Callable[[], RemoteResponse],
        require_remote_id: bool = False
    ) -> tuple[RemoteResponse, int]:
        """
        Call the marketplace, retrying with a fixed delay.

        Returns:
            (successful response, attempts used)

        Raises:
            RemoteCallFailure: Every attempt failed
        """
        last_message = "Unknown API error"
        last_code: Optional[int] = None
        attempts = 0

        for attempt in range(self.max_retries + 1):
            attempts = attempt + 1
            try:
                response = call()
            except RemoteCallFailure as e:
                last_message, last_code = e.message, e.result_code
            else:
                if response.ok and (response.remote_id or not require_remote_id):
                    return response, attempts
                last_message = response.message or "Created item id missing"
                last_code = response.status_code

            logger.warning(
                "remote_call_failed",
                operation=operation,
                attempt=attempts,
                error=last_message
            )

            if attempt < self.max_retries:
                self.sleep(self.retry_delay)

        raise RemoteCallFailure(operation, last_message, last_code)

    # ===================
    # OUTCOME
    # ===================

    def _mark_success(self, decision: SyncDecision, resolution: CategoryResolution, message: str) -> None:
        if resolution.match_type == MatchType.FALLBACK:
            decision.status = SyncStatus.WARNING
            decision.message = "FALLBACK category used (review required)"
        else:
            decision.status = SyncStatus.SUCCESS
            decision.message = message

        logger.info(
            "sync_record_succeeded",
            key=decision.key,
            action=decision.action.value,
            status=decision.status.value,
            remote_id=decision.remote_id,
            attempts=decision.attempts
        )

    def _dry_run_message(self, resolution: CategoryResolution) -> str:
        if resolution.match_type == MatchType.FALLBACK:
            return "DRY-RUN with FALLBACK category (review required)"
        return "DRY-RUN completed"

    def _write_back(self, record: ProductRecord, decision: SyncDecision) -> None:
        """Persist the merged record plus this pass's outcome."""
        fields = record.to_store_fields()

        fields["sync_status"] = decision.status.value
        fields["sync_message"] = decision.message
        fields["last_synced_at"] = decision.processed_at.isoformat()

        # A failed UPDATE keeps the listed values so the next run still sees the diff
        resolution = decision.category
        if resolution is not None and (decision.is_success or not record.remote_id):
            fields["category_match_type"] = resolution.match_type.value
            fields["category_confidence"] = resolution.confidence
            fields["category_key_used"] = resolution.source_key
            fields["target_category_id"] = resolution.target_category_id

            # Keep the listing's category when this pass only fell back
            if resolution.match_type == MatchType.FALLBACK and record.target_category_id:
                fields["target_category_id"] = record.target_category_id

        if decision.is_success:
            if decision.price is not None:
                fields["sale_price"] = decision.price
            fields["remote_id"] = decision.remote_id or record.remote_id
            if decision.action == SyncAction.CREATE:
                fields["seller_code"] = decision.payload.get("seller_code", "")
            fields["needs_update"] = False
            fields["change_flags"] = []

        try:
            self.record_store.upsert(record.key, fields, preserve_fields=PROTECTED_FIELDS)
        except AppError as e:
            logger.error("sync_write_back_failed", key=record.key, error=e.message)
            decision.message = f"{decision.message} (write-back failed: {e.message})"


# Singleton instance for convenience
_sync_service: Optional[SyncService] = None

def get_sync_service() -> SyncService:
    """Get or create a SyncService wired to Supabase and the marketplace API."""
    global _sync_service
    if _sync_service is None:
        from integrations.marketplace_client import MarketplaceClient
        from integrations.supabase_stores import (
            SupabaseMappingStore,
            SupabaseProductRecordStore,
            SupabaseShippingRateStore,
            SupabaseTaxonomyStore,
        )

        cache = ReferenceDataCache(
            SupabaseMappingStore(),
            SupabaseTaxonomyStore(),
            SupabaseShippingRateStore(),
        )
        _sync_service = SyncService(
            record_store=SupabaseProductRecordStore(),
            marketplace=MarketplaceClient(),
            cache=cache,
        )
    return _sync_service
