"""
Change tracker: compares a stored product snapshot with a new observation.

Only cost price and option set changes count. A missing or zero baseline
disables the comparison rather than reporting a change.
"""

import hashlib
import json
from typing import Any, Optional
import structlog

from models.product import OBSERVED_FIELDS, PROTECTED_FIELDS, ProductRecord, is_blank
from models.sync import ChangeFlag, ChangeSet
from utils.text_utils import format_decimal, parse_positive_decimal

logger = structlog.get_logger(__name__)


REVIEW_FIELDS = ("category_match_type", "category_confidence")


def _canonical(value: Any) -> Any:
    """Lowercase keys and text, sort lists, so ordering never matters."""
    if isinstance(value, dict):
        return {str(k).strip().lower(): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        items = [_canonical(v) for v in value]
        return sorted(items, key=lambda v: json.dumps(v, sort_keys=True, ensure_ascii=False))
    if isinstance(value, str):
        return value.strip().lower()
    return value


def options_signature(options: Any) -> str:
    """
    Stable hash of an option set.

    Accepts a JSON string, a dict like {"type": ..., "values": [...]} or a
    list. Text that is not JSON is hashed as an opaque string.

    Returns:
        SHA-256 hex digest, or "" when there are no options
    """
    if isinstance(options, str):
        text = options.strip()
        if not text:
            return ""
        try:
            options = json.loads(text)
        except ValueError:
            options = text

    if is_blank(options):
        return ""

    canonical = json.dumps(
        _canonical(options),
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class ChangeTrackerService:
    """
    Detects price and option changes between snapshots.
    """

    def signature(self, options: Any) -> str:
        return options_signature(options)

    def diff(self, previous: Optional[ProductRecord], observation: ProductRecord) -> ChangeSet:
        """
        Diff a stored snapshot against a new observation.

        Args:
            previous: Stored snapshot, None for a first observation
            observation: Freshly scraped record

        Returns:
            ChangeSet with PRICE_UP/PRICE_DOWN and OPTIONS_CHANGED flags
        """
        changes = ChangeSet()
        if previous is None:
            return changes

        old_price = parse_positive_decimal(previous.cost_price)
        new_price = parse_positive_decimal(observation.cost_price)

        if old_price is not None and new_price is not None and old_price != new_price:
            changes.flags.add(ChangeFlag.PRICE_UP if new_price > old_price else ChangeFlag.PRICE_DOWN)
            changes.previous_price = format_decimal(old_price)

        old_signature = previous.options_signature or options_signature(previous.options)
        new_signature = options_signature(observation.options)

        if old_signature and new_signature and old_signature != new_signature:
            changes.flags.add(ChangeFlag.OPTIONS_CHANGED)
            changes.previous_signature = old_signature

        if changes.has_changes:
            logger.info(
                "changes_detected",
                key=observation.key,
                flags=changes.sorted_flags(),
                previous_price=changes.previous_price
            )

        return changes

    def apply(
        self,
        snapshot: Optional[ProductRecord],
        observation: ProductRecord,
        changes: Optional[ChangeSet] = None
    ) -> ProductRecord:
        """
        Merge a new observation into the stored snapshot.

        Observed fields take the new value unless it is empty. Protected
        fields are only replaced by a non-empty new value. Pending flags
        from earlier runs are kept until a successful sync clears them.
        """
        if changes is None:
            changes = self.diff(snapshot, observation)

        new_signature = options_signature(observation.options)

        if snapshot is None:
            return observation.model_copy(update={
                "options_signature": new_signature or observation.options_signature,
            })

        merged = snapshot.model_dump()

        # Reviewer edits (category id and match type) arrive with the observation
        for name in OBSERVED_FIELDS + PROTECTED_FIELDS + REVIEW_FIELDS:
            value = getattr(observation, name)
            if not is_blank(value):
                merged[name] = value

        if new_signature:
            merged["options_signature"] = new_signature
        if changes.previous_price is not None:
            merged["previous_price"] = changes.previous_price

        flags = set(snapshot.change_flags) | changes.flags
        merged["change_flags"] = sorted(flags, key=lambda flag: flag.value)
        merged["needs_update"] = snapshot.needs_update or observation.needs_update or changes.has_changes

        return ProductRecord(**merged)
