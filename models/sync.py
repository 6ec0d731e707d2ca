"""
Sync schemas: per-record states, outcomes, change sets, remote responses
and batch reports.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import Field

from models.base import BaseSchema
from models.category import CategoryResolution, MatchType
from models.pricing import PriceQuote


class SyncState(str, Enum):
    """Where a record stands before a sync pass."""
    UNSYNCED = "UNSYNCED"            # No remote listing yet
    SYNCED_CLEAN = "SYNCED_CLEAN"    # Listed, nothing pending
    SYNCED_DIRTY = "SYNCED_DIRTY"    # Listed, change pending
    SYNC_FAILED = "SYNC_FAILED"      # Last attempt failed, retried next run


class SyncAction(str, Enum):
    """Remote operation chosen for a record."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    NONE = "NONE"


class SyncStatus(str, Enum):
    """Outcome of one sync pass, as reported in the batch summary."""
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"        # Succeeded with FALLBACK category
    NO_CHANGE = "NO_CHANGE"
    SKIPPED = "SKIPPED"
    FAILED = "FAILED"
    DRY_RUN = "DRY_RUN"


class ChangeFlag(str, Enum):
    """Semantically meaningful difference between snapshot and observation."""
    PRICE_UP = "PRICE_UP"
    PRICE_DOWN = "PRICE_DOWN"
    OPTIONS_CHANGED = "OPTIONS_CHANGED"
    CATEGORY_OVERRIDE = "CATEGORY_OVERRIDE"


class ChangeSet(BaseSchema):
    """Result of diffing a stored snapshot against a new observation."""

    flags: set[ChangeFlag] = Field(default_factory=set)
    previous_price: Optional[str] = None
    previous_signature: Optional[str] = None

    @property
    def has_changes(self) -> bool:
        return bool(self.flags)

    def sorted_flags(self) -> list[str]:
        return sorted(flag.value for flag in self.flags)


class RemoteResponse(BaseSchema):
    """
    Normalized marketplace response.

    status_code 0 means success; anything else is a failure with message.
    """

    status_code: int
    message: str = ""
    remote_id: Optional[str] = None
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status_code == 0


class SyncDecision(BaseSchema):
    """Everything one orchestration pass decided for one record."""

    key: str = ""
    state: Optional[SyncState] = None
    action: SyncAction = SyncAction.NONE
    status: SyncStatus
    category: Optional[CategoryResolution] = None
    price: Optional[int] = None
    price_quote: Optional[PriceQuote] = None
    change_flags: list[ChangeFlag] = Field(default_factory=list)
    changed_fields: list[str] = Field(default_factory=list)
    payload: dict[str, Any] = Field(default_factory=dict)
    remote_id: Optional[str] = None
    attempts: int = 0
    message: str = ""
    error_code: Optional[str] = None
    processed_at: Optional[datetime] = None

    @property
    def is_success(self) -> bool:
        return self.status in (SyncStatus.SUCCESS, SyncStatus.WARNING)

    @property
    def needs_review(self) -> bool:
        return self.category is not None and self.category.needs_review


class BatchSummary(BaseSchema):
    """Counts per outcome, mode and category match type."""

    total: int = 0
    by_status: dict[SyncStatus, int] = Field(
        default_factory=lambda: {status: 0 for status in SyncStatus}
    )
    by_action: dict[SyncAction, int] = Field(
        default_factory=lambda: {action: 0 for action in SyncAction}
    )
    by_match_type: dict[MatchType, int] = Field(
        default_factory=lambda: {match: 0 for match in MatchType}
    )

    @property
    def successful(self) -> int:
        """SUCCESS and WARNING both count as a completed sync."""
        return self.by_status[SyncStatus.SUCCESS] + self.by_status[SyncStatus.WARNING]

    def add(self, decision: SyncDecision) -> None:
        self.total += 1
        self.by_status[decision.status] += 1
        self.by_action[decision.action] += 1
        if decision.category is not None and decision.status != SyncStatus.NO_CHANGE:
            self.by_match_type[decision.category.match_type] += 1


class BatchResult(BaseSchema):
    """Decisions of one batch run plus its summary."""

    dry_run: bool = False
    limit: Optional[int] = None
    decisions: list[SyncDecision] = Field(default_factory=list)
    summary: BatchSummary = Field(default_factory=BatchSummary)


# ===================
# API REQUESTS
# ===================

class PriceQuoteRequest(BaseSchema):
    """Raw cost and weight as scraped."""

    cost_price: str = Field(..., description="Source-currency cost, may carry separators")
    weight_kg: str = Field(..., description="Weight in kg")


class ResolveCategoryRequest(BaseSchema):
    category_path2: str = ""
    category_path3: str = ""
    source_category_id: Optional[str] = None
    persist: bool = Field(False, description="Write AUTO/FALLBACK rows to the dictionary")
