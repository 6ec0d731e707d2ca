"""
Category schemas: target taxonomy nodes, mapping dictionary rows and
resolution results.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator

from models.base import BaseSchema


class MatchType(str, Enum):
    """How a target category was chosen."""
    MANUAL = "MANUAL"        # Curated by a reviewer, authoritative
    AUTO = "AUTO"            # Scored suggestion, advisory only
    FALLBACK = "FALLBACK"    # Fixed default, flagged for review


class CategoryNode(BaseSchema):
    """Target marketplace taxonomy entry (read-only per run)."""

    id: str = Field(..., min_length=1, description="Target category id")
    parent_id: Optional[str] = None
    depth: int = Field(default=0, ge=0)
    name: str = ""
    full_path: str = ""
    is_leaf: bool = False
    sort_order: Optional[int] = None

    @field_validator("depth", mode="before")
    @classmethod
    def depth_from_text(cls, v):
        """Sheets and CSV exports hand depth over as text."""
        if v in (None, ""):
            return 0
        return int(v)

    @field_validator("is_leaf", mode="before")
    @classmethod
    def leaf_from_text(cls, v):
        if isinstance(v, str):
            return v.strip().lower() in ("true", "1", "y", "yes")
        return bool(v)


class CategoryMapping(BaseSchema):
    """
    One row of the source → target mapping dictionary.

    Keyed by the normalized source category path. Several rows may share
    a key (AUTO suggestions); at most one MANUAL row is authoritative.
    """

    source_key: str = Field(..., description="Normalized source category path")
    source_path2: str = ""
    source_path3: str = ""
    target_category_id: str = ""
    target_full_path: str = ""
    match_type: MatchType = MatchType.AUTO
    confidence: Optional[float] = Field(None, ge=0, le=1)
    note: str = ""
    updated_at: Optional[datetime] = None
    updated_by: str = ""

    @field_validator("confidence", mode="before")
    @classmethod
    def confidence_from_text(cls, v):
        if v in (None, ""):
            return None
        return float(v)


class CategoryCandidate(BaseSchema):
    """Scored AUTO suggestion."""

    target_category_id: str
    target_full_path: str
    is_leaf: bool
    depth: int
    confidence: float = Field(..., ge=0, le=1)


class CategoryResolution(BaseSchema):
    """Outcome of resolving one source category path."""

    target_category_id: str = Field(..., min_length=1)
    match_type: MatchType
    confidence: float = Field(..., ge=0, le=1)
    target_full_path: str = ""
    source_key: str = ""
    candidates: list[CategoryCandidate] = Field(default_factory=list)

    @property
    def needs_review(self) -> bool:
        return self.match_type == MatchType.FALLBACK
