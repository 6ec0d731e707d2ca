"""
Category resolver: source category path → target marketplace category.

Resolution order:
    1. MANUAL row in the mapping dictionary for the normalized path
    2. AUTO suggestions scored against the target taxonomy, written to the
       dictionary for human review and never applied automatically
    3. FALLBACK category, always non-empty

resolve() never raises. Store failures degrade to FALLBACK.
"""

from datetime import datetime, timezone
from typing import Optional
import structlog

from config import settings
from models.category import (
    CategoryCandidate,
    CategoryMapping,
    CategoryNode,
    CategoryResolution,
    MatchType,
)
from services.reference_cache_service import ReferenceDataCache
from utils.text_utils import normalize_category_path, tokenize_path

logger = structlog.get_logger(__name__)


LEAF_BONUS = 0.1
DEPTH_BONUS = 0.05
DEPTH_BONUS_MIN_DEPTH = 3


def index_mappings(rows: list[CategoryMapping]) -> dict[str, CategoryMapping]:
    """
    Collapse dictionary rows into one row per key.

    A MANUAL row beats a non-MANUAL one; otherwise a row with a target id
    beats one without. Ties keep the first row seen.
    """
    indexed: dict[str, CategoryMapping] = {}

    for row in rows:
        key = normalize_category_path(row.source_key)
        if not key:
            continue

        current = indexed.get(key)
        if current is None:
            indexed[key] = row
            continue

        row_manual = row.match_type == MatchType.MANUAL
        current_manual = current.match_type == MatchType.MANUAL

        if row_manual and not current_manual:
            indexed[key] = row
        elif row_manual == current_manual and row.target_category_id and not current.target_category_id:
            indexed[key] = row

    return indexed


def match_score(source_tokens: list[str], node: CategoryNode) -> float:
    """
    Score a taxonomy node against source tokens.

    overlap ratio + 0.1 for a leaf + 0.05 for depth >= 3, capped at 1.
    A source token overlaps when it is a substring of a target token or
    the other way round.
    """
    if not source_tokens or not node.full_path:
        return 0.0

    target_tokens = tokenize_path(node.full_path)
    if not target_tokens:
        return 0.0

    matched = sum(
        1 for source in source_tokens
        if any(target in source or source in target for target in target_tokens)
    )
    score = matched / len(source_tokens)

    if node.is_leaf:
        score += LEAF_BONUS
    if node.depth >= DEPTH_BONUS_MIN_DEPTH:
        score += DEPTH_BONUS

    return min(score, 1.0)


def find_candidates(
    path2: Optional[str],
    path3: Optional[str],
    taxonomy: list[CategoryNode],
    min_score: float = 0.25,
    top_n: int = 3,
) -> list[CategoryCandidate]:
    """
    Rank taxonomy nodes for a source path.

    Path3 tokens come first, path2 tokens are appended without duplicates.
    Ranking: confidence desc, depth desc, leaf first.
    """
    tokens = list(dict.fromkeys(tokenize_path(path3) + tokenize_path(path2)))
    if not tokens or not taxonomy:
        return []

    scored = []
    for node in taxonomy:
        score = match_score(tokens, node)
        if score < min_score:
            continue
        scored.append(CategoryCandidate(
            target_category_id=node.id,
            target_full_path=node.full_path,
            is_leaf=node.is_leaf,
            depth=node.depth,
            confidence=round(score, 2),
        ))

    scored.sort(key=lambda c: (-c.confidence, -c.depth, not c.is_leaf))
    return scored[:top_n]


class CategoryResolverService:
    """
    Resolves target categories against the run's reference data.
    """

    def __init__(self, cache: ReferenceDataCache):
        self.cache = cache
        self.fallback_id = settings.fallback_category_id
        self.fallback_path = settings.fallback_category_path
        self.min_score = settings.auto_match_min_score
        self.top_n = settings.auto_match_top_n

    def _fallback(
        self,
        key: str,
        candidates: Optional[list[CategoryCandidate]] = None
    ) -> CategoryResolution:
        return CategoryResolution(
            target_category_id=self.fallback_id,
            match_type=MatchType.FALLBACK,
            confidence=0.0,
            target_full_path=self.fallback_path,
            source_key=key,
            candidates=candidates or [],
        )

    def resolve(
        self,
        path2: Optional[str],
        path3: Optional[str],
        source_category_id: Optional[str] = None,
        persist: bool = True,
    ) -> CategoryResolution:
        """
        Resolve a source category path.

        Args:
            path2: Two-segment source path
            path3: Three-segment source path, the dictionary key source
            source_category_id: Raw source id, logged only
            persist: Write AUTO/FALLBACK rows to the mapping dictionary

        Returns:
            CategoryResolution with a non-empty target id
        """
        key = normalize_category_path(path3)

        logger.debug(
            "resolving_category",
            key=key,
            source_category_id=source_category_id
        )

        if not key:
            logger.info("category_fallback_empty_path", source_category_id=source_category_id)
            return self._fallback(key)

        try:
            existing = index_mappings(self.cache.mappings()).get(key)
        except Exception as e:
            logger.error("mapping_dictionary_unavailable", key=key, error=str(e))
            return self._fallback(key)

        if existing and existing.match_type == MatchType.MANUAL and existing.target_category_id:
            confidence = existing.confidence if existing.confidence is not None else 1.0
            logger.info(
                "category_manual_match",
                key=key,
                target_category_id=existing.target_category_id
            )
            return CategoryResolution(
                target_category_id=existing.target_category_id,
                match_type=MatchType.MANUAL,
                confidence=confidence,
                target_full_path=existing.target_full_path,
                source_key=key,
            )

        try:
            taxonomy = self.cache.taxonomy()
        except Exception as e:
            logger.error("taxonomy_unavailable", key=key, error=str(e))
            taxonomy = []

        candidates = find_candidates(path2, path3, taxonomy, self.min_score, self.top_n)

        if persist and existing is None:
            if candidates:
                self._write_suggestions(key, path2, path3, candidates)
            else:
                self._write_fallback_row(key, path2, path3)

        logger.info(
            "category_fallback_used",
            key=key,
            candidates=[c.target_category_id for c in candidates]
        )

        return self._fallback(key, candidates)

    def _append(self, mapping: CategoryMapping) -> bool:
        try:
            self.cache.mapping_store.append(mapping)
        except Exception as e:
            logger.warning(
                "mapping_write_failed",
                key=mapping.source_key,
                match_type=mapping.match_type.value,
                error=str(e)
            )
            return False
        self.cache.record_mapping(mapping)
        return True

    def _write_suggestions(
        self,
        key: str,
        path2: Optional[str],
        path3: Optional[str],
        candidates: list[CategoryCandidate]
    ) -> None:
        now = datetime.now(timezone.utc)
        total = len(candidates)

        for i, candidate in enumerate(candidates, start=1):
            written = self._append(CategoryMapping(
                source_key=key,
                source_path2=path2 or "",
                source_path3=path3 or "",
                target_category_id=candidate.target_category_id,
                target_full_path=candidate.target_full_path,
                match_type=MatchType.AUTO,
                confidence=candidate.confidence,
                note=f"AUTO suggestion #{i} of {total} (review required)",
                updated_at=now,
                updated_by="system",
            ))
            if not written:
                return

        logger.info("auto_suggestions_written", key=key, count=total)

    def _write_fallback_row(self, key: str, path2: Optional[str], path3: Optional[str]) -> None:
        written = self._append(CategoryMapping(
            source_key=key,
            source_path2=path2 or "",
            source_path3=path3 or "",
            target_category_id=self.fallback_id,
            target_full_path=self.fallback_path,
            match_type=MatchType.FALLBACK,
            confidence=0.0,
            note="No AUTO match found - requires manual review",
            updated_at=datetime.now(timezone.utc),
            updated_by="system",
        ))
        if written:
            logger.info("fallback_mapping_written", key=key)
