"""
Target category refresh.

Downloads the marketplace category tree, flattens it into CategoryNode
rows (depth, parent, full path, leaf flag) and overwrites the taxonomy
store that category resolution reads from.
"""

from dataclasses import dataclass, field
from typing import Any, Optional
import structlog

from exceptions import RemoteCallFailure
from integrations.stores import CategoryApi, TaxonomyStore
from models.category import CategoryNode
from utils.text_utils import PATH_SEPARATOR

logger = structlog.get_logger(__name__)


# Envelope keys that may hold the category list, in priority order
LIST_KEYS = ("ResultObject", "resultObject", "Categories", "categories", "Data", "data")

# Node attribute → accepted API keys, in priority order
ID_KEYS = ("CATE_S_CD", "cate_s_cd", "CateSCd", "cateSCd", "CateCD", "cateCd")
NAME_KEYS = ("CATE_S_NM", "cate_s_nm", "CateSNm", "cateSNm", "CateNM", "cateNm", "name")
PARENT_KEYS = ("CATE_L_CD", "cate_l_cd", "CateLCd", "cateLCd", "ParentCD", "parentCd")
SORT_KEYS = ("SORT_ORDER", "sort_order", "SortOrder", "sortOrder")
CHILDREN_KEYS = ("Children", "children", "SubCategories", "subCategories")


def _first(item: dict, keys: tuple) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def _category_list(payload: Any) -> list:
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in LIST_KEYS:
            value = payload.get(key)
            if value:
                return value if isinstance(value, list) else []
    return []


def _sort_order(raw: Any) -> Optional[int]:
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


def flatten_categories(payload: Any) -> list[CategoryNode]:
    """
    Flatten a nested category tree, parents before their children.

    Args:
        payload: Response envelope, or the bare category list

    Returns:
        One CategoryNode per category with an id; entries without an id
        are dropped together with their subtree
    """
    nodes: list[CategoryNode] = []

    def visit(item: Any, depth: int, parent_id: Optional[str], parent_path: str) -> None:
        if not isinstance(item, dict):
            return

        node_id = _first(item, ID_KEYS)
        if node_id is None:
            return

        name = str(_first(item, NAME_KEYS) or "").strip()
        full_path = f"{parent_path}{PATH_SEPARATOR}{name}" if parent_path else name
        children = _first(item, CHILDREN_KEYS)
        children = children if isinstance(children, list) else []
        listed_parent = _first(item, PARENT_KEYS)

        nodes.append(CategoryNode(
            id=str(node_id),
            parent_id=str(listed_parent) if listed_parent is not None else parent_id,
            depth=depth,
            name=name,
            full_path=full_path,
            is_leaf=not children,
            sort_order=_sort_order(_first(item, SORT_KEYS)),
        ))

        for child in children:
            visit(child, depth + 1, str(node_id), full_path)

    for item in _category_list(payload):
        visit(item, 1, None, "")

    return nodes


@dataclass
class TaxonomySyncResult:
    """Outcome of one category refresh."""
    fetched: int = 0
    written: int = 0
    dry_run: bool = False
    nodes: list[CategoryNode] = field(default_factory=list)

    @property
    def leaf_count(self) -> int:
        return sum(1 for node in self.nodes if node.is_leaf)


class TaxonomySyncService:
    """Refreshes the taxonomy store from the marketplace category API."""

    def __init__(self, marketplace: CategoryApi, taxonomy_store: TaxonomyStore):
        self.marketplace = marketplace
        self.taxonomy_store = taxonomy_store

    def sync(self, dry_run: bool = False) -> TaxonomySyncResult:
        """
        Fetch, flatten and store the category tree.

        Args:
            dry_run: Fetch and flatten only, leave the store untouched

        Raises:
            RemoteCallFailure: API call failed or returned no categories;
                               the stored taxonomy is kept in that case
            DatabaseError: Store could not be overwritten
        """
        logger.info("taxonomy_sync_started", dry_run=dry_run)

        payload = self.marketplace.fetch_categories()
        nodes = flatten_categories(payload)

        if not nodes:
            logger.warning("taxonomy_sync_empty", payload_type=type(payload).__name__)
            raise RemoteCallFailure("categories", "Category list was empty")

        result = TaxonomySyncResult(fetched=len(nodes), dry_run=dry_run, nodes=nodes)

        if not dry_run:
            result.written = self.taxonomy_store.replace_all(nodes)

        logger.info(
            "taxonomy_sync_completed",
            fetched=result.fetched,
            written=result.written,
            leaves=result.leaf_count,
            dry_run=dry_run
        )
        return result


_taxonomy_sync_service: Optional[TaxonomySyncService] = None

def get_taxonomy_sync_service() -> TaxonomySyncService:
    """Get or create a TaxonomySyncService wired to Supabase and the marketplace API."""
    global _taxonomy_sync_service
    if _taxonomy_sync_service is None:
        from integrations.marketplace_client import MarketplaceClient
        from integrations.supabase_stores import SupabaseTaxonomyStore

        _taxonomy_sync_service = TaxonomySyncService(MarketplaceClient(), SupabaseTaxonomyStore())
    return _taxonomy_sync_service
