"""
Sync API routes.

POST /api/sync/run                 run a batch over submitted records
POST /api/sync/price-quote         price breakdown for cost + weight
POST /api/sync/resolve-category    category resolution for a source path
"""

from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog

from exceptions import AppError
from models.category import CategoryResolution
from models.pricing import PriceQuote
from models.product import SyncRunRequest
from models.sync import BatchResult, PriceQuoteRequest, ResolveCategoryRequest
from services.sync_service import get_sync_service

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/sync", tags=["Sync"])


# ===================
# EXCEPTION HANDLER
# ===================

def handle_error(e: Exception) -> JSONResponse:
    """Convert exception to JSON response."""
    if isinstance(e, AppError):
        return JSONResponse(
            status_code=e.status_code,
            content=e.to_dict()
        )
    logger.error("unexpected_error", error=str(e), type=type(e).__name__)
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred"
            }
        }
    )


# ===================
# ROUTES
# ===================

@router.post("/run", response_model=BatchResult)
def run_sync(request: SyncRunRequest):
    """
    Run one sync batch.

    Per-record failures are reported in the decisions; the batch itself
    always completes.
    """
    try:
        service = get_sync_service()
        return service.run_batch(request.records, limit=request.limit, dry_run=request.dry_run)
    except Exception as e:
        return handle_error(e)


@router.post("/price-quote", response_model=PriceQuote)
def price_quote(request: PriceQuoteRequest):
    """Price breakdown. 422 for invalid input, 404 when no shipping band matches."""
    try:
        service = get_sync_service()
        return service.price_service.quote(request.cost_price, request.weight_kg)
    except Exception as e:
        return handle_error(e)


@router.post("/resolve-category", response_model=CategoryResolution)
def resolve_category(request: ResolveCategoryRequest):
    """Resolve a source category path. Never fails for bad paths."""
    try:
        service = get_sync_service()
        return service.resolver.resolve(
            request.category_path2,
            request.category_path3,
            request.source_category_id,
            persist=request.persist,
        )
    except Exception as e:
        return handle_error(e)
