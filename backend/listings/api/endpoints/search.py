from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Request, status

from listings.api.deps import get_app_settings, get_search_service
from listings.core.config import Settings
from listings.core.exceptions import PageNotFoundError, http_exception_from
from listings.core.logging import get_logger
from listings.schemas import ListingPage
from listings.search.assembler import to_listing_page
from listings.search.query_builder import RouteContext
from listings.search.service import ListingSearchService

logger = get_logger(__name__)
router = APIRouter()


def query_values(request: Request) -> Dict[str, List[str]]:
    """Query parameters with every repeated value kept"""
    params = request.query_params
    return {key: params.getlist(key) for key in params.keys()}


async def _run_search(
    request: Request,
    service: ListingSearchService,
    context: RouteContext,
    page_size: int,
    path: Optional[str] = None,
) -> ListingPage:
    try:
        result = await service.search(query_values(request), context=context, path=path, page_size=page_size)
    except PageNotFoundError as e:
        logger.info("Search page out of range", page=e.page, total_pages=e.total_pages)
        raise http_exception_from(e, status.HTTP_404_NOT_FOUND)
    return to_listing_page(result)


@router.get("/search", response_model=ListingPage)
async def search_all(
    request: Request,
    service: ListingSearchService = Depends(get_search_service),
    settings: Settings = Depends(get_app_settings),
):
    """Search listings across every offering type."""
    return await _run_search(request, service, RouteContext(), settings.LISTING_PAGE_SIZE)


@router.get("/search/{offering_type}", response_model=ListingPage)
async def search_offering(
    offering_type: str,
    request: Request,
    service: ListingSearchService = Depends(get_search_service),
    settings: Settings = Depends(get_app_settings),
):
    """Search listings of one offering type, e.g. ``for-rent``."""
    context = RouteContext(offering_type=offering_type.lower())
    return await _run_search(request, service, context, settings.LISTING_PAGE_SIZE)


@router.get("/search/{offering_type}/{path_filters:path}", response_model=ListingPage)
async def search_offering_with_path(
    offering_type: str,
    path_filters: str,
    request: Request,
    service: ListingSearchService = Depends(get_search_service),
    settings: Settings = Depends(get_app_settings),
):
    """Search with filters encoded in the path (``property-type-villa/area-palm--area-marina``)."""
    context = RouteContext(offering_type=offering_type.lower())
    return await _run_search(request, service, context, settings.LISTING_PAGE_SIZE, path=path_filters)


@router.get("/property-types/{property_type}/{offering_type}", response_model=ListingPage)
async def search_property_type(
    property_type: str,
    offering_type: str,
    request: Request,
    service: ListingSearchService = Depends(get_search_service),
    settings: Settings = Depends(get_app_settings),
):
    """Listings of one property type within an offering type."""
    context = RouteContext(offering_type=offering_type.lower(), property_type=property_type.lower())
    return await _run_search(request, service, context, settings.PROPERTY_TYPE_PAGE_SIZE)
