from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status

from listings.api.deps import get_search_service, get_write_service, require_api_key
from listings.core.exceptions import (
    ResourceNotFoundError, StorageError, ValidationException, bad_request_exception,
    http_exception_from, internal_server_exception, not_found_exception,
)
from listings.core.logging import get_logger
from listings.schemas import ImageOrderUpdate, PropertyCreate, PropertyDetail, PropertyUpdate, PropertyView
from listings.search.service import ListingSearchService
from listings.search.writes import ListingWriteService

logger = get_logger(__name__)
router = APIRouter()


def write_error(e: Exception) -> HTTPException:
    """Map write-path failures to HTTP errors"""
    if isinstance(e, ResourceNotFoundError):
        if e.error_code == "UNKNOWN_LOOKUP":
            return http_exception_from(e, status.HTTP_400_BAD_REQUEST)
        return http_exception_from(e, status.HTTP_404_NOT_FOUND)
    if isinstance(e, ValidationException):
        return http_exception_from(e, status.HTTP_400_BAD_REQUEST)
    if isinstance(e, StorageError) and e.error_code == "SLUG_CONFLICT":
        return http_exception_from(e, status.HTTP_409_CONFLICT)
    return internal_server_exception()


@router.get("/featured/{offering_type}", response_model=List[PropertyView])
async def featured_properties(
    offering_type: str,
    limit: int = Query(default=6, ge=1, le=50),
    service: ListingSearchService = Depends(get_search_service),
):
    """Featured listings of one offering type, newest first."""
    try:
        return await service.featured(offering_type.lower(), limit)
    except StorageError:
        raise internal_server_exception()


@router.get("/{slug}", response_model=PropertyDetail)
async def get_property(slug: str, service: ListingSearchService = Depends(get_search_service)):
    """Get property by slug, with similar listings from its community."""
    logger.info("Property details requested", slug=slug)
    try:
        view = await service.get_property(slug)
    except StorageError:
        raise internal_server_exception()

    if view is None:
        logger.warning("Property not found", slug=slug)
        raise not_found_exception("Property not found")
    return view


@router.post("", response_model=PropertyView, status_code=status.HTTP_201_CREATED,
             dependencies=[Depends(require_api_key)])
async def create_property(payload: PropertyCreate, service: ListingWriteService = Depends(get_write_service)):
    """Create a property; the slug is generated from title and reference number."""
    try:
        return await service.create_property(payload.model_dump())
    except (ResourceNotFoundError, ValidationException, StorageError) as e:
        logger.warning("Property create rejected", error=e.message, error_code=e.error_code)
        raise write_error(e)


@router.patch("/{property_id}", response_model=PropertyView, dependencies=[Depends(require_api_key)])
async def update_property(
    property_id: int,
    payload: PropertyUpdate,
    service: ListingWriteService = Depends(get_write_service),
):
    """Update a property; only the fields sent are changed."""
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise bad_request_exception("No fields to update")
    try:
        return await service.update_property(property_id, changes)
    except (ResourceNotFoundError, ValidationException, StorageError) as e:
        logger.warning("Property update rejected", property_id=property_id, error=e.message)
        raise write_error(e)


@router.put("/{property_id}/images/order", response_model=PropertyView, dependencies=[Depends(require_api_key)])
async def reorder_images(
    property_id: int,
    payload: ImageOrderUpdate,
    service: ListingWriteService = Depends(get_write_service),
):
    """Set the display order of a property's images."""
    try:
        return await service.reorder_images(property_id, payload.image_ids)
    except (ResourceNotFoundError, ValidationException, StorageError) as e:
        logger.warning("Image reorder rejected", property_id=property_id, error=e.message)
        raise write_error(e)
