from typing import List

from fastapi import APIRouter, Depends

from listings.api.deps import get_search_service, get_write_service, require_api_key
from listings.api.endpoints.properties import write_error
from listings.core.exceptions import (
    ResourceNotFoundError, StorageError, ValidationException, bad_request_exception,
    internal_server_exception,
)
from listings.core.logging import get_logger
from listings.schemas import CommunitySummary, CommunityUpdate
from listings.search.service import ListingSearchService
from listings.search.writes import ListingWriteService

logger = get_logger(__name__)
router = APIRouter()


@router.get("", response_model=List[CommunitySummary])
async def list_communities(service: ListingSearchService = Depends(get_search_service)):
    """Community directory with listing counts per offering type."""
    try:
        return await service.list_communities()
    except StorageError:
        raise internal_server_exception()


@router.patch("/{community_id}", dependencies=[Depends(require_api_key)])
async def update_community(
    community_id: int,
    payload: CommunityUpdate,
    service: ListingWriteService = Depends(get_write_service),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise bad_request_exception("No fields to update")
    try:
        return await service.update_community(community_id, changes)
    except (ResourceNotFoundError, ValidationException, StorageError) as e:
        logger.warning("Community update rejected", community_id=community_id, error=e.message)
        raise write_error(e)
