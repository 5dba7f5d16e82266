"""
Cache revalidation by tag
"""

import hmac
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Union

from listings.core.exceptions import CacheError, ValidationException
from listings.core.logging import get_logger

logger = get_logger(__name__)

LISTINGS_TAG = "listings"
# Reads spanning every offering type; any property write invalidates it
ALL_OFFERINGS_TAG = "listings:*"
COMMUNITIES_TAG = "communities"
INSIGHTS_TAG = "insights"
HOMEPAGE_TAG = "homepage"

REVALIDATE_TYPES = ("listings", "communities", "insights", "homepage", "all")


def listings_tag(offering_type: Optional[str] = None) -> str:
    return f"{LISTINGS_TAG}:{offering_type}" if offering_type else LISTINGS_TAG


def property_tag(slug: str) -> str:
    return f"property:{slug}"


def tags_for_type(revalidate_type: str, offering_type: Optional[str] = None) -> List[str]:
    """
    Map a revalidation request type to cache tags.

    ``all`` maps to no tags; callers clear the whole cache instead.
    """
    if revalidate_type == "listings":
        if offering_type:
            return [listings_tag(offering_type), ALL_OFFERINGS_TAG]
        return [LISTINGS_TAG]
    if revalidate_type == "communities":
        return [COMMUNITIES_TAG]
    if revalidate_type == "insights":
        return [INSIGHTS_TAG]
    if revalidate_type == "homepage":
        return [HOMEPAGE_TAG]
    if revalidate_type == "all":
        return []
    raise ValidationException(
        f"Invalid revalidation type: {revalidate_type}",
        error_code="INVALID_REVALIDATE_TYPE",
        details={"allowed": list(REVALIDATE_TYPES)},
    )


def secret_matches(provided: Optional[str], expected: str) -> bool:
    """Constant-time secret comparison; an unset secret never matches"""
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


class Revalidator:
    """Invalidates cached reads after writes or on explicit request"""

    def __init__(self, cache, repository=None):
        self.cache = cache
        self.repository = repository

    async def invalidate_tags(self, tags: Iterable[str]) -> int:
        """
        Invalidate each tag; failures are logged and skipped.

        Returns the number of cache entries removed.
        """
        unique_tags = list(dict.fromkeys(tags))
        removed = 0
        for tag in unique_tags:
            try:
                removed += await self.cache.invalidate(tag)
            except CacheError as e:
                logger.warning("Cache invalidation failed", tag=tag, error=e.message)
        logger.info("Cache tags invalidated", tags=unique_tags, removed=removed)
        return removed

    async def offering_type_slug(self, offering_type_id: Union[int, str, None]) -> Optional[str]:
        """
        Cache tags use offering-type slugs; a numeric id is resolved to its slug.

        Raises:
            ValidationException: no offering type has that id
            StorageError: the lookup failed
        """
        if offering_type_id is None or offering_type_id == "":
            return None
        value = str(offering_type_id).strip()
        if not value.isdigit() or self.repository is None:
            return value
        slug = await self.repository.offering_type_slug(int(value))
        if slug is None:
            raise ValidationException(
                f"Unknown offering type: {offering_type_id}",
                error_code="UNKNOWN_OFFERING_TYPE",
                details={"offeringTypeId": offering_type_id},
            )
        return slug

    async def revalidate(self, revalidate_type: str, offering_type_id: Union[int, str, None] = None) -> datetime:
        """
        Revalidate the cache for one request type.

        ``offering_type_id`` may be an offering-type slug or its numeric id.
        Raises ValidationException for unknown types.
        """
        if revalidate_type == "all":
            try:
                await self.cache.clear()
                logger.info("Cache cleared")
            except CacheError as e:
                logger.warning("Cache clear failed", error=e.message)
        else:
            offering_type = None
            if revalidate_type == "listings":
                offering_type = await self.offering_type_slug(offering_type_id)
            await self.invalidate_tags(tags_for_type(revalidate_type, offering_type))
        return datetime.now(timezone.utc)
