"""
Property storage access.

Translates query descriptors into SQLAlchemy statements and runs the
listing write operations. SQLAlchemy errors and timeouts surface as
StorageError; missing lookups as ResourceNotFoundError.
"""

import asyncio
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from listings.core.exceptions import ResourceNotFoundError, StorageError, ValidationException
from listings.core.logging import get_logger
from listings.db.models import (
    Agent, City, Community, Developer, OfferingType, Property, PropertyImage,
    PropertyType, SubCommunity,
)
from listings.db.session import Database
from listings.search.filters import SortOrder
from listings.search.predicates import Equals, OneOf, Predicate, QueryDescriptor, Range, TextMatch
from listings.utils.slugs import candidate_slug, next_free_suffix, property_slug

logger = get_logger(__name__)

MAX_SLUG_ATTEMPTS = 5

# Predicate fields backed by a lookup table, matched on slug
LOOKUP_FIELDS = {
    "offering_type": (Property.offering_type_id, OfferingType),
    "property_type": (Property.property_type_id, PropertyType),
    "community": (Property.community_id, Community),
}

COLUMN_FIELDS = {
    "price": Property.price,
    "size": Property.size,
    "bedrooms": Property.bedrooms,
    "bathrooms": Property.bathrooms,
    "furnishing": Property.furnishing,
    "status": Property.status,
    "availability": Property.availability,
    "is_luxe": Property.is_luxe,
    "title": Property.title,
    "description": Property.description,
    "name": Property.name,
}

SORT_COLUMNS = {
    SortOrder.PRICE_ASC: (Property.price.asc(), Property.id.asc()),
    SortOrder.PRICE_DESC: (Property.price.desc(), Property.id.desc()),
    SortOrder.DATE_ASC: (Property.created_at.asc(), Property.id.asc()),
    SortOrder.DATE_DESC: (Property.created_at.desc(), Property.id.desc()),
}

EAGER_RELATIONS = (
    selectinload(Property.images),
    selectinload(Property.agent),
    selectinload(Property.community),
    selectinload(Property.sub_community),
    selectinload(Property.city),
    selectinload(Property.offering_type),
    selectinload(Property.property_type),
    selectinload(Property.developer),
)

# Writable scalar columns; lookups and images are handled separately
PROPERTY_COLUMNS = (
    "title", "name", "description", "price", "size", "bedrooms", "bathrooms",
    "reference_number", "permit_number", "availability", "status", "furnishing",
    "is_luxe", "is_featured", "is_exclusive",
)
REQUIRED_COLUMNS = {"availability", "status", "is_luxe", "is_featured", "is_exclusive"}

# Offering-type slugs reported in the community directory
DIRECTORY_COUNTS = {
    "for-rent": "rentCount",
    "for-sale": "saleCount",
    "commercial-rent": "commercialRentCount",
    "commercial-sale": "commercialSaleCount",
}


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _lookup_ids(model, values: Iterable[Any]):
    return select(model.id).where(model.slug.in_(list(values)))


def compile_predicate(predicate: Predicate):
    """Translate one predicate into a SQLAlchemy boolean expression"""
    if isinstance(predicate, Equals):
        if predicate.field in LOOKUP_FIELDS:
            column, model = LOOKUP_FIELDS[predicate.field]
            return column.in_(_lookup_ids(model, [predicate.value]))
        return COLUMN_FIELDS[predicate.field] == predicate.value

    if isinstance(predicate, OneOf):
        if predicate.field in LOOKUP_FIELDS:
            column, model = LOOKUP_FIELDS[predicate.field]
            return column.in_(_lookup_ids(model, predicate.values))
        return COLUMN_FIELDS[predicate.field].in_(list(predicate.values))

    if isinstance(predicate, Range):
        column = COLUMN_FIELDS[predicate.field]
        bounds = []
        if predicate.min is not None:
            bounds.append(column >= predicate.min)
        if predicate.max is not None:
            bounds.append(column <= predicate.max)
        return and_(*bounds)

    if isinstance(predicate, TextMatch):
        pattern = f"%{_escape_like(predicate.query)}%"
        matches = []
        for field in predicate.fields:
            if field == "community":
                matches.append(Property.community_id.in_(
                    select(Community.id).where(Community.name.ilike(pattern, escape="\\"))
                ))
            else:
                matches.append(COLUMN_FIELDS[field].ilike(pattern, escape="\\"))
        return or_(*matches)

    raise ValueError(f"Unsupported predicate: {predicate!r}")


def compile_where(predicates: Sequence[Predicate]) -> list:
    return [compile_predicate(predicate) for predicate in predicates]


def is_slug_conflict(error: Optional[BaseException]) -> bool:
    """True for a unique violation on the property slug, under SQLite or PostgreSQL"""
    if not isinstance(error, IntegrityError):
        return False
    return "slug" in str(error.orig).lower()


class PropertyRepository:
    """Read and write access to listings"""

    def __init__(self, database: Database, timeout: Optional[float] = None):
        self.database = database
        self.timeout = timeout

    async def _run(self, operation, description: str):
        """Run a storage coroutine under the timeout, mapping failures to StorageError"""
        try:
            if self.timeout:
                return await asyncio.wait_for(operation, timeout=self.timeout)
            return await operation
        except asyncio.TimeoutError as e:
            logger.error("Storage call timed out", operation=description, timeout=self.timeout)
            raise StorageError(f"{description} timed out", error_code="STORAGE_TIMEOUT") from e
        except SQLAlchemyError as e:
            logger.error("Storage call failed", operation=description, error=str(e))
            raise StorageError(f"{description} failed", error_code="STORAGE_ERROR") from e

    # Read path

    async def count(self, descriptor: QueryDescriptor) -> int:
        async def _count():
            async with self.database.session() as session:
                statement = select(func.count(Property.id)).where(*compile_where(descriptor.predicates))
                return (await session.execute(statement)).scalar_one()

        return await self._run(_count(), "count properties")

    async def fetch_page(self, descriptor: QueryDescriptor) -> List[Property]:
        async def _fetch():
            async with self.database.session() as session:
                statement = (
                    select(Property)
                    .where(*compile_where(descriptor.predicates))
                    .options(*EAGER_RELATIONS)
                    .order_by(*SORT_COLUMNS[descriptor.sort])
                    .limit(descriptor.limit)
                    .offset(descriptor.offset)
                )
                return list((await session.execute(statement)).scalars().all())

        return await self._run(_fetch(), "fetch properties")

    async def get_by_slug(self, slug: str) -> Optional[Property]:
        async def _get():
            async with self.database.session() as session:
                statement = select(Property).where(Property.slug == slug).options(*EAGER_RELATIONS)
                return (await session.execute(statement)).scalar_one_or_none()

        return await self._run(_get(), "get property")

    async def existing_slugs(self, field: str, slugs: Iterable[str]) -> Set[str]:
        """The subset of ``slugs`` that name a row of the lookup table behind ``field``"""
        wanted = list(dict.fromkeys(slugs))
        if not wanted:
            return set()
        _, model = LOOKUP_FIELDS[field]

        async def _existing():
            async with self.database.session() as session:
                rows = await session.execute(select(model.slug).where(model.slug.in_(wanted)))
                return set(rows.scalars().all())

        return await self._run(_existing(), f"resolve {field} slugs")

    async def offering_type_slug(self, offering_type_id: int) -> Optional[str]:
        async def _slug():
            async with self.database.session() as session:
                rows = await session.execute(select(OfferingType.slug).where(OfferingType.id == offering_type_id))
                return rows.scalar_one_or_none()

        return await self._run(_slug(), "get offering type")

    async def fetch_similar(self, prop: Property, limit: int) -> List[Property]:
        """Other listings in the same community, newest first"""
        if prop.community_id is None:
            return []

        async def _similar():
            async with self.database.session() as session:
                statement = (
                    select(Property)
                    .where(Property.community_id == prop.community_id, Property.id != prop.id)
                    .options(*EAGER_RELATIONS)
                    .order_by(*SORT_COLUMNS[SortOrder.DATE_DESC])
                    .limit(limit)
                )
                return list((await session.execute(statement)).scalars().all())

        return await self._run(_similar(), "fetch similar properties")

    async def fetch_featured(self, offering_type: str, limit: int) -> List[Property]:
        """Featured listings of one offering type, newest first"""
        async def _featured():
            async with self.database.session() as session:
                statement = (
                    select(Property)
                    .where(
                        Property.is_featured.is_(True),
                        compile_predicate(Equals("offering_type", offering_type)),
                    )
                    .options(*EAGER_RELATIONS)
                    .order_by(*SORT_COLUMNS[SortOrder.DATE_DESC])
                    .limit(limit)
                )
                return list((await session.execute(statement)).scalars().all())

        return await self._run(_featured(), "fetch featured properties")

    async def community_directory(self) -> List[Dict[str, Any]]:
        """Communities with their property counts per offering type"""
        async def _directory():
            async with self.database.session() as session:
                communities = (await session.execute(
                    select(Community).order_by(Community.name.asc(), Community.id.asc())
                )).scalars().all()

                counts = (await session.execute(
                    select(Property.community_id, OfferingType.slug, func.count(Property.id))
                    .join(OfferingType, Property.offering_type_id == OfferingType.id)
                    .where(Property.community_id.is_not(None))
                    .group_by(Property.community_id, OfferingType.slug)
                )).all()

            by_community: Dict[int, Dict[str, int]] = {}
            for community_id, offering_slug, count in counts:
                by_community.setdefault(community_id, {})[offering_slug] = count

            directory = []
            for community in communities:
                per_offering = by_community.get(community.id, {})
                entry = {
                    "id": community.id,
                    "name": community.name,
                    "slug": community.slug,
                    "shortName": community.short_name,
                    "propertyCount": sum(per_offering.values()),
                }
                for offering_slug, key in DIRECTORY_COUNTS.items():
                    entry[key] = per_offering.get(offering_slug, 0)
                directory.append(entry)
            return directory

        return await self._run(_directory(), "list communities")

    # Write path

    async def _lookup(self, session: AsyncSession, model, slug: Optional[str], label: str, required: bool = False):
        if not slug:
            if required:
                raise ValidationException(f"{label} is required", error_code="MISSING_LOOKUP")
            return None
        row = (await session.execute(select(model).where(model.slug == slug))).scalar_one_or_none()
        if row is None:
            raise ResourceNotFoundError(
                f"Unknown {label}: {slug}",
                error_code="UNKNOWN_LOOKUP",
                details={"field": label, "slug": slug},
            )
        return row

    async def _taken_slugs(self, session: AsyncSession, base: str) -> set:
        rows = await session.execute(
            select(Property.slug).where(or_(Property.slug == base, Property.slug.like(f"{_escape_like(base)}-%", escape="\\")))
        )
        return set(rows.scalars().all())

    async def create_property(self, data: Dict[str, Any]) -> Tuple[Property, str]:
        """
        Insert a property with a unique slug.

        Returns the stored property and its offering-type slug. A concurrent
        insert that takes the chosen slug first trips the unique constraint;
        the insert is then retried with the next free suffix. Any other
        integrity error is raised as StorageError straight away.
        """
        _validate_non_negative(data)
        base = property_slug(data["title"], data.get("reference_number"))

        for attempt in range(MAX_SLUG_ATTEMPTS):
            try:
                return await self._run(self._insert_property(data, base), "create property")
            except StorageError as e:
                if not is_slug_conflict(e.__cause__):
                    raise
                logger.warning("Slug collision on insert, retrying", base_slug=base, attempt=attempt + 1)

        raise StorageError(
            f"Could not allocate a unique slug for {base}",
            error_code="SLUG_CONFLICT",
            details={"base_slug": base},
        )

    async def _insert_property(self, data: Dict[str, Any], base: str) -> Tuple[Property, str]:
        async with self.database.session() as session:
            offering_type = await self._lookup(session, OfferingType, data.get("offering_type"), "offering_type", required=True)
            property_type = await self._lookup(session, PropertyType, data.get("property_type"), "property_type", required=True)
            community = await self._lookup(session, Community, data.get("community"), "community")
            sub_community = await self._lookup(session, SubCommunity, data.get("sub_community"), "sub_community")
            city = await self._lookup(session, City, data.get("city"), "city")
            agent = await self._lookup(session, Agent, data.get("agent"), "agent")
            developer = await self._lookup(session, Developer, data.get("developer"), "developer")

            slug = candidate_slug(base, next_free_suffix(base, await self._taken_slugs(session, base)))

            columns = {key: data[key] for key in PROPERTY_COLUMNS if data.get(key) is not None}
            prop = Property(
                **columns,
                slug=slug,
                offering_type=offering_type,
                property_type=property_type,
                community=community,
                sub_community=sub_community,
                city=city,
                agent=agent,
                developer=developer,
                images=[PropertyImage(url=url, order=index) for index, url in enumerate(data.get("images") or [])],
            )
            session.add(prop)
            await session.flush()
            property_id = prop.id

        stored = await self._get_by_id(property_id)
        return stored, offering_type.slug

    async def _get_by_id(self, property_id: int) -> Property:
        async with self.database.session() as session:
            statement = select(Property).where(Property.id == property_id).options(*EAGER_RELATIONS)
            prop = (await session.execute(statement)).scalar_one_or_none()
        if prop is None:
            raise ResourceNotFoundError(f"Property {property_id} not found", error_code="PROPERTY_NOT_FOUND")
        return prop

    async def update_property(self, property_id: int, changes: Dict[str, Any]) -> Tuple[Property, set]:
        """
        Apply changes to a property.

        Returns the updated property and the offering-type slugs it belonged
        to before and after the update.
        """
        _validate_non_negative(changes)

        async def _update():
            async with self.database.session() as session:
                prop = (await session.execute(
                    select(Property).where(Property.id == property_id)
                    .options(selectinload(Property.images), selectinload(Property.offering_type))
                )).scalar_one_or_none()
                if prop is None:
                    raise ResourceNotFoundError(f"Property {property_id} not found", error_code="PROPERTY_NOT_FOUND")

                offering_slugs = {prop.offering_type.slug}

                if changes.get("offering_type"):
                    prop.offering_type = await self._lookup(session, OfferingType, changes["offering_type"], "offering_type")
                    offering_slugs.add(prop.offering_type.slug)
                if changes.get("property_type"):
                    prop.property_type = await self._lookup(session, PropertyType, changes["property_type"], "property_type")
                if "community" in changes:
                    prop.community = await self._lookup(session, Community, changes["community"], "community")

                for key, value in changes.items():
                    if key not in PROPERTY_COLUMNS:
                        continue
                    if value is None and key in REQUIRED_COLUMNS:
                        continue
                    setattr(prop, key, value)

                if changes.get("images") is not None:
                    prop.images = [PropertyImage(url=url, order=index) for index, url in enumerate(changes["images"])]

                await session.flush()
            return offering_slugs

        offering_slugs = await self._run(_update(), "update property")
        return await self._get_by_id(property_id), offering_slugs

    async def reorder_images(self, property_id: int, image_ids: Sequence[int]) -> Property:
        """Rewrite display orders so listed images come first, in the given order"""
        async def _reorder():
            async with self.database.session() as session:
                prop = (await session.execute(
                    select(Property).where(Property.id == property_id).options(selectinload(Property.images))
                )).scalar_one_or_none()
                if prop is None:
                    raise ResourceNotFoundError(f"Property {property_id} not found", error_code="PROPERTY_NOT_FOUND")

                by_id = {image.id: image for image in prop.images}
                unknown = [image_id for image_id in image_ids if image_id not in by_id]
                if unknown:
                    raise ValidationException(
                        "Images do not belong to this property",
                        error_code="UNKNOWN_IMAGE",
                        details={"image_ids": unknown},
                    )

                listed = list(dict.fromkeys(image_ids))
                rest = [image.id for image in sorted(prop.images, key=lambda i: (i.order, i.id)) if image.id not in listed]
                for order, image_id in enumerate(listed + rest):
                    by_id[image_id].order = order
                await session.flush()

        await self._run(_reorder(), "reorder images")
        return await self._get_by_id(property_id)

    async def update_community(self, community_id: int, changes: Dict[str, Any]) -> Community:
        async def _update():
            async with self.database.session() as session:
                community = await session.get(Community, community_id)
                if community is None:
                    raise ResourceNotFoundError(f"Community {community_id} not found", error_code="COMMUNITY_NOT_FOUND")
                for key, value in changes.items():
                    setattr(community, key, value)
                await session.flush()
                return community

        return await self._run(_update(), "update community")


def _validate_non_negative(data: Dict[str, Any]) -> None:
    for key in ("price", "size"):
        value = data.get(key)
        if value is not None and value < 0:
            raise ValidationException(f"{key} must be non-negative", error_code="INVALID_VALUE", details={"field": key})
