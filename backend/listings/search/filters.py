"""
Filter normalization for listing searches.

Raw query-string values arrive as strings, lists of strings or not at all.
``normalize_filters`` turns them into a typed :class:`FilterCriteria`.
Anything that cannot be parsed is dropped and recorded as a warning; the
normalizer never raises.
"""

import enum
import math
import re
from dataclasses import dataclass, field, replace
from typing import Any, Iterable, List, Mapping, Optional, Sequence, Tuple

from listings.db.models import Furnishing, PropertyStatus


class SortOrder(str, enum.Enum):
    PRICE_ASC = "price-asc"
    PRICE_DESC = "price-desc"
    DATE_ASC = "date-asc"
    DATE_DESC = "date-desc"


DEFAULT_SORT = SortOrder.DATE_DESC

# Accepted spellings for each filter, first match wins
PARAM_ALIASES = {
    "min_price": ("minPrice", "min-price", "min_price"),
    "max_price": ("maxPrice", "max-price", "max_price"),
    "min_size": ("minSize", "min-size", "min-area", "min_size"),
    "max_size": ("maxSize", "max-size", "max-area", "max_size"),
    "bedrooms": ("bed", "bedrooms"),
    "bathrooms": ("bath", "bathrooms"),
    "communities": ("communities", "communities[]", "areas", "area"),
    "furnishing": ("furnishing",),
    "status": ("status",),
    "query": ("q", "query"),
    "sort": ("sortBy", "sort-by", "sort"),
    "property_type": ("propertyType", "property-type", "unitType"),
    "page": ("page",),
}

_NO_CONSTRAINT = {"", "any", "all"}
_SLUG_RE = re.compile(r"^[a-z0-9][a-z0-9_-]*$")


@dataclass(frozen=True)
class FilterCriteria:
    """Typed search filters built from one request"""
    min_price: Optional[int] = None
    max_price: Optional[int] = None
    min_size: Optional[int] = None
    max_size: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[int] = None
    communities: Tuple[str, ...] = ()
    furnishing: Optional[Furnishing] = None
    status: Optional[PropertyStatus] = None
    query: Optional[str] = None
    property_type: Optional[str] = None
    sort: SortOrder = DEFAULT_SORT
    page: int = 1
    warnings: Tuple[str, ...] = field(default=(), compare=False)

    def cache_fields(self) -> dict:
        """Fields that determine the result set, in a JSON-friendly form"""
        return {
            "min_price": self.min_price,
            "max_price": self.max_price,
            "min_size": self.min_size,
            "max_size": self.max_size,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "communities": list(self.communities),
            "furnishing": self.furnishing.value if self.furnishing else None,
            "status": self.status.value if self.status else None,
            "query": self.query,
            "property_type": self.property_type,
            "sort": self.sort.value,
            "page": self.page,
        }


@dataclass(frozen=True)
class PathFilters:
    property_type: Optional[str] = None
    communities: Tuple[str, ...] = ()


def _values(raw: Mapping[str, Any], names: Iterable[str]) -> List[str]:
    """Collect every string value given under any of ``names``"""
    collected: List[str] = []
    for name in names:
        value = raw.get(name)
        if value is None:
            continue
        if isinstance(value, (list, tuple)):
            collected.extend(str(v) for v in value if v is not None)
        else:
            collected.append(str(value))
    return collected


def _first(raw: Mapping[str, Any], names: Sequence[str]) -> Optional[str]:
    values = _values(raw, names)
    for value in values:
        if value.strip():
            return value.strip()
    return None


def parse_int(value: Optional[str]) -> Optional[int]:
    """Parse a non-negative integer, returning None for anything else"""
    if value is None:
        return None
    text = value.strip().replace(",", "")
    if not text:
        return None
    try:
        number = float(text)
    except ValueError:
        return None
    if not math.isfinite(number) or number < 0 or not number.is_integer():
        return None
    return int(number)


def _parse_enum(enum_cls, value: Optional[str]):
    if value is None:
        return None
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    for member in enum_cls:
        if member.value == key:
            return member
    return None


def _parse_communities(values: Iterable[str]) -> Tuple[Tuple[str, ...], List[str]]:
    seen = []
    rejected = []
    for value in values:
        for part in value.split(","):
            slug = part.strip().lower()
            if not slug:
                continue
            if not _SLUG_RE.match(slug):
                rejected.append(part.strip())
                continue
            if slug not in seen:
                seen.append(slug)
    return tuple(seen), rejected


def extract_path_filters(path: Optional[str]) -> PathFilters:
    """
    Extract filters encoded in listing URLs.

    ``/dubai/properties/residential/for-sale/property-type-villa/area-palm--area-marina``
    yields property type ``villa`` and communities ``("palm", "marina")``.
    """
    if not path:
        return PathFilters()

    segments = [segment for segment in path.split("/") if segment]
    property_type = None
    communities: Tuple[str, ...] = ()

    for segment in segments:
        if segment.startswith("property-type-") and property_type is None:
            candidate = segment[len("property-type-"):].strip().lower()
            if candidate and _SLUG_RE.match(candidate):
                property_type = candidate
        elif segment.startswith("area-") and not communities:
            areas = [area[len("area-"):] if area.startswith("area-") else area for area in segment.split("--")]
            communities, _ = _parse_communities(areas)

    return PathFilters(property_type=property_type, communities=communities)


def _numeric(raw: Mapping[str, Any], key: str, warnings: List[str]) -> Optional[int]:
    value = _first(raw, PARAM_ALIASES[key])
    if value is None:
        return None
    parsed = parse_int(value)
    if parsed is None:
        warnings.append(f"Ignored invalid {key.replace('_', ' ')}: {value!r}")
    return parsed


def normalize_filters(raw: Optional[Mapping[str, Any]], path: Optional[str] = None) -> FilterCriteria:
    """
    Build FilterCriteria from raw request values.

    Args:
        raw: Query-string or form values; each value may be a string or a list of strings
        path: Optional request path carrying path-encoded filters
    """
    raw = raw or {}
    warnings: List[str] = []

    min_price = _numeric(raw, "min_price", warnings)
    max_price = _numeric(raw, "max_price", warnings)
    min_size = _numeric(raw, "min_size", warnings)
    max_size = _numeric(raw, "max_size", warnings)

    if min_price is not None and max_price is not None and min_price > max_price:
        warnings.append("Minimum price is greater than maximum price")
    if min_size is not None and max_size is not None and min_size > max_size:
        warnings.append("Minimum size is greater than maximum size")

    rooms = {}
    for key in ("bedrooms", "bathrooms"):
        value = _first(raw, PARAM_ALIASES[key])
        if value is None or value.lower() in _NO_CONSTRAINT or value == "0":
            rooms[key] = None
            continue
        rooms[key] = parse_int(value)
        if rooms[key] is None:
            warnings.append(f"Ignored invalid {key}: {value!r}")

    communities, rejected = _parse_communities(_values(raw, PARAM_ALIASES["communities"]))
    for value in rejected:
        warnings.append(f"Ignored invalid community: {value!r}")

    furnishing_raw = _first(raw, PARAM_ALIASES["furnishing"])
    furnishing = _parse_enum(Furnishing, furnishing_raw)
    if furnishing_raw and furnishing is None and furnishing_raw.lower() not in _NO_CONSTRAINT:
        warnings.append(f"Ignored invalid furnishing: {furnishing_raw!r}")

    status_raw = _first(raw, PARAM_ALIASES["status"])
    status = _parse_enum(PropertyStatus, status_raw)
    if status_raw and status is None and status_raw.lower() not in _NO_CONSTRAINT:
        warnings.append(f"Ignored invalid status: {status_raw!r}")

    sort_raw = _first(raw, PARAM_ALIASES["sort"])
    sort = DEFAULT_SORT
    if sort_raw:
        try:
            sort = SortOrder(sort_raw.lower())
        except ValueError:
            warnings.append(f"Ignored unknown sort order: {sort_raw!r}")

    property_type = None
    property_type_raw = _first(raw, PARAM_ALIASES["property_type"])
    if property_type_raw:
        candidate = property_type_raw.replace('"', "").strip().lower()
        if candidate in _NO_CONSTRAINT:
            candidate = ""
        if candidate and _SLUG_RE.match(candidate):
            property_type = candidate
        elif candidate:
            warnings.append(f"Ignored invalid property type: {property_type_raw!r}")

    page = parse_int(_first(raw, PARAM_ALIASES["page"]))
    if page is None or page < 1:
        page = 1

    query = _first(raw, PARAM_ALIASES["query"])

    criteria = FilterCriteria(
        min_price=min_price,
        max_price=max_price,
        min_size=min_size,
        max_size=max_size,
        bedrooms=rooms["bedrooms"],
        bathrooms=rooms["bathrooms"],
        communities=communities,
        furnishing=furnishing,
        status=status,
        query=query[:200] if query else None,
        property_type=property_type,
        sort=sort,
        page=page,
        warnings=tuple(warnings),
    )

    if path:
        path_filters = extract_path_filters(path)
        merged = tuple(dict.fromkeys(path_filters.communities + criteria.communities))
        criteria = replace(
            criteria,
            communities=merged,
            property_type=path_filters.property_type or criteria.property_type,
        )

    return criteria
