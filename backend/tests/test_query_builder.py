from listings.db.models import Furnishing
from listings.search.filters import SortOrder, normalize_filters
from listings.search.predicates import Equals, OneOf, Range, TextMatch
from listings.search.query_builder import TEXT_SEARCH_FIELDS, RouteContext, build_predicates, build_query


def test_no_filters_no_predicates():
    assert build_predicates(normalize_filters({}), RouteContext()) == []


def test_route_offering_type():
    predicates = build_predicates(normalize_filters({}), RouteContext(offering_type="for-rent"))
    assert predicates == [Equals("offering_type", "for-rent")]


def test_route_property_type_wins_over_criteria():
    criteria = normalize_filters({"propertyType": "apartment"})
    predicates = build_predicates(criteria, RouteContext(offering_type="for-sale", property_type="villa"))
    assert Equals("property_type", "villa") in predicates
    assert Equals("property_type", "apartment") not in predicates


def test_full_filter_set():
    criteria = normalize_filters({
        "minPrice": "500000",
        "maxPrice": "1000000",
        "maxSize": "3000",
        "bed": "2",
        "bath": "3",
        "communities": "palm-jumeirah,dubai-marina",
        "furnishing": "furnished",
        "q": "sea view",
    })
    predicates = build_predicates(criteria, RouteContext(offering_type="for-rent"))

    assert predicates == [
        Equals("offering_type", "for-rent"),
        OneOf("community", ("palm-jumeirah", "dubai-marina")),
        Range("price", 500000, 1000000),
        Range("size", None, 3000),
        Equals("bedrooms", 2),
        Equals("bathrooms", 3),
        Equals("furnishing", Furnishing.FURNISHED),
        TextMatch(TEXT_SEARCH_FIELDS, "sea view"),
    ]


def test_build_query_offset_and_sort():
    criteria = normalize_filters({"page": "3", "sortBy": "price-asc"})
    descriptor = build_query(criteria, RouteContext(), page_size=9)
    assert descriptor.limit == 9
    assert descriptor.offset == 18
    assert descriptor.sort == SortOrder.PRICE_ASC


def test_descriptor_is_stable():
    raw = {"minPrice": "100", "communities": "a-area"}
    context = RouteContext(offering_type="for-rent")
    assert build_query(normalize_filters(raw), context, 12) == build_query(normalize_filters(raw), context, 12)
