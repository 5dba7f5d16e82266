import pytest

from conftest import add_images, add_properties
from listings.core.exceptions import PageNotFoundError, StorageError
from listings.schemas import NO_RESULTS_MESSAGE, SEARCH_FAILED_MESSAGE
from listings.search.assembler import Degraded, Failed, Ok
from listings.search.query_builder import RouteContext
from listings.search.revalidation import ALL_OFFERINGS_TAG, Revalidator, listings_tag
from listings.search.service import ListingSearchService

FOR_RENT = RouteContext(offering_type="for-rent")
FOR_SALE = RouteContext(offering_type="for-sale")


async def test_rent_price_range_second_page(database, search_service):
    # 25 matching rentals plus rows outside the price range or offering type
    await add_properties(database, 25, offering_type_id=1, price_start=500000, price_step=20000, slug_prefix="match")
    await add_properties(database, 3, offering_type_id=1, price_start=2000000, slug_prefix="expensive")
    await add_properties(database, 4, offering_type_id=2, price_start=600000, slug_prefix="sale")

    result = await search_service.search(
        {"minPrice": "500000", "maxPrice": "1000000", "page": "2", "sortBy": "price-asc"},
        context=FOR_RENT,
        page_size=9,
    )

    assert isinstance(result, Ok)
    page = result.data
    assert page.totalCount == 25
    assert page.metaLinks.model_dump() == {"currentPage": 2, "totalPages": 3, "hasNext": True, "hasPrev": True}
    assert page.pages == [1, 2, 3]
    assert [prop.slug for prop in page.properties] == [f"match-{index}" for index in range(9, 18)]
    assert page.message is None


async def test_default_sort_is_newest_first(database, search_service):
    await add_properties(database, 3)
    result = await search_service.search({}, context=FOR_RENT)
    assert [prop.slug for prop in result.data.properties] == ["listing-2", "listing-1", "listing-0"]


async def test_empty_result_set(database, search_service):
    result = await search_service.search({}, context=FOR_SALE, page_size=12)

    assert isinstance(result, Ok)
    page = result.data
    assert page.properties == []
    assert page.totalCount == 0
    assert page.metaLinks.model_dump() == {"currentPage": 1, "totalPages": 1, "hasNext": False, "hasPrev": False}
    assert page.message == NO_RESULTS_MESSAGE


async def test_page_beyond_range_raises(database, search_service):
    await add_properties(database, 15)

    with pytest.raises(PageNotFoundError) as exc_info:
        await search_service.search({"page": "99"}, context=FOR_RENT, page_size=9)
    assert exc_info.value.total_pages == 2


async def test_second_page_of_empty_result_raises(database, search_service):
    with pytest.raises(PageNotFoundError):
        await search_service.search({"page": "2"}, context=FOR_SALE)


async def test_images_sorted_and_blank_urls_dropped(database, search_service):
    [property_id] = await add_properties(database, 1)
    await add_images(database, property_id, [
        ("https://cdn.example.com/3.jpg", 3),
        ("https://cdn.example.com/1.jpg", 1),
        ("https://cdn.example.com/2.jpg", 2),
        ("   ", 0),
        (None, 4),
    ])

    result = await search_service.search({}, context=FOR_RENT)
    [prop] = result.data.properties

    assert [image.order for image in prop.images] == [1, 2, 3]
    assert prop.hasImages


async def test_property_without_usable_images(database, search_service):
    [property_id] = await add_properties(database, 1)
    await add_images(database, property_id, [("", 0)])

    [prop] = (await search_service.search({}, context=FOR_RENT)).data.properties
    assert prop.images == []
    assert not prop.hasImages


async def test_invalid_filters_degrade(database, search_service):
    await add_properties(database, 2)

    result = await search_service.search({"minPrice": "cheap"}, context=FOR_RENT)

    assert isinstance(result, Degraded)
    assert result.data.totalCount == 2
    assert result.warnings
    assert result.data.warnings == list(result.warnings)


async def test_same_search_twice_is_identical(database, search_service, cache):
    await add_properties(database, 20, price_start=1000, price_step=0)
    raw = {"page": "2"}

    first = await search_service.search(raw, context=FOR_RENT, page_size=9)
    await cache.clear()
    second = await search_service.search(raw, context=FOR_RENT, page_size=9)

    assert first.data == second.data


async def test_results_are_cached(database, search_service, repository, mocker):
    await add_properties(database, 3)
    first = await search_service.search({}, context=FOR_RENT)

    count = mocker.spy(repository, "count")
    second = await search_service.search({}, context=FOR_RENT)

    assert count.call_count == 0
    assert second.data == first.data


async def test_invalidation_refreshes_cached_results(database, search_service, cache):
    await add_properties(database, 2)
    assert (await search_service.search({}, context=FOR_RENT)).data.totalCount == 2

    await add_properties(database, 1, slug_prefix="late")
    assert (await search_service.search({}, context=FOR_RENT)).data.totalCount == 2

    await Revalidator(cache).invalidate_tags([listings_tag("for-rent")])
    assert (await search_service.search({}, context=FOR_RENT)).data.totalCount == 3


async def test_storage_failure_returns_failed(search_service, repository, mocker):
    mocker.patch.object(repository, "count", side_effect=StorageError("count properties failed"))

    result = await search_service.search({}, context=FOR_RENT)

    assert isinstance(result, Failed)
    assert result.error == SEARCH_FAILED_MESSAGE
    assert "count properties" not in result.error


async def test_cache_disabled(database, repository, cache, settings):
    service = ListingSearchService(repository, cache, settings.model_copy(update={"ENABLE_CACHE": False}))
    await add_properties(database, 1)

    await service.search({}, context=FOR_RENT)
    assert await cache.invalidate("listings") == 0


async def test_get_property(database, search_service):
    await add_properties(database, 1, agent_id=1)

    view = await search_service.get_property("listing-0")
    assert view.offeringType.slug == "for-rent"
    assert view.agent.name == "Sara Ali"
    assert view.community.slug == "palm-jumeirah"

    assert await search_service.get_property("nope") is None


async def test_list_communities(database, search_service):
    await add_properties(database, 2, community_id=2)

    directory = {item.slug: item for item in await search_service.list_communities()}
    assert directory["dubai-marina"].rentCount == 2
    assert directory["palm-jumeirah"].propertyCount == 0


async def test_unknown_community_is_ignored_with_warning(database, search_service):
    await add_properties(database, 3)

    result = await search_service.search({"communities": ["no-such-area"]}, context=FOR_RENT)

    assert isinstance(result, Degraded)
    assert result.data.totalCount == 3
    assert result.warnings == ("Ignored unknown community: 'no-such-area'",)


async def test_known_communities_kept_when_others_are_unknown(database, search_service):
    await add_properties(database, 2, community_id=1, slug_prefix="palm")
    await add_properties(database, 3, community_id=2, slug_prefix="marina")

    result = await search_service.search({"communities": "palm-jumeirah,atlantis"}, context=FOR_RENT)

    assert isinstance(result, Degraded)
    assert result.data.totalCount == 2
    assert result.data.warnings == ["Ignored unknown community: 'atlantis'"]


async def test_unknown_property_type_param_is_ignored(database, search_service):
    await add_properties(database, 2)

    result = await search_service.search({"propertyType": "castle"}, context=FOR_RENT)

    assert isinstance(result, Degraded)
    assert result.data.totalCount == 2


async def test_unknown_route_property_type_matches_nothing(database, search_service):
    await add_properties(database, 2)

    result = await search_service.search({}, context=RouteContext(offering_type="for-rent", property_type="castle"))

    assert isinstance(result, Ok)
    assert result.data.totalCount == 0


async def test_unknown_lookup_warning_survives_cache_hit(database, search_service, repository, mocker):
    await add_properties(database, 1)
    raw = {"communities": ["atlantis"], "minPrice": "cheap"}
    first = await search_service.search(raw, context=FOR_RENT)

    existing = mocker.spy(repository, "existing_slugs")
    second = await search_service.search(raw, context=FOR_RENT)

    assert existing.call_count == 0
    assert isinstance(second, Degraded)
    assert sorted(second.warnings) == sorted(first.warnings)
    assert len(second.warnings) == 2


async def test_all_types_search_tagged_for_every_offering(database, search_service, cache):
    await add_properties(database, 1)
    await search_service.search({})

    assert await cache.invalidate(ALL_OFFERINGS_TAG) == 1


async def test_get_property_includes_similar_listings(database, search_service):
    await add_properties(database, 5, community_id=1, slug_prefix="palm")
    await add_properties(database, 2, community_id=2, slug_prefix="marina")

    detail = await search_service.get_property("palm-0")

    assert [prop.slug for prop in detail.similarProperties] == ["palm-4", "palm-3", "palm-2"]


async def test_get_property_without_community_has_no_similar(database, search_service):
    await add_properties(database, 2, community_id=None)

    detail = await search_service.get_property("listing-0")
    assert detail.similarProperties == []


async def test_featured_listings(database, search_service, repository, mocker):
    await add_properties(database, 3, offering_type_id=1, slug_prefix="featured-rent", is_featured=True)
    await add_properties(database, 2, offering_type_id=1, slug_prefix="plain-rent")
    await add_properties(database, 2, offering_type_id=2, slug_prefix="featured-sale", is_featured=True)

    featured = await search_service.featured("for-rent", 2)
    assert [prop.slug for prop in featured] == ["featured-rent-2", "featured-rent-1"]
    assert all(prop.isFeatured for prop in featured)

    fetch = mocker.spy(repository, "fetch_featured")
    assert await search_service.featured("for-rent", 2) == featured
    assert fetch.call_count == 0
