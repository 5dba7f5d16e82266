from conftest import add_properties
from listings.core.exceptions import CacheError
from listings.search.query_builder import RouteContext


def create_payload(**overrides):
    data = {
        "title": "Palm Villa",
        "reference_number": "PV-7",
        "price": 9000000,
        "offering_type": "for-sale",
        "property_type": "villa",
        "community": "palm-jumeirah",
        "images": ["https://cdn.example.com/front.jpg"],
    }
    data.update(overrides)
    return data


async def test_create_invalidates_offering_listings(search_service, write_service):
    stale = await search_service.search({}, context=RouteContext(offering_type="for-sale"))
    assert stale.data.totalCount == 0

    view = await write_service.create_property(create_payload())

    assert view.slug == "palm-villa-pv-7"
    assert view.hasImages
    fresh = await search_service.search({}, context=RouteContext(offering_type="for-sale"))
    assert fresh.data.totalCount == 1


async def test_create_refreshes_all_types_search(database, search_service, write_service):
    await add_properties(database, 1, offering_type_id=1, slug_prefix="rent")
    await add_properties(database, 1, offering_type_id=2, slug_prefix="sale")
    assert (await search_service.search({})).data.totalCount == 2

    await write_service.create_property(create_payload(offering_type="for-rent", property_type="apartment"))

    assert (await search_service.search({})).data.totalCount == 3


async def test_update_refreshes_similar_listings(search_service, write_service):
    first = await write_service.create_property(create_payload(reference_number="PV-1"))
    second = await write_service.create_property(create_payload(reference_number="PV-2", offering_type="for-rent"))
    detail = await search_service.get_property(first.slug)
    assert [prop.price for prop in detail.similarProperties] == [9000000]

    await write_service.update_property(second.id, {"price": 100})

    detail = await search_service.get_property(first.slug)
    assert [prop.price for prop in detail.similarProperties] == [100]


async def test_create_invalidates_community_directory(search_service, write_service):
    before = {item.slug: item for item in await search_service.list_communities()}
    assert before["palm-jumeirah"].saleCount == 0

    await write_service.create_property(create_payload())

    after = {item.slug: item for item in await search_service.list_communities()}
    assert after["palm-jumeirah"].saleCount == 1


async def test_update_invalidates_old_and_new_offering_types(search_service, write_service):
    view = await write_service.create_property(create_payload())
    sale = RouteContext(offering_type="for-sale")
    rent = RouteContext(offering_type="for-rent")
    assert (await search_service.search({}, context=sale)).data.totalCount == 1
    assert (await search_service.search({}, context=rent)).data.totalCount == 0

    await write_service.update_property(view.id, {"offering_type": "for-rent"})

    assert (await search_service.search({}, context=sale)).data.totalCount == 0
    assert (await search_service.search({}, context=rent)).data.totalCount == 1


async def test_update_invalidates_property_detail(search_service, write_service):
    view = await write_service.create_property(create_payload())
    assert (await search_service.get_property(view.slug)).price == 9000000

    await write_service.update_property(view.id, {"price": 8500000})

    assert (await search_service.get_property(view.slug)).price == 8500000


async def test_reorder_images_invalidates_detail(search_service, write_service):
    view = await write_service.create_property(create_payload(images=["a.jpg", "b.jpg"]))
    first, second = [image.id for image in view.images]
    await search_service.get_property(view.slug)

    await write_service.reorder_images(view.id, [second, first])

    detail = await search_service.get_property(view.slug)
    assert [image.id for image in detail.images] == [second, first]


async def test_update_community_invalidates_directory(search_service, write_service):
    await search_service.list_communities()

    result = await write_service.update_community(1, {"name": "The Palm"})

    assert result["name"] == "The Palm"
    directory = {item.slug: item for item in await search_service.list_communities()}
    assert directory["palm-jumeirah"].name == "The Palm"


async def test_write_succeeds_when_invalidation_fails(write_service, cache, mocker):
    mocker.patch.object(cache, "invalidate", side_effect=CacheError("redis down"))

    view = await write_service.create_property(create_payload())

    assert view.slug == "palm-villa-pv-7"
    assert cache.invalidate.await_count == 3
