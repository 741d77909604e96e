from datetime import timedelta

import pytest

from reprise.application.item_service import ItemService
from reprise.domain.errors import AlreadyRevisitedTodayError, ItemNotFoundError, UserNotFoundError


@pytest.fixture
def service(store, clock):
    return ItemService(store, store, clock)


@pytest.fixture
def alice(store, make_user):
    user = make_user(min_revisit_days=2)
    store.put_user(user)
    return user


@pytest.mark.asyncio
async def test_add_item_uses_clock(service, alice, now):
    item = await service.add_item(alice.id, "Two Sum", link="https://example.com/1", topic="arrays")

    assert item.added_at == now
    assert item.topic == "arrays"
    assert item.id.startswith("item_")


@pytest.mark.asyncio
async def test_list_items_newest_first_and_retired_on_request(service, store, alice, make_item):
    store.items[alice.id] = [make_item(30, item_id="old"), make_item(3, item_id="new")]
    await service.archive_item(alice.id, "old")

    active = await service.list_items(alice.id)
    everything = await service.list_items(alice.id, include_retired=True)

    assert [i.id for i in active] == ["new"]
    assert [i.id for i in everything] == ["new", "old"]


@pytest.mark.asyncio
async def test_detail_has_weight_flag_and_history(service, store, alice, make_item, clock, now):
    store.items[alice.id] = [make_item(30, item_id="x")]
    clock.current = now - timedelta(days=3)
    await service.record_revisit(alice.id, "x", notes="first pass, slow")
    clock.current = now
    await service.record_revisit(alice.id, "x")

    detail = await service.get_item_detail(alice.id, "x")

    assert detail.revisited_today is True
    assert detail.weight.item_id == "x"
    assert detail.weight.times_revisited == 2
    assert detail.weight.is_eligible is False
    assert [h.notes for h in detail.item.history] == ["first pass, slow", None]
    assert [h.revisited_at for h in detail.item.history] == [now - timedelta(days=3), now]
    assert await service.get_item_weight(alice.id, "x") == detail.weight


@pytest.mark.asyncio
async def test_revisit_twice_in_a_day(service, store, alice, make_item):
    store.items[alice.id] = [make_item(30, item_id="x")]
    await service.record_revisit(alice.id, "x")

    with pytest.raises(AlreadyRevisitedTodayError):
        await service.record_revisit(alice.id, "x", notes="again")
    assert len((await service.get_item_detail(alice.id, "x")).item.history) == 1


@pytest.mark.asyncio
async def test_update_only_given_fields(service, store, alice, make_item):
    item = make_item(30, item_id="x", title="Old title")
    item.link = "https://example.com/old"
    store.items[alice.id] = [item]

    updated = await service.update_item(alice.id, "x", title="New title", difficulty="hard")

    assert updated.title == "New title"
    assert updated.difficulty == "hard"
    assert updated.link == "https://example.com/old"


@pytest.mark.asyncio
async def test_delete_removes_item(service, store, alice, make_item):
    store.items[alice.id] = [make_item(30, item_id="x")]

    await service.delete_item(alice.id, "x")

    assert await service.list_items(alice.id, include_retired=True) == []
    with pytest.raises(ItemNotFoundError):
        await service.get_item_detail(alice.id, "x")


@pytest.mark.asyncio
async def test_unknown_user(service):
    with pytest.raises(UserNotFoundError):
        await service.list_items("ghost")
    with pytest.raises(UserNotFoundError):
        await service.add_item("ghost", "x")
