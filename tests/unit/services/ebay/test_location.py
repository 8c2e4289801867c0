# tests/unit/services/ebay/test_location.py
import asyncio

import pytest
from unittest.mock import AsyncMock

from crosslist.core.exceptions import LocationUnavailableError, PermanentRejectionError, TransientNetworkError
from crosslist.schemas.ebay import Location
from crosslist.services.ebay.location import LocationCache, LocationResolver
from tests.mocks.mock_marketplace import FakeEbayClient


def location(key, status):
    return Location(merchant_location_key=key, merchant_location_status=status)


async def test_uses_first_enabled_location(settings):
    client = FakeEbayClient(locations=[location("wh-1", "DISABLED"), location("wh-2", "ENABLED")])

    key = await LocationResolver(client, settings).ensure_location()

    assert key == "wh-2"
    assert client.calls_to("enable_location") == []
    assert client.calls_to("create_location") == []


async def test_enables_disabled_location(settings):
    client = FakeEbayClient(locations=[location("wh-1", "DISABLED")])

    key = await LocationResolver(client, settings).ensure_location()

    assert key == "wh-1"
    assert client.calls_to("enable_location") == [("enable_location", "wh-1")]


async def test_disabled_location_used_when_enable_fails(settings):
    client = FakeEbayClient(locations=[location("wh-1", "DISABLED")])
    client.enable_location = AsyncMock(side_effect=PermanentRejectionError("cannot enable", status_code=400))

    key = await LocationResolver(client, settings).ensure_location()

    assert key == "wh-1"
    client.enable_location.assert_awaited_once_with("wh-1")


async def test_creates_location_when_none_exist(settings):
    client = FakeEbayClient()

    key = await LocationResolver(client, settings).ensure_location()

    assert key == settings.EBAY_LOCATION_KEY
    assert client.calls_to("create_location") == [("create_location", settings.EBAY_LOCATION_KEY)]


async def test_create_conflict_fetches_existing(settings):
    client = FakeEbayClient()
    client.location_create_conflict = True

    key = await LocationResolver(client, settings).ensure_location()

    assert key == settings.EBAY_LOCATION_KEY
    assert client.calls_to("get_location") == [("get_location", settings.EBAY_LOCATION_KEY)]


async def test_create_conflict_without_location_raises(settings):
    client = FakeEbayClient()
    client.location_create_conflict = True
    client.get_location = AsyncMock(return_value=None)

    with pytest.raises(LocationUnavailableError):
        await LocationResolver(client, settings).ensure_location()


async def test_create_failure_raises(settings):
    client = FakeEbayClient()
    client.create_location = AsyncMock(side_effect=PermanentRejectionError("bad address", status_code=400))

    with pytest.raises(LocationUnavailableError) as exc_info:
        await LocationResolver(client, settings).ensure_location()

    assert "bad address" in str(exc_info.value)


async def test_list_failure_falls_through_to_create(settings):
    client = FakeEbayClient()
    client.list_locations = AsyncMock(side_effect=TransientNetworkError("timeout"))

    key = await LocationResolver(client, settings).ensure_location()

    assert key == settings.EBAY_LOCATION_KEY
    assert len(client.calls_to("create_location")) == 1


def test_default_location_payload(settings):
    payload = LocationResolver(FakeEbayClient(), settings).default_location_payload()

    assert payload.name == settings.EBAY_LOCATION_NAME
    assert payload.address.country == settings.EBAY_LOCATION_COUNTRY
    assert payload.to_api()["location"]["address"]["city"] == settings.EBAY_LOCATION_CITY


async def test_location_cache_resolves_once(settings):
    client = FakeEbayClient(locations=[location("wh-1", "ENABLED")])
    cache = LocationCache(LocationResolver(client, settings))

    keys = await asyncio.gather(*(cache.get() for _ in range(5)))

    assert keys == ["wh-1"] * 5
    assert len(client.calls_to("list_locations")) == 1
