"""Tests for the consumer stock lookup client."""

import asyncio
from datetime import UTC, datetime

import pytest
from shared.provider.fake_adapter import FakeInventoryProvider, store_stock
from shared.provider.port import NearbyStock, NetworkError, ProviderTimeout
from storefront.lookup.client import (
    UNVERIFIED_MESSAGE,
    AvailabilityResult,
    LookupSuperseded,
    StockLookupClient,
    StockStatus,
    find_store,
    lookup_key,
)

SOHO = (40.7233, -74.0030)


class StubbornProvider(FakeInventoryProvider):
    """Finishes its answer even when the lookup is cancelled."""

    def __init__(self, answers):
        super().__init__()
        self.answers = list(answers)
        self.release = asyncio.Event()

    async def check_nearby_stock(self, product_id, external_product_id, latitude, longitude):
        answer = self.answers.pop(0)
        if answer["wait"]:
            try:
                await self.release.wait()
            except asyncio.CancelledError:
                pass
        return NearbyStock(stores=answer["stores"])


@pytest.fixture
def client(provider):
    return StockLookupClient(provider, lookup_timeout=1.0)


class TestKeys:
    def test_location_is_rounded_to_four_decimals(self):
        assert lookup_key("item-1", 40.723349, -74.003049) == lookup_key("item-1", 40.72334, -74.00304)

    def test_halfway_coordinates_round_away_from_zero(self):
        assert lookup_key("item-1", 40.72335, -74.00305) == ("item-1", 40.7234, -74.0031, None)

    def test_keys_differ_by_product(self):
        assert lookup_key("item-1", *SOHO) != lookup_key("item-2", *SOHO)

    def test_keys_differ_by_session(self):
        assert lookup_key("item-1", *SOHO, session_id="a") != lookup_key("item-1", *SOHO, session_id="b")


class TestCheckAvailability:
    async def test_results_are_ordered_nearest_first(self, client, provider):
        provider.stock_nearby(
            "zara-1",
            [
                store_stock("far", "Zara Fifth Ave", True, distance=3.0),
                store_stock("unknown-1", "Zara Outlet", True),
                store_stock("near", "Zara SoHo", False, distance=1.0),
                store_stock("unknown-2", "Zara Pop-up", True),
            ],
        )

        results = await client.check_availability("item-1", "zara-1", *SOHO)

        assert [result.store_id for result in results] == ["near", "far", "unknown-1", "unknown-2"]
        assert all(isinstance(result, AvailabilityResult) for result in results)

    async def test_missing_coordinates_use_fallback_location(self, provider):
        client = StockLookupClient(provider, fallback_location=(1.5, 2.5))

        await client.check_availability("item-1", "zara-1")

        assert (provider.calls[0]["latitude"], provider.calls[0]["longitude"]) == (1.5, 2.5)

    async def test_every_call_asks_the_provider(self, client, provider):
        await client.check_availability("item-1", "zara-1", *SOHO)
        await client.check_availability("item-1", "zara-1", *SOHO)
        assert len(provider.calls) == 2

    async def test_provider_errors_propagate(self, client, provider):
        provider.configure(should_succeed=False, failure_kind="network")
        with pytest.raises(NetworkError):
            await client.check_availability("item-1", "zara-1", *SOHO)

    async def test_deadline_raises_provider_timeout(self, provider):
        provider.configure(delay=1.0)
        client = StockLookupClient(provider, lookup_timeout=0.05)

        with pytest.raises(ProviderTimeout):
            await client.check_availability("item-1", "zara-1", *SOHO)

        assert client.in_flight == []

    async def test_results_carry_check_time(self, client, provider):
        checked = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
        provider.stock_nearby("zara-1", [store_stock("s-1", "Zara SoHo", True, last_checked=checked)])

        [result] = await client.check_availability("item-1", "zara-1", *SOHO)

        assert result.checked_at == checked


class TestSupersession:
    async def test_newer_lookup_supersedes_older(self, client, provider):
        provider.stock_nearby("zara-1", [store_stock("s-1", "Zara SoHo", True)])
        provider.queue_delays(0.5, 0.0)

        slow = asyncio.create_task(client.check_availability("item-1", "zara-1", *SOHO))
        await asyncio.sleep(0.01)
        fast = await client.check_availability("item-1", "zara-1", *SOHO)

        with pytest.raises(LookupSuperseded):
            await slow
        assert [result.store_id for result in fast] == ["s-1"]
        assert client.in_flight == []

    async def test_late_response_of_superseded_lookup_is_dropped(self):
        provider = StubbornProvider(
            [
                {"wait": True, "stores": [store_stock("stale", "Zara SoHo", False)]},
                {"wait": False, "stores": [store_stock("fresh", "Zara SoHo", True)]},
            ]
        )
        client = StockLookupClient(provider)

        slow = asyncio.create_task(client.check_availability("item-1", "zara-1", *SOHO))
        await asyncio.sleep(0.01)
        fast = await client.check_availability("item-1", "zara-1", *SOHO)

        with pytest.raises(LookupSuperseded):
            await slow
        assert [result.store_id for result in fast] == ["fresh"]

    async def test_different_locations_do_not_supersede(self, client, provider):
        provider.queue_delays(0.05, 0.0)

        first = asyncio.create_task(client.check_availability("item-1", "zara-1", *SOHO))
        await asyncio.sleep(0.01)
        await client.check_availability("item-1", "zara-1", 40.7580, -73.9855)

        assert await first == []

    async def test_cancel_stops_an_in_flight_lookup(self, client, provider):
        provider.configure(delay=1.0)

        lookup = asyncio.create_task(client.check_availability("item-1", "zara-1", *SOHO))
        await asyncio.sleep(0.01)

        assert client.cancel("item-1", *SOHO) is True
        with pytest.raises(asyncio.CancelledError):
            await lookup
        assert client.cancel("item-1", *SOHO) is False

    async def test_cancel_all(self, client, provider):
        provider.configure(delay=1.0)

        lookups = [
            asyncio.create_task(client.check_availability(f"item-{index}", "zara-1", *SOHO)) for index in range(3)
        ]
        await asyncio.sleep(0.01)

        assert client.cancel_all() == 3
        results = await asyncio.gather(*lookups, return_exceptions=True)
        assert all(isinstance(result, asyncio.CancelledError) for result in results)

    async def test_other_sessions_do_not_supersede(self, client, provider):
        provider.stock_nearby("zara-1", [store_stock("s-1", "Zara SoHo", True)])
        provider.queue_delays(0.1, 0.0)

        first = asyncio.create_task(client.check_availability("item-1", "zara-1", session_id="shopper-a"))
        await asyncio.sleep(0.01)
        second = await client.check_availability("item-1", "zara-1", session_id="shopper-b")

        assert [result.store_id for result in await first] == ["s-1"]
        assert [result.store_id for result in second] == ["s-1"]

    async def test_same_session_supersedes(self, client, provider):
        provider.queue_delays(0.5, 0.0)

        slow = asyncio.create_task(client.check_availability("item-1", "zara-1", session_id="shopper-a"))
        await asyncio.sleep(0.01)
        await client.check_availability("item-1", "zara-1", session_id="shopper-a")

        with pytest.raises(LookupSuperseded):
            await slow

    async def test_finished_lookups_leave_no_bookkeeping(self, client, provider):
        for index in range(50):
            await client.check_availability(f"item-{index}", "zara-1", *SOHO, session_id=f"shopper-{index}")

        provider.queue_delays(0.5, 0.0)
        slow = asyncio.create_task(client.check_availability("item-1", "zara-1", *SOHO))
        await asyncio.sleep(0.01)
        await client.check_availability("item-1", "zara-1", *SOHO)
        with pytest.raises(LookupSuperseded):
            await slow

        provider.configure(delay=1.0)
        cancelled = asyncio.create_task(client.check_availability("item-2", "zara-1", *SOHO))
        await asyncio.sleep(0.01)
        client.cancel("item-2", *SOHO)
        with pytest.raises(asyncio.CancelledError):
            await cancelled

        assert client.in_flight == []
        assert client._sequences == {}


class TestCheckForDisplay:
    async def test_available(self, client, provider):
        provider.stock_nearby("zara-1", [store_stock("s-1", "Zara SoHo", True, distance=0.3)])

        view = await client.check_for_display("item-1", "zara-1", *SOHO)

        assert view.status is StockStatus.AVAILABLE
        assert view.in_stock_nearby is True
        assert view.message is None

    async def test_provider_failure_is_unverified(self, client, provider):
        provider.configure(should_succeed=False, failure_kind="service")

        view = await client.check_for_display("item-1", "zara-1", *SOHO)

        assert view.status is StockStatus.UNVERIFIED
        assert view.message == UNVERIFIED_MESSAGE
        assert view.results == []

    async def test_superseded(self, client, provider):
        provider.queue_delays(0.5, 0.0)

        slow = asyncio.create_task(client.check_for_display("item-1", "zara-1", *SOHO))
        await asyncio.sleep(0.01)
        await client.check_for_display("item-1", "zara-1", *SOHO)

        assert (await slow).status is StockStatus.SUPERSEDED


class TestFindStore:
    def test_find_store(self):
        results = [
            AvailabilityResult("s-1", "Zara SoHo", True, datetime.now(UTC)),
            AvailabilityResult("s-2", "Zara Fifth Ave", False, datetime.now(UTC)),
        ]
        assert find_store(results, "s-2").store_name == "Zara Fifth Ave"
        assert find_store(results, "s-9") is None
