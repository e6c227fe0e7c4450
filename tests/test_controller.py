"""Tests for the trip controller facade."""

from decimal import Decimal

import pytest

from src.domain.entities import Location, PlaceQuery, TripCategory
from src.domain.enums import PackageSize, TripKind, TripStatus
from src.domain.errors import (
    CancellationNotAllowed,
    IllegalTransition,
    InvalidQuoteInput,
    LocationUnresolved,
    NetworkError,
    NotFound,
    TripAlreadyActive,
)
from src.domain.ports import ServerRejected, TransportNotFound, TransportUnavailable
from src.services.geo import GeoAdapter
from tests.conftest import (
    CONNAUGHT_PLACE,
    DELHI_CENTER,
    ECONOMY,
    PARTNER,
    SMALL_PACKAGE,
    observed,
)


async def book(controller, category=ECONOMY):
    quote = await controller.request("Connaught Place", "India Gate", category)
    return await controller.confirm(quote)


class TestRequest:
    @pytest.mark.asyncio
    async def test_quote_uses_distance_and_pricing(self, controller, geocoder, sink):
        controller.geo = GeoAdapter(geocoder, distance=lambda a, b: 5.2)

        quote = await controller.request("Connaught Place", "India Gate", ECONOMY)

        assert quote.fare.amount == Decimal("61600")
        assert quote.distance_km == 5.2
        assert quote.pickup.point == CONNAUGHT_PLACE
        assert quote.warnings == ()
        assert "quote.issued" in sink.names()
        assert controller.current_trip() is None

    @pytest.mark.asyncio
    async def test_unresolved_address_with_fallback_point(self, controller, sink):
        quote = await controller.request(
            PlaceQuery("Nowhere Street 9", near=DELHI_CENTER), "India Gate", ECONOMY
        )
        assert quote.pickup.approximate
        assert quote.pickup.point == DELHI_CENTER
        assert len(quote.warnings) == 1
        assert "quote.warning" in sink.names()

    @pytest.mark.asyncio
    async def test_unresolved_address_without_fallback(self, controller):
        with pytest.raises(LocationUnresolved):
            await controller.request("Nowhere Street 9", "India Gate", ECONOMY)

    @pytest.mark.asyncio
    async def test_same_pickup_and_destination(self, controller):
        with pytest.raises(InvalidQuoteInput):
            await controller.request("India Gate", "India Gate", ECONOMY)

    @pytest.mark.asyncio
    async def test_pinned_location_is_reverse_geocoded(self, controller):
        quote = await controller.request(Location(CONNAUGHT_PLACE), "India Gate", ECONOMY)
        assert quote.pickup.address == "Connaught Place"

    @pytest.mark.asyncio
    async def test_kind_mismatch(self, controller):
        controller.kind = TripKind.RIDE
        with pytest.raises(InvalidQuoteInput):
            await controller.request("Connaught Place", "India Gate", SMALL_PACKAGE)


class TestConfirm:
    @pytest.mark.asyncio
    async def test_creates_trip_and_starts_polling(self, controller, transport, sink):
        snapshot = await book(controller)

        assert snapshot.status is TripStatus.REQUESTED
        assert snapshot.tracking_code.startswith("TRK")
        assert snapshot.can_cancel
        assert controller.synchronizer.running
        assert transport.created[0].category == ECONOMY
        assert "trip.created" in sink.names()

    @pytest.mark.asyncio
    async def test_second_booking_is_refused(self, controller, transport):
        await book(controller)
        quote = await controller.request("Connaught Place", "India Gate", ECONOMY)

        with pytest.raises(TripAlreadyActive):
            await controller.confirm(quote)
        assert len(transport.created) == 1

    @pytest.mark.asyncio
    async def test_network_failure_leaves_no_trip(self, controller, transport):
        transport.create_error = TransportUnavailable("offline")
        quote = await controller.request("Connaught Place", "India Gate", ECONOMY)

        with pytest.raises(NetworkError):
            await controller.confirm(quote)
        assert controller.current_trip() is None

    @pytest.mark.asyncio
    async def test_polled_updates_reach_listeners(self, controller, transport):
        seen = []
        remove = controller.add_listener(lambda snap: seen.append(snap.status))
        await book(controller)
        transport.queue(observed(TripStatus.ASSIGNED, partner=PARTNER))

        await controller.synchronizer.poll_now()

        assert seen == [TripStatus.REQUESTED, TripStatus.ASSIGNED]
        assert controller.current_trip().assigned_partner == PARTNER
        remove()
        transport.queue(observed(TripStatus.ARRIVED))
        await controller.synchronizer.poll_now()
        assert len(seen) == 2

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_break_updates(self, controller):
        def broken(snapshot):
            raise RuntimeError("view went away")

        controller.add_listener(broken)
        snapshot = await book(controller)
        assert snapshot.status is TripStatus.REQUESTED

    @pytest.mark.asyncio
    async def test_degraded_connection_is_visible(self, controller, transport):
        await book(controller)
        for _ in range(3):
            await controller.synchronizer.poll_now()
        assert controller.current_trip().connection_degraded

    @pytest.mark.asyncio
    async def test_listeners_see_connection_health_flip(self, controller, transport):
        seen = []
        controller.add_listener(lambda snap: seen.append(snap.connection_degraded))
        await book(controller)

        for _ in range(3):
            await controller.synchronizer.poll_now()
        assert seen == [False, True]

        transport.queue(observed(TripStatus.REQUESTED))
        await controller.synchronizer.poll_now()
        assert seen == [False, True, False]


class TestCancel:
    @pytest.mark.asyncio
    async def test_cancel_before_pickup(self, controller, transport, sink):
        await book(controller, SMALL_PACKAGE)
        transport.queue(observed(TripStatus.ASSIGNED, partner=PARTNER))
        await controller.synchronizer.poll_now()

        snapshot = await controller.cancel("changed plans")

        assert snapshot.status is TripStatus.CANCELLED
        assert snapshot.cancellation_reason == "changed plans"
        assert not snapshot.can_cancel
        assert transport.cancelled == [(snapshot.id, "changed plans")]
        assert not controller.synchronizer.running
        assert snapshot.history[-1].source == "user"
        assert "trip.cancelled" in sink.names()

    @pytest.mark.asyncio
    async def test_cancel_after_pickup_is_refused(self, controller, transport):
        await book(controller, SMALL_PACKAGE)
        transport.queue(
            observed(TripStatus.ASSIGNED, partner=PARTNER),
            observed(TripStatus.PICKED_UP),
        )
        await controller.synchronizer.poll_now()
        await controller.synchronizer.poll_now()

        with pytest.raises(CancellationNotAllowed):
            await controller.cancel()
        assert transport.cancelled == []
        assert controller.current_trip().status is TripStatus.PICKED_UP

    @pytest.mark.asyncio
    async def test_backend_refusal_maps_to_not_allowed(self, controller, transport):
        await book(controller)
        transport.cancel_error = ServerRejected("driver already started the trip")

        with pytest.raises(CancellationNotAllowed):
            await controller.cancel()
        assert controller.current_trip().status is TripStatus.REQUESTED

    @pytest.mark.asyncio
    async def test_backend_lost_trip(self, controller, transport):
        await book(controller)
        transport.cancel_error = TransportNotFound("gone")
        with pytest.raises(NotFound):
            await controller.cancel()

    @pytest.mark.asyncio
    async def test_cancel_without_trip(self, controller):
        with pytest.raises(IllegalTransition):
            await controller.cancel()

    @pytest.mark.asyncio
    async def test_trip_finishing_during_cancel_request(self, controller, transport):
        await book(controller)
        transport.queue(
            observed(TripStatus.ASSIGNED, partner=PARTNER),
            observed(TripStatus.ARRIVED),
        )
        await controller.synchronizer.poll_now()
        await controller.synchronizer.poll_now()

        async def slow_cancel(trip_id, reason=None):
            # polls keep landing while the backend handles the cancel
            transport.queue(
                observed(TripStatus.IN_PROGRESS),
                observed(TripStatus.COMPLETED, final_fare=Decimal("41000")),
            )
            await controller.synchronizer.poll_now()
            await controller.synchronizer.poll_now()

        transport.request_cancel = slow_cancel

        with pytest.raises(CancellationNotAllowed):
            await controller.cancel()
        assert controller.current_trip().status is TripStatus.COMPLETED


class TestCompletion:
    async def _ride_in_progress(self, controller, transport):
        await book(controller)
        transport.queue(
            observed(TripStatus.ASSIGNED, partner=PARTNER),
            observed(TripStatus.IN_PROGRESS),
        )
        await controller.synchronizer.poll_now()
        await controller.synchronizer.poll_now()

    @pytest.mark.asyncio
    async def test_mark_completed(self, controller, transport):
        await self._ride_in_progress(controller, transport)
        transport.completion = observed(TripStatus.COMPLETED, final_fare=Decimal("41000"))

        snapshot = await controller.mark_completed()

        assert snapshot.status is TripStatus.COMPLETED
        assert snapshot.final_fare == Decimal("41000")
        assert not controller.synchronizer.running

    @pytest.mark.asyncio
    async def test_mark_completed_too_early(self, controller):
        await book(controller)
        with pytest.raises(IllegalTransition):
            await controller.mark_completed()

    @pytest.mark.asyncio
    async def test_acknowledge_frees_the_slot(self, controller, transport, sink):
        await self._ride_in_progress(controller, transport)
        transport.queue(observed(TripStatus.COMPLETED, final_fare=Decimal("41000")))
        await controller.synchronizer.poll_now()

        await controller.acknowledge_completion()

        assert controller.current_trip() is None
        assert "trip.released" in sink.names()
        # a new trip can now be booked
        snapshot = await book(controller)
        assert snapshot.status is TripStatus.REQUESTED

    @pytest.mark.asyncio
    async def test_acknowledge_active_trip_is_refused(self, controller):
        await book(controller)
        with pytest.raises(IllegalTransition):
            await controller.acknowledge_completion()

    @pytest.mark.asyncio
    async def test_acknowledge_without_trip_is_noop(self, controller):
        await controller.acknowledge_completion()
        assert controller.current_trip() is None


class TestDeliveryPricing:
    @pytest.mark.asyncio
    async def test_unpriced_package_size(self, controller):
        with pytest.raises(InvalidQuoteInput):
            await controller.request(
                "Connaught Place", "India Gate", TripCategory.delivery(PackageSize.LARGE)
            )
