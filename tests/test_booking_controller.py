"""
Tests for booking submission and the real-time status state machine.
"""

from __future__ import annotations

import asyncio

import pytest

from customer_booking.application.exceptions import GatewayError
from customer_booking.domain.entities.booking_state import (
    BookingState,
    BookingStatus,
    LocationsStatus,
)
from customer_booking.domain.entities.location import BOMBAY, KOLKATA
from customer_booking.infrastructure.backend.mock_backend import MockBackendGateway


def _status_is(status: BookingStatus):
    return lambda state: state.status is status


def test_load_locations_merges_active_flags(gateway, make_booking_controller):
    """Backend flags override the default active state."""
    gateway.set_active("bombay", False)

    async def scenario():
        controller = make_booking_controller()
        await controller.load_locations()
        return controller.locations.value

    state = asyncio.run(scenario())
    assert state.status is LocationsStatus.SUCCESS
    assert [(loc.id, loc.is_active) for loc in state.locations] == [("kolkata", True), ("bombay", False)]


def test_scenario_override_outage_falls_back_to_catalog(make_booking_controller):
    """Failing active flags still give the static catalog as Success."""
    gw = MockBackendGateway(overrides_available=False, active_overrides={"kolkata": False})

    async def scenario():
        controller = make_booking_controller(gw=gw)
        seen = []
        controller.locations.subscribe(seen.append)
        await controller.load_locations()
        return seen, controller.locations.value

    seen, state = asyncio.run(scenario())
    assert seen[0].status is LocationsStatus.LOADING
    assert state.status is LocationsStatus.SUCCESS
    assert list(state.locations) == [KOLKATA, BOMBAY]
    assert all(loc.is_active for loc in state.locations)


def test_load_locations_timeout_is_an_error(make_booking_controller):
    """A catalog call that never answers ends in LocationsState Error."""
    gw = MockBackendGateway(network_delay=0.5)

    async def scenario():
        controller = make_booking_controller(gw=gw, timeout=0.05)
        await controller.load_locations()
        return controller.locations.value

    state = asyncio.run(scenario())
    assert state.status is LocationsStatus.ERROR
    assert "timed out" in (state.message or "")


def test_submit_without_location_is_noop(gateway, make_booking_controller):
    """Nothing happens until a location is selected."""

    async def scenario():
        controller = make_booking_controller()
        await controller.submit_booking("customer_1")
        return controller.booking_state

    assert asyncio.run(scenario()) == BookingState()
    assert gateway.calls == []


def test_scenario_accepted_booking_auto_resets(gateway, make_booking_controller, eventually):
    """Pending, then Accepted from the stream, then Idle after the delay."""

    async def scenario():
        controller = make_booking_controller(reset_delay=0.05)
        controller.select_location(KOLKATA)
        await controller.submit_booking("customer_1")
        pending = controller.booking_state
        await eventually(lambda: gateway.subscriber_count("b1") == 1)

        history = []
        controller.state.subscribe(history.append, emit_current=False)
        gateway.push_status("b1", "accepted")
        await controller.state.wait_for(_status_is(BookingStatus.IDLE), timeout=1)
        await controller.join()
        return pending, history, controller.booking_state

    pending, history, final = asyncio.run(scenario())
    assert pending.status is BookingStatus.PENDING
    assert pending.booking_id == "b1"
    assert [s.status for s in history] == [BookingStatus.ACCEPTED, BookingStatus.IDLE]
    assert history[0].booking_id == "b1"
    assert final.booking_id is None
    assert final.selected_location == KOLKATA
    assert gateway.subscriber_count() == 0
    assert gateway.unsubscribe_count == 1


def test_rejected_booking_auto_resets(gateway, make_booking_controller, eventually):
    """Rejected follows the same delayed reset."""

    async def scenario():
        controller = make_booking_controller(reset_delay=0.05)
        controller.select_location(BOMBAY)
        await controller.submit_booking("customer_1")
        await eventually(lambda: gateway.subscriber_count("b1") == 1)
        gateway.push_status("b1", "rejected")
        rejected = await controller.state.wait_for(_status_is(BookingStatus.REJECTED), timeout=1)
        idle = await controller.state.wait_for(_status_is(BookingStatus.IDLE), timeout=1)
        return rejected, idle

    rejected, idle = asyncio.run(scenario())
    assert rejected.booking_id == "b1"
    assert idle.booking_id is None


@pytest.mark.parametrize("raw", ["", "cancelled", "ACCEPTED", "pending "])
def test_unknown_status_is_error_and_ends_subscription(gateway, make_booking_controller, eventually, raw):
    """Anything but the three known strings maps to an Error."""

    async def scenario():
        controller = make_booking_controller()
        controller.select_location(KOLKATA)
        await controller.submit_booking("customer_1")
        await eventually(lambda: gateway.subscriber_count("b1") == 1)
        gateway.push_status("b1", raw)
        state = await controller.state.wait_for(_status_is(BookingStatus.ERROR), timeout=1)
        await controller.join()
        return state

    state = asyncio.run(scenario())
    assert state.message == f"Unknown status: {raw}"
    assert gateway.subscriber_count() == 0


def test_create_failure_sets_error(gateway, make_booking_controller):
    """Create-booking failure surfaces its message and starts no stream."""

    async def scenario():
        controller = make_booking_controller()
        controller.select_location(KOLKATA)
        gateway.fail_next("create_booking", GatewayError("quota exceeded"))
        await controller.submit_booking("customer_1")
        return controller.booking_state, controller.is_tracking

    state, tracking = asyncio.run(scenario())
    assert state.status is BookingStatus.ERROR
    assert state.message == "quota exceeded"
    assert tracking is False
    assert gateway.call_count("subscribe_booking_status") == 0


def test_stream_failure_sets_error(gateway, make_booking_controller, eventually):
    """Backend cancelling the listener becomes an Error state."""

    async def scenario():
        controller = make_booking_controller()
        controller.select_location(KOLKATA)
        await controller.submit_booking("customer_1")
        await eventually(lambda: gateway.subscriber_count("b1") == 1)
        gateway.cancel_listeners("b1", "Permission denied")
        return await controller.state.wait_for(_status_is(BookingStatus.ERROR), timeout=1)

    state = asyncio.run(scenario())
    assert state.message == "Permission denied"
    assert gateway.subscriber_count() == 0


def test_new_submission_replaces_previous_subscription(gateway, make_booking_controller, eventually):
    """Only the latest booking's stream drives the state."""

    async def scenario():
        controller = make_booking_controller()
        controller.select_location(KOLKATA)
        await controller.submit_booking("customer_1")
        await eventually(lambda: gateway.subscriber_count("b1") == 1)
        await controller.submit_booking("customer_1")
        await eventually(lambda: gateway.subscriber_count("b2") == 1)
        gateway.push_status("b1", "accepted")
        await asyncio.sleep(0.05)
        state = controller.booking_state
        await controller.aclose()
        return state

    state = asyncio.run(scenario())
    assert state.status is BookingStatus.PENDING
    assert state.booking_id == "b2"
    assert gateway.subscriber_count("b1") == 0
    assert gateway.unsubscribe_count == 2


def test_manual_reset_tears_down_subscription(gateway, make_booking_controller, eventually):
    """reset_booking_state goes Idle and unsubscribes; repeating it is harmless."""

    async def scenario():
        controller = make_booking_controller()
        controller.reset_booking_state()
        controller.select_location(KOLKATA)
        await controller.submit_booking("customer_1")
        await eventually(lambda: gateway.subscriber_count("b1") == 1)
        controller.reset_booking_state()
        controller.reset_booking_state()
        await eventually(lambda: gateway.subscriber_count() == 0)
        gateway.push_status("b1", "accepted")
        await asyncio.sleep(0.05)
        return controller.booking_state

    state = asyncio.run(scenario())
    assert state.status is BookingStatus.IDLE
    assert state.booking_id is None
    assert state.selected_location == KOLKATA
    assert gateway.unsubscribe_count == 1


def test_reset_during_auto_reset_delay(gateway, make_booking_controller, eventually):
    """A manual reset while Accepted is showing cancels the pending auto-reset."""

    async def scenario():
        controller = make_booking_controller(reset_delay=10)
        controller.select_location(KOLKATA)
        await controller.submit_booking("customer_1")
        await eventually(lambda: gateway.subscriber_count("b1") == 1)
        gateway.push_status("b1", "accepted")
        await controller.state.wait_for(_status_is(BookingStatus.ACCEPTED), timeout=1)
        controller.reset_booking_state()
        await controller.join()
        return controller.booking_state, controller.is_tracking

    state, tracking = asyncio.run(scenario())
    assert state.status is BookingStatus.IDLE
    assert tracking is False


def test_reset_while_create_in_flight_discards_booking(make_booking_controller):
    """A booking id arriving after reset is not tracked."""
    gw = MockBackendGateway(network_delay=0.05, booking_id_prefix="b")

    async def scenario():
        controller = make_booking_controller(gw=gw)
        controller.select_location(KOLKATA)
        task = asyncio.create_task(controller.submit_booking("customer_1"))
        await asyncio.sleep(0.01)
        controller.reset_booking_state()
        await task
        return controller.booking_state, controller.is_tracking

    state, tracking = asyncio.run(scenario())
    assert state == BookingState(selected_location=KOLKATA)
    assert tracking is False
    assert gw.call_count("subscribe_booking_status") == 0


def test_customer_bookings_newest_first(gateway, make_booking_controller):
    """History query is ordered by timestamp, newest first."""

    async def scenario():
        controller = make_booking_controller()
        await gateway.create_booking("customer_1", "kolkata")
        await gateway.create_booking("customer_2", "bombay")
        await gateway.create_booking("customer_1", "bombay")
        bookings = await controller.customer_bookings("customer_1")
        single = await controller.fetch_booking("b2")
        return bookings, single

    bookings, single = asyncio.run(scenario())
    assert [b.booking_id for b in bookings] == ["b3", "b1"]
    assert single.customer_id == "customer_2"


def test_fetch_missing_booking_raises(make_booking_controller):
    """Read-only queries raise instead of touching the state machine."""

    async def scenario():
        controller = make_booking_controller()
        await controller.fetch_booking("nope")

    with pytest.raises(GatewayError):
        asyncio.run(scenario())


def test_clear_selected_location(make_booking_controller):
    """Selection can be dropped without touching the booking status."""
    controller = make_booking_controller()
    controller.select_location(BOMBAY)
    controller.clear_selected_location()
    assert controller.booking_state == BookingState()
