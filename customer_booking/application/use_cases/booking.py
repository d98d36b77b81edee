from __future__ import annotations

import asyncio
import logging
from contextlib import aclosing
from dataclasses import replace

from customer_booking.application.exceptions import BusinessRuleError, GatewayError
from customer_booking.application.ports.booking_gateway import BookingGatewayPort
from customer_booking.application.utils.gateway_call import call_gateway, error_message
from customer_booking.application.utils.state_cell import StateCell
from customer_booking.application.utils.task_scope import TaskScope
from customer_booking.domain.entities.booking import Booking
from customer_booking.domain.entities.booking_state import (
    TERMINAL_STATUSES,
    BookingState,
    BookingStatus,
    LocationsState,
    map_booking_status,
)
from customer_booking.domain.entities.location import Location


class BookingController:
    """
    Booking lifecycle for one customer flow.

    Idle -> Pending on submit, then driven by the backend status stream.
    Accepted/Rejected fall back to Idle after `reset_delay` seconds. Error
    stays until the next submit.
    """

    def __init__(
        self,
        gateway: BookingGatewayPort,
        reset_delay: float = 2.5,
        timeout: float | None = 10.0,
    ) -> None:
        self._gateway = gateway
        self._reset_delay = reset_delay
        self._timeout = timeout
        self.state: StateCell[BookingState] = StateCell(BookingState())
        self.locations: StateCell[LocationsState] = StateCell(LocationsState())
        self._scope = TaskScope("booking")
        self._status_task: asyncio.Task | None = None
        self._generation = 0
        self._logger = logging.getLogger(__name__)

    @property
    def booking_state(self) -> BookingState:
        return self.state.value

    @property
    def is_tracking(self) -> bool:
        return self._status_task is not None and not self._status_task.done()

    async def load_locations(self) -> None:
        self.locations.set(LocationsState())
        try:
            locations = await call_gateway(
                self._gateway.fetch_location_catalog(), self._timeout, "Loading locations"
            )
        except (GatewayError, BusinessRuleError) as e:
            self._logger.warning("Locations not loaded", extra={"error": str(e)})
            self.locations.set(LocationsState.error(error_message(e, "Failed to load locations")))
            return
        self.locations.set(LocationsState.success(locations))

    def select_location(self, location: Location) -> None:
        self.state.set(replace(self.state.value, selected_location=location))

    def clear_selected_location(self) -> None:
        self.state.set(replace(self.state.value, selected_location=None))

    async def submit_booking(self, customer_id: str) -> None:
        location = self.state.value.selected_location
        if location is None:
            return

        # A new booking ends interest in the previous one.
        self._stop_tracking()
        generation = self._generation
        self.state.set(replace(self.state.value.with_status(BookingStatus.PENDING), booking_id=None))

        try:
            booking_id = await call_gateway(
                self._gateway.create_booking(customer_id, location.id),
                self._timeout,
                "Creating booking",
            )
        except (GatewayError, BusinessRuleError) as e:
            if generation != self._generation:
                return
            self._logger.warning(
                "Booking not created",
                extra={"customer_id": customer_id, "location_id": location.id, "error": str(e)},
            )
            self.state.set(
                self.state.value.with_status(BookingStatus.ERROR, error_message(e, "Failed to create booking"))
            )
            return

        if generation != self._generation:
            self._logger.info("Discarding booking created after reset", extra={"booking_id": booking_id})
            return

        self._logger.info(
            "Booking created",
            extra={"booking_id": booking_id, "customer_id": customer_id, "location_id": location.id},
        )
        self.state.set(replace(self.state.value, booking_id=booking_id))
        self._status_task = self._scope.spawn(
            self._track_status(booking_id, generation), name=f"status:{booking_id}"
        )

    async def _track_status(self, booking_id: str, generation: int) -> None:
        terminal = False
        try:
            async with aclosing(self._gateway.subscribe_booking_status(booking_id)) as stream:
                async for raw_status in stream:
                    if generation != self._generation:
                        return
                    status, message = map_booking_status(raw_status)
                    self._logger.info("Booking status pushed", extra={"booking_id": booking_id, "status": raw_status})
                    self.state.set(self.state.value.with_status(status, message))
                    if status is BookingStatus.ERROR:
                        return
                    if status in TERMINAL_STATUSES:
                        terminal = True
                        break
        except (GatewayError, BusinessRuleError) as e:
            if generation != self._generation:
                return
            self._logger.warning("Booking status stream failed", extra={"booking_id": booking_id, "error": str(e)})
            self.state.set(
                self.state.value.with_status(BookingStatus.ERROR, error_message(e, "Lost booking updates"))
            )
            return

        if not terminal:
            self._logger.info("Booking status stream ended", extra={"booking_id": booking_id})
            return

        await asyncio.sleep(self._reset_delay)
        if generation == self._generation:
            self.reset_booking_state()

    def _stop_tracking(self) -> None:
        self._generation += 1
        task, self._status_task = self._status_task, None
        if task is None or task.done():
            return
        if task is not asyncio.current_task():
            task.cancel()

    def reset_booking_state(self) -> None:
        self._stop_tracking()
        self.state.set(self.state.value.reset())

    async def fetch_booking(self, booking_id: str) -> Booking:
        return await call_gateway(self._gateway.fetch_booking(booking_id), self._timeout, "Fetching booking")

    async def customer_bookings(self, customer_id: str) -> list[Booking]:
        return await call_gateway(
            self._gateway.fetch_customer_bookings(customer_id), self._timeout, "Fetching bookings"
        )

    async def join(self) -> None:
        await self._scope.join()

    async def aclose(self) -> None:
        self._stop_tracking()
        await self._scope.aclose()
