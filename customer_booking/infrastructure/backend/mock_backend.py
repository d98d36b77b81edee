from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import replace
from typing import AsyncGenerator, Callable

from customer_booking.application.exceptions import BusinessRuleError, GatewayError
from customer_booking.application.ports.auth_gateway import AuthGatewayPort
from customer_booking.application.ports.booking_gateway import BookingGatewayPort
from customer_booking.core.config import settings
from customer_booking.domain.entities.booking import Booking, Customer
from customer_booking.domain.entities.location import Location, apply_active_overrides, default_catalog

INVALID_OTP_MESSAGE = "Invalid OTP. Please try again."


def _email_key(email: str) -> str:
    return email.replace(".", "_")


class MockBackendGateway(AuthGatewayPort, BookingGatewayPort):
    """
    In-memory backend with optional simulated latency.

    `push_status` plays the operator who accepts or rejects a booking;
    `fail_next` makes the next call of one operation raise.
    """

    def __init__(
        self,
        demo_otp: str | None = None,
        legacy_otp: str | None = None,
        network_delay: float | None = None,
        active_overrides: dict[str, bool] | None = None,
        overrides_available: bool = True,
        booking_id_prefix: str = "mock_booking_",
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._demo_otp = demo_otp or settings.DEMO_OTP
        self._legacy_otp = legacy_otp or settings.LEGACY_OTP
        self._network_delay = settings.MOCK_NETWORK_DELAY_SECONDS if network_delay is None else network_delay
        self._active_overrides = dict(active_overrides or {})
        self.overrides_available = overrides_available
        self._booking_id_prefix = booking_id_prefix
        self._clock = clock or time.time
        self._otps: dict[str, dict[str, object]] = {}
        self._customers: dict[str, Customer] = {}
        self._bookings: dict[str, Booking] = {}
        self._listeners: dict[str, list[asyncio.Queue]] = {}
        self._failures: dict[str, Exception] = {}
        self.calls: list[str] = []
        self.last_email: str | None = None
        self.unsubscribe_count = 0
        self._logger = logging.getLogger(__name__)

    def fail_next(self, operation: str, error: Exception | None = None) -> None:
        self._failures[operation] = error or GatewayError(f"{operation} failed")

    def set_active(self, location_id: str, is_active: bool) -> None:
        self._active_overrides[location_id] = is_active

    async def _simulate(self, operation: str) -> None:
        self.calls.append(operation)
        if self._network_delay > 0:
            await asyncio.sleep(self._network_delay)
        failure = self._failures.pop(operation, None)
        if failure is not None:
            raise failure

    def call_count(self, operation: str) -> int:
        return self.calls.count(operation)

    async def send_verification_code(self, email: str) -> None:
        await self._simulate("send_verification_code")
        self.last_email = email
        self._store_code(email, self._demo_otp)
        self._logger.info("Mock verification code issued", extra={"email": email})

    async def verify_code(self, email: str, code: str) -> None:
        await self._simulate("verify_code")
        if code != self._demo_otp:
            raise BusinessRuleError(INVALID_OTP_MESSAGE)
        record = self._otps.get(_email_key(email))
        if record is not None:
            record["verified"] = True

    def _store_code(self, email: str, code: str) -> None:
        self._otps[_email_key(email)] = {
            "otp": code,
            "timestamp": int(self._clock() * 1000),
            "verified": False,
        }

    def otp_record(self, email: str) -> dict[str, object] | None:
        return self._otps.get(_email_key(email))

    async def generate_code(self, email: str) -> str:
        await self._simulate("generate_code")
        self._store_code(email, self._legacy_otp)
        return self._legacy_otp

    async def verify_email_code(self, email: str, entered_code: str) -> bool:
        await self._simulate("verify_email_code")
        record = self._otps.get(_email_key(email))
        if record is None or record.get("otp") != entered_code:
            return False
        record["verified"] = True
        return True

    async def save_customer(self, customer: Customer) -> None:
        await self._simulate("save_customer")
        self._customers[customer.customer_id] = customer

    def get_customer(self, customer_id: str) -> Customer | None:
        return self._customers.get(customer_id)

    async def fetch_location_catalog(self) -> list[Location]:
        await self._simulate("fetch_location_catalog")
        if not self.overrides_available:
            self._logger.warning("Active flags unavailable, using static catalog")
            return default_catalog()
        return apply_active_overrides(self._active_overrides)

    async def create_booking(self, customer_id: str, location_id: str) -> str:
        await self._simulate("create_booking")
        booking_id = f"{self._booking_id_prefix}{len(self._bookings) + 1}"
        self._bookings[booking_id] = Booking(
            booking_id=booking_id,
            customer_id=customer_id,
            location=location_id,
            status="pending",
            timestamp=int(self._clock() * 1000),
        )
        self._logger.info(
            "Mock booking created",
            extra={"booking_id": booking_id, "customer_id": customer_id, "location_id": location_id},
        )
        return booking_id

    async def subscribe_booking_status(self, booking_id: str) -> AsyncGenerator[str, None]:
        self.calls.append("subscribe_booking_status")
        queue: asyncio.Queue = asyncio.Queue()
        listeners = self._listeners.setdefault(booking_id, [])
        listeners.append(queue)
        booking = self._bookings.get(booking_id)
        queue.put_nowait(booking.status if booking else "pending")
        try:
            while True:
                item = await queue.get()
                if isinstance(item, Exception):
                    raise item
                yield item
        finally:
            listeners.remove(queue)
            self.unsubscribe_count += 1

    def push_status(self, booking_id: str, status: str) -> None:
        booking = self._bookings.get(booking_id)
        if booking is not None:
            self._bookings[booking_id] = replace(booking, status=status)
        for queue in self._listeners.get(booking_id, []):
            queue.put_nowait(status)

    def cancel_listeners(self, booking_id: str, message: str = "Listener cancelled by backend") -> None:
        for queue in self._listeners.get(booking_id, []):
            queue.put_nowait(GatewayError(message))

    def subscriber_count(self, booking_id: str | None = None) -> int:
        if booking_id is not None:
            return len(self._listeners.get(booking_id, []))
        return sum(len(queues) for queues in self._listeners.values())

    async def fetch_booking(self, booking_id: str) -> Booking:
        await self._simulate("fetch_booking")
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise GatewayError("Booking not found")
        return booking

    async def fetch_customer_bookings(self, customer_id: str) -> list[Booking]:
        await self._simulate("fetch_customer_bookings")
        bookings = [b for b in self._bookings.values() if b.customer_id == customer_id]
        return sorted(bookings, key=lambda b: b.timestamp, reverse=True)
