from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncGenerator

from customer_booking.domain.entities.booking import Booking
from customer_booking.domain.entities.location import Location


class BookingGatewayPort(ABC):
    @abstractmethod
    async def fetch_location_catalog(self) -> list[Location]:
        """
        Return the fixed catalog with active flags merged in.

        A failure to read the active flags is absorbed: the static catalog
        (all active) is returned instead.
        """
        raise NotImplementedError

    @abstractmethod
    async def create_booking(self, customer_id: str, location_id: str) -> str:
        """Create a pending booking. Returns booking_id."""
        raise NotImplementedError

    @abstractmethod
    def subscribe_booking_status(self, booking_id: str) -> AsyncGenerator[str, None]:
        """
        Push stream of raw status strings for one booking.

        Requirements:
        - Yields the current status first, then every change
        - Closing the iterator (aclose or cancelling its consumer) removes the
          backend listener exactly once
        - Raises GatewayError from iteration if the backend cancels the listener
        """
        raise NotImplementedError

    @abstractmethod
    async def fetch_booking(self, booking_id: str) -> Booking:
        """Raises GatewayError if the booking does not exist."""
        raise NotImplementedError

    @abstractmethod
    async def fetch_customer_bookings(self, customer_id: str) -> list[Booking]:
        """All bookings of a customer, newest first."""
        raise NotImplementedError
