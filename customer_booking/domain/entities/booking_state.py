from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from customer_booking.domain.entities.location import Location


class BookingStatus(str, Enum):
    IDLE = "idle"
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    ERROR = "error"


TERMINAL_STATUSES = frozenset({BookingStatus.ACCEPTED, BookingStatus.REJECTED})


@dataclass(frozen=True)
class BookingState:
    status: BookingStatus = BookingStatus.IDLE
    message: str | None = None  # only set for ERROR
    selected_location: Location | None = None  # survives status changes
    booking_id: str | None = None  # set on successful creation, cleared on reset

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def with_status(self, status: BookingStatus, message: str | None = None) -> BookingState:
        return replace(self, status=status, message=message)

    def reset(self) -> BookingState:
        return replace(self, status=BookingStatus.IDLE, message=None, booking_id=None)


def map_booking_status(status: str) -> tuple[BookingStatus, str | None]:
    """Map a raw backend status string onto a booking status (and error message)."""
    if status == "pending":
        return BookingStatus.PENDING, None
    if status == "accepted":
        return BookingStatus.ACCEPTED, None
    if status == "rejected":
        return BookingStatus.REJECTED, None
    return BookingStatus.ERROR, f"Unknown status: {status}"


class LocationsStatus(str, Enum):
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class LocationsState:
    status: LocationsStatus = LocationsStatus.LOADING
    locations: tuple[Location, ...] = field(default_factory=tuple)
    message: str | None = None

    @classmethod
    def success(cls, locations: list[Location]) -> LocationsState:
        return cls(LocationsStatus.SUCCESS, tuple(locations))

    @classmethod
    def error(cls, message: str) -> LocationsState:
        return cls(LocationsStatus.ERROR, message=message)
