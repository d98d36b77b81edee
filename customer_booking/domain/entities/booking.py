from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Booking:
    booking_id: str
    customer_id: str
    location: str  # location id
    status: str = "pending"  # "pending", "accepted", "rejected"
    timestamp: int = 0  # epoch millis


@dataclass(frozen=True)
class Customer:
    customer_id: str
    email: str
