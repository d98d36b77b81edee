from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from customer_booking.domain.entities.booking import Booking


class BookingRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    customer_id: str = Field(default="", alias="customerId")
    location: str = ""
    status: str = "pending"
    timestamp: int = 0

    def to_entity(self, booking_id: str) -> Booking:
        return Booking(
            booking_id=booking_id,
            customer_id=self.customer_id,
            location=self.location,
            status=self.status,
            timestamp=self.timestamp,
        )


class CustomerRecord(BaseModel):
    email: str


class OtpRecord(BaseModel):
    model_config = ConfigDict(extra="ignore")

    otp: str | None = None
    timestamp: int = 0
    verified: bool = False


class PushResponse(BaseModel):
    """Body returned by a POST to a list node: the generated child key."""

    name: str


class StreamEvent(BaseModel):
    """`data` payload of a put/patch event on a REST streaming listener."""

    path: str = "/"
    data: object = None
