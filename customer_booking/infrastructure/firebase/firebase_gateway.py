from __future__ import annotations

import json
import logging
import time
from typing import Any, AsyncGenerator

import httpx
from pydantic import ValidationError as SchemaError

from customer_booking.application.exceptions import BusinessRuleError, GatewayError
from customer_booking.application.ports.auth_gateway import AuthGatewayPort
from customer_booking.application.ports.booking_gateway import BookingGatewayPort
from customer_booking.core.config import settings
from customer_booking.domain.entities.booking import Booking, Customer
from customer_booking.domain.entities.location import Location, apply_active_overrides, default_catalog
from customer_booking.infrastructure.firebase.event_stream import iter_sse, status_from_event
from customer_booking.infrastructure.firebase.schemas import (
    BookingRecord,
    CustomerRecord,
    OtpRecord,
    PushResponse,
    StreamEvent,
)

INVALID_OTP_MESSAGE = "Invalid OTP. Please try again."


def _email_key(email: str) -> str:
    return email.replace(".", "_")


def _now_millis() -> int:
    return int(time.time() * 1000)


class FirebaseGateway(AuthGatewayPort, BookingGatewayPort):
    """
    Firebase Realtime Database over its REST API.

    Nodes: otps/<email key>, customers/<id>, activeLocations/<location id>,
    bookings/<push id>. Status updates use the REST streaming listener
    (text/event-stream).
    """

    def __init__(
        self,
        database_url: str | None = None,
        auth_token: str | None = None,
        demo_otp: str | None = None,
        legacy_otp: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
    ) -> None:
        self._base_url = (database_url or settings.FIREBASE_DATABASE_URL or "").rstrip("/")
        if not self._base_url:
            raise ValueError("FIREBASE_DATABASE_URL is required for the Firebase backend")
        self._auth_token = auth_token or settings.FIREBASE_AUTH_TOKEN
        self._demo_otp = demo_otp or settings.DEMO_OTP
        self._legacy_otp = legacy_otp or settings.LEGACY_OTP
        self._timeout = timeout or settings.GATEWAY_TIMEOUT_SECONDS
        self._client = client or httpx.AsyncClient(timeout=self._timeout, follow_redirects=True)
        self._logger = logging.getLogger(__name__)

    def _url(self, *path: str) -> str:
        return f"{self._base_url}/{'/'.join(path)}.json"

    def _params(self, extra: dict[str, str] | None = None) -> dict[str, str]:
        params = dict(extra or {})
        if self._auth_token:
            params["auth"] = self._auth_token
        return params

    async def _request(
        self,
        method: str,
        *path: str,
        payload: Any = None,
        params: dict[str, str] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                self._url(*path),
                params=self._params(params),
                json=payload,
                follow_redirects=True,
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            self._logger.error(
                "Firebase request failed",
                extra={"status": e.response.status_code, "reason": "/".join(path), "error": detail},
            )
            raise GatewayError(detail) from e
        except httpx.HTTPError as e:
            self._logger.error("Firebase unreachable", extra={"reason": "/".join(path), "error": str(e)})
            raise GatewayError(f"Network error: {e}") from e
        if not response.content:
            return None
        return response.json()

    async def send_verification_code(self, email: str) -> None:
        record = OtpRecord(otp=self._demo_otp, timestamp=_now_millis(), verified=False)
        await self._request("PUT", "otps", _email_key(email), payload=record.model_dump())
        self._logger.info("Verification code issued", extra={"email": email})

    async def verify_code(self, email: str, code: str) -> None:
        if code != self._demo_otp:
            raise BusinessRuleError(INVALID_OTP_MESSAGE)
        await self._request("PATCH", "otps", _email_key(email), payload={"verified": True})

    async def generate_code(self, email: str) -> str:
        record = OtpRecord(otp=self._legacy_otp, timestamp=_now_millis(), verified=False)
        await self._request("PUT", "otps", _email_key(email), payload=record.model_dump())
        return self._legacy_otp

    async def verify_email_code(self, email: str, entered_code: str) -> bool:
        data = await self._request("GET", "otps", _email_key(email))
        stored = OtpRecord.model_validate(data) if isinstance(data, dict) else OtpRecord()
        is_valid = stored.otp == entered_code
        if is_valid:
            await self._request("PATCH", "otps", _email_key(email), payload={"verified": True})
        return is_valid

    async def save_customer(self, customer: Customer) -> None:
        record = CustomerRecord(email=customer.email)
        await self._request("PUT", "customers", customer.customer_id, payload=record.model_dump())

    async def fetch_location_catalog(self) -> list[Location]:
        try:
            data = await self._request("GET", "activeLocations")
        except GatewayError as e:
            self._logger.warning("Active flags unavailable, using static catalog", extra={"error": str(e)})
            return default_catalog()
        overrides: dict[str, bool] = {}
        if isinstance(data, dict):
            overrides = {key: value for key, value in data.items() if isinstance(value, bool)}
        return apply_active_overrides(overrides)

    async def create_booking(self, customer_id: str, location_id: str) -> str:
        record = BookingRecord(customer_id=customer_id, location=location_id, status="pending", timestamp=_now_millis())
        data = await self._request("POST", "bookings", payload=record.model_dump(by_alias=True))
        try:
            booking_id = PushResponse.model_validate(data).name
        except SchemaError as e:
            raise GatewayError("Failed to generate booking ID") from e
        self._logger.info("Booking created", extra={"booking_id": booking_id, "location_id": location_id})
        return booking_id

    async def subscribe_booking_status(self, booking_id: str) -> AsyncGenerator[str, None]:
        status = "pending"
        headers = {"Accept": "text/event-stream"}
        # The listener stays open indefinitely; only connecting is time-bounded.
        timeout = httpx.Timeout(self._timeout, read=None)
        self._logger.info("Booking listener attached", extra={"booking_id": booking_id})
        try:
            async with self._client.stream(
                "GET",
                self._url("bookings", booking_id),
                params=self._params(),
                headers=headers,
                timeout=timeout,
                follow_redirects=True,
            ) as response:
                response.raise_for_status()
                async for event, raw in iter_sse(response.aiter_lines()):
                    if event in ("put", "patch"):
                        try:
                            change = StreamEvent.model_validate(json.loads(raw))
                        except (ValueError, SchemaError):
                            self._logger.warning("Unreadable stream event", extra={"booking_id": booking_id})
                            continue
                        status = status_from_event(event, change.path, change.data, status)
                        yield status
                    elif event in ("cancel", "auth_revoked"):
                        raise GatewayError(f"Booking listener closed by server ({event})")
        except httpx.HTTPStatusError as e:
            raise GatewayError(_error_detail(e.response)) from e
        except httpx.HTTPError as e:
            raise GatewayError(f"Network error: {e}") from e
        finally:
            self._logger.info("Booking listener removed", extra={"booking_id": booking_id})

    async def fetch_booking(self, booking_id: str) -> Booking:
        data = await self._request("GET", "bookings", booking_id)
        if not isinstance(data, dict):
            raise GatewayError("Booking not found")
        return BookingRecord.model_validate(data).to_entity(booking_id)

    async def fetch_customer_bookings(self, customer_id: str) -> list[Booking]:
        data = await self._request(
            "GET",
            "bookings",
            params={"orderBy": json.dumps("customerId"), "equalTo": json.dumps(customer_id)},
        )
        bookings: list[Booking] = []
        for booking_id, value in (data or {}).items():
            try:
                bookings.append(BookingRecord.model_validate(value).to_entity(booking_id))
            except SchemaError:
                self._logger.warning("Skipping malformed booking", extra={"booking_id": booking_id})
        return sorted(bookings, key=lambda b: b.timestamp, reverse=True)

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
        if isinstance(body, dict) and body.get("error"):
            return str(body["error"])
    except (ValueError, httpx.ResponseNotRead):
        pass
    return f"Firebase returned HTTP {response.status_code}"
