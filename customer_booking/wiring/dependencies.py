from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache

from customer_booking.application.use_cases.auth_session import AuthSessionController
from customer_booking.application.use_cases.booking import BookingController
from customer_booking.application.use_cases.otp_session import OtpSession
from customer_booking.application.utils.countdown_timer import CountdownTimer
from customer_booking.application.utils.customer_ids import CustomerIdFactory
from customer_booking.application.utils.validation import EmailRule
from customer_booking.core.config import settings
from customer_booking.domain.entities.otp_state import TimerState
from customer_booking.infrastructure.backend.mock_backend import MockBackendGateway
from customer_booking.infrastructure.firebase.firebase_gateway import FirebaseGateway

Gateway = MockBackendGateway | FirebaseGateway


@lru_cache
def get_backend_gateway() -> Gateway:
    logger = logging.getLogger(__name__)
    provider = settings.BACKEND_PROVIDER.lower()
    logger.info("BACKEND_PROVIDER=%s ENV=%s", provider, settings.ENV)

    if provider == "firebase":
        if settings.FIREBASE_DATABASE_URL:
            return FirebaseGateway()
        if settings.ENV.lower() in {"dev", "local"}:
            logger.info("Using MockBackendGateway (FIREBASE_DATABASE_URL missing, ENV=dev/local)")
            return MockBackendGateway()
        raise ValueError("FIREBASE_DATABASE_URL is required when BACKEND_PROVIDER=firebase")

    if provider != "mock":
        raise ValueError(f"Unknown BACKEND_PROVIDER: {settings.BACKEND_PROVIDER}")
    return MockBackendGateway()


def create_otp_session(gateway: Gateway | None = None) -> OtpSession:
    timer = CountdownTimer(
        tick_seconds=settings.TIMER_TICK_SECONDS,
        initial=TimerState(seconds_remaining=settings.OTP_RESEND_SECONDS),
    )
    return OtpSession(
        gateway=gateway or get_backend_gateway(),
        timer=timer,
        digit_count=settings.OTP_DIGIT_COUNT,
        email_rule=EmailRule.STRICT,
        resend_seconds=settings.OTP_RESEND_SECONDS,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )


def create_auth_session(gateway: Gateway | None = None) -> AuthSessionController:
    return AuthSessionController(
        gateway=gateway or get_backend_gateway(),
        id_factory=CustomerIdFactory(settings.CUSTOMER_ID_STRATEGY),
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )


def create_booking_controller(gateway: Gateway | None = None) -> BookingController:
    return BookingController(
        gateway=gateway or get_backend_gateway(),
        reset_delay=settings.BOOKING_RESET_DELAY_SECONDS,
        timeout=settings.GATEWAY_TIMEOUT_SECONDS,
    )


@dataclass
class CustomerFlow:
    """Session objects for one customer flow. Created on entry, closed on exit."""

    otp: OtpSession
    auth: AuthSessionController
    booking: BookingController

    @classmethod
    def create(cls, gateway: Gateway | None = None) -> CustomerFlow:
        gateway = gateway or get_backend_gateway()
        return cls(
            otp=create_otp_session(gateway),
            auth=create_auth_session(gateway),
            booking=create_booking_controller(gateway),
        )

    async def aclose(self) -> None:
        await self.otp.aclose()
        await self.auth.aclose()
        await self.booking.aclose()

    async def __aenter__(self) -> CustomerFlow:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()
