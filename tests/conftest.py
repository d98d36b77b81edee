from __future__ import annotations

import asyncio
import itertools
from typing import Awaitable, Callable

import pytest

from customer_booking.application.use_cases.booking import BookingController
from customer_booking.application.use_cases.otp_session import OtpSession
from customer_booking.application.utils.countdown_timer import CountdownTimer
from customer_booking.domain.entities.otp_state import TimerState
from customer_booking.infrastructure.backend.mock_backend import MockBackendGateway

TICK = 0.01


async def _eventually(predicate: Callable[[], bool], timeout: float = 1.0) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def eventually() -> Callable[..., Awaitable[None]]:
    return _eventually


@pytest.fixture
def clock() -> Callable[[], float]:
    ticks = itertools.count(1_700_000_000)
    return lambda: float(next(ticks))


@pytest.fixture
def gateway(clock) -> MockBackendGateway:
    return MockBackendGateway(
        demo_otp="123456",
        legacy_otp="1234",
        network_delay=0.0,
        booking_id_prefix="b",
        clock=clock,
    )


@pytest.fixture
def make_otp_session(gateway):
    def _make(resend_seconds: int = 60, timeout: float | None = 1.0, gw: MockBackendGateway | None = None) -> OtpSession:
        timer = CountdownTimer(tick_seconds=TICK, initial=TimerState(seconds_remaining=resend_seconds))
        return OtpSession(gateway=gw or gateway, timer=timer, resend_seconds=resend_seconds, timeout=timeout)

    return _make


@pytest.fixture
def make_booking_controller(gateway):
    def _make(reset_delay: float = 0.05, timeout: float | None = 1.0, gw: MockBackendGateway | None = None) -> BookingController:
        return BookingController(gateway=gw or gateway, reset_delay=reset_delay, timeout=timeout)

    return _make
