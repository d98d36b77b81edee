"""
Tests for gateway selection and per-flow session objects.
"""

from __future__ import annotations

import asyncio

import pytest

from customer_booking.core.config import settings
from customer_booking.domain.entities.booking_state import BookingStatus
from customer_booking.domain.entities.location import KOLKATA
from customer_booking.domain.entities.login_state import LoginStatus
from customer_booking.infrastructure.backend.mock_backend import MockBackendGateway
from customer_booking.wiring import dependencies
from customer_booking.wiring.dependencies import CustomerFlow


@pytest.fixture(autouse=True)
def _fresh_gateway_cache():
    dependencies.get_backend_gateway.cache_clear()
    yield
    dependencies.get_backend_gateway.cache_clear()


def test_mock_provider_by_default(monkeypatch):
    """BACKEND_PROVIDER=mock builds the in-memory backend."""
    monkeypatch.setattr(settings, "BACKEND_PROVIDER", "mock")
    assert isinstance(dependencies.get_backend_gateway(), MockBackendGateway)


def test_firebase_without_url_falls_back_in_dev(monkeypatch):
    """Dev environments without a database URL use the mock backend."""
    monkeypatch.setattr(settings, "BACKEND_PROVIDER", "firebase")
    monkeypatch.setattr(settings, "FIREBASE_DATABASE_URL", None)
    monkeypatch.setattr(settings, "ENV", "dev")
    assert isinstance(dependencies.get_backend_gateway(), MockBackendGateway)


def test_firebase_without_url_fails_in_prod(monkeypatch):
    """Production refuses to run without a database URL."""
    monkeypatch.setattr(settings, "BACKEND_PROVIDER", "firebase")
    monkeypatch.setattr(settings, "FIREBASE_DATABASE_URL", None)
    monkeypatch.setattr(settings, "ENV", "prod")
    with pytest.raises(ValueError):
        dependencies.get_backend_gateway()


def test_unknown_provider(monkeypatch):
    """Typos in BACKEND_PROVIDER are reported."""
    monkeypatch.setattr(settings, "BACKEND_PROVIDER", "sqlite")
    with pytest.raises(ValueError):
        dependencies.get_backend_gateway()


def test_flows_are_independent_and_closed_on_exit(monkeypatch, eventually):
    """Each flow owns its sessions; leaving the flow tears them down."""
    monkeypatch.setattr(settings, "OTP_RESEND_SECONDS", 60)
    gateway = MockBackendGateway(booking_id_prefix="b")

    async def scenario():
        async with CustomerFlow.create(gateway) as first, CustomerFlow.create(gateway) as second:
            first.otp.update_email("user@test.com")
            await first.otp.send_otp()
            first.booking.select_location(KOLKATA)
            await first.booking.submit_booking("customer_1")
            await eventually(lambda: gateway.subscriber_count("b1") == 1)
            states = (
                first.otp.login_state.status,
                second.otp.login_state.status,
                first.booking.booking_state.status,
                second.booking.booking_state.status,
            )
            timer = first.otp.timer
        return states, timer.is_running

    states, timer_running = asyncio.run(scenario())
    assert states == (LoginStatus.CODE_SENT, LoginStatus.IDLE, BookingStatus.PENDING, BookingStatus.IDLE)
    assert timer_running is False
    assert gateway.subscriber_count() == 0
