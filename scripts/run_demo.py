#!/usr/bin/env python3
"""
Local demo harness (no UI, no Firebase).

Usage:
  python3 scripts/run_demo.py [email]

What it does:
- Logs in through the keypad OTP flow with the demo code
- Logs in through the generated-code flow to obtain a customer id
- Books Kolkata and plays the operator accepting it
- Prints every state change as it happens
"""

from __future__ import annotations

import asyncio
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from customer_booking.core.config import settings
from customer_booking.core.logging_config import configure_logging
from customer_booking.domain.entities.auth_state import AuthStep
from customer_booking.domain.entities.booking_state import BookingStatus
from customer_booking.domain.entities.location import KOLKATA
from customer_booking.domain.entities.login_state import LoginStatus
from customer_booking.infrastructure.backend.mock_backend import MockBackendGateway
from customer_booking.wiring.dependencies import CustomerFlow


def _print_header(email: str) -> None:
    print("\nCustomer Booking Demo")
    print("-" * 60)
    print(f"email: {email}")
    print(f"demo code: {settings.DEMO_OTP}  legacy code: {settings.LEGACY_OTP}")
    print("-" * 60)


async def run(email: str) -> None:
    gateway = MockBackendGateway(network_delay=0.2)
    async with CustomerFlow.create(gateway) as flow:
        flow.otp.state.subscribe(lambda s: print(f"[otp]     {s.login.status.value} {s.login.message or ''} {s.otp.value()!r}"))
        flow.auth.state.subscribe(lambda s: print(f"[auth]    {s.step.value} {s.error_message or ''}"))
        flow.booking.state.subscribe(lambda s: print(f"[booking] {s.status.value} {s.booking_id or ''} {s.message or ''}"))

        flow.otp.update_email(email)
        await flow.otp.send_otp()
        if flow.otp.login_state.status is not LoginStatus.CODE_SENT:
            print("Could not send code, stopping.")
            return
        for index, digit in enumerate(settings.DEMO_OTP):
            flow.otp.update_otp_digit(index, digit)
        await flow.otp.join()

        flow.auth.update_email(email)
        await flow.auth.request_otp()
        await flow.auth.verify_otp(flow.auth.state.value.generated_otp)
        if flow.auth.state.value.step is not AuthStep.AUTHENTICATED:
            print("Login failed, stopping.")
            return

        await flow.booking.load_locations()
        flow.booking.select_location(KOLKATA)
        await flow.booking.submit_booking(flow.auth.customer_id or "")
        booking_id = flow.booking.booking_state.booking_id
        if booking_id is None:
            print("Booking failed, stopping.")
            return

        await asyncio.sleep(1.0)
        gateway.push_status(booking_id, "accepted")
        await flow.booking.state.wait_for(lambda s: s.status is BookingStatus.IDLE, timeout=10)
        print("-" * 60)
        print("Done.")


def main() -> None:
    configure_logging()
    email = sys.argv[1] if len(sys.argv) > 1 else "user@test.com"
    _print_header(email)
    try:
        asyncio.run(run(email))
    except KeyboardInterrupt:
        print("\nBye!")


if __name__ == "__main__":
    main()
