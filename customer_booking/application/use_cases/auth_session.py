from __future__ import annotations

import logging
from dataclasses import replace
from typing import Callable

from customer_booking.application.exceptions import BusinessRuleError, GatewayError, ValidationError
from customer_booking.application.ports.auth_gateway import AuthGatewayPort
from customer_booking.application.utils.customer_ids import CustomerIdFactory
from customer_booking.application.utils.gateway_call import call_gateway, error_message
from customer_booking.application.utils.state_cell import StateCell
from customer_booking.application.utils.validation import EmailRule, require_valid_email
from customer_booking.domain.entities.auth_state import AuthState, AuthStep
from customer_booking.domain.entities.booking import Customer

INVALID_OTP_MESSAGE = "Invalid OTP. Please try again."
BLANK_OTP_MESSAGE = "Please enter the OTP"


class AuthSessionController:
    """
    Email + generated code login that ends with a persisted customer id.

    Uses the lenient email rule (non-blank, contains "@"); the keypad flow in
    OtpSession is stricter.
    """

    def __init__(
        self,
        gateway: AuthGatewayPort,
        id_factory: Callable[[str], str] | None = None,
        timeout: float | None = 10.0,
    ) -> None:
        self._gateway = gateway
        self._id_factory = id_factory or CustomerIdFactory()
        self._timeout = timeout
        self.state: StateCell[AuthState] = StateCell(AuthState())
        self._generation = 0
        self._logger = logging.getLogger(__name__)

    @property
    def customer_id(self) -> str | None:
        return self.state.value.customer_id

    def _update(self, **changes) -> None:
        self.state.set(replace(self.state.value, **changes))

    def update_email(self, value: str) -> None:
        self._update(email=value, error_message=None)

    def clear_error(self) -> None:
        self._update(error_message=None)

    async def request_otp(self) -> None:
        try:
            email = require_valid_email(self.state.value.email, EmailRule.LENIENT)
        except ValidationError as e:
            self._update(error_message=str(e))
            return

        generation = self._generation
        self._update(step=AuthStep.LOADING)
        try:
            code = await call_gateway(self._gateway.generate_code(email), self._timeout, "Generating code")
        except (GatewayError, BusinessRuleError) as e:
            if generation != self._generation:
                return
            self._logger.warning("Code generation failed", extra={"email": email, "error": str(e)})
            self._update(step=AuthStep.EMAIL_INPUT, error_message=f"Failed to send OTP: {e}")
            return

        if generation != self._generation:
            return
        self._logger.info("Code generated", extra={"email": email})
        self._update(step=AuthStep.OTP_INPUT, email=email, generated_otp=code, error_message=None)

    async def verify_otp(self, entered: str) -> None:
        if not entered.strip():
            self._update(error_message=BLANK_OTP_MESSAGE)
            return

        email = self.state.value.email.strip()
        generation = self._generation
        self._update(step=AuthStep.LOADING)
        try:
            is_valid = await call_gateway(
                self._gateway.verify_email_code(email, entered),
                self._timeout,
                "Verifying code",
            )
        except (GatewayError, BusinessRuleError) as e:
            if generation != self._generation:
                return
            self._update(step=AuthStep.OTP_INPUT, error_message=f"Verification failed: {e}")
            return

        if generation != self._generation:
            return
        if not is_valid:
            self._logger.info("Code rejected", extra={"email": email})
            self._update(step=AuthStep.OTP_INPUT, error_message=INVALID_OTP_MESSAGE)
            return

        customer_id = self._id_factory(email)
        try:
            await call_gateway(
                self._gateway.save_customer(Customer(customer_id=customer_id, email=email)),
                self._timeout,
                "Saving customer",
            )
        except (GatewayError, BusinessRuleError) as e:
            if generation != self._generation:
                return
            self._logger.warning(
                "Customer not saved",
                extra={"customer_id": customer_id, "error": error_message(e, "unknown error")},
            )
            self._update(step=AuthStep.OTP_INPUT, error_message=f"Failed to save customer data: {e}")
            return

        if generation != self._generation:
            return
        self._logger.info("Customer authenticated", extra={"customer_id": customer_id})
        self._update(step=AuthStep.AUTHENTICATED, customer_id=customer_id, error_message=None)

    def logout(self) -> None:
        self._generation += 1
        self.state.set(AuthState())

    async def aclose(self) -> None:
        self._generation += 1
