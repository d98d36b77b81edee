from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace

from customer_booking.application.exceptions import BusinessRuleError, GatewayError, ValidationError
from customer_booking.application.ports.auth_gateway import AuthGatewayPort
from customer_booking.application.utils.countdown_timer import CountdownTimer
from customer_booking.application.utils.gateway_call import call_gateway, error_message
from customer_booking.application.utils.state_cell import StateCell
from customer_booking.application.utils.task_scope import TaskScope
from customer_booking.application.utils.validation import (
    EmailRule,
    is_valid_email,
    normalize_digit,
    require_valid_email,
)
from customer_booking.domain.entities.login_state import LoginState
from customer_booking.domain.entities.otp_state import DEFAULT_DIGIT_COUNT, OtpState, TimerState

INVALID_OTP_MESSAGE = "Invalid OTP. Please try again."
SEND_FAILED_MESSAGE = "Failed to send verification email"
RESEND_FAILED_MESSAGE = "Failed to resend verification email"


@dataclass(frozen=True)
class OtpSessionState:
    email: str = ""
    login: LoginState = LoginState()
    otp: OtpState = field(default_factory=OtpState)


class OtpSession:
    """
    Email + keypad one-time-code login.

    Filling the last empty box submits the code on its own; there is no
    explicit submit. Resend is gated by the countdown timer.
    """

    def __init__(
        self,
        gateway: AuthGatewayPort,
        timer: CountdownTimer | None = None,
        digit_count: int = DEFAULT_DIGIT_COUNT,
        email_rule: EmailRule = EmailRule.STRICT,
        resend_seconds: int = 60,
        timeout: float | None = 10.0,
    ) -> None:
        self._gateway = gateway
        self.timer = timer or CountdownTimer(initial=TimerState(seconds_remaining=resend_seconds))
        self._digit_count = digit_count
        self._email_rule = email_rule
        self._resend_seconds = resend_seconds
        self._timeout = timeout
        self.state: StateCell[OtpSessionState] = StateCell(OtpSessionState(otp=OtpState.empty(digit_count)))
        self._scope = TaskScope("otp-session")
        self._verification: asyncio.Task | None = None
        self._code_email: str | None = None
        self._generation = 0
        self._logger = logging.getLogger(__name__)

    @property
    def email(self) -> str:
        return self.state.value.email

    @property
    def login_state(self) -> LoginState:
        return self.state.value.login

    @property
    def otp_state(self) -> OtpState:
        return self.state.value.otp

    @property
    def timer_state(self) -> TimerState:
        return self.timer.state.value

    def _set_login(self, login: LoginState) -> None:
        self.state.set(replace(self.state.value, login=login))

    def update_email(self, value: str) -> None:
        self.state.set(replace(self.state.value, email=value))

    def is_valid_email(self) -> bool:
        return is_valid_email(self.email, self._email_rule)

    async def send_otp(self) -> None:
        try:
            email = require_valid_email(self.email, self._email_rule)
        except ValidationError as e:
            self._set_login(LoginState.error(str(e)))
            return
        await self._issue_code(email, SEND_FAILED_MESSAGE)

    async def resend_otp(self) -> None:
        if not self.timer_state.enabled or self._code_email is None:
            return
        await self._issue_code(self._code_email, RESEND_FAILED_MESSAGE)

    async def _issue_code(self, email: str, fallback: str) -> None:
        generation = self._generation
        self._set_login(LoginState.loading())
        try:
            await call_gateway(
                self._gateway.send_verification_code(email),
                self._timeout,
                "Sending verification code",
            )
        except (GatewayError, BusinessRuleError) as e:
            if generation != self._generation:
                return
            self._logger.warning("Verification code not sent", extra={"email": email, "error": str(e)})
            self._set_login(LoginState.error(error_message(e, fallback)))
            return

        if generation != self._generation:
            self._logger.info("Discarding code-sent result after reset", extra={"email": email})
            return
        self._logger.info("Verification code sent", extra={"email": email})
        self._code_email = email
        self._set_login(LoginState.code_sent())
        self.timer.start(self._resend_seconds)

    def update_otp_digit(self, index: int, value: str) -> None:
        if not 0 <= index < self._digit_count:
            return
        digit = normalize_digit(value)
        if digit is None:
            return

        was_complete = self.otp_state.is_complete()
        otp = self.otp_state.with_digit(index, digit)
        self.state.set(replace(self.state.value, otp=otp))

        # Only the incomplete -> complete edge submits, once per edge.
        if otp.is_complete() and not was_complete and not self.is_verifying:
            self._verification = self._scope.spawn(self._verify(otp.value()), name="verify-otp")

    def clear_otp_digit(self, index: int) -> None:
        if not 0 <= index < self._digit_count:
            return
        self.state.set(replace(self.state.value, otp=self.otp_state.with_digit(index, "")))

    @property
    def is_verifying(self) -> bool:
        return self._verification is not None and not self._verification.done()

    async def _verify(self, code: str) -> None:
        generation = self._generation
        email = self._code_email or self.email
        self._set_login(LoginState.loading())
        try:
            await call_gateway(self._gateway.verify_code(email, code), self._timeout, "Verifying code")
        except (GatewayError, BusinessRuleError) as e:
            if generation != self._generation:
                return
            self._logger.info("Code rejected", extra={"email": email, "error": str(e)})
            # Wrong code forces full re-entry.
            self.state.set(
                replace(
                    self.state.value,
                    login=LoginState.error(error_message(e, INVALID_OTP_MESSAGE)),
                    otp=self.otp_state.cleared(),
                )
            )
            return

        if generation != self._generation:
            return
        self._logger.info("Code verified", extra={"email": email})
        self._set_login(LoginState.verified())
        self.timer.stop()

    def reset_to_initial(self) -> None:
        self._generation += 1
        self._scope.cancel_all()
        self._verification = None
        self._code_email = None
        self.timer.reset(self._resend_seconds)
        self.state.set(replace(self.state.value, login=LoginState.idle(), otp=self.otp_state.cleared()))

    async def join(self) -> None:
        await self._scope.join()

    async def aclose(self) -> None:
        self._generation += 1
        await self._scope.aclose()
        await self.timer.aclose()
