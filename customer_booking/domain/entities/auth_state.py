from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class AuthStep(str, Enum):
    EMAIL_INPUT = "email_input"
    OTP_INPUT = "otp_input"
    LOADING = "loading"
    AUTHENTICATED = "authenticated"


@dataclass(frozen=True)
class AuthState:
    step: AuthStep = AuthStep.EMAIL_INPUT
    email: str = ""
    generated_otp: str = ""  # reference code returned by the backend
    customer_id: str | None = None  # set only after successful verification
    error_message: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.step is AuthStep.AUTHENTICATED
