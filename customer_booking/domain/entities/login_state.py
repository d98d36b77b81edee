from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class LoginStatus(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    CODE_SENT = "code_sent"
    VERIFIED = "verified"
    ERROR = "error"


@dataclass(frozen=True)
class LoginState:
    status: LoginStatus = LoginStatus.IDLE
    message: str | None = None  # only set for ERROR

    @classmethod
    def idle(cls) -> LoginState:
        return cls(LoginStatus.IDLE)

    @classmethod
    def loading(cls) -> LoginState:
        return cls(LoginStatus.LOADING)

    @classmethod
    def code_sent(cls) -> LoginState:
        return cls(LoginStatus.CODE_SENT)

    @classmethod
    def verified(cls) -> LoginState:
        return cls(LoginStatus.VERIFIED)

    @classmethod
    def error(cls, message: str) -> LoginState:
        return cls(LoginStatus.ERROR, message)
