from __future__ import annotations

from abc import ABC, abstractmethod

from customer_booking.domain.entities.booking import Customer


class AuthGatewayPort(ABC):
    @abstractmethod
    async def send_verification_code(self, email: str) -> None:
        """Issue a verification code for the 6-box OTP flow."""
        raise NotImplementedError

    @abstractmethod
    async def verify_code(self, email: str, code: str) -> None:
        """
        Verify a code entered in the 6-box OTP flow for `email`. Marks it verified on match.

        Raises:
            BusinessRuleError: the code does not match
            GatewayError: transport/backend failure
        """
        raise NotImplementedError

    @abstractmethod
    async def generate_code(self, email: str) -> str:
        """Create and store a code for `email`. Returns the code value."""
        raise NotImplementedError

    @abstractmethod
    async def verify_email_code(self, email: str, entered_code: str) -> bool:
        """Compare `entered_code` against the stored code for `email`. Marks it verified on match."""
        raise NotImplementedError

    @abstractmethod
    async def save_customer(self, customer: Customer) -> None:
        raise NotImplementedError
