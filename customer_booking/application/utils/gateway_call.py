from __future__ import annotations

import asyncio
from typing import Awaitable, TypeVar

from customer_booking.application.exceptions import (
    BusinessRuleError,
    GatewayError,
    GatewayTimeoutError,
    ValidationError,
)

T = TypeVar("T")


async def call_gateway(awaitable: Awaitable[T], timeout: float | None, operation: str) -> T:
    """
    Await a gateway call with a time budget.

    Raises:
        GatewayTimeoutError: the budget ran out
        GatewayError: any unexpected adapter failure (wrapped)
        BusinessRuleError / ValidationError: passed through unchanged
    """
    try:
        return await asyncio.wait_for(awaitable, timeout)
    except asyncio.TimeoutError as e:
        raise GatewayTimeoutError(f"{operation} timed out after {timeout:g}s") from e
    except (GatewayError, BusinessRuleError, ValidationError):
        raise
    except Exception as e:
        raise GatewayError(str(e) or f"{operation} failed") from e


def error_message(exc: BaseException, fallback: str) -> str:
    message = str(exc).strip()
    return message or fallback
