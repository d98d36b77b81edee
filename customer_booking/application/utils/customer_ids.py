from __future__ import annotations

import secrets
import time
from typing import Callable


class CustomerIdFactory:
    """
    Builds customer ids as `customer_<local part>_<epoch millis>`.

    The "timestamp" strategy is the historical format; two verifications of the
    same email within one millisecond collide. "unique" appends a random
    suffix.
    """

    def __init__(self, strategy: str = "timestamp", clock: Callable[[], float] | None = None) -> None:
        if strategy not in {"timestamp", "unique"}:
            raise ValueError(f"Unknown customer id strategy: {strategy}")
        self._strategy = strategy
        self._clock = clock or time.time

    def __call__(self, email: str) -> str:
        local_part = email.split("@", 1)[0].replace(".", "_")
        millis = int(self._clock() * 1000)
        customer_id = f"customer_{local_part}_{millis}"
        if self._strategy == "unique":
            customer_id = f"{customer_id}_{secrets.token_hex(4)}"
        return customer_id
