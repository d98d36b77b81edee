from __future__ import annotations

from dataclasses import dataclass, field

DEFAULT_DIGIT_COUNT = 6


def _empty_slots(count: int = DEFAULT_DIGIT_COUNT) -> tuple[str, ...]:
    return ("",) * count


@dataclass(frozen=True)
class OtpState:
    """
    Keypad boxes of a one-time code.

    Position in `digits` is the box index. Each slot is either "" or a single
    digit character.
    """

    digits: tuple[str, ...] = field(default_factory=_empty_slots)

    @classmethod
    def empty(cls, digit_count: int = DEFAULT_DIGIT_COUNT) -> OtpState:
        return cls(_empty_slots(digit_count))

    @property
    def size(self) -> int:
        return len(self.digits)

    def is_complete(self) -> bool:
        return all(self.digits)

    def value(self) -> str:
        return "".join(self.digits)

    def with_digit(self, index: int, digit: str) -> OtpState:
        if not 0 <= index < self.size:
            return self
        slots = list(self.digits)
        slots[index] = digit
        return OtpState(tuple(slots))

    def cleared(self) -> OtpState:
        return OtpState.empty(self.size)


@dataclass(frozen=True)
class TimerState:
    seconds_remaining: int = 60
    enabled: bool = False

    def formatted_time(self) -> str:
        minutes, seconds = divmod(self.seconds_remaining, 60)
        return f"{minutes:02d}:{seconds:02d}"
