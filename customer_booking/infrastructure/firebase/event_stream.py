from __future__ import annotations

from typing import AsyncIterable, AsyncIterator


async def iter_sse(lines: AsyncIterable[str]) -> AsyncIterator[tuple[str, str]]:
    """Group text/event-stream lines into (event, data) pairs."""
    event = "message"
    data: list[str] = []
    async for line in lines:
        line = line.rstrip("\r")
        if not line:
            if data:
                yield event, "\n".join(data)
            event, data = "message", []
            continue
        if line.startswith(":"):
            continue
        field, _, value = line.partition(":")
        if value.startswith(" "):
            value = value[1:]
        if field == "event":
            event = value
        elif field == "data":
            data.append(value)
    if data:
        yield event, "\n".join(data)


def status_from_event(event: str, path: str, data: object, current: str) -> str:
    """
    Current booking status after a put/patch on the booking node.

    A deleted or status-less booking reads as "pending". Changes to other
    children re-emit the current status.
    """
    if path == "/":
        if event == "put":
            if isinstance(data, dict):
                return str(data.get("status") or "pending")
            return "pending"
        if isinstance(data, dict) and "status" in data:
            return str(data.get("status") or "pending")
        return current
    if path == "/status":
        return str(data) if data else "pending"
    return current
