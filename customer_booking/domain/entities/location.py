from __future__ import annotations

from dataclasses import dataclass, replace


@dataclass(frozen=True)
class Location:
    id: str
    name: str
    description: str
    image_url: str
    is_active: bool = True

    def with_active(self, is_active: bool) -> Location:
        return replace(self, is_active=is_active)


KOLKATA = Location(
    id="kolkata",
    name="Kolkata",
    description="Experience the cultural capital of India with its rich heritage and vibrant atmosphere",
    image_url="kolkata_image",
)

BOMBAY = Location(
    id="bombay",
    name="Bombay",
    description="The city of dreams offering endless opportunities and coastal beauty",
    image_url="bombay_image",
)

LOCATION_CATALOG: tuple[Location, ...] = (KOLKATA, BOMBAY)


def default_catalog() -> list[Location]:
    return list(LOCATION_CATALOG)


def apply_active_overrides(overrides: dict[str, bool]) -> list[Location]:
    """Merge per-location active flags into the fixed catalog. Unknown ids are ignored."""
    return [location.with_active(overrides.get(location.id, True)) for location in LOCATION_CATALOG]


def find_location(location_id: str) -> Location | None:
    for location in LOCATION_CATALOG:
        if location.id == location_id:
            return location
    return None
