# Overview: Tagged location value used to key stock entries (room, rack or freezer).

from __future__ import annotations

from dataclasses import dataclass

LOCATION_ROOM = "room"
LOCATION_RACK = "rack"
LOCATION_FREEZER = "freezer"

LOCATION_KINDS = (LOCATION_ROOM, LOCATION_RACK, LOCATION_FREEZER)


@dataclass(frozen=True)
class Location:
    """
    Where a stock entry physically lives.

    One explicit kind plus the id of that kind's row. A stock entry always has
    exactly one effective location, so there is never any doubt about which of
    room/rack/freezer is authoritative.
    """
    kind: str
    id: int

    def __post_init__(self):
        if self.kind not in LOCATION_KINDS:
            raise ValueError(f"unknown location kind: {self.kind!r}")

    def to_dict(self) -> dict:
        return {"type": self.kind, "id": self.id}

    def __str__(self) -> str:
        return f"{self.kind}:{self.id}"
