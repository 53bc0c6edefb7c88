"""Shared value types and the error taxonomy for tick-harvest."""
from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Any

# 6 face directions, used for walking and flood-fill searches.
_DIRS_6 = [
    (1, 0, 0), (-1, 0, 0),
    (0, 1, 0), (0, -1, 0),
    (0, 0, 1), (0, 0, -1),
]

# 26 directions: all (dx, dy, dz) where at least one is nonzero, each in {-1, 0, 1}
_DIRS_26 = [
    (dx, dy, dz)
    for dx in (-1, 0, 1)
    for dy in (-1, 0, 1)
    for dz in (-1, 0, 1)
    if (dx, dy, dz) != (0, 0, 0)
]


@dataclass(frozen=True, slots=True)
class Location:
    x: int
    y: int
    z: int

    @classmethod
    def of(cls, value: Any) -> Location:
        """Coerce a Location, an (x, y, z) sequence, or an x/y/z object.

        Fractional coordinates are floored onto the grid cell containing them.
        """
        if isinstance(value, Location):
            return value
        if isinstance(value, (tuple, list)):
            x, y, z = value
        else:
            x, y, z = value.x, value.y, value.z
        return cls(math.floor(x), math.floor(y), math.floor(z))

    def offset(self, dx: int = 0, dy: int = 0, dz: int = 0) -> Location:
        return Location(self.x + dx, self.y + dy, self.z + dz)

    def below(self, n: int = 1) -> Location:
        return Location(self.x, self.y - n, self.z)

    def above(self, n: int = 1) -> Location:
        return Location(self.x, self.y + n, self.z)

    def neighbors6(self) -> list[Location]:
        return [self.offset(dx, dy, dz) for dx, dy, dz in _DIRS_6]

    def neighbors26(self) -> list[Location]:
        return [self.offset(dx, dy, dz) for dx, dy, dz in _DIRS_26]

    def distance(self, other: Location) -> float:
        return math.sqrt(
            (self.x - other.x) ** 2 + (self.y - other.y) ** 2 + (self.z - other.z) ** 2
        )

    def manhattan(self, other: Location) -> int:
        return abs(self.x - other.x) + abs(self.y - other.y) + abs(self.z - other.z)

    def as_tuple(self) -> tuple[int, int, int]:
        return (self.x, self.y, self.z)

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"


class CellKind(Enum):
    PASSABLE = "passable"
    TARGET = "target"
    BLOCKING = "blocking"
    UNJUMPABLE = "unjumpable"


class AgentState(Enum):
    IDLE = "idle"
    SEARCHING = "searching"
    TRAVELING_TO_TARGET = "traveling_to_target"
    ACTING = "acting"
    TRAVELING_TO_DELIVERY = "traveling_to_delivery"


class TravelOutcome(Enum):
    REACHED = "reached"
    NOT_REACHED = "not_reached"
    NO_PATH = "no_path"


@dataclass(frozen=True)
class SearchSpec:
    """Immutable parameters of one region search.

    ``radius`` bounds the number of passable-graph steps from ``center``,
    not the straight-line distance.
    """

    center: Location
    dimension: str
    radius: int
    target_types: frozenset[str] = frozenset()
    target_tags: frozenset[str] = frozenset()
    passable_types: frozenset[str] = frozenset()
    passable_tags: frozenset[str] = frozenset()
    ignore: frozenset[Location] = frozenset()
    unjumpable_types: frozenset[str] = frozenset()


@dataclass(frozen=True)
class PathSpec:
    """Immutable parameters of one path search."""

    start: Location
    goal: Location
    dimension: str
    passable_types: frozenset[str] = frozenset()
    passable_tags: frozenset[str] = frozenset()
    unjumpable_types: frozenset[str] = frozenset()
    budget: int = 300


# -- Errors --


class HarvestError(Exception):
    """Base class for recoverable agent errors."""


class RegionUnloaded(HarvestError):
    """Raised when a location is not currently resident. Retry later."""

    def __init__(self, location: Location, message: str | None = None) -> None:
        self.location = location
        super().__init__(message or f"Region containing {location} is not loaded")


class TargetInvalidated(HarvestError):
    """Raised when a target cell changed type or disappeared mid-operation."""


class PathNotFound(HarvestError):
    """Raised when the planner exhausts its budget or the goal is unreachable."""


class EntityInvalidated(HarvestError):
    """Raised when the external entity backing an agent is gone."""


class DeliveryUnavailable(HarvestError):
    """Raised when no valid delivery point is reachable."""


class JobStateError(RuntimeError):
    """Raised when a finished job is resumed again."""


class PropertySchemaError(ValueError):
    """Raised on missing or malformed persisted agent properties."""

    def __init__(self, key: str, message: str) -> None:
        self.key = key
        super().__init__(message)
