"""VoxelWorld - in-memory host world implementing the tick-harvest protocols.

Cells default to ``default_type`` and are grouped into square chunk columns
that can be unloaded to exercise the ``RegionUnloaded`` paths. Entities walk
paths one cell at a time at a fractional speed.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from tick_harvest import blocks
from tick_harvest.jobs import PENDING, Done, Job, Outcome
from tick_harvest.types import (
    DeliveryUnavailable,
    EntityInvalidated,
    Location,
    RegionUnloaded,
)

DEFAULT_DIMENSION = "overworld"


@dataclass(frozen=True)
class Block:
    """Snapshot of one cell. ``is_valid`` tracks whether its chunk is loaded."""

    type_id: str
    location: Location
    dimension: str
    tags: frozenset[str] = frozenset()
    world: VoxelWorld | None = field(default=None, repr=False, compare=False)

    @property
    def is_valid(self) -> bool:
        return self.world is not None and self.world.is_loaded(self.dimension, self.location)


class VoxelWorld:
    def __init__(
        self,
        default_type: str = blocks.AIR,
        chunk_size: int = 16,
        container_types: Iterable[str] = (blocks.CHEST,),
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        self._default = default_type
        self._chunk_size = chunk_size
        self._container_types = frozenset(container_types)
        self._cells: dict[tuple[str, Location], str] = {}
        self._tags: dict[str, frozenset[str]] = {}
        self._unloaded: set[tuple[str, int, int]] = set()
        self._containers: dict[tuple[str, Location], dict[str, int]] = {}
        self._properties: dict[str, Any] = {}
        self._entities: list[SimEntity] = []

    # -- Cells --

    def set(self, location: Location, type_id: str, dimension: str = DEFAULT_DIMENSION) -> None:
        key = (dimension, location)
        if type_id == self._default:
            self._cells.pop(key, None)
        else:
            self._cells[key] = type_id
        if type_id not in self._container_types:
            self._containers.pop(key, None)

    def fill(
        self, a: Location, b: Location, type_id: str, dimension: str = DEFAULT_DIMENSION
    ) -> None:
        """Set every cell of the cuboid spanned by *a* and *b* (inclusive)."""
        for x in range(min(a.x, b.x), max(a.x, b.x) + 1):
            for y in range(min(a.y, b.y), max(a.y, b.y) + 1):
                for z in range(min(a.z, b.z), max(a.z, b.z) + 1):
                    self.set(Location(x, y, z), type_id, dimension)

    def type_at(self, location: Location, dimension: str = DEFAULT_DIMENSION) -> str:
        return self._cells.get((dimension, location), self._default)

    def tag(self, type_id: str, *tags: str) -> None:
        self._tags[type_id] = self._tags.get(type_id, frozenset()) | frozenset(tags)

    # -- Chunk residency --

    def _chunk(self, dimension: str, location: Location) -> tuple[str, int, int]:
        return (dimension, location.x // self._chunk_size, location.z // self._chunk_size)

    def is_loaded(self, dimension: str, location: Location) -> bool:
        return self._chunk(dimension, location) not in self._unloaded

    def unload(self, location: Location, dimension: str = DEFAULT_DIMENSION) -> None:
        """Unload the chunk column containing *location*."""
        self._unloaded.add(self._chunk(dimension, location))

    def load(self, location: Location, dimension: str = DEFAULT_DIMENSION) -> None:
        self._unloaded.discard(self._chunk(dimension, location))

    # -- SpatialQuery --

    def get_block_at(self, dimension: str, location: Location) -> Block | None:
        if not self.is_loaded(dimension, location):
            raise RegionUnloaded(location)
        type_id = self.type_at(location, dimension)
        return Block(
            type_id=type_id,
            location=location,
            dimension=dimension,
            tags=self._tags.get(type_id, frozenset()),
            world=self,
        )

    def set_block_type(self, block: Block, type_id: str) -> None:
        if not self.is_loaded(block.dimension, block.location):
            raise RegionUnloaded(block.location)
        self.set(block.location, type_id, block.dimension)

    # -- InventorySink --

    def add_item(self, container: Block, resource: str, amount: int) -> None:
        if amount < 0:
            raise ValueError(f"amount must be >= 0, got {amount}")
        if not self.is_loaded(container.dimension, container.location):
            raise RegionUnloaded(container.location)
        key = (container.dimension, container.location)
        if self.type_at(container.location, container.dimension) not in self._container_types:
            raise DeliveryUnavailable(f"No container at {container.location}")
        contents = self._containers.setdefault(key, {})
        contents[resource] = contents.get(resource, 0) + amount

    def contents(self, location: Location, dimension: str = DEFAULT_DIMENSION) -> dict[str, int]:
        return dict(self._containers.get((dimension, location), {}))

    # -- PropertyStore --

    def get_property(self, key: str) -> Any:
        return self._properties.get(key)

    def set_property(self, key: str, value: Any) -> None:
        self._properties[key] = value

    # -- EntitySpawner --

    def spawn_entity(self, type_id: str, dimension: str, location: Location) -> SimEntity:
        entity = SimEntity(self, type_id, location, dimension)
        self._entities.append(entity)
        return entity

    def entities(self) -> list[SimEntity]:
        return [e for e in self._entities if e.alive]


class SimEntity:
    def __init__(
        self,
        world: VoxelWorld,
        type_id: str,
        location: Location,
        dimension: str = DEFAULT_DIMENSION,
        properties: dict[str, Any] | None = None,
    ) -> None:
        self._world = world
        self._type_id = type_id
        self._location = location
        self._dimension = dimension
        self._properties: dict[str, Any] = dict(properties or {})
        self._alive = True

    @property
    def type_id(self) -> str:
        return self._type_id

    @property
    def location(self) -> Location:
        return self._location

    @location.setter
    def location(self, value: Location) -> None:
        self._location = value

    @property
    def dimension(self) -> str:
        return self._dimension

    @property
    def alive(self) -> bool:
        return self._alive

    @property
    def is_valid(self) -> bool:
        return self._alive and self._world.is_loaded(self._dimension, self._location)

    def get_property(self, key: str) -> Any:
        return self._properties.get(key)

    def set_property(self, key: str, value: Any) -> None:
        if not self.is_valid:
            raise EntityInvalidated(f"Cannot set {key!r} on an invalid entity")
        self._properties[key] = value

    def properties(self) -> dict[str, Any]:
        return dict(self._properties)

    def kill(self) -> None:
        self._alive = False

    def move_to(self, path: list[Location], speed: float) -> WalkJob:
        return WalkJob(self, path, speed)


class WalkJob(Job):
    """Moves an entity along a path, ``speed`` cells per resume."""

    def __init__(self, entity: SimEntity, path: list[Location], speed: float) -> None:
        super().__init__()
        if speed <= 0:
            raise ValueError("speed must be positive")
        self._entity = entity
        self._path = list(path)
        self._speed = speed
        self._index = 0
        self._progress = 0.0

    def step(self) -> Outcome:
        if not self._path or not self._entity.is_valid:
            return Done(False)
        last = len(self._path) - 1
        self._progress += self._speed
        while self._progress >= 1.0 and self._index < last:
            self._progress -= 1.0
            self._index += 1
            self._entity.location = self._path[self._index]
        if self._index >= last:
            return Done(True)
        return PENDING
