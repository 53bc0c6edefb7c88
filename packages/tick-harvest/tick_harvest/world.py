"""Protocols for the host world model consumed by agents."""
from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

from tick_harvest.types import Location, RegionUnloaded

if TYPE_CHECKING:
    from tick_harvest.jobs import Job


class BlockHandle(Protocol):
    @property
    def type_id(self) -> str: ...
    @property
    def tags(self) -> frozenset[str]: ...
    @property
    def is_valid(self) -> bool: ...
    @property
    def location(self) -> Location: ...
    @property
    def dimension(self) -> str: ...


class SpatialQuery(Protocol):
    def get_block_at(self, dimension: str, location: Location) -> BlockHandle | None:
        """Return the block at *location*. Raises RegionUnloaded if not resident."""
        ...

    def set_block_type(self, block: BlockHandle, type_id: str) -> None: ...


class PropertyStore(Protocol):
    def get_property(self, key: str) -> Any: ...
    def set_property(self, key: str, value: Any) -> None: ...


class AgentEntity(PropertyStore, Protocol):
    @property
    def location(self) -> Location: ...
    @property
    def dimension(self) -> str: ...
    @property
    def is_valid(self) -> bool: ...
    def kill(self) -> None: ...

    def move_to(self, path: list[Location], speed: float) -> Job:
        """Start following *path*. The returned job completes with True if reached."""
        ...


class InventorySink(Protocol):
    def add_item(self, container: BlockHandle, resource: str, amount: int) -> None: ...


class EntitySpawner(Protocol):
    def spawn_entity(
        self, type_id: str, dimension: str, location: Location
    ) -> AgentEntity: ...


class HostWorld(SpatialQuery, InventorySink, EntitySpawner, PropertyStore, Protocol):
    """Everything a registry needs from its host."""


def try_get_block(
    world: SpatialQuery, dimension: str, location: Location
) -> BlockHandle | None:
    """Like get_block_at, but an unloaded region reads as no block."""
    try:
        return world.get_block_at(dimension, location)
    except RegionUnloaded:
        return None
