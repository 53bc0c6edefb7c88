"""Bounded region search over a SpatialQuery.

RegionSearch is a breadth-first flood fill that evaluates exactly one
frontier cell per resume. Cells are reachable only through chains of
passable cells, so ``radius`` limits path length through the passable
graph, not straight-line distance. The first qualifying cell wins.
"""
from __future__ import annotations

import logging
from collections import deque
from typing import TYPE_CHECKING, Callable, Iterable

from tick_harvest.jobs import PENDING, Done, Job, Outcome
from tick_harvest.types import CellKind, Location, SearchSpec
from tick_harvest.world import try_get_block

if TYPE_CHECKING:
    from tick_harvest.world import BlockHandle, SpatialQuery

logger = logging.getLogger(__name__)


def classify(
    block: BlockHandle,
    below: BlockHandle | None,
    *,
    passable_types: frozenset[str],
    passable_tags: frozenset[str] = frozenset(),
    unjumpable_types: frozenset[str] = frozenset(),
    target_types: frozenset[str] = frozenset(),
    target_tags: frozenset[str] = frozenset(),
) -> CellKind:
    """Classify one cell from its own block and the block beneath it.

    A passable cell sitting directly on an unjumpable block (the space over
    a fence or wall) is UNJUMPABLE: it cannot be stepped onto from above.
    """
    if block.type_id in target_types or not target_tags.isdisjoint(block.tags):
        return CellKind.TARGET
    if block.type_id in unjumpable_types:
        return CellKind.UNJUMPABLE
    if block.type_id in passable_types or not passable_tags.isdisjoint(block.tags):
        if below is not None and below.type_id in unjumpable_types:
            return CellKind.UNJUMPABLE
        return CellKind.PASSABLE
    return CellKind.BLOCKING


class RegionSearch(Job):
    """Flood fill from ``spec.center`` for the first non-ignored target.

    Completes with the target's block handle, or ``None`` once the frontier
    is exhausted. Unloaded cells count as blocking.
    """

    def __init__(self, world: SpatialQuery, spec: SearchSpec) -> None:
        super().__init__()
        if spec.radius < 0:
            raise ValueError(f"radius must be >= 0, got {spec.radius}")
        self._world = world
        self._spec = spec
        self._frontier: deque[tuple[Location, int]] = deque([(spec.center, 0)])
        self._seen: set[Location] = {spec.center}
        self._evaluated = 0

    @property
    def spec(self) -> SearchSpec:
        return self._spec

    @property
    def evaluated(self) -> int:
        """Frontier cells evaluated so far."""
        return self._evaluated

    def step(self) -> Outcome:
        if not self._frontier:
            logger.debug("region search around %s exhausted after %d cells",
                         self._spec.center, self._evaluated)
            return Done(None)

        location, depth = self._frontier.popleft()
        self._evaluated += 1

        # The centre is only the seed.
        if depth > 0:
            block, kind = self._classify(location)
            if kind is CellKind.TARGET and location not in self._spec.ignore:
                logger.debug("region search found %s at %s (depth %d)",
                             block.type_id, location, depth)
                return Done(block)
            if kind is not CellKind.PASSABLE:
                return PENDING

        if depth < self._spec.radius:
            for neighbor in location.neighbors6():
                if neighbor not in self._seen:
                    self._seen.add(neighbor)
                    self._frontier.append((neighbor, depth + 1))
        return PENDING

    def _classify(self, location: Location) -> tuple[BlockHandle | None, CellKind]:
        spec = self._spec
        block = try_get_block(self._world, spec.dimension, location)
        if block is None or not block.is_valid:
            return None, CellKind.BLOCKING
        below = try_get_block(self._world, spec.dimension, location.below())
        kind = classify(
            block,
            below,
            passable_types=spec.passable_types,
            passable_tags=spec.passable_tags,
            unjumpable_types=spec.unjumpable_types,
            target_types=spec.target_types,
            target_tags=spec.target_tags,
        )
        return block, kind


def connected_blocks(
    world: SpatialQuery,
    dimension: str,
    origin: Location,
    types: Iterable[str],
    limit: int,
) -> list[BlockHandle]:
    """Collect up to *limit* blocks of *types* connected to *origin*.

    Connectivity is the 26-neighbourhood. Raises RegionUnloaded if the fill
    touches an unloaded cell.
    """
    wanted = frozenset(types)
    found: list[BlockHandle] = []
    start = world.get_block_at(dimension, origin)
    if start is None or start.type_id not in wanted:
        return found

    frontier: deque[BlockHandle] = deque([start])
    seen: set[Location] = {origin}
    while frontier and len(found) < limit:
        block = frontier.popleft()
        found.append(block)
        for neighbor in block.location.neighbors26():
            if neighbor in seen:
                continue
            seen.add(neighbor)
            candidate = world.get_block_at(dimension, neighbor)
            if candidate is not None and candidate.type_id in wanted:
                frontier.append(candidate)
    return found


def is_valid_structure(
    world: SpatialQuery,
    block: BlockHandle,
    decorator_types: frozenset[str],
    min_decorators: int,
    limit: int,
) -> bool:
    """True if *block* connects to at least *min_decorators* decorator cells.

    Tells a harvestable structure (a log in a tree with leaves) from an
    isolated block (a log in someone's wall).
    """
    members = connected_blocks(
        world, block.dimension, block.location, {block.type_id} | decorator_types, limit
    )
    decorators = sum(1 for b in members if b.type_id in decorator_types)
    return decorators >= min_decorators


def square_base(trunk: Iterable[Location], found: Location) -> list[Location]:
    """The 2x2 root cells of a four-trunk tree, in the trunk's lowest layer.

    Of the four squares containing *found*'s column, the one covering the
    most bottom-layer trunk cells wins; ties keep the first in scan order.
    Returns an empty list for an empty trunk.
    """
    cells = list(trunk)
    if not cells:
        return []
    floor = min(cell.y for cell in cells)
    bottom = {(cell.x, cell.z) for cell in cells if cell.y == floor}

    best: list[tuple[int, int]] = []
    best_score = -1
    for dx in (-1, 0):
        for dz in (-1, 0):
            square = [(found.x + dx + i, found.z + dz + j) for i in (0, 1) for j in (0, 1)]
            score = sum(1 for column in square if column in bottom)
            if score > best_score:
                best, best_score = square, score
    return [Location(x, floor, z) for x, z in best]


def ring_around(center: Location) -> list[Location]:
    """The 8 cells around *center* on its own layer."""
    return [
        center.offset(dx, 0, dz)
        for dx in (-1, 0, 1)
        for dz in (-1, 0, 1)
        if (dx, dz) != (0, 0)
    ]


class ScanJob(Job):
    """Checks one location per resume; Done with the first matching block."""

    def __init__(
        self,
        world: SpatialQuery,
        dimension: str,
        locations: Iterable[Location],
        predicate: Callable[[BlockHandle], bool],
    ) -> None:
        super().__init__()
        self._world = world
        self._dimension = dimension
        self._locations = list(locations)
        self._predicate = predicate
        self._index = 0

    def step(self) -> Outcome:
        if self._index >= len(self._locations):
            return Done(None)
        location = self._locations[self._index]
        self._index += 1
        block = try_get_block(self._world, self._dimension, location)
        if block is not None and block.is_valid and self._predicate(block):
            return Done(block)
        return PENDING
