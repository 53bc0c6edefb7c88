"""Budgeted A* path planning and the travel job built on it."""
from __future__ import annotations

import heapq
import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from tick_harvest.jobs import PENDING, Done, Job, Outcome
from tick_harvest.search import classify
from tick_harvest.types import CellKind, Location, PathSpec, TravelOutcome
from tick_harvest.world import try_get_block

if TYPE_CHECKING:
    from tick_harvest.world import AgentEntity, SpatialQuery

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathResult:
    path: list[Location] | None
    expanded: int

    @property
    def found(self) -> bool:
        return self.path is not None


class PathPlanner(Job):
    """A* over 6-connected passable cells, bounded by ``spec.budget`` expansions.

    The goal is reached at the goal cell itself, or next to it when the goal
    is not walkable (a log, a chest). Once the budget is spent the planner
    completes with a failed PathResult, never a truncated path.
    """

    def __init__(
        self,
        world: SpatialQuery,
        spec: PathSpec,
        expansions_per_resume: int = 1,
    ) -> None:
        super().__init__()
        if spec.budget < 0:
            raise ValueError(f"budget must be >= 0, got {spec.budget}")
        if expansions_per_resume <= 0:
            raise ValueError("expansions_per_resume must be positive")
        self._world = world
        self._spec = spec
        self._per_resume = expansions_per_resume
        self._walkable_cache: dict[Location, bool] = {}
        self._goal_walkable = self._walkable(spec.goal)

        start = spec.start
        self._open: list[tuple[float, int, Location]] = [
            (start.distance(spec.goal), 0, start)
        ]
        self._came_from: dict[Location, Location] = {}
        self._g_score: dict[Location, float] = {start: 0.0}
        self._closed: set[Location] = set()
        self._counter = 1
        self._expanded = 0

    @property
    def expanded(self) -> int:
        return self._expanded

    def step(self) -> Outcome:
        spec = self._spec
        for _ in range(self._per_resume):
            if not self._open:
                logger.debug("no path from %s to %s after %d expansions",
                             spec.start, spec.goal, self._expanded)
                return Done(PathResult(None, self._expanded))

            _, _, current = heapq.heappop(self._open)
            if current in self._closed:
                continue
            self._closed.add(current)

            if self._is_goal(current):
                return Done(PathResult(self._reconstruct(current), self._expanded))

            if self._expanded >= spec.budget:
                logger.debug("path budget of %d spent between %s and %s",
                             spec.budget, spec.start, spec.goal)
                return Done(PathResult(None, self._expanded))
            self._expanded += 1

            for neighbor in current.neighbors6():
                if neighbor in self._closed or not self._walkable(neighbor):
                    continue
                tentative = self._g_score[current] + 1.0
                if tentative < self._g_score.get(neighbor, float("inf")):
                    self._came_from[neighbor] = current
                    self._g_score[neighbor] = tentative
                    h = neighbor.distance(spec.goal)
                    heapq.heappush(self._open, (tentative + h, self._counter, neighbor))
                    self._counter += 1
        return PENDING

    def _is_goal(self, location: Location) -> bool:
        if location == self._spec.goal:
            return True
        return not self._goal_walkable and location.manhattan(self._spec.goal) == 1

    def _walkable(self, location: Location) -> bool:
        cached = self._walkable_cache.get(location)
        if cached is not None:
            return cached
        spec = self._spec
        block = try_get_block(self._world, spec.dimension, location)
        if block is None or not block.is_valid:
            walkable = False
        else:
            below = try_get_block(self._world, spec.dimension, location.below())
            kind = classify(
                block,
                below,
                passable_types=spec.passable_types,
                passable_tags=spec.passable_tags,
                unjumpable_types=spec.unjumpable_types,
            )
            walkable = kind is CellKind.PASSABLE
        self._walkable_cache[location] = walkable
        return walkable

    def _reconstruct(self, current: Location) -> list[Location]:
        path: list[Location] = [current]
        while current in self._came_from:
            current = self._came_from[current]
            path.append(current)
        path.reverse()
        return path


class TravelJob(Job):
    """Plan a path, then follow it with the entity's movement driver."""

    def __init__(
        self,
        world: SpatialQuery,
        entity: AgentEntity,
        spec: PathSpec,
        speed: float,
        expansions_per_resume: int = 1,
    ) -> None:
        super().__init__()
        self._entity = entity
        self._speed = speed
        self._planner = PathPlanner(world, spec, expansions_per_resume)
        self._movement: Job | None = None
        self._path_result: PathResult | None = None

    @property
    def path_result(self) -> PathResult | None:
        return self._path_result

    def step(self) -> Outcome:
        if self._movement is None:
            outcome = self._planner.resume()
            if not isinstance(outcome, Done):
                return PENDING
            self._path_result = outcome.value
            if not self._path_result.found:
                return Done(TravelOutcome.NO_PATH)
            if not self._entity.is_valid:
                return Done(TravelOutcome.NOT_REACHED)
            self._movement = self._entity.move_to(self._path_result.path, self._speed)
            return PENDING

        outcome = self._movement.resume()
        if not isinstance(outcome, Done):
            return PENDING
        return Done(TravelOutcome.REACHED if outcome.value else TravelOutcome.NOT_REACHED)
