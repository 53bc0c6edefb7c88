"""Agent - per-agent search, travel, act, travel, deliver state machine.

Each phase is entered on a tick while the agent is ready. Entering a phase
clears ``ready`` and starts exactly one job or timer on the registry's
scheduler; the phase's completion callback sets ``ready`` again, possibly
after chaining further jobs or a backoff wait. Every completion re-reads the
world before acting on it, since other agents and the host run in between.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from tick_harvest import properties
from tick_harvest.jobs import JobHandle, Timer
from tick_harvest.pathfind import TravelJob
from tick_harvest.search import (
    RegionSearch,
    ScanJob,
    connected_blocks,
    is_valid_structure,
    ring_around,
    square_base,
)
from tick_harvest.types import (
    AgentState,
    DeliveryUnavailable,
    EntityInvalidated,
    HarvestError,
    Location,
    PathNotFound,
    PathSpec,
    RegionUnloaded,
    SearchSpec,
    TargetInvalidated,
    TravelOutcome,
)
from tick_harvest.world import try_get_block

if TYPE_CHECKING:
    from tick_harvest.config import HarvestConfig
    from tick_harvest.jobs import Job
    from tick_harvest.properties import PropertyField
    from tick_harvest.registry import AgentRegistry
    from tick_harvest.world import AgentEntity, BlockHandle, HostWorld

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AgentSettings:
    """User-adjustable settings, persisted on the agent's entity."""

    enabled: bool
    search_distance: int
    strip_output: bool


class Agent:
    def __init__(
        self,
        agent_id: int,
        entity: AgentEntity,
        anchor: Location,
        registry: AgentRegistry,
    ) -> None:
        self._id = agent_id
        self._entity = entity
        self._anchor = anchor
        self._registry = registry
        self._state = AgentState.IDLE
        self._ready = True
        self._in_flight: JobHandle | Timer | None = None
        self._delivery_point: Location | None = None
        self.loading = False
        self.target: Location | None = None
        self.carried: dict[str, int] = {}
        self.travel_failures = 0
        self.ignore: list[Location] = []

    def __repr__(self) -> str:
        return f"Agent({self._id}, {self._state.name}, anchor={self._anchor})"

    # -- Accessors --

    @property
    def agent_id(self) -> int:
        return self._id

    @property
    def entity(self) -> AgentEntity:
        return self._entity

    @property
    def anchor(self) -> Location:
        return self._anchor

    @property
    def dimension(self) -> str:
        return self._entity.dimension

    @property
    def state(self) -> AgentState:
        return self._state

    @property
    def ready(self) -> bool:
        return self._ready

    @property
    def in_flight(self) -> JobHandle | Timer | None:
        """The single outstanding job or timer while not ready."""
        return self._in_flight

    @property
    def config(self) -> HarvestConfig:
        return self._registry.config

    @property
    def world(self) -> HostWorld:
        return self._registry.world

    # -- Persisted settings --

    def _read(self, field: PropertyField) -> object:
        if not self._entity.is_valid:
            return field.default
        return field.read(self._entity)

    def _write(self, field: PropertyField, value: object) -> None:
        if self._entity.is_valid:
            field.write(self._entity, value)

    @property
    def enabled(self) -> bool:
        return bool(self._read(properties.ENABLED))

    @property
    def search_distance(self) -> int:
        value = self._read(properties.SEARCH_DISTANCE)
        return properties.clamp_search_distance(value, self.config)  # type: ignore[arg-type]

    @property
    def strip_output(self) -> bool:
        return bool(self._read(properties.STRIP_OUTPUT))

    def settings(self) -> AgentSettings:
        return AgentSettings(
            enabled=self.enabled,
            search_distance=self.search_distance,
            strip_output=self.strip_output,
        )

    def apply_settings(self, settings: AgentSettings) -> None:
        distance = properties.clamp_search_distance(settings.search_distance, self.config)
        self._write(properties.ENABLED, settings.enabled)
        self._write(properties.SEARCH_DISTANCE, distance)
        self._write(properties.STRIP_OUTPUT, settings.strip_output)

    def set_state(self, state: AgentState) -> None:
        old = self._state
        self._state = state
        self._write(properties.STATE, state.name)
        if old is not state:
            self._registry._notify_transition(self, old, state)

    # -- Lifecycle --

    def remove(self) -> None:
        """Kill the entity and leave the registry."""
        if self._entity.is_valid:
            self._entity.kill()
        self._registry.unregister(self)

    def teardown(self) -> None:
        """Drop the in-flight job or timer and return to a ready IDLE.

        Called by the registry on unregister, so a re-registered agent
        starts a fresh cycle instead of waiting on cancelled work.
        """
        if self._in_flight is not None:
            self._registry.scheduler.cancel(self._in_flight)
            self._in_flight = None
        if not self._ready:
            self._write(properties.IS_MOVING, False)
            self._write(properties.IS_ACTING, False)
            self.set_state(AgentState.IDLE)
            self._ready = True

    # -- Tick --

    def tick(self) -> None:
        """Advance at most one transition. A no-op while a phase is in flight."""
        if self.loading or not self._ready:
            return

        cfg = self.config
        if not self._entity.is_valid:
            self._begin()
            self._backoff(EntityInvalidated(f"entity of agent {self._id} is invalid"),
                          cfg.paused_backoff, None)
            return
        if not self.enabled:
            self._begin()
            self._backoff("disabled", cfg.paused_backoff, None)
            return

        state = self._state
        if state is AgentState.IDLE:
            self.travel_failures = 0
            self.set_state(AgentState.SEARCHING)
            self._begin()
            self._start_search()
        elif state is AgentState.SEARCHING:
            self.set_state(AgentState.TRAVELING_TO_TARGET)
            self._begin()
            self._start_travel_to_target()
        elif state is AgentState.TRAVELING_TO_TARGET:
            self.set_state(AgentState.ACTING)
            self._begin()
            self._start_acting()
        elif state is AgentState.ACTING:
            self.set_state(AgentState.TRAVELING_TO_DELIVERY)
            self._begin()
            self._start_delivery()
        elif state is AgentState.TRAVELING_TO_DELIVERY:
            self.set_state(AgentState.IDLE)

    # -- Suspension helpers --

    def _begin(self) -> None:
        self._ready = False

    def _complete(self, state: AgentState | None = None) -> None:
        if state is not None:
            self.set_state(state)
        self._in_flight = None
        self._ready = True

    def _run(self, job: Job, on_done: Callable[[object], None], name: str) -> None:
        def done(value: object) -> None:
            self._in_flight = None
            on_done(value)

        self._in_flight = self._registry.scheduler.start(
            job, on_done=done, on_error=self.abort,
            name=f"agent-{self._id}:{name}",
        )

    def _wait(self, ticks: int, then: Callable[[], None], name: str) -> None:
        def fire() -> None:
            self._in_flight = None
            then()

        self._in_flight = self._registry.scheduler.wait(
            ticks, fire, on_error=self.abort,
            name=f"agent-{self._id}:{name}",
        )

    def _backoff(self, reason: HarvestError | str, ticks: int, state: AgentState | None) -> None:
        logger.debug("agent %d: %s; waiting %d ticks, then %s", self._id, reason, ticks,
                     state.name if state is not None else self._state.name)
        self._wait(ticks, lambda: self._complete(state), "backoff")

    def abort(self, exc: BaseException) -> None:
        """Abandon the current cycle after an unexpected error and reset to IDLE."""
        logger.error("agent %d: %s phase aborted by %r; resetting to IDLE",
                     self._id, self._state.name, exc)
        self.teardown()
        self._write(properties.IS_MOVING, False)
        self._write(properties.IS_ACTING, False)
        self._complete(AgentState.IDLE)

    # -- Cell helpers --

    def _is_target(self, block: BlockHandle) -> bool:
        cfg = self.config
        return block.type_id in cfg.target_types or not cfg.target_tags.isdisjoint(block.tags)

    def _is_passable(self, block: BlockHandle) -> bool:
        cfg = self.config
        return block.type_id in cfg.passable_types or not cfg.passable_tags.isdisjoint(block.tags)

    def _require_target(self) -> BlockHandle:
        if self.target is None:
            raise TargetInvalidated(f"agent {self._id} has no target")
        block = self.world.get_block_at(self.dimension, self.target)
        if block is None or not block.is_valid or not self._is_target(block):
            found = block.type_id if block is not None else None
            raise TargetInvalidated(f"target at {self.target} is now {found}")
        return block

    # -- Searching --

    def _start_search(self) -> None:
        cfg = self.config
        try:
            anchor_block = self.world.get_block_at(self.dimension, self._anchor)
        except RegionUnloaded as exc:
            self._backoff(exc, cfg.unloaded_backoff, AgentState.IDLE)
            return
        if anchor_block is None or anchor_block.type_id not in cfg.anchor_types:
            logger.info("agent %d: anchor at %s is gone; removing", self._id, self._anchor)
            self.remove()
            return

        spec = SearchSpec(
            center=self._anchor,
            dimension=self.dimension,
            radius=self.search_distance,
            target_types=cfg.target_types,
            target_tags=cfg.target_tags,
            passable_types=cfg.passable_types,
            passable_tags=cfg.passable_tags,
            ignore=frozenset(self.ignore),
            unjumpable_types=cfg.unjumpable_types,
        )
        logger.debug("agent %d: searching radius %d around %s", self._id, spec.radius, self._anchor)
        self._run(RegionSearch(self.world, spec), self._on_search_done, "search")

    def _on_search_done(self, block: BlockHandle | None) -> None:
        cfg = self.config
        if block is None:
            self._backoff("search found no target", cfg.not_found_backoff, AgentState.IDLE)
            return
        try:
            valid = is_valid_structure(
                self.world, block, cfg.decorator_types, cfg.min_decorators, cfg.validation_limit
            )
        except RegionUnloaded as exc:
            self._backoff(exc, cfg.not_found_backoff, AgentState.IDLE)
            return
        if not valid:
            self.ignore.append(block.location)
            self._backoff(
                f"{block.type_id} at {block.location} is not part of a structure",
                cfg.rejected_backoff,
                AgentState.IDLE,
            )
            return

        logger.debug("agent %d: target %s at %s", self._id, block.type_id, block.location)
        self.target = block.location
        self.ignore.clear()
        self._complete()

    # -- Traveling --

    def _travel(self, goal: Location, on_done: Callable[[object], None], name: str) -> None:
        cfg = self.config
        spec = PathSpec(
            start=Location.of(self._entity.location),
            goal=goal,
            dimension=self.dimension,
            passable_types=cfg.passable_types,
            passable_tags=cfg.passable_tags,
            unjumpable_types=cfg.unjumpable_types,
            budget=cfg.path_budget,
        )
        self._write(properties.IS_MOVING, True)
        job = TravelJob(
            self.world, self._entity, spec, cfg.move_speed, cfg.path_expansions_per_resume
        )
        self._run(job, on_done, name)

    def _start_travel_to_target(self) -> None:
        if self.target is None:
            logger.debug("agent %d: no target to travel to", self._id)
            self._complete(AgentState.IDLE)
            return
        self._travel(self.target, self._on_target_travel_done, "travel-to-target")

    def _on_target_travel_done(self, outcome: TravelOutcome) -> None:
        cfg = self.config
        self._write(properties.IS_MOVING, False)
        if not self._entity.is_valid:
            self._backoff(EntityInvalidated("entity lost while traveling"),
                          cfg.travel_backoff, AgentState.IDLE)
            return
        if outcome is TravelOutcome.REACHED:
            self.travel_failures = 0
            self._complete()
            return

        self.travel_failures += 1
        reason: HarvestError | str
        if outcome is TravelOutcome.NO_PATH:
            reason = PathNotFound(f"no path to {self.target}")
        else:
            reason = f"did not reach {self.target}"
        if self.travel_failures > cfg.max_travel_failures:
            logger.debug("agent %d: %d travel failures, giving up on %s",
                         self._id, self.travel_failures, self.target)
            self.travel_failures = 0
            self._backoff(reason, cfg.travel_backoff, AgentState.IDLE)
        else:
            self._backoff(reason, cfg.travel_backoff, AgentState.SEARCHING)

    # -- Acting --

    def _start_acting(self) -> None:
        cfg = self.config
        try:
            block = self._require_target()
        except (TargetInvalidated, RegionUnloaded) as exc:
            self.target = None
            self._backoff(exc, cfg.target_lost_backoff, AgentState.IDLE)
            return
        self._write(properties.IS_ACTING, True)
        self._wait(cfg.action_duration(block.type_id), self._finish_acting, "act")

    def _finish_acting(self) -> None:
        cfg = self.config
        if not self._entity.is_valid:
            self._complete(AgentState.IDLE)
            return
        self._write(properties.IS_ACTING, False)
        try:
            block = self._require_target()
        except (TargetInvalidated, RegionUnloaded) as exc:
            self.target = None
            self._backoff(exc, cfg.target_lost_backoff, AgentState.IDLE)
            return
        try:
            cells = connected_blocks(
                self.world, self.dimension, block.location, cfg.target_types, cfg.harvest_limit
            )
        except RegionUnloaded as exc:
            # Re-enter ACTING on the next ready tick.
            self._backoff(exc, cfg.harvest_retry_backoff, AgentState.TRAVELING_TO_TARGET)
            return

        resource = block.type_id
        if self.strip_output:
            resource = cfg.stripped_variants.get(resource, resource)
        # Root cells are taken from the standing trunk.
        roots = [block.location]
        if block.type_id in cfg.square_sapling_types:
            trunk = [cell.location for cell in cells if cell.type_id == block.type_id]
            roots = square_base(trunk, block.location)
        felled = 0
        for cell in cells:
            if cell.is_valid:
                self.world.set_block_type(cell, cfg.empty_type)
                felled += 1
        self.carried[resource] = self.carried.get(resource, 0) + felled
        logger.debug("agent %d: harvested %d x %s", self._id, felled, resource)

        self._replant(block.type_id, roots)
        self.target = None
        self._complete()

    def _plantable_cell(self, start: Location) -> BlockHandle | None:
        """The empty cell on top of the first soil below *start*, if any."""
        cfg = self.config
        for depth in range(1, cfg.replant_depth + 1):
            ground = try_get_block(self.world, self.dimension, start.below(depth))
            if ground is None:
                return None
            if ground.type_id == cfg.empty_type or self._is_passable(ground):
                continue
            if ground.type_id not in cfg.soil_types:
                return None
            above = try_get_block(self.world, self.dimension, ground.location.above())
            if above is None or above.type_id != cfg.empty_type:
                return None
            return above
        return None

    def _replant(self, type_id: str, roots: list[Location]) -> None:
        sapling = self.config.sapling_for.get(type_id)
        if sapling is None or not roots:
            return
        cells = [self._plantable_cell(root) for root in roots]
        if any(cell is None for cell in cells):
            logger.debug("agent %d: %d of %d cells plantable; not replanting %s",
                         self._id, sum(1 for c in cells if c is not None), len(cells), sapling)
            return
        for cell in cells:
            self.world.set_block_type(cell, sapling)
        logger.debug("agent %d: planted %d x %s", self._id, len(cells), sapling)

    # -- Delivering --

    def _start_delivery(self) -> None:
        delivery_types = self.config.delivery_types
        job = ScanJob(
            self.world,
            self.dimension,
            ring_around(self._anchor),
            lambda block: block.type_id in delivery_types,
        )
        self._run(job, self._on_delivery_point, "find-delivery")

    def _on_delivery_point(self, block: BlockHandle | None) -> None:
        cfg = self.config
        if block is None:
            self._backoff(DeliveryUnavailable(f"no delivery point next to {self._anchor}"),
                          cfg.delivery_backoff, AgentState.ACTING)
            return
        if not self._entity.is_valid:
            self._backoff(EntityInvalidated("entity lost before delivery"),
                          cfg.delivery_backoff, AgentState.ACTING)
            return
        self._delivery_point = block.location
        self._travel(block.location, self._on_delivery_travel_done, "travel-to-delivery")

    def _on_delivery_travel_done(self, outcome: TravelOutcome) -> None:
        cfg = self.config
        self._write(properties.IS_MOVING, False)
        if not self._entity.is_valid:
            self._complete(AgentState.IDLE)
            return
        if outcome is not TravelOutcome.REACHED:
            self._backoff(DeliveryUnavailable(f"could not reach {self._delivery_point}"),
                          cfg.delivery_backoff, AgentState.ACTING)
            return
        try:
            self._deposit()
        except (DeliveryUnavailable, RegionUnloaded) as exc:
            self._backoff(exc, cfg.delivery_backoff, AgentState.ACTING)
            return
        self._complete()

    def _deposit(self) -> None:
        if self._delivery_point is None:
            raise DeliveryUnavailable("no delivery point chosen")
        container = self.world.get_block_at(self.dimension, self._delivery_point)
        if container is None or container.type_id not in self.config.delivery_types:
            raise DeliveryUnavailable(f"delivery point at {self._delivery_point} is gone")
        # Entries leave ``carried`` only once deposited.
        for resource, amount in list(self.carried.items()):
            if amount > 0:
                self.world.add_item(container, resource, amount)
            del self.carried[resource]
        logger.debug("agent %d: deposited at %s", self._id, self._delivery_point)
