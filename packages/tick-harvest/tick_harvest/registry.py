"""AgentRegistry - owns live agents and drives them once per tick."""
from __future__ import annotations

import logging
import random
from typing import TYPE_CHECKING, Any, Callable

from tick_harvest.agent import Agent
from tick_harvest.config import HarvestConfig, woodcutter_config
from tick_harvest.jobs import JobScheduler, Timer
from tick_harvest.properties import NEXT_ID_KEY, SEARCH_DISTANCE, AgentProperties
from tick_harvest.types import (
    AgentState,
    Location,
    PropertySchemaError,
    RegionUnloaded,
)
from tick_harvest.world import try_get_block

if TYPE_CHECKING:
    from tick_harvest.world import AgentEntity, HostWorld

logger = logging.getLogger(__name__)

TransitionCallback = Callable[[Agent, AgentState, AgentState], None]


class AgentRegistry:
    """Identity-keyed store of agents plus a reverse index by anchor location.

    ``tick()`` visits agents in registration order, then advances the job
    scheduler. Agent failures are contained to the failing agent.
    """

    def __init__(
        self,
        world: HostWorld,
        config: HarvestConfig | None = None,
        scheduler: JobScheduler | None = None,
        on_transition: TransitionCallback | None = None,
    ) -> None:
        self._world = world
        self._config = config if config is not None else woodcutter_config()
        self._scheduler = (
            scheduler if scheduler is not None
            else JobScheduler(self._config.max_resumes_per_tick)
        )
        self._on_transition = on_transition
        self._agents: dict[int, Agent] = {}
        self._by_anchor: dict[Location, int] = {}
        self._load_polls: dict[int, Timer] = {}

    @property
    def world(self) -> HostWorld:
        return self._world

    @property
    def config(self) -> HarvestConfig:
        return self._config

    @property
    def scheduler(self) -> JobScheduler:
        return self._scheduler

    # -- Membership --

    def register(self, agent: Agent) -> None:
        current = self._agents.get(agent.agent_id)
        if current is agent:
            return
        if current is not None:
            raise ValueError(f"Agent id {agent.agent_id} is already registered")
        owner = self._by_anchor.get(agent.anchor)
        if owner is not None:
            raise ValueError(f"Anchor {agent.anchor} already belongs to agent {owner}")
        self._agents[agent.agent_id] = agent
        self._by_anchor[agent.anchor] = agent.agent_id
        logger.debug("registered agent %d at %s", agent.agent_id, agent.anchor)

    def unregister(self, agent: Agent) -> None:
        """Forget *agent* and drop its in-flight work. Idempotent."""
        if self._agents.get(agent.agent_id) is not agent:
            return
        del self._agents[agent.agent_id]
        if self._by_anchor.get(agent.anchor) == agent.agent_id:
            del self._by_anchor[agent.anchor]
        poll = self._load_polls.pop(agent.agent_id, None)
        if poll is not None:
            self._scheduler.cancel(poll)
        agent.teardown()
        logger.debug("unregistered agent %d", agent.agent_id)

    def get(self, agent_id: int) -> Agent | None:
        return self._agents.get(agent_id)

    def find_by_location(self, location: Location) -> Agent | None:
        """Return the agent anchored at *location*, if any."""
        agent_id = self._by_anchor.get(Location.of(location))
        if agent_id is None:
            return None
        return self._agents.get(agent_id)

    def agents(self) -> list[Agent]:
        return list(self._agents.values())

    def __len__(self) -> int:
        return len(self._agents)

    def __contains__(self, agent: object) -> bool:
        return isinstance(agent, Agent) and self._agents.get(agent.agent_id) is agent

    # -- Tick --

    def tick(self) -> None:
        for agent in list(self._agents.values()):
            # Skip agents unregistered earlier in this pass.
            if self._agents.get(agent.agent_id) is not agent:
                continue
            try:
                agent.tick()
            except Exception as exc:
                logger.exception("agent %d failed during tick", agent.agent_id)
                agent.abort(exc)
        self._scheduler.run_tick()

    def _notify_transition(self, agent: Agent, old: AgentState, new: AgentState) -> None:
        logger.debug("agent %d: %s -> %s", agent.agent_id, old.name, new.name)
        if self._on_transition is not None:
            self._on_transition(agent, old, new)

    # -- Host events --

    def next_id(self) -> int:
        """Allocate the next agent id from the world's persisted counter."""
        raw: Any = self._world.get_property(NEXT_ID_KEY)
        next_id = 1 if raw is None else int(raw)
        self._world.set_property(NEXT_ID_KEY, next_id + 1)
        return next_id

    def spawn(
        self,
        anchor: Location,
        dimension: str = "overworld",
        rng: random.Random | None = None,
    ) -> Agent | None:
        """Spawn and register a new agent next to a freshly placed anchor."""
        anchor = Location.of(anchor)
        existing = self.find_by_location(anchor)
        if existing is not None:
            return existing
        anchor_block = try_get_block(self._world, dimension, anchor)
        if anchor_block is None or anchor_block.type_id not in self._config.anchor_types:
            logger.warning("no anchor block at %s; not spawning", anchor)
            return None

        empty: list[Location] = []
        for dx in (-1, 0, 1):
            for dy in (-1, 0, 1):
                for dz in (-1, 0, 1):
                    if (dx, dy, dz) == (0, 0, 0):
                        continue
                    cell = anchor.offset(dx, dy, dz)
                    block = try_get_block(self._world, dimension, cell)
                    if block is not None and block.type_id == self._config.empty_type:
                        empty.append(cell)
        if not empty:
            logger.warning("no empty space around %s; cannot spawn an agent", anchor)
            return None

        location = (rng or random.Random()).choice(empty)
        entity = self._world.spawn_entity(self._config.entity_type, dimension, location)
        agent_id = self.next_id()
        AgentProperties(
            agent_id=agent_id,
            anchor=anchor,
            search_distance=self._config.default_search_distance,
        ).save(entity)
        agent = Agent(agent_id, entity, anchor, self)
        self.register(agent)
        logger.info("spawned agent %d at %s for anchor %s", agent_id, location, anchor)
        return agent

    def load_entity(self, entity: AgentEntity) -> Agent | None:
        """Rebuild the agent persisted on *entity*, or return the live one.

        The agent stays ``loading`` until its anchor's region is resident;
        meanwhile the anchor is polled every ``load_poll_ticks``.
        """
        try:
            props = AgentProperties.load(entity, self._config)
        except PropertySchemaError as exc:
            logger.warning("discarding agent entity with unusable properties: %s", exc)
            entity.kill()
            return None

        existing = self._agents.get(props.agent_id)
        if existing is not None:
            return existing
        owner = self.find_by_location(props.anchor)
        if owner is not None:
            logger.warning("anchor %s already belongs to agent %d; discarding agent %d",
                           props.anchor, owner.agent_id, props.agent_id)
            entity.kill()
            return None

        # Store the clamped radius so later reads are in range.
        SEARCH_DISTANCE.write(entity, props.search_distance)
        agent = Agent(props.agent_id, entity, props.anchor, self)
        agent.loading = True
        self.register(agent)
        self._check_anchor(agent)
        return agent

    def _check_anchor(self, agent: Agent) -> None:
        self._load_polls.pop(agent.agent_id, None)
        if agent not in self:
            return
        try:
            block = self._world.get_block_at(agent.dimension, agent.anchor)
        except RegionUnloaded:
            self._load_polls[agent.agent_id] = self._scheduler.wait(
                self._config.load_poll_ticks,
                lambda: self._check_anchor(agent),
                name=f"agent-{agent.agent_id}:load",
            )
            return
        if block is not None and block.type_id in self._config.anchor_types:
            agent.loading = False
            logger.debug("agent %d loaded at anchor %s", agent.agent_id, agent.anchor)
        else:
            logger.info("anchor of agent %d at %s is gone; removing", agent.agent_id, agent.anchor)
            agent.remove()

    def on_manager_removed(self, location: Location) -> None:
        """Remove the agent anchored at *location*, if any."""
        agent = self.find_by_location(location)
        if agent is not None:
            agent.remove()
