"""Tests for AgentRegistry: membership, spawning, loading and ticking."""
import logging
import random

import pytest

from tick_harvest import (
    Agent,
    AgentProperties,
    AgentRegistry,
    AgentState,
    Location,
    VoxelWorld,
)
from tick_harvest import blocks

STONE = "minecraft:stone"
DIM = "overworld"


def make_world(*anchors):
    world = VoxelWorld()
    world.fill(Location(-20, -1, -20), Location(20, -1, 20), blocks.DIRT)
    for anchor in anchors:
        world.set(anchor, blocks.WOODCUTTER_MANAGER)
    return world


def persisted_entity(world, agent_id, anchor, location=Location(1, 0, 1)):
    entity = world.spawn_entity(blocks.WOODCUTTER_ENTITY, DIM, location)
    AgentProperties(agent_id=agent_id, anchor=anchor).save(entity)
    return entity


class TestMembership:
    """register, unregister and lookups."""

    def test_register_and_lookup(self):
        world = make_world()
        registry = AgentRegistry(world)
        entity = world.spawn_entity(blocks.WOODCUTTER_ENTITY, DIM, Location(1, 0, 0))
        agent = Agent(5, entity, Location(0, 0, 0), registry)

        registry.register(agent)
        registry.register(agent)

        assert len(registry) == 1
        assert agent in registry
        assert registry.get(5) is agent
        assert registry.find_by_location(Location(0, 0, 0)) is agent
        assert registry.find_by_location(Location(0, 1, 0)) is None

    def test_duplicate_id_rejected(self):
        world = make_world()
        registry = AgentRegistry(world)
        entity = world.spawn_entity(blocks.WOODCUTTER_ENTITY, DIM, Location(1, 0, 0))
        registry.register(Agent(1, entity, Location(0, 0, 0), registry))
        with pytest.raises(ValueError):
            registry.register(Agent(1, entity, Location(5, 0, 0), registry))

    def test_duplicate_anchor_rejected(self):
        world = make_world()
        registry = AgentRegistry(world)
        entity = world.spawn_entity(blocks.WOODCUTTER_ENTITY, DIM, Location(1, 0, 0))
        registry.register(Agent(1, entity, Location(0, 0, 0), registry))
        with pytest.raises(ValueError):
            registry.register(Agent(2, entity, Location(0, 0, 0), registry))

    def test_unregister_is_idempotent(self):
        world = make_world(Location(0, 0, 0))
        registry = AgentRegistry(world)
        agent = registry.spawn(Location(0, 0, 0))
        registry.tick()
        assert agent.in_flight is not None

        registry.unregister(agent)
        registry.unregister(agent)

        assert len(registry) == 0
        assert registry.find_by_location(Location(0, 0, 0)) is None
        assert agent.in_flight is None
        assert registry.scheduler.jobs() == ()
        assert registry.scheduler.timers() == ()

    def test_reregistered_agent_cycles_again(self):
        """An agent unregistered mid-phase comes back ready and IDLE."""
        anchor = Location(0, 0, 0)
        world = make_world(anchor)
        transitions = []
        registry = AgentRegistry(
            world, on_transition=lambda agent, old, new: transitions.append((old, new))
        )
        agent = registry.spawn(anchor, rng=random.Random(0))
        registry.tick()
        assert not agent.ready

        registry.unregister(agent)
        assert agent.ready
        assert agent.state is AgentState.IDLE
        assert agent.entity.get_property("harvest:state") == "IDLE"

        registry.register(agent)
        registry.tick()
        assert agent.state is AgentState.SEARCHING
        assert agent.in_flight is not None
        assert transitions == [
            (AgentState.IDLE, AgentState.SEARCHING),
            (AgentState.SEARCHING, AgentState.IDLE),
            (AgentState.IDLE, AgentState.SEARCHING),
        ]

    def test_agents_in_registration_order(self):
        anchors = [Location(0, 0, 0), Location(8, 0, 0), Location(-8, 0, 0)]
        world = make_world(*anchors)
        registry = AgentRegistry(world)
        spawned = [registry.spawn(anchor) for anchor in anchors]
        assert registry.agents() == spawned


class TestTick:
    """Per-step dispatch."""

    def test_tick_advances_scheduler(self):
        registry = AgentRegistry(make_world())
        registry.tick()
        registry.tick()
        assert registry.scheduler.tick_number == 2

    def test_self_removal_does_not_disturb_the_pass(self):
        """An agent removing itself mid-pass does not skip the agents after it."""
        anchors = [Location(0, 0, 0), Location(8, 0, 0)]
        world = make_world(*anchors)
        registry = AgentRegistry(world)
        first, second = (registry.spawn(anchor) for anchor in anchors)

        world.set(anchors[0], blocks.AIR)
        registry.tick()

        assert first not in registry
        assert not first.entity.alive
        assert second in registry
        assert second.state is AgentState.SEARCHING

    def test_failing_agent_is_reset_without_stopping_the_pass(self, monkeypatch):
        anchors = [Location(0, 0, 0), Location(8, 0, 0)]
        world = make_world(*anchors)
        registry = AgentRegistry(world)
        first, second = (registry.spawn(anchor) for anchor in anchors)

        def broken():
            raise RuntimeError("broken search")

        monkeypatch.setattr(first, "_start_search", broken)
        registry.tick()

        assert first.state is AgentState.IDLE
        assert first.ready
        assert first.in_flight is None
        assert second.state is AgentState.SEARCHING

    def test_transition_callback(self):
        world = make_world(Location(0, 0, 0))
        seen = []
        registry = AgentRegistry(world, on_transition=lambda a, old, new: seen.append((old, new)))
        agent = registry.spawn(Location(0, 0, 0))
        registry.tick()
        assert seen == [(AgentState.IDLE, AgentState.SEARCHING)]
        assert agent.entity.get_property("harvest:state") == "SEARCHING"


class TestSpawn:
    """Creating agents for freshly placed anchors."""

    def test_spawn_persists_identity(self):
        anchor = Location(0, 0, 0)
        world = make_world(anchor)
        registry = AgentRegistry(world)
        agent = registry.spawn(anchor, rng=random.Random(1))

        assert agent.agent_id == 1
        assert agent.anchor == anchor
        assert agent.state is AgentState.IDLE
        assert agent.entity.get_property("harvest:id") == 1
        assert agent.entity.get_property("harvest:anchor_x") == 0
        assert agent.entity.get_property("harvest:search_distance") == 10
        assert max(abs(agent.entity.location.x), abs(agent.entity.location.y),
                   abs(agent.entity.location.z)) == 1
        assert world.type_at(agent.entity.location) == blocks.AIR

    def test_ids_are_sequential(self):
        anchors = [Location(0, 0, 0), Location(8, 0, 0)]
        world = make_world(*anchors)
        registry = AgentRegistry(world)
        assert [registry.spawn(a).agent_id for a in anchors] == [1, 2]
        assert world.get_property("harvest:next_agent_id") == 3

    def test_spawn_twice_returns_existing(self):
        world = make_world(Location(0, 0, 0))
        registry = AgentRegistry(world)
        first = registry.spawn(Location(0, 0, 0))
        assert registry.spawn(Location(0, 0, 0)) is first
        assert len(world.entities()) == 1

    def test_spawn_without_anchor_block(self):
        registry = AgentRegistry(make_world())
        assert registry.spawn(Location(0, 0, 0)) is None

    def test_spawn_without_room(self):
        world = make_world()
        world.fill(Location(-1, -1, -1), Location(1, 1, 1), STONE)
        world.set(Location(0, 0, 0), blocks.WOODCUTTER_MANAGER)
        registry = AgentRegistry(world)
        assert registry.spawn(Location(0, 0, 0)) is None
        assert world.entities() == []


class TestLoad:
    """Rebuilding agents from persisted entities."""

    def test_load_entity(self):
        anchor = Location(0, 0, 0)
        world = make_world(anchor)
        registry = AgentRegistry(world)
        entity = persisted_entity(world, 9, anchor)

        agent = registry.load_entity(entity)

        assert agent.agent_id == 9
        assert agent.anchor == anchor
        assert not agent.loading
        assert registry.find_by_location(anchor) is agent

    def test_loading_twice_yields_one_agent(self):
        anchor = Location(0, 0, 0)
        world = make_world(anchor)
        registry = AgentRegistry(world)
        entity = persisted_entity(world, 9, anchor)

        assert registry.load_entity(entity) is registry.load_entity(entity)
        assert len(registry) == 1

    def test_clamped_search_distance_is_stored(self, caplog):
        anchor = Location(0, 0, 0)
        world = make_world(anchor)
        registry = AgentRegistry(world)
        entity = persisted_entity(world, 9, anchor)
        entity.set_property("harvest:search_distance", 50)

        with caplog.at_level(logging.WARNING, logger="tick_harvest.properties"):
            agent = registry.load_entity(entity)
            assert agent.search_distance == 20
            assert agent.search_distance == 20

        assert entity.get_property("harvest:search_distance") == 20
        assert len([r for r in caplog.records if "clamped" in r.getMessage()]) == 1

    def test_loaded_agent_starts_idle(self):
        anchor = Location(0, 0, 0)
        world = make_world(anchor)
        registry = AgentRegistry(world)
        entity = persisted_entity(world, 9, anchor)
        entity.set_property("harvest:state", "ACTING")
        assert registry.load_entity(entity).state is AgentState.IDLE

    def test_missing_anchor_kills_entity(self):
        world = make_world()
        registry = AgentRegistry(world)
        entity = world.spawn_entity(blocks.WOODCUTTER_ENTITY, DIM, Location(1, 0, 1))
        entity.set_property("harvest:id", 3)

        assert registry.load_entity(entity) is None
        assert not entity.alive
        assert len(registry) == 0

    def test_anchor_gone_removes_agent(self):
        world = make_world()
        registry = AgentRegistry(world)
        entity = persisted_entity(world, 9, Location(0, 0, 0))

        registry.load_entity(entity)

        assert len(registry) == 0
        assert not entity.alive

    def test_waits_for_anchor_region(self):
        """The agent stays loading and the anchor is polled every 50 ticks."""
        anchor = Location(40, 0, 0)
        world = make_world(anchor)
        world.unload(anchor)
        registry = AgentRegistry(world)
        agent = registry.load_entity(persisted_entity(world, 9, anchor))

        assert agent.loading
        registry.tick()
        assert agent.state is AgentState.IDLE

        world.load(anchor)
        for _ in range(48):
            registry.tick()
        assert agent.loading
        registry.tick()
        assert not agent.loading

    def test_unregister_while_loading_stops_polling(self):
        anchor = Location(40, 0, 0)
        world = make_world(anchor)
        world.unload(anchor)
        registry = AgentRegistry(world)
        agent = registry.load_entity(persisted_entity(world, 9, anchor))

        registry.unregister(agent)
        assert registry.scheduler.timers() == ()


class TestManagerRemoved:
    """Breaking an anchor block."""

    def test_on_manager_removed_kills_the_agent(self):
        anchor = Location(0, 0, 0)
        world = make_world(anchor)
        registry = AgentRegistry(world)
        agent = registry.spawn(anchor)

        registry.on_manager_removed(anchor)

        assert agent not in registry
        assert not agent.entity.alive

    def test_unknown_location_is_ignored(self):
        registry = AgentRegistry(make_world())
        registry.on_manager_removed(Location(3, 3, 3))
        assert len(registry) == 0
