"""End-to-end runs: agents harvest, replant and deposit in a VoxelWorld."""
import random

from tick_harvest import (
    AgentRegistry,
    AgentSettings,
    AgentState,
    Location,
    VoxelWorld,
    woodcutter_config,
)
from tick_harvest import blocks

OAK = "minecraft:oak_log"
BIRCH = "minecraft:birch_log"
LEAVES = "minecraft:oak_leaves"
DARK_OAK_SAPLING = "minecraft:dark_oak_sapling"
DARK_OAK_ROOTS = [Location(-5, 0, 0), Location(-5, 0, 1), Location(-4, 0, 0), Location(-4, 0, 1)]


def plant_tree(world, base, log=OAK, height=4):
    for dy in range(height):
        world.set(base.above(dy), log)
    top = base.above(height - 1)
    for loc in (top.offset(1, 0, 0), top.offset(-1, 0, 0),
                top.offset(0, 0, 1), top.offset(0, 0, -1), top.above()):
        world.set(loc, LEAVES)


def plant_dark_oak(world, corner, height=4):
    """Four dark oak trunks on a 2x2 under a flat canopy."""
    for dx in (0, 1):
        for dz in (0, 1):
            for dy in range(height):
                world.set(corner.offset(dx, dy, dz), blocks.DARK_OAK_LOG)
    for dx in range(-1, 3):
        for dz in range(-1, 3):
            world.set(corner.offset(dx, height, dz), "minecraft:dark_oak_leaves")


def homestead(world, anchor):
    """Anchor block with a chest on its +x side."""
    world.set(anchor, blocks.WOODCUTTER_MANAGER)
    world.set(anchor.offset(1, 0, 0), blocks.CHEST)
    return anchor.offset(1, 0, 0)


def make_world():
    world = VoxelWorld()
    world.fill(Location(-30, -1, -30), Location(30, -1, 30), blocks.DIRT)
    return world


def run_until(registry, predicate, limit=5000):
    for _ in range(limit):
        registry.tick()
        if predicate():
            return
    raise AssertionError("condition never reached")


class TestWoodcutter:
    """A full woodcutting cycle."""

    def test_harvest_replant_deposit(self):
        world = make_world()
        chest = homestead(world, Location(0, 0, 0))
        plant_tree(world, Location(4, 0, 0))
        registry = AgentRegistry(world)
        agent = registry.spawn(Location(0, 0, 0), rng=random.Random(3))

        run_until(registry, lambda: world.contents(chest))

        assert world.contents(chest) == {"minecraft:stripped_oak_log": 4}
        assert agent.carried == {}
        assert all(world.type_at(Location(4, y, 0)) != OAK for y in range(4))
        assert world.type_at(Location(4, 0, 0)) == "minecraft:oak_sapling"
        # Leaves are left standing.
        assert world.type_at(Location(4, 4, 0)) == LEAVES

    def test_unstripped_output(self):
        world = make_world()
        chest = homestead(world, Location(0, 0, 0))
        plant_tree(world, Location(0, 0, 5), log=BIRCH)
        registry = AgentRegistry(world)
        agent = registry.spawn(Location(0, 0, 0), rng=random.Random(3))
        agent.apply_settings(AgentSettings(enabled=True, search_distance=10, strip_output=False))

        run_until(registry, lambda: world.contents(chest))

        assert world.contents(chest) == {BIRCH: 4}
        assert world.type_at(Location(0, 0, 5)) == "minecraft:birch_sapling"

    def test_dark_oak_is_replanted_as_a_square(self):
        world = make_world()
        chest = homestead(world, Location(0, 0, 0))
        plant_dark_oak(world, Location(-5, 0, 0))
        registry = AgentRegistry(world)
        agent = registry.spawn(Location(0, 0, 0), rng=random.Random(3))

        run_until(registry, lambda: agent.state is AgentState.ACTING)
        assert agent.in_flight.remaining == 299
        run_until(registry, lambda: world.contents(chest))

        assert world.contents(chest) == {"minecraft:stripped_dark_oak_log": 16}
        for root in DARK_OAK_ROOTS:
            assert world.type_at(root) == DARK_OAK_SAPLING

    def test_dark_oak_needs_four_plantable_cells(self):
        world = make_world()
        chest = homestead(world, Location(0, 0, 0))
        plant_dark_oak(world, Location(-5, 0, 0))
        world.set(Location(-5, -1, 1), "minecraft:stone")
        registry = AgentRegistry(world)
        registry.spawn(Location(0, 0, 0), rng=random.Random(3))

        run_until(registry, lambda: world.contents(chest))

        assert all(world.type_at(root) == blocks.AIR for root in DARK_OAK_ROOTS)

    def test_agent_clears_a_small_forest(self):
        world = make_world()
        chest = homestead(world, Location(0, 0, 0))
        for base in (Location(4, 0, 0), Location(-4, 0, 3), Location(0, 0, -6)):
            plant_tree(world, base)
        registry = AgentRegistry(world)
        registry.spawn(Location(0, 0, 0), rng=random.Random(3))

        run_until(registry, lambda: world.contents(chest).get("minecraft:stripped_oak_log") == 12,
                  limit=10_000)

        saplings = [base for base in (Location(4, 0, 0), Location(-4, 0, 3), Location(0, 0, -6))
                    if world.type_at(base) == "minecraft:oak_sapling"]
        assert len(saplings) == 3


class TestManyAgents:
    """Agents share the world and the scheduler."""

    def test_two_agents_work_independently(self):
        world = make_world()
        west_chest = homestead(world, Location(-12, 0, 0))
        east_chest = homestead(world, Location(12, 0, 0))
        plant_tree(world, Location(-16, 0, 0))
        plant_tree(world, Location(16, 0, 0))
        registry = AgentRegistry(world, woodcutter_config(max_resumes_per_tick=4))
        west = registry.spawn(Location(-12, 0, 0), rng=random.Random(1))
        east = registry.spawn(Location(12, 0, 0), rng=random.Random(2))

        run_until(registry, lambda: world.contents(west_chest) and world.contents(east_chest))

        assert world.contents(west_chest) == {"minecraft:stripped_oak_log": 4}
        assert world.contents(east_chest) == {"minecraft:stripped_oak_log": 4}
        assert west.agent_id == 1
        assert east.agent_id == 2

    def test_readiness_holds_for_every_agent(self):
        world = make_world()
        anchors = [Location(-12, 0, 0), Location(0, 0, 12), Location(12, 0, 0)]
        for anchor in anchors:
            homestead(world, anchor)
            plant_tree(world, anchor.offset(-3, 0, 2))
        registry = AgentRegistry(world)
        for i, anchor in enumerate(anchors):
            registry.spawn(anchor, rng=random.Random(i))

        for _ in range(1200):
            registry.tick()
            for agent in registry.agents():
                assert agent.ready == (agent.in_flight is None)

    def test_removed_agent_stops_working(self):
        world = make_world()
        chest = homestead(world, Location(0, 0, 0))
        plant_tree(world, Location(4, 0, 0))
        registry = AgentRegistry(world)
        agent = registry.spawn(Location(0, 0, 0), rng=random.Random(3))

        run_until(registry, lambda: agent.state is AgentState.ACTING)
        world.set(Location(0, 0, 0), blocks.AIR)
        registry.on_manager_removed(Location(0, 0, 0))
        for _ in range(500):
            registry.tick()

        assert len(registry) == 0
        assert registry.scheduler.timers() == ()
        assert world.type_at(Location(4, 0, 0)) == OAK
        assert world.contents(chest) == {}
