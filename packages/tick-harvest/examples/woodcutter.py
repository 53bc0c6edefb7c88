"""Woodcutter -- one agent clearing a small grove in a headless voxel world.

Demonstrates:
- Building a VoxelWorld with an anchor block, a chest and a few trees
- Spawning an agent through the AgentRegistry
- Driving everything with one registry.tick() per simulation step
- Watching state transitions and the chest fill up

Run: python examples/woodcutter.py
"""

import logging
import random

from tick_harvest import AgentRegistry, Location, VoxelWorld, woodcutter_config
from tick_harvest import blocks

LEAVES = "minecraft:oak_leaves"


def plant_tree(world: VoxelWorld, base: Location, log: str, height: int = 5) -> None:
    for dy in range(height):
        world.set(base.above(dy), log)
    top = base.above(height - 1)
    for dx in (-1, 0, 1):
        for dz in (-1, 0, 1):
            world.set(top.offset(dx, 1, dz), LEAVES)


def plant_dark_oak(world: VoxelWorld, corner: Location, height: int = 6) -> None:
    """Dark oak grows on a 2x2 and is replanted as one."""
    for dx in (0, 1):
        for dz in (0, 1):
            for dy in range(height):
                world.set(corner.offset(dx, dy, dz), blocks.DARK_OAK_LOG)
    for dx in range(-1, 3):
        for dz in range(-1, 3):
            world.set(corner.offset(dx, height, dz), "minecraft:dark_oak_leaves")


def build_world() -> tuple[VoxelWorld, Location, Location]:
    world = VoxelWorld()
    world.fill(Location(-24, -1, -24), Location(24, -1, 24), blocks.DIRT)

    anchor = Location(0, 0, 0)
    chest = Location(0, 0, 1)
    world.set(anchor, blocks.WOODCUTTER_MANAGER)
    world.set(chest, blocks.CHEST)

    plant_tree(world, Location(5, 0, 2), "minecraft:oak_log")
    plant_tree(world, Location(-4, 0, -5), "minecraft:birch_log")
    plant_dark_oak(world, Location(2, 0, -8))

    # A lone log without leaves is rejected as a target.
    world.set(Location(-3, 0, 3), "minecraft:spruce_log")
    return world, anchor, chest


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(name)s: %(message)s")
    print("=== Woodcutter ===\n")

    world, anchor, chest = build_world()

    def on_transition(agent, old, new):
        print(f"  tick {registry.scheduler.tick_number:5d}  |  agent {agent.agent_id}: "
              f"{old.name} -> {new.name}")

    registry = AgentRegistry(world, woodcutter_config(), on_transition=on_transition)
    agent = registry.spawn(anchor, rng=random.Random(7))
    print(f"Spawned agent {agent.agent_id} at {agent.entity.location}\n")

    for _ in range(4000):
        registry.tick()

    print(f"\nChest at {chest}:")
    for resource, amount in sorted(world.contents(chest).items()):
        print(f"  {resource:36s} {amount}")
    print(f"Ignored: {', '.join(str(loc) for loc in agent.ignore) or 'nothing'}")


if __name__ == "__main__":
    main()
