"""Harvest configuration dataclass and presets."""
from __future__ import annotations

from dataclasses import dataclass, field

from tick_harvest import blocks

TICKS_PER_SECOND = 20


@dataclass(frozen=True)
class HarvestConfig:
    """Immutable configuration shared by every agent of one registry.

    Attributes:
        anchor_types: Block types that act as an agent's home anchor.
        entity_type: Entity type spawned for new agents.
        empty_type: Block type written over harvested cells and searched
            for when spawning.
        target_types: Block types an agent searches for and harvests.
        target_tags: Block tags that also qualify a cell as a target.
        decorator_types: Types that must be connected to a target for it to
            count as a real structure (leaves for trees).
        min_decorators: Minimum connected decorator cells for a valid target.
        validation_limit: Cell cap of the structure validation flood fill.
        harvest_limit: Cell cap of the connected-target harvest flood fill.
        passable_types: Types that searches and paths may traverse.
        passable_tags: Tags that searches and paths may traverse.
        unjumpable_types: Types that cannot be stepped over (walls, fences).
        delivery_types: Block types accepted as delivery points.
        soil_types: Types a sapling can be replanted on.
        stripped_variants: Output type per target type when stripping is on.
        sapling_for: Sapling type planted back per harvested target type.
        square_sapling_types: Target types replanted as a 2x2 of saplings under
            the trunk, and only when all four cells can take one.
        replant_depth: Cells scanned below a target for soil when replanting.
        default_search_distance: Search radius when none is persisted.
        min_search_distance: Lower bound of a persisted search radius.
        max_search_distance: Upper bound of a persisted search radius.
        path_budget: Maximum A* node expansions per path.
        path_expansions_per_resume: A* expansions per planner resume.
        move_speed: Fraction of a cell moved per movement resume.
        max_travel_failures: Consecutive travel failures tolerated before
            the agent resets to IDLE.
        action_ticks: Default duration of the timed action.
        action_ticks_by_type: Per target type overrides of action_ticks.
        *_backoff: Waits, in ticks, taken on each recovery path.
        load_poll_ticks: Interval between anchor checks while loading.
        max_resumes_per_tick: Job resumptions granted per job per tick.
    """

    anchor_types: frozenset[str] = frozenset({blocks.WOODCUTTER_MANAGER})
    entity_type: str = blocks.WOODCUTTER_ENTITY
    empty_type: str = blocks.AIR
    target_types: frozenset[str] = frozenset()
    target_tags: frozenset[str] = frozenset()
    decorator_types: frozenset[str] = frozenset()
    min_decorators: int = 4
    validation_limit: int = 100
    harvest_limit: int = 75
    passable_types: frozenset[str] = frozenset({blocks.AIR})
    passable_tags: frozenset[str] = frozenset()
    unjumpable_types: frozenset[str] = frozenset()
    delivery_types: frozenset[str] = frozenset({blocks.CHEST})
    soil_types: frozenset[str] = frozenset({blocks.DIRT, blocks.GRASS})
    stripped_variants: dict[str, str] = field(default_factory=dict)
    sapling_for: dict[str, str] = field(default_factory=dict)
    square_sapling_types: frozenset[str] = frozenset()
    replant_depth: int = 5
    default_search_distance: int = 10
    min_search_distance: int = 5
    max_search_distance: int = 20
    path_budget: int = 300
    path_expansions_per_resume: int = 4
    move_speed: float = 1 / 6
    max_travel_failures: int = 4
    action_ticks: int = 100
    action_ticks_by_type: dict[str, int] = field(default_factory=dict)
    paused_backoff: int = 30 * TICKS_PER_SECOND
    unloaded_backoff: int = 90 * TICKS_PER_SECOND
    not_found_backoff: int = 10 * TICKS_PER_SECOND
    rejected_backoff: int = 15 * TICKS_PER_SECOND
    travel_backoff: int = 150
    target_lost_backoff: int = 150
    harvest_retry_backoff: int = 100
    delivery_backoff: int = 200
    load_poll_ticks: int = 50
    max_resumes_per_tick: int = 8

    def action_duration(self, type_id: str) -> int:
        return self.action_ticks_by_type.get(type_id, self.action_ticks)


def woodcutter_config(**overrides: object) -> HarvestConfig:
    """Return the woodcutter preset, with optional field overrides."""
    passable = frozenset(
        {blocks.AIR, blocks.TALL_GRASS, blocks.VINE}
        | set(blocks.LEAVES_TYPES)
        | set(blocks.SAPLING_TYPES)
    )
    values: dict[str, object] = {
        "target_types": frozenset(blocks.LOG_TYPES),
        "decorator_types": frozenset(blocks.LEAVES_TYPES),
        "passable_types": passable,
        "passable_tags": frozenset(blocks.FLOWER_TAGS),
        "unjumpable_types": frozenset(blocks.WALL_TYPES + blocks.FENCE_TYPES),
        "stripped_variants": dict(blocks.STRIPPED_VARIANTS),
        "sapling_for": dict(blocks.SAPLING_FOR_LOG),
        "square_sapling_types": frozenset({blocks.DARK_OAK_LOG}),
        "action_ticks_by_type": {blocks.DARK_OAK_LOG: 300},
    }
    values.update(overrides)
    return HarvestConfig(**values)  # type: ignore[arg-type]
