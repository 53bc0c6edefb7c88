"""Block type catalogue for the woodcutter preset."""
from __future__ import annotations

AIR = "minecraft:air"
CHEST = "minecraft:chest"
DIRT = "minecraft:dirt"
GRASS = "minecraft:grass"
TALL_GRASS = "minecraft:tallgrass"
VINE = "minecraft:vine"
DARK_OAK_LOG = "minecraft:dark_oak_log"

WOODCUTTER_MANAGER = "harvest:woodcutter_manager"
WOODCUTTER_ENTITY = "harvest:woodcutter"

# "minecraft:log" is deliberately absent: it matches every log.
LOG_TYPES = (
    "minecraft:oak_log",
    "minecraft:birch_log",
    "minecraft:spruce_log",
    "minecraft:jungle_log",
    "minecraft:acacia_log",
    DARK_OAK_LOG,
    "minecraft:mangrove_log",
    "minecraft:mangrove_roots",
    "minecraft:cherry_log",
)

LEAVES_TYPES = (
    "minecraft:oak_leaves",
    "minecraft:birch_leaves",
    "minecraft:acacia_leaves",
    "minecraft:azalea_leaves",
    "minecraft:azalea_leaves_flowered",
    "minecraft:cherry_leaves",
    "minecraft:jungle_leaves",
    "minecraft:spruce_leaves",
    "minecraft:dark_oak_leaves",
    "minecraft:mangrove_leaves",
)

SAPLING_TYPES = (
    "minecraft:oak_sapling",
    "minecraft:birch_sapling",
    "minecraft:acacia_sapling",
    "minecraft:spruce_sapling",
    "minecraft:cherry_sapling",
    "minecraft:jungle_sapling",
    "minecraft:dark_oak_sapling",
    "minecraft:pale_oak_sapling",
)

FLOWER_TAGS = ("flowers", "small_flowers", "tall_flowers")

WALL_TYPES = (
    "minecraft:cobblestone_wall",
    "minecraft:mossy_cobblestone_wall",
    "minecraft:stone_brick_wall",
    "minecraft:mossy_stone_brick_wall",
    "minecraft:brick_wall",
    "minecraft:sandstone_wall",
    "minecraft:red_sandstone_wall",
    "minecraft:granite_wall",
    "minecraft:diorite_wall",
    "minecraft:andesite_wall",
    "minecraft:nether_brick_wall",
    "minecraft:blackstone_wall",
    "minecraft:deepslate_brick_wall",
    "minecraft:mud_brick_wall",
)

FENCE_TYPES = (
    "minecraft:oak_fence",
    "minecraft:spruce_fence",
    "minecraft:birch_fence",
    "minecraft:jungle_fence",
    "minecraft:acacia_fence",
    "minecraft:dark_oak_fence",
    "minecraft:mangrove_fence",
    "minecraft:cherry_fence",
    "minecraft:bamboo_fence",
    "minecraft:crimson_fence",
    "minecraft:warped_fence",
    "minecraft:nether_brick_fence",
    "minecraft:oak_fence_gate",
    "minecraft:spruce_fence_gate",
    "minecraft:birch_fence_gate",
)

STRIPPED_VARIANTS = {
    "minecraft:oak_log": "minecraft:stripped_oak_log",
    "minecraft:birch_log": "minecraft:stripped_birch_log",
    "minecraft:spruce_log": "minecraft:stripped_spruce_log",
    "minecraft:jungle_log": "minecraft:stripped_jungle_log",
    "minecraft:acacia_log": "minecraft:stripped_acacia_log",
    DARK_OAK_LOG: "minecraft:stripped_dark_oak_log",
    "minecraft:mangrove_log": "minecraft:stripped_mangrove_log",
    "minecraft:cherry_log": "minecraft:stripped_cherry_log",
}

# Dark oak is planted back as a 2x2, see HarvestConfig.square_sapling_types.
SAPLING_FOR_LOG = {
    "minecraft:oak_log": "minecraft:oak_sapling",
    "minecraft:birch_log": "minecraft:birch_sapling",
    "minecraft:spruce_log": "minecraft:spruce_sapling",
    "minecraft:jungle_log": "minecraft:jungle_sapling",
    "minecraft:acacia_log": "minecraft:acacia_sapling",
    "minecraft:cherry_log": "minecraft:cherry_sapling",
    DARK_OAK_LOG: "minecraft:dark_oak_sapling",
    "minecraft:mangrove_log": "minecraft:mangrove_propagule",
}
