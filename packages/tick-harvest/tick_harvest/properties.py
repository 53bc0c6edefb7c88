"""Typed schema for the key/value properties persisted on agent entities.

Every key has a fixed type and an explicit default; values are validated
when read instead of being coerced from whatever the host stored.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from tick_harvest.config import HarvestConfig
from tick_harvest.types import AgentState, Location, PropertySchemaError

if TYPE_CHECKING:
    from tick_harvest.world import PropertyStore

logger = logging.getLogger(__name__)

NEXT_ID_KEY = "harvest:next_agent_id"

_MISSING: Any = object()


@dataclass(frozen=True)
class PropertyField:
    key: str
    kind: type
    default: Any = _MISSING

    @property
    def required(self) -> bool:
        return self.default is _MISSING

    def read(self, store: PropertyStore) -> Any:
        raw = store.get_property(self.key)
        if raw is None:
            if self.required:
                raise PropertySchemaError(self.key, f"Missing required property {self.key!r}")
            return self.default
        return self.coerce(raw)

    def write(self, store: PropertyStore, value: Any) -> None:
        store.set_property(self.key, self.coerce(value))

    def coerce(self, raw: Any) -> Any:
        if self.kind is bool:
            if isinstance(raw, bool):
                return raw
        elif self.kind is int:
            # bool is an int subclass; reject it explicitly.
            if isinstance(raw, float) and raw.is_integer():
                return int(raw)
            if isinstance(raw, int) and not isinstance(raw, bool):
                return raw
        elif isinstance(raw, self.kind):
            return raw
        raise PropertySchemaError(
            self.key,
            f"Property {self.key!r} expects {self.kind.__name__}, got {raw!r}",
        )


AGENT_ID = PropertyField("harvest:id", int)
STATE = PropertyField("harvest:state", str, AgentState.IDLE.name)
SEARCH_DISTANCE = PropertyField("harvest:search_distance", int, None)
ENABLED = PropertyField("harvest:enabled", bool, True)
STRIP_OUTPUT = PropertyField("harvest:strip_output", bool, True)
ANCHOR_X = PropertyField("harvest:anchor_x", int)
ANCHOR_Y = PropertyField("harvest:anchor_y", int)
ANCHOR_Z = PropertyField("harvest:anchor_z", int)
IS_MOVING = PropertyField("harvest:is_moving", bool, False)
IS_ACTING = PropertyField("harvest:is_acting", bool, False)

SCHEMA = (
    AGENT_ID, STATE, SEARCH_DISTANCE, ENABLED, STRIP_OUTPUT,
    ANCHOR_X, ANCHOR_Y, ANCHOR_Z, IS_MOVING, IS_ACTING,
)


def clamp_search_distance(value: int | None, config: HarvestConfig) -> int:
    if value is None:
        return config.default_search_distance
    clamped = max(config.min_search_distance, min(config.max_search_distance, value))
    if clamped != value:
        logger.warning("search distance %d clamped to %d", value, clamped)
    return clamped


def read_anchor(store: PropertyStore) -> Location:
    return Location(ANCHOR_X.read(store), ANCHOR_Y.read(store), ANCHOR_Z.read(store))


def write_anchor(store: PropertyStore, anchor: Location) -> None:
    ANCHOR_X.write(store, anchor.x)
    ANCHOR_Y.write(store, anchor.y)
    ANCHOR_Z.write(store, anchor.z)


@dataclass(frozen=True)
class AgentProperties:
    """Validated snapshot of an agent's persisted properties."""

    agent_id: int
    anchor: Location
    state: AgentState = AgentState.IDLE
    search_distance: int = 10
    enabled: bool = True
    strip_output: bool = True

    @classmethod
    def load(cls, store: PropertyStore, config: HarvestConfig) -> AgentProperties:
        """Read and validate every field. Raises PropertySchemaError."""
        state_name = STATE.read(store)
        try:
            state = AgentState[state_name]
        except KeyError:
            raise PropertySchemaError(
                STATE.key, f"Unknown agent state {state_name!r}"
            ) from None
        return cls(
            agent_id=AGENT_ID.read(store),
            anchor=read_anchor(store),
            state=state,
            search_distance=clamp_search_distance(SEARCH_DISTANCE.read(store), config),
            enabled=ENABLED.read(store),
            strip_output=STRIP_OUTPUT.read(store),
        )

    def save(self, store: PropertyStore) -> None:
        AGENT_ID.write(store, self.agent_id)
        write_anchor(store, self.anchor)
        STATE.write(store, self.state.name)
        SEARCH_DISTANCE.write(store, self.search_distance)
        ENABLED.write(store, self.enabled)
        STRIP_OUTPUT.write(store, self.strip_output)
