"""InteractionGate - per-actor debounce for player-triggered events.

Independent of the tick loop: it runs on wall-clock milliseconds, since the
events it guards (a player using an anchor block) arrive from the host's
input handling, not from simulation steps.
"""
from __future__ import annotations

import logging
import time
from collections.abc import Hashable
from typing import TYPE_CHECKING, Callable

from tick_harvest.types import Location

if TYPE_CHECKING:
    from tick_harvest.agent import AgentSettings
    from tick_harvest.registry import AgentRegistry

logger = logging.getLogger(__name__)

DEFAULT_WINDOW_MS = 350


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class InteractionGate:
    """Records the last accepted trigger time per actor."""

    def __init__(self, clock: Callable[[], float] | None = None) -> None:
        self._clock = clock or _monotonic_ms
        self._last: dict[Hashable, float] = {}

    def is_debounced(self, actor: Hashable, window_ms: float = DEFAULT_WINDOW_MS) -> bool:
        """True if *actor*'s last accepted trigger is less than *window_ms* old."""
        last = self._last.get(actor)
        if last is None:
            return False
        return self._clock() - last < window_ms

    def debounce(self, actor: Hashable) -> None:
        """Accept a trigger from *actor* now."""
        self._last[actor] = self._clock()

    def forget(self, actor: Hashable) -> None:
        self._last.pop(actor, None)

    def __len__(self) -> int:
        return len(self._last)


def handle_manager_interaction(
    gate: InteractionGate,
    registry: AgentRegistry,
    actor: Hashable,
    location: Location,
    update: AgentSettings | None = None,
    window_ms: float = DEFAULT_WINDOW_MS,
) -> AgentSettings | None:
    """Handle *actor* using the anchor block at *location*.

    Returns the agent's settings after applying *update*, or None when the
    event was debounced or no agent is anchored there.
    """
    if gate.is_debounced(actor, window_ms):
        logger.debug("interaction from %r debounced", actor)
        return None
    gate.debounce(actor)

    agent = registry.find_by_location(Location.of(location))
    if agent is None:
        logger.debug("no agent anchored at %s", location)
        return None
    if update is not None:
        agent.apply_settings(update)
        logger.info("agent %d settings updated by %r: %s", agent.agent_id, actor, update)
    return agent.settings()
