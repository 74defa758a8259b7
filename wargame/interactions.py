"""Pending interaction queue, partitioning and text rendering.

Interactions in one queue are concurrent: queue order is display and audit
order only. FEED is the only world-truth kind; INFO and ACTION are both
resolved through the forecast stage because their answers depend on the
current world state.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from wargame.models import Interaction, InteractionType

WORLD_TRUTH_TYPES = frozenset({InteractionType.FEED})


class QueueIndexError(IndexError):
    """Raised when a 1-based queue position does not exist."""


class InteractionQueue:
    """Ordered queue of interactions awaiting the next /process."""

    def __init__(self, items: Iterable[Interaction] = ()) -> None:
        self._items: list[Interaction] = list(items)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[Interaction]:
        return iter(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def snapshot(self) -> tuple[Interaction, ...]:
        return tuple(self._items)

    def enqueue(self, interaction: Interaction) -> int:
        """Append an interaction and return its 1-based position."""
        self._items.append(interaction)
        return len(self._items)

    def dequeue(self, position: int) -> Interaction:
        """Remove and return the interaction at a 1-based position."""
        if position < 1 or position > len(self._items):
            raise QueueIndexError(f"Queue position {position} out of range")
        return self._items.pop(position - 1)

    def clear(self) -> None:
        self._items.clear()


def partition(
    interactions: Iterable[Interaction],
) -> tuple[list[Interaction], list[Interaction]]:
    """Split into (world_truth, forecastable), keeping relative order."""
    world_truth: list[Interaction] = []
    forecastable: list[Interaction] = []
    for interaction in interactions:
        if interaction.type in WORLD_TRUTH_TYPES:
            world_truth.append(interaction)
        else:
            forecastable.append(interaction)
    return world_truth, forecastable


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------

def interaction_line(interaction: Interaction) -> str:
    """`ACTION Alice: 2h recon` — the form the forecaster and narrator see."""
    return f"{interaction.type.value} {interaction.player.name}: {interaction.content}"


def feed_line(interaction: Interaction) -> str:
    return f"{interaction.type.value}: {interaction.content}"


def format_queue(interactions: Iterable[Interaction]) -> str:
    lines = [
        f"{n}. {i.player.name} - {i.type.value}: {i.content}"
        for n, i in enumerate(interactions, start=1)
    ]
    return "\n".join(lines) if lines else "Queue is empty"
