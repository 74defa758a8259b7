"""Content-addressed scenario checkpoints.

A checkpoint key is the first KEY_LENGTH hex digits of the SHA-256 of the
state's canonical JSON (sorted keys, no whitespace). Identical states always
map to the same key, so saving twice stores once. Keys are short because
players type them into /rollback. When a different state already holds the
short key, the new state gets a longer prefix of its digest instead.

Stored states are deep copies and are never handed out directly: restore()
returns a fresh copy every time.
"""

from __future__ import annotations

import hashlib
import json
import logging
from collections.abc import Iterator

from wargame.models import ScenarioState

logger = logging.getLogger(__name__)

KEY_LENGTH = 8


class NotFoundError(LookupError):
    """Raised when a rollback key is not in the store."""


def _digest(state: ScenarioState) -> str:
    canonical = json.dumps(
        state.model_dump(mode="json"), sort_keys=True, separators=(",", ":")
    )
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def state_key(state: ScenarioState) -> str:
    return _digest(state)[:KEY_LENGTH]


class CheckpointStore:
    def __init__(self) -> None:
        self._states: dict[str, ScenarioState] = {}

    def __len__(self) -> int:
        return len(self._states)

    def __contains__(self, key: object) -> bool:
        return key in self._states

    def __iter__(self) -> Iterator[str]:
        return iter(self._states)

    def keys(self) -> list[str]:
        """Keys in the order they were first saved."""
        return list(self._states)

    def save(self, state: ScenarioState) -> str:
        digest = _digest(state)
        length = KEY_LENGTH
        key = digest[:length]
        while key in self._states and self._states[key] != state:
            if length == len(digest):
                raise RuntimeError(f"Checkpoint digest collision on {digest}")
            length += 1
            key = digest[:length]
            logger.warning("Checkpoint key collision, lengthening key to %s", key)
        if key not in self._states:
            self._states[key] = state.model_copy(deep=True)
            logger.debug("Checkpoint %s saved (%d messages)", key, len(state.messages))
        return key

    def restore(self, key: str) -> ScenarioState:
        try:
            stored = self._states[key]
        except KeyError:
            raise NotFoundError(f"No checkpoint with key {key!r}") from None
        return stored.model_copy(deep=True)
