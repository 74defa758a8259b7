"""Per-chat game sessions.

One Session holds everything a single game needs: role assignments, the
scenario state, the pending queue and the checkpoints. Sessions live in a
SessionStore keyed by session id (one chat = one session) and are only
changed through the methods below. State is process-lifetime only.

Scenario state is a frozen model: every change replaces `session.state`
as a whole, and only after the model calls of that change succeeded.

Starting a scenario and processing a batch are single-flight per session.
While one runs, a second start/process, and any queue edit or rollback,
fails with SessionBusyError instead of interleaving.
"""

from __future__ import annotations

import asyncio
import logging
import random

from wargame.checkpoints import CheckpointStore
from wargame.interactions import InteractionQueue, QueueIndexError
from wargame.llm import LLM
from wargame.models import (
    Interaction,
    InteractionType,
    Player,
    ScenarioState,
    TurnResult,
)
from wargame.pipeline import BoundedExecutor, initialize_scenario, process_actions

logger = logging.getLogger(__name__)

ROLE_FORMAT_HELP = (
    "Format: /role <Your Name> - <Your Role>\n"
    "Example: /role John Smith - Chief Technology Officer at TechCorp"
)


class UserInputError(ValueError):
    """A command could not be applied; nothing was changed."""


class SessionBusyError(UserInputError):
    """Another start/process is already running for this session."""


def parse_role(text: str) -> tuple[str, str]:
    """Split `"Name - Role"` at the first hyphen."""
    name, sep, role = (text or "").partition("-")
    name, role = name.strip(), role.strip()
    if not sep or not name or not role:
        raise UserInputError("Invalid role format. " + ROLE_FORMAT_HELP)
    return name, role


class Session:
    def __init__(self, session_id: str) -> None:
        self.id = session_id
        self.roles: dict[int, Player] = {}
        self.state = ScenarioState()
        self.queue = InteractionQueue()
        self.checkpoints = CheckpointStore()
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    def _require_idle(self) -> None:
        if self.busy:
            raise SessionBusyError(
                "Actions are being processed. Please wait for the update."
            )

    def _require_active(self) -> None:
        if not self.state.is_active:
            raise UserInputError("No active scenario. Start one using /scenario first")

    # ── Roles ────────────────────────────────────────────

    def assign_role(self, user_id: int, text: str) -> Player:
        name, role = parse_role(text)
        player = Player(id=user_id, name=name, role=role)
        self.roles[user_id] = player
        logger.info("session=%s user=%s is now %s (%s)", self.id, user_id, name, role)
        return player

    def has_role(self, user_id: int) -> bool:
        return user_id in self.roles

    def player(self, user_id: int) -> Player:
        try:
            return self.roles[user_id]
        except KeyError:
            raise UserInputError("You need to select a role first using /role") from None

    # ── Scenario lifecycle ───────────────────────────────

    async def start_scenario(self, llm: LLM, seed_text: str) -> tuple[ScenarioState, str]:
        """Inactive → Active. Returns the new state and its checkpoint key."""
        if self.state.is_active:
            raise UserInputError("A scenario is already running")
        if not seed_text or not seed_text.strip():
            raise UserInputError("Please provide a scenario description after the /scenario command")
        self._require_idle()

        async with self._lock:
            messages = await initialize_scenario(llm, seed_text, list(self.roles.values()))
            self.state = ScenarioState(is_active=True, messages=tuple(messages))
            key = self.checkpoints.save(self.state)

        logger.info("session=%s scenario started checkpoint=%s", self.id, key)
        return self.state, key

    # ── Queue ────────────────────────────────────────────

    def enqueue(self, user_id: int, type: InteractionType, content: str) -> Interaction:
        self._require_active()
        self._require_idle()
        if not content or not content.strip():
            raise UserInputError(f"Please provide your {type.value.lower()} text")
        interaction = Interaction(type=type, player=self.player(user_id), content=content.strip())
        self.queue.enqueue(interaction)
        return interaction

    def dequeue(self, position: int) -> Interaction:
        self._require_active()
        self._require_idle()
        try:
            return self.queue.dequeue(position)
        except QueueIndexError:
            raise UserInputError("Invalid item number.") from None

    # ── Turn processing ──────────────────────────────────

    async def process(
        self,
        llm: LLM,
        executor: BoundedExecutor | None = None,
        rng: random.Random | None = None,
    ) -> tuple[TurnResult, str]:
        """Run the queued batch. State and queue change only on success."""
        self._require_active()
        if not self.queue:
            raise UserInputError("No actions to process.")
        self._require_idle()

        async with self._lock:
            batch = self.queue.snapshot()
            result = await process_actions(llm, self.state.messages, batch, executor, rng)
            self.state = ScenarioState(is_active=True, messages=tuple(result.messages))
            key = self.checkpoints.save(self.state)
            self.queue.clear()

        logger.info(
            "session=%s processed %d interactions checkpoint=%s dropped=%d",
            self.id, len(batch), key, len(result.failures),
        )
        return result, key

    # ── Rollback ─────────────────────────────────────────

    def rollback(self, key: str) -> ScenarioState:
        """Replace the live state with a checkpoint. NotFoundError if unknown."""
        self._require_active()
        self._require_idle()
        self.state = self.checkpoints.restore(key.strip())
        logger.info("session=%s rolled back to %s", self.id, key)
        return self.state


class SessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, Session] = {}

    def __contains__(self, session_id: object) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def get(self, session_id: str) -> Session:
        """Return the session, creating an empty one on first use."""
        session = self._sessions.get(session_id)
        if session is None:
            session = self._sessions[session_id] = Session(session_id)
            logger.debug("session=%s created", session_id)
        return session

    def drop(self, session_id: str) -> bool:
        return self._sessions.pop(session_id, None) is not None
