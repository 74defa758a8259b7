"""Slash-command layer.

Turns chat text such as "/action 2h of recon" into session operations and
returns the reply messages to send back, already split to the chat length
limit. The transport (Telegram relay, HTTP client, test) only has to pass
the session id, the sender and the raw text.

Commands:
  /help                     available commands
  /role <Name> - <Role>     pick a role (required for everything below)
  /scenario [text]          start the scenario (text or preloaded file)
  /info <text>              queue an information request
  /feed <text>              queue a fact to incorporate into the world
  /action <text>            queue an action in the world
  /queue                    show the queue
  /remove <n>               remove item n from the queue
  /process                  process all queued interactions
  /rollback <key>           restore a checkpoint

Model and pipeline failures are logged and answered with a generic
"try again later" reply; their details never reach the chat.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable

from wargame.checkpoints import NotFoundError
from wargame.chunking import chunk_text
from wargame.interactions import format_queue
from wargame.llm import LLM
from wargame.models import InteractionType
from wargame.pipeline import BoundedExecutor
from wargame.sessions import ROLE_FORMAT_HELP, Session, SessionStore, UserInputError

logger = logging.getLogger(__name__)

BASE_COMMANDS = [
    "/role - Create your role",
    "/help - Show this help message",
]

SCENARIO_COMMANDS = [
    "/scenario - Start a new scenario",
    "/info - Queue an information request",
    "/feed - Queue information to incorporate into the world",
    "/action - Queue an action in the world",
    "/queue - Show the action queue",
    "/process - Process all queued actions",
    "/remove - Remove an item from the action queue",
    "/rollback - Roll back the scenario to a previous checkpoint",
]

_QUEUED_REPLY = {
    InteractionType.INFO: (
        "Information request queued. Use /process to process all pending actions. "
        "Use /remove <number> to remove an item from the queue."
    ),
    InteractionType.FEED: "Information feed queued. Use /process to process all pending actions.",
    InteractionType.ACTION: "Action queued. Use /process to process all pending actions.",
}

Handler = Callable[[Session, int, str, str], Awaitable[list[str]]]


def parse_command(text: str) -> tuple[str, str]:
    """`"/role@bot Ann - CTO"` → `("role", "Ann - CTO")`."""
    head, _, rest = text.strip().partition(" ")
    if not head.startswith("/"):
        return "", text.strip()
    name = head[1:].split("@", 1)[0].lower()
    return name, rest.strip()


class CommandHandler:
    """Dispatch chat commands for every session in a SessionStore."""

    def __init__(
        self,
        sessions: SessionStore,
        llm: LLM,
        executor: BoundedExecutor | None = None,
        preloaded_scenario: str | None = None,
    ) -> None:
        self.sessions = sessions
        self.llm = llm
        self.executor = executor or BoundedExecutor()
        self.preloaded_scenario = preloaded_scenario

        # name → (handler, needs role, needs active scenario)
        self._commands: dict[str, tuple[Handler, bool, bool]] = {
            "help": (self._help, False, False),
            "role": (self._role, False, False),
            "scenario": (self._scenario, True, False),
            "info": (self._queue_interaction(InteractionType.INFO), True, True),
            "feed": (self._queue_interaction(InteractionType.FEED), True, True),
            "action": (self._queue_interaction(InteractionType.ACTION), True, True),
            "queue": (self._show_queue, True, True),
            "remove": (self._remove, True, True),
            "process": (self._process, True, True),
            "rollback": (self._rollback, True, True),
        }

    async def handle(self, session_id: str, user_id: int, username: str, text: str) -> list[str]:
        name, args = parse_command(text)
        entry = self._commands.get(name)
        if entry is None:
            return ["Unknown command. Use /help to see the available commands."]
        handler, needs_role, needs_scenario = entry

        session = self.sessions.get(session_id)
        if needs_role and not session.has_role(user_id):
            return ["You need to select a role first using /role"]
        if needs_scenario and not session.state.is_active:
            return ["No active scenario. Start one using /scenario first"]

        try:
            return await handler(session, user_id, username, args)
        except NotFoundError:
            return ["Invalid state hash. Please provide a valid hash from a previous state."]
        except UserInputError as e:
            return [str(e)]

    # ── Commands ─────────────────────────────────────────

    async def _help(self, session: Session, user_id: int, username: str, args: str) -> list[str]:
        commands = list(BASE_COMMANDS)
        if session.has_role(user_id):
            commands.extend(SCENARIO_COMMANDS)
        return ["Available commands:\n" + "\n".join(commands)]

    async def _role(self, session: Session, user_id: int, username: str, args: str) -> list[str]:
        if not args:
            return ["Please provide your role after the /role command. " + ROLE_FORMAT_HELP]
        player = session.assign_role(user_id, args)
        return [f"@{username} is now {player.name} ({player.role})"]

    async def _scenario(self, session: Session, user_id: int, username: str, args: str) -> list[str]:
        seed_text = args or self.preloaded_scenario or ""
        if session.state.is_active:
            return ["A scenario is already running. Use /rollback to return to an earlier state."]
        if not seed_text.strip():
            return ["Please provide a scenario description after the /scenario command"]

        replies = ["Starting new scenario…"]
        try:
            state, key = await session.start_scenario(self.llm, seed_text)
        except UserInputError:
            raise
        except Exception:
            logger.exception("Failed to initialize scenario session=%s user=%s", session.id, user_id)
            return [*replies, "Failed to initialize scenario. Please try again later."]

        replies.extend(chunk_text(state.messages[-1].content))
        replies.extend(["Initial state saved with hash:", key])
        return replies

    def _queue_interaction(self, type: InteractionType) -> Handler:
        async def _handler(session: Session, user_id: int, username: str, args: str) -> list[str]:
            if not args:
                return [f"Please provide your {type.value.lower()} after the /{type.value.lower()} command"]
            session.enqueue(user_id, type, args)
            return [f"{_QUEUED_REPLY[type]}\n\nCurrent queue:\n{format_queue(session.queue)}"]
        return _handler

    async def _show_queue(self, session: Session, user_id: int, username: str, args: str) -> list[str]:
        return chunk_text("Current queue:\n" + format_queue(session.queue))

    async def _remove(self, session: Session, user_id: int, username: str, args: str) -> list[str]:
        if not args:
            return ["Please provide the item number to remove."]
        try:
            position = int(args)
        except ValueError:
            return ["Invalid item number."]
        session.dequeue(position)
        return [f"Removed item #{position} from the queue.\n\nCurrent queue:\n{format_queue(session.queue)}"]

    async def _process(self, session: Session, user_id: int, username: str, args: str) -> list[str]:
        if not session.queue:
            return ["No actions to process."]
        replies = ["Processing actions… Please don't add any more actions until the response arrives."]
        try:
            result, key = await session.process(self.llm, self.executor)
        except UserInputError:
            raise
        except Exception:
            logger.exception("Failed to process actions session=%s", session.id)
            return [*replies, "Failed to process actions. Please try again later."]

        replies.extend(chunk_text(result.messages[-1].content))
        if result.failures:
            replies.append(
                f"{len(result.failures)} interaction(s) could not be resolved and were left out of this update."
            )
        replies.extend(["State saved with hash:", key])
        return replies

    async def _rollback(self, session: Session, user_id: int, username: str, args: str) -> list[str]:
        if not args:
            return ["Please provide a state hash after the /rollback command"]
        state = session.rollback(args)
        return [
            f"Successfully rolled back to state {args}",
            *chunk_text("Current state:\n" + state.messages[-1].content),
        ]
