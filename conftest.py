import asyncio
from collections.abc import Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest

from wargame.llm import BackendError, Completion, ToolCall
from wargame.models import Interaction, InteractionType, Player, ScenarioMessage

OPENING = (
    "# Starting DateTime\n2031-03-02 08:00 UTC\n"
    "# Current DateTime\n2031-03-02 08:00 UTC\n"
    "# Time Offset\nT+0\n"
    "# Scenario\nStreet protests over automation layoffs spread across three cities."
)

NARRATION = (
    "# Current DateTime\n2031-03-02 10:00 UTC\n"
    "# Time Offset\nT+2hours\n"
    "# Result of Player Interactions\n## INFO\n## ACTION\n"
    "# Narrative Update\nCrowds thin out as rain sets in."
)

TARGET_MARKER = "only this specific interaction:\n"


class ScriptedLLM:
    """In-memory LLM that answers by pipeline stage.

    The stage is read from the system prompt: the facilitator opens the
    scenario, the superforecaster resolves forecasts, the game master
    narrates. Forecast replies are looked up by a substring of the target
    interaction line; an Exception value is raised instead of returned.
    """

    def __init__(self, structured: bool = True) -> None:
        self.supports_structured_outcomes = structured
        self.opening = OPENING
        self.narration = NARRATION
        self.forecasts: dict[str, Completion | Exception] = {}
        self.delay = 0.0
        self.calls: list[dict] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def stage_calls(self, stage: str) -> list[dict]:
        return [c for c in self.calls if c["stage"] == stage]

    @staticmethod
    def outcome(*pairs: tuple[str, float]) -> Completion:
        """A structured forecast reply carrying weighted outcomes."""
        return Completion(tool_call=ToolCall(
            name="sample_from_weighted_outcomes",
            arguments={"outcomes": [{"outcome": o, "weight": w} for o, w in pairs]},
        ))

    def _stage(self, system: str) -> str:
        if "superforecaster" in system:
            return "forecast"
        if "game master" in system:
            return "narrate"
        return "initialize"

    def _forecast_reply(self, messages: Sequence[ScenarioMessage]) -> Completion:
        target = messages[-1].content.split(TARGET_MARKER, 1)[1].split("\n", 1)[0]
        for key, reply in self.forecasts.items():
            if key in target:
                if isinstance(reply, Exception):
                    raise reply
                return reply
        if self.supports_structured_outcomes:
            return self.outcome((f"{target} succeeds", 1.0))
        return Completion(text=f"Reasoning...\nOUTCOME: {target} succeeds\n")

    async def complete(self, messages, system, tools=None, require_tool=False) -> Completion:
        stage = self._stage(system)
        self.calls.append({
            "stage": stage,
            "messages": list(messages),
            "system": system,
            "tools": tools,
            "require_tool": require_tool,
        })
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if stage == "forecast":
                return self._forecast_reply(messages)
            if stage == "narrate":
                if isinstance(self.narration, Exception):
                    raise self.narration
                return Completion(text=self.narration)
            if isinstance(self.opening, Exception):
                raise self.opening
            return Completion(text=self.opening)
        finally:
            self.in_flight -= 1


def anthropic_post(reply_for):
    """AsyncMock for httpx.AsyncClient.post speaking the Anthropic Messages format.

    `reply_for(system, last_user_message)` returns the response body (a dict)
    or an Exception to raise from the transport.
    """
    async def _post(url, json=None, headers=None):
        reply = reply_for(json.get("system", ""), json["messages"][-1]["content"])
        if isinstance(reply, Exception):
            raise reply
        resp = MagicMock()
        resp.status_code = 200
        resp.json.return_value = reply
        resp.raise_for_status = MagicMock()
        return resp
    return AsyncMock(side_effect=_post)


def tool_use_body(*pairs: tuple[str, float]) -> dict:
    return {"content": [{
        "type": "tool_use",
        "name": "sample_from_weighted_outcomes",
        "input": {"outcomes": [{"outcome": o, "weight": w} for o, w in pairs]},
    }]}


@pytest.fixture
def llm() -> ScriptedLLM:
    return ScriptedLLM()


@pytest.fixture
def text_llm() -> ScriptedLLM:
    return ScriptedLLM(structured=False)


@pytest.fixture
def alice() -> Player:
    return Player(id=1, name="Alice", role="Responder")


@pytest.fixture
def bob() -> Player:
    return Player(id=2, name="Bob", role="Analyst")


@pytest.fixture
def history() -> list[ScenarioMessage]:
    return [
        ScenarioMessage(role="user", content="Unrest over automation."),
        ScenarioMessage(role="assistant", content=OPENING),
    ]


@pytest.fixture
def make_interaction():
    def _make(type: InteractionType, player: Player, content: str) -> Interaction:
        return Interaction(type=type, player=player, content=content)
    return _make


@pytest.fixture
def backend_error() -> BackendError:
    return BackendError("LLM backend returned HTTP 529")
