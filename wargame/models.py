"""Core domain models.

Every pipeline stage, the checkpoint store and the session layer operate on
these types. Pydantic is used for validation and serialisation at every data
boundary. Value objects are frozen: a scenario state is replaced, never
mutated in place.
"""

from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

Role = Literal["user", "assistant"]


class InteractionType(str, Enum):
    INFO = "INFO"      # question about the current world; never advances the clock
    FEED = "FEED"      # new ground truth supplied by a player; never advances the clock
    ACTION = "ACTION"  # attempt to change the world; forecast, may advance the clock


class Player(BaseModel):
    """A human participant and the role they play in the scenario."""

    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    role: str


class Interaction(BaseModel):
    """A single player submission waiting in the queue."""

    model_config = ConfigDict(frozen=True)

    type: InteractionType
    player: Player
    content: str


class OutcomeCandidate(BaseModel):
    """One weighted possibility proposed by the forecaster."""

    outcome: str
    weight: float = Field(gt=0)


class OutcomeRecord(BaseModel):
    """A forecast resolved to one outcome, tagged with its interaction."""

    model_config = ConfigDict(frozen=True)

    interaction: Interaction
    outcome: str


class ForecastFailure(BaseModel):
    """A forecast that was dropped from the batch."""

    model_config = ConfigDict(frozen=True)

    interaction: Interaction
    error: str


ForecastResult = OutcomeRecord | ForecastFailure


class ScenarioMessage(BaseModel):
    """One entry of the canonical transcript the narrator conditions on."""

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str


class ScenarioState(BaseModel):
    """The live scenario of one session."""

    model_config = ConfigDict(frozen=True)

    is_active: bool = False
    messages: tuple[ScenarioMessage, ...] = ()


class TurnResult(BaseModel):
    """Output of one processed batch.

    `messages` is the full, extended transcript. `outcomes` and `failures`
    are diagnostics for the caller; only `messages` becomes scenario state.
    """

    messages: list[ScenarioMessage]
    outcomes: list[OutcomeRecord] = Field(default_factory=list)
    failures: list[ForecastFailure] = Field(default_factory=list)
