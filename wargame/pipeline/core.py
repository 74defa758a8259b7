"""Scenario pipeline: start a scenario, process one batch of interactions.

process_actions() runs one turn:
  1. Partition the batch into FEEDs (world truth) and INFO/ACTION.
  2. Forecast every INFO/ACTION concurrently (bounded); failures are dropped.
  3. Narrate FEEDs + resolved outcomes in one call.
  4. Return the transcript extended by exactly two messages.

Nothing here touches session state; the caller decides what to keep.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Sequence

from wargame import prompts
from wargame.interactions import partition
from wargame.llm import LLM
from wargame.models import (
    ForecastFailure,
    Interaction,
    OutcomeRecord,
    Player,
    ScenarioMessage,
    TurnResult,
)

from .executor import BoundedExecutor
from .forecast import forecast_outcomes
from .narration import NarrationError, narrate

logger = logging.getLogger(__name__)


async def initialize_scenario(
    llm: LLM,
    seed_text: str,
    players: Sequence[Player],
) -> list[ScenarioMessage]:
    """Set the stage. Returns [seed message, T+0 narration]."""
    logger.info(
        "Initializing scenario players=%s seed_len=%d",
        [f"{p.name} ({p.role})" for p in players], len(seed_text),
    )
    seed = ScenarioMessage(role="user", content=seed_text)
    completion = await llm.complete([seed], system=prompts.facilitator_prompt(players))
    opening = completion.text.strip()
    if not opening:
        raise NarrationError("Facilitator returned an empty scenario")

    logger.info("Scenario initialized (%d chars)", len(opening))
    return [seed, ScenarioMessage(role="assistant", content=opening)]


async def process_actions(
    llm: LLM,
    history: Sequence[ScenarioMessage],
    queued: Sequence[Interaction],
    executor: BoundedExecutor | None = None,
    rng: random.Random | None = None,
) -> TurnResult:
    """Run one turn over `queued`. Only a narration failure raises."""
    world_truth, forecastable = partition(queued)
    logger.info(
        "Processing %d interactions (%d feeds, %d to forecast)",
        len(queued), len(world_truth), len(forecastable),
    )

    results = await forecast_outcomes(llm, history, queued, executor, rng)
    outcomes = [r for r in results if isinstance(r, OutcomeRecord)]
    failures = [r for r in results if isinstance(r, ForecastFailure)]
    if failures:
        logger.warning("%d of %d forecasts dropped", len(failures), len(results))

    messages = await narrate(llm, history, world_truth, outcomes)
    return TurnResult(messages=messages, outcomes=outcomes, failures=failures)
