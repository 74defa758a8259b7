"""Narration stage — fold a batch's results into one world update."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from wargame import prompts
from wargame.interactions import feed_line, interaction_line
from wargame.llm import LLM
from wargame.models import Interaction, OutcomeRecord, ScenarioMessage

logger = logging.getLogger(__name__)


class NarrationError(RuntimeError):
    """Raised when the model returns no usable narration."""


def outcome_block(outcome: OutcomeRecord) -> str:
    return f"{interaction_line(outcome.interaction)}\nOutcome: {outcome.outcome}"


def combine_results(
    world_truth: Sequence[Interaction],
    outcomes: Sequence[OutcomeRecord],
) -> str:
    """FEEDs first, then resolved outcomes, separated by blank lines."""
    parts = [feed_line(i) for i in world_truth]
    parts.extend(outcome_block(o) for o in outcomes)
    return "\n\n".join(parts)


async def narrate(
    llm: LLM,
    history: Sequence[ScenarioMessage],
    world_truth: Sequence[Interaction],
    outcomes: Sequence[OutcomeRecord],
) -> list[ScenarioMessage]:
    """Return `history` extended by the combined block and the narration.

    Exactly one model call. Backend errors propagate; an empty reply raises
    NarrationError. `history` itself is never modified.
    """
    combined = combine_results(world_truth, outcomes)
    request = ScenarioMessage(role="user", content=prompts.narration_request(combined))
    logger.debug("Sending %d results to narrator (%d chars)", len(world_truth) + len(outcomes), len(combined))

    completion = await llm.complete([*history, request], system=prompts.GAME_MASTER_PROMPT)
    narration = completion.text.strip()
    if not narration:
        raise NarrationError("Narrator returned an empty reply")

    logger.info("Narrator generated story update (%d chars)", len(narration))
    return [
        *history,
        ScenarioMessage(role="user", content=combined),
        ScenarioMessage(role="assistant", content=narration),
    ]
