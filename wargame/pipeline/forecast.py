"""Forecast stage — resolve each INFO/ACTION of a batch to one outcome.

Each forecastable interaction gets its own request: the full history, every
interaction of the batch as context, and the one target interaction. The
requests are independent and run concurrently through a BoundedExecutor.

Two resolution paths, picked by `llm.supports_structured_outcomes`:

  structured   — the model must call sample_from_weighted_outcomes with
                 {"outcomes": [{"outcome": str, "weight": number}, ...]};
                 one outcome is drawn locally with sample_weighted().
  text marker  — the model answers "OUTCOME: <outcome>" and the first
                 such line is taken.

A backend error, unparseable reply or timeout drops that one forecast: it is
logged and returned as a ForecastFailure, and the rest of the batch goes on.
"""

from __future__ import annotations

import asyncio
import logging
import random
import re
from collections.abc import Sequence

from pydantic import ValidationError

from wargame import prompts
from wargame.interactions import interaction_line, partition
from wargame.llm import LLM, BackendError, Completion, ToolSpec
from wargame.models import (
    ForecastFailure,
    ForecastResult,
    Interaction,
    OutcomeCandidate,
    OutcomeRecord,
    ScenarioMessage,
)

from .executor import BoundedExecutor, ExecutorFull
from .sampling import sample_weighted

logger = logging.getLogger(__name__)

SAMPLE_TOOL_NAME = "sample_from_weighted_outcomes"

SAMPLE_TOOL: ToolSpec = {
    "name": SAMPLE_TOOL_NAME,
    "description": "Randomly selects an outcome from a weighted list of possibilities",
    "parameters": {
        "type": "object",
        "properties": {
            "outcomes": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "outcome": {
                            "type": "string",
                            "description": "The description of the outcome",
                        },
                        "weight": {
                            "type": "number",
                            "description": "The weight/probability of this outcome",
                        },
                    },
                    "required": ["outcome", "weight"],
                },
            },
        },
        "required": ["outcomes"],
    },
}

_OUTCOME_MARKER = re.compile(r"OUTCOME:\s*(.+?)\s*(?:\n|$)")


class ParseError(ValueError):
    """Raised when a forecast reply has no usable tool call or OUTCOME line."""


# ---------------------------------------------------------------------------
# Reply parsing
# ---------------------------------------------------------------------------

def parse_candidates(completion: Completion) -> list[OutcomeCandidate]:
    """Validate the weighted outcomes of a sample_from_weighted_outcomes call."""
    call = completion.tool_call
    if call is None:
        raise ParseError("No tool call received when one was required")
    if call.name != SAMPLE_TOOL_NAME:
        raise ParseError(f"Unexpected tool call {call.name!r}")
    raw = call.arguments.get("outcomes")
    if not isinstance(raw, list) or not raw:
        raise ParseError("Tool call carried no outcomes")
    try:
        return [OutcomeCandidate.model_validate(item) for item in raw]
    except ValidationError as e:
        raise ParseError(f"Invalid outcome in tool call: {e}") from e


def parse_outcome_marker(text: str) -> str:
    """Return the text after the first `OUTCOME:` marker."""
    match = _OUTCOME_MARKER.search(text or "")
    if not match or not match.group(1).strip():
        raise ParseError("Reply has no OUTCOME: line")
    return match.group(1).strip()


# ---------------------------------------------------------------------------
# Stage
# ---------------------------------------------------------------------------

async def forecast_one(
    llm: LLM,
    history: Sequence[ScenarioMessage],
    concurrent: str,
    interaction: Interaction,
    rng: random.Random | None = None,
) -> OutcomeRecord:
    """Resolve a single interaction. Raises BackendError or ParseError."""
    structured = llm.supports_structured_outcomes
    target = interaction_line(interaction)
    request = ScenarioMessage(
        role="user",
        content=prompts.forecast_request(concurrent, target, structured),
    )
    logger.debug("Forecasting %r structured=%s", target, structured)

    completion = await llm.complete(
        [*history, request],
        system=prompts.forecaster_prompt(structured),
        tools=[SAMPLE_TOOL] if structured else None,
        require_tool=structured,
    )

    if structured:
        candidates = parse_candidates(completion)
        outcome = sample_weighted(candidates, rng)
        logger.debug("Sampled outcome for %r from %d candidates: %r", target, len(candidates), outcome)
    else:
        outcome = parse_outcome_marker(completion.text)
        logger.debug("Outcome for %r: %r", target, outcome)

    return OutcomeRecord(interaction=interaction, outcome=outcome)


async def forecast_outcomes(
    llm: LLM,
    history: Sequence[ScenarioMessage],
    batch: Sequence[Interaction],
    executor: BoundedExecutor | None = None,
    rng: random.Random | None = None,
) -> list[ForecastResult]:
    """Forecast every INFO/ACTION of `batch`, in queue order.

    `batch` is the whole queue; its FEEDs are shown to the forecaster as
    concurrent context but never forecast themselves. All calls settle
    before this returns.
    """
    executor = executor or BoundedExecutor()
    concurrent = "\n".join(interaction_line(i) for i in batch)
    _, forecastable = partition(batch)

    async def _settle(interaction: Interaction) -> ForecastResult:
        try:
            return await executor.run(
                lambda: forecast_one(llm, history, concurrent, interaction, rng)
            )
        except (BackendError, ParseError, ExecutorFull) as e:
            error = str(e)
        except asyncio.TimeoutError:
            error = f"Forecast timed out after {executor.timeout}s"
        logger.warning(
            "Dropped forecast for %r: %s", interaction_line(interaction), error
        )
        return ForecastFailure(interaction=interaction, error=error)

    return list(await asyncio.gather(*(_settle(i) for i in forecastable)))
