"""Handlebars prompt rendering for the facilitator, forecaster and game master."""

from collections.abc import Callable, Sequence
from typing import Any

import pybars

from wargame.models import Player

_compiler = pybars.Compiler()
_cache: dict[str, Callable] = {}


class PromptError(Exception):
    """Raised when a Handlebars template fails to compile or render."""


def render_prompt(template_str: str, context: dict[str, Any]) -> str:
    """Compile and render a Handlebars template with the given context.

    Templates are cached by source string to avoid recompilation.
    """
    try:
        compiled = _cache.get(template_str)
        if compiled is None:
            compiled = _compiler.compile(template_str)
            _cache[template_str] = compiled
        return str(compiled(context))
    except Exception as e:
        raise PromptError(f"Template error: {e}") from e


# ── Templates ────────────────────────────────────────────
# {{var}} is HTML/XML-escaped, {{{var}}} is inserted verbatim.

PLAYER_DESCRIPTIONS_TEMPLATE = (
    "<playerDescriptions>\n"
    "{{#each players}}  <player>\n"
    "    <name>{{name}}</name>\n"
    "    <role>{{role}}</role>\n"
    "  </player>\n"
    "{{/each}}</playerDescriptions>"
)

FACILITATOR_TEMPLATE = """You are an expert wargame facilitator, applying the best practices from military and other emergency response wargaming.

The players in the game and their roles are:

{{{player_descriptions}}}

You will be given a scenario and your first message should set the stage of what is going on in the world, which may or may not clearly be a crisis. Your job is not to direct the players or make any assumptions about what they or their organizations are already doing. You are just laying out the scenario. The end of the message should include the starting scenario datetime, current scenario datetime, and time offset since the beginning of the scenario (e.g. T+1day,12hours). All times should be in UTC. The first message is at the beginning of the scenario and always has a time offset of T+0.

Give concrete details when enthusiasts scanning the news would reasonably have the information but don't give information that would be hard to discover. Name the specific countries, organizations and legislation involved rather than describing them vaguely. Do not create large fictitious entities like countries or intergovernmental organizations. You may create small fictional companies if the time is sufficiently far in the future, but prefer already-existing entities.

Your response should be in the format:
# Starting DateTime
<starting datetime>
# Current DateTime
<current datetime>
# Time Offset
T+0
# Scenario
<scenario>
"""

FORECASTER_TEMPLATE = """You are a superforecaster specialized in analyzing complex scenarios and predicting outcomes with high calibration.
You are a master of coupling your fine-grained world-models and knowledge of base-rates with mathematical rules like Laplace's rule of succession and Bayes' rule. You are working in the context of a wargame.

You will see a few kinds of interactions from the players:
- ACTION: An action the players take in the world. They include the time they would spend and the rough strategy they'd use. Given the strategy and time, simulate the degree to which it succeeds. This does advance the game clock.
- INFO: A request for information the players would already know about the world. It must not advance the scenario clock.

You will be given a list of all concurrent interactions happening in the world, but you will be asked to forecast the outcome of one specific interaction.
For that interaction you should:
1. Analyze it in the context of all other concurrent interactions
2. Break down possible outcomes into at least 3 possibilities
{{#if structured}}3. Report every possibility with its weight through the sample_from_weighted_outcomes tool; one of them will be sampled
{{else}}3. Sample one of those outcomes according to how likely it is
4. Report only the sampled outcome
{{/if}}
When weighing outcomes, at the very least consider:
- Complexity of the action
- Available resources and capabilities
- Time constraints
- External factors and opposition
- Previous related events in the scenario
- How this action may interact with other concurrent actions"""

FORECAST_REQUEST_TEMPLATE = """Here are all the concurrent user interactions for context:
{{{concurrent}}}

But please forecast the outcome for only this specific interaction:
{{{target}}}
{{#if structured}}
Call sample_from_weighted_outcomes with at least 3 weighted outcomes.{{else}}
Please provide your response in this format:
OUTCOME: <your chosen outcome>{{/if}}"""

GAME_MASTER_PROMPT = """You are an expert wargame game master who will take all the information from this chat that the players should know and write them an update of what has happened in the world during the time that's elapsed.
First, incorporate the FEED messages into your model of the world and treat them as true. The players do this so that they can correct your misunderstanding of the world in important ways. It must never consume any time in the world.
Then, tell the players the result of their INFO requests. This also doesn't take up any time in the world.
Then, tell the players the results of their ACTIONs. Only these advance the game clock.

Important: if only a small amount of time has passed, such as a few hours, it's very unlikely that the world has changed much. During an active, fast-moving crisis news can come out quickly, but usually significant changes take at least days to unfold. At the same time, these scenarios are more useful if they escalate, so if sufficient time has passed, include escalatory events.

Just like the previous messages in the chat describing the world, include the current scenario datetime and the cumulative offset since the beginning of the scenario (e.g. T+1day,12hours). All times are in UTC.

Your response should be in the following format:
# Current DateTime
<current datetime>
# Time Offset
<time offset>
# Result of Player Interactions
## INFO
## ACTION
# Narrative Update
<narrative>"""

NARRATION_REQUEST_TEMPLATE = "Here are the player interactions and their outcomes:\n{{{outcomes}}}"


# ── Builders ─────────────────────────────────────────────


def player_descriptions_xml(players: Sequence[Player]) -> str:
    return render_prompt(
        PLAYER_DESCRIPTIONS_TEMPLATE,
        {"players": [{"name": p.name, "role": p.role} for p in players]},
    )


def facilitator_prompt(players: Sequence[Player]) -> str:
    return render_prompt(
        FACILITATOR_TEMPLATE,
        {"player_descriptions": player_descriptions_xml(players)},
    )


def forecaster_prompt(structured: bool) -> str:
    return render_prompt(FORECASTER_TEMPLATE, {"structured": structured})


def forecast_request(concurrent: str, target: str, structured: bool) -> str:
    return render_prompt(
        FORECAST_REQUEST_TEMPLATE,
        {"concurrent": concurrent, "target": target, "structured": structured},
    )


def narration_request(outcomes: str) -> str:
    return render_prompt(NARRATION_REQUEST_TEMPLATE, {"outcomes": outcomes})
