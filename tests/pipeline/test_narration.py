"""Tests for the narration stage."""

import pytest

from conftest import NARRATION
from wargame.llm import BackendError
from wargame.models import InteractionType, OutcomeRecord, ScenarioMessage
from wargame.pipeline.narration import NarrationError, combine_results, narrate, outcome_block

FEED, ACTION, INFO = InteractionType.FEED, InteractionType.ACTION, InteractionType.INFO


def test_outcome_block(alice, make_interaction):
    record = OutcomeRecord(interaction=make_interaction(ACTION, alice, "seal the port"), outcome="port sealed")
    assert outcome_block(record) == "ACTION Alice: seal the port\nOutcome: port sealed"


def test_combine_puts_feeds_first(alice, bob, make_interaction):
    feed = make_interaction(FEED, bob, "storm hits the coast")
    record = OutcomeRecord(interaction=make_interaction(INFO, alice, "casualties?"), outcome="none reported")
    assert combine_results([feed], [record]) == (
        "FEED: storm hits the coast\n\n"
        "INFO Alice: casualties?\nOutcome: none reported"
    )


def test_combine_empty():
    assert combine_results([], []) == ""


async def test_narrate_appends_exactly_two_messages(llm, history, alice, make_interaction):
    feed = make_interaction(FEED, alice, "bridge closed")
    result = await narrate(llm, history, [feed], [])

    assert result[:-2] == history
    assert result[-2] == ScenarioMessage(role="user", content="FEED: bridge closed")
    assert result[-1] == ScenarioMessage(role="assistant", content=NARRATION)
    assert len(history) == 2


async def test_narrate_makes_one_call_with_wrapped_request(llm, history, alice, make_interaction):
    feed = make_interaction(FEED, alice, "bridge closed")
    await narrate(llm, history, [feed], [])

    calls = llm.stage_calls("narrate")
    assert len(llm.calls) == len(calls) == 1
    request = calls[0]["messages"][-1]
    assert request.role == "user"
    assert request.content == "Here are the player interactions and their outcomes:\nFEED: bridge closed"
    assert calls[0]["messages"][:-1] == history
    assert calls[0]["tools"] is None


async def test_narration_is_stripped(llm, history):
    llm.narration = "\n  The day passes.  \n"
    result = await narrate(llm, history, [], [])
    assert result[-1].content == "The day passes."


@pytest.mark.parametrize("reply", ["", "   \n"])
async def test_empty_narration_raises(llm, history, reply):
    llm.narration = reply
    with pytest.raises(NarrationError):
        await narrate(llm, history, [], [])


async def test_backend_error_propagates(llm, history, backend_error):
    llm.narration = backend_error
    with pytest.raises(BackendError):
        await narrate(llm, history, [], [])
