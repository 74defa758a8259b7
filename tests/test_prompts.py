"""Tests for Handlebars prompt rendering: the template helper, player XML,
and the structured vs text-marker forecaster variants."""

import pytest

from wargame import prompts
from wargame.models import Player
from wargame.prompts import PromptError, render_prompt


# ── render_prompt ────────────────────────────────────────────


def test_render_simple_variable():
    assert render_prompt("Hello {{name}}!", {"name": "World"}) == "Hello World!"


def test_render_if_conditional():
    tpl = "{{#if show}}yes{{else}}no{{/if}}"
    assert render_prompt(tpl, {"show": True}) == "yes"
    assert render_prompt(tpl, {"show": False}) == "no"


def test_triple_stash_is_not_escaped():
    assert render_prompt("{{{text}}}", {"text": "A & B"}) == "A & B"
    assert render_prompt("{{text}}", {"text": "A & B"}) == "A &amp; B"


def test_render_invalid_template():
    with pytest.raises(PromptError):
        render_prompt("{{> missing_partial}}", {})


# ── Facilitator ──────────────────────────────────────────────


def test_player_descriptions_xml():
    players = [
        Player(id=1, name="Alice", role="Responder"),
        Player(id=2, name="Bob", role="Analyst"),
    ]
    xml = prompts.player_descriptions_xml(players)
    assert xml.startswith("<playerDescriptions>\n")
    assert xml.endswith("</playerDescriptions>")
    assert "<name>Alice</name>" in xml
    assert "<role>Analyst</role>" in xml
    assert xml.index("Alice") < xml.index("Bob")


def test_player_descriptions_escape_markup():
    xml = prompts.player_descriptions_xml([Player(id=1, name="Ann <CTO>", role="R&D")])
    assert "<name>Ann &lt;CTO&gt;</name>" in xml
    assert "<role>R&amp;D</role>" in xml


def test_player_descriptions_empty():
    assert prompts.player_descriptions_xml([]) == "<playerDescriptions>\n</playerDescriptions>"


def test_facilitator_prompt_lists_players_and_format():
    prompt = prompts.facilitator_prompt([Player(id=1, name="Alice", role="Responder")])
    assert "<name>Alice</name>" in prompt
    assert "# Time Offset\nT+0" in prompt
    assert "facilitator" in prompt


# ── Forecaster ───────────────────────────────────────────────


def test_forecaster_prompt_structured_mentions_tool():
    prompt = prompts.forecaster_prompt(structured=True)
    assert "superforecaster" in prompt
    assert "sample_from_weighted_outcomes" in prompt
    assert "Report only the sampled outcome" not in prompt


def test_forecaster_prompt_text_samples_itself():
    prompt = prompts.forecaster_prompt(structured=False)
    assert "sample_from_weighted_outcomes" not in prompt
    assert "Report only the sampled outcome" in prompt


def test_forecast_request_structured():
    text = prompts.forecast_request("ACTION Alice: x\nFEED: y", "ACTION Alice: x", structured=True)
    assert "ACTION Alice: x\nFEED: y" in text
    assert "only this specific interaction:\nACTION Alice: x" in text
    assert "OUTCOME:" not in text


def test_forecast_request_text_marker():
    text = prompts.forecast_request("INFO Bob: q", "INFO Bob: q", structured=False)
    assert "OUTCOME: <your chosen outcome>" in text


def test_forecast_request_keeps_player_text_verbatim():
    text = prompts.forecast_request("ACTION Al: cut R&D <now>", "ACTION Al: cut R&D <now>", structured=True)
    assert "cut R&D <now>" in text


# ── Game master ──────────────────────────────────────────────


def test_narration_request_wraps_outcomes():
    text = prompts.narration_request("FEED: rain\n\nACTION Alice: x\nOutcome: ok")
    assert text.startswith("Here are the player interactions and their outcomes:\n")
    assert text.endswith("Outcome: ok")


def test_game_master_prompt_orders_sections():
    gm = prompts.GAME_MASTER_PROMPT
    assert "game master" in gm
    assert gm.index("## INFO") < gm.index("## ACTION") < gm.index("# Narrative Update")
