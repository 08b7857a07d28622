"""Tests for debatemate/prompting.py."""

from dataclasses import replace

from debatemate.models import SpeakerRole
from debatemate.prompting import (
    build_motion_prompt,
    build_ranking_prompt,
    build_speech_prompt,
    format_debate_summary,
    format_motion_context,
)
from debatemate.registry import SpeakerRegistry
from tests.conftest import completed


def test_motion_context_without_context():
    assert format_motion_context(None) == "No specific motion context available."


def test_motion_context_numbers_criteria(sample_motion_context):
    text = format_motion_context(sample_motion_context)
    assert "Detected Language: English" in text
    assert "1. Impact on small businesses" in text
    assert "3. Precedent from existing bans" in text
    assert sample_motion_context.background in text


def test_debate_summary_marks_absent_speakers():
    speakers = list(SpeakerRegistry.from_roster(speech_time=440))
    speakers[0] = completed(speakers[0], 15.5)
    summary = format_debate_summary(speakers)
    blocks = summary.split("\n\n")
    assert len(blocks) == 8
    assert "Score: 15.5/20" in blocks[0]
    assert "Speech by PM" in blocks[0]
    assert "DID NOT SPEAK / ABSENT" in blocks[1]
    assert "Score: 0" in blocks[1]
    assert summary.count("ABSENT") == 7


def test_debate_summary_includes_names():
    speakers = list(SpeakerRegistry.from_roster(speech_time=440))
    speakers[1] = replace(speakers[1], name="Dana")
    summary = format_debate_summary(speakers)
    assert "Leader of Opposition (Opening Opposition) - Dana" in summary


def test_debate_summary_excerpts_long_transcripts():
    speakers = list(SpeakerRegistry.from_roster(speech_time=440))
    speakers[2] = replace(completed(speakers[2], 12), transcription="x" * 5000)
    summary = format_debate_summary(speakers)
    assert "x" * 3000 + "..." in summary
    assert "x" * 3001 not in summary


def test_build_motion_prompt(sample_prompts_config):
    assert build_motion_prompt(sample_prompts_config, "THW ban zoos") == "Analyze: THW ban zoos"


def test_build_speech_prompt(sample_prompts_config, sample_motion_context):
    prompt = build_speech_prompt(sample_prompts_config, SpeakerRole.GW, "THW ban zoos", sample_motion_context)
    assert "Role: Government Whip" in prompt
    assert "Language: English" in prompt
    assert "1. Role Fulfilment" in prompt
    assert "Enforcement feasibility" in prompt


def test_build_speech_prompt_without_context(sample_prompts_config):
    prompt = build_speech_prompt(sample_prompts_config, SpeakerRole.PM, "THW ban zoos", None)
    assert "No specific motion context available." in prompt
    assert "Language: the language of the motion" in prompt


def test_build_ranking_prompt(sample_prompts_config, sample_motion_context):
    speakers = SpeakerRegistry.from_roster(speech_time=440).snapshot()
    prompt = build_ranking_prompt(sample_prompts_config, speakers, "THW ban zoos", sample_motion_context)
    assert prompt.startswith("Motion: THW ban zoos")
    assert "TOPIC CRITERIA: Impact on small businesses; Enforcement feasibility" in prompt
    assert "Speaker: Prime Minister (Opening Government)" in prompt
