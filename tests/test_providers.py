"""Tests for the Gemini and OpenAI adjudicators with mocked SDK clients."""

import json
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from debatemate.models import SpeakerRole, Team
from debatemate.providers.base import ProviderError
from debatemate.providers.gemini import GeminiAdjudicator
from debatemate.providers.openai_provider import OpenAIAdjudicator
from debatemate.registry import SpeakerRegistry

MOTION_REPLY = {
    "detectedLanguage": "English",
    "specificCriteria": ["Costs", "Liberty", "Safety"],
    "backgroundInfo": "Background.",
}
SPEECH_REPLY = {"transcription": "Model transcript", "score": 16.5, "feedback": "Well structured."}
RANKING_REPLY = {
    "rankings": [
        {"team": "OG", "rank": 2, "reasoning": "b"},
        {"team": "OO", "rank": 1, "reasoning": "a"},
        {"team": "CG", "rank": 4, "reasoning": "d"},
        {"team": "CO", "rank": 3, "reasoning": "c"},
    ],
    "overallAdjudication": "Opposition bench carried the round.",
}


# --- Gemini ---

@pytest.fixture
def gemini(monkeypatch, sample_model_config, sample_prompts_config) -> GeminiAdjudicator:
    monkeypatch.setenv("TEST_GEMINI_KEY", "test-key")
    adjudicator = GeminiAdjudicator(sample_model_config, sample_prompts_config)
    adjudicator._client = MagicMock()
    adjudicator._client.aio.models.generate_content = AsyncMock()
    return adjudicator


def _gemini_reply(payload) -> SimpleNamespace:
    return SimpleNamespace(
        text=json.dumps(payload),
        usage_metadata=SimpleNamespace(total_token_count=321),
    )


def test_gemini_missing_key(monkeypatch, sample_model_config, sample_prompts_config):
    monkeypatch.delenv("TEST_GEMINI_KEY", raising=False)
    with pytest.raises(ProviderError, match="Missing API key"):
        GeminiAdjudicator(sample_model_config, sample_prompts_config)


def test_gemini_name(gemini):
    assert gemini.name() == "gemini"


async def test_gemini_analyze_motion(gemini):
    generate = gemini._client.aio.models.generate_content
    generate.return_value = _gemini_reply(MOTION_REPLY)
    context = await gemini.analyze_motion("THW ban zoos")
    assert context.criteria == ("Costs", "Liberty", "Safety")
    kwargs = generate.await_args.kwargs
    assert kwargs["model"] == "gemini-test-pro"
    assert kwargs["contents"] == "Analyze: THW ban zoos"
    assert kwargs["config"].response_mime_type == "application/json"
    assert not kwargs["config"].tools


async def test_gemini_search_grounding_adds_tool(monkeypatch, sample_model_config, sample_prompts_config):
    monkeypatch.setenv("TEST_GEMINI_KEY", "test-key")
    adjudicator = GeminiAdjudicator(replace(sample_model_config, search_grounding=True), sample_prompts_config)
    adjudicator._client = MagicMock()
    adjudicator._client.aio.models.generate_content = AsyncMock(return_value=_gemini_reply(MOTION_REPLY))
    await adjudicator.analyze_motion("THW ban zoos")
    config = adjudicator._client.aio.models.generate_content.await_args.kwargs["config"]
    assert len(config.tools) == 1


async def test_gemini_evaluate_speech_sends_audio(gemini, sample_audio, sample_motion_context):
    generate = gemini._client.aio.models.generate_content
    generate.return_value = _gemini_reply(SPEECH_REPLY)
    evaluation = await gemini.evaluate_speech(sample_audio, SpeakerRole.MO, "THW ban zoos", sample_motion_context)
    assert evaluation.score == 16.5
    assert evaluation.transcription == "Model transcript"
    kwargs = generate.await_args.kwargs
    assert kwargs["model"] == "gemini-test-flash"
    audio_part, prompt = kwargs["contents"]
    assert audio_part.inline_data.data == sample_audio.data
    assert audio_part.inline_data.mime_type == "audio/webm"
    assert "Role: Member of Opposition" in prompt
    assert kwargs["config"].system_instruction == "You are an adjudicator."


async def test_gemini_rank_teams(gemini):
    generate = gemini._client.aio.models.generate_content
    generate.return_value = _gemini_reply(RANKING_REPLY)
    speakers = SpeakerRegistry.from_roster(speech_time=440).snapshot()
    result = await gemini.rank_teams(speakers, "THW ban zoos", None)
    assert result.rankings[1].team is Team.OO
    assert result.rankings[1].rank == 1
    assert "DID NOT SPEAK" in generate.await_args.kwargs["contents"]


async def test_gemini_api_error_wrapped(gemini):
    gemini._client.aio.models.generate_content.side_effect = RuntimeError("quota exceeded")
    with pytest.raises(ProviderError, match="quota exceeded"):
        await gemini.analyze_motion("THW ban zoos")


async def test_gemini_timeout(gemini):
    gemini._client.aio.models.generate_content.side_effect = TimeoutError()
    with pytest.raises(ProviderError, match="timed out"):
        await gemini.analyze_motion("THW ban zoos")


async def test_gemini_empty_text(gemini):
    gemini._client.aio.models.generate_content.return_value = SimpleNamespace(text="", usage_metadata=None)
    with pytest.raises(ProviderError, match="empty response"):
        await gemini.analyze_motion("THW ban zoos")


async def test_gemini_malformed_reply(gemini, sample_audio):
    gemini._client.aio.models.generate_content.return_value = _gemini_reply({"score": 30})
    with pytest.raises(ProviderError):
        await gemini.evaluate_speech(sample_audio, SpeakerRole.PM, "THW ban zoos", None)


# --- OpenAI ---

@pytest.fixture
def openai_adjudicator(monkeypatch, sample_model_config, sample_prompts_config) -> OpenAIAdjudicator:
    monkeypatch.setenv("TEST_OPENAI_KEY", "sk-test")
    config = replace(
        sample_model_config,
        name="openai",
        sdk="openai",
        api_key_env="TEST_OPENAI_KEY",
        motion_model="gpt-test",
        speech_model="gpt-test",
        ranking_model="gpt-test",
    )
    adjudicator = OpenAIAdjudicator(config, sample_prompts_config)
    adjudicator._client = MagicMock()
    adjudicator._client.chat.completions.create = AsyncMock()
    adjudicator._client.audio.transcriptions.create = AsyncMock(
        return_value=SimpleNamespace(text=" Whisper transcript ")
    )
    return adjudicator


def _chat_reply(payload) -> SimpleNamespace:
    message = SimpleNamespace(content=json.dumps(payload))
    return SimpleNamespace(choices=[SimpleNamespace(message=message)], usage=SimpleNamespace(total_tokens=99))


async def test_openai_analyze_motion(openai_adjudicator):
    create = openai_adjudicator._client.chat.completions.create
    create.return_value = _chat_reply(MOTION_REPLY)
    context = await openai_adjudicator.analyze_motion("THW ban zoos")
    assert context.detected_language == "English"
    kwargs = create.await_args.kwargs
    assert kwargs["response_format"] == {"type": "json_object"}
    assert kwargs["messages"] == [{"role": "user", "content": "Analyze: THW ban zoos"}]


async def test_openai_evaluate_speech_transcribes_first(openai_adjudicator, sample_audio):
    create = openai_adjudicator._client.chat.completions.create
    create.return_value = _chat_reply(SPEECH_REPLY)
    evaluation = await openai_adjudicator.evaluate_speech(sample_audio, SpeakerRole.PM, "THW ban zoos", None)

    transcribe = openai_adjudicator._client.audio.transcriptions.create
    assert transcribe.await_args.kwargs["model"] == "whisper-1"
    assert transcribe.await_args.kwargs["file"] == ("pm.webm", sample_audio.data, "audio/webm")
    assert evaluation.transcription == "Whisper transcript"
    assert evaluation.score == 16.5

    messages = create.await_args.kwargs["messages"]
    assert messages[0] == {"role": "system", "content": "You are an adjudicator."}
    assert "Whisper transcript" in messages[1]["content"]


async def test_openai_empty_transcription(openai_adjudicator, sample_audio):
    openai_adjudicator._client.audio.transcriptions.create.return_value = SimpleNamespace(text="  ")
    with pytest.raises(ProviderError, match="Empty transcription"):
        await openai_adjudicator.evaluate_speech(sample_audio, SpeakerRole.PM, "THW ban zoos", None)
    openai_adjudicator._client.chat.completions.create.assert_not_awaited()


async def test_openai_rank_teams(openai_adjudicator):
    openai_adjudicator._client.chat.completions.create.return_value = _chat_reply(RANKING_REPLY)
    speakers = SpeakerRegistry.from_roster(speech_time=440).snapshot()
    result = await openai_adjudicator.rank_teams(speakers, "THW ban zoos", None)
    assert result.overall_adjudication == "Opposition bench carried the round."


async def test_openai_empty_choices(openai_adjudicator):
    openai_adjudicator._client.chat.completions.create.return_value = SimpleNamespace(choices=[], usage=None)
    with pytest.raises(ProviderError, match="empty response"):
        await openai_adjudicator.analyze_motion("THW ban zoos")


async def test_openai_api_error_wrapped(openai_adjudicator):
    openai_adjudicator._client.chat.completions.create.side_effect = RuntimeError("rate limited")
    with pytest.raises(ProviderError, match="rate limited"):
        await openai_adjudicator.analyze_motion("THW ban zoos")
