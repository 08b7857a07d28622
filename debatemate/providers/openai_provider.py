"""OpenAI adjudicator using openai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import Sequence

from openai import AsyncOpenAI

from config.config_loader import ModelConfig, PromptsConfig
from debatemate.models import (
    MotionContext,
    RankingResult,
    Speaker,
    SpeakerRole,
    SpeechAudio,
    SpeechEvaluation,
)
from debatemate.prompting import build_motion_prompt, build_ranking_prompt, build_speech_prompt
from debatemate.providers.base import Adjudicator, ProviderError
from debatemate.providers.parsing import (
    load_json,
    parse_motion_context,
    parse_ranking_result,
    parse_speech_evaluation,
)

logger = logging.getLogger(__name__)

_DEFAULT_TRANSCRIPTION_MODEL = "whisper-1"


class OpenAIAdjudicator(Adjudicator):
    """OpenAI adjudicator via openai SDK.

    Chat models do not take the audio directly: the speech is transcribed
    first and the transcript is scored in a second call.
    """

    def __init__(self, config: ModelConfig, prompts: PromptsConfig) -> None:
        self._config = config
        self._prompts = prompts
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = AsyncOpenAI(api_key=api_key, base_url=config.base_url)

    def name(self) -> str:
        return self._config.name

    async def _complete_json(self, task: str, model: str, prompt: str, system: str = "") -> dict:
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.chat.completions.create(
                    model=model,
                    messages=messages,
                    max_tokens=self._config.max_tokens,
                    response_format={"type": "json_object"},
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"{task} timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"{task} API call failed: {exc}") from exc

        latency = time.monotonic() - start

        choice = response.choices[0] if response.choices else None
        if not choice or not choice.message.content:
            raise ProviderError(self._config.name, f"{task}: empty response content")

        token_count: int | None = None
        if response.usage:
            token_count = response.usage.total_tokens

        logger.info("OpenAI %s: %.2fs, %s tokens", task, latency, token_count)
        return load_json(self._config.name, choice.message.content)

    async def _transcribe(self, audio: SpeechAudio) -> str:
        model = self._config.transcription_model or _DEFAULT_TRANSCRIPTION_MODEL
        start = time.monotonic()
        try:
            transcript = await asyncio.wait_for(
                self._client.audio.transcriptions.create(
                    model=model,
                    file=(audio.filename, audio.data, audio.mime_type),
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"Transcription timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"Transcription API call failed: {exc}") from exc

        text = (transcript.text or "").strip()
        if not text:
            raise ProviderError(self._config.name, "Empty transcription")
        logger.info("OpenAI transcription: %.2fs, %d chars", time.monotonic() - start, len(text))
        return text

    async def analyze_motion(self, motion: str) -> MotionContext:
        data = await self._complete_json(
            "motion analysis",
            self._config.motion_model,
            build_motion_prompt(self._prompts, motion),
        )
        return parse_motion_context(self._config.name, data)

    async def evaluate_speech(
        self,
        audio: SpeechAudio,
        role: SpeakerRole,
        motion: str,
        motion_context: MotionContext | None,
    ) -> SpeechEvaluation:
        transcript = await self._transcribe(audio)
        prompt = (
            build_speech_prompt(self._prompts, role, motion, motion_context)
            + f"\n\n**Transcript of the speech**:\n{transcript}\n"
        )
        data = await self._complete_json(
            "speech evaluation",
            self._config.speech_model,
            prompt,
            system=self._prompts.speech_system,
        )
        # The transcription endpoint is the authoritative transcript
        data["transcription"] = transcript
        return parse_speech_evaluation(self._config.name, data)

    async def rank_teams(
        self,
        speakers: Sequence[Speaker],
        motion: str,
        motion_context: MotionContext | None,
    ) -> RankingResult:
        data = await self._complete_json(
            "team ranking",
            self._config.ranking_model,
            build_ranking_prompt(self._prompts, speakers, motion, motion_context),
            system=self._prompts.ranking_system,
        )
        return parse_ranking_result(self._config.name, data)
