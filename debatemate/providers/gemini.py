"""Gemini adjudicator using google-genai SDK with native async."""

import asyncio
import logging
import os
import time
from collections.abc import Sequence

from google import genai
from google.genai import types as genai_types

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

_STRING = genai_types.Schema(type=genai_types.Type.STRING)

_MOTION_SCHEMA = genai_types.Schema(
    type=genai_types.Type.OBJECT,
    properties={
        "detectedLanguage": _STRING,
        "specificCriteria": genai_types.Schema(
            type=genai_types.Type.ARRAY,
            items=_STRING,
            description="List of 3-5 specific criteria for this motion",
        ),
        "backgroundInfo": _STRING,
    },
    required=["detectedLanguage", "specificCriteria", "backgroundInfo"],
)

_SPEECH_SCHEMA = genai_types.Schema(
    type=genai_types.Type.OBJECT,
    properties={
        "transcription": _STRING,
        "score": genai_types.Schema(type=genai_types.Type.NUMBER, description="Score between 0 and 20"),
        "feedback": _STRING,
    },
    required=["transcription", "score", "feedback"],
)

_RANKING_SCHEMA = genai_types.Schema(
    type=genai_types.Type.OBJECT,
    properties={
        "rankings": genai_types.Schema(
            type=genai_types.Type.ARRAY,
            items=genai_types.Schema(
                type=genai_types.Type.OBJECT,
                properties={
                    "team": _STRING,
                    "rank": genai_types.Schema(type=genai_types.Type.INTEGER),
                    "reasoning": _STRING,
                },
                required=["team", "rank", "reasoning"],
            ),
        ),
        "overallAdjudication": _STRING,
    },
    required=["rankings", "overallAdjudication"],
)


class GeminiAdjudicator(Adjudicator):
    """Google Gemini adjudicator via google-genai SDK."""

    def __init__(self, config: ModelConfig, prompts: PromptsConfig) -> None:
        self._config = config
        self._prompts = prompts
        api_key = os.environ.get(config.api_key_env, "").strip()
        if not api_key:
            raise ProviderError(config.name, f"Missing API key: {config.api_key_env}")
        self._client = genai.Client(api_key=api_key)

    def name(self) -> str:
        return self._config.name

    async def _generate(
        self,
        task: str,
        model: str,
        contents: list | str,
        config: genai_types.GenerateContentConfig,
    ) -> str:
        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.aio.models.generate_content(
                    model=model,
                    contents=contents,
                    config=config,
                ),
                timeout=self._config.timeout_sec,
            )
        except TimeoutError as exc:
            raise ProviderError(self._config.name, f"{task} timed out after {self._config.timeout_sec}s") from exc
        except Exception as exc:
            raise ProviderError(self._config.name, f"{task} API call failed: {exc}") from exc

        latency = time.monotonic() - start

        if not response.text:
            raise ProviderError(self._config.name, f"{task}: empty response text")

        token_count: int | None = None
        if response.usage_metadata:
            token_count = response.usage_metadata.total_token_count

        logger.info("Gemini %s: %.2fs, %s tokens", task, latency, token_count)
        return response.text

    async def analyze_motion(self, motion: str) -> MotionContext:
        tools = None
        if self._config.search_grounding:
            tools = [genai_types.Tool(google_search=genai_types.GoogleSearch())]
        text = await self._generate(
            "motion analysis",
            self._config.motion_model,
            build_motion_prompt(self._prompts, motion),
            genai_types.GenerateContentConfig(
                max_output_tokens=self._config.max_tokens,
                response_mime_type="application/json",
                response_schema=_MOTION_SCHEMA,
                tools=tools,
            ),
        )
        return parse_motion_context(self._config.name, load_json(self._config.name, text))

    async def evaluate_speech(
        self,
        audio: SpeechAudio,
        role: SpeakerRole,
        motion: str,
        motion_context: MotionContext | None,
    ) -> SpeechEvaluation:
        contents = [
            genai_types.Part.from_bytes(data=audio.data, mime_type=audio.mime_type),
            build_speech_prompt(self._prompts, role, motion, motion_context),
        ]
        text = await self._generate(
            "speech evaluation",
            self._config.speech_model,
            contents,
            genai_types.GenerateContentConfig(
                max_output_tokens=self._config.max_tokens,
                response_mime_type="application/json",
                response_schema=_SPEECH_SCHEMA,
                system_instruction=self._prompts.speech_system or None,
            ),
        )
        return parse_speech_evaluation(self._config.name, load_json(self._config.name, text))

    async def rank_teams(
        self,
        speakers: Sequence[Speaker],
        motion: str,
        motion_context: MotionContext | None,
    ) -> RankingResult:
        text = await self._generate(
            "team ranking",
            self._config.ranking_model,
            build_ranking_prompt(self._prompts, speakers, motion, motion_context),
            genai_types.GenerateContentConfig(
                max_output_tokens=self._config.max_tokens,
                response_mime_type="application/json",
                response_schema=_RANKING_SCHEMA,
                system_instruction=self._prompts.ranking_system or None,
            ),
        )
        return parse_ranking_result(self._config.name, load_json(self._config.name, text))
