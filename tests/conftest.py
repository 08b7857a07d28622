"""Shared pytest fixtures."""

from collections.abc import Sequence
from dataclasses import replace
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from config.config_loader import (
    AppConfig,
    DefaultsConfig,
    ModelConfig,
    PromptsConfig,
    SessionConfig,
    TimingConfig,
)
from debatemate.models import (
    MotionContext,
    RankingEntry,
    RankingResult,
    Speaker,
    SpeechAudio,
    SpeechEvaluation,
    Team,
)
from debatemate.providers.base import Adjudicator
from debatemate.session import DebateSession


class FakeClock:
    """Manually advanced stand-in for time.monotonic."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def sample_timing() -> TimingConfig:
    return TimingConfig(speech_time_sec=440, prep_time_sec=900)


@pytest.fixture
def sample_session_config() -> SessionConfig:
    return SessionConfig(min_completed_speakers=0, title_max_len=30)


@pytest.fixture
def sample_prompts_config() -> PromptsConfig:
    return PromptsConfig(
        motion_analysis="Analyze: {motion}",
        speech_evaluation=(
            "Motion: {motion}\nRole: {role}\nContext:\n{context}\n"
            "Criteria:\n{universal_criteria}\nLanguage: {language}"
        ),
        ranking="Motion: {motion}\n{criteria}\n{debate_summary}",
        universal_criteria="1. Role Fulfilment",
        speech_system="You are an adjudicator.",
        ranking_system="You are the Chief Adjudicator.",
    )


@pytest.fixture
def sample_model_config() -> ModelConfig:
    return ModelConfig(
        name="gemini",
        sdk="google-genai",
        api_key_env="TEST_GEMINI_KEY",
        motion_model="gemini-test-pro",
        speech_model="gemini-test-flash",
        ranking_model="gemini-test-pro",
        timeout_sec=30,
        max_tokens=1024,
    )


@pytest.fixture
def sample_app_config(
    tmp_path: Path,
    sample_timing: TimingConfig,
    sample_session_config: SessionConfig,
    sample_prompts_config: PromptsConfig,
    sample_model_config: ModelConfig,
) -> AppConfig:
    return AppConfig(
        defaults=DefaultsConfig(adjudicator="gemini", output_dir=tmp_path / "output"),
        timing=sample_timing,
        session=sample_session_config,
        models={"gemini": sample_model_config},
        prompts=sample_prompts_config,
        available_providers={"gemini"},
    )


@pytest.fixture
def sample_motion_context() -> MotionContext:
    return MotionContext(
        detected_language="English",
        criteria=(
            "Impact on small businesses",
            "Enforcement feasibility",
            "Precedent from existing bans",
        ),
        background="Several cities have trialled car-free centres.",
    )


@pytest.fixture
def sample_audio() -> SpeechAudio:
    return SpeechAudio(data=b"\x1aE\xdf\xa3fake-webm", mime_type="audio/webm", filename="pm.webm")


def make_ranking(order: Sequence[Team] = (Team.OG, Team.CG, Team.OO, Team.CO)) -> RankingResult:
    """A valid ranking result, teams listed from first to last place."""
    return RankingResult(
        rankings=tuple(
            RankingEntry(team=team, rank=rank, reasoning=f"{team.name} placed {rank}")
            for rank, team in enumerate(order, start=1)
        ),
        overall_adjudication="OG won on the clash over enforcement.",
    )


def completed(speaker: Speaker, score: float) -> Speaker:
    """Return a copy of speaker marked as having spoken with the given score."""
    return replace(
        speaker,
        is_completed=True,
        transcription=f"Speech by {speaker.role.name}",
        score=score,
        feedback="Solid.",
    )


class MockAdjudicator(Adjudicator):
    """Test double Adjudicator with AsyncMock collaborators."""

    def __init__(self, motion_context: MotionContext, provider_name: str = "mock") -> None:
        self._name = provider_name
        # Shadow the class methods with AsyncMocks at the instance level.
        # ABC check passes because the methods are defined in the class body below.
        self.analyze_motion = AsyncMock(return_value=motion_context)  # type: ignore[method-assign]
        self.evaluate_speech = AsyncMock(  # type: ignore[method-assign]
            return_value=SpeechEvaluation(transcription="Mock speech", score=15.0, feedback="Good framing.")
        )
        self.rank_teams = AsyncMock(return_value=make_ranking())  # type: ignore[method-assign]

    def name(self) -> str:
        return self._name

    async def analyze_motion(self, motion: str) -> MotionContext:  # type: ignore[override]
        raise NotImplementedError

    async def evaluate_speech(self, audio, role, motion, motion_context) -> SpeechEvaluation:  # type: ignore[override]
        raise NotImplementedError

    async def rank_teams(self, speakers, motion, motion_context) -> RankingResult:  # type: ignore[override]
        raise NotImplementedError


@pytest.fixture
def mock_adjudicator(sample_motion_context: MotionContext) -> MockAdjudicator:
    return MockAdjudicator(sample_motion_context)


@pytest.fixture
async def session(mock_adjudicator, sample_timing, sample_session_config, clock):
    """A fresh session in setup. Closed on teardown so no timer task outlives the test loop."""
    s = DebateSession(mock_adjudicator, sample_timing, sample_session_config, clock=clock)
    yield s
    s.close()


@pytest.fixture
async def debating_session(session: DebateSession) -> DebateSession:
    """A session that has analyzed its motion and skipped preparation."""
    await session.submit_motion("This House would ban cars from city centres", online=True, skip_prep=True)
    return session

