"""Abstract base for all adjudication providers."""

from abc import ABC, abstractmethod
from collections.abc import Sequence

from debatemate.models import (
    MotionContext,
    RankingResult,
    Speaker,
    SpeakerRole,
    SpeechAudio,
    SpeechEvaluation,
)


class ProviderError(Exception):
    """Raised when a provider call fails."""

    def __init__(self, provider_name: str, message: str) -> None:
        self.provider_name = provider_name
        super().__init__(f"[{provider_name}] {message}")


class Adjudicator(ABC):
    """The three external services a debate session depends on."""

    @abstractmethod
    def name(self) -> str:
        """Return the short provider name (e.g. 'gemini', 'openai')."""
        ...

    @abstractmethod
    async def analyze_motion(self, motion: str) -> MotionContext:
        """Detect the motion's language, derive 3-5 topic criteria and background.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...

    @abstractmethod
    async def evaluate_speech(
        self,
        audio: SpeechAudio,
        role: SpeakerRole,
        motion: str,
        motion_context: MotionContext | None,
    ) -> SpeechEvaluation:
        """Transcribe and score one speech (0-20) with feedback.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...

    @abstractmethod
    async def rank_teams(
        self,
        speakers: Sequence[Speaker],
        motion: str,
        motion_context: MotionContext | None,
    ) -> RankingResult:
        """Rank the four teams and write the reason for decision.

        Raises:
            ProviderError: On API failure, timeout, or invalid response.
        """
        ...
