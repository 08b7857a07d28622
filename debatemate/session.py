"""Debate session state machine: setup -> prep -> debate -> results.

The session owns its speaker registry and all timers, and sequences the three
collaborator calls. Every collaborator-driven transition is all-or-nothing:
state is only written after the call succeeds, and the one transition that is
entered before its call (finishing the debate) is rolled back from a
checkpoint when the call fails.
"""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from functools import partial
from typing import TypeVar

from config.config_loader import SessionConfig, TimingConfig
from debatemate.aggregator import aggregate_rankings, rank_speakers
from debatemate.errors import (
    CollaboratorError,
    PhaseError,
    RankingError,
    SpeakerBusyError,
    ValidationError,
)
from debatemate.models import (
    MAX_SCORE,
    MIN_SCORE,
    MotionContext,
    Phase,
    Speaker,
    SpeechAudio,
    TeamResult,
)
from debatemate.providers.base import Adjudicator, ProviderError
from debatemate.registry import ROSTER_SIZE, SpeakerRegistry
from debatemate.timer import CountdownTimer

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Fields restored when adjudication fails.
_ROLLBACK_FIELDS = ("phase", "is_adjudicating", "final_rankings", "overall_adjudication")


@dataclass
class SessionState:
    id: str
    title: str
    created_at: datetime
    speakers: SpeakerRegistry
    prep_time_left: int
    topic: str = ""
    motion_context: MotionContext | None = None
    phase: Phase = Phase.SETUP
    is_adjudicating: bool = False
    final_rankings: list[TeamResult] | None = None
    overall_adjudication: str | None = None


def _title_from_motion(motion: str, max_len: int) -> str:
    if len(motion) <= max_len:
        return motion
    return motion[:max_len] + "..."


class DebateSession:
    """One debate event, driven through its phases by caller actions."""

    def __init__(
        self,
        adjudicator: Adjudicator,
        timing: TimingConfig,
        settings: SessionConfig | None = None,
        *,
        session_id: str | None = None,
        title: str = "New Debate",
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._adjudicator = adjudicator
        self._timing = timing
        self._settings = settings or SessionConfig()
        self.state = SessionState(
            id=session_id or uuid.uuid4().hex,
            title=title,
            created_at=datetime.now(),
            speakers=SpeakerRegistry.from_roster(timing.speech_time_sec),
            prep_time_left=timing.prep_time_sec,
        )

        self._prep_timer = CountdownTimer(timing.prep_time_sec, name=f"{self.state.id}:prep", clock=clock)
        self._prep_timer.subscribe(self._on_prep_timer)
        self._speech_timers: dict[str, CountdownTimer] = {}
        for speaker in self.state.speakers:
            timer = CountdownTimer(
                timing.speech_time_sec,
                name=f"{self.state.id}:{speaker.role.name}",
                clock=clock,
            )
            timer.subscribe(partial(self._on_speech_timer, speaker.id))
            self._speech_timers[speaker.id] = timer

        self._evaluating: set[str] = set()
        self._analyzing_motion = False
        # Bumped by close(); a collaborator result from an older epoch is dropped.
        self._epoch = 0
        self._closed = False

    # --- read access ---

    @property
    def id(self) -> str:
        return self.state.id

    @property
    def title(self) -> str:
        return self.state.title

    @property
    def phase(self) -> Phase:
        return self.state.phase

    @property
    def speakers(self) -> SpeakerRegistry:
        return self.state.speakers

    @property
    def prep_timer(self) -> CountdownTimer:
        return self._prep_timer

    def speech_timer(self, speaker_id: str) -> CountdownTimer:
        self.state.speakers.get(speaker_id)
        return self._speech_timers[speaker_id]

    def is_evaluating(self, speaker_id: str) -> bool:
        return speaker_id in self._evaluating

    @property
    def speaker_rankings(self) -> list[Speaker]:
        return rank_speakers(self.state.speakers)

    # --- helpers ---

    def _require_phase(self, phase: Phase, operation: str) -> None:
        if self._closed:
            raise ValidationError(f"Cannot {operation}: session {self.state.id} is closed")
        if self.state.phase is not phase:
            raise PhaseError(operation, self.state.phase.value)

    async def _call(self, operation: str, call: Awaitable[T]) -> T:
        """Await a collaborator call, turning any failure into CollaboratorError."""
        try:
            return await call
        except ProviderError as exc:
            logger.warning("Session %s: %s failed: %s", self.state.id, operation, exc)
            raise CollaboratorError(operation, str(exc)) from exc
        except Exception as exc:
            logger.warning("Session %s: %s unexpected failure: %s", self.state.id, operation, exc)
            raise CollaboratorError(operation, f"Unexpected error: {exc}") from exc

    def _on_prep_timer(self, timer: CountdownTimer) -> None:
        self.state.prep_time_left = timer.time_left
        if timer.time_left == 0 and self.state.phase is Phase.PREP:
            logger.info("Session %s: preparation time is over", self.state.id)
            self._enter_debate()

    def _on_speech_timer(self, speaker_id: str, timer: CountdownTimer) -> None:
        self.state.speakers.apply_update(
            speaker_id,
            speech_time_left=timer.time_left,
            is_speech_timer_running=timer.running,
        )

    def _enter_debate(self) -> None:
        # Phase first: the reset below re-enters _on_prep_timer with time_left == 0.
        self.state.phase = Phase.DEBATE
        self.state.is_adjudicating = False
        self._prep_timer.reset(0)
        self.state.prep_time_left = 0
        logger.info("Session %s: debate started", self.state.id)

    # --- setup ---

    def update(self, **fields) -> None:
        """Edit session metadata. ``title`` any time, ``topic`` only during setup."""
        illegal = set(fields) - {"title", "topic"}
        if illegal:
            raise ValidationError(f"Cannot update session field(s): {', '.join(sorted(illegal))}")
        if "topic" in fields and self.state.phase is not Phase.SETUP:
            raise PhaseError("change the motion", self.state.phase.value)
        if "title" in fields:
            title = str(fields["title"]).strip()
            if not title:
                raise ValidationError("Session title must not be empty")
            self.state.title = title
        if "topic" in fields:
            self.state.topic = str(fields["topic"])

    async def submit_motion(self, motion: str, *, online: bool, skip_prep: bool = False) -> MotionContext:
        """Analyze the motion and leave setup for prep (or straight for debate).

        Raises:
            ValidationError: Empty motion, caller offline, or an analysis already running.
            PhaseError: Not in setup.
            CollaboratorError: Motion analysis failed; the session is unchanged.
        """
        self._require_phase(Phase.SETUP, "submit a motion")
        motion = motion.strip()
        if not motion:
            raise ValidationError("Motion must not be empty")
        if not online:
            raise ValidationError("An online connection is required to analyze the motion")
        if self._analyzing_motion:
            raise ValidationError("Motion analysis is already in progress")

        epoch = self._epoch
        self._analyzing_motion = True
        try:
            context = await self._call("analyze motion", self._adjudicator.analyze_motion(motion))
        finally:
            self._analyzing_motion = False

        if epoch != self._epoch or self.state.phase is not Phase.SETUP:
            logger.warning("Session %s: dropping motion analysis that arrived too late", self.state.id)
            raise CollaboratorError("analyze motion", "Session changed while the motion was being analyzed")

        self.state.topic = motion
        self.state.title = _title_from_motion(motion, self._settings.title_max_len)
        self.state.motion_context = context
        if skip_prep or self._timing.prep_time_sec == 0:
            self._enter_debate()
        else:
            self.state.phase = Phase.PREP
            self._prep_timer.reset(self._timing.prep_time_sec)
            self._prep_timer.start()
            logger.info(
                "Session %s: preparation started (%ds, language %s)",
                self.state.id, self._timing.prep_time_sec, context.detected_language,
            )
        return context

    # --- prep ---

    def skip_prep(self) -> None:
        self._require_phase(Phase.PREP, "skip preparation")
        logger.info("Session %s: preparation skipped", self.state.id)
        self._enter_debate()

    # --- debate ---

    def rename_speaker(self, speaker_id: str, name: str) -> Speaker:
        if self._closed:
            raise ValidationError(f"Session {self.state.id} is closed")
        return self.state.speakers.apply_update(speaker_id, name=name.strip())

    def start_speech_timer(self, speaker_id: str) -> None:
        self._require_phase(Phase.DEBATE, "start a speech timer")
        self.speech_timer(speaker_id).start()

    def pause_speech_timer(self, speaker_id: str) -> None:
        self.speech_timer(speaker_id).pause()

    def toggle_speech_timer(self, speaker_id: str) -> None:
        if self.speech_timer(speaker_id).running:
            self.pause_speech_timer(speaker_id)
        else:
            self.start_speech_timer(speaker_id)

    def reset_speech_timer(self, speaker_id: str) -> None:
        self.speech_timer(speaker_id).reset(self._timing.speech_time_sec)

    async def submit_speech(self, speaker_id: str, audio: SpeechAudio) -> Speaker | None:
        """Evaluate one captured speech and mark the speaker completed.

        Returns the updated speaker, or None when the result arrived after the
        session left the debate phase (the result is dropped).

        Raises:
            ValidationError: Unknown speaker id.
            SpeakerBusyError: The speaker already has an evaluation in flight.
            PhaseError: Not in the debate phase.
            CollaboratorError: Evaluation failed; the speaker stays as it was.
        """
        self._require_phase(Phase.DEBATE, "submit a speech")
        speaker = self.state.speakers.get(speaker_id)
        if speaker_id in self._evaluating:
            raise SpeakerBusyError(speaker_id)

        epoch = self._epoch
        self._evaluating.add(speaker_id)
        try:
            evaluation = await self._call(
                "evaluate speech",
                self._adjudicator.evaluate_speech(
                    audio, speaker.role, self.state.topic, self.state.motion_context
                ),
            )
        finally:
            self._evaluating.discard(speaker_id)

        if epoch != self._epoch or self.state.phase is not Phase.DEBATE:
            logger.warning(
                "Session %s: dropping evaluation for %s that arrived after the debate phase",
                self.state.id, speaker.role.name,
            )
            return None
        if not MIN_SCORE <= evaluation.score <= MAX_SCORE:
            logger.warning("Session %s: evaluation score %s out of range", self.state.id, evaluation.score)
            raise CollaboratorError("evaluate speech", f"Score {evaluation.score} outside 0-20")

        updated = self.state.speakers.apply_update(
            speaker_id,
            is_completed=True,
            transcription=evaluation.transcription,
            score=evaluation.score,
            feedback=evaluation.feedback,
            audio=audio,
        )
        logger.info(
            "Session %s: %s scored %.1f/20 (%d/%d completed)",
            self.state.id, speaker.role.name, evaluation.score,
            self.state.speakers.completed_count, ROSTER_SIZE,
        )
        return updated

    async def finish_debate(self) -> list[TeamResult] | None:
        """Close the debate and adjudicate it.

        Returns the team results ordered by rank, or None when the session was
        closed while the ranking was in flight.

        Raises:
            PhaseError: Not in the debate phase.
            ValidationError: Fewer speakers completed than the configured minimum.
            CollaboratorError: Ranking failed or was malformed; the session is
                back in the debate phase with no ranking data.
        """
        self._require_phase(Phase.DEBATE, "finish the debate")
        completed = self.state.speakers.completed_count
        if completed < self._settings.min_completed_speakers:
            raise ValidationError(
                f"Only {completed}/{ROSTER_SIZE} speakers completed, "
                f"at least {self._settings.min_completed_speakers} required"
            )
        if completed < ROSTER_SIZE:
            logger.warning(
                "Session %s: finishing with %d/%d speeches; absent speakers score 0",
                self.state.id, completed, ROSTER_SIZE,
            )

        for timer in self._speech_timers.values():
            timer.pause()
        snapshot = self.state.speakers.snapshot()
        checkpoint = {name: getattr(self.state, name) for name in _ROLLBACK_FIELDS}
        epoch = self._epoch

        self.state.phase = Phase.RESULTS
        self.state.is_adjudicating = True
        logger.info("Session %s: adjudicating", self.state.id)

        try:
            ranking = await self._call(
                "rank teams",
                self._adjudicator.rank_teams(snapshot, self.state.topic, self.state.motion_context),
            )
            try:
                team_results = aggregate_rankings(snapshot, ranking.rankings)
            except RankingError as exc:
                logger.warning("Session %s: malformed ranking: %s", self.state.id, exc)
                raise CollaboratorError("rank teams", f"Malformed ranking: {exc}") from exc
        except CollaboratorError:
            for name, value in checkpoint.items():
                setattr(self.state, name, value)
            logger.info("Session %s: adjudication failed, back to debate", self.state.id)
            raise

        if epoch != self._epoch:
            for name, value in checkpoint.items():
                setattr(self.state, name, value)
            logger.warning("Session %s: dropping ranking that arrived after close", self.state.id)
            return None

        self.state.final_rankings = team_results
        self.state.overall_adjudication = ranking.overall_adjudication
        self.state.is_adjudicating = False
        logger.info(
            "Session %s: winner %s",
            self.state.id, team_results[0].team.value,
        )
        return team_results

    # --- lifecycle ---

    def close(self) -> None:
        """Stop every timer and invalidate in-flight collaborator calls."""
        if self._closed:
            return
        self._closed = True
        self._epoch += 1
        self._prep_timer.pause()
        for timer in self._speech_timers.values():
            timer.pause()
        logger.debug("Session %s closed", self.state.id)

    def __repr__(self) -> str:
        return f"DebateSession(id={self.state.id!r}, title={self.state.title!r}, phase={self.state.phase.value})"
