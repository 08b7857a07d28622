"""Speaker registry: the fixed 8-slot roster of a session and its single write path."""

import dataclasses
import logging
from collections.abc import Iterator

from debatemate.errors import ValidationError
from debatemate.models import MAX_SCORE, MIN_SCORE, ROSTER, Speaker, SpeakerRole, Team

logger = logging.getLogger(__name__)

ROSTER_SIZE = len(ROSTER)

# Fields apply_update may touch. id, role and team are fixed for the session's life.
PATCHABLE_FIELDS = frozenset({
    "name",
    "is_completed",
    "speech_time_left",
    "is_speech_timer_running",
    "transcription",
    "score",
    "feedback",
    "audio",
})

_COMPLETION_FIELDS = ("transcription", "score", "feedback")


def _check_speaker(speaker: Speaker) -> None:
    """Raise ValidationError if a merged speaker breaks the Speaker invariants."""
    if not isinstance(speaker.speech_time_left, int) or speaker.speech_time_left < 0:
        raise ValidationError(
            f"Speaker {speaker.id}: speech_time_left must be a non-negative integer, "
            f"got {speaker.speech_time_left!r}"
        )
    present = [getattr(speaker, f) is not None for f in _COMPLETION_FIELDS]
    if speaker.is_completed and not all(present):
        missing = [f for f, ok in zip(_COMPLETION_FIELDS, present) if not ok]
        raise ValidationError(f"Speaker {speaker.id}: completed speaker is missing {', '.join(missing)}")
    if not speaker.is_completed and any(present):
        raise ValidationError(
            f"Speaker {speaker.id}: transcription, score and feedback are only allowed once completed"
        )
    if speaker.score is not None and not MIN_SCORE <= speaker.score <= MAX_SCORE:
        raise ValidationError(
            f"Speaker {speaker.id}: score {speaker.score} outside {MIN_SCORE:g}-{MAX_SCORE:g}"
        )


class SpeakerRegistry:
    """Eight speakers keyed by id, iterated in speaking order.

    Speakers are frozen; an update swaps in a new object for exactly one id,
    so every other entry stays the identical object it was before.
    """

    def __init__(self, speakers: list[Speaker]) -> None:
        if len(speakers) != ROSTER_SIZE:
            raise ValidationError(f"A session needs exactly {ROSTER_SIZE} speakers, got {len(speakers)}")
        self._order: tuple[str, ...] = tuple(s.id for s in speakers)
        if len(set(self._order)) != ROSTER_SIZE:
            raise ValidationError("Speaker ids must be unique")
        self._speakers: dict[str, Speaker] = {s.id: s for s in speakers}

    @classmethod
    def from_roster(
        cls,
        speech_time: int,
        roster: tuple[tuple[SpeakerRole, Team], ...] = ROSTER,
    ) -> "SpeakerRegistry":
        """Build a fresh registry with default state for every roster slot."""
        return cls([
            Speaker(id=str(position), role=role, team=team, speech_time_left=speech_time)
            for position, (role, team) in enumerate(roster, start=1)
        ])

    def get(self, speaker_id: str) -> Speaker:
        try:
            return self._speakers[speaker_id]
        except KeyError:
            raise ValidationError(f"Unknown speaker id: {speaker_id!r}") from None

    def __contains__(self, speaker_id: object) -> bool:
        return speaker_id in self._speakers

    def __iter__(self) -> Iterator[Speaker]:
        return (self._speakers[sid] for sid in self._order)

    def __len__(self) -> int:
        return len(self._order)

    def snapshot(self) -> tuple[Speaker, ...]:
        """Immutable view of all speakers at this instant, in speaking order."""
        return tuple(self)

    def by_team(self, team: Team) -> list[Speaker]:
        return [s for s in self if s.team is team]

    @property
    def completed_count(self) -> int:
        return sum(1 for s in self._speakers.values() if s.is_completed)

    def apply_update(self, speaker_id: str, **fields) -> Speaker:
        """Merge ``fields`` into the speaker with ``speaker_id`` and return the new speaker.

        Raises:
            ValidationError: unknown id, a field outside PATCHABLE_FIELDS, or a
                merge that would break the Speaker invariants. Nothing changes.
        """
        current = self.get(speaker_id)
        illegal = set(fields) - PATCHABLE_FIELDS
        if illegal:
            raise ValidationError(f"Cannot update speaker field(s): {', '.join(sorted(illegal))}")
        updated = dataclasses.replace(current, **fields)
        _check_speaker(updated)
        self._speakers[speaker_id] = updated
        return updated
