"""Render collaborator prompts from the configured templates."""

from collections.abc import Sequence

from config.config_loader import PromptsConfig
from debatemate.models import MotionContext, Speaker, SpeakerRole

# Transcriptions are cut to this many characters in the ranking summary.
_TRANSCRIPT_EXCERPT_CHARS = 3000


def format_motion_context(motion_context: MotionContext | None) -> str:
    if motion_context is None:
        return "No specific motion context available."
    criteria = "\n".join(f"{i}. {c}" for i, c in enumerate(motion_context.criteria, start=1))
    return (
        f"Detected Language: {motion_context.detected_language}\n"
        f"Topic Background: {motion_context.background}\n"
        f"TOPIC SPECIFIC CRITERIA:\n{criteria}"
    )


def format_debate_summary(speakers: Sequence[Speaker]) -> str:
    """One block per speaker; speakers who never spoke are reported as absent with score 0."""
    blocks: list[str] = []
    for s in speakers:
        label = f"Speaker: {s.role.value} ({s.team.value})"
        if s.name:
            label += f" - {s.name}"
        if not s.is_completed:
            blocks.append(f"{label}\nStatus: DID NOT SPEAK / ABSENT\nScore: 0")
            continue
        excerpt = (s.transcription or "")[:_TRANSCRIPT_EXCERPT_CHARS]
        if len(s.transcription or "") > _TRANSCRIPT_EXCERPT_CHARS:
            excerpt += "..."
        blocks.append(
            f"{label}\n"
            f"Score: {s.score:g}/20\n"
            f"Summary/Transcription Excerpt: {excerpt}\n"
            f"Feedback: {s.feedback}"
        )
    return "\n\n".join(blocks)


def build_motion_prompt(prompts: PromptsConfig, motion: str) -> str:
    return prompts.motion_analysis.format(motion=motion)


def build_speech_prompt(
    prompts: PromptsConfig,
    role: SpeakerRole,
    motion: str,
    motion_context: MotionContext | None,
) -> str:
    language = motion_context.detected_language if motion_context else "the language of the motion"
    return prompts.speech_evaluation.format(
        motion=motion,
        role=role.value,
        context=format_motion_context(motion_context),
        universal_criteria=prompts.universal_criteria,
        language=language,
    )


def build_ranking_prompt(
    prompts: PromptsConfig,
    speakers: Sequence[Speaker],
    motion: str,
    motion_context: MotionContext | None,
) -> str:
    criteria = f"TOPIC CRITERIA: {'; '.join(motion_context.criteria)}" if motion_context else ""
    return prompts.ranking.format(
        motion=motion,
        criteria=criteria,
        debate_summary=format_debate_summary(speakers),
    )
