"""Strict conversion of provider JSON replies into model objects.

Anything missing or out of range raises ProviderError. Nothing is filled in
with a plausible default: a malformed reply is a failed call.
"""

import json
import logging
import re
from typing import Any

from debatemate.models import (
    MAX_SCORE,
    MIN_SCORE,
    MotionContext,
    RankingEntry,
    RankingResult,
    SpeechEvaluation,
    Team,
)
from debatemate.providers.base import ProviderError

logger = logging.getLogger(__name__)

MIN_CRITERIA = 3
MAX_CRITERIA = 5

_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


def load_json(provider_name: str, text: str | None) -> dict[str, Any]:
    """Parse a JSON object from reply text, tolerating a surrounding ``` fence."""
    if not text or not text.strip():
        raise ProviderError(provider_name, "Empty response text")
    body = text.strip()
    fenced = _FENCE_RE.match(body)
    if fenced:
        body = fenced.group(1)
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ProviderError(provider_name, f"Response is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ProviderError(provider_name, f"Expected a JSON object, got {type(data).__name__}")
    return data


def _require_str(provider_name: str, data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ProviderError(provider_name, f"Missing or empty '{key}' in response")
    return value.strip()


def parse_team(provider_name: str, value: Any) -> Team:
    """Accept a team code ("OG") or full name ("Opening Government"), any case."""
    if isinstance(value, str):
        text = value.strip()
        for team in Team:
            if text.upper() == team.name or text.casefold() == team.value.casefold():
                return team
    raise ProviderError(provider_name, f"Unknown team: {value!r}")


def parse_motion_context(provider_name: str, data: dict[str, Any]) -> MotionContext:
    criteria_raw = data.get("specificCriteria")
    if not isinstance(criteria_raw, list):
        raise ProviderError(provider_name, "Missing 'specificCriteria' list in response")
    criteria = [str(c).strip() for c in criteria_raw if str(c).strip()]
    if len(criteria) < MIN_CRITERIA:
        raise ProviderError(
            provider_name,
            f"Expected {MIN_CRITERIA}-{MAX_CRITERIA} criteria, got {len(criteria)}",
        )
    if len(criteria) > MAX_CRITERIA:
        logger.warning(
            "%s returned %d criteria, keeping the first %d", provider_name, len(criteria), MAX_CRITERIA
        )
        criteria = criteria[:MAX_CRITERIA]

    return MotionContext(
        detected_language=_require_str(provider_name, data, "detectedLanguage"),
        criteria=tuple(criteria),
        background=_require_str(provider_name, data, "backgroundInfo"),
    )


def parse_speech_evaluation(provider_name: str, data: dict[str, Any]) -> SpeechEvaluation:
    score = data.get("score")
    # bool is an int subclass; a true/false score is still malformed
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise ProviderError(provider_name, f"Score must be a number, got {score!r}")
    if not MIN_SCORE <= score <= MAX_SCORE:
        raise ProviderError(provider_name, f"Score {score} outside {MIN_SCORE:g}-{MAX_SCORE:g}")

    return SpeechEvaluation(
        transcription=_require_str(provider_name, data, "transcription"),
        score=float(score),
        feedback=_require_str(provider_name, data, "feedback"),
    )


def parse_ranking_result(provider_name: str, data: dict[str, Any]) -> RankingResult:
    """Convert a ranking reply. The 4-team permutation check is left to the aggregator."""
    rankings_raw = data.get("rankings")
    if not isinstance(rankings_raw, list) or not rankings_raw:
        raise ProviderError(provider_name, "Missing 'rankings' list in response")

    entries: list[RankingEntry] = []
    for item in rankings_raw:
        if not isinstance(item, dict):
            raise ProviderError(provider_name, f"Ranking entry must be an object, got {item!r}")
        rank = item.get("rank")
        if isinstance(rank, bool) or not isinstance(rank, int):
            raise ProviderError(provider_name, f"Rank must be an integer, got {rank!r}")
        entries.append(
            RankingEntry(
                team=parse_team(provider_name, item.get("team")),
                rank=rank,
                reasoning=str(item.get("reasoning") or "").strip(),
            )
        )

    return RankingResult(
        rankings=tuple(entries),
        overall_adjudication=_require_str(provider_name, data, "overallAdjudication"),
    )
