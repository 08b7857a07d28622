"""Turn per-speaker scores and an external team ranking into final results."""

import logging
from collections.abc import Iterable

from debatemate.errors import RankingError
from debatemate.models import RankingEntry, Speaker, Team, TeamResult

logger = logging.getLogger(__name__)

_EXPECTED_RANKS = frozenset(range(1, len(Team) + 1))


def _validate_rankings(rankings: list[RankingEntry]) -> None:
    """Raise RankingError unless rankings cover each team once with ranks 1..4."""
    teams = [r.team for r in rankings]
    ranks = [r.rank for r in rankings]

    missing = [t.name for t in Team if t not in teams]
    duplicated = sorted({t.name for t in teams if teams.count(t) > 1})
    if missing or duplicated or len(rankings) != len(Team):
        raise RankingError(
            f"Rankings must cover each of the {len(Team)} teams exactly once "
            f"(missing: {missing or '-'}, duplicated: {duplicated or '-'}, got {len(rankings)} entries)"
        )
    # bool is an int subclass and 2.0 == 2, so the set check alone lets both through
    if any(isinstance(r, bool) or not isinstance(r, int) for r in ranks):
        raise RankingError(f"Ranks must be integers, got {ranks}")
    if len(set(ranks)) != len(ranks) or set(ranks) != _EXPECTED_RANKS:
        raise RankingError(f"Ranks must be a permutation of 1..{len(Team)}, got {ranks}")


def aggregate_rankings(
    speakers: Iterable[Speaker],
    rankings: Iterable[RankingEntry],
) -> list[TeamResult]:
    """Annotate the external team ranking with each team's total speaker score.

    A team's total is the plain sum of its speakers' scores; a speaker who did
    not complete a speech contributes 0 and is listed in ``absent_roles``.
    Ranks and reasoning are carried over unchanged.

    Returns:
        Four TeamResult entries ordered by rank.

    Raises:
        RankingError: If the rankings are not a valid 4-team permutation.
    """
    speakers = list(speakers)
    rankings = list(rankings)
    _validate_rankings(rankings)

    results: list[TeamResult] = []
    for entry in sorted(rankings, key=lambda r: r.rank):
        members = [s for s in speakers if s.team is entry.team]
        total = sum((s.score or 0.0) for s in members if s.is_completed)
        absent = [s.role for s in members if not s.is_completed]
        if absent:
            logger.info(
                "%s: %d absent speaker(s) scored as 0 (%s)",
                entry.team.name, len(absent), ", ".join(r.name for r in absent),
            )
        results.append(
            TeamResult(
                team=entry.team,
                rank=entry.rank,
                total_score=total,
                reasoning=entry.reasoning,
                absent_roles=absent,
            )
        )
    return results


def rank_speakers(speakers: Iterable[Speaker]) -> list[Speaker]:
    """Order speakers by score, highest first. Absent speakers go last; ties keep speaking order."""
    ordered = list(speakers)
    return sorted(
        ordered,
        key=lambda s: (not s.is_completed, -(s.score or 0.0)),
    )
