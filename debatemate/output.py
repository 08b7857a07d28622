"""Rich console output and markdown file save for adjudicated debates."""

import logging
import re
from datetime import datetime
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.panel import Panel
from rich.rule import Rule
from rich.table import Table
from rich.text import Text

from debatemate.models import Speaker
from debatemate.session import DebateSession

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def format_clock(seconds: int) -> str:
    """Format seconds as M:SS."""
    return f"{seconds // 60}:{seconds % 60:02d}"


def _speaker_label(speaker: Speaker) -> str:
    return f"{speaker.role.value} ({speaker.name})" if speaker.name else speaker.role.value


def _score_label(speaker: Speaker) -> str:
    return f"{speaker.score:g}" if speaker.is_completed else "absent"


def print_speech_result(speaker: Speaker) -> None:
    """Print a brief panel for one evaluated speech."""
    console.print(
        Panel(
            Text(speaker.feedback or ""),
            title=f"[bold]{escape(_speaker_label(speaker))}[/bold] - {speaker.team.name}",
            subtitle=f"{_score_label(speaker)}/20",
            border_style="dim",
        )
    )


def print_results(session: DebateSession) -> None:
    """Print team ranking, speaker ranking and the reason for decision."""
    state = session.state
    console.print(Rule("[bold green]Team Rankings[/bold green]"))
    if not state.final_rankings:
        console.print(Text("No rankings available.", style="dim"))
        return

    teams = Table(show_lines=True)
    teams.add_column("Rank", justify="right")
    teams.add_column("Team")
    teams.add_column("Total", justify="right")
    teams.add_column("Reasoning")
    for result in state.final_rankings:
        # Model text is shown verbatim, never parsed as markup
        reasoning = Text(result.reasoning)
        if result.absent_roles:
            reasoning.append(f"\nDid not speak: {', '.join(r.value for r in result.absent_roles)}", style="red")
        teams.add_row(str(result.rank), result.team.value, f"{result.total_score:g}", reasoning)
    console.print(teams)

    console.print(Rule("[bold cyan]Speaker Rankings[/bold cyan]"))
    speakers = Table()
    speakers.add_column("#", justify="right")
    speakers.add_column("Speaker")
    speakers.add_column("Team")
    speakers.add_column("Score", justify="right")
    for position, speaker in enumerate(session.speaker_rankings, start=1):
        speakers.add_row(str(position), Text(_speaker_label(speaker)), speaker.team.name, _score_label(speaker))
    console.print(speakers)

    console.print(Rule("[bold green]Reason for Decision[/bold green]"))
    console.print(Markdown(state.overall_adjudication or ""))


def save_to_file(session: DebateSession, output_dir: Path, slug_override: str | None = None) -> Path:
    """Save the adjudicated debate as a markdown report.

    Args:
        session: A session in the results phase.
        output_dir: Directory to save the file in.
        slug_override: If provided, use this as the filename stem instead of
            deriving one from the motion.

    Returns:
        Path to the saved file.
    """
    state = session.state
    output_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    slug = slug_override if slug_override is not None else _slug(state.topic or state.title)
    filepath = output_dir / f"{timestamp}_{slug}.md"

    completed = state.speakers.completed_count
    lines: list[str] = [
        f"# Debate: {state.topic[:80]}",
        "",
        f"**Date:** {state.created_at.strftime('%Y-%m-%d %H:%M:%S')}",
        f"**Session:** {state.title}",
        f"**Speeches:** {completed}/{len(state.speakers)}",
    ]
    if state.motion_context:
        lines.append(f"**Language:** {state.motion_context.detected_language}")
    lines += ["", "---", ""]

    if state.motion_context:
        lines += ["## Motion Context", "", state.motion_context.background, ""]
        lines += [f"- {c}" for c in state.motion_context.criteria]
        lines.append("")

    lines += ["## Team Rankings", "", "| Rank | Team | Total | Reasoning |", "|---|---|---|---|"]
    for result in state.final_rankings or []:
        reasoning = result.reasoning.replace("\n", " ")
        if result.absent_roles:
            reasoning += f" (did not speak: {', '.join(r.value for r in result.absent_roles)})"
        lines.append(f"| {result.rank} | {result.team.value} | {result.total_score:g} | {reasoning} |")
    lines.append("")

    lines += ["## Speeches", ""]
    for speaker in state.speakers:
        lines.append(f"### {_speaker_label(speaker)} - {speaker.team.value}")
        lines.append("")
        if not speaker.is_completed:
            lines += ["*Did not speak.*", ""]
            continue
        lines += [
            f"**Score:** {speaker.score:g}/20",
            "",
            speaker.feedback or "",
            "",
            "<details><summary>Transcription</summary>",
            "",
            speaker.transcription or "",
            "",
            "</details>",
            "",
        ]

    lines += ["## Reason for Decision", "", state.overall_adjudication or "", ""]

    filepath.write_text("\n".join(lines), encoding="utf-8")
    logger.info("Debate saved to: %s", filepath)
    return filepath
