"""Click CLI: loads config and runs one debate session from motion to adjudication."""

import asyncio
import logging
import mimetypes
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn

from config.config_loader import AppConfig, load_config
from debatemate.errors import DebateError
from debatemate.models import Phase, Speaker, SpeakerRole, SpeechAudio
from debatemate.output import format_clock, print_results, print_speech_result, save_to_file
from debatemate.providers.base import Adjudicator, ProviderError
from debatemate.providers.gemini import GeminiAdjudicator
from debatemate.providers.openai_provider import OpenAIAdjudicator
from debatemate.registry import ROSTER_SIZE
from debatemate.session import DebateSession
from debatemate.store import SessionStore

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

ADJUDICATOR_CLASSES: dict[str, type[Adjudicator]] = {
    "google-genai": GeminiAdjudicator,
    "openai": OpenAIAdjudicator,
}

_AUDIO_SUFFIXES = {".webm", ".ogg", ".mp3", ".wav", ".m4a", ".mp4", ".flac", ".aac"}


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _build_adjudicator(config: AppConfig, name: str) -> Adjudicator:
    """Instantiate the named adjudicator. Raises click.ClickException when unusable."""
    if name not in config.models:
        raise click.ClickException(f"Unknown adjudicator '{name}'. Configured: {', '.join(sorted(config.models))}")
    if name not in config.available_providers:
        raise click.ClickException(f"Adjudicator '{name}' has no API key. Set {config.models[name].api_key_env} in .env.")
    model_cfg = config.models[name]
    if model_cfg.sdk not in ADJUDICATOR_CLASSES:
        raise click.ClickException(f"Adjudicator '{name}' uses unsupported sdk '{model_cfg.sdk}'")
    try:
        return ADJUDICATOR_CLASSES[model_cfg.sdk](model_cfg, config.prompts)
    except ProviderError as exc:
        raise click.ClickException(str(exc)) from exc


def _parse_role(code: str) -> SpeakerRole:
    try:
        return SpeakerRole[code.strip().upper()]
    except KeyError:
        raise click.BadParameter(
            f"Unknown role '{code}'. Use one of: {', '.join(r.name for r in SpeakerRole)}"
        ) from None


def _parse_names(values: tuple[str, ...]) -> dict[SpeakerRole, str]:
    """Parse repeated ROLE=Name options, e.g. ('PM=Alice', 'lo=Bob')."""
    names: dict[SpeakerRole, str] = {}
    for value in values:
        code, sep, name = value.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected ROLE=Name, got '{value}'")
        names[_parse_role(code)] = name.strip()
    return names


def _load_speeches(audio_dir: Path) -> dict[SpeakerRole, SpeechAudio]:
    """Match audio files to roles by file stem (pm.webm, dlo.mp3, ...).

    Files whose stem is not a role code are ignored with a warning.
    """
    speeches: dict[SpeakerRole, SpeechAudio] = {}
    for path in sorted(audio_dir.iterdir()):
        if not path.is_file() or path.suffix.lower() not in _AUDIO_SUFFIXES:
            continue
        role = SpeakerRole.__members__.get(path.stem.upper())
        if role is None:
            logger.warning("Ignoring %s: file name is not a role code", path.name)
            continue
        if role in speeches:
            logger.warning("Ignoring %s: %s already has a recording", path.name, role.name)
            continue
        mime_type = mimetypes.guess_type(path.name)[0] or "audio/webm"
        speeches[role] = SpeechAudio(data=path.read_bytes(), mime_type=mime_type, filename=path.name)
    return speeches


async def _wait_out_prep(session: DebateSession) -> None:
    """Show the preparation countdown until the prep timer hands over to the debate."""
    timer = session.prep_timer
    total = timer.time_left
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        TextColumn("{task.fields[clock]}"),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Preparation", total=total, clock=format_clock(total))
        while session.phase is Phase.PREP:
            progress.update(task, completed=total - timer.time_left, clock=format_clock(timer.time_left))
            await asyncio.sleep(0.25)


async def _evaluate_one(session: DebateSession, speaker: Speaker, audio: SpeechAudio) -> Speaker | None:
    """Submit one speech. Failures are logged and leave the speaker incomplete."""
    try:
        return await session.submit_speech(speaker.id, audio)
    except DebateError as exc:
        logger.error("Speech for %s not evaluated: %s", speaker.role.value, exc)
        return None


async def _run_session(
    store: SessionStore,
    motion: str,
    speeches: dict[SpeakerRole, SpeechAudio],
    names: dict[SpeakerRole, str],
    skip_prep: bool,
    assume_yes: bool,
) -> DebateSession:
    session = store.create()
    for speaker in session.speakers:
        if speaker.role in names:
            session.rename_speaker(speaker.id, names[speaker.role])

    with console.status("Analyzing motion..."):
        context = await session.submit_motion(motion, online=True, skip_prep=skip_prep)
    console.print(f"[bold cyan]Motion[/bold cyan] [italic]{escape(motion[:80])}{'...' if len(motion) > 80 else ''}[/italic]")
    console.print(f"Language: {escape(context.detected_language)}")
    for criterion in context.criteria:
        console.print(f"  - {escape(criterion)}")

    if session.phase is Phase.PREP:
        await _wait_out_prep(session)

    pending = [(s, speeches[s.role]) for s in session.speakers if s.role in speeches]
    console.print(f"\nEvaluating {len(pending)} speech(es)...")
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        progress.add_task("Evaluating speeches...", total=None)
        results = await asyncio.gather(*(_evaluate_one(session, s, audio) for s, audio in pending))
    for speaker in results:
        if speaker is not None:
            print_speech_result(speaker)

    completed = session.speakers.completed_count
    if completed < ROSTER_SIZE and not assume_yes:
        if not click.confirm(
            f"Only {completed}/{ROSTER_SIZE} speakers have been recorded. Are you sure you want to end?",
            default=True,
        ):
            sys.exit(0)

    with console.status("Adjudicating..."):
        await session.finish_debate()
    return session


@click.command()
@click.argument("motion")
@click.option("--audio-dir", type=click.Path(exists=True, file_okay=False, path_type=Path), required=True,
              help="Folder with one recording per role, named by role code (pm.webm, lo.webm, ...)")
@click.option("--skip-prep", is_flag=True, help="Skip the preparation timer and go straight to the debate")
@click.option("--adjudicator", default=None, help="Which configured adjudicator to use (default: from config)")
@click.option("--name", "names", multiple=True, help="Speaker name as ROLE=Name, repeatable")
@click.option("--output", "output_path", default=None, help="Output directory (default: from config)")
@click.option("--yes", "assume_yes", is_flag=True, help="Finish without confirming when speeches are missing")
@click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging")
def main(
    motion: str,
    audio_dir: Path,
    skip_prep: bool,
    adjudicator: str | None,
    names: tuple[str, ...],
    output_path: str | None,
    assume_yes: bool,
    verbose: bool,
) -> None:
    """DebateMate -- British Parliamentary debate adjudication.

    \b
    Examples:
      debatemate "This House would ban zoos" --audio-dir ./round1 --skip-prep
      debatemate "THW abolish tenure" --audio-dir ./r2 --name PM=Alice --name LO=Bob
      debatemate "THBT cities should be car-free" --audio-dir ./r3 --adjudicator openai --yes
    """
    if sys.platform == "win32":
        if hasattr(sys.stdout, "reconfigure"):
            sys.stdout.reconfigure(encoding="utf-8", errors="replace")
        if hasattr(sys.stderr, "reconfigure"):
            sys.stderr.reconfigure(encoding="utf-8", errors="replace")

    load_dotenv()
    _setup_logging(verbose)

    try:
        config = load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {escape(str(exc))}")
        sys.exit(1)

    speaker_names = _parse_names(names)
    speeches = _load_speeches(audio_dir)
    if not speeches:
        console.print(f"[bold red]Error:[/bold red] No role recordings found in {escape(str(audio_dir))}.")
        sys.exit(1)

    provider = _build_adjudicator(config, adjudicator or config.defaults.adjudicator)
    effective_output = Path(output_path) if output_path else config.defaults.output_dir
    store = SessionStore(provider, config.timing, config.session)

    try:
        session = asyncio.run(
            _run_session(store, motion, speeches, speaker_names, skip_prep, assume_yes)
        )
    except DebateError as exc:
        console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
        sys.exit(1)
    finally:
        store.close()

    print_results(session)
    saved_path = save_to_file(session, effective_output)
    console.print(f"\n[dim]Saved to: {escape(str(saved_path))}[/dim]")


if __name__ == "__main__":
    main()
