"""
SITA - CLI Entry Point.

Usage:
    sita onboard             Walk through onboarding in the terminal
    sita preview             Build a cognitive profile from answers given as options
    sita reset               Clear saved onboarding progress and completion state
    sita health              Check configuration
    sita --help              Show help
"""

import asyncio
import logging
import time

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

app = typer.Typer(
    name="sita",
    help="SITA - onboarding and cognitive adaptation.",
    add_completion=False,
)
console = Console()


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Show engine log output")) -> None:
    from sita.config import settings

    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, settings.log_level),
        format="%(levelname)s %(name)s: %(message)s",
    )


def _print_preview(statements: list[str]) -> None:
    console.print("\n[bold]Here's how I'll adapt to you:[/bold]")
    for statement in statements:
        console.print(f"  • {statement}")


def _print_profile(profile) -> None:
    table = Table(title="Cognitive profile")
    table.add_column("Trait")
    table.add_column("Value")
    table.add_column("Confidence")
    for trait in profile.traits:
        table.add_row(trait.name, trait.value, trait.confidence.value)
    console.print(table)


def _ask_question(session, question) -> None:
    from onboarding.errors import InvalidSignalError
    from onboarding.signals import SIGNAL_CATALOG

    spec = SIGNAL_CATALOG[question]
    shown = time.monotonic()

    if spec.multi:
        console.print(f"[dim]Options: {', '.join(spec.values)}[/dim]")
        raw = Prompt.ask(f"{question.value} (comma separated, blank to skip)", default="")
        if not raw.strip():
            session.skip_question(question)
            return
        value = [tag.strip() for tag in raw.split(",") if tag.strip()]
    else:
        raw = Prompt.ask(
            f"{question.value} (blank to skip)",
            choices=[*spec.values, ""],
            default="",
            show_default=False,
        )
        if not raw:
            session.skip_question(question)
            return
        value = raw

    elapsed_ms = int((time.monotonic() - shown) * 1000)
    try:
        session.record_signal(question, value, elapsed_ms=elapsed_ms)
    except InvalidSignalError as e:
        console.print(f"[red]{e}[/red]")
        session.skip_question(question)


def _handle_step(session) -> bool:
    """Collect the current step's input. Returns False when the user quits."""
    from onboarding.forms import NameForm
    from onboarding.signals import questions_for_step
    from onboarding.steps import MODE_LABELS, SetupMode, StepId

    step = session.current_step
    console.print(
        f"\n[bold blue]{step.value}[/bold blue] "
        f"[dim]({session.step_index + 1}/{session.total_steps}, {session.mode.value})[/dim]"
    )

    if step == StepId.SETUP_MODE:
        for mode, label in MODE_LABELS.items():
            console.print(f"  {mode.value}: {label}")
        choice = Prompt.ask("Setup mode", choices=[m.value for m in SetupMode], default=session.mode.value)
        session.choose_mode(choice)
    elif step == StepId.NAME:
        while True:
            raw = Prompt.ask("What should I call you?", default=session.data.name or None)
            try:
                session.update("name", NameForm(name=raw or "").name)
                break
            except ValueError as e:
                console.print(f"[red]{e}[/red]")
    elif step == StepId.ADAPTATION_PREVIEW:
        _print_preview(session.adaptation_preview())
    else:
        for question in questions_for_step(step):
            _ask_question(session, question)

    if step in (StepId.SETUP_MODE, StepId.NAME) or questions_for_step(step):
        session.advance()
        return True

    action = Prompt.ask(
        "[dim]enter=next, b=back, s=skip to end, q=quit[/dim]",
        choices=["", "b", "s", "q"],
        default="",
        show_choices=False,
        show_default=False,
    )
    if action == "q":
        return False
    if action == "b":
        session.retreat()
    elif action == "s":
        session.skip_to_end()
    else:
        session.advance()
    return True


@app.command()
def onboard() -> None:
    """Walk through onboarding. Progress is saved after every step."""
    from sita.config import settings

    from onboarding.session import OnboardingSession

    def on_complete(record) -> None:
        console.print(f"\n[bold green]Welcome, {record.name}.[/bold green] Onboarding complete.")

    session = OnboardingSession.from_settings(on_complete=on_complete, user_id=settings.dev_user_id)

    console.print(
        Panel.fit(
            "[bold green]SITA[/bold green]\nLet's set things up.\n\n"
            "[dim]Choose 'q' at any step to stop; you can continue within 24 hours.[/dim]",
            title="Onboarding",
            border_style="green",
        )
    )

    try:
        _run_onboarding(session)
    finally:
        session.close()


def _run_onboarding(session) -> None:
    from onboarding.session import describe_recovery

    saved = session.check_recovery()
    if saved and Confirm.ask(f"Continue where you left off? ({describe_recovery(saved)})", default=True):
        session.resume(saved)
    else:
        session.start_fresh()

    try:
        while not session.is_terminal:
            if not _handle_step(session):
                console.print("\n[dim]Progress saved. Run `sita onboard` to continue.[/dim]")
                return
    except KeyboardInterrupt:
        console.print("\n\n[dim]Interrupted. Progress saved.[/dim]")
        return

    _print_preview(session.adaptation_preview())
    if not Confirm.ask("\nFinish onboarding?", default=True):
        console.print("[dim]Progress saved. Run `sita onboard` to continue.[/dim]")
        return

    result = asyncio.run(session.complete())
    console.print(f"[dim]Remote save: {type(result.remote).__name__}[/dim]")


@app.command()
def preview(
    density: str = typer.Option(None, help="dense | focused | adaptive"),
    density_ms: int = typer.Option(None, help="Decision time for density, in ms"),
    tasks: str = typer.Option(None, help="freeform | structured | hybrid"),
    tasks_ms: int = typer.Option(None, help="Decision time for task organization, in ms"),
    change: str = typer.Option(None, help="low | medium | high"),
    change_ms: int = typer.Option(None, help="Decision time for change tolerance, in ms"),
    progress: str = typer.Option(None, help="timer | progress | both | none"),
    progress_ms: int = typer.Option(None, help="Decision time for progress style, in ms"),
    pile_up: str = typer.Option(None, help="fewer_choices | clearer_steps | reassurance | silence"),
    tag: list[str] = typer.Option(None, "--tag", help="Self-recognition tag (repeatable)"),
) -> None:
    """Show the cognitive profile and adaptation preview for a set of answers."""
    from onboarding.errors import InvalidSignalError
    from onboarding.preview import generate_adaptation_preview
    from onboarding.profile import build_cognitive_profile
    from onboarding.signals import CognitiveDiscoverySignals, Question, SignalRecorder

    signals = CognitiveDiscoverySignals()
    recorder = SignalRecorder(signals)
    answers = [
        (Question.DENSITY_CHOICE, density, density_ms),
        (Question.TASK_ORGANIZATION, tasks, tasks_ms),
        (Question.CHANGE_TOLERANCE, change, change_ms),
        (Question.PROGRESS_VISUALIZATION, progress, progress_ms),
        (Question.PILE_UP_RESPONSE, pile_up, None),
    ]
    try:
        for question, value, elapsed in answers:
            if value is not None:
                recorder.record(question, value, elapsed_ms=elapsed)
        if tag:
            recorder.record(Question.SELF_RECOGNITION_TAGS, tag)
    except InvalidSignalError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    profile = build_cognitive_profile(signals)
    _print_profile(profile)
    _print_preview(generate_adaptation_preview(profile))


@app.command()
def reset(
    all_keys: bool = typer.Option(False, "--all", help="Also clear the completed flag and cached record"),
) -> None:
    """Clear saved onboarding progress."""
    from sita.storage import ONBOARDED_KEY, RECORD_KEY, USER_NAME_KEY, default_channel

    from onboarding.progress import ProgressStore

    channel = default_channel()
    ProgressStore(channel).clear()
    if all_keys:
        for key in (ONBOARDED_KEY, USER_NAME_KEY, RECORD_KEY):
            channel.remove(key)
    console.print("✅ Onboarding state cleared")


@app.command()
def health() -> None:
    """Check configuration."""
    from sita.config import get_settings

    console.print("\n[bold]SITA Health Check[/bold]\n")

    try:
        settings = get_settings()
        console.print("✅ Configuration loaded")
        console.print(f"   Environment: {settings.sita_env}")
        console.print(f"   Log level: {settings.log_level}")
        console.print(f"   Local store: {settings.local_store_path}")

        if settings.remote_enabled:
            console.print("✅ Supabase configured")
        else:
            console.print("ℹ️  Supabase not configured, remote saves will be skipped")

    except Exception as e:
        console.print(f"\n[red]❌ Configuration error: {e}[/red]")
        console.print("[dim]Make sure you have a .env file with valid variables.[/dim]")
        raise typer.Exit(1)


@app.command()
def version() -> None:
    """Show version information."""
    from sita import __version__

    console.print(f"SITA version {__version__}")


if __name__ == "__main__":
    app()
