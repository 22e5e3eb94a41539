"""
longscribe.cli - Typer CLI entry point.

Provides the subcommands for planning, running and checking transcriptions.
"""

from __future__ import annotations

import asyncio
import signal
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, SpinnerColumn, TextColumn, TimeElapsedColumn
from rich.table import Table

from longscribe import __version__
from longscribe.config import (
    CONFIG_FILENAME,
    TranscriptionConfig,
    create_default_config,
    find_config_file,
    load_config,
    write_config,
)
from longscribe.exceptions import Cancelled, ConfigError, LongscribeError
from longscribe.logging import configure_logging
from longscribe.models import RecognitionResult
from longscribe.utils import format_duration, format_size, format_timestamp

app = typer.Typer(
    name="longscribe",
    help="Chunked, fault-tolerant transcription of long recordings.\n\n"
    "Splits audio into overlapping windows, recognizes each one with a local "
    "speech engine, and stitches the windows into one continuous transcript.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"longscribe {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Longscribe - long-form speech-to-text."""
    configure_logging(verbose)


def resolve_config(
    config_file: Path | None,
    overrides: dict[str, Any] | None = None,
) -> TranscriptionConfig:
    """Load config from an explicit file, a discovered longscribe.yaml, or defaults."""
    path = config_file or find_config_file()
    try:
        return load_config(path, overrides)
    except (ConfigError, FileNotFoundError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


# Setup


@app.command("init")
def init_config(
    path: str = typer.Option(".", "--path", "-d", help="Directory to write longscribe.yaml in"),
) -> None:
    """Write a default longscribe.yaml."""
    config_path = Path(path) / CONFIG_FILENAME

    if config_path.exists():
        console.print(f"[red]Error: '{config_path}' already exists[/red]")
        raise typer.Exit(1)

    write_config(create_default_config(), config_path)
    console.print(f"[green]✓[/green] Created {config_path}")
    console.print("\nNext step: [cyan]longscribe transcribe <audio_file>[/cyan]")


@app.command("doctor")
def run_doctor(
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Check dependencies and environment setup."""
    console.print("[cyan]Running preflight checks...[/cyan]\n")

    from longscribe.exceptions import DependencyError
    from longscribe.validation import check_engine_backend, check_ffmpeg

    config = resolve_config(config_file)

    table = Table(title="Dependency Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Version/Details")

    all_passed = True

    try:
        versions = check_ffmpeg()
        table.add_row("FFmpeg", "✓ Installed", versions.get("ffmpeg_version", "unknown"))
        table.add_row("FFprobe", "✓ Installed", versions.get("ffprobe_version", "unknown"))
    except DependencyError as e:
        table.add_row("FFmpeg", "✗ Missing", e.install_hint or str(e))
        all_passed = False

    try:
        engine = check_engine_backend(config.engine_backend)
        table.add_row(
            "Engine", f"✓ {engine['backend']}", f"{engine['module']} ({config.whisper_model})"
        )
    except DependencyError as e:
        table.add_row("Engine", "✗ Missing", e.install_hint or str(e))
        all_passed = False

    console.print(table)

    if all_passed:
        console.print("\n[green]✓ All checks passed[/green]")
    else:
        console.print("\n[yellow]⚠ Some checks failed[/yellow]")
        raise typer.Exit(1)


# Planning


@app.command("plan")
def show_plan(
    source: Path | None = typer.Argument(None, help="Audio or video file to plan"),
    duration: float | None = typer.Option(
        None, "--duration", "-d", help="Plan for a duration in seconds instead of a file"
    ),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Show the overlapping windows a recording will be split into."""
    from longscribe.exceptions import AudioProcessingFailed
    from longscribe.extract.audio import probe_duration
    from longscribe.transcribe.planner import plan_chunks
    from longscribe.transcribe.window import window_timeout

    config = resolve_config(config_file)
    policy = config.policy

    if duration is None:
        if source is None:
            console.print("[red]Error: Provide a file or --duration[/red]")
            raise typer.Exit(1)
        if not source.exists():
            console.print(f"[red]Error: File not found: {source}[/red]")
            raise typer.Exit(1)
        try:
            duration = probe_duration(source)
        except AudioProcessingFailed as e:
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

    try:
        spans = plan_chunks(duration, policy.max_chunk_duration, policy.chunk_overlap)
    except ValueError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title="Chunk Plan")
    table.add_column("#", style="cyan")
    table.add_column("Start", style="green")
    table.add_column("End", style="green")
    table.add_column("Length")
    table.add_column("Timeout", style="yellow")

    for i, span in enumerate(spans, start=1):
        table.add_row(
            str(i),
            format_timestamp(span.start),
            format_timestamp(span.end),
            f"{span.duration:.2f}s",
            f"{window_timeout(span.duration, policy):.0f}s",
        )

    console.print(table)
    console.print(
        f"\n{len(spans)} window(s) covering {format_duration(duration)} "
        f"(max {policy.max_chunk_duration:g}s, overlap {policy.chunk_overlap:g}s)"
    )


@app.command("languages")
def list_languages(
    backend: str | None = typer.Option(None, "--backend", "-b", help="Engine backend"),
    model: str | None = typer.Option(None, "--model", "-m", help="Whisper model size"),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """List common languages and whether the engine supports them."""
    from longscribe.transcribe.engine import create_engine
    from longscribe.transcribe.language import language_support, system_language

    config = resolve_config(config_file, {"engine_backend": backend, "whisper_model": model})

    try:
        support = language_support(create_engine(config))
    except LongscribeError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    default = system_language()
    table = Table(title=f"Languages ({config.engine_backend})")
    table.add_column("Code", style="cyan")
    table.add_column("Language")
    table.add_column("Supported", style="green")
    table.add_column("On-device", style="green")

    for entry in support:
        name = entry["name"] + (" [dim](system)[/dim]" if entry["code"] == default else "")
        table.add_row(
            entry["code"],
            name,
            "✓" if entry["supported"] else "[dim]-[/dim]",
            "✓" if entry["on_device"] else "[dim]-[/dim]",
        )

    console.print(table)


# Transcription


async def run_session(session: Any, source: Path, options: Any) -> RecognitionResult:
    """Run a session with a progress bar; Ctrl-C requests cancellation."""
    loop = asyncio.get_running_loop()
    handles_sigint = True
    try:
        loop.add_signal_handler(signal.SIGINT, session.cancel)
    except (NotImplementedError, RuntimeError):
        # No loop signal handlers here; Ctrl-C raises KeyboardInterrupt instead.
        handles_sigint = False

    try:
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("{task.percentage:>3.0f}%"),
            TimeElapsedColumn(),
            console=console,
            transient=True,
        ) as progress:
            task = progress.add_task("Transcribing", total=1.0)

            def on_progress(fraction: float) -> None:
                progress.update(task, completed=fraction)

            def on_partial(text: str) -> None:
                tail = text[-50:].replace("[", "(")
                progress.update(task, description=f"Transcribing [dim]…{tail}[/dim]")

            return await session.transcribe(source, options, on_partial, on_progress)
    finally:
        if handles_sigint:
            loop.remove_signal_handler(signal.SIGINT)


@app.command("transcribe")
def transcribe(
    source: Path = typer.Argument(..., help="Audio or video file to transcribe"),
    language: str | None = typer.Option(
        None, "--language", "-l", help="Language code (system language if not set)"
    ),
    auto_detect: bool = typer.Option(
        False, "--auto-detect", "-a", help="Detect the spoken language first"
    ),
    prefer: list[str] | None = typer.Option(
        None, "--prefer", "-p", help="Preferred language to probe first (repeatable)"
    ),
    backend: str | None = typer.Option(
        None, "--backend", "-b", help="Engine backend (faster, mlx)"
    ),
    model: str | None = typer.Option(None, "--model", "-m", help="Whisper model size"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output file"),
    output_format: str = typer.Option("json", "--format", "-f", help="Output format (json, txt)"),
    config_file: Path | None = typer.Option(None, "--config", "-c", help="Config file"),
) -> None:
    """Transcribe a recording of any length."""
    from longscribe.extract.audio import FFmpegExtractor
    from longscribe.io import write_json
    from longscribe.transcribe.engine import create_engine
    from longscribe.transcribe.session import TranscriptionOptions, TranscriptionSession
    from longscribe.transcribe.transcript import build_transcript

    if output_format not in ("json", "txt"):
        console.print(f"[red]Error: Unknown format '{output_format}' (use json or txt)[/red]")
        raise typer.Exit(1)

    if not source.exists():
        console.print(f"[red]Error: File not found: {source}[/red]")
        raise typer.Exit(1)

    config = resolve_config(
        config_file,
        {
            "engine_backend": backend,
            "whisper_model": model,
            "language": language,
            "auto_detect_language": True if auto_detect else None,
            "preferred_languages": prefer or None,
        },
    )

    console.print(
        f"[cyan]Transcribing {source.name} with {config.engine_backend} "
        f"({config.whisper_model} model)...[/cyan]"
    )

    try:
        engine = create_engine(config)
        session = TranscriptionSession(engine, FFmpegExtractor(), config)
        result = asyncio.run(
            run_session(session, source, TranscriptionOptions.from_config(config))
        )
    except Cancelled:
        console.print("[yellow]Transcription cancelled[/yellow]")
        raise typer.Exit(130)
    except LongscribeError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    suffix = ".transcript.json" if output_format == "json" else ".txt"
    output_path = output or source.with_name(source.stem + suffix)

    if output_format == "json":
        document = build_transcript(
            result,
            model=f"{config.engine_backend}/{config.whisper_model}",
            duration_seconds=session.state.total_duration,
            detected_language=session.state.detected_language,
            on_device=config.on_device,
        )
        write_json(output_path, document)
    else:
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(result.text + "\n", encoding="utf-8")

    detected = " (detected)" if session.state.detected_language else ""
    console.print(
        f"[green]✓[/green] {len(result.words)} words in "
        f"{result.language_code or 'unknown'}{detected}"
    )
    console.print(f"[dim]  {output_path} ({format_size(output_path)})[/dim]")


if __name__ == "__main__":
    app()
