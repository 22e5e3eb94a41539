"""
longscribe.extract.audio - FFmpeg audio window extraction.

Probes source duration with ffprobe and cuts time windows out of a source
recording into standalone 16kHz mono WAV files for the recognition engine.
"""

from __future__ import annotations

import asyncio
import json
import subprocess
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Protocol

from longscribe.exceptions import AudioProcessingFailed
from longscribe.logging import logger
from longscribe.models import AudioSpan


class AudioExtractor(Protocol):
    """Media tooling the session orchestrator depends on."""

    async def probe_duration(self, source: Path) -> float: ...

    async def extract(self, source: Path, span: AudioSpan, destination: Path) -> None: ...


def probe_duration(path: Path, ffprobe: str = "ffprobe") -> float:
    """Return the duration of a media file in seconds using ffprobe.

    Raises:
        AudioProcessingFailed: If ffprobe fails or reports no duration
    """
    cmd = [
        ffprobe,
        "-v",
        "quiet",
        "-print_format",
        "json",
        "-show_format",
        str(path),
    ]
    try:
        result = subprocess.run(cmd, capture_output=True, text=True)
    except OSError as e:
        raise AudioProcessingFailed(f"ffprobe could not be run: {e}") from e

    if result.returncode != 0:
        raise AudioProcessingFailed(f"ffprobe failed for {path}: {result.stderr.strip()}")

    try:
        data = json.loads(result.stdout or "{}")
        duration = float(data.get("format", {}).get("duration", 0))
    except (ValueError, TypeError) as e:
        raise AudioProcessingFailed(f"Unreadable ffprobe output for {path}: {e}") from e

    if duration <= 0:
        raise AudioProcessingFailed(f"Could not determine duration of {path}")
    return duration


def build_extract_command(
    source_path: Path,
    span: AudioSpan,
    output_path: Path,
    sample_rate: int = 16000,
    channels: int = 1,
    ffmpeg: str = "ffmpeg",
) -> list[str]:
    """Build the FFmpeg command that encodes only ``span`` of the source."""
    return [
        ffmpeg,
        "-y",
        "-ss",
        f"{span.start:.3f}",
        "-t",
        f"{span.duration:.3f}",
        "-i",
        str(source_path),
        "-vn",
        "-acodec",
        "pcm_s16le",
        "-ar",
        str(sample_rate),
        "-ac",
        str(channels),
        str(output_path),
    ]


def extract_span(
    source_path: Path,
    span: AudioSpan,
    output_path: Path,
    sample_rate: int = 16000,
    channels: int = 1,
    ffmpeg: str = "ffmpeg",
) -> dict[str, Any]:
    """Extract one time window of a source recording using FFmpeg.

    Args:
        source_path: Path to source audio or video file
        span: Window to extract, relative to the source start
        output_path: Output path for the WAV window
        sample_rate: Output sample rate
        channels: Output channel count

    Returns:
        Dict with extraction results

    Raises:
        AudioProcessingFailed: If FFmpeg fails
    """
    output_path.parent.mkdir(parents=True, exist_ok=True)

    result = {
        "source": str(source_path),
        "output": str(output_path),
        "start": span.start,
        "end": span.end,
        "success": False,
    }

    cmd = build_extract_command(source_path, span, output_path, sample_rate, channels, ffmpeg)

    try:
        proc = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
        )
        if proc.returncode != 0:
            raise AudioProcessingFailed(
                f"FFmpeg window extraction failed ({span.start:.2f}-{span.end:.2f}s): "
                f"{proc.stderr.strip()}"
            )
        if not output_path.exists():
            raise AudioProcessingFailed(f"FFmpeg produced no output for {output_path}")

        result["success"] = True
        result["size"] = output_path.stat().st_size

    except AudioProcessingFailed:
        raise
    except Exception as e:
        raise AudioProcessingFailed(f"Audio window extraction failed: {e}") from e

    return result


class FFmpegExtractor:
    """AudioExtractor backed by the ffmpeg and ffprobe executables."""

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        ffmpeg: str = "ffmpeg",
        ffprobe: str = "ffprobe",
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.ffmpeg = ffmpeg
        self.ffprobe = ffprobe

    async def probe_duration(self, source: Path) -> float:
        return await asyncio.to_thread(probe_duration, source, self.ffprobe)

    async def extract(self, source: Path, span: AudioSpan, destination: Path) -> None:
        await asyncio.to_thread(
            extract_span,
            source,
            span,
            destination,
            self.sample_rate,
            self.channels,
            self.ffmpeg,
        )


@asynccontextmanager
async def extracted_span(
    extractor: AudioExtractor,
    source: Path,
    span: AudioSpan,
    destination: Path,
) -> AsyncIterator[Path]:
    """Materialize ``span`` into ``destination`` for the duration of the block.

    The file is deleted on every exit path, including failed extraction
    and cancellation.
    """
    try:
        await extractor.extract(source, span, destination)
        logger.debug("Extracted %.2f-%.2fs to %s", span.start, span.end, destination.name)
        yield destination
    finally:
        destination.unlink(missing_ok=True)
