"""
Test configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from pathlib import Path

import pytest

from longscribe.config import ChunkPolicy, TranscriptionConfig
from longscribe.exceptions import AudioProcessingFailed, EngineError
from longscribe.models import AudioSpan
from longscribe.transcribe.engine import (
    EngineTranscription,
    RecognitionCallback,
    RecognitionEvent,
    RecognitionOptions,
    TranscriptionSegment,
)

WordSpec = tuple  # (text, start, end) or (text, start, end, confidence)


def make_transcription(words: Iterable[WordSpec], confidence: float = 0.9) -> EngineTranscription:
    """Build an engine transcription from ``(text, start, end[, confidence])`` tuples."""
    segments = []
    for item in words:
        text, start, end = item[:3]
        conf = item[3] if len(item) > 3 else confidence
        segments.append(
            TranscriptionSegment(
                text=text, start_offset=start, duration=end - start, confidence=conf
            )
        )
    return EngineTranscription(segments=segments)


def partial(words: Iterable[WordSpec], confidence: float = 0.9) -> RecognitionEvent:
    return RecognitionEvent.partial(make_transcription(words, confidence))


def final(words: Iterable[WordSpec], confidence: float = 0.9) -> RecognitionEvent:
    return RecognitionEvent.final(make_transcription(words, confidence))


def failure(message: str = "engine exploded", cancelled: bool = False) -> RecognitionEvent:
    return RecognitionEvent.failure(EngineError(message, cancelled=cancelled))


@dataclass
class RecognitionCall:
    index: int
    audio: Path
    language: str
    options: RecognitionOptions
    audio_existed: bool


Script = Callable[[RecognitionCall], Sequence[tuple[float, RecognitionEvent]]]


def scripted(*per_call: Sequence[tuple[float, RecognitionEvent]]) -> Script:
    """Script that plays one event list per recognition call, in call order."""

    def script(call: RecognitionCall) -> Sequence[tuple[float, RecognitionEvent]]:
        if call.index < len(per_call):
            return per_call[call.index]
        return [(0.0, RecognitionEvent.final(EngineTranscription()))]

    return script


def by_language(confidences: dict[str, float]) -> Script:
    """Script that finalizes one word at the configured confidence per language."""

    def script(call: RecognitionCall) -> Sequence[tuple[float, RecognitionEvent]]:
        if call.language not in confidences:
            return [(0.0, failure(f"no model for {call.language}"))]
        return [(0.001, final([("hallo", 0.2, 0.6, confidences[call.language])]))]

    return script


@dataclass
class FakeRecognition:
    timers: list[asyncio.TimerHandle] = field(default_factory=list)
    cancelled: bool = False
    joined: bool = False

    def cancel(self) -> None:
        self.cancelled = True
        for timer in self.timers:
            timer.cancel()

    def join(self, timeout: float | None = None) -> None:
        self.joined = True


class FakeEngine:
    """Scripted SpeechEngine delivering events on the running loop."""

    def __init__(
        self,
        script: Script | None = None,
        languages: Iterable[str] = ("en", "de", "fr", "es"),
        available: Iterable[str] | None = None,
        on_device: Iterable[str] | None = None,
        authorized: bool = True,
        reliable_completion: bool = False,
        start_error: EngineError | None = None,
        prepare_error: Exception | None = None,
    ) -> None:
        self.script = script or scripted()
        self.languages = set(languages)
        self.available = set(available) if available is not None else set(self.languages)
        self.on_device = set(on_device) if on_device is not None else set(self.languages)
        self.authorized = authorized
        self.reliable_completion = reliable_completion
        self.start_error = start_error
        self.prepare_error = prepare_error
        self.prepared = False
        self.calls: list[RecognitionCall] = []
        self.handles: list[FakeRecognition] = []

    async def request_authorization(self) -> bool:
        return self.authorized

    async def prepare(self) -> None:
        if self.prepare_error is not None:
            raise self.prepare_error
        self.prepared = True

    def supported_languages(self) -> set[str]:
        return set(self.languages)

    def is_available(self, language: str) -> bool:
        return language in self.available

    def supports_on_device_recognition(self, language: str) -> bool:
        return language in self.on_device

    def start_recognition(
        self,
        audio: Path,
        language: str,
        options: RecognitionOptions,
        callback: RecognitionCallback,
    ) -> FakeRecognition:
        call = RecognitionCall(len(self.calls), audio, language, options, audio.exists())
        self.calls.append(call)
        if self.start_error is not None:
            raise self.start_error

        loop = asyncio.get_running_loop()
        handle = FakeRecognition()
        for delay, event in self.script(call):
            handle.timers.append(loop.call_later(delay, callback, event))
        self.handles.append(handle)
        return handle


class FakeExtractor:
    """AudioExtractor that writes placeholder window files."""

    def __init__(
        self,
        duration: float = 130.0,
        fail_at: int | None = None,
        probe_error: Exception | None = None,
    ) -> None:
        self.duration = duration
        self.fail_at = fail_at
        self.probe_error = probe_error
        self.spans: list[AudioSpan] = []
        self.paths: list[Path] = []

    async def probe_duration(self, source: Path) -> float:
        if self.probe_error is not None:
            raise self.probe_error
        return self.duration

    async def extract(self, source: Path, span: AudioSpan, destination: Path) -> None:
        self.spans.append(span)
        self.paths.append(destination)
        if self.fail_at is not None and len(self.spans) - 1 == self.fail_at:
            raise AudioProcessingFailed("FFmpeg window extraction failed: boom")
        destination.write_bytes(b"RIFF0000WAVE")


@pytest.fixture
def source_file(tmp_path: Path) -> Path:
    """A readable placeholder recording."""
    path = tmp_path / "interview.wav"
    path.write_bytes(b"RIFF0000WAVE")
    return path


@pytest.fixture
def config() -> TranscriptionConfig:
    """Default config pinned to English."""
    return TranscriptionConfig(language="en")


@pytest.fixture
def quick_timeout_config() -> TranscriptionConfig:
    """Config whose window timeout elapses almost immediately."""
    return TranscriptionConfig(
        language="en",
        timeout_salvage=True,
        policy=ChunkPolicy(window_timeout_floor=0.1, window_timeout_padding=0.0),
    )


@pytest.fixture
def sample_config_dict() -> dict:
    """Return a sample configuration dictionary."""
    return {
        "engine_backend": "mlx",
        "whisper_model": "small",
        "language": "de",
        "auto_detect_language": False,
        "preferred_languages": ["de", "en"],
        "policy": {
            "max_chunk_duration": 30.0,
            "chunk_overlap": 1.5,
        },
    }
