"""
longscribe.transcribe.engine - Speech engine capability.

Describes what the orchestrator needs from a recognition engine: start a
cancellable recognition on a short audio file and receive partial, final
or error events through a callback. Concrete engines live in
``longscribe.transcribe.whisper``.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from pydantic import BaseModel, Field

from longscribe.exceptions import ConfigError, EngineError
from longscribe.models import RecognizedWord, classify_token, join_words

if TYPE_CHECKING:
    from longscribe.config import TranscriptionConfig


class TranscriptionSegment(BaseModel):
    """One engine segment, usually a single word, relative to its audio."""

    text: str
    start_offset: float = Field(ge=0.0)
    duration: float = Field(default=0.0, ge=0.0)
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class EngineTranscription(BaseModel):
    """A cumulative engine transcription at one point in time."""

    segments: list[TranscriptionSegment] = Field(default_factory=list)

    @property
    def word_count(self) -> int:
        return len(self.segments)

    def words(self) -> list[RecognizedWord]:
        return [
            RecognizedWord(
                text=seg.text.strip(),
                start=seg.start_offset,
                end=seg.start_offset + seg.duration,
                kind=classify_token(seg.text),
            )
            for seg in self.segments
        ]

    @property
    def text(self) -> str:
        return join_words(self.words())

    def mean_confidence(self) -> float:
        if not self.segments:
            return 0.0
        return sum(seg.confidence for seg in self.segments) / len(self.segments)


class EventKind(str, Enum):
    PARTIAL = "partial"
    FINAL = "final"
    ERROR = "error"


@dataclass(frozen=True)
class RecognitionEvent:
    """A single callback delivery from an engine."""

    kind: EventKind
    transcription: EngineTranscription | None = None
    error: EngineError | None = None

    @classmethod
    def partial(cls, transcription: EngineTranscription) -> RecognitionEvent:
        return cls(EventKind.PARTIAL, transcription=transcription)

    @classmethod
    def final(cls, transcription: EngineTranscription) -> RecognitionEvent:
        return cls(EventKind.FINAL, transcription=transcription)

    @classmethod
    def failure(cls, error: EngineError) -> RecognitionEvent:
        return cls(EventKind.ERROR, error=error)


class RecognitionOptions(BaseModel):
    on_device: bool = True
    partial_results: bool = True


RecognitionCallback = Callable[[RecognitionEvent], None]


class RecognitionHandle(Protocol):
    def cancel(self) -> None: ...

    def join(self, timeout: float | None = None) -> None:
        """Block until the recognition has stopped delivering events."""
        ...


class SpeechEngine(Protocol):
    """Recognition capability consumed by the transcription pipeline.

    Callbacks may be invoked from any thread, zero or more partial events
    followed by at most one final or error event. An engine whose final
    event is guaranteed sets ``reliable_completion``.

    Engines are single-tenant: callers join a handle before starting the
    next recognition.
    """

    reliable_completion: bool

    async def request_authorization(self) -> bool: ...

    async def prepare(self) -> None:
        """Load whatever the language checks and recognitions need."""
        ...

    def is_available(self, language: str) -> bool: ...

    def supports_on_device_recognition(self, language: str) -> bool: ...

    def supported_languages(self) -> set[str]: ...

    def start_recognition(
        self,
        audio: Path,
        language: str,
        options: RecognitionOptions,
        callback: RecognitionCallback,
    ) -> RecognitionHandle: ...


def create_engine(config: TranscriptionConfig) -> SpeechEngine:
    """Create the speech engine selected by ``config.engine_backend``.

    Raises:
        ConfigError: If the backend is unknown
    """
    from longscribe.transcribe.whisper import WhisperEngine

    if config.engine_backend in ("faster", "mlx"):
        return WhisperEngine(
            backend=config.engine_backend,
            model=config.whisper_model,
            device=config.whisper_device,
            compute_type=config.whisper_compute_type,
        )
    raise ConfigError(f"Unknown engine backend: {config.engine_backend}")
