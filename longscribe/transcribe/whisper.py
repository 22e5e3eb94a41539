"""
longscribe.transcribe.whisper - Whisper speech engine.

Uses faster-whisper (primary, streams segments as partial results) or
mlx-whisper on Apple Silicon (final result only). Recognition runs on a
worker thread and reports through the engine callback.
"""

from __future__ import annotations

import asyncio
import math
import threading
from pathlib import Path
from typing import Any

from longscribe.exceptions import EngineError, EngineUnavailable
from longscribe.logging import logger
from longscribe.transcribe.engine import (
    EngineTranscription,
    RecognitionCallback,
    RecognitionEvent,
    RecognitionOptions,
    TranscriptionSegment,
)

INSTALL_HINTS = {
    "faster": "faster-whisper not installed. Install with: pip install 'longscribe[faster]'",
    "mlx": "mlx-whisper not installed. Install with: pip install 'longscribe[mlx]'",
}


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def _segment_confidence(seg: dict[str, Any]) -> float:
    if "avg_logprob" in seg and seg["avg_logprob"] is not None:
        return _clamp(math.exp(seg["avg_logprob"]))
    return _clamp(seg.get("confidence", 0.0) or 0.0)


def parse_whisper_segments(segments: list[dict[str, Any]]) -> list[TranscriptionSegment]:
    """Flatten Whisper segments into word-level engine segments.

    Segments without word timestamps become a single entry spanning the
    whole segment.
    """
    parsed: list[TranscriptionSegment] = []

    for seg in segments:
        seg_confidence = _segment_confidence(seg)
        words = seg.get("words") or []

        if not words:
            text = seg.get("text", "").strip()
            if not text:
                continue
            start = max(0.0, seg.get("start", 0) or 0.0)
            end = max(start, seg.get("end", start) or start)
            parsed.append(
                TranscriptionSegment(
                    text=text,
                    start_offset=start,
                    duration=end - start,
                    confidence=seg_confidence,
                )
            )
            continue

        for w in words:
            text = w.get("word", w.get("text", "")).strip()
            if not text:
                continue
            start = max(0.0, w.get("start", 0) or 0.0)
            end = max(start, w.get("end", start) or start)
            parsed.append(
                TranscriptionSegment(
                    text=text,
                    start_offset=start,
                    duration=end - start,
                    confidence=_clamp(w.get("probability", seg_confidence)),
                )
            )

    return parsed


def _faster_segment_to_dict(segment: Any) -> dict[str, Any]:
    seg_dict = {
        "start": segment.start,
        "end": segment.end,
        "text": segment.text.strip(),
        "avg_logprob": getattr(segment, "avg_logprob", None),
        "words": [],
    }
    for word in segment.words or []:
        seg_dict["words"].append(
            {
                "word": word.word,
                "start": word.start,
                "end": word.end,
                "probability": word.probability,
            }
        )
    return seg_dict


class WhisperRecognition:
    """Handle for one recognition running on a worker thread."""

    def __init__(
        self,
        engine: WhisperEngine,
        audio: Path,
        language: str,
        options: RecognitionOptions,
        callback: RecognitionCallback,
    ) -> None:
        self.engine = engine
        self.audio = audio
        self.language = language
        self.options = options
        self.callback = callback
        self._stop = threading.Event()
        self._thread = threading.Thread(
            target=self._run, name=f"whisper-{audio.stem}", daemon=True
        )

    def start(self) -> WhisperRecognition:
        self._thread.start()
        return self

    def cancel(self) -> None:
        self._stop.set()

    def join(self, timeout: float | None = None) -> None:
        """Wait for the worker thread.

        A cancelled faster-whisper decode stops at the next segment; mlx
        only stops once its whole transcription returns.
        """
        self._thread.join(timeout)

    def _cancelled(self) -> None:
        error = EngineError("Recognition cancelled", cancelled=True)
        self.callback(RecognitionEvent.failure(error))

    def _run(self) -> None:
        try:
            if self.engine.backend == "mlx":
                self._run_mlx()
            else:
                self._run_faster()
        except Exception as e:
            logger.debug("Whisper recognition of %s failed: %s", self.audio.name, e)
            self.callback(RecognitionEvent.failure(EngineError(str(e))))

    def _run_faster(self) -> None:
        model = self.engine.load_model()
        segments, _info = model.transcribe(
            str(self.audio),
            language=self.language,
            word_timestamps=True,
        )

        collected: list[TranscriptionSegment] = []
        for segment in segments:
            if self._stop.is_set():
                self._cancelled()
                return
            collected.extend(parse_whisper_segments([_faster_segment_to_dict(segment)]))
            if self.options.partial_results:
                self.callback(
                    RecognitionEvent.partial(EngineTranscription(segments=list(collected)))
                )

        if self._stop.is_set():
            self._cancelled()
            return
        self.callback(RecognitionEvent.final(EngineTranscription(segments=collected)))

    def _run_mlx(self) -> None:
        mlx_whisper = self.engine.import_backend()
        result = mlx_whisper.transcribe(
            str(self.audio),
            path_or_hf_repo=f"mlx-community/whisper-{self.engine.model}-mlx",
            word_timestamps=True,
            language=self.language,
        )
        if self._stop.is_set():
            self._cancelled()
            return
        segments = parse_whisper_segments(result.get("segments", []))
        self.callback(RecognitionEvent.final(EngineTranscription(segments=segments)))


class WhisperEngine:
    """SpeechEngine backed by a local Whisper model.

    Whisper always runs on-device and always finishes, so completion is
    reliable and no authorization is needed.
    """

    reliable_completion = True

    def __init__(
        self,
        backend: str = "faster",
        model: str = "medium",
        device: str = "auto",
        compute_type: str = "auto",
    ) -> None:
        if backend not in INSTALL_HINTS:
            raise ValueError(f"Unknown whisper backend: {backend}")
        self.backend = backend
        self.model = model
        self.device = device
        self.compute_type = compute_type
        self._model: Any = None
        self._lock = threading.Lock()

    def import_backend(self) -> Any:
        """Import the backend package.

        Raises:
            EngineUnavailable: If the package is not installed
        """
        try:
            if self.backend == "mlx":
                import mlx_whisper

                return mlx_whisper
            import faster_whisper

            return faster_whisper
        except ImportError as e:
            raise EngineUnavailable(INSTALL_HINTS[self.backend]) from e

    def load_model(self) -> Any:
        """Load the faster-whisper model once per engine.

        Blocks while the model downloads; async callers go through
        ``prepare()``.

        Raises:
            EngineUnavailable: If the package is missing or the model
                cannot be loaded
        """
        with self._lock:
            if self._model is None:
                faster_whisper = self.import_backend()
                logger.info("Loading faster-whisper model: %s", self.model)
                try:
                    self._model = faster_whisper.WhisperModel(
                        self.model,
                        device=self.device,
                        compute_type=self.compute_type,
                    )
                except Exception as e:
                    raise EngineUnavailable(
                        f"Could not load whisper model '{self.model}': {e}"
                    ) from e
            return self._model

    async def request_authorization(self) -> bool:
        return True

    async def prepare(self) -> None:
        if self.backend == "mlx":
            await asyncio.to_thread(self.import_backend)
        else:
            await asyncio.to_thread(self.load_model)

    def supported_languages(self) -> set[str]:
        if self.backend == "mlx":
            self.import_backend()
            from mlx_whisper.tokenizer import LANGUAGES

            return set(LANGUAGES)
        return set(self.load_model().supported_languages)

    def is_available(self, language: str) -> bool:
        try:
            return language in self.supported_languages()
        except EngineUnavailable:
            return False

    def supports_on_device_recognition(self, language: str) -> bool:
        return self.is_available(language)

    def start_recognition(
        self,
        audio: Path,
        language: str,
        options: RecognitionOptions,
        callback: RecognitionCallback,
    ) -> WhisperRecognition:
        return WhisperRecognition(self, audio, language, options, callback).start()
