"""
longscribe.transcribe.session - Transcription session orchestration.

Runs one transcription end to end: checks, optional language probing,
chunk planning, then for each window extraction → recognition →
stitching, while streaming partial text and monotonic progress. Windows
run strictly in order because stitching depends on the words accumulated
so far.
"""

from __future__ import annotations

import tempfile
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import BaseModel, Field

from longscribe.config import TranscriptionConfig
from longscribe.exceptions import (
    AudioProcessingFailed,
    EngineUnavailable,
    Unauthorized,
    UnsupportedLanguage,
)
from longscribe.extract.audio import AudioExtractor, FFmpegExtractor, extracted_span
from longscribe.logging import logger
from longscribe.models import AudioSpan, RecognitionResult, RecognizedWord, join_words
from longscribe.transcribe.cancellation import CancellationToken
from longscribe.transcribe.engine import RecognitionOptions, SpeechEngine
from longscribe.transcribe.language import LanguageProber, candidate_languages, system_language
from longscribe.transcribe.planner import plan_chunks
from longscribe.transcribe.stitcher import merge_words
from longscribe.transcribe.window import (
    PartialCallback,
    ProgressCallback,
    transcribe_window,
    window_timeout,
)


class TranscriptionOptions(BaseModel):
    """Per-call language options."""

    auto_detect_language: bool = False
    preferred_languages: list[str] = Field(default_factory=list)
    language: str | None = None

    @classmethod
    def from_config(cls, config: TranscriptionConfig) -> TranscriptionOptions:
        return cls(
            auto_detect_language=config.auto_detect_language,
            preferred_languages=list(config.preferred_languages),
            language=config.language,
        )


@dataclass
class SessionState:
    """Mutable state of one transcription, owned by its session."""

    token: CancellationToken = field(default_factory=CancellationToken)
    accumulated_words: list[RecognizedWord] = field(default_factory=list)
    accumulated_text: str = ""
    progress: float = 0.0
    total_duration: float | None = None
    language: str | None = None
    detected_language: str | None = None

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled


class TranscriptionSession:
    """A single cancellable transcription of one source recording.

    ``cancel()`` is safe to call from any thread at any time; the running
    ``transcribe()`` then fails with ``Cancelled`` and removes its
    temporary files. Each ``transcribe()`` starts from empty state, but a
    cancelled session stays cancelled.
    """

    def __init__(
        self,
        engine: SpeechEngine,
        extractor: AudioExtractor | None = None,
        config: TranscriptionConfig | None = None,
    ) -> None:
        self.engine = engine
        self.extractor = extractor or FFmpegExtractor()
        self.config = config or TranscriptionConfig()
        self.state = SessionState()
        self._on_progress: ProgressCallback | None = None

    @property
    def cancelled(self) -> bool:
        return self.state.cancelled

    def cancel(self) -> None:
        """Request cooperative cancellation."""
        logger.info("Transcription cancellation requested")
        self.state.token.cancel()

    async def transcribe(
        self,
        source: Path,
        options: TranscriptionOptions | None = None,
        on_partial: PartialCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> RecognitionResult:
        """Transcribe ``source`` into one continuous word sequence.

        Args:
            source: Source audio or video file
            options: Language options (defaults come from the config)
            on_partial: Receives accumulated text plus the current window's
                partial text
            on_progress: Receives non-decreasing overall progress in [0, 1]

        Returns:
            RecognitionResult with word times relative to the source start

        Raises:
            Cancelled, Unauthorized, EngineUnavailable, UnsupportedLanguage,
            SourceNotFound, AudioProcessingFailed, RecognitionFailed
        """
        from longscribe.validation import validate_source_file

        options = options or TranscriptionOptions.from_config(self.config)
        policy = self.config.policy
        # Fresh state per run; the token is kept so an early cancel() still applies.
        self.state = SessionState(token=self.state.token)
        token = self.state.token
        self._on_progress = on_progress

        token.raise_if_cancelled()
        if not await self.engine.request_authorization():
            raise Unauthorized()

        token.raise_if_cancelled()
        validate_source_file(source)
        total_duration = await self.extractor.probe_duration(source)
        if total_duration <= 0:
            raise AudioProcessingFailed(f"Could not determine duration of {source}")
        self.state.total_duration = total_duration
        logger.info("Transcribing %s (%.1fs)", source.name, total_duration)

        token.raise_if_cancelled()
        await self.engine.prepare()

        with tempfile.TemporaryDirectory(prefix="longscribe_") as tmp:
            workdir = Path(tmp)

            language = await self._resolve_language(source, total_duration, options, workdir)
            self._check_language(language)
            self.state.language = language

            spans = plan_chunks(total_duration, policy.max_chunk_duration, policy.chunk_overlap)
            logger.info("Planned %d window(s) in language %s", len(spans), language)

            language_confidence: float | None = None
            for index, span in enumerate(spans):
                token.raise_if_cancelled()
                window = await self._transcribe_span(
                    source, span, index, len(spans), total_duration, language, workdir, on_partial
                )
                if language_confidence is None:
                    language_confidence = window.language_confidence

                incoming = [word.shifted(span.start) for word in window.words]
                before = len(self.state.accumulated_words)
                self.state.accumulated_words = merge_words(
                    self.state.accumulated_words,
                    incoming,
                    overlap_start=span.start,
                    trim_tolerance=policy.overlap_trim_tolerance,
                    seam_tolerance=policy.seam_tolerance,
                )
                self.state.accumulated_text = join_words(self.state.accumulated_words)
                logger.debug(
                    "Window %d/%d stitched: %d + %d -> %d words",
                    index + 1,
                    len(spans),
                    before,
                    len(incoming),
                    len(self.state.accumulated_words),
                )

        self._report_progress(1.0)
        return RecognitionResult.from_words(
            self.state.accumulated_words,
            language_code=language,
            language_confidence=language_confidence,
        )

    async def _resolve_language(
        self,
        source: Path,
        total_duration: float,
        options: TranscriptionOptions,
        workdir: Path,
    ) -> str:
        fallback = system_language()
        if not options.auto_detect_language:
            return options.language or self.config.language or fallback

        policy = self.config.policy
        preferred = list(options.preferred_languages)
        if options.language:
            preferred.append(options.language)
        candidates = candidate_languages(
            self.engine,
            preferred,
            fallback,
            limit=policy.max_probe_candidates,
            on_device=self.config.on_device,
        )
        if not candidates:
            logger.warning("No probe candidates supported, using %s", fallback)
            return fallback

        sample_span = AudioSpan(start=0.0, end=min(policy.probe_sample_duration, total_duration))
        prober = LanguageProber(self.engine, policy, on_device=self.config.on_device)
        async with extracted_span(
            self.extractor, source, sample_span, workdir / "language_sample.wav"
        ) as sample:
            detected = await prober.detect(sample, candidates, self.state.token, fallback)

        self.state.detected_language = detected
        return detected

    def _check_language(self, language: str) -> None:
        if language not in self.engine.supported_languages():
            raise UnsupportedLanguage(language)
        if not self.engine.is_available(language):
            raise EngineUnavailable()
        if self.config.on_device and not self.engine.supports_on_device_recognition(language):
            raise UnsupportedLanguage(
                language,
                f"On-device speech recognition is not supported for '{language}'.",
            )

    def _use_timeout_salvage(self) -> bool:
        if self.config.timeout_salvage is not None:
            return self.config.timeout_salvage
        return not getattr(self.engine, "reliable_completion", False)

    async def _transcribe_span(
        self,
        source: Path,
        span: AudioSpan,
        index: int,
        count: int,
        total_duration: float,
        language: str,
        workdir: Path,
        on_partial: PartialCallback | None,
    ) -> RecognitionResult:
        window_duration = span.duration
        timeout = (
            window_timeout(window_duration, self.config.policy)
            if self._use_timeout_salvage()
            else None
        )

        def on_window_progress(fraction: float) -> None:
            self._report_progress(
                span.start / total_duration + fraction * window_duration / total_duration
            )

        def on_window_partial(text: str) -> None:
            if on_partial is None:
                return
            prefix = self.state.accumulated_text
            on_partial(f"{prefix} {text}" if prefix else text)

        logger.debug(
            "Window %d/%d: %.2f-%.2fs (timeout %s)",
            index + 1,
            count,
            span.start,
            span.end,
            f"{timeout:.1f}s" if timeout is not None else "off",
        )
        destination = workdir / f"chunk_{index:03d}.wav"
        async with extracted_span(self.extractor, source, span, destination) as audio:
            self.state.token.raise_if_cancelled()
            return await transcribe_window(
                self.engine,
                audio,
                language,
                window_duration,
                self.state.token,
                timeout=timeout,
                on_partial=on_window_partial,
                on_progress=on_window_progress,
                options=RecognitionOptions(
                    on_device=self.config.on_device,
                    partial_results=self.config.partial_results,
                ),
            )

    def _report_progress(self, value: float) -> None:
        value = min(1.0, max(0.0, value))
        if value < self.state.progress:
            return
        self.state.progress = value
        if self._on_progress:
            self._on_progress(value)
