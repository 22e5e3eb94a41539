"""
longscribe.transcribe.window - Single-window recognition with salvage.

Drives one engine recognition to completion. Engines are observed to
regress their transcript on later updates and to occasionally never send
the final event, so the widest result seen is kept and a timer salvages
it when completion never arrives.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from longscribe.config import ChunkPolicy
from longscribe.exceptions import Cancelled, EngineError, RecognitionFailed
from longscribe.logging import logger
from longscribe.models import RecognitionResult
from longscribe.transcribe.cancellation import CancellationToken
from longscribe.transcribe.engine import (
    EngineTranscription,
    EventKind,
    RecognitionEvent,
    RecognitionOptions,
    SpeechEngine,
)

PartialCallback = Callable[[str], None]
ProgressCallback = Callable[[float], None]


def window_timeout(window_duration: float, policy: ChunkPolicy) -> float:
    """Seconds to wait for a final result before salvaging."""
    return max(window_duration + policy.window_timeout_padding, policy.window_timeout_floor)


class WindowState(str, Enum):
    AWAITING = "awaiting"
    DONE = "done"


class WindowRecognition:
    """Result bookkeeping for one recognition session.

    Tracks the latest result and the longest one (by word count), and
    decides which becomes authoritative when the session completes via
    the final event or via timeout.
    """

    def __init__(
        self,
        window_duration: float,
        language: str | None,
        on_partial: PartialCallback | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> None:
        self.window_duration = window_duration
        self.language = language
        self.on_partial = on_partial
        self.on_progress = on_progress
        self.state = WindowState.AWAITING
        self.last_result: EngineTranscription | None = None
        self.best_result: EngineTranscription | None = None

    @property
    def best_word_count(self) -> int:
        return self.best_result.word_count if self.best_result else 0

    def observe(self, transcription: EngineTranscription) -> None:
        """Record a partial (or final) transcription and report it."""
        self.last_result = transcription
        if transcription.word_count > self.best_word_count:
            self.best_result = transcription
            logger.debug("New best window result: %d words", transcription.word_count)

        if self.on_partial:
            self.on_partial(transcription.text)

        if self.on_progress and self.window_duration > 0 and transcription.segments:
            last = transcription.segments[-1]
            last_end = last.start_offset + last.duration
            self.on_progress(min(1.0, last_end / self.window_duration))

    def complete_final(self, transcription: EngineTranscription) -> RecognitionResult:
        self.observe(transcription)
        if self.best_result is not None and self.best_word_count >= transcription.word_count:
            chosen = self.best_result
        else:
            chosen = transcription
        logger.debug(
            "Window final: %d words (final had %d)", chosen.word_count, transcription.word_count
        )
        self.state = WindowState.DONE
        return self._to_result(chosen)

    def complete_timeout(self) -> RecognitionResult:
        chosen = self.best_result or self.last_result
        self.state = WindowState.DONE
        return self._to_result(chosen)

    def _to_result(self, transcription: EngineTranscription | None) -> RecognitionResult:
        if transcription is None:
            return RecognitionResult(language_code=self.language)
        confidence = transcription.segments[0].confidence if transcription.segments else None
        return RecognitionResult.from_words(
            transcription.words(),
            language_code=self.language,
            language_confidence=confidence,
        )


async def transcribe_window(
    engine: SpeechEngine,
    audio: Path,
    language: str,
    window_duration: float,
    token: CancellationToken,
    timeout: float | None = None,
    on_partial: PartialCallback | None = None,
    on_progress: ProgressCallback | None = None,
    options: RecognitionOptions | None = None,
) -> RecognitionResult:
    """Recognize one window of audio.

    Args:
        engine: Speech engine to drive
        audio: Standalone audio file for this window
        language: Recognition language code
        window_duration: Length of the window in seconds
        token: Session cancellation flag
        timeout: Seconds before the best result is salvaged; None waits
            for the engine's final event indefinitely
        on_partial: Receives the window's cumulative text
        on_progress: Receives the fraction of the window recognized
        options: Engine request options

    Returns:
        RecognitionResult with word times relative to the window start

    Raises:
        Cancelled: If the session is cancelled or the engine cancels
        RecognitionFailed: If the engine reports any other failure
        Exception: Whatever ``on_partial`` or ``on_progress`` raise
    """
    token.raise_if_cancelled()

    loop = asyncio.get_running_loop()
    outcome: asyncio.Future[RecognitionResult] = loop.create_future()
    recognition = WindowRecognition(window_duration, language, on_partial, on_progress)
    engine_settled = False

    def settle(result: RecognitionResult | None = None, error: Exception | None = None) -> None:
        if outcome.done():
            return
        if error is not None:
            outcome.set_exception(error)
        else:
            outcome.set_result(result if result is not None else RecognitionResult())

    def handle(event: RecognitionEvent) -> None:
        nonlocal engine_settled
        if outcome.done():
            return
        if token.cancelled:
            settle(error=Cancelled())
            return

        try:
            if event.kind is EventKind.ERROR:
                engine_settled = True
                error = event.error or EngineError("unknown engine error")
                if error.cancelled:
                    settle(error=Cancelled())
                else:
                    settle(error=RecognitionFailed(str(error)))
            elif event.kind is EventKind.FINAL:
                engine_settled = True
                settle(recognition.complete_final(event.transcription or EngineTranscription()))
            elif event.transcription is not None:
                recognition.observe(event.transcription)
        except Exception as e:
            # Raised by a progress or partial callback; it ends the window.
            settle(error=e)

    def on_timeout() -> None:
        if outcome.done():
            return
        if token.cancelled:
            settle(error=Cancelled())
            return
        try:
            salvaged = recognition.complete_timeout()
        except Exception as e:
            settle(error=e)
            return
        logger.warning(
            "No final result after %.1fs, salvaging %d words", timeout, len(salvaged.words)
        )
        settle(salvaged)

    def deliver(event: RecognitionEvent) -> None:
        try:
            loop.call_soon_threadsafe(handle, event)
        except RuntimeError:
            # Loop closed: the session already ended and the event is moot.
            logger.debug("Dropped %s event delivered after session end", event.kind.value)

    try:
        handle_ = engine.start_recognition(
            audio, language, options or RecognitionOptions(), deliver
        )
    except EngineError as e:
        if e.cancelled:
            raise Cancelled() from e
        raise RecognitionFailed(str(e)) from e

    unregister = token.add_callback(lambda: loop.call_soon_threadsafe(settle, None, Cancelled()))
    timer = loop.call_later(timeout, on_timeout) if timeout is not None else None

    try:
        return await outcome
    finally:
        if timer is not None:
            timer.cancel()
        unregister()
        if not engine_settled:
            handle_.cancel()
        # Single-tenant engine: the next recognition starts only after this one stops.
        await asyncio.to_thread(handle_.join)
