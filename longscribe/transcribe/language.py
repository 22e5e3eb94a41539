"""
longscribe.transcribe.language - Spoken language probing.

Picks a working language by running short trial recognitions of a sample
in each candidate language and keeping the one the engine is most
confident about.
"""

from __future__ import annotations

import asyncio
import locale
from collections.abc import Sequence
from pathlib import Path
from typing import Any

from longscribe.config import ChunkPolicy
from longscribe.exceptions import Cancelled, EngineError
from longscribe.logging import logger
from longscribe.transcribe.cancellation import CancellationToken
from longscribe.transcribe.engine import (
    EngineTranscription,
    EventKind,
    RecognitionEvent,
    RecognitionOptions,
    SpeechEngine,
)

COMMON_LANGUAGES: list[tuple[str, str]] = [
    ("en", "English"),
    ("de", "German"),
    ("fr", "French"),
    ("es", "Spanish"),
    ("it", "Italian"),
    ("pt", "Portuguese"),
    ("zh", "Chinese"),
    ("ja", "Japanese"),
    ("ko", "Korean"),
    ("ru", "Russian"),
    ("ar", "Arabic"),
    ("nl", "Dutch"),
    ("pl", "Polish"),
    ("tr", "Turkish"),
    ("sv", "Swedish"),
    ("da", "Danish"),
    ("no", "Norwegian"),
    ("fi", "Finnish"),
]

PROBE_LANGUAGES = ["en", "de", "fr", "es", "it", "pt", "zh", "ja"]


def system_language(default: str = "en") -> str:
    """Language code of the process locale, e.g. ``de`` for ``de_DE``."""
    try:
        name, _ = locale.getlocale()
    except ValueError:
        name = None
    if name and name not in ("C", "POSIX"):
        code = name.replace("-", "_").split("_")[0].lower()
        if code:
            return code
    return default


def candidate_languages(
    engine: SpeechEngine,
    preferred: Sequence[str],
    system_default: str,
    limit: int,
    on_device: bool = True,
) -> list[str]:
    """Order and filter the languages worth probing.

    Preferred languages come first, then the system default, then the
    common probe list; only languages the engine supports (on-device when
    required) survive, capped to ``limit``.
    """
    ordered: list[str] = []
    for code in [*preferred, system_default, *PROBE_LANGUAGES]:
        if code and code not in ordered:
            ordered.append(code)

    supported = engine.supported_languages()
    usable = [
        code
        for code in ordered
        if code in supported and (not on_device or engine.supports_on_device_recognition(code))
    ]
    return usable[:limit]


def language_support(engine: SpeechEngine) -> list[dict[str, Any]]:
    """Support flags for each common language."""
    supported = engine.supported_languages()
    return [
        {
            "code": code,
            "name": name,
            "supported": code in supported,
            "on_device": code in supported and engine.supports_on_device_recognition(code),
        }
        for code, name in COMMON_LANGUAGES
    ]


class LanguageProber:
    """Ranks candidate languages by trial-recognition confidence."""

    def __init__(
        self,
        engine: SpeechEngine,
        policy: ChunkPolicy | None = None,
        on_device: bool = True,
    ) -> None:
        self.engine = engine
        self.policy = policy or ChunkPolicy()
        self.on_device = on_device

    async def detect(
        self,
        sample: Path,
        candidates: Sequence[str],
        token: CancellationToken,
        fallback: str,
    ) -> str:
        """Return the candidate with the highest mean confidence.

        Args:
            sample: Short audio prefix of the recording
            candidates: Ordered languages to try
            token: Session cancellation flag
            fallback: Language used when no candidate yields a result

        Raises:
            Cancelled: If the session is cancelled between or during trials
        """
        best_language = fallback
        best_confidence = 0.0

        for language in candidates:
            token.raise_if_cancelled()
            confidence = await self._trial(sample, language, token)
            if confidence is None:
                continue
            logger.debug("Language probe %s: confidence %.3f", language, confidence)
            if confidence > best_confidence:
                best_confidence = confidence
                best_language = language

        token.raise_if_cancelled()
        logger.info("Detected language %s (confidence %.3f)", best_language, best_confidence)
        return best_language

    async def _trial(
        self,
        sample: Path,
        language: str,
        token: CancellationToken,
    ) -> float | None:
        """Mean confidence of one trial recognition, None when it fails."""
        if not self.engine.is_available(language):
            logger.debug("Language probe %s skipped: engine unavailable", language)
            return None

        loop = asyncio.get_running_loop()
        outcome: asyncio.Future[EngineTranscription | None] = loop.create_future()
        settled = False

        def handle(event: RecognitionEvent) -> None:
            nonlocal settled
            if outcome.done():
                return
            if token.cancelled:
                outcome.set_exception(Cancelled())
            elif event.kind is EventKind.ERROR:
                settled = True
                logger.debug("Language probe %s failed: %s", language, event.error)
                outcome.set_result(None)
            elif event.kind is EventKind.FINAL:
                settled = True
                outcome.set_result(event.transcription or EngineTranscription())

        def deliver(event: RecognitionEvent) -> None:
            try:
                loop.call_soon_threadsafe(handle, event)
            except RuntimeError:
                logger.debug("Dropped probe event delivered after session end")

        def cancel() -> None:
            if not outcome.done():
                outcome.set_exception(Cancelled())

        options = RecognitionOptions(on_device=self.on_device, partial_results=False)
        try:
            handle_ = self.engine.start_recognition(sample, language, options, deliver)
        except EngineError as e:
            logger.debug("Language probe %s could not start: %s", language, e)
            return None

        unregister = token.add_callback(lambda: loop.call_soon_threadsafe(cancel))
        try:
            transcription = await asyncio.wait_for(outcome, timeout=self.policy.probe_timeout)
        except asyncio.TimeoutError:
            logger.debug("Language probe %s timed out", language)
            return None
        finally:
            unregister()
            if not settled:
                handle_.cancel()
            await asyncio.to_thread(handle_.join)

        if transcription is None:
            return None
        return transcription.mean_confidence()
