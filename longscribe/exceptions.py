"""
longscribe.exceptions - Custom exception classes.

All Longscribe-specific exceptions inherit from LongscribeError. The
TranscriptionError branch is the terminal outcome taxonomy of a session.
"""

from __future__ import annotations

from pathlib import Path


class LongscribeError(Exception):
    """Base exception for all Longscribe errors."""

    pass


class ConfigError(LongscribeError):
    """Configuration loading or validation error."""

    pass


class DependencyError(LongscribeError):
    """Required dependency missing or misconfigured."""

    def __init__(self, dependency: str, message: str, install_hint: str | None = None):
        self.dependency = dependency
        self.message = message
        self.install_hint = install_hint
        super().__init__(f"{dependency}: {message}")


class EngineError(LongscribeError):
    """Failure reported by a speech engine through its callback.

    ``cancelled`` is set when the failure is the engine's own
    cancellation signal rather than a recognition problem.
    """

    def __init__(self, message: str, cancelled: bool = False):
        self.cancelled = cancelled
        super().__init__(message)


class TranscriptionError(LongscribeError):
    """Base for terminal transcription session outcomes."""

    pass


class Cancelled(TranscriptionError):
    """The session was cancelled by its caller."""

    def __init__(self, message: str = "Transcription was cancelled."):
        super().__init__(message)


class Unauthorized(TranscriptionError):
    """Caller is not permitted to use the recognition engine."""

    def __init__(self, message: str = "Speech recognition not authorized."):
        super().__init__(message)


class EngineUnavailable(TranscriptionError):
    """The recognition engine cannot service requests right now."""

    def __init__(self, message: str = "Speech recognition is not available."):
        super().__init__(message)


class UnsupportedLanguage(TranscriptionError):
    """The requested language is not supported by the engine."""

    def __init__(self, language: str, message: str | None = None):
        self.language = language
        super().__init__(
            message or f"Language '{language}' is not supported for speech recognition."
        )


class SourceNotFound(TranscriptionError):
    """The source recording does not exist or cannot be read."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        super().__init__(f"Audio file not found: {path}")


class AudioProcessingFailed(TranscriptionError):
    """Probing or extracting the source audio failed."""

    def __init__(self, detail: str = "Failed to process audio file."):
        self.detail = detail
        super().__init__(detail)


class RecognitionFailed(TranscriptionError):
    """The engine reported a failure that is not a cancellation."""

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Recognition failed: {detail}")
