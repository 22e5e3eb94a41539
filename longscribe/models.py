"""
longscribe.models - Core data model.

Time spans, recognized words and recognition results shared by every
pipeline stage. Times are in seconds.
"""

from __future__ import annotations

import string
from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

PUNCTUATION_CHARS = frozenset(string.punctuation + "…«»¿¡“”‘’„、。，！？：；")


class WordKind(str, Enum):
    """Kind of token in a recognized word sequence."""

    WORD = "word"
    PUNCTUATION = "punctuation"


class AudioSpan(BaseModel):
    """Time window relative to a source recording."""

    model_config = ConfigDict(frozen=True)

    start: float = Field(ge=0.0)
    end: float

    @model_validator(mode="after")
    def validate_order(self) -> AudioSpan:
        if self.end <= self.start:
            raise ValueError(f"span end ({self.end}) must be after start ({self.start})")
        return self

    @property
    def duration(self) -> float:
        return self.end - self.start


class RecognizedWord(BaseModel):
    """A single word or punctuation token with timing."""

    model_config = ConfigDict(frozen=True)

    text: str
    start: float
    end: float
    kind: WordKind = WordKind.WORD
    speaker: str | None = None

    @model_validator(mode="after")
    def validate_order(self) -> RecognizedWord:
        if self.end < self.start:
            raise ValueError(f"word end ({self.end}) must not precede start ({self.start})")
        return self

    def shifted(self, offset: float) -> RecognizedWord:
        """Return a copy moved by ``offset`` seconds."""
        return self.model_copy(update={"start": self.start + offset, "end": self.end + offset})


class RecognitionResult(BaseModel):
    """Transcription of a window or a whole session.

    ``words`` is authoritative; ``text`` is derived from it.
    """

    language_code: str | None = None
    language_confidence: float | None = Field(default=None, ge=0.0, le=1.0)
    words: list[RecognizedWord] = Field(default_factory=list)
    text: str = ""

    @classmethod
    def from_words(
        cls,
        words: Iterable[RecognizedWord],
        language_code: str | None = None,
        language_confidence: float | None = None,
    ) -> RecognitionResult:
        words = list(words)
        return cls(
            language_code=language_code,
            language_confidence=language_confidence,
            words=words,
            text=join_words(words),
        )


def classify_token(text: str) -> WordKind:
    """Classify a token as punctuation when it has no word characters."""
    stripped = text.strip()
    if stripped and all(ch in PUNCTUATION_CHARS for ch in stripped):
        return WordKind.PUNCTUATION
    return WordKind.WORD


def join_words(words: Iterable[RecognizedWord]) -> str:
    """Join words with natural spacing.

    Punctuation tokens attach to the preceding word without a space.
    """
    parts: list[str] = []
    for word in words:
        token = word.text.strip()
        if not token:
            continue
        if parts and word.kind is not WordKind.PUNCTUATION:
            parts.append(" ")
        parts.append(token)
    return "".join(parts)
