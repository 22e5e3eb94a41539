"""
longscribe.transcribe.transcript - Transcript document assembly.

Turns a session result into the JSON transcript written by the CLI.
Local recognition has no speaker diarization, so the transcript holds a
single unattributed segment spanning all recognized words.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from longscribe.models import RecognitionResult


def build_transcript(
    result: RecognitionResult,
    model: str,
    duration_seconds: float | None = None,
    detected_language: str | None = None,
    on_device: bool = True,
) -> dict[str, Any]:
    """Build a transcript dict from a session result.

    Args:
        result: Stitched session result
        model: Engine model identifier
        duration_seconds: Source duration, if known
        detected_language: Language chosen by probing, if any
        on_device: Whether recognition ran locally

    Returns:
        Transcript dict with segments and metadata
    """
    segments = []
    if result.words:
        segments.append(
            {
                "segment_id": "seg_001",
                "speaker": None,
                "start": round(result.words[0].start, 3),
                "end": round(max(w.end for w in result.words), 3),
                "text": result.text,
                "confidence": round(result.language_confidence or 0.0, 2),
                "words": [
                    {
                        "word": w.text,
                        "start": round(w.start, 3),
                        "end": round(w.end, 3),
                        "type": w.kind.value,
                    }
                    for w in result.words
                ],
            }
        )

    return {
        "model": model,
        "language": result.language_code or "unknown",
        "language_probability": result.language_confidence,
        "detected_language": detected_language,
        "on_device": on_device,
        "duration_seconds": duration_seconds,
        "text": result.text,
        "segments": segments,
        "transcribed_at": datetime.now().isoformat(timespec="seconds"),
    }
