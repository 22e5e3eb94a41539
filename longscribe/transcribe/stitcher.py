"""
longscribe.transcribe.stitcher - Overlap deduplication between windows.

Consecutive windows share ``chunk_overlap`` seconds of audio, so the
overlap is recognized twice. The later window's version is preferred
because it hears those words with trailing context instead of clipped at
a hard boundary.

Both tolerances are heuristics, not derived values:

- ``trim_tolerance`` (default 0.5s): existing words starting at or after
  ``overlap_start + trim_tolerance`` are dropped in favour of the
  incoming window.
- ``seam_tolerance`` (default 0.3s): incoming words may start this much
  before the last retained word ends, absorbing timestamp jitter at the
  seam.
"""

from __future__ import annotations

from collections.abc import Sequence

from longscribe.models import PUNCTUATION_CHARS, RecognizedWord

DEFAULT_TRIM_TOLERANCE = 0.5
DEFAULT_SEAM_TOLERANCE = 0.3


def _normalized(word: RecognizedWord) -> str:
    return "".join(ch for ch in word.text.lower() if ch not in PUNCTUATION_CHARS).strip()


def merge_words(
    existing: Sequence[RecognizedWord],
    incoming: Sequence[RecognizedWord],
    overlap_start: float,
    trim_tolerance: float = DEFAULT_TRIM_TOLERANCE,
    seam_tolerance: float = DEFAULT_SEAM_TOLERANCE,
) -> list[RecognizedWord]:
    """Merge an incoming window's words into the accumulated sequence.

    Args:
        existing: Accumulated words, sorted by start, in global time
        incoming: Next window's words, sorted by start, already offset to
            global time
        overlap_start: Global time at which the incoming window begins

    Returns:
        Combined word list, sorted by start, without seam duplicates
    """
    if not incoming:
        return list(existing)

    threshold = overlap_start + trim_tolerance
    trimmed = list(existing)
    while trimmed and trimmed[-1].start >= threshold:
        trimmed.pop()

    if not trimmed:
        return list(incoming)

    last = trimmed[-1]
    floor = max(last.end - seam_tolerance, last.start)
    kept = [word for word in incoming if word.start >= floor]

    # The retained word may be heard again at the seam with a slightly
    # earlier start; drop the repeat.
    last_text = _normalized(last)
    while kept and kept[0].start < last.end and last_text and _normalized(kept[0]) == last_text:
        kept.pop(0)

    return trimmed + kept
