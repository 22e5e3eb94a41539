"""
longscribe.transcribe.planner - Overlapping chunk planning.

Splits a recording into windows no longer than the engine's per-call
ceiling, each overlapping its predecessor so words cut at a hard boundary
are heard whole in the next window.
"""

from __future__ import annotations

from longscribe.models import AudioSpan


def plan_chunks(
    total_duration: float,
    max_chunk_duration: float,
    overlap: float,
) -> list[AudioSpan]:
    """Compute overlapping windows covering ``[0, total_duration]``.

    Args:
        total_duration: Length of the recording in seconds
        max_chunk_duration: Longest window the engine accepts
        overlap: Audio shared by consecutive windows

    Returns:
        Ordered windows; a single ``[0, total_duration]`` window when the
        recording already fits

    Raises:
        ValueError: If the arguments violate the planning preconditions
    """
    if total_duration <= 0:
        raise ValueError(f"total_duration must be positive, got {total_duration}")
    if max_chunk_duration <= 0:
        raise ValueError(f"max_chunk_duration must be positive, got {max_chunk_duration}")
    if not 0 <= overlap < max_chunk_duration:
        raise ValueError(
            f"overlap must be in [0, {max_chunk_duration}), got {overlap}"
        )

    step = max_chunk_duration - overlap
    spans: list[AudioSpan] = []
    index = 0
    while True:
        # Multiply instead of accumulating so boundaries stay exact.
        start = index * step
        end = min(start + max_chunk_duration, total_duration)
        spans.append(AudioSpan(start=start, end=end))
        if end >= total_duration:
            return spans
        index += 1
