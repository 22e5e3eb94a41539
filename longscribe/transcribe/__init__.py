"""
longscribe.transcribe - Chunked transcription engine.

Plans overlapping windows, drives one recognition session per window with
timeout salvage, stitches the windows back together, and optionally
probes the spoken language first.
"""

from __future__ import annotations
