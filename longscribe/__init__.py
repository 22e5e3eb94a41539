"""
Longscribe - chunked, fault-tolerant long-form speech-to-text.

Transcribes recordings far longer than a recognition engine's per-call
ceiling through a short pipeline: optional language probing → chunk
planning → per-window audio extraction → per-window recognition with
timeout salvage → overlap stitching.
"""

__version__ = "0.1.0"
