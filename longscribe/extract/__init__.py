"""
longscribe.extract - Audio window extraction.

Pipeline stage: cut planned windows out of the source recording as
standalone 16kHz mono WAV files suitable for the recognition engine.
"""

from __future__ import annotations
