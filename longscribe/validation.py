"""
longscribe.validation - Dependency checks and input validation.

Validates the environment and source recordings before processing.
"""

from __future__ import annotations

import importlib.util
import os
import shutil
import subprocess
from pathlib import Path
from typing import Any

from longscribe.exceptions import DependencyError, SourceNotFound

ENGINE_PACKAGES: dict[str, tuple[str, str]] = {
    "faster": ("faster_whisper", "pip install 'longscribe[faster]'"),
    "mlx": ("mlx_whisper", "pip install 'longscribe[mlx]'"),
}


def _tool_version(path: str) -> str:
    try:
        proc = subprocess.run(
            [path, "-version"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        version_line = proc.stdout.split("\n")[0]
        return version_line.split()[2] if version_line else "unknown"
    except (subprocess.TimeoutExpired, IndexError):
        return "unknown"


def check_ffmpeg() -> dict[str, str]:
    """Check if FFmpeg and FFprobe are installed and get versions.

    Returns:
        Dict with 'ffmpeg_version' and 'ffprobe_version'

    Raises:
        DependencyError: If FFmpeg or FFprobe not found
    """
    result = {}
    for tool in ("ffmpeg", "ffprobe"):
        tool_path = shutil.which(tool)
        if not tool_path:
            raise DependencyError(
                tool,
                f"{tool} not found in PATH",
                "Install with: brew install ffmpeg (macOS) or apt install ffmpeg (Linux)",
            )
        result[f"{tool}_version"] = _tool_version(tool_path)
    return result


def check_engine_backend(backend: str) -> dict[str, Any]:
    """Check that the Python package behind an engine backend is importable.

    Raises:
        DependencyError: If the backend is unknown or its package is missing
    """
    if backend not in ENGINE_PACKAGES:
        raise DependencyError(backend, "Unknown engine backend")
    module, hint = ENGINE_PACKAGES[backend]
    if importlib.util.find_spec(module) is None:
        raise DependencyError(module, "Package not installed", hint)
    return {"backend": backend, "module": module}


def validate_source_file(path: Path) -> dict[str, Any]:
    """Validate a source recording exists and is readable.

    Raises:
        SourceNotFound: If the file is missing, not a file, or unreadable
    """
    if not path.is_file() or not os.access(path, os.R_OK):
        raise SourceNotFound(path)

    return {
        "path": str(path),
        "exists": True,
        "size_bytes": path.stat().st_size,
    }
