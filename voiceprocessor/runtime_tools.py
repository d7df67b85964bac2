"""External executable resolution for audio tooling.

Responsibilities:
- Resolve `ffmpeg`/`ffprobe` from an explicit override, a bundled `bin/`, or `PATH`.
- Keep resolution deterministic so merge failures name the tool that was run.
"""

from __future__ import annotations

import os
from pathlib import Path
import shutil
from typing import Mapping

from .parsing import normalize_optional_string


def resolve_executable(command_name: str, env: Mapping[str, str] | None = None) -> str:
    """Resolve an executable path.

    Resolution order:
    1. `VOICEPROCESSOR_<TOOL>` environment override (for example `VOICEPROCESSOR_FFMPEG`).
    2. Bundled `<package root>/bin/<tool>`.
    3. System `PATH`.
    4. Raw command name, letting subprocess raise its native missing-binary error.
    """

    normalized = command_name.strip()
    if not normalized:
        return command_name

    env_map: Mapping[str, str] = os.environ if env is None else env
    override = normalize_optional_string(env_map.get(override_variable(normalized)))
    if override is not None:
        return override

    for name in _candidate_names(normalized):
        bundled = _bundle_root() / "bin" / name
        if bundled.is_file():
            return str(bundled)

    resolved_path = shutil.which(normalized)
    if resolved_path is not None:
        return resolved_path
    return normalized


def override_variable(command_name: str) -> str:
    """Return the environment variable that overrides one tool path."""

    token = "".join(character if character.isalnum() else "_" for character in command_name)
    return f"VOICEPROCESSOR_{token.upper()}"


def _candidate_names(command_name: str) -> tuple[str, ...]:
    """Return command name variants including Windows `.exe` fallback."""

    if command_name.lower().endswith(".exe"):
        return (command_name,)
    return (command_name, f"{command_name}.exe")


def _bundle_root() -> Path:
    """Return the directory that holds the installed package."""

    return Path(__file__).resolve().parents[1]
