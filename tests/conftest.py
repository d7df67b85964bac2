"""Shared pytest fixtures for the full voiceprocessor test suite."""

from __future__ import annotations

import os
from typing import Iterator

from loguru import logger
import pytest


@pytest.fixture
def captured_log_lines() -> Iterator[list[str]]:
    """Collect structured log lines emitted through `loguru` during one test."""

    lines: list[str] = []
    sink_id = logger.add(lambda message: lines.append(str(message).rstrip("\n")), format="{message}")
    yield lines
    logger.remove(sink_id)


@pytest.fixture(autouse=True)
def _isolate_provider_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep real vendor credentials and config variables out of every test."""

    for variable in ("OPENAI_API_KEY", "ELEVENLABS_API_KEY"):
        monkeypatch.delenv(variable, raising=False)
    for variable in [name for name in os.environ if name.startswith("VOICEPROCESSOR_")]:
        monkeypatch.delenv(variable, raising=False)
