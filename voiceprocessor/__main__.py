"""Module entrypoint for running voiceprocessor as ``python -m voiceprocessor``."""

from __future__ import annotations

from voiceprocessor.cli import main


if __name__ == "__main__":
    main()
