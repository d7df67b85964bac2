"""Text segmentation and analysis components.

This package provides deterministic chunking and chapter detection used before
routing and synthesis.
"""

from .chapters import ChapterDetector
from .chunking import Chunker

__all__ = ["Chunker", "ChapterDetector"]
