"""Top-level package for voiceprocessor.

This package turns long-form text into a single narrated audio file by chunking,
routing each segment to a speech-synthesis provider, and merging the results.
The main orchestration entry points are `GenerationManager` and
`GenerationOrchestrator`.
"""

from .pipeline import GenerationManager, GenerationOrchestrator

__all__ = ["GenerationManager", "GenerationOrchestrator", "__version__"]

__version__ = "0.1.0"
