"""Text-to-speech provider abstractions.

This package contains voice profiles, preset settings, vendor HTTP clients, and
the synthesis provider protocol used by the orchestrator.
"""

from .http_client import ElevenLabsClient, OpenAISpeechClient, ProviderError
from .synthesizer import ElevenLabsSpeechProvider, OpenAISpeechProvider, SynthesisProvider
from .voices import VoiceProfile, resolve_voice_settings

__all__ = [
    "ElevenLabsClient",
    "ElevenLabsSpeechProvider",
    "OpenAISpeechClient",
    "OpenAISpeechProvider",
    "ProviderError",
    "SynthesisProvider",
    "VoiceProfile",
    "resolve_voice_settings",
]
