"""Audio persistence components for voiceprocessor.

This package contains the storage protocol and the local filesystem store used
for segment and final audio.
"""

from .storage import AudioStorage, LocalAudioStorage, generation_audio_path, segment_audio_path

__all__ = [
    "AudioStorage",
    "LocalAudioStorage",
    "generation_audio_path",
    "segment_audio_path",
]
