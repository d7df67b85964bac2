"""Audio merging components.

This package contains the merge stage and the codec capability it shells out to.
"""

from .codecs import AudioCodec, CodecError, FfmpegCodec, WaveCodec, codec_for_format
from .merger import AudioMerger, content_type_for

__all__ = [
    "AudioCodec",
    "AudioMerger",
    "CodecError",
    "FfmpegCodec",
    "WaveCodec",
    "codec_for_format",
    "content_type_for",
]
