"""Shared typed data models for voiceprocessor.

This package contains enums, value records, and job entities used across
modules to avoid cross-module coupling and circular imports.
"""

from .datatypes import (
    AudioMergeOptions,
    AudioMergeResult,
    ChunkingOptions,
    DetectedChapter,
    Generation,
    GenerationSegment,
    GenerationStatus,
    PriceEstimate,
    PricingContext,
    Provider,
    ProviderCharacteristics,
    ProviderPriceEstimate,
    ProviderScore,
    ProviderVoice,
    RoutingContext,
    RoutingDecision,
    RoutingPreference,
    SegmentStatus,
    SynthesisResult,
    TextSegment,
    VoicePreset,
    VoiceSettings,
)

__all__ = [
    "AudioMergeOptions",
    "AudioMergeResult",
    "ChunkingOptions",
    "DetectedChapter",
    "Generation",
    "GenerationSegment",
    "GenerationStatus",
    "PriceEstimate",
    "PricingContext",
    "Provider",
    "ProviderCharacteristics",
    "ProviderPriceEstimate",
    "ProviderScore",
    "ProviderVoice",
    "RoutingContext",
    "RoutingDecision",
    "RoutingPreference",
    "SegmentStatus",
    "SynthesisResult",
    "TextSegment",
    "VoicePreset",
    "VoiceSettings",
]
