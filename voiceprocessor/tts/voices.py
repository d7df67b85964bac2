"""Voice profiles and preset-to-settings mapping.

Responsibilities:
- Represent narration voices, their provider lock, and optional rate override.
- Map (preset, provider) pairs to provider-facing voice settings from one table.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from types import MappingProxyType
from typing import Mapping

from ..models.datatypes import Provider, VoicePreset, VoiceSettings
from ..telemetry.logger import log_event


@dataclass(frozen=True, slots=True)
class VoiceProfile:
    """Declarative narration voice.

    Attributes:
        name: Human-readable profile name.
        provider_voice_id: Provider-native voice identifier.
        provider: Provider that exclusively owns this voice, if any.
        cost_per_thousand_chars: Per-voice rate overriding provider pricing.
        language: BCP-47 or short language code.
        provider_voice_ids: Per-provider identifiers for voices served by several vendors.
    """

    name: str
    provider_voice_id: str
    provider: Provider | None = None
    cost_per_thousand_chars: Decimal | None = None
    language: str = "en"
    provider_voice_ids: Mapping[Provider, str] = field(default_factory=dict)

    def voice_id_for(self, provider: Provider) -> str:
        """Return the identifier to send to `provider`."""

        return self.provider_voice_ids.get(provider, self.provider_voice_id)


DEFAULT_VOICE_SETTINGS = VoiceSettings(speed=1.0)

PRESET_SETTINGS: Mapping[tuple[VoicePreset, Provider], VoiceSettings] = MappingProxyType(
    {
        (VoicePreset.AUDIOBOOK, Provider.ELEVENLABS): VoiceSettings(0.70, 0.80, 0.0, 1.0),
        (VoicePreset.CONVERSATIONAL, Provider.ELEVENLABS): VoiceSettings(0.50, 0.75, 0.2, 1.05),
        (VoicePreset.DRAMATIC, Provider.ELEVENLABS): VoiceSettings(0.35, 0.70, 0.5, 0.95),
        (VoicePreset.PROFESSIONAL, Provider.ELEVENLABS): VoiceSettings(0.80, 0.85, 0.0, 1.0),
        (VoicePreset.AUDIOBOOK, Provider.OPENAI): VoiceSettings(speed=1.0),
        (VoicePreset.CONVERSATIONAL, Provider.OPENAI): VoiceSettings(speed=1.05),
        (VoicePreset.DRAMATIC, Provider.OPENAI): VoiceSettings(speed=0.95),
        (VoicePreset.PROFESSIONAL, Provider.OPENAI): VoiceSettings(speed=1.0),
    }
)

_PRESET_PROVIDERS = frozenset(provider for _, provider in PRESET_SETTINGS)


def resolve_voice_settings(preset: VoicePreset | None, provider: Provider) -> VoiceSettings:
    """Return voice settings for a preset on one provider.

    Providers without preset support get neutral settings and a warning.
    """

    if preset is None:
        return DEFAULT_VOICE_SETTINGS
    settings = PRESET_SETTINGS.get((preset, provider))
    if settings is not None:
        return settings
    if provider not in _PRESET_PROVIDERS:
        log_event("WARNING", "preset_unsupported", "synthesize", provider=provider, preset=preset)
    return DEFAULT_VOICE_SETTINGS
