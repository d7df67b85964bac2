"""Provider factory and registry for synthesis vendors.

Responsibilities:
- Resolve provider identifiers to concrete synthesis implementations.
- Track which providers are configured so routing only sees usable vendors.

Notes:
- OpenAI and ElevenLabs have concrete clients; other catalog providers can be
  scored and priced but must be registered by the host to be routable.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Iterable

from .errors import RoutingError
from .models.datatypes import Provider
from .tts.synthesizer import ElevenLabsSpeechProvider, OpenAISpeechProvider, SynthesisProvider

if TYPE_CHECKING:
    from .config import VoiceProcessorConfig


class ProviderFactory:
    """Factory for provider-backed synthesis clients used by the orchestrator."""

    @staticmethod
    def create_synthesis_provider(
        provider: Provider,
        model: str,
        api_key: str | None = None,
    ) -> SynthesisProvider:
        """Create a synthesis client for a configured provider identifier."""

        if provider is Provider.OPENAI:
            return OpenAISpeechProvider(api_key=api_key, model=model)
        if provider is Provider.ELEVENLABS:
            return ElevenLabsSpeechProvider(api_key=api_key, model=model)
        raise ValueError(f"Unsupported synthesis provider `{provider.value}`.")


class ProviderRegistry:
    """Mutable set of synthesis providers available to one service instance."""

    def __init__(self, providers: Iterable[SynthesisProvider] | None = None) -> None:
        """Initialize the registry with optional providers."""

        self._providers: dict[Provider, SynthesisProvider] = {}
        for provider in providers or ():
            self.register(provider)

    def register(self, provider: SynthesisProvider) -> None:
        """Register or replace the implementation for `provider.provider`."""

        self._providers[provider.provider] = provider

    def get(self, provider: Provider) -> SynthesisProvider:
        """Return the implementation for `provider`."""

        try:
            return self._providers[provider]
        except KeyError as exc:
            raise RoutingError(
                f"Provider `{provider.value}` is not configured.",
                hint="Register the provider or set its API key.",
            ) from exc

    def available(self) -> frozenset[Provider]:
        """Return the set of registered providers."""

        return frozenset(self._providers)

    @classmethod
    def from_config(cls, config: VoiceProcessorConfig) -> ProviderRegistry:
        """Register every vendor whose API key is configured."""

        registry = cls()
        if config.openai_api_key:
            registry.register(
                ProviderFactory.create_synthesis_provider(
                    Provider.OPENAI, config.openai_model, config.openai_api_key
                )
            )
        if config.elevenlabs_api_key:
            registry.register(
                ProviderFactory.create_synthesis_provider(
                    Provider.ELEVENLABS, config.elevenlabs_model, config.elevenlabs_api_key
                )
            )
        return registry
