"""Configuration model and loaders for voiceprocessor.

Responsibilities:
- Define deployment configuration as a typed dataclass.
- Derive the immutable stage options (chunking, routing, pricing, retry, merge) once.
- Provide loader entry points for file- and environment-based configuration.

Key types:
- `VoiceProcessorConfig`: normalized settings for one service instance.
- `ConfigLoader`: static construction helpers for `VoiceProcessorConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from decimal import Decimal
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .audio.merger import CONTENT_TYPES
from .models.datatypes import (
    AudioMergeOptions,
    ChunkingOptions,
    Provider,
    ProviderCharacteristics,
)
from .parsing import (
    normalize_optional_string,
    parse_delay_sequence,
    parse_optional_decimal,
    parse_permissive_boolean,
)
from .pipeline.retry import RetryPolicy
from .pricing import PricingOptions
from .routing.catalog import DEFAULT_CHARACTERISTICS, FALLBACK_CHARACTERISTICS, ProviderCatalog
from .routing.router import RoutingOptions


_DEFAULT_OPENAI_MODEL = "gpt-4o-mini-tts"
_DEFAULT_ELEVENLABS_MODEL = "eleven_multilingual_v2"
_ENV_PREFIX = "VOICEPROCESSOR_"


@dataclass(slots=True)
class VoiceProcessorConfig:
    """Runtime configuration for one service instance.

    Attributes:
        max_segment_size: Upper bound on characters per synthesized segment.
        min_segment_size: Lower bound before a boundary search may cut.
        preserve_paragraphs: Prefer paragraph breaks as segment boundaries.
        preserve_sentences: Prefer sentence ends as segment boundaries.
        preserve_words: Prefer word gaps over hard cuts.
        preferred_provider_bonus: Routing score bonus for the voice's own provider.
        provider_overrides: Per-provider characteristics replacing the built-in table.
        currency: Currency code reported on estimates.
        cost_per_credit: Monetary value of one credit.
        provider_rates: Per-provider pricing rate overrides.
        max_segment_retries: Retries allowed per segment after its first attempt.
        retry_delays_seconds: Backoff before each retry.
        max_concurrency: Upper bound on in-flight segment syntheses per job.
        silence_between_segments_ms: Silence inserted between merged segments.
        merge_bitrate_kbps: Bitrate used when merging requires re-encoding.
        audio_format: Default output container.
        storage_root: Directory for persisted audio.
        public_url_base: URL prefix returned for persisted audio.
        openai_api_key: Optional OpenAI credential.
        elevenlabs_api_key: Optional ElevenLabs credential.
        openai_model: OpenAI speech model identifier.
        elevenlabs_model: ElevenLabs model identifier.
    """

    max_segment_size: int = 5000
    min_segment_size: int = 100
    preserve_paragraphs: bool = True
    preserve_sentences: bool = True
    preserve_words: bool = True
    preferred_provider_bonus: float = 0.1
    provider_overrides: dict[Provider, ProviderCharacteristics] = field(default_factory=dict)
    currency: str = "USD"
    cost_per_credit: Decimal = Decimal("0.01")
    provider_rates: dict[Provider, Decimal] = field(default_factory=dict)
    max_segment_retries: int = 3
    retry_delays_seconds: tuple[float, ...] = (1.0, 3.0, 10.0)
    max_concurrency: int = 4
    silence_between_segments_ms: int = 0
    merge_bitrate_kbps: int = 128
    audio_format: str = "mp3"
    storage_root: Path = Path("storage")
    public_url_base: str = "/files"
    openai_api_key: str | None = None
    elevenlabs_api_key: str | None = None
    openai_model: str = _DEFAULT_OPENAI_MODEL
    elevenlabs_model: str = _DEFAULT_ELEVENLABS_MODEL

    def validate(self) -> None:
        """Validate configuration values before any stage is built."""

        if self.max_segment_size <= 0:
            raise ValueError("`max_segment_size` must be a positive integer.")
        if not 0 <= self.min_segment_size <= self.max_segment_size:
            raise ValueError("`min_segment_size` must be within [0, max_segment_size].")
        if self.preferred_provider_bonus < 0:
            raise ValueError("`preferred_provider_bonus` must not be negative.")
        if self.cost_per_credit <= 0:
            raise ValueError("`cost_per_credit` must be positive.")
        if any(rate < 0 for rate in self.provider_rates.values()):
            raise ValueError("`provider_rates` values must not be negative.")
        if self.max_segment_retries < 0:
            raise ValueError("`max_segment_retries` must not be negative.")
        if any(delay < 0 for delay in self.retry_delays_seconds):
            raise ValueError("`retry_delays_seconds` values must not be negative.")
        if self.max_concurrency <= 0:
            raise ValueError("`max_concurrency` must be a positive integer.")
        if self.silence_between_segments_ms < 0:
            raise ValueError("`silence_between_segments_ms` must not be negative.")
        if self.merge_bitrate_kbps <= 0:
            raise ValueError("`merge_bitrate_kbps` must be a positive integer.")
        if self.audio_format.lower() not in CONTENT_TYPES:
            supported = ", ".join(sorted(CONTENT_TYPES))
            raise ValueError(
                f"Unsupported `audio_format` `{self.audio_format}`; supported: {supported}."
            )
        self._require_non_empty(self.currency, "currency")
        self._require_non_empty(self.openai_model, "openai_model")
        self._require_non_empty(self.elevenlabs_model, "elevenlabs_model")
        # Catalog construction re-checks quality and latency bounds.
        self.provider_catalog()

    def chunking_options(self) -> ChunkingOptions:
        """Return chunking options for the Chunker."""

        return ChunkingOptions(
            max_segment_size=self.max_segment_size,
            min_segment_size=self.min_segment_size,
            preserve_paragraphs=self.preserve_paragraphs,
            preserve_sentences=self.preserve_sentences,
            preserve_words=self.preserve_words,
        )

    def provider_catalog(self) -> ProviderCatalog:
        """Return the provider catalog with overrides merged."""

        return ProviderCatalog.with_overrides(self.provider_overrides)

    def routing_options(self) -> RoutingOptions:
        """Return router knobs."""

        return RoutingOptions(preferred_provider_bonus=self.preferred_provider_bonus)

    def pricing_options(self) -> PricingOptions:
        """Return pricing options."""

        return PricingOptions(
            currency=self.currency,
            cost_per_credit=self.cost_per_credit,
            provider_rates=self.provider_rates,
        )

    def retry_policy(self) -> RetryPolicy:
        """Return the per-segment retry policy."""

        return RetryPolicy(
            max_retries=self.max_segment_retries,
            delays_seconds=tuple(self.retry_delays_seconds),
        )

    def merge_options(self, audio_format: str | None = None) -> AudioMergeOptions:
        """Return merge options, optionally for a job-specific output format."""

        return AudioMergeOptions(
            output_format=(audio_format or self.audio_format).lower(),
            silence_between_segments_ms=self.silence_between_segments_ms,
            bitrate_kbps=self.merge_bitrate_kbps,
        )

    @staticmethod
    def _require_non_empty(value: str, field_name: str) -> None:
        """Validate that string fields are not empty."""

        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"`{field_name}` must be a non-empty string.")


class ConfigLoader:
    """Factory methods for creating `VoiceProcessorConfig` from external sources."""

    _SUPPORTED_YAML_KEYS = frozenset(
        {
            "max_segment_size",
            "min_segment_size",
            "preserve_paragraphs",
            "preserve_sentences",
            "preserve_words",
            "preferred_provider_bonus",
            "provider_overrides",
            "currency",
            "cost_per_credit",
            "provider_rates",
            "max_segment_retries",
            "retry_delays_seconds",
            "max_concurrency",
            "silence_between_segments_ms",
            "merge_bitrate_kbps",
            "audio_format",
            "storage_root",
            "public_url_base",
            "openai_api_key",
            "elevenlabs_api_key",
            "openai_model",
            "elevenlabs_model",
        }
    )
    _SUPPORTED_OVERRIDE_KEYS = frozenset(
        {"cost_per_thousand_chars", "avg_latency_ms", "quality_rating"}
    )

    @staticmethod
    def from_yaml(path: Path) -> VoiceProcessorConfig:
        """Create a validated config from a YAML file."""

        path_text = path.read_text(encoding="utf-8")
        payload = yaml.safe_load(path_text)
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping/object.")
        return ConfigLoader._build_config_from_mapping(payload, source_label=f"YAML `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> VoiceProcessorConfig:
        """Create a validated config from environment variables.

        Every YAML key maps to `VOICEPROCESSOR_<KEY>` except the nested
        override tables; vendor credentials also fall back to the conventional
        `OPENAI_API_KEY` and `ELEVENLABS_API_KEY` variables.
        """

        env_map: Mapping[str, str] = os.environ if env is None else env
        payload: dict[str, Any] = {}
        for key in ConfigLoader._SUPPORTED_YAML_KEYS:
            if key in {"provider_overrides", "provider_rates"}:
                continue
            value = normalize_optional_string(env_map.get(f"{_ENV_PREFIX}{key.upper()}"))
            if value is not None:
                payload[key] = value

        for key, variable in (
            ("openai_api_key", "OPENAI_API_KEY"),
            ("elevenlabs_api_key", "ELEVENLABS_API_KEY"),
        ):
            if key not in payload:
                value = normalize_optional_string(env_map.get(variable))
                if value is not None:
                    payload[key] = value

        return ConfigLoader._build_config_from_mapping(payload, source_label="Environment")

    @staticmethod
    def _build_config_from_mapping(
        payload: Mapping[str, Any], source_label: str
    ) -> VoiceProcessorConfig:
        """Build a validated config from a normalized mapping payload."""

        ConfigLoader._validate_yaml_keys(payload, source_label)
        defaults = VoiceProcessorConfig()
        values: dict[str, Any] = {}

        for key in ("max_segment_size", "max_concurrency", "merge_bitrate_kbps"):
            values[key] = ConfigLoader._optional_positive_int(
                payload, key, source_label, default=getattr(defaults, key)
            )
        for key in ("min_segment_size", "max_segment_retries", "silence_between_segments_ms"):
            values[key] = ConfigLoader._optional_non_negative_int(
                payload, key, source_label, default=getattr(defaults, key)
            )
        for key in ("preserve_paragraphs", "preserve_sentences", "preserve_words"):
            values[key] = ConfigLoader._optional_boolean(
                payload, key, source_label, default=getattr(defaults, key)
            )
        string_keys = (
            "currency",
            "audio_format",
            "public_url_base",
            "openai_model",
            "elevenlabs_model",
        )
        for key in string_keys:
            values[key] = (
                ConfigLoader._optional_non_empty_string(payload, key, source_label)
                or getattr(defaults, key)
            )
        for key in ("openai_api_key", "elevenlabs_api_key"):
            values[key] = ConfigLoader._optional_non_empty_string(payload, key, source_label)

        storage_root = ConfigLoader._optional_non_empty_string(payload, "storage_root", source_label)
        values["storage_root"] = Path(storage_root) if storage_root else defaults.storage_root

        bonus = ConfigLoader._optional_decimal(payload, "preferred_provider_bonus", source_label)
        if bonus is not None:
            values["preferred_provider_bonus"] = float(bonus)
        cost_per_credit = ConfigLoader._optional_decimal(payload, "cost_per_credit", source_label)
        if cost_per_credit is not None:
            values["cost_per_credit"] = cost_per_credit

        if "retry_delays_seconds" in payload:
            delays = parse_delay_sequence(payload["retry_delays_seconds"])
            if delays is None:
                raise ValueError(
                    f"{source_label} field `retry_delays_seconds` must be a list of "
                    "non-negative numbers."
                )
            values["retry_delays_seconds"] = delays

        values["provider_rates"] = ConfigLoader._optional_rate_map(
            payload, "provider_rates", source_label
        )
        values["provider_overrides"] = ConfigLoader._optional_override_map(
            payload, "provider_overrides", source_label
        )

        config = VoiceProcessorConfig(**values)
        config.validate()
        return config

    @staticmethod
    def _validate_yaml_keys(payload: Mapping[str, Any], source_label: str) -> None:
        """Reject keys the config model does not know."""

        unknown = sorted(
            str(key) for key in set(payload).difference(ConfigLoader._SUPPORTED_YAML_KEYS)
        )
        if unknown:
            key_list = ", ".join(unknown)
            raise ValueError(f"{source_label} includes unsupported key(s): {key_list}.")

    @staticmethod
    def _optional_non_empty_string(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> str | None:
        """Read an optional string field and normalize blank values to `None`."""

        if key not in payload:
            return None
        return normalize_optional_string(payload[key])

    @staticmethod
    def _optional_int(
        payload: Mapping[str, Any], key: str, source_label: str, default: int, *, minimum: int
    ) -> int:
        """Read and validate an integer payload field with a lower bound."""

        if key not in payload:
            return default

        bound = "a positive integer" if minimum > 0 else "a non-negative integer"
        raw_value = payload[key]
        if isinstance(raw_value, bool):
            raise ValueError(f"{source_label} field `{key}` must be {bound}.")
        if isinstance(raw_value, int):
            parsed = raw_value
        else:
            normalized = normalize_optional_string(raw_value)
            if normalized is None:
                return default
            try:
                parsed = int(normalized)
            except ValueError as exc:
                raise ValueError(f"{source_label} field `{key}` must be {bound}.") from exc

        if parsed < minimum:
            raise ValueError(f"{source_label} field `{key}` must be {bound}.")
        return parsed

    @staticmethod
    def _optional_positive_int(
        payload: Mapping[str, Any], key: str, source_label: str, default: int
    ) -> int:
        """Read and validate a positive integer payload field."""

        return ConfigLoader._optional_int(payload, key, source_label, default, minimum=1)

    @staticmethod
    def _optional_non_negative_int(
        payload: Mapping[str, Any], key: str, source_label: str, default: int
    ) -> int:
        """Read and validate a non-negative integer payload field."""

        return ConfigLoader._optional_int(payload, key, source_label, default, minimum=0)

    @staticmethod
    def _optional_boolean(
        payload: Mapping[str, Any], key: str, source_label: str, default: bool
    ) -> bool:
        """Read and validate a boolean field from a payload."""

        if key not in payload:
            return default

        parsed = parse_permissive_boolean(payload[key])
        if parsed is None:
            raise ValueError(
                f"{source_label} field `{key}` must be a boolean value "
                "(`true`/`false`, `1`/`0`, `yes`/`no`, `on`/`off`)."
            )
        return parsed

    @staticmethod
    def _optional_decimal(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> Decimal | None:
        """Read an optional decimal field."""

        if key not in payload or normalize_optional_string(payload[key]) is None:
            return None
        parsed = parse_optional_decimal(payload[key])
        if parsed is None:
            raise ValueError(f"{source_label} field `{key}` must be a number.")
        return parsed

    @staticmethod
    def _provider_key(raw_key: object, key: str, source_label: str) -> Provider:
        """Resolve a provider mapping key."""

        try:
            return Provider.parse(str(raw_key))
        except ValueError as exc:
            raise ValueError(f"{source_label} field `{key}`: {exc}") from exc

    @staticmethod
    def _optional_mapping(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> Mapping[Any, Any]:
        """Read an optional nested mapping."""

        raw = payload.get(key)
        if raw is None:
            return {}
        if not isinstance(raw, Mapping):
            raise ValueError(f"{source_label} field `{key}` must be a mapping/object.")
        return raw

    @staticmethod
    def _optional_rate_map(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> dict[Provider, Decimal]:
        """Read a provider-to-rate mapping."""

        rates: dict[Provider, Decimal] = {}
        for raw_key, raw_value in ConfigLoader._optional_mapping(payload, key, source_label).items():
            provider = ConfigLoader._provider_key(raw_key, key, source_label)
            rate = parse_optional_decimal(raw_value)
            if rate is None or rate < 0:
                raise ValueError(
                    f"{source_label} field `{key}` needs a non-negative rate for `{provider.value}`."
                )
            rates[provider] = rate
        return rates

    @staticmethod
    def _optional_override_map(
        payload: Mapping[str, Any], key: str, source_label: str
    ) -> dict[Provider, ProviderCharacteristics]:
        """Read per-provider characteristics, merging partial entries over defaults."""

        overrides: dict[Provider, ProviderCharacteristics] = {}
        for raw_key, raw_entry in ConfigLoader._optional_mapping(payload, key, source_label).items():
            provider = ConfigLoader._provider_key(raw_key, key, source_label)
            entry_label = f"{source_label} field `{key}.{provider.value}`"
            if not isinstance(raw_entry, Mapping):
                raise ValueError(f"{entry_label} must be a mapping/object.")
            unknown = sorted(
                str(name) for name in set(raw_entry) - ConfigLoader._SUPPORTED_OVERRIDE_KEYS
            )
            if unknown:
                raise ValueError(f"{entry_label} includes unsupported key(s): {', '.join(unknown)}.")

            base = DEFAULT_CHARACTERISTICS.get(provider, FALLBACK_CHARACTERISTICS)
            cost = ConfigLoader._optional_decimal(raw_entry, "cost_per_thousand_chars", entry_label)
            latency = ConfigLoader._optional_non_negative_int(
                raw_entry, "avg_latency_ms", entry_label, default=base.avg_latency_ms
            )
            quality = ConfigLoader._optional_decimal(raw_entry, "quality_rating", entry_label)
            overrides[provider] = replace(
                base,
                cost_per_thousand_chars=cost if cost is not None else base.cost_per_thousand_chars,
                avg_latency_ms=latency,
                quality_rating=float(quality) if quality is not None else base.quality_rating,
            )
        return overrides
