"""Command-line interface for voiceprocessor.

Responsibilities:
- Expose chunking, chapter detection, quoting, routing, and generation commands.
- Convert CLI arguments and `--config` files into stage objects and run them.

Key public functions:
- `app`: Typer application instance.
- `main`: invoke the Typer application.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Annotated

import typer

from .cli_rendering import (
    echo_chapter_list,
    echo_cost_quote,
    echo_generation_summary,
    echo_provider_scores,
    echo_segment_list,
    exit_with_command_error,
)
from .config import ConfigLoader, VoiceProcessorConfig
from .errors import PipelineStageError
from .io.storage import LocalAudioStorage
from .models.datatypes import (
    GenerationStatus,
    Provider,
    RoutingContext,
    RoutingPreference,
    VoicePreset,
)
from .parsing import normalize_optional_string
from .pipeline import (
    GenerationManager,
    GenerationOrchestrator,
    InMemoryJobStore,
    InMemorySegmentStore,
)
from .provider_factory import ProviderRegistry
from .routing.router import ProviderRouter
from .telemetry.logger import RunLogger
from .text.chapters import ChapterDetector
from .text.chunking import Chunker
from .tts.voices import VoiceProfile

app = typer.Typer(
    name="voiceprocessor",
    no_args_is_help=True,
    help="Text-to-speech generation CLI.",
)

ConfigOption = Annotated[
    Path | None,
    typer.Option("--config", help="Path to YAML config file."),
]
PreferenceOption = Annotated[
    RoutingPreference,
    typer.Option("--preference", case_sensitive=False, help="Routing preference."),
]


def _load_config(config_path: Path | None) -> VoiceProcessorConfig:
    """Load YAML config when requested, else environment config, mapping failures."""

    if config_path is None:
        try:
            return ConfigLoader.from_env()
        except ValueError as exc:
            raise PipelineStageError(
                stage="config",
                detail=f"Invalid environment configuration: {exc}",
                hint="Fix `VOICEPROCESSOR_*` variables and rerun.",
            ) from exc

    try:
        return ConfigLoader.from_yaml(config_path)
    except FileNotFoundError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Config file not found: `{config_path}`.",
            hint="Provide an existing path via `--config <path.yaml>`.",
        ) from exc
    except ValueError as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Invalid config file `{config_path}`: {exc}",
            hint="Fix config schema/values and rerun.",
        ) from exc
    except Exception as exc:
        raise PipelineStageError(
            stage="config",
            detail=f"Failed to load config file `{config_path}`: {exc}",
            hint="Verify YAML syntax and file permissions.",
        ) from exc


def _read_text(input_path: Path) -> str:
    """Read UTF-8 input text, mapping I/O failures to an input stage error."""

    try:
        return input_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise PipelineStageError(
            stage="input",
            detail=f"Unable to read input text `{input_path}`: {exc}",
            hint="Provide a readable UTF-8 text file.",
        ) from exc


def _parse_provider(value: str | None) -> Provider | None:
    """Parse an optional provider identifier."""

    normalized = normalize_optional_string(value)
    if normalized is None:
        return None
    try:
        return Provider.parse(normalized)
    except ValueError as exc:
        raise PipelineStageError(stage="input", detail=str(exc)) from exc


def _parse_provider_list(value: str | None) -> frozenset[Provider] | None:
    """Parse a comma-separated provider list."""

    normalized = normalize_optional_string(value)
    if normalized is None:
        return None
    providers = {_parse_provider(token) for token in normalized.split(",") if token.strip()}
    return frozenset(provider for provider in providers if provider is not None)


@app.command("chunk")
def chunk_command(
    input_text: Annotated[Path, typer.Argument(help="Path to UTF-8 input text.")],
    config_file: ConfigOption = None,
) -> None:
    """Split input text into synthesis segments and list them."""

    try:
        config = _load_config(config_file)
        segments = Chunker(config.chunking_options()).split(_read_text(input_text))
    except Exception as exc:
        exit_with_command_error("chunk", exc)

    echo_segment_list(segments)


@app.command("chapters")
def chapters_command(
    input_text: Annotated[Path, typer.Argument(help="Path to UTF-8 input text.")],
) -> None:
    """List chapter markers detected in input text."""

    try:
        chapters = ChapterDetector().detect(_read_text(input_text))
    except Exception as exc:
        exit_with_command_error("chapters", exc)

    echo_chapter_list(chapters)


@app.command("estimate")
def estimate_command(
    input_text: Annotated[Path, typer.Argument(help="Path to UTF-8 input text.")],
    preference: PreferenceOption = RoutingPreference.BALANCED,
    provider: Annotated[
        str | None,
        typer.Option("--provider", help="Price against one provider instead of the cheapest."),
    ] = None,
    config_file: ConfigOption = None,
) -> None:
    """Quote input text against every provider."""

    try:
        config = _load_config(config_file)
        text = _read_text(input_text)
        jobs = InMemoryJobStore()
        registry = ProviderRegistry.from_config(config)
        orchestrator = GenerationOrchestrator.from_config(
            config, jobs=jobs, segments=InMemorySegmentStore(), registry=registry
        )
        manager = GenerationManager(jobs=jobs, registry=registry, orchestrator=orchestrator)
        quote = manager.estimate_cost(text, preference, _parse_provider(provider))
    except Exception as exc:
        exit_with_command_error("estimate", exc)

    echo_cost_quote(quote)


@app.command("route")
def route_command(
    characters: Annotated[int, typer.Option("--characters", min=0, help="Job length.")],
    preference: PreferenceOption = RoutingPreference.BALANCED,
    available: Annotated[
        str | None,
        typer.Option(
            "--available",
            help="Comma-separated available providers; defaults to configured API keys.",
        ),
    ] = None,
    lock: Annotated[
        str | None, typer.Option("--lock", help="Provider the voice is locked to.")
    ] = None,
    preferred: Annotated[
        str | None, typer.Option("--preferred", help="Provider receiving the score bonus.")
    ] = None,
    config_file: ConfigOption = None,
) -> None:
    """Score providers for a job and print the routing decision."""

    try:
        config = _load_config(config_file)
        available_providers = _parse_provider_list(available)
        if available_providers is None:
            available_providers = ProviderRegistry.from_config(config).available()
        context = RoutingContext(
            character_count=characters,
            preference=preference,
            available_providers=available_providers,
            locked_provider=_parse_provider(lock),
            preferred_provider=_parse_provider(preferred),
        )
        router = ProviderRouter(config.provider_catalog(), config.routing_options())
        scores = router.score_providers(context)
        decision = router.select_provider(context)
    except Exception as exc:
        exit_with_command_error("route", exc)

    echo_provider_scores(scores, decision)


@app.command("generate")
def generate_command(
    input_text: Annotated[Path, typer.Argument(help="Path to UTF-8 input text.")],
    voice: Annotated[str, typer.Option("--voice", help="Provider voice identifier.")],
    provider: Annotated[
        str | None,
        typer.Option("--provider", help="Lock the voice to one provider."),
    ] = None,
    preference: PreferenceOption = RoutingPreference.BALANCED,
    preset: Annotated[
        VoicePreset | None,
        typer.Option("--preset", case_sensitive=False, help="Narration style preset."),
    ] = None,
    audio_format: Annotated[
        str | None,
        typer.Option("--format", help="Output format (defaults to config `audio_format`)."),
    ] = None,
    user_id: Annotated[str, typer.Option("--user", help="Owner of the generation.")] = "cli",
    config_file: ConfigOption = None,
) -> None:
    """Synthesize input text end to end and store the merged audio."""

    try:
        config = _load_config(config_file)
        text = _read_text(input_text)
        run_logger = RunLogger()
        jobs = InMemoryJobStore()
        registry = ProviderRegistry.from_config(config)
        orchestrator = GenerationOrchestrator.from_config(
            config,
            jobs=jobs,
            segments=InMemorySegmentStore(),
            registry=registry,
            storage=LocalAudioStorage(config.storage_root, config.public_url_base),
        )
        manager = GenerationManager(jobs=jobs, registry=registry, orchestrator=orchestrator)
        profile = VoiceProfile(
            name=voice, provider_voice_id=voice, provider=_parse_provider(provider)
        )
        generation = manager.create_generation(
            user_id,
            text,
            profile,
            preference=preference,
            preset=preset,
            audio_format=audio_format or config.audio_format,
        )
        run_logger.log_stage_start("generate", generation=generation.id)
        generation = asyncio.run(orchestrator.process(generation.id, profile))
        if generation.status is not GenerationStatus.COMPLETED:
            run_logger.log_stage_failure("generate", generation.status.value)
            raise PipelineStageError(
                stage="generate",
                detail=generation.error_message
                or f"Generation ended `{generation.status.value}`.",
                hint="Check provider credentials, quota, and ffmpeg availability.",
            )
        run_logger.log_stage_complete("generate", generation=generation.id)
    except Exception as exc:
        exit_with_command_error("generate", exc)

    echo_generation_summary(generation)


def main() -> None:
    """CLI entrypoint for console scripts."""
    app()


if __name__ == "__main__":
    main()
