"""CLI output and error rendering helpers.

This module centralizes user-facing CLI presentation for command diagnostics,
segment and chapter listings, cost quotes, routing scores, and generation results.
"""

from __future__ import annotations

from typing import NoReturn, Sequence

import typer

from .errors import PipelineStageError
from .models.datatypes import (
    DetectedChapter,
    Generation,
    ProviderScore,
    RoutingDecision,
    TextSegment,
)
from .pipeline.manager import CostQuote


_PREVIEW_CHARS = 48


def exit_with_command_error(command_name: str, exc: Exception) -> NoReturn:
    """Print concise diagnostics for command failures and exit with code 1."""

    if isinstance(exc, PipelineStageError):
        typer.secho(
            f"{command_name} failed at stage `{exc.stage}`: {exc.detail}",
            fg=typer.colors.RED,
            err=True,
        )
        if exc.hint:
            typer.secho(f"Hint: {exc.hint}", fg=typer.colors.YELLOW, err=True)
    else:
        typer.secho(f"{command_name} failed: {exc}", fg=typer.colors.RED, err=True)
    raise typer.Exit(code=1) from exc


def _preview(text: str) -> str:
    """Return a single-line, length-capped text preview."""

    compact = " ".join(text.split())
    if len(compact) <= _PREVIEW_CHARS:
        return compact
    return f"{compact[: _PREVIEW_CHARS - 3]}..."


def echo_segment_list(segments: Sequence[TextSegment]) -> None:
    """Print one row per segment with offsets, length, and a preview."""

    typer.echo(f"Segments: {len(segments)}")
    for segment in segments:
        typer.echo(
            f"{segment.index}. [{segment.start_offset}, {segment.end_offset}) "
            f"chars={len(segment.text)} {_preview(segment.text)}"
        )


def echo_chapter_list(chapters: Sequence[DetectedChapter]) -> None:
    """Print compact chapter rows in text order."""

    if not chapters:
        typer.echo("No chapters detected.")
        return
    for chapter in chapters:
        typer.echo(
            f"{chapter.number}. {chapter.title} "
            f"(offset={chapter.start_offset}, words={chapter.word_count})"
        )


def echo_cost_quote(quote: CostQuote) -> None:
    """Print the quote headline and one row per provider, cheapest first."""

    typer.echo(f"Characters: {quote.character_count}")
    typer.echo(f"Segments (estimated): {quote.segment_count}")
    typer.echo(f"Estimated cost ({quote.currency}): {quote.estimated_cost:.6f}")
    typer.echo(f"Credits required: {quote.credits_required}")
    recommended = quote.recommended_provider.value if quote.recommended_provider else "(none)"
    typer.echo(f"Recommended provider: {recommended}")
    for line in quote.providers:
        availability = "available" if line.is_available else "unavailable"
        typer.echo(
            f"- {line.provider.value}: {line.total_cost:.6f} {quote.currency} "
            f"credits={line.credits_required} duration_ms={line.estimated_duration_ms} "
            f"tier={line.quality_tier} {availability}"
        )


def echo_provider_scores(scores: Sequence[ProviderScore], decision: RoutingDecision) -> None:
    """Print ranked provider scores and the routing decision."""

    for score in scores:
        marker = "*" if score.provider is decision.provider else " "
        eligibility = "" if score.is_available else " (ineligible)"
        typer.echo(f"{marker} {score.provider.value}: {score.score:.3f}{eligibility}")
    typer.echo(f"Selected: {decision.provider.value}")
    typer.echo(f"Reason: {decision.reason}")
    typer.echo(f"Estimated cost: {decision.estimated_cost:.6f}")
    typer.echo(f"Estimated latency (ms): {decision.estimated_latency_ms}")


def echo_generation_summary(generation: Generation) -> None:
    """Print the outcome of one generation run."""

    typer.echo(f"Generation id: {generation.id}")
    typer.echo(f"Status: {generation.status.value}")
    typer.echo(f"Segments: {generation.segments_completed}/{generation.segment_count}")
    typer.echo(f"Audio: {generation.audio_url or '(not written)'}")
    if generation.audio_duration_ms is not None:
        typer.echo(f"Duration (ms): {generation.audio_duration_ms}")
    if generation.actual_cost is not None:
        typer.echo(f"Cost: {generation.actual_cost:.6f}")
