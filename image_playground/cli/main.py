"""
CLI interface for Image Playground.

Provides command-line access to generation, editing, video, prompt
enhancement, cost estimation and history.
"""

import base64
import json
import mimetypes
import sys
from pathlib import Path
from typing import List, Optional

import requests
import typer
import yaml
from dotenv import load_dotenv
from rich.console import Console
from rich.table import Table

from image_playground.config.loader import ConfigError, Settings, load_settings
from image_playground.core.params import (
    EditParams,
    GenerateParams,
    ParameterError,
    VideoParams,
    parse_mode,
)
from image_playground.core.pricing import (
    DEFAULT_MODEL,
    PRICING_TABLE,
    CostBreakdown,
    estimate_cost,
)
from image_playground.core.prompt_enhance import sanitize_reference_images
from image_playground.core.token_counter import InvalidUsageData
from image_playground.sdk.errors import ProviderError
from image_playground.sdk.openai_client import GenerationResult, ImagePlayground, PromptEnhancer
from image_playground.sdk.video_client import SoraVideoClient
from image_playground.storage.repository import HistoryRepository, initialize_schema
from image_playground.utils.logging import setup_logging

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def _settings(ctx: typer.Context) -> Settings:
    return ctx.obj


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML settings file"
    )
):
    """Image Playground CLI."""
    load_dotenv()
    try:
        settings = load_settings(config)
    except (ConfigError, FileNotFoundError, yaml.YAMLError) as e:
        _fail(str(e))
    setup_logging(settings.log_level)
    ctx.obj = settings
    if ctx.invoked_subcommand is None:
        console.print("Image Playground - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the generation history database."""
    settings = _settings(ctx)
    try:
        initialize_schema(settings.db_path)
    except Exception as e:
        _fail(f"initializing database: {e}")
    console.print(f"[green]✓[/] History database ready at {settings.db_path}")
    sys.exit(EXIT_CODE_PASS)


@app.command()
def pricing():
    """Show per-model token rates (USD per 1M tokens)."""
    table = Table(title="Image model pricing (USD / 1M tokens)")
    table.add_column("Model")
    table.add_column("Text in", justify="right")
    table.add_column("Image in", justify="right")
    table.add_column("Cached in", justify="right")
    table.add_column("Image out", justify="right")
    table.add_column("Cache policy")
    for model, rates in PRICING_TABLE.prices.items():
        label = f"{model} (default)" if model == DEFAULT_MODEL else model
        table.add_row(
            label,
            f"{rates.text_input_per_1m:.2f}",
            f"{rates.image_input_per_1m:.2f}",
            f"{rates.cached_input_per_1m:.2f}",
            f"{rates.image_output_per_1m:.2f}",
            rates.cache_policy.value,
        )
    console.print(table)


def _print_cost(cost: CostBreakdown) -> None:
    table = Table(show_header=False, box=None)
    table.add_row("Text input tokens", str(cost.text_input_tokens))
    table.add_row("Image input tokens", str(cost.image_input_tokens))
    table.add_row("Cached input tokens", str(cost.cached_input_tokens))
    table.add_row("Billable input tokens", str(cost.billable_input_tokens))
    table.add_row("Image output tokens", str(cost.image_output_tokens))
    table.add_row("[bold]Estimated cost[/bold]", f"[bold]${cost.estimated_cost_usd:.4f}[/bold]")
    console.print(table)


@app.command()
def estimate(
    usage_file: str = typer.Argument(..., help="Usage JSON file, or - for stdin"),
    model: str = typer.Option(DEFAULT_MODEL, "--model", "-m", help="Image model the call used"),
    as_json: bool = typer.Option(False, "--json", help="Print the breakdown as JSON")
):
    """Estimate the cost of a call from its usage payload."""
    try:
        raw = sys.stdin.read() if usage_file == "-" else Path(usage_file).read_text(encoding="utf-8")
        payload = json.loads(raw)
    except (OSError, json.JSONDecodeError) as e:
        _fail(f"could not read usage data: {e}")

    # Accept either a bare usage object or a whole API response
    if isinstance(payload, dict) and "usage" in payload and "output_tokens" not in payload:
        payload = payload["usage"]

    cost = estimate_cost(payload, model)
    if isinstance(cost, InvalidUsageData):
        console.print(f"[yellow]No cost estimate:[/] {cost.reason}")
        sys.exit(EXIT_CODE_FAIL)

    if as_json:
        console.print_json(json.dumps(cost.to_dict()))
    else:
        _print_cost(cost)


def _print_result(result: GenerationResult) -> None:
    for image in result.images:
        location = image.path or "(inline only)"
        console.print(f"[green]✓[/] {image.filename} -> {location}")
    if isinstance(result.cost, InvalidUsageData):
        console.print(f"[dim]No cost estimate: {result.cost.reason}[/]")
    else:
        _print_cost(result.cost)


def _print_stream(events) -> None:
    for event in events:
        if event.type == "partial_image":
            console.print(f"[dim]… partial preview {event.partial_image_index} for image {event.index}[/]")
        elif event.type == "completed":
            console.print(f"[green]✓[/] {event.filename} -> {event.path or '(inline only)'}")
        elif event.type == "error":
            _fail(event.error)
        elif event.type == "done":
            if event.cost:
                _print_cost(CostBreakdown(**event.cost))
            else:
                console.print("[dim]No cost estimate for this stream[/]")


@app.command()
def generate(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Text prompt"),
    model: str = typer.Option(DEFAULT_MODEL, "--model", "-m"),
    n: int = typer.Option(1, "--n", "-n", help="Number of images (1-10)"),
    size: str = typer.Option("1024x1024", "--size"),
    quality: str = typer.Option("auto", "--quality"),
    output_format: str = typer.Option("png", "--format", "-f"),
    compression: Optional[int] = typer.Option(None, "--compression", help="0-100, jpeg/webp only"),
    background: str = typer.Option("auto", "--background"),
    moderation: str = typer.Option("auto", "--moderation"),
    stream: bool = typer.Option(False, "--stream", help="Stream partial previews"),
    partial_images: int = typer.Option(2, "--partial-images", help="Partial previews when streaming (1-3)")
):
    """Generate images from a prompt."""
    try:
        params = GenerateParams.build(
            prompt,
            model=model,
            n=n,
            size=size,
            quality=quality,
            output_format=output_format,
            output_compression=compression,
            background=background,
            moderation=moderation,
        )
        playground = ImagePlayground(_settings(ctx))
        if stream:
            _print_stream(playground.generate_stream(params, partial_images))
        else:
            _print_result(playground.generate(params))
    except (ParameterError, ConfigError) as e:
        _fail(str(e))
    except ProviderError as e:
        _fail(f"{e.message} (status {e.status})")


@app.command()
def edit(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Edit instruction"),
    image: List[Path] = typer.Option([], "--image", "-i", exists=True, dir_okay=False, help="Source image (repeatable)"),
    mask: Optional[Path] = typer.Option(None, "--mask", exists=True, dir_okay=False),
    model: str = typer.Option(DEFAULT_MODEL, "--model", "-m"),
    n: int = typer.Option(1, "--n", "-n"),
    size: str = typer.Option("auto", "--size"),
    quality: str = typer.Option("auto", "--quality"),
    stream: bool = typer.Option(False, "--stream"),
    partial_images: int = typer.Option(2, "--partial-images")
):
    """Edit one or more images, optionally with a mask."""
    try:
        params = EditParams.build(prompt, image, mask, model=model, n=n, size=size, quality=quality)
        playground = ImagePlayground(_settings(ctx))
        if stream:
            _print_stream(playground.edit_stream(params, partial_images))
        else:
            _print_result(playground.edit(params))
    except (ParameterError, ConfigError) as e:
        _fail(str(e))
    except ProviderError as e:
        _fail(f"{e.message} (status {e.status})")


@app.command()
def video(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Video prompt"),
    reference: Optional[Path] = typer.Option(None, "--reference", "-r", exists=True, dir_okay=False),
    size: str = typer.Option("1280x720", "--size"),
    seconds: int = typer.Option(8, "--seconds", help="4, 8 or 12; other values snap to the nearest")
):
    """Generate a Sora video from a prompt and a reference image."""
    try:
        params = VideoParams.build(prompt, reference, size=size, seconds=seconds)
        with console.status("Waiting for Sora to render…"):
            result = SoraVideoClient(_settings(ctx)).generate(params)
    except (ParameterError, ConfigError) as e:
        _fail(str(e))
    except ProviderError as e:
        _fail(f"{e.message} (status {e.status})")
    except requests.RequestException as e:
        _fail(f"video request failed: {e}")
    console.print(f"[green]✓[/] {result.filename} -> {result.path} ({result.model})")


def _data_url(path: Path) -> str:
    mime = mimetypes.guess_type(path.name)[0] or "image/png"
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime};base64,{encoded}"


@app.command()
def enhance(
    ctx: typer.Context,
    prompt: str = typer.Argument(..., help="Prompt to rewrite"),
    mode: str = typer.Option("generate", "--mode", help="generate, edit or video"),
    reference: List[Path] = typer.Option([], "--reference", "-r", exists=True, dir_okay=False),
    video_has_reference: bool = typer.Option(False, "--video-has-reference")
):
    """Rewrite a prompt with a chat model."""
    try:
        parsed_mode = parse_mode(mode)
        cleaned = prompt.strip()
        if not cleaned:
            raise ParameterError("Missing required parameters: prompt and mode.")
        references = sanitize_reference_images([_data_url(path) for path in reference])
        enhanced = PromptEnhancer(_settings(ctx)).enhance(
            parsed_mode, cleaned, references, video_has_reference
        )
    except ParameterError as e:
        _fail(str(e))
    except ProviderError as e:
        _fail(f"{e.message} (status {e.status})")
    console.print(enhanced)


@app.command()
def history(
    ctx: typer.Context,
    mode: Optional[str] = typer.Option(None, "--mode", help="Filter by generate, edit or video"),
    model: Optional[str] = typer.Option(None, "--model", "-m"),
    limit: int = typer.Option(20, "--limit", "-l"),
    days: int = typer.Option(30, "--days", help="Window for the cost summary")
):
    """Show recent generations and a cost summary."""
    settings = _settings(ctx)
    initialize_schema(settings.db_path)
    repository = HistoryRepository(settings.db_path)
    events = repository.get_recent_events(mode=mode, model=model, limit=limit)

    if not events:
        console.print("\n[bold yellow]No generations recorded yet[/]\n")
        sys.exit(EXIT_CODE_PASS)

    table = Table(title="Recent generations")
    table.add_column("When")
    table.add_column("Mode")
    table.add_column("Model")
    table.add_column("Prompt")
    table.add_column("Files", justify="right")
    table.add_column("Cost", justify="right")
    for event in events:
        prompt = event.prompt if len(event.prompt) <= 40 else event.prompt[:37] + "..."
        cost = "n/a" if event.estimated_cost is None else f"${event.estimated_cost:.4f}"
        table.add_row(
            event.timestamp.strftime("%Y-%m-%d %H:%M"),
            event.mode,
            event.model,
            prompt,
            str(len(event.filenames)),
            cost,
        )
    console.print(table)

    summary = repository.get_cost_summary(days=days)
    console.print(
        f"\nLast {days} days: {summary['total_requests']} request(s), "
        f"{summary['total_images']} image(s), total ${summary['total_cost']:.4f}"
    )


if __name__ == "__main__":
    app()
