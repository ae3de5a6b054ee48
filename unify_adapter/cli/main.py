"""Command line entry point for the Unify adapter."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Annotated, Any

import typer
from pydantic import ValidationError
from rich import box
from rich.console import Console
from rich.table import Table

from unify_adapter.adapters.unify import UnifyAdapter
from unify_adapter.config.settings import Settings
from unify_adapter.core._version import __version__
from unify_adapter.core.errors import UnifyAdapterError
from unify_adapter.core.logging import get_logger, setup_logging
from unify_adapter.llms.unify.models import AdapterRequest, parse_model_identifier
from unify_adapter.llms.utils import (
    TrimResult,
    budget_for_model,
    estimate_message_tokens,
    limit_messages_to_budget,
    max_tokens_for_model,
    sanitize_messages,
)


app = typer.Typer(
    rich_markup_mode="rich",
    add_completion=False,
    no_args_is_help=True,
    pretty_exceptions_enable=False,
    help="Shape chat requests for the Unify inference API.",
)

console = Console()
err_console = Console(stderr=True)
logger = get_logger(__name__)

PREVIEW_CHARS = 60


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"unify-adapter {__version__}")
        raise typer.Exit()


def _load_settings(config: Path | None) -> Settings:
    try:
        return Settings.from_config(config_path=config)
    except UnifyAdapterError as e:
        err_console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1) from e


def _load_request(path: Path) -> AdapterRequest:
    """Load a request object, or a bare list of messages, from a JSON file."""
    try:
        data: Any = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        err_console.print(f"[red]Cannot read {path}:[/red] {e}")
        raise typer.Exit(1) from e
    except json.JSONDecodeError as e:
        err_console.print(f"[red]Invalid JSON in {path}:[/red] {e}")
        raise typer.Exit(1) from e

    if isinstance(data, list):
        data = {"messages": data}

    try:
        return AdapterRequest.model_validate(data)
    except ValidationError as e:
        err_console.print(f"[red]Invalid request in {path}:[/red]\n{e}")
        raise typer.Exit(1) from e


def _preview(text: str | None) -> str:
    if not text:
        return ""
    flat = " ".join(text.split())
    return flat if len(flat) <= PREVIEW_CHARS else flat[: PREVIEW_CHARS - 3] + "..."


def _render_trim_table(request: AdapterRequest, result: TrimResult) -> None:
    table = Table(box=box.SIMPLE, title="Conversation")
    table.add_column("#", justify="right")
    table.add_column("Role", style="bold")
    table.add_column("Tokens", justify="right")
    table.add_column("Status")
    table.add_column("Content")

    dropped = set(result.dropped_indices)
    for index, message in enumerate(request.messages):
        content = message.content
        if not content and message.function_call is not None:
            content = f"{message.function_call.name}({message.function_call.arguments})"
        status = "[red]dropped[/red]" if index in dropped else "[green]kept[/green]"
        table.add_row(
            str(index),
            message.role,
            str(estimate_message_tokens(message)),
            status,
            _preview(content),
        )

    console.print(table)
    console.print(
        f"Budget {result.budget} | tools {result.tool_tokens} | "
        f"messages {result.message_tokens} | dropped {result.dropped_count}"
    )


@app.callback()
def main(
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit.",
        ),
    ] = False,
) -> None:
    """Shape chat requests for the Unify inference API."""


@app.command()
def budget(
    model: Annotated[
        str | None,
        typer.Argument(help="Model identifier, e.g. mixtral-8x7b-instruct-v0.1@together-ai"),
    ] = None,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML configuration file")
    ] = None,
) -> None:
    """Show the context window and message budget for a model."""
    settings = _load_settings(config)
    setup_logging(settings.logging.json_logs, settings.logging.level)

    model_id = model or settings.unify.default_model
    model_name, provider = parse_model_identifier(model_id)
    limits = settings.unify.model_limits
    reserve = settings.unify.reserved_output_tokens

    table = Table(show_header=False, box=box.SIMPLE, title="Token Budget")
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Model", model_name)
    table.add_row("Provider", provider or "")
    table.add_row("Context window", str(max_tokens_for_model(model_name, limits)))
    table.add_row("Reserved for reply", str(reserve))
    table.add_row("Budget", str(budget_for_model(model_name, reserve, limits)))
    console.print(table)


@app.command()
def trim(
    file: Annotated[
        Path, typer.Argument(help="JSON request object or list of messages")
    ],
    model: Annotated[
        str | None, typer.Option("--model", "-m", help="Model identifier")
    ] = None,
    budget_override: Annotated[
        int | None,
        typer.Option("--budget", "-b", help="Token budget instead of the model's"),
    ] = None,
    as_json: Annotated[
        bool,
        typer.Option("--json", help="Print the kept, sanitized messages as JSON"),
    ] = False,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML configuration file")
    ] = None,
) -> None:
    """Fit a conversation into a model's token budget and show what is kept."""
    settings = _load_settings(config)
    setup_logging(settings.logging.json_logs, settings.logging.level)

    request = _load_request(file)
    model_id = model or request.model or settings.unify.default_model
    model_name, _ = parse_model_identifier(model_id)

    if budget_override is not None:
        token_budget = budget_override
    else:
        token_budget = budget_for_model(
            model_name,
            settings.unify.reserved_output_tokens,
            settings.unify.model_limits,
        )

    try:
        result = limit_messages_to_budget(
            request.messages, request.tools or [], token_budget
        )
    except UnifyAdapterError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e

    if as_json:
        messages = [m.to_payload() for m in sanitize_messages(result.messages)]
        typer.echo(json.dumps(messages, indent=2, ensure_ascii=False))
    else:
        _render_trim_table(request, result)


async def _send(adapter: UnifyAdapter, request: AdapterRequest) -> None:
    async with adapter:
        response = await adapter.get_response(request)
        async with response:
            async for chunk in response.stream:
                sys.stdout.buffer.write(chunk)
                sys.stdout.buffer.flush()


@app.command()
def send(
    file: Annotated[
        Path, typer.Argument(help="JSON request object or list of messages")
    ],
    model: Annotated[
        str | None, typer.Option("--model", "-m", help="Model identifier")
    ] = None,
    config: Annotated[
        Path | None, typer.Option("--config", "-c", help="TOML configuration file")
    ] = None,
) -> None:
    """Send a request to Unify and stream the raw response to stdout."""
    settings = _load_settings(config)
    setup_logging(settings.logging.json_logs, settings.logging.level)

    request = _load_request(file)
    if model:
        request.model = model

    try:
        adapter = UnifyAdapter.from_settings(settings)
        asyncio.run(_send(adapter, request))
    except UnifyAdapterError as e:
        err_console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e


if __name__ == "__main__":
    app()
