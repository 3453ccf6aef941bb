"""livepage CLI — Typer + Rich terminal interface.

Commands: generate, optimize, providers, config, serve.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from pathlib import Path

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from livepage import __version__
from livepage.cli_display import GenerationDisplay
from livepage.errors import ConfigurationError, ContextTooLongError, ProviderError
from livepage.generation import check_context_budget, start_generation
from livepage.keys import key_status, load_keys_env
from livepage.providers.litellm_provider import PromptOptimizer
from livepage.providers.openai_stream import OpenAIStreamRequestor
from livepage.providers.registry import get_provider, load_providers, load_settings
from livepage.schemas.config import AppSettings, GenerationSettings, ProviderConfig
from livepage.schemas.generation import GenerationRequest, ModelParameters
from livepage.schemas.streaming import GenerationResult, StreamState
from livepage.stream.cancellation import CancellationToken

# Load API keys from ~/.livepage/keys.env and .env on startup
load_keys_env()

console = Console()

app = typer.Typer(
    name="livepage",
    help="Generate single-file web pages from a prompt, streamed live.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)


# ── Callbacks ────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"livepage {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False, "--version", "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(
        False, "--verbose", "-v",
        help="Log stream lifecycle details to stderr.",
    ),
) -> None:
    """livepage — describe a page, watch it stream in."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


# ── Helpers ──────────────────────────────────────────────────────


def _load_providers() -> dict[str, ProviderConfig]:
    """Load the provider catalog, exit on error."""
    try:
        return load_providers()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading provider catalog:[/red] {e}")
        raise typer.Exit(1) from None


def _load_settings() -> AppSettings:
    """Load defaults.toml, exit on error."""
    try:
        return load_settings()
    except (FileNotFoundError, ValueError) as e:
        console.print(f"[red]Error loading settings:[/red] {e}")
        raise typer.Exit(1) from None


def _resolve_provider(key: str | None, settings: AppSettings) -> ProviderConfig:
    try:
        return get_provider(_load_providers(), key, settings.default_provider)
    except ConfigurationError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None


async def _consume(
    request: GenerationRequest,
    provider: ProviderConfig,
    settings: GenerationSettings,
    display: GenerationDisplay | None,
) -> GenerationResult | None:
    """Run one generation; Ctrl-C cancels it instead of killing the process."""
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGINT, token.cancel, "interrupted from keyboard")
        handler_installed = True
    except (NotImplementedError, RuntimeError, ValueError):
        handler_installed = False

    result: GenerationResult | None = None
    try:
        async for update in start_generation(
            request, token, requestor=OpenAIStreamRequestor(provider), settings=settings,
        ):
            if display is not None:
                display.handle(update)
            if isinstance(update, GenerationResult):
                result = update
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)
    return result


# ── livepage generate ────────────────────────────────────────────


@app.command()
def generate(
    prompt: str = typer.Argument(..., help="Describe the page to build"),
    output: Path = typer.Option(
        Path("index.html"), "--output", "-o",
        help="Where to write the generated page",
    ),
    provider: str | None = typer.Option(
        None, "--provider", "-p",
        help="Provider key from the catalog (see `livepage providers`)",
    ),
    model: str | None = typer.Option(None, "--model", "-m", help="Override the model id"),
    temperature: float | None = typer.Option(None, "--temperature", "-t", min=0.0, max=2.0),
    max_tokens: int | None = typer.Option(None, "--max-tokens", min=1),
    html_file: Path | None = typer.Option(
        None, "--html-file",
        help="Existing page to iterate on",
        exists=True, dir_okay=False, readable=True,
    ),
    previous_prompt: str | None = typer.Option(
        None, "--previous-prompt",
        help="Prompt that produced --html-file",
    ),
    language: str | None = typer.Option(None, "--language", "-l", help="Page language, e.g. en, zh"),
    throttle: float | None = typer.Option(
        None, "--throttle", min=0.0,
        help="Seconds between preview refreshes (overrides defaults.toml)",
    ),
    live: bool = typer.Option(True, "--live/--no-live", help="Show the live preview panel"),
) -> None:
    """Generate a page and write it to a file. Ctrl-C keeps the partial page."""
    settings = _load_settings()
    provider_config = _resolve_provider(provider, settings)

    try:
        request = GenerationRequest(
            prompt=prompt,
            html=html_file.read_text(encoding="utf-8") if html_file else None,
            previous_prompt=previous_prompt,
            language=language,
            model_params=ModelParameters(
                model=model, temperature=temperature, max_tokens=max_tokens,
            ),
        )
        check_context_budget(request, provider_config)
    except ValidationError as e:
        console.print(f"[red]Invalid request:[/red] {e.errors()[0]['msg']}")
        raise typer.Exit(1) from None
    except ContextTooLongError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from None

    generation_settings = settings.generation
    if throttle is not None:
        generation_settings = generation_settings.model_copy(update={"throttle_interval": throttle})

    if live:
        with GenerationDisplay(console, provider_config.name) as display:
            result = asyncio.run(_consume(request, provider_config, generation_settings, display))
    else:
        with console.status(f"[bold blue]Generating with {provider_config.name}...", spinner="dots"):
            result = asyncio.run(_consume(request, provider_config, generation_settings, None))

    if result is None:
        console.print("[red]Generation ended without a result[/red]")
        raise typer.Exit(1)

    if result.html:
        output.write_text(result.html, encoding="utf-8")

    if result.status == StreamState.COMPLETED:
        if not result.html:
            console.print(f"[yellow]The model returned no page; nothing written to {output}[/yellow]")
            return
        console.print(Panel(
            f"[bold]Output:[/bold] {output}\n"
            f"[bold]Size:[/bold] {len(result.html):,} chars",
            title="[bold green]Page generated[/bold green]",
            border_style="green",
        ))
        if result.malformed_lines:
            console.print(f"[dim]{result.malformed_lines} malformed stream lines skipped[/dim]")
        return

    if result.status == StreamState.CANCELLED:
        if result.html:
            console.print(f"[yellow]Cancelled.[/yellow] Partial page written to {output}")
        else:
            console.print("[yellow]Cancelled before any HTML arrived.[/yellow]")
        raise typer.Exit(130)

    console.print(f"[red]Generation failed:[/red] {result.error}")
    if result.html:
        console.print(f"[dim]Partial page written to {output}[/dim]")
    raise typer.Exit(1)


# ── livepage optimize ────────────────────────────────────────────


@app.command()
def optimize(
    prompt: str = typer.Argument(..., help="Short page description to expand"),
    provider: str | None = typer.Option(None, "--provider", "-p"),
    language: str | None = typer.Option(None, "--language", "-l"),
) -> None:
    """Rewrite a short idea into a detailed generation prompt."""
    settings = _load_settings()
    provider_config = _resolve_provider(provider, settings)
    optimizer = PromptOptimizer(provider_config)

    try:
        with console.status("[bold blue]Optimizing prompt...", spinner="dots"):
            optimized = asyncio.run(optimizer.optimize(prompt, language=language))
    except (ConfigurationError, ProviderError, TimeoutError, ValueError) as e:
        console.print(f"[red]Failed:[/red] {e}")
        raise typer.Exit(1) from None

    console.print(Panel(optimized, title="[bold]Optimized prompt[/bold]", border_style="blue"))


# ── livepage providers ───────────────────────────────────────────


@app.command("providers")
def providers_list() -> None:
    """Show the provider catalog as a table."""
    settings = _load_settings()
    registry = _load_providers()

    table = Table(title="Providers", show_lines=True)
    table.add_column("Key", style="bold cyan")
    table.add_column("Name")
    table.add_column("Model", style="dim")
    table.add_column("Max Tokens", justify="right")
    table.add_column("API Key")

    configured = key_status(registry)
    for key, cfg in sorted(registry.items()):
        label = f"{key} (default)" if key == settings.default_provider else key
        status = "[green]set[/green]" if configured[key] else f"[red]{cfg.api_key_env}[/red]"
        table.add_row(label, cfg.name, cfg.resolved_model(), f"{cfg.max_tokens:,}", status)

    console.print(table)
    console.print(f"\n[dim]{len(registry)} providers configured[/dim]")


# ── livepage config ──────────────────────────────────────────────


@app.command("config")
def config_show() -> None:
    """Show the effective configuration."""
    settings = _load_settings()
    gen = settings.generation
    srv = settings.server

    table = Table(title="Configuration", show_header=False, show_lines=True)
    table.add_column("Setting", style="bold")
    table.add_column("Value")

    table.add_row("Default Provider", settings.default_provider)
    table.add_row("Throttle Interval", f"{gen.throttle_interval:g}s")
    table.add_row("Growth Threshold", f"{gen.growth_threshold} chars")
    table.add_row("Idle Timeout", f"{gen.idle_timeout:g}s")
    table.add_row("Stop On </html>", str(gen.stop_on_close_tag))
    table.add_row("Server", f"{srv.host}:{srv.port}")
    table.add_row("Anonymous Limit", f"{srv.max_requests_per_ip} per {srv.rate_limit_window}s")

    console.print(table)


# ── livepage serve ───────────────────────────────────────────────


@app.command()
def serve(
    host: str | None = typer.Option(None, "--host", help="Bind address"),
    port: int | None = typer.Option(None, "--port", help="Port (default from APP_PORT or defaults.toml)"),
) -> None:
    """Start the HTTP server that streams pages to the browser.

    Requires: pip install livepage[server]
    """
    try:
        from livepage.server.app import create_app
        import uvicorn
    except ImportError:
        console.print(
            "[red]The server requires extra dependencies.[/red]\n"
            "Install with: [bold]pip install livepage\\[server][/bold]"
        )
        raise typer.Exit(1) from None

    settings = _load_settings()
    bind_host = host or settings.server.host
    bind_port = port or settings.server.port

    console.print(Panel(
        f"[bold]URL:[/bold] http://localhost:{bind_port}\n"
        f"[bold]Default provider:[/bold] {settings.default_provider}",
        title="[bold blue]livepage server[/bold blue]",
        border_style="blue",
    ))

    try:
        uvicorn.run(create_app(settings), host=bind_host, port=bind_port, log_level="info")
    except KeyboardInterrupt:
        sys.exit(0)


# ── Entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    app()
