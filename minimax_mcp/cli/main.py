"""
minimax-mcp CLI - MiniMax tools from the command line.

Usage:
    minimax-mcp search "quantum computing latest"
    minimax-mcp understand ./screenshot.png
    minimax-mcp config        # Show current config
    minimax-mcp init          # Create default config
"""

import logging
import sys
from typing import Any, Callable, Dict, Optional

import click
from rich.console import Console
from rich.text import Text

from minimax_mcp import __version__
from minimax_mcp.mcp.formatter import format_tool_output
from minimax_mcp.mcp.session import MCPTransportError, MiniMaxSession
from minimax_mcp.validation.config import (
    API_KEY_URL,
    ConfigError,
    MiniMaxConfig,
    ensure_default_config,
    load_config,
    redact_sensitive_data,
    validate_config,
)

console = Console()
err_console = Console(stderr=True)

ENV_HELP = f"""
\b
Environment Variables:
  MINIMAX_API_KEY            Required. Get from {API_KEY_URL}
  MINIMAX_API_HOST           Optional. Default: https://api.minimax.io
  MINIMAX_MCP_BASE_PATH      Optional. Local output directory
  MINIMAX_API_RESOURCE_MODE  Optional. "url" or "local"
"""


def _fail(message: str) -> None:
    err_console.print(Text(message, style="red"))
    sys.exit(1)


def _load(ctx: click.Context) -> MiniMaxConfig:
    try:
        return load_config(ctx.obj.get("config_path"))
    except ConfigError as e:
        _fail(str(e))


def _run_tool(
    ctx: click.Context,
    status: str,
    invoke: Callable[[MiniMaxSession], Dict[str, Any]],
) -> None:
    """Validate config, run one tool call in a fresh session, print the result."""
    config = _load(ctx)
    try:
        validate_config(config)
    except ConfigError as e:
        _fail(str(e))

    session = ctx.obj["session_factory"](config)
    try:
        with console.status(f"[bold blue]{status}[/bold blue]"):
            result = invoke(session)
    except MCPTransportError as e:
        _fail(f"MiniMax MCP error: {e}")
    except ValueError as e:
        _fail(f"Invalid parameters: {e}")
    finally:
        session.disconnect()

    formatted = format_tool_output(result, max_bytes=config.max_bytes, max_lines=config.max_lines)
    console.print(Text(formatted.text))

    if formatted.details.truncated and formatted.details.temp_file:
        console.print(Text(f"\n[Full output saved to: {formatted.details.temp_file}]", style="dim"))

    if result.get("isError"):
        sys.exit(1)


@click.group(epilog=ENV_HELP)
@click.version_option(__version__, "--version", "-v", prog_name="minimax-mcp")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="Path to JSON config file")
@click.option("--verbose", is_flag=True, help="Log MCP traffic and server output")
@click.pass_context
def cli(ctx: click.Context, config_path: Optional[str], verbose: bool) -> None:
    """
    minimax-mcp - MiniMax web search and image understanding.

    \b
    Examples:
        minimax-mcp search "Rust async/await patterns"
        minimax-mcp search "OpenAI GPT-5 rumors" --num-results 10
        minimax-mcp understand ./error-screenshot.png
        minimax-mcp understand ./chart.png --prompt "What trends does this show?"
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    ctx.ensure_object(dict)
    ctx.obj.setdefault("session_factory", MiniMaxSession)
    ctx.obj["config_path"] = config_path


@cli.command()
@click.argument("query", nargs=-1, required=True)
@click.option("--num-results", "-n", type=click.IntRange(1, 10), help="Number of results (1-10)")
@click.option("--recency-days", type=click.IntRange(min=1), help="Limit results to recent days")
@click.pass_context
def search(ctx: click.Context, query: tuple, num_results: Optional[int], recency_days: Optional[int]) -> None:
    """Perform a web search."""
    query_str = " ".join(query)
    console.print(Text(f'Searching: "{query_str}"...\n', style="dim"))
    _run_tool(
        ctx,
        "Searching...",
        lambda session: session.web_search(query_str, num_results=num_results, recency_days=recency_days),
    )


@cli.command()
@click.argument("image_path")
@click.option("--prompt", "-p", help="Question to guide the image analysis")
@click.pass_context
def understand(ctx: click.Context, image_path: str, prompt: Optional[str]) -> None:
    """Analyze an image (local path or URL)."""
    console.print(Text(f"Analyzing: {image_path}...\n", style="dim"))
    _run_tool(
        ctx,
        "Analyzing...",
        lambda session: session.understand_image(image_path, prompt=prompt),
    )


cli.add_command(understand, name="image")


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the current configuration (API key redacted)."""
    config = _load(ctx)
    console.print("[bold]Current configuration:[/bold]")
    console.print_json(data=redact_sensitive_data(config))


@cli.command()
def init() -> None:
    """Create the default config file."""
    path = ensure_default_config()
    console.print(Text(f"Config file: {path}", style="green"))


def main() -> None:
    """Entry point."""
    cli()


if __name__ == "__main__":
    main()
