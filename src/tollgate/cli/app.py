"""Main CLI application.

Click commands for tollgate: serve, mcp, tools, call.
"""

from __future__ import annotations

import asyncio
import json as json_mod
import sys
from typing import TYPE_CHECKING

import click
import httpx

from tollgate import __version__
from tollgate.config.loader import load_config
from tollgate.core.errors import ConfigError, ProtocolError, TollgateError

if TYPE_CHECKING:
    from tollgate.config.schema import TollgateConfig
    from tollgate.tools.registry import ToolRegistry


# ── Helpers ──────────────────────────────────────────────────────


def _error(msg: str) -> None:
    """Print an error message to stderr and exit."""
    click.echo(f"Error: {msg}", err=True)
    sys.exit(1)


def _load_config(config_path: str | None) -> TollgateConfig:
    """Load config with user-friendly error handling."""
    try:
        return load_config(path=config_path)
    except ConfigError as e:
        _error(str(e))
        raise  # unreachable, keeps mypy happy


def _setup(ctx: click.Context) -> TollgateConfig:
    from tollgate.core.logs import setup_logging

    config = _load_config(ctx.obj["config_path"])
    setup_logging(config.logging)
    return config


def _build_registry(config: TollgateConfig) -> ToolRegistry:
    from tollgate.runtime import build_registry

    try:
        return build_registry(config)
    except ConfigError as e:
        _error(str(e))
        raise


def _parse_args(pairs: tuple[str, ...]) -> dict[str, object]:
    """Parse ``key=value`` pairs; values are JSON when they parse as JSON."""
    arguments: dict[str, object] = {}
    for pair in pairs:
        key, sep, raw = pair.partition("=")
        if not sep or not key:
            msg = f"Invalid --arg {pair!r}; expected key=value"
            raise click.BadParameter(msg)
        try:
            arguments[key] = json_mod.loads(raw)
        except json_mod.JSONDecodeError:
            arguments[key] = raw
    return arguments


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="tollgate")
@click.option(
    "--config",
    "config_path",
    type=click.Path(exists=True),
    default=None,
    help="Path to config file.",
)
@click.pass_context
def cli(ctx: click.Context, config_path: str | None) -> None:
    """tollgate - payment-gated tool calls.

    Serve tools that ask for payment before they run.
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ── serve ────────────────────────────────────────────────────────


@cli.command()
@click.option("--host", default=None, help="Host to bind to (overrides config).")
@click.option(
    "--port", type=int, default=None, help="Port to bind to (overrides config)."
)
@click.pass_context
def serve(ctx: click.Context, host: str | None, port: int | None) -> None:
    """Start the JSON-RPC HTTP server with the demo tools."""
    import uvicorn

    from tollgate.api.app import create_app

    config = _setup(ctx)
    _build_registry(config)  # fail fast on missing recipient

    app = create_app(config)
    uvicorn.run(app, host=host or config.api.host, port=port or config.api.port)


# ── mcp ─────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def mcp(ctx: click.Context) -> None:
    """Start the MCP server on stdio with the demo tools."""
    config = _setup(ctx)
    asyncio.run(_mcp_async(config))


async def _mcp_async(config: TollgateConfig) -> None:
    from tollgate.mcp.server import run_server
    from tollgate.runtime import build_runtime

    runtime = await build_runtime(config, registry=_build_registry(config))
    try:
        await run_server(runtime.invoker)
    finally:
        await runtime.aclose()


# ── tools ────────────────────────────────────────────────────────


@cli.command()
@click.pass_context
def tools(ctx: click.Context) -> None:
    """List the demo tools and their prices."""
    from rich.console import Console
    from rich.table import Table

    from tollgate.client import format_payment_request
    from tollgate.payments.requirements import issue

    config = _setup(ctx)
    registry = _build_registry(config)

    table = Table(title="Tools")
    table.add_column("Name", style="bold")
    table.add_column("Description")
    table.add_column("Price")
    for tool in registry:
        price = "free"
        if tool.priced:
            requirement = issue(tool)
            price = format_payment_request(requirement, config.payments.decimals)
        table.add_row(tool.name, tool.description, price)
    Console().print(table)


# ── call ─────────────────────────────────────────────────────────


@cli.command()
@click.argument("tool")
@click.option("--arg", "args", multiple=True, help="Tool argument as key=value.")
@click.option("--url", default=None, help="Server URL (default: from config).")
@click.option(
    "--proof-json",
    default=None,
    help="Payment proof JSON: {signature, amount, payer, timestamp?}.",
)
@click.pass_context
def call(
    ctx: click.Context,
    tool: str,
    args: tuple[str, ...],
    url: str | None,
    proof_json: str | None,
) -> None:
    """Call TOOL on a running server and print the response."""
    from tollgate.client import TollgateAPIError

    config = _setup(ctx)
    arguments = _parse_args(args)
    base_url = url or f"http://{config.api.host}:{config.api.port}"
    try:
        asyncio.run(
            _call_async(base_url, tool, arguments, proof_json, config.payments.decimals)
        )
    except (TollgateError, TollgateAPIError) as e:
        _error(str(e))
    except httpx.HTTPError as e:
        _error(f"Cannot reach {base_url}: {e}")


async def _call_async(
    base_url: str,
    tool: str,
    arguments: dict[str, object],
    proof_json: str | None,
    decimals: int,
) -> None:
    from tollgate.client import TollgateClient, format_payment_request
    from tollgate.invocation.outcome import Failure, PaymentRequired, Success
    from tollgate.rpc.codec import decode_request

    proof = None
    if proof_json is not None:
        # Reuse the codec so the CLI accepts exactly what the server does.
        try:
            proof = decode_request(
                {
                    "id": "cli",
                    "toolName": tool,
                    "paymentProof": json_mod.loads(proof_json),
                }
            ).payment_proof
        except json_mod.JSONDecodeError as e:
            msg = f"Invalid --proof-json: {e}"
            raise ProtocolError(msg) from e

    async with TollgateClient(base_url) as client:
        outcome = await client.call(tool, arguments, proof)

    if isinstance(outcome, Success):
        for block in outcome.result.content:
            if block.type == "text":
                click.echo(block.text)
            else:
                click.echo(json_mod.dumps(block.data, indent=2))
    elif isinstance(outcome, PaymentRequired):
        click.echo("Payment required:")
        click.echo(format_payment_request(outcome.requirement, decimals))
        click.echo(
            "Pay, then retry with --proof-json '{\"signature\": ..., "
            "\"amount\": ..., \"payer\": ...}'"
        )
    elif isinstance(outcome, Failure):
        hint = " (retryable)" if outcome.retryable else ""
        _error(f"{outcome.kind.value}: {outcome.message}{hint}")
