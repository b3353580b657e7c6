"""Click CLI for running the webhook server and one-off deliveries."""

from __future__ import annotations

import asyncio
import json

import click
import uvicorn

from src.api.app import build_pipeline, configure_logging
from src.config import ConfigError, Settings
from src.webhook.models import IncomingRequest


@click.group()
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
@click.pass_context
def cli(ctx: click.Context, log_level: str | None) -> None:
    """Document delivery webhook CLI."""
    ctx.ensure_object(dict)
    ctx.obj["log_level"] = log_level


def _load_settings() -> Settings:
    try:
        return Settings.from_env()
    except ConfigError as exc:
        raise click.ClickException(str(exc)) from exc


@cli.command()
@click.option("--host", default="0.0.0.0", help="Interface to bind.")
@click.option("--port", type=int, default=None, help="Port to bind (defaults to PORT).")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int | None) -> None:
    """Run the webhook HTTP server."""
    settings = _load_settings()
    uvicorn.run(
        "src.api.app:create_app_from_env",
        factory=True,
        host=host,
        port=port or settings.port,
        log_level=(ctx.obj["log_level"] or settings.log_level).lower(),
    )


@cli.command()
@click.option("--name", required=True, help="Requester name used in the caption.")
@click.option("--phone", required=True, help="Requester phone number.")
@click.pass_context
def deliver(ctx: click.Context, name: str, phone: str) -> None:
    """Run the delivery pipeline once and print the outcome as JSON."""
    settings = _load_settings()
    configure_logging(ctx.obj["log_level"] or settings.log_level)
    pipeline = build_pipeline(settings)
    outcome = asyncio.run(pipeline.run(IncomingRequest(name=name, raw_phone=phone)))
    click.echo(json.dumps(
        {"status_code": outcome.status_code, **outcome.to_body()}, indent=2,
    ))
    if outcome.status_code != 200:
        ctx.exit(1)
