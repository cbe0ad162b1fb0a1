"""CLI tools: hookrelay tiers, encrypt-header, validate-payload, init-db."""

from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any

import typer
from rich.console import Console
from rich.table import Table

from hookrelay.config import ConfigLoadError, HookRelayConfig, load_config
from hookrelay.db import ConfigurationError, create_all, create_engine
from hookrelay.pipeline.credentials import HeaderCipher, SecretDecryptionError
from hookrelay.pipeline.documents import definition_from_mapping
from hookrelay.pipeline.tiers import TierPolicy
from hookrelay.pipeline.transformer import PayloadTransformer
from hookrelay.pipeline.validator import FieldValidator

app = typer.Typer(
    name="hookrelay",
    help="HookRelay - configured outbound webhook execution.",
    no_args_is_help=True,
)

_console = Console()


def _load(config_path: str) -> HookRelayConfig:
    try:
        cfg = load_config(config_path or None)
    except ConfigLoadError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(2) from exc
    logging.basicConfig(level=cfg.logging.level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    return cfg


def _read_json(path: Path, label: str) -> Any:
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except OSError as exc:
        typer.echo(f"Error: cannot read {label} file {path}: {exc}", err=True)
        raise typer.Exit(2) from exc
    except json.JSONDecodeError as exc:
        typer.echo(f"Error: {label} file {path} is not valid JSON: {exc.msg}", err=True)
        raise typer.Exit(2) from exc


@app.command("tiers")
def tiers_command(
    config: str = typer.Option("", "--config", help="Optional config file path"),
) -> None:
    """Show the configured subscription tier limits."""
    policy = TierPolicy(_load(config).tier_limits())
    table = Table(title="Subscription tiers")
    table.add_column("Tier")
    table.add_column("Max webhooks", justify="right")
    table.add_column("Max timeout (s)", justify="right")
    table.add_column("Max conversations", justify="right")
    for name, limits in policy.tiers.items():
        table.add_row(
            name,
            str(limits.max_webhooks),
            str(limits.max_timeout_seconds),
            str(limits.max_conversations),
        )
    _console.print(table)


@app.command("encrypt-header")
def encrypt_header_command(
    value: str = typer.Argument(..., help="Plaintext header value"),
    config: str = typer.Option("", "--config", help="Optional config file path"),
) -> None:
    """Encrypt a header value for storage in secureHeaders."""
    cipher = HeaderCipher(_load(config).encryption_key())
    try:
        typer.echo(cipher.encrypt(value))
    except SecretDecryptionError as exc:
        typer.echo(f"Error: {exc}. Set HOOKRELAY_SECURITY__ENCRYPTION_KEY.", err=True)
        raise typer.Exit(1) from exc


@app.command("validate-payload")
def validate_payload_command(
    definition: Path = typer.Argument(..., help="Webhook definition JSON document"),
    payload: Path = typer.Argument(..., help="Caller payload JSON object"),
    config: str = typer.Option("", "--config", help="Optional config file path"),
) -> None:
    """Render a payload through a webhook definition and validate its fields."""
    _load(config)
    document = _read_json(definition, "definition")
    values = _read_json(payload, "payload")
    if not isinstance(document, dict) or not isinstance(values, dict):
        typer.echo("Error: definition and payload must both be JSON objects", err=True)
        raise typer.Exit(2)
    try:
        webhook = definition_from_mapping(document)
    except ValueError as exc:
        typer.echo(f"Error: invalid definition: {exc}", err=True)
        raise typer.Exit(2) from exc

    rendered, error = PayloadTransformer().build_payload(webhook.body_template, webhook.fields, values)
    if error is not None:
        typer.echo(f"Error: {error.message}", err=True)
        raise typer.Exit(1)

    results = FieldValidator().validate(rendered, webhook.fields)
    _console.print_json(json.dumps(rendered))
    messages = FieldValidator.errors(results)
    if messages:
        for message in messages:
            _console.print(f"[red]x[/red] {message}")
        raise typer.Exit(1)
    _console.print(f"[green]ok[/green] {len(results)} field(s) valid")


@app.command("init-db")
def init_db_command(
    database_url: str = typer.Option("", "--database-url", help="Overrides database.url and HOOKRELAY_DATABASE_URL"),
    config: str = typer.Option("", "--config", help="Optional config file path"),
) -> None:
    """Create the webhook, workspace and execution tables."""
    cfg = _load(config)
    try:
        engine = create_engine(database_url or cfg.database.url or None)
    except ConfigurationError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(2) from exc

    async def _run() -> None:
        try:
            await create_all(engine)
        finally:
            await engine.dispose()

    asyncio.run(_run())
    typer.echo("Tables created.")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
