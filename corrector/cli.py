"""CLI interface for the mapping corrector."""

import asyncio
import json
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from corrector import __version__
from corrector.auth import AuthStrategyRegistry
from corrector.config.manager import ConfigManager
from corrector.config.settings import settings
from corrector.engine.schema import SchemaValidator
from corrector.logging_config import setup_logging
from corrector.mapping.transformer import Transformer
from corrector.service import ConnectorRequest, CorrectorService

console = Console()
stderr_console = Console(file=sys.stderr)

SECTIONS = {
    "request": "request_mapping",
    "response": "response_mapping",
    "error": "error_mapping",
}


def _load_document(path: Path | None) -> Any:
    if path is None:
        return None
    with open(path, "r", encoding="utf-8") as f:
        if path.suffix == ".json":
            return json.load(f)
        return yaml.safe_load(f)


def _parse_pairs(pairs: tuple[str, ...], option: str) -> dict[str, str]:
    parsed: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected key=value, got '{pair}'", param_hint=option)
        parsed[key.strip()] = value
    return parsed


@click.group()
@click.version_option(version=__version__)
@click.option('--log-level', default=None, help='Log level (defaults to CORRECTOR_LOG_LEVEL)')
@click.option(
    '--log-format',
    type=click.Choice(['rich', 'plain']),
    default=None,
    help='Log output format',
)
def cli(log_level: str | None, log_format: str | None) -> None:
    """Mapping Corrector - configuration-driven integration between source and target APIs"""
    setup_logging(log_level, log_format)


@cli.command()
@click.argument('connector_key')
@click.option(
    '--config', '-c',
    'config_path',
    type=click.Path(exists=True, path_type=Path),
    default=settings.config_path,
    help='Path to project config'
)
@click.option(
    '--payload', '-p',
    'payload_path',
    type=click.Path(exists=True, path_type=Path),
    help='JSON or YAML file holding the source payload'
)
@click.option('--auth-type', default=None, help='Call-time auth type override')
@click.option(
    '--auth-config',
    'auth_config_path',
    type=click.Path(exists=True, path_type=Path),
    help='JSON or YAML file holding the auth override config'
)
@click.option('--query', '-q', multiple=True, help='Query parameter as key=value')
@click.option('--header', '-H', multiple=True, help='Header as key=value')
@click.option('--operation', default=None, help='Operation tag recorded in the audit log')
def execute(
    connector_key: str,
    config_path: Path,
    payload_path: Path | None,
    auth_type: str | None,
    auth_config_path: Path | None,
    query: tuple[str, ...],
    header: tuple[str, ...],
    operation: str | None,
) -> None:
    """Run one correction and print the response envelope."""
    request = ConnectorRequest(
        connector_key=connector_key,
        operation=operation,
        auth_type=auth_type,
        auth_config=_load_document(auth_config_path),
        header_data=_parse_pairs(header, '--header'),
        query_params=_parse_pairs(query, '--query'),
        payload=_load_document(payload_path),
    )

    service = CorrectorService.from_config(str(config_path))
    envelope = asyncio.run(service.handle(request))
    console.print_json(data=envelope, default=str)

    if not envelope["success"]:
        stderr_console.print(f"[red]✗ {envelope['errorType']} ({envelope['statusCode']})[/red]")
        sys.exit(1)


@cli.command()
@click.option(
    '--config', '-c',
    'config_path',
    type=click.Path(exists=True, path_type=Path),
    default=settings.config_path,
    help='Path to project config'
)
def validate(config_path: Path) -> None:
    """Load every mapping and check its auth config and JSON schemas."""
    console.print(f"[blue]Validating mappings from {config_path}...[/blue]")

    try:
        manager = ConfigManager(str(config_path))
        mappings = manager.mappings
    except Exception as e:
        stderr_console.print(f"[red]✗ Loading mappings failed: {e}[/red]")
        raise click.Abort()

    registry = AuthStrategyRegistry()
    schema_validator = SchemaValidator()

    table = Table(title="Mappings")
    table.add_column("Id", style="cyan")
    table.add_column("Target")
    table.add_column("Auth")
    table.add_column("Steps", justify="right")
    table.add_column("Status")

    failures = 0
    seen: set[str] = set()
    for mapping in mappings.values():
        if mapping.id in seen:
            continue
        seen.add(mapping.id)

        problems = []
        if mapping.auth_config is not None:
            try:
                registry.validate(mapping.auth_config)
            except Exception as e:
                problems.append(str(e))
        for schema in (mapping.request_schema, mapping.response_schema):
            if schema:
                try:
                    schema_validator.compile(schema)
                except Exception as e:
                    problems.append(str(e))

        if problems:
            failures += 1
        table.add_row(
            mapping.id,
            f"{mapping.target_api.method} {mapping.target_api.url}",
            mapping.auth_config.auth_type if mapping.auth_config else "NONE",
            str(len(mapping.steps or [])),
            f"[red]{escape('; '.join(problems))}[/red]" if problems else "[green]ok[/green]",
        )

    for label, reason in manager.invalid_mappings:
        failures += 1
        stderr_console.print(f"[red]✗ {escape(label)}: {escape(reason)}[/red]")

    console.print(table)
    if failures:
        stderr_console.print(f"[red]✗ {failures} mapping(s) failed validation[/red]")
        raise click.Abort()
    console.print(f"[green]✓ {len(seen)} mapping(s) valid[/green]")


@cli.command()
@click.option(
    '--mapping', '-m',
    'mapping_path',
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help='Mapping definition file'
)
@click.option(
    '--payload', '-p',
    'payload_path',
    type=click.Path(exists=True, path_type=Path),
    required=True,
    help='JSON or YAML file to transform'
)
@click.option(
    '--section', '-s',
    type=click.Choice(list(SECTIONS)),
    default='request',
    help='Which transform of the mapping to apply'
)
def transform(mapping_path: Path, payload_path: Path, section: str) -> None:
    """Apply one of a mapping's transforms to a payload, without any network call."""
    try:
        mapping = ConfigManager.load_mapping_file(mapping_path)
    except Exception as e:
        stderr_console.print(f"[red]✗ {e}[/red]")
        raise click.Abort()

    spec = getattr(mapping, SECTIONS[section])
    errors: list = []
    result = Transformer().transform(_load_document(payload_path), spec, mapping.custom_transforms, errors)
    console.print_json(data=result, default=str)

    for error in errors:
        stderr_console.print(f"[yellow]! {error.target}: {error.message}[/yellow]")


if __name__ == "__main__":
    cli()
