"""CLI entry point for api-scramble."""

import json
import logging
from pathlib import Path

import click

from api_scramble.config import ScrambleOptions, load_options
from api_scramble.detect import detect_base_url, get_app_name, get_app_version
from api_scramble.errors import ConfigError, EmitError
from api_scramble.generator.export import FORMATS, write_document
from api_scramble.generator.mock import MockGenerator
from api_scramble.generator.openapi import OpenApiTransformer
from api_scramble.generator.postman import PostmanCollectionGenerator
from api_scramble.routing import RouteTable
from api_scramble.scanner.base import ControllerDescriptor
from api_scramble.scanner.service import ScannerService
from api_scramble.server.middleware import NOT_FOUND_MESSAGE


def _configure_logging(verbose: int) -> None:
    level = {0: logging.WARNING, 1: logging.INFO}.get(verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger("api_scramble").setLevel(level)


def _scan(source_path: Path) -> list[ControllerDescriptor]:
    click.echo(f"Scanning controllers in {source_path}...")
    controllers = ScannerService().scan_controllers(source_path)
    method_count = sum(len(c.methods) for c in controllers)
    click.echo(f"Found {len(controllers)} controllers with {method_count} methods.")
    return controllers


def _write(document: dict, output: Path, fmt: str) -> None:
    try:
        write_document(document, output, fmt)
    except EmitError as e:
        raise click.ClickException(str(e)) from e


def _mock_generator(options: ScrambleOptions, seed: int | None = None) -> MockGenerator:
    return MockGenerator(locale=options.locale, seed=seed if seed is not None else options.seed)


@click.group()
@click.option("--config", "config_path", default=None, type=click.Path(path_type=Path), help="YAML options file (default: scramble.yaml).")
@click.option("-v", "--verbose", count=True, help="-v for progress logs, -vv for debug logs.")
@click.pass_context
def main(ctx: click.Context, config_path: Path | None, verbose: int):
    """api-scramble: OpenAPI, Postman and mock data from FastAPI sources."""
    _configure_logging(verbose)
    try:
        ctx.obj = load_options(config_path)
    except ConfigError as e:
        raise click.ClickException(str(e)) from e


@main.command()
@click.argument("source_path", type=click.Path(path_type=Path))
@click.option("-o", "--output", default="collection.json", type=click.Path(path_type=Path), help="Output file path.")
@click.option("-b", "--base-url", "base_url", default="{{baseUrl}}", help="Base URL used in request URLs.")
@click.option("--name", default=None, help="Collection name.")
@click.pass_obj
def generate(options: ScrambleOptions, source_path: Path, output: Path, base_url: str, name: str | None):
    """Generate a Postman collection from a FastAPI project."""
    controllers = _scan(source_path)
    if not controllers:
        click.echo("No controllers found.")
        return

    click.echo("Generating Postman collection...")
    generator = PostmanCollectionGenerator(base_url, _mock_generator(options))
    collection = generator.generate_collection(
        controllers,
        collection_name=name or options.api_title or get_app_name(),
        base_url_value=options.base_url or detect_base_url(),
    )
    _write(collection, output, "json")
    click.echo(f"Postman collection saved to {output}")


@main.command()
@click.argument("source_path", type=click.Path(path_type=Path))
@click.option("-o", "--output", default="openapi.json", type=click.Path(path_type=Path), help="Output file path.")
@click.option("--format", "fmt", default="json", type=click.Choice(FORMATS), help="Output format.")
@click.option("--base-url", default=None, help="Server URL for the document.")
@click.option("--title", default=None, help="API title.")
@click.option("--api-version", default=None, help="API version.")
@click.pass_obj
def openapi(
    options: ScrambleOptions,
    source_path: Path,
    output: Path,
    fmt: str,
    base_url: str | None,
    title: str | None,
    api_version: str | None,
):
    """Generate an OpenAPI 3.0 document from a FastAPI project."""
    controllers = _scan(source_path)

    base_url = base_url or options.base_url or detect_base_url()
    click.echo("Generating OpenAPI document...")
    document = OpenApiTransformer(base_url).transform(
        controllers,
        title=title or options.api_title or get_app_name(),
        version=api_version or options.api_version or get_app_version(),
        base_url=base_url,
        description=options.api_description,
    )
    _write(document, output, fmt)
    click.echo(f"OpenAPI document saved to {output}")


@main.command()
@click.argument("source_path", type=click.Path(path_type=Path))
def routes(source_path: Path):
    """List every scanned route."""
    table = RouteTable.from_controllers(_scan(source_path))
    for route in table:
        click.echo(f"{route.method.http_method:<7} {route.path}  ->  {route.controller.name}.{route.method.name}")


@main.command()
@click.argument("source_path", type=click.Path(path_type=Path))
@click.argument("method")
@click.argument("path")
@click.option("--seed", default=None, type=int, help="Seed for reproducible mock data.")
@click.pass_obj
def mock(options: ScrambleOptions, source_path: Path, method: str, path: str, seed: int | None):
    """Print the mock response for METHOD PATH, e.g. ``GET /users/1``."""
    table = RouteTable.from_controllers(_scan(source_path))
    match = table.find(method, path)
    if match is None:
        raise click.ClickException(f"{NOT_FOUND_MESSAGE}: {method.upper()} {path}")

    status = match.status_code
    click.echo(f"{status} {match.controller.name}.{match.method.name}")
    if status == 204:
        return
    data = _mock_generator(options, seed).generate(match.method.return_type)
    click.echo(json.dumps(data, indent=2, ensure_ascii=False))
