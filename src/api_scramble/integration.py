"""Wire api-scramble into a FastAPI application.

    from fastapi import FastAPI
    from api_scramble.integration import setup_scramble

    app = FastAPI()
    setup_scramble(app)

The project is scanned once, when ``setup_scramble`` runs. The resulting
``ScrambleState`` is kept on ``app.state.scramble``.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from fastapi import FastAPI

from api_scramble.config import ScrambleOptions, load_options, resolve_options
from api_scramble.detect import detect_project_structure
from api_scramble.errors import EmitError
from api_scramble.generator.export import write_document
from api_scramble.generator.mock import MockGenerator
from api_scramble.generator.openapi import OpenApiTransformer
from api_scramble.generator.postman import PostmanCollectionGenerator
from api_scramble.routing import RouteTable
from api_scramble.scanner.base import ControllerDescriptor
from api_scramble.scanner.service import ScannerService
from api_scramble.server.docs import create_docs_router
from api_scramble.server.middleware import MockMiddleware

logger = logging.getLogger(__name__)


@dataclass
class ScrambleState:
    """Everything derived from one scan of the project."""

    options: ScrambleOptions
    controllers: list[ControllerDescriptor]
    route_table: RouteTable
    openapi: dict
    mock_generator: MockGenerator

    def postman_collection(self) -> dict:
        generator = PostmanCollectionGenerator(mock_generator=self.mock_generator)
        return generator.generate_collection(
            self.controllers,
            collection_name=self.options.api_title,
            base_url_value=self.options.base_url,
        )


def build_state(options: ScrambleOptions | None = None, root: Path | None = None) -> ScrambleState:
    """Detect, scan and generate; no application wiring."""
    structure = detect_project_structure(root)
    options = resolve_options(options or load_options(root=structure.root_path), structure)

    logger.info(f"Project root: {structure.root_path}")
    logger.info(f"Source path: {options.source_path}")

    controllers = ScannerService().scan_controllers(options.source_path)

    logger.info("Generating OpenAPI specification...")
    openapi = OpenApiTransformer(options.base_url).transform(
        controllers,
        title=options.api_title,
        version=options.api_version,
        base_url=options.base_url,
        description=options.api_description,
    )

    state = ScrambleState(
        options=options,
        controllers=controllers,
        route_table=RouteTable.from_controllers(controllers),
        openapi=openapi,
        mock_generator=MockGenerator(locale=options.locale, seed=options.seed),
    )

    if options.auto_export_postman:
        output = structure.root_path / options.postman_output_path
        try:
            write_document(state.postman_collection(), output)
            logger.info(f"Postman collection exported to {output}")
        except EmitError as e:
            logger.error(f"Postman export failed: {e}")

    return state


def setup_scramble(
    app: FastAPI,
    options: ScrambleOptions | None = None,
    root: Path | None = None,
) -> ScrambleState:
    """Scan the project, mount the docs routes and the mock middleware."""
    state = build_state(options, root)

    app.include_router(create_docs_router(state.options, state.openapi, state.postman_collection))
    if state.options.enable_mock:
        app.add_middleware(
            MockMiddleware,
            route_table=state.route_table,
            prefix=state.options.mock_prefix,
            mock_generator=state.mock_generator,
        )

    app.state.scramble = state
    _log_summary(state)
    return state


def _log_summary(state: ScrambleState) -> None:
    options = state.options
    base = options.base_url.rstrip("/")
    docs_path = "/" + options.path.strip("/")

    logger.info(f"api-scramble ready: {len(state.controllers)} controller(s), {len(state.route_table)} route(s)")
    logger.info(f"  Documentation: {base}{docs_path}")
    logger.info(f"  OpenAPI spec:  {base}{docs_path}-json")
    if options.enable_mock:
        logger.info(f"  Mock server:   {base}/{options.mock_prefix.strip('/')}")
    logger.info(f"  Theme: {options.theme}")
