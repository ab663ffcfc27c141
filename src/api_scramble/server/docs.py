"""Documentation endpoints: HTML viewer, OpenAPI JSON, Postman download."""

import html
import logging
from pathlib import Path
from string import Template
from typing import Callable

from fastapi import APIRouter
from fastapi.responses import HTMLResponse, JSONResponse, Response

from api_scramble.config import ScrambleOptions
from api_scramble.errors import EmitError
from api_scramble.generator.export import dump_document

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


def render_docs_page(options: ScrambleOptions, spec_url: str, postman_url: str) -> str:
    """Fill the viewer template with the configured theme."""
    template = Template((TEMPLATES_DIR / "docs.html").read_text(encoding="utf-8"))
    icon = options.custom_domain_icon
    return template.substitute(
        title=html.escape(options.api_title or "API Docs"),
        version=html.escape(options.api_version or ""),
        theme=options.theme,
        primary_color=html.escape(options.primary_color),
        icon_html=f'<img class="icon" src="{html.escape(icon)}" alt="">' if icon else "",
        spec_url=html.escape(spec_url),
        postman_url=html.escape(postman_url),
        mock_prefix=html.escape(options.mock_prefix if options.enable_mock else ""),
    )


def create_docs_router(
    options: ScrambleOptions,
    openapi: dict,
    postman_factory: Callable[[], dict],
) -> APIRouter:
    """Router serving ``{path}``, ``{path}/spec``, ``{path}-json`` and ``{path}/postman``."""
    router = APIRouter(include_in_schema=False)
    docs_path = "/" + options.path.strip("/")
    spec_url = f"{docs_path}-json"
    postman_url = f"{docs_path}/postman"

    @router.get(docs_path, response_class=HTMLResponse)
    def docs_page():
        return HTMLResponse(render_docs_page(options, spec_url, postman_url))

    @router.get(f"{docs_path}/spec")
    @router.get(spec_url)
    def openapi_spec():
        return _json_response(openapi, "OpenAPI document")

    @router.get(postman_url)
    def postman_collection():
        response = _json_response(postman_factory(), "Postman collection")
        if response.status_code == 200:
            response.headers["Content-Disposition"] = 'attachment; filename="collection.json"'
        return response

    return router


def _json_response(document: dict, label: str) -> Response:
    try:
        body = dump_document(document, "json")
    except EmitError as e:
        logger.error(f"Failed to serialize {label}: {e}")
        return JSONResponse(
            {"error": f"Failed to serialize {label}", "detail": str(e)},
            status_code=500,
        )
    return Response(content=body, media_type="application/json")
