"""Mock middleware that answers requests under a prefix with generated data."""

import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from api_scramble.generator.mock import MockGenerator
from api_scramble.routing import RouteTable

logger = logging.getLogger(__name__)

NOT_FOUND_MESSAGE = "Route not found in scanned controllers"


class MockMiddleware(BaseHTTPMiddleware):
    """Serves ``<prefix>/<route>`` from the scanned route table.

    Requests outside the prefix are passed on untouched.
    """

    def __init__(
        self,
        app,
        route_table: RouteTable,
        prefix: str = "/scramble-mock",
        mock_generator: MockGenerator | None = None,
    ):
        super().__init__(app)
        self.route_table = route_table
        self.prefix = "/" + prefix.strip("/")
        self.mock_generator = mock_generator or MockGenerator()

    async def dispatch(self, request: Request, call_next) -> Response:
        path = request.url.path
        if not path.startswith(self.prefix + "/"):
            return await call_next(request)

        api_path = path[len(self.prefix):]
        match = self.route_table.find(request.method, api_path)
        if match is None:
            logger.info(f"Mock miss: {request.method} {api_path}")
            return JSONResponse({"error": NOT_FOUND_MESSAGE}, status_code=404)

        status = match.status_code
        logger.debug(f"Mock hit: {request.method} {api_path} -> {match.controller.name}.{match.method.name}")
        if status == 204:
            return Response(status_code=204)
        return JSONResponse(self.mock_generator.generate(match.method.return_type), status_code=status)
