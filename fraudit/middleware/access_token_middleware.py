import logging
from typing import Iterable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse, Response

ALLOWED_METHODS = "OPTIONS, GET, POST, PUT, DELETE"
ALLOWED_HEADERS = "Authorization, Content-Type, X-User-ID"


def error_response(status_code: int, data: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"status": "error", "data": data, "message": message},
    )


class AccessTokenMiddleware(BaseHTTPMiddleware):
    """
    Identifies the dashboard user behind each HTTP request.

    Outside ``ingress.excluded_paths`` a request needs
    ``Authorization: Bearer <token>`` and ``X-User-ID``. Both end up on
    ``request.state``. The token is issued by the fraud-risk backend and is
    only forwarded here; the backend rejects it if it is invalid.

    CORS preflights are answered directly for ``ingress.allowed_origins``.
    """

    def __init__(self, app):
        super().__init__(app)
        self.logger = logging.getLogger(__name__)

    async def dispatch(self, request: Request, call_next):
        ingress = request.app.state.config["ingress"]
        allowed_origins = ingress["allowed_origins"]

        if request.url.path in ingress["excluded_paths"]:
            return self.with_cors(request, await call_next(request), allowed_origins)

        if request.method == "OPTIONS":
            return self.preflight(request, allowed_origins)

        credentials = self.read_credentials(request)
        if credentials is None:
            self.logger.warning(
                f"Rejected {request.method} {request.url.path}: missing credentials"
            )
            return self.with_cors(
                request,
                error_response(401, "missing_authorization_headers", "Missing authorization headers"),
                allowed_origins,
            )

        request.state.user_id, request.state.access_token = credentials
        return self.with_cors(request, await call_next(request), allowed_origins)

    @staticmethod
    def read_credentials(request: Request) -> Optional[tuple]:
        user_id = (request.headers.get("X-User-ID") or "").strip()
        scheme, _, token = (request.headers.get("Authorization") or "").partition(" ")
        token = token.strip()
        if scheme != "Bearer" or not token or not user_id:
            return None
        return user_id, token

    def preflight(self, request: Request, allowed_origins: Iterable[str]) -> Response:
        origin = request.headers.get("origin")
        if origin not in allowed_origins:
            return error_response(403, "cors_policy_not_met", "CORS policy not met")

        response = JSONResponse(
            status_code=200,
            content={"status": "success", "data": "cors_preflight_ok", "message": "CORS preflight OK"},
        )
        response.headers["Access-Control-Allow-Methods"] = ALLOWED_METHODS
        response.headers["Access-Control-Allow-Headers"] = ALLOWED_HEADERS
        return self.with_cors(request, response, allowed_origins)

    @staticmethod
    def with_cors(request: Request, response: Response, allowed_origins: Iterable[str]) -> Response:
        origin = request.headers.get("origin")
        if origin and origin in allowed_origins:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
        return response
