from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
import logging
from kartproxy.core.logger import logs


class MapServiceError(Exception):
    """Base for every error that maps to a JSON error response."""
    status_code = 500
    error = "MapServiceError"

    def __init__(self, message: str = "", *, status_code: int | None = None):
        super().__init__(message)
        if status_code is not None:
            self.status_code = status_code
        self.message = message or self.error

    def to_response(self) -> JSONResponse:
        return JSONResponse({"error": self.message}, status_code=self.status_code)


class ConfigError(MapServiceError):
    """A required credential is missing or still a placeholder."""
    status_code = 500
    error = "ConfigError"


class AuthError(MapServiceError):
    """The OAuth2 credentials exchange was rejected."""
    status_code = 500
    error = "AuthError"


class InvalidArgument(MapServiceError):
    status_code = 400
    error = "InvalidArgument"


class UpstreamError(MapServiceError):
    """A downstream API answered with a non-success status."""
    status_code = 502
    error = "UpstreamError"

    def __init__(self, message: str = "", *, status_code: int | None = None, upstream_status: int | None = None):
        super().__init__(message, status_code=status_code)
        self.upstream_status = upstream_status


class InternalError(MapServiceError):
    status_code = 500
    error = "InternalError"


def register_error_handlers(app: FastAPI, headers: dict[str, str] | None = None):
    """
    `headers` are attached to the 500 fallback, which Starlette renders
    outside the HTTP middleware stack.
    """
    @app.exception_handler(MapServiceError)
    async def _map_service_error(request: Request, err: MapServiceError):
        upstream = ""
        if isinstance(err, UpstreamError) and err.upstream_status:
            upstream = f" (upstream status {err.upstream_status})"
        logs.log(logging.WARNING, f"{err.error} on {request.method} {request.url.path}: {err.message}{upstream}")
        return err.to_response()

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, err: RequestValidationError):
        fields = [".".join(str(p) for p in e.get("loc", ())) for e in err.errors()]
        return JSONResponse({"error": f"Invalid request: {', '.join(fields)}"}, status_code=400)

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, err: Exception):
        logs.log(logging.ERROR, f"Unhandled error on {request.method} {request.url.path}: {str(err)}", exc_info=True)
        return JSONResponse({"error": "Internal server error"}, status_code=500, headers=headers)
