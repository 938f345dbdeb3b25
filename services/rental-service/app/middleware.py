import json
import time
import uuid

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from .config import SERVICE_NAME

QUIET_PATHS = ("/health",)


def _log(request: Request, request_id: str, status: int, started: float, error: str | None):
    line = {
        "service": SERVICE_NAME,
        "request_id": request_id,
        "method": request.method,
        "path": request.url.path,
        "status": status,
        "duration_ms": round((time.perf_counter() - started) * 1000, 2),
    }
    if error:
        line["error"] = error
    print(json.dumps(line, separators=(",", ":")))


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """One JSON line per request; rental errors add their code under "error"."""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            _log(request, request_id, 500, started, type(e).__name__)
            raise

        response.headers["X-Request-Id"] = request_id
        if request.url.path not in QUIET_PATHS or response.status_code >= 400:
            _log(request, request_id, response.status_code, started, getattr(request.state, "error_code", None))
        return response
