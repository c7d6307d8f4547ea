"""
Observability middleware and logging setup.

Adds correlation IDs and structured logging context to requests.
"""

import time
import uuid
import logging
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

# Configure structured logger
logger = logging.getLogger("parceltrack")


def configure_logging(level: str = "INFO") -> None:
    """
    Attach a stream handler to the application logger.

    Safe to call more than once; the handler is only added the first time.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
    """
    logger.setLevel(level.upper())
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s [%(name)s] %(message)s")
        )
        logger.addHandler(handler)


# Path parameters worth carrying into the request log
TRACKED_PARAMS = ("delivery_id", "courier_id", "member_id")

MUTATING_METHODS = frozenset({"POST", "PUT", "PATCH", "DELETE"})


class ObservabilityMiddleware(BaseHTTPMiddleware):
    """
    Per-request correlation ID, timing and a structured log line.

    The log line names the delivery, courier or member the route acted on
    and, for mutating requests, whether the record files failed to save.
    """

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get("X-Correlation-ID") or str(uuid.uuid4())
        started = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - started) * 1000
        response.headers["X-Correlation-ID"] = correlation_id
        response.headers["X-Process-Time"] = f"{duration_ms:.2f}"

        # path_params is filled in by the router once the route matched
        path_params = request.scope.get("path_params") or {}
        log_data = {
            "correlation_id": correlation_id,
            "method": request.method,
            "path": request.url.path,
            "status_code": response.status_code,
            "duration_ms": round(duration_ms, 2),
        }
        log_data.update({k: path_params[k] for k in TRACKED_PARAMS if k in path_params})

        persistence_error = None
        if request.method in MUTATING_METHODS:
            service = getattr(request.app.state, "delivery_service", None)
            persistence_error = getattr(service, "last_persistence_error", None)
            if persistence_error:
                log_data["persistence_error"] = persistence_error

        if response.status_code >= 500:
            logger.error("Request failed", extra=log_data)
        elif response.status_code >= 400:
            logger.warning("Request rejected", extra=log_data)
        elif persistence_error:
            logger.warning("Request applied, records not saved", extra=log_data)
        else:
            logger.info("Request handled", extra=log_data)

        return response
