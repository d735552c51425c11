import os
import time
import logging

LOG_REQUESTS = os.getenv("LOG_REQUESTS", "false").lower() in {"1", "true", "yes"}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
_logger = logging.getLogger("openai_proxy.request")
if LOG_REQUESTS:
    # Avoid reconfiguring global logging (let Uvicorn manage handlers/formatters).
    _logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))
    if not _logger.handlers:
        handler = logging.StreamHandler()
        handler.setLevel(_logger.level)
        formatter = logging.Formatter(
            fmt="%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        _logger.addHandler(handler)
        _logger.propagate = False


async def request_logging_middleware(request, call_next):
    if not LOG_REQUESTS:
        return await call_next(request)
    start = time.perf_counter()

    # Never log the Authorization value: it is the caller's backend key
    if _logger.isEnabledFor(logging.DEBUG):
        _logger.debug(
            "incoming rid=%s method=%s path=%s content_length=%s ua=%s has_bearer=%s",
            getattr(
                request.state, "request_id", request.headers.get("x-request-id") or "-"
            ),
            request.method,
            request.url.path,
            request.headers.get("content-length"),
            request.headers.get("user-agent", ""),
            request.headers.get("authorization", "").startswith("Bearer"),
        )

    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000.0
    rid = getattr(
        request.state, "request_id", request.headers.get("x-request-id") or "-"
    )
    _logger.info(
        "rid=%s method=%s path=%s status=%s duration_ms=%.2f client=%s streaming=%s",
        rid,
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
        request.client.host if request.client else "",
        response.headers.get("content-type", "").startswith("text/event-stream"),
    )
    return response
