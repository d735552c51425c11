from fastapi import FastAPI, Response, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
import os
import time
import uuid
import logging
from openai_proxy.routers.health import router as health_router
from openai_proxy.routers.openai import router as openai_router
from openai_proxy.metrics import (
    registry,
    CONTENT_TYPE_LATEST,
    generate_latest,
)
from openai_proxy.middleware.request_id import request_id_and_metrics_middleware
from openai_proxy.middleware.logging import request_logging_middleware
from openai_proxy.errors import BadRequestError, bad_request, classify_error
from openai_proxy.schemas.chat import APIError

app = FastAPI(title="openai-translation-proxy")
app.state.start_time = time.time()

# CORS configuration
raw_origins = os.getenv("CORS_ALLOW_ORIGINS", "*")
origins = [o.strip() for o in raw_origins.split(",") if o.strip()]
# When origins is wildcard, browsers disallow credentials with ACAO "*".
is_wildcard = len(origins) == 1 and origins[0] == "*"
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=not is_wildcard,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Register middlewares (order matters)
@app.middleware("http")
async def _request_id_and_metrics(request, call_next):
    return await request_id_and_metrics_middleware(request, call_next)


@app.middleware("http")
async def _request_logging(request, call_next):
    return await request_logging_middleware(request, call_next)


@app.exception_handler(BadRequestError)
async def bad_request_handler(request: Request, exc: BadRequestError):
    return JSONResponse(status_code=400, content=bad_request(exc).envelope())


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    details = "; ".join(
        "{}: {}".format(".".join(str(p) for p in err.get("loc", ())), err.get("msg"))
        for err in exc.errors()
    )
    err = APIError(
        code=400, message=details or "invalid request", type="invalid_request_error"
    )
    return JSONResponse(status_code=400, content=err.envelope())


# Global exception handler
@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    request_id = getattr(request.state, "request_id", str(uuid.uuid4()))
    # Log unhandled exceptions with request correlation for debugging
    logging.getLogger("openai_proxy.errors").exception(
        "unhandled_exception rid=%s path=%s method=%s",
        request_id,
        request.url.path,
        request.method,
    )
    status, err = classify_error(exc)
    return JSONResponse(
        status_code=status,
        content=err.envelope(),
        headers={"x-request-id": request_id},
    )


# Metrics endpoint
@app.get("/metrics")
async def metrics() -> Response:
    return Response(generate_latest(registry), media_type=CONTENT_TYPE_LATEST)


# Routers
app.include_router(health_router)
app.include_router(openai_router)
