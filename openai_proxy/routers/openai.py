from contextlib import aclosing
from fastapi import APIRouter, Header, Depends, Request
from fastapi.responses import JSONResponse, StreamingResponse
import logging
import time
from typing import Optional

from openai_proxy.adapter.request import (
    to_backend_chat_request,
    to_backend_embedding_request,
)
from openai_proxy.adapter.response import to_completion_response
from openai_proxy.adapter.stream import StreamRelay
from openai_proxy.auth import extract_bearer_token
from openai_proxy.errors import AuthorizationError, classify_error
from openai_proxy.metrics import observe_backend_call
from openai_proxy.model_mapping import LISTED_MODELS, ModelMapping, get_model_mapping
from openai_proxy.providers.base import BackendProvider
from openai_proxy.providers.registry import resolve_provider
from openai_proxy.schemas.chat import ChatCompletionRequest, ModelCard, ModelList
from openai_proxy.schemas.embedding import EmbeddingRequest

router = APIRouter(tags=["openai"])
logger = logging.getLogger("openai_proxy.api")

MODEL_CREATED_AT = 1686935002
WELCOME_MESSAGE = (
    "Welcome to the OpenAI API! Documentation is available at "
    "https://platform.openai.com/docs/api-reference"
)

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "Transfer-Encoding": "chunked",
    "X-Accel-Buffering": "no",
}


def get_provider_override() -> Optional[BackendProvider]:
    """Dependency hook for tests to inject a provider instance.

    In production this returns None so the provider is built from
    BACKEND_PROVIDER with the caller's forwarded key.
    """
    return None


def error_response(exc: Exception, request: Optional[Request] = None) -> JSONResponse:
    rid = getattr(request.state, "request_id", "-") if request else "-"
    logger.warning("generate content error rid=%s: %s", rid, exc)
    status, err = classify_error(exc)
    return JSONResponse(status_code=status, content=err.envelope())


@router.get("/")
async def index():
    return JSONResponse(status_code=421, content={"message": WELCOME_MESSAGE})


@router.get("/v1/models", response_model=ModelList)
async def list_models(mapping: ModelMapping = Depends(get_model_mapping)):
    ids = []
    for model in LISTED_MODELS:
        model_id = mapping.listed_id(model)
        if model_id not in ids:
            ids.append(model_id)
    return ModelList(
        data=[
            ModelCard(id=model_id, created=MODEL_CREATED_AT, owned_by=mapping.owner)
            for model_id in ids
        ]
    )


@router.get("/v1/models/{model:path}", response_model=ModelCard)
async def retrieve_model(model: str, mapping: ModelMapping = Depends(get_model_mapping)):
    return ModelCard(id=model, created=MODEL_CREATED_AT, owned_by=mapping.owner)


@router.post("/v1/chat/completions")
async def chat_completions(
    body: ChatCompletionRequest,
    http_request: Request,
    authorization: Optional[str] = Header(None),
    provider: Optional[BackendProvider] = Depends(get_provider_override),
    mapping: ModelMapping = Depends(get_model_mapping),
):
    """Translate an OpenAI chat request, call the backend, translate back."""
    try:
        api_key = extract_bearer_token(authorization)
    except AuthorizationError as exc:
        return error_response(exc, http_request)

    backend_request = to_backend_chat_request(body, mapping)
    chosen_provider = provider or resolve_provider(api_key)
    provider_name = chosen_provider.name
    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "chat model=%s backend_model=%s provider=%s messages=%d stream=%s",
            body.model,
            backend_request.model,
            provider_name,
            len(backend_request.messages),
            body.stream,
        )

    start = time.perf_counter()
    if not body.stream:
        outcome = "success"
        try:
            resp = await chosen_provider.generate_content(backend_request)
        except Exception as exc:
            outcome = "error"
            return error_response(exc, http_request)
        finally:
            observe_backend_call(
                provider_name, "chat", outcome, time.perf_counter() - start
            )
        return to_completion_response(backend_request.model, resp, mapping)

    try:
        stream = await chosen_provider.stream_generate_content(backend_request)
    except Exception as exc:
        observe_backend_call(
            provider_name, "chat_stream", "error", time.perf_counter() - start
        )
        return error_response(exc, http_request)

    relay = StreamRelay(stream, backend_request.model, mapping)

    async def event_gen():
        # Stays "cancelled" if the client goes away before the relay closes
        outcome = "cancelled"
        try:
            async with aclosing(relay.sse()) as frames:
                async for frame in frames:
                    yield frame
            outcome = "error" if relay.failed else "success"
        finally:
            observe_backend_call(
                provider_name, "chat_stream", outcome, time.perf_counter() - start
            )

    return StreamingResponse(
        event_gen(), media_type="text/event-stream", headers=SSE_HEADERS
    )


@router.post("/v1/embeddings")
async def embeddings(
    body: EmbeddingRequest,
    http_request: Request,
    authorization: Optional[str] = Header(None),
    provider: Optional[BackendProvider] = Depends(get_provider_override),
):
    try:
        api_key = extract_bearer_token(authorization)
    except AuthorizationError as exc:
        return error_response(exc, http_request)

    backend_request = to_backend_embedding_request(body)
    chosen_provider = provider or resolve_provider(api_key)
    provider_name = chosen_provider.name

    start = time.perf_counter()
    outcome = "success"
    try:
        return await chosen_provider.create_embeddings(backend_request)
    except Exception as exc:
        outcome = "error"
        return error_response(exc, http_request)
    finally:
        observe_backend_call(
            provider_name, "embedding", outcome, time.perf_counter() - start
        )
