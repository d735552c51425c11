from typing import List, Optional, Union

from openai_proxy.errors import BadRequestError, UnsupportedModelError
from openai_proxy.model_mapping import TEXT_EMBEDDING_BGE_M3, ModelMapping
from openai_proxy.schemas.backend import (
    BackendChatRequest,
    BackendEmbeddingRequest,
    BackendMessage,
    GenerationConfig,
)
from openai_proxy.schemas.chat import ChatCompletionRequest
from openai_proxy.schemas.embedding import EmbeddingRequest

ALLOWED_ROLES = {"system", "user", "assistant"}


def validate_chat_request(request: ChatCompletionRequest) -> None:
    if not request.messages:
        raise BadRequestError("Messages must not be empty")
    for msg in request.messages:
        if msg.role not in ALLOWED_ROLES:
            raise BadRequestError(f"Invalid role: {msg.role}")
    if request.temperature is not None and not (0.0 <= request.temperature <= 2.0):
        raise BadRequestError("temperature must be between 0 and 2")
    if request.top_p is not None and not (0.0 <= request.top_p <= 1.0):
        raise BadRequestError("top_p must be between 0 and 1")
    if request.max_tokens is not None and request.max_tokens <= 0:
        raise BadRequestError("max_tokens must be positive")
    if request.n is not None and request.n <= 0:
        raise BadRequestError("n must be positive")


def _stop_sequences(stop: Optional[Union[str, List[str]]]) -> Optional[List[str]]:
    if stop is None:
        return None
    if isinstance(stop, str):
        return [stop]
    return list(stop) or None


def to_backend_messages(request: ChatCompletionRequest) -> List[BackendMessage]:
    """Translate chat messages one-to-one, role and content untouched."""
    if request.model == TEXT_EMBEDDING_BGE_M3:
        raise UnsupportedModelError(
            "Chat Completion is not supported for embedding model"
        )
    return [BackendMessage(role=m.role, content=m.content) for m in request.messages]


def to_backend_chat_request(
    request: ChatCompletionRequest, mapping: ModelMapping
) -> BackendChatRequest:
    validate_chat_request(request)
    messages = to_backend_messages(request)
    return BackendChatRequest(
        model=mapping.to_backend(request.model),
        messages=messages,
        generation_config=GenerationConfig(
            max_output_tokens=request.max_tokens,
            temperature=request.temperature,
            top_p=request.top_p,
            stop_sequences=_stop_sequences(request.stop),
            candidate_count=request.n,
        ),
    )


def to_backend_embedding_request(request: EmbeddingRequest) -> BackendEmbeddingRequest:
    if request.model != TEXT_EMBEDDING_BGE_M3:
        raise UnsupportedModelError(
            f"Embedding is not supported for model {request.model}"
        )
    inputs = request.inputs()
    if not inputs:
        raise BadRequestError("Input must not be empty")
    return BackendEmbeddingRequest(
        model=request.model,
        input=inputs,
        encoding_format=request.encoding_format,
    )
