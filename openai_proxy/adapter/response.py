import logging
import time
import uuid
from typing import Optional

from openai_proxy.model_mapping import ModelMapping
from openai_proxy.schemas.backend import FinishReason, GenerateContentResponse
from openai_proxy.schemas.chat import (
    ChatCompletionChunk,
    ChatCompletionResponse,
    Choice,
    ChunkChoice,
    Delta,
    Message,
    Usage,
)

logger = logging.getLogger("openai_proxy.adapter")

FINISH_REASON_STOP = "stop"
FINISH_REASON_LENGTH = "length"
FINISH_REASON_CONTENT_FILTER = "content_filter"


def convert_finish_reason(reason: Optional[FinishReason]) -> str:
    # Lossy: both SAFETY and RECITATION surface as content_filter
    if reason == FinishReason.MAX_TOKENS:
        return FINISH_REASON_LENGTH
    if reason in (FinishReason.SAFETY, FinishReason.RECITATION):
        return FINISH_REASON_CONTENT_FILTER
    return FINISH_REASON_STOP


def new_completion_id() -> str:
    return f"chatcmpl-{uuid.uuid4()}"


def to_completion_response(
    backend_model: str,
    resp: GenerateContentResponse,
    mapping: ModelMapping,
) -> ChatCompletionResponse:
    choices = [
        Choice(
            index=i,
            message=Message(role="assistant", content=candidate.first_text()),
            finish_reason=convert_finish_reason(candidate.finish_reason),
        )
        for i, candidate in enumerate(resp.candidates)
    ]
    usage = Usage()
    if resp.usage_metadata is not None:
        usage = Usage(
            prompt_tokens=resp.usage_metadata.prompt_token_count,
            completion_tokens=resp.usage_metadata.candidates_token_count,
            total_tokens=resp.usage_metadata.total_token_count,
        )
    return ChatCompletionResponse(
        id=new_completion_id(),
        created=int(time.time()),
        model=mapping.to_client(backend_model),
        choices=choices,
        usage=usage,
    )


def to_completion_chunk(
    backend_model: str,
    resp: GenerateContentResponse,
    response_id: str,
    created: int,
    mapping: ModelMapping,
) -> ChatCompletionChunk:
    choices = []
    for i, candidate in enumerate(resp.candidates):
        choice = ChunkChoice(index=i, delta=Delta(content=candidate.first_text()))
        if candidate.is_finished():
            logger.debug("backend finish reason %s", candidate.finish_reason.value)
            choice.finish_reason = convert_finish_reason(candidate.finish_reason)
        choices.append(choice)
    return ChatCompletionChunk(
        id=f"chatcmpl-{response_id}",
        created=created,
        model=mapping.to_client(backend_model),
        choices=choices,
    )
