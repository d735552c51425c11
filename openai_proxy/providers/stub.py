from typing import AsyncIterator

from openai_proxy.providers.base import BackendProvider
from openai_proxy.schemas.backend import (
    BackendChatRequest,
    BackendEmbeddingRequest,
    Candidate,
    Content,
    FinishReason,
    GenerateContentResponse,
    Part,
)
from openai_proxy.schemas.embedding import EmbeddingData, EmbeddingResponse

STUB_DIMENSIONS = 8


def _candidate(text: str, finish_reason=None) -> Candidate:
    return Candidate(
        content=Content(role="model", parts=[Part(text=text)]),
        finish_reason=finish_reason,
    )


class StubProvider(BackendProvider):
    """Canned backend for local runs; never touches the network."""

    name = "stub"

    def __init__(self, api_key: str = "") -> None:
        self.api_key = api_key

    async def generate_content(
        self, request: BackendChatRequest
    ) -> GenerateContentResponse:
        return GenerateContentResponse(
            candidates=[_candidate("stub response", FinishReason.STOP)],
            response_id="stub",
        )

    async def stream_generate_content(
        self, request: BackendChatRequest
    ) -> AsyncIterator[GenerateContentResponse]:
        return self._chunks()

    async def _chunks(self) -> AsyncIterator[GenerateContentResponse]:
        yield GenerateContentResponse(candidates=[_candidate("stub ")], response_id="stub")
        yield GenerateContentResponse(
            candidates=[_candidate("response", FinishReason.STOP)], response_id="stub"
        )

    async def create_embeddings(
        self, request: BackendEmbeddingRequest
    ) -> EmbeddingResponse:
        return EmbeddingResponse(
            data=[
                EmbeddingData(embedding=[0.0] * STUB_DIMENSIONS, index=i)
                for i in range(len(request.input))
            ],
            model=request.model,
        )
