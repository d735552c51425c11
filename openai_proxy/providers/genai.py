"""
Generative Language backend
---------------------------

`GenAIProvider` is the production backend. Chat calls go to the provider's
Generative Language REST API (`models/{model}:generateContent` and its
server-sent-events variant `:streamGenerateContent?alt=sse`); embedding
calls are delegated to the provider's OpenAI-compatible endpoint
(`OpenAICompatibleEmbeddings`).

Wire notes:
- Roles: `assistant` turns are sent as `model`; `system` messages are
  gathered into `systemInstruction`, everything else is a `user` turn.
- Only the sampling parameters the client supplied are sent in
  `generationConfig`; safety thresholds are always relaxed to `BLOCK_NONE`.
- Failures come back as `{"error": {"code", "message", "status"}}` and are
  raised as `ProviderStatusError` with the HTTP status.
"""

import json
import logging
import os
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from openai_proxy.providers.base import (
    BackendProvider,
    ProviderStatusError,
    timeout_from_env,
)
from openai_proxy.providers.openai_compat import OpenAICompatibleEmbeddings
from openai_proxy.schemas.backend import (
    BackendChatRequest,
    BackendEmbeddingRequest,
    GenerateContentResponse,
)
from openai_proxy.schemas.embedding import EmbeddingResponse

logger = logging.getLogger("openai_proxy.providers.genai")

DEFAULT_GENAI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

GENAI_ROLE_USER = "user"
GENAI_ROLE_MODEL = "model"

HARM_CATEGORIES = (
    "HARM_CATEGORY_HARASSMENT",
    "HARM_CATEGORY_HATE_SPEECH",
    "HARM_CATEGORY_SEXUALLY_EXPLICIT",
    "HARM_CATEGORY_DANGEROUS_CONTENT",
)

_GENERATION_CONFIG_KEYS = {
    "max_output_tokens": "maxOutputTokens",
    "temperature": "temperature",
    "top_p": "topP",
    "stop_sequences": "stopSequences",
    "candidate_count": "candidateCount",
}


def build_generate_payload(request: BackendChatRequest) -> Dict[str, Any]:
    contents: List[Dict[str, Any]] = []
    system_parts: List[Dict[str, str]] = []
    for message in request.messages:
        if message.role == "system":
            system_parts.append({"text": message.content})
            continue
        role = GENAI_ROLE_MODEL if message.role == "assistant" else GENAI_ROLE_USER
        contents.append({"role": role, "parts": [{"text": message.content}]})

    payload: Dict[str, Any] = {
        "contents": contents,
        "safetySettings": [
            {"category": category, "threshold": "BLOCK_NONE"}
            for category in HARM_CATEGORIES
        ],
    }
    if system_parts:
        payload["systemInstruction"] = {"parts": system_parts}

    config = request.generation_config.model_dump(exclude_none=True)
    if config:
        payload["generationConfig"] = {
            _GENERATION_CONFIG_KEYS[key]: value for key, value in config.items()
        }
    return payload


def status_error_from_body(status_code: int, body: Any, fallback: str = "") -> ProviderStatusError:
    # Errors embedded in a 200 stream carry their own code
    if status_code < 400:
        status_code = 500
    err = body.get("error") if isinstance(body, dict) else None
    if isinstance(err, dict):
        code = err.get("code")
        return ProviderStatusError(
            code if isinstance(code, int) else status_code,
            str(err.get("message") or fallback),
            err.get("status"),
        )
    return ProviderStatusError(status_code, fallback)


def status_error_from_response(response: httpx.Response) -> ProviderStatusError:
    try:
        body = response.json()
    except ValueError:
        body = None
    return status_error_from_body(
        response.status_code, body, response.text or response.reason_phrase
    )


class GenAIProvider(BackendProvider):
    """Backend provider speaking the Generative Language REST API.

    Attributes:
        api_key: The caller's bearer token, sent as `x-goog-api-key`.
        base_url: Base URL, configured by `GENAI_BASE_URL`.
        embeddings: Client for the OpenAI-compatible embedding surface.
    """

    name = "genai"

    def __init__(
        self, api_key: str, embeddings: Optional[OpenAICompatibleEmbeddings] = None
    ) -> None:
        self.api_key = api_key
        self.base_url = os.getenv("GENAI_BASE_URL", DEFAULT_GENAI_BASE_URL).rstrip("/")
        self.timeout_seconds = timeout_from_env()
        self.embeddings = embeddings or OpenAICompatibleEmbeddings(api_key)

    def _headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json", "x-goog-api-key": self.api_key}

    async def generate_content(
        self, request: BackendChatRequest
    ) -> GenerateContentResponse:
        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout_seconds
        ) as client:
            response = await client.post(
                f"/models/{request.model}:generateContent",
                headers=self._headers(),
                json=build_generate_payload(request),
            )
            if response.is_error:
                raise status_error_from_response(response)
            data: Dict[str, Any] = response.json()
        return GenerateContentResponse.model_validate(data)

    async def stream_generate_content(
        self, request: BackendChatRequest
    ) -> AsyncIterator[GenerateContentResponse]:
        client = httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout_seconds)
        try:
            http_request = client.build_request(
                "POST",
                f"/models/{request.model}:streamGenerateContent",
                params={"alt": "sse"},
                headers=self._headers(),
                json=build_generate_payload(request),
            )
            response = await client.send(http_request, stream=True)
        except BaseException:
            await client.aclose()
            raise

        if response.is_error:
            try:
                await response.aread()
                raise status_error_from_response(response)
            finally:
                await response.aclose()
                await client.aclose()

        return GenAIChunkStream(client, response)

    async def create_embeddings(
        self, request: BackendEmbeddingRequest
    ) -> EmbeddingResponse:
        return await self.embeddings.create_embeddings(request)


async def _iter_sse_chunks(
    response: httpx.Response,
) -> AsyncIterator[GenerateContentResponse]:
    async for line in response.aiter_lines():
        # Blank lines separate SSE frames
        if not line:
            continue
        data_str = line
        if line.startswith("data:"):
            data_str = line[5:].strip()
        if data_str == "[DONE]":
            break
        try:
            obj = json.loads(data_str)
        except json.JSONDecodeError:
            logger.debug("skipping non-JSON stream line: %r", line)
            continue
        if isinstance(obj, dict) and "error" in obj:
            raise status_error_from_body(response.status_code, obj)
        yield GenerateContentResponse.model_validate(obj)


class GenAIChunkStream:
    """Open `streamGenerateContent` response yielding parsed chunks.

    Owns the HTTP client and response; `aclose()` releases both whether or
    not iteration ever started. Exhaustion or a read error closes it too.
    """

    def __init__(self, client: httpx.AsyncClient, response: httpx.Response) -> None:
        self.client = client
        self.response = response
        self._chunks = _iter_sse_chunks(response)
        self._closed = False

    def __aiter__(self) -> "GenAIChunkStream":
        return self

    async def __anext__(self) -> GenerateContentResponse:
        if self._closed:
            raise StopAsyncIteration
        try:
            return await self._chunks.__anext__()
        except Exception:
            await self.aclose()
            raise

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self._chunks.aclose()
        finally:
            try:
                await self.response.aclose()
            finally:
                await self.client.aclose()
