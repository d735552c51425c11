"""
OpenAI-compatible embedding backend
-----------------------------------

This module provides `OpenAICompatibleEmbeddings`, the client used for the
embedding surface of the backend provider. The provider serves embeddings
through an endpoint that emulates the OpenAI Embeddings API shape
(i.e., `/v1/embeddings`), so the translated request is forwarded as-is.

Key design points:
1) Base URL configuration
   - The base URL is configured via `EMBEDDING_BASE_URL` and defaults to
     `https://api.siliconflow.cn/v1`, which serves the `BAAI/bge-m3` model.

2) Authentication
   - The caller's bearer token is the only credential. It is forwarded
     verbatim in the `Authorization` header; the proxy holds no keys.

3) Schema mapping
   - Input: `model`, `input` and (when supplied) `encoding_format`.
   - Output: the provider response is validated into `EmbeddingResponse`
     so malformed bodies fail here instead of reaching the client.

4) Error handling
   - Any non-2xx response is raised as `UpstreamAPIError`, carrying the
     OpenAI error envelope fields unchanged. Some compatible servers use a
     flat `{"code", "message"}` body instead of the `{"error": {...}}`
     envelope; both are accepted. When the body has no code, the HTTP
     status stands in for it.
"""

import os
from typing import Any, Dict

import httpx

from openai_proxy.providers.base import UpstreamAPIError, timeout_from_env
from openai_proxy.schemas.backend import BackendEmbeddingRequest
from openai_proxy.schemas.embedding import EmbeddingResponse

DEFAULT_EMBEDDING_BASE_URL = "https://api.siliconflow.cn/v1"


def upstream_error_from_response(response: httpx.Response) -> UpstreamAPIError:
    """Build an `UpstreamAPIError` from an OpenAI-style error body."""
    try:
        body = response.json()
    except ValueError:
        body = {}
    if not isinstance(body, dict):
        body = {}
    err = body.get("error")
    if not isinstance(err, dict):
        # Flat body, or `error` is a bare string
        err = {
            "message": body.get("message") or (err if isinstance(err, str) else None),
            "code": body.get("code"),
            "type": body.get("type"),
        }
    code = err.get("code")
    if code is None:
        code = response.status_code
    message = str(err.get("message") or response.reason_phrase or "upstream error")
    param = err.get("param")
    return UpstreamAPIError(
        message,
        code=code,
        type=err.get("type"),
        param=str(param) if param is not None else None,
        status_code=response.status_code,
    )


class OpenAICompatibleEmbeddings:
    """Client for the provider's OpenAI-compatible embeddings endpoint.

    Attributes:
        api_key: The caller's bearer token, forwarded verbatim.
        base_url: Base URL for the compatible API.
        timeout_seconds: Optional client timeout; None means no timeout.
    """

    def __init__(self, api_key: str) -> None:
        self.api_key = api_key
        self.base_url = os.getenv(
            "EMBEDDING_BASE_URL", DEFAULT_EMBEDDING_BASE_URL
        ).rstrip("/")
        self.timeout_seconds = timeout_from_env()

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    async def create_embeddings(
        self, request: BackendEmbeddingRequest
    ) -> EmbeddingResponse:
        payload: Dict[str, Any] = {"model": request.model, "input": request.input}
        if request.encoding_format:
            payload["encoding_format"] = request.encoding_format

        async with httpx.AsyncClient(
            base_url=self.base_url, timeout=self.timeout_seconds
        ) as client:
            response = await client.post(
                "/embeddings", headers=self._headers(), json=payload
            )
            if response.is_error:
                raise upstream_error_from_response(response)
            data: Dict[str, Any] = response.json()

        return EmbeddingResponse.model_validate(data)
