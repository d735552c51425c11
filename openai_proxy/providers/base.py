import logging
import os
from abc import ABC, abstractmethod
from typing import AsyncIterator, Optional, Union

from openai_proxy.schemas.backend import (
    BackendChatRequest,
    BackendEmbeddingRequest,
    GenerateContentResponse,
)
from openai_proxy.schemas.embedding import EmbeddingResponse

logger = logging.getLogger("openai_proxy.providers")


def timeout_from_env() -> Optional[float]:
    """Backend call timeout in seconds; unset means wait indefinitely."""
    raw = os.getenv("BACKEND_TIMEOUT_SECONDS")
    if not raw:
        return None
    try:
        return float(raw)
    except ValueError:
        logger.warning(
            "ignoring invalid BACKEND_TIMEOUT_SECONDS=%r; backend calls have no timeout",
            raw,
        )
        return None


class ProviderError(Exception):
    """Base class for failures reported by the backend provider.

    Backend clients raise one of the concrete subclasses so the API layer
    can classify the failure without inspecting third-party exception types.
    """


class UpstreamAPIError(ProviderError):
    """An OpenAI-shaped error envelope returned by the backend.

    ``code`` is the envelope's code (an HTTP status, a vendor number or a
    string); ``status_code`` is the HTTP status the envelope arrived with.
    """

    def __init__(
        self,
        message: str,
        code: Optional[Union[int, str]] = None,
        type: Optional[str] = None,
        param: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.type = type
        self.param = param
        self.status_code = status_code


class ProviderStatusError(ProviderError):
    """A status failure from the provider's transport/quota layer."""

    def __init__(self, status_code: int, message: str = "", status: Optional[str] = None):
        super().__init__(message or f"backend returned status {status_code}")
        self.status_code = status_code
        self.message = message
        self.status = status


class BackendProvider(ABC):
    """A backend reached with the caller's forwarded credential."""

    name = "backend"

    @abstractmethod
    async def generate_content(
        self, request: BackendChatRequest
    ) -> GenerateContentResponse: ...

    @abstractmethod
    async def stream_generate_content(
        self, request: BackendChatRequest
    ) -> AsyncIterator[GenerateContentResponse]:
        """Open a streaming call and return an iterator over its chunks.

        Errors while opening the stream are raised here; errors while
        reading it are raised from the returned iterator.
        """

    @abstractmethod
    async def create_embeddings(
        self, request: BackendEmbeddingRequest
    ) -> EmbeddingResponse: ...
