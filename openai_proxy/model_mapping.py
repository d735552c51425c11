import os
from dataclasses import dataclass, field
from functools import lru_cache
from types import MappingProxyType
from typing import Mapping, Tuple

# Backend model ids. Every chat request lands on one of these two.
REASONING_MODEL = "gemini-1.5-pro-latest"
FAST_MODEL = "gemini-1.5-flash-latest"

# The only model served on the embedding path
TEXT_EMBEDDING_BGE_M3 = "BAAI/bge-m3"

GPT3_5_TURBO = "gpt-3.5-turbo"
GPT4 = "gpt-4"
GPT4_TURBO = "gpt-4-turbo"
GPT4_TURBO_PREVIEW = "gpt-4-turbo-preview"
GPT4_VISION_PREVIEW = "gpt-4-vision-preview"
GPT4O = "gpt-4o"
GPT4O_MINI = "gpt-4o-mini"

_DEFAULT_ALIASES = {
    GPT3_5_TURBO: FAST_MODEL,
    GPT4O_MINI: FAST_MODEL,
    GPT4: REASONING_MODEL,
    GPT4_TURBO: REASONING_MODEL,
    GPT4_TURBO_PREVIEW: REASONING_MODEL,
    GPT4_VISION_PREVIEW: REASONING_MODEL,
    GPT4O: REASONING_MODEL,
}

# Name reported back to clients for each backend model when mapping is on
_DEFAULT_REVERSE = {
    REASONING_MODEL: GPT4,
    FAST_MODEL: GPT3_5_TURBO,
}

# Order of entries in GET /v1/models
LISTED_MODELS: Tuple[str, ...] = (
    GPT3_5_TURBO,
    GPT4,
    GPT4_TURBO_PREVIEW,
    GPT4_VISION_PREVIEW,
    TEXT_EMBEDDING_BGE_M3,
    GPT4O,
)


@dataclass(frozen=True)
class ModelMapping:
    """Static translation between OpenAI model names and backend ids.

    Many OpenAI aliases collapse onto two backend models. When
    ``enabled`` is false the proxy reports backend ids verbatim and
    accepts them in requests.
    """

    enabled: bool = True
    aliases: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(_DEFAULT_ALIASES))
    )
    reverse: Mapping[str, str] = field(
        default_factory=lambda: MappingProxyType(dict(_DEFAULT_REVERSE))
    )
    default_model: str = FAST_MODEL

    @property
    def owner(self) -> str:
        return "openai" if self.enabled else "google"

    def to_backend(self, model: str) -> str:
        if model in self.aliases:
            return self.aliases[model]
        if model in self.reverse:
            return model
        return self.default_model

    def to_client(self, backend_model: str) -> str:
        if not self.enabled:
            return backend_model
        return self.reverse.get(backend_model, backend_model)

    def listed_id(self, model: str) -> str:
        if model == TEXT_EMBEDDING_BGE_M3 or self.enabled:
            return model
        return self.to_backend(model)


@lru_cache(maxsize=1)
def get_model_mapping() -> ModelMapping:
    disabled = os.getenv("DISABLE_MODEL_MAPPING", "false").lower() in {
        "1",
        "true",
        "yes",
    }
    return ModelMapping(enabled=not disabled)
