"""Native request/response shapes of the backend provider.

The generative surface follows the Generative Language REST schema
(candidates, content parts, enumerated finish reasons). The embedding
surface is OpenAI-compatible, so its request is a plain passthrough.
"""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class FinishReason(str, Enum):
    UNSPECIFIED = "FINISH_REASON_UNSPECIFIED"
    STOP = "STOP"
    MAX_TOKENS = "MAX_TOKENS"
    SAFETY = "SAFETY"
    RECITATION = "RECITATION"
    OTHER = "OTHER"

    @classmethod
    def _missing_(cls, value):
        # Newer backend releases add reasons (BLOCKLIST, SPII, ...)
        return cls.OTHER


class BackendMessage(BaseModel):
    role: str
    content: str


class GenerationConfig(BaseModel):
    max_output_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    stop_sequences: Optional[List[str]] = None
    candidate_count: Optional[int] = None


class BackendChatRequest(BaseModel):
    model: str
    messages: List[BackendMessage]
    generation_config: GenerationConfig = Field(default_factory=GenerationConfig)


class BackendEmbeddingRequest(BaseModel):
    model: str
    input: List[str]
    encoding_format: Optional[str] = None


class Part(BaseModel):
    model_config = ConfigDict(extra="ignore")

    text: Optional[str] = None


class Content(BaseModel):
    model_config = ConfigDict(extra="ignore")

    role: Optional[str] = None
    parts: List[Part] = Field(default_factory=list)


class Candidate(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    content: Optional[Content] = None
    finish_reason: Optional[FinishReason] = Field(default=None, alias="finishReason")

    @field_validator("finish_reason", mode="before")
    @classmethod
    def _coerce_finish_reason(cls, value):
        if value is None or isinstance(value, FinishReason):
            return value
        return FinishReason(str(value))

    def first_text(self) -> str:
        if self.content is not None and self.content.parts:
            return self.content.parts[0].text or ""
        return ""

    def is_finished(self) -> bool:
        return self.finish_reason not in (None, FinishReason.UNSPECIFIED)


class UsageMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    prompt_token_count: int = Field(default=0, alias="promptTokenCount")
    candidates_token_count: int = Field(default=0, alias="candidatesTokenCount")
    total_token_count: int = Field(default=0, alias="totalTokenCount")


class GenerateContentResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    candidates: List[Candidate] = Field(default_factory=list)
    usage_metadata: Optional[UsageMetadata] = Field(default=None, alias="usageMetadata")
    response_id: Optional[str] = Field(default=None, alias="responseId")
