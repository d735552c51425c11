from pydantic import BaseModel, Field
from typing import List, Optional, Union


class EmbeddingRequest(BaseModel):
    model: str
    input: Union[str, List[str]]
    encoding_format: Optional[str] = None

    def inputs(self) -> List[str]:
        # A bare string is shorthand for a single-element batch
        if isinstance(self.input, str):
            return [self.input]
        return list(self.input)


class EmbeddingData(BaseModel):
    object: str = "embedding"
    # base64 strings when encoding_format="base64"
    embedding: Union[List[float], str]
    index: int


class EmbeddingUsage(BaseModel):
    prompt_tokens: int = 0
    total_tokens: int = 0


class EmbeddingResponse(BaseModel):
    object: str = "list"
    data: List[EmbeddingData]
    model: str
    usage: EmbeddingUsage = Field(default_factory=EmbeddingUsage)
