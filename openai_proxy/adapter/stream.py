"""Relay a backend chunk stream to the client as OpenAI SSE frames.

A producer task reads the backend iterator and puts translated
``StreamEvent`` values on a single-slot queue; the consumer drains the
queue and writes frames. The producer stops after the first error or the
first chunk carrying a finish reason. Cancelling the consumer cancels the
producer, so a put never waits on a reader that has gone away.
"""

import asyncio
import enum
import json
import logging
import time
import uuid
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from openai_proxy.adapter.response import to_completion_chunk
from openai_proxy.errors import classify_error
from openai_proxy.model_mapping import ModelMapping
from openai_proxy.schemas.backend import GenerateContentResponse
from openai_proxy.schemas.chat import APIError, ChatCompletionChunk

logger = logging.getLogger("openai_proxy.stream")

DONE_FRAME = "data: [DONE]\n\n"


class RelayState(enum.Enum):
    OPEN = "open"
    EMITTING = "emitting"
    CLOSED = "closed"


@dataclass
class StreamEvent:
    data: Optional[ChatCompletionChunk] = None
    error: Optional[APIError] = None

    def __post_init__(self):
        if (self.data is None) == (self.error is None):
            raise ValueError("StreamEvent needs exactly one of data or error")

    def to_sse(self) -> str:
        if self.error is not None:
            payload = self.error.envelope()
        else:
            payload = self.data.model_dump()
        return f"data: {json.dumps(payload)}\n\n"


_CLOSED = object()


class StreamRelay:
    def __init__(
        self,
        stream: AsyncIterator[GenerateContentResponse],
        backend_model: str,
        mapping: ModelMapping,
        created: Optional[int] = None,
    ):
        self._stream = stream
        self._backend_model = backend_model
        self._mapping = mapping
        self._created = created if created is not None else int(time.time())
        # Fallback id when the backend omits responseId
        self._fallback_id = uuid.uuid4().hex
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=1)
        self._producer: Optional[asyncio.Task] = None
        self.state = RelayState.OPEN
        self.close_count = 0
        self.failed = False

    async def _close_backend(self) -> None:
        aclose = getattr(self._stream, "aclose", None)
        if callable(aclose):
            await aclose()

    async def _produce(self) -> None:
        try:
            async for resp in self._stream:
                chunk = to_completion_chunk(
                    self._backend_model,
                    resp,
                    resp.response_id or self._fallback_id,
                    self._created,
                    self._mapping,
                )
                await self._queue.put(StreamEvent(data=chunk))
                if any(c.is_finished() for c in resp.candidates):
                    break
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("backend stream read error: %s", exc)
            self.failed = True
            _, err = classify_error(exc)
            await self._queue.put(StreamEvent(error=err))
        finally:
            try:
                await self._close_backend()
            except Exception as exc:
                # End of stream must still be signalled to the consumer
                logger.warning("backend stream close error: %s", exc)
        await self._queue.put(_CLOSED)

    async def events(self) -> AsyncIterator[StreamEvent]:
        """Yield events in backend order until the producer closes."""
        if self._producer is not None:
            raise RuntimeError("stream relay already started")
        self._producer = asyncio.create_task(self._produce())
        try:
            while True:
                item = await self._queue.get()
                if item is _CLOSED:
                    break
                self.state = RelayState.EMITTING
                yield item
        finally:
            if not self._producer.done():
                self._producer.cancel()
            try:
                await self._producer
            except asyncio.CancelledError:
                pass
            self.state = RelayState.CLOSED
            self.close_count += 1

    async def sse(self) -> AsyncIterator[str]:
        async with aclosing(self.events()) as events:
            async for event in events:
                yield event.to_sse()
        yield DONE_FRAME
