import json

import pytest
from fastapi.testclient import TestClient

from openai_proxy.main import app
from openai_proxy.model_mapping import REASONING_MODEL, TEXT_EMBEDDING_BGE_M3
from openai_proxy.providers.base import (
    BackendProvider,
    ProviderStatusError,
    UpstreamAPIError,
)
from openai_proxy.routers import openai as openai_router
from openai_proxy.schemas.backend import GenerateContentResponse
from openai_proxy.schemas.embedding import EmbeddingData, EmbeddingResponse

client = TestClient(app)

AUTH = {"Authorization": "Bearer sk-test"}
CHAT = {"model": "gpt-4", "messages": [{"role": "user", "content": "hi"}]}


def _resp(text, finish_reason=None, response_id="abc"):
    candidate = {"content": {"role": "model", "parts": [{"text": text}]}}
    if finish_reason:
        candidate["finishReason"] = finish_reason
    return GenerateContentResponse.model_validate(
        {"candidates": [candidate], "responseId": response_id}
    )


class FakeProvider(BackendProvider):
    name = "fake"

    def __init__(self, chunks=None, error=None, open_error=None):
        self.requests = []
        self.chunks = chunks or []
        self.error = error
        self.open_error = open_error

    async def generate_content(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return _resp("hello there", "STOP")

    async def stream_generate_content(self, request):
        self.requests.append(request)
        if self.open_error:
            raise self.open_error
        return self._iter()

    async def _iter(self):
        for item in self.chunks:
            if isinstance(item, Exception):
                raise item
            yield item

    async def create_embeddings(self, request):
        self.requests.append(request)
        if self.error:
            raise self.error
        return EmbeddingResponse(
            data=[
                EmbeddingData(embedding=[0.1, 0.2], index=i)
                for i, _ in enumerate(request.input)
            ],
            model=request.model,
        )


@pytest.fixture
def provider():
    fake = FakeProvider()
    app.dependency_overrides[openai_router.get_provider_override] = lambda: fake
    yield fake
    app.dependency_overrides.pop(openai_router.get_provider_override, None)


def _frames(body: str):
    return [f for f in body.split("\n\n") if f]


def test_index_is_misdirected():
    r = client.get("/")
    assert r.status_code == 421
    assert "Welcome to the OpenAI API" in r.json()["message"]


def test_list_models():
    r = client.get("/v1/models")
    assert r.status_code == 200
    body = r.json()
    assert body["object"] == "list"
    ids = [m["id"] for m in body["data"]]
    assert ids == [
        "gpt-3.5-turbo",
        "gpt-4",
        "gpt-4-turbo-preview",
        "gpt-4-vision-preview",
        TEXT_EMBEDDING_BGE_M3,
        "gpt-4o",
    ]
    assert all(m["created"] == 1686935002 for m in body["data"])
    assert all(m["owned_by"] == "openai" for m in body["data"])
    assert all(m["object"] == "model" for m in body["data"])


@pytest.mark.parametrize("model", ["gpt-4", "anything-at-all", TEXT_EMBEDDING_BGE_M3])
def test_retrieve_model_echoes_id(model):
    r = client.get(f"/v1/models/{model}")
    assert r.status_code == 200
    assert r.json()["id"] == model
    assert r.json()["created"] == 1686935002


def test_chat_completion(provider):
    r = client.post("/v1/chat/completions", json=CHAT, headers=AUTH)
    assert r.status_code == 200
    body = r.json()
    assert body["id"].startswith("chatcmpl-")
    assert body["object"] == "chat.completion"
    assert body["model"] == "gpt-4"
    assert body["choices"] == [
        {
            "index": 0,
            "message": {"role": "assistant", "content": "hello there"},
            "finish_reason": "stop",
        }
    ]
    (sent,) = provider.requests
    assert sent.model == REASONING_MODEL
    assert [(m.role, m.content) for m in sent.messages] == [("user", "hi")]


def test_bearer_token_is_forwarded_to_provider(monkeypatch):
    seen = {}

    def _resolve(api_key):
        seen["key"] = api_key
        return FakeProvider()

    monkeypatch.setattr(openai_router, "resolve_provider", _resolve)
    r = client.post("/v1/chat/completions", json=CHAT, headers=AUTH)
    assert r.status_code == 200
    assert seen["key"] == "sk-test"


@pytest.mark.parametrize("headers", [{}, {"Authorization": "Basic abc"}, {"Authorization": "Bearer"}])
def test_missing_bearer_token_is_server_error(provider, headers):
    r = client.post("/v1/chat/completions", json=CHAT, headers=headers)
    assert r.status_code == 500
    assert r.json()["error"]["type"] == "server_error"
    assert provider.requests == []


def test_chat_with_embedding_model_is_bad_request(provider):
    payload = dict(CHAT, model=TEXT_EMBEDDING_BGE_M3)
    r = client.post("/v1/chat/completions", json=payload, headers=AUTH)
    assert r.status_code == 400
    assert r.json()["error"]["type"] == "invalid_request_error"
    assert provider.requests == []


def test_malformed_json_is_bad_request(provider):
    r = client.post(
        "/v1/chat/completions",
        content=b"{not json",
        headers={**AUTH, "Content-Type": "application/json"},
    )
    assert r.status_code == 400
    assert r.json()["error"]["code"] == 400


@pytest.mark.parametrize(
    "payload", [{}, {"model": "gpt-4"}, {"messages": [{"role": "user", "content": "x"}]}]
)
def test_invalid_body_is_bad_request(provider, payload):
    r = client.post("/v1/chat/completions", json=payload, headers=AUTH)
    assert r.status_code == 400
    assert provider.requests == []


def test_empty_messages_is_bad_request(provider):
    r = client.post(
        "/v1/chat/completions", json={"model": "gpt-4", "messages": []}, headers=AUTH
    )
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "Messages must not be empty"


def test_provider_rate_limit_is_normalized(provider):
    provider.error = ProviderStatusError(429, "Resource has been exhausted")
    r = client.post("/v1/chat/completions", json=CHAT, headers=AUTH)
    assert r.status_code == 429
    assert r.json()["error"] == {
        "code": 429,
        "message": "Rate limit exceeded",
        "type": "rate_limit_error",
        "param": None,
    }


def test_provider_status_passes_through(provider):
    provider.error = ProviderStatusError(400, "API key not valid")
    r = client.post("/v1/chat/completions", json=CHAT, headers=AUTH)
    assert r.status_code == 400
    assert r.json()["error"]["message"] == "API key not valid"


def test_streaming_chat(provider):
    provider.chunks = [_resp("Hel"), _resp("lo"), _resp("!", "STOP"), _resp("unread")]
    payload = dict(CHAT, stream=True)
    with client.stream("POST", "/v1/chat/completions", json=payload, headers=AUTH) as r:
        assert r.status_code == 200
        assert r.headers["content-type"].startswith("text/event-stream")
        assert r.headers["cache-control"] == "no-cache"
        assert r.headers["x-accel-buffering"] == "no"
        body = b"".join(r.iter_bytes()).decode("utf-8")

    frames = _frames(body)
    assert frames[-1] == "data: [DONE]"
    chunks = [json.loads(f[len("data: "):]) for f in frames[:-1]]
    assert [c["choices"][0]["delta"]["content"] for c in chunks] == ["Hel", "lo", "!"]
    assert chunks[-1]["choices"][0]["finish_reason"] == "stop"
    assert all(c["id"] == "chatcmpl-abc" for c in chunks)
    assert all(c["model"] == "gpt-4" for c in chunks)


def test_streaming_error_is_sent_in_band(provider):
    provider.chunks = [_resp("a"), _resp("b"), RuntimeError("stream broke")]
    payload = dict(CHAT, stream=True)
    with client.stream("POST", "/v1/chat/completions", json=payload, headers=AUTH) as r:
        assert r.status_code == 200
        body = b"".join(r.iter_bytes()).decode("utf-8")

    frames = _frames(body)
    assert len(frames) == 4
    assert json.loads(frames[2][len("data: "):])["error"] == {
        "code": 500,
        "message": "stream broke",
        "type": "server_error",
        "param": None,
    }
    assert frames[3] == "data: [DONE]"


def test_stream_open_failure_is_http_error(provider):
    provider.open_error = ProviderStatusError(503, "The model is overloaded")
    payload = dict(CHAT, stream=True)
    r = client.post("/v1/chat/completions", json=payload, headers=AUTH)
    assert r.status_code == 503
    assert r.json()["error"]["message"] == "The model is overloaded"


def test_embeddings(provider):
    payload = {"model": TEXT_EMBEDDING_BGE_M3, "input": ["a", "b"]}
    r = client.post("/v1/embeddings", json=payload, headers=AUTH)
    assert r.status_code == 200
    body = r.json()
    assert body["object"] == "list"
    assert [d["index"] for d in body["data"]] == [0, 1]
    assert body["model"] == TEXT_EMBEDDING_BGE_M3


def test_embeddings_model_mismatch_makes_no_backend_call(provider):
    payload = {"model": "text-embedding-ada-002", "input": ["a"]}
    r = client.post("/v1/embeddings", json=payload, headers=AUTH)
    assert r.status_code == 400
    assert "text-embedding-ada-002" in r.json()["error"]["message"]
    assert provider.requests == []


def test_embeddings_upstream_error_passes_through(provider):
    provider.error = UpstreamAPIError(
        "Invalid token", code=401, type="invalid_request_error"
    )
    payload = {"model": TEXT_EMBEDDING_BGE_M3, "input": "a"}
    r = client.post("/v1/embeddings", json=payload, headers=AUTH)
    assert r.status_code == 401
    assert r.json()["error"]["message"] == "Invalid token"


def test_embeddings_require_bearer_token(provider):
    payload = {"model": TEXT_EMBEDDING_BGE_M3, "input": "a"}
    r = client.post("/v1/embeddings", json=payload)
    assert r.status_code == 500
    assert provider.requests == []


def test_stub_backend_end_to_end(monkeypatch):
    monkeypatch.setenv("BACKEND_PROVIDER", "stub")
    r = client.post("/v1/chat/completions", json=CHAT, headers=AUTH)
    assert r.status_code == 200
    assert r.json()["choices"][0]["message"]["content"] == "stub response"

    payload = dict(CHAT, stream=True)
    with client.stream("POST", "/v1/chat/completions", json=payload, headers=AUTH) as s:
        body = b"".join(s.iter_bytes()).decode("utf-8")
    assert '"content": "stub "' in body
    assert '"content": "response"' in body
    assert body.endswith("data: [DONE]\n\n")
