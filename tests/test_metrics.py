from fastapi.testclient import TestClient
from openai_proxy.main import app

client = TestClient(app)


def test_metrics_endpoint_available():
    client.get("/healthz")
    r = client.get("/metrics")
    assert r.status_code == 200
    # content type of the exposition format
    assert r.headers.get("content-type", "").startswith("text/plain")
    assert b"http_requests_total" in r.content
