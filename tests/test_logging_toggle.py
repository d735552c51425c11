import importlib
import logging

from fastapi.testclient import TestClient


def _reload_app():
    import openai_proxy.middleware.logging as request_logging
    import openai_proxy.main as main

    importlib.reload(request_logging)
    importlib.reload(main)
    return main


def test_logging_disabled_by_default(monkeypatch):
    monkeypatch.delenv("LOG_REQUESTS", raising=False)
    main = _reload_app()
    client = TestClient(main.app)
    r = client.get("/healthz")
    assert r.status_code == 200


def test_logging_enabled_path(monkeypatch, caplog):
    monkeypatch.setenv("LOG_REQUESTS", "true")
    monkeypatch.setenv("LOG_LEVEL", "INFO")
    main = _reload_app()
    logger = logging.getLogger("openai_proxy.request")
    # Let caplog see records even though the logger does not propagate
    logger.addHandler(caplog.handler)
    try:
        client = TestClient(main.app)
        r = client.get("/v1/models", headers={"authorization": "Bearer secret-key"})
        assert r.status_code == 200
    finally:
        logger.removeHandler(caplog.handler)
        monkeypatch.delenv("LOG_REQUESTS", raising=False)
        _reload_app()

    messages = [rec.getMessage() for rec in caplog.records]
    assert any("path=/v1/models" in m and "status=200" in m for m in messages)
    assert not any("secret-key" in m for m in messages)
