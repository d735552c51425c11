from fastapi import APIRouter, Depends, Request
import os
import time

from openai_proxy.model_mapping import (
    FAST_MODEL,
    REASONING_MODEL,
    TEXT_EMBEDDING_BGE_M3,
    ModelMapping,
    get_model_mapping,
)
from openai_proxy.providers.genai import DEFAULT_GENAI_BASE_URL
from openai_proxy.providers.openai_compat import DEFAULT_EMBEDDING_BASE_URL

router = APIRouter()


@router.get("/healthz")
async def healthz(request: Request, mapping: ModelMapping = Depends(get_model_mapping)):
    # Uptime since process start
    start_time = getattr(request.app.state, "start_time", None)
    uptime_seconds = time.time() - start_time if start_time else None

    # Nothing is hard-required at startup: credentials arrive per request.
    return {
        "status": "ok",
        "uptime_seconds": uptime_seconds,
        "version": os.getenv("APP_VERSION") or "1.0",
        "backend": {
            "provider": os.getenv("BACKEND_PROVIDER", "genai").lower(),
            "genai_base_url": os.getenv("GENAI_BASE_URL", DEFAULT_GENAI_BASE_URL),
            "embedding_base_url": os.getenv(
                "EMBEDDING_BASE_URL", DEFAULT_EMBEDDING_BASE_URL
            ),
        },
        "models": {
            "mapping_enabled": mapping.enabled,
            "owner": mapping.owner,
            "reasoning": REASONING_MODEL,
            "fast": FAST_MODEL,
            "embedding": TEXT_EMBEDDING_BGE_M3,
        },
        "logging": {
            "enabled": os.getenv("LOG_REQUESTS", "false").lower()
            in {"1", "true", "yes"},
            "level": os.getenv("LOG_LEVEL", "INFO").upper(),
        },
        "cors": {
            "allow_origins": [
                o.strip()
                for o in os.getenv("CORS_ALLOW_ORIGINS", "*").split(",")
                if o.strip()
            ],
        },
    }
