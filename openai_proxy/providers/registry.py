import os

from openai_proxy.providers.base import BackendProvider
from openai_proxy.providers.stub import StubProvider

# Common aliases for the Generative Language backend
GENAI_ALIASES = {"genai", "gemini", "google"}


def get_provider_by_name(name: str | None, api_key: str) -> BackendProvider:
    """Build a provider bound to the caller's credential.

    Providers are per request since each one carries the forwarded key.
    """
    name = (name or "genai").lower()
    if name in GENAI_ALIASES:
        # Import here to keep httpx out of the stub-only path
        from openai_proxy.providers.genai import GenAIProvider

        return GenAIProvider(api_key)
    if name == "stub":
        return StubProvider(api_key)
    raise RuntimeError(f"Unknown BACKEND_PROVIDER '{name}'.")


def resolve_provider(api_key: str) -> BackendProvider:
    return get_provider_by_name(os.getenv("BACKEND_PROVIDER", "genai"), api_key)
