from http import HTTPStatus
from typing import Tuple

from openai_proxy.providers.base import ProviderStatusError, UpstreamAPIError
from openai_proxy.schemas.chat import APIError


class ProxyError(Exception):
    """Base class for failures detected by the proxy itself."""


class BadRequestError(ProxyError):
    """The inbound request cannot be translated; answered with 400."""


class UnsupportedModelError(BadRequestError):
    """The requested model is not served on this capability path."""


class AuthorizationError(ProxyError):
    """The Authorization header does not carry a bearer token."""


def _is_http_status(code) -> bool:
    if not isinstance(code, int) or isinstance(code, bool):
        return False
    try:
        HTTPStatus(code)
    except ValueError:
        return False
    return True


def classify_error(exc: BaseException) -> Tuple[int, APIError]:
    """Map any failure to the HTTP status and error body shown to clients."""
    if isinstance(exc, UpstreamAPIError):
        status = exc.code if _is_http_status(exc.code) else 500
        return status, APIError(
            code=exc.code, message=exc.message, type=exc.type, param=exc.param
        )

    if isinstance(exc, ProviderStatusError):
        if exc.status_code == 429:
            # Provider-specific wording is not forwarded for quota errors
            return 429, APIError(
                code=429, message="Rate limit exceeded", type="rate_limit_error"
            )
        status = exc.status_code if _is_http_status(exc.status_code) else 500
        return status, APIError(
            code=exc.status_code, message=exc.message, type="server_error"
        )

    return 500, APIError(
        code=500, message=str(exc) or type(exc).__name__, type="server_error"
    )


def bad_request(exc: BadRequestError) -> APIError:
    return APIError(code=400, message=str(exc), type="invalid_request_error")
