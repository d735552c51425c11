import re
from typing import Optional

from openai_proxy.errors import AuthorizationError

_BEARER_RE = re.compile(r"^Bearer\s*(\S+)")


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Return the key from ``Authorization: Bearer <key>``.

    The key is forwarded to the backend as-is; nothing is verified here.
    """
    match = _BEARER_RE.match(authorization or "")
    if not match:
        raise AuthorizationError("missing or malformed bearer token")
    return match.group(1)
