"""
API Key Checks
Shared by the HTTP middleware and the progress WebSocket.
"""

import hmac
from typing import Mapping, Optional

from ..config import get_settings


def extract_api_key(headers: Mapping[str, str], query_params: Optional[Mapping[str, str]] = None) -> str:
    """Key from ``x-api-key``, a bearer token, or (WebSocket only) ``?token=``."""
    api_key = headers.get("x-api-key", "").strip()
    if api_key:
        return api_key

    auth_header = headers.get("authorization", "")
    if auth_header.lower().startswith("bearer "):
        return auth_header.split(" ", 1)[1].strip()

    if query_params is not None:
        return query_params.get("token", "").strip()
    return ""


def api_key_required() -> bool:
    return bool(get_settings().api_key)


def is_valid_api_key(provided: str) -> bool:
    expected = get_settings().api_key
    if not expected:
        return True
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
