import hmac
import logging
from functools import wraps
from typing import Callable, Mapping, Optional
from flask import jsonify, request

API_KEY_HEADER = "X-API-KEY"

logger = logging.getLogger(__name__)


def authenticate(headers: Mapping[str, str], expected_key: Optional[str]) -> bool:
    """
    Check the inbound API key against the configured secret.

    Both the configured key and the header must be non-empty, and they must
    match exactly (case-sensitive, constant-time comparison).
    """
    if not expected_key:
        return False

    supplied = headers.get(API_KEY_HEADER)
    if not supplied:
        return False

    return hmac.compare_digest(supplied.encode('utf-8'), expected_key.encode('utf-8'))


def require_api_key(get_expected_key: Callable[[], Optional[str]]):
    """
    Decorator that rejects a Flask view with 401 unless X-API-KEY is valid.

    Args:
        get_expected_key: Returns the configured secret at request time
    """
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if not authenticate(request.headers, get_expected_key()):
                logger.warning(f"Rejected unauthenticated request to {request.path}")
                return jsonify({"error": "Unauthorized"}), 401
            return view(*args, **kwargs)

        return wrapper
    return decorator
