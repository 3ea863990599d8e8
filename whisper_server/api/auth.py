"""Optional bearer-token check shared by the API routes.

Authentication is off while ``API_BEARER_TOKEN`` is empty. Routes call
:func:`require_api_bearer_token` first and return its response unchanged
when it is not ``None``.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import Request
from fastapi.responses import JSONResponse
from fastapi.security.utils import get_authorization_scheme_param

from whisper_server.api.schemas import ErrorObject, ErrorResponse
from whisper_server.utils.constant import API_BEARER_TOKEN

logger = logging.getLogger(__name__)

INVALID_API_KEY_MESSAGE = "Invalid authentication credentials."


def _unauthorized(reason: str, request: Request) -> JSONResponse:
    logger.debug("Rejected %s %s: %s", request.method, request.url.path, reason)
    body = ErrorResponse(
        error=ErrorObject(
            message=INVALID_API_KEY_MESSAGE,
            type="invalid_request_error",
            code="invalid_api_key",
        )
    )
    return JSONResponse(
        status_code=401,
        content=body.model_dump(),
        headers={"WWW-Authenticate": "Bearer"},
    )


def require_api_bearer_token(request: Request) -> JSONResponse | None:
    """Check the ``Authorization: Bearer <token>`` header.

    Args:
        request: Incoming request.

    Returns:
        ``None`` when the request may proceed, otherwise a 401 response.
    """
    if not API_BEARER_TOKEN:
        return None

    scheme, credentials = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() != "bearer" or not credentials.strip():
        return _unauthorized("missing bearer token", request)
    if not secrets.compare_digest(credentials.strip(), API_BEARER_TOKEN):
        return _unauthorized("token mismatch", request)
    return None
