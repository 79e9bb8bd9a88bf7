"""
Request ID middleware for request tracing.

Generates or propagates the X-Request-ID header and, for game routes,
tags log records with the session the request addresses.
"""

import logging
import re
import uuid
from typing import Callable, Optional

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

from logging_config import request_id_var, session_id_var

logger = logging.getLogger(__name__)

# /api/games/<session_id>[/...]
SESSION_PATH = re.compile(r"^/api/games/(?P<session_id>[^/]+)")


class RequestIDMiddleware(BaseHTTPMiddleware):
    """
    HTTP middleware for request ID generation and propagation.

    - Extracts X-Request-ID from incoming request headers
    - Generates a new UUID if not present
    - Sets request_id (and session_id for game routes) in context vars
    - Adds X-Request-ID to response headers
    """

    def __init__(
        self,
        app,
        header_name: str = "X-Request-ID",
        generator: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize request ID middleware.

        Args:
            app: FastAPI application.
            header_name: Header name for request ID.
            generator: Optional custom ID generator function.
        """
        super().__init__(app)
        self.header_name = header_name
        self.generator = generator or (lambda: str(uuid.uuid4()))

    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get(self.header_name) or self.generator()
        request.state.request_id = request_id

        request_token = request_id_var.set(request_id)
        match = SESSION_PATH.match(request.url.path)
        session_token = session_id_var.set(match.group("session_id")) if match else None

        try:
            response = await call_next(request)
            response.headers[self.header_name] = request_id
            return response
        finally:
            if session_token is not None:
                session_id_var.reset(session_token)
            request_id_var.reset(request_token)

