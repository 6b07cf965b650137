"""
backend/netprophet/middleware/logging.py

Purpose:
    One JSON log line per HTTP request (request id, session hash, route,
    status, latency) and the process-wide logging setup.
"""

import hashlib
import json
import logging
import time
import uuid
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from netprophet.config import settings

logger = logging.getLogger("netprophet.requests")


def _session_hash(session_id: Optional[str]) -> Optional[str]:
    # Session ids act as bearer credentials
    if not session_id:
        return None
    return hashlib.sha256(session_id.encode()).hexdigest()[:12]


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next) -> Response:
        request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:8]
        request.state.request_id = request_id
        started = time.perf_counter()

        response: Response = await call_next(request)

        record = {
            "request_id": request_id,
            "session": _session_hash(request.headers.get("X-Session-ID")),
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "duration_ms": round((time.perf_counter() - started) * 1000, 2),
        }
        logger.log(logging.WARNING if response.status_code >= 400 else logging.INFO, json.dumps(record))

        response.headers["X-Request-ID"] = request_id
        return response


def setup_logging(level: Optional[str] = None) -> None:
    logging.basicConfig(
        level=(level or settings.LOG_LEVEL).upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
