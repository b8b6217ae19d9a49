"""
Request audit log
One line per request: who asked, what the ledger did about it, status and latency.
Handlers report the caller and the ledger outcome through record_outcome().
"""

import time
import logging
import traceback
from typing import Any, Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

logger = logging.getLogger(__name__)


def record_outcome(request: Request, outcome: str, actor: Optional[Any] = None):
    """Attach the ledger outcome (and caller id, when known) to the request for the audit line"""
    request.state.outcome = outcome
    if actor is not None:
        request.state.actor = str(actor)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class AuditLogMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception as e:
            process_time = (time.time() - start_time) * 1000
            logger.error(
                f"❌ {request.method} {request.url.path} user={getattr(request.state, 'actor', '-')} "
                f"crashed after {process_time:.2f}ms: {e}\n"
                f"Traceback:\n{traceback.format_exc()}"
            )
            # The app-level handler turns it into a JSON 500
            raise

        process_time = (time.time() - start_time) * 1000
        actor = getattr(request.state, "actor", None) or request.query_params.get("userId") or "-"
        outcome = getattr(request.state, "outcome", None) or "-"

        logger.log(
            _level_for(response.status_code),
            f"{request.method} {request.url.path} user={actor} outcome={outcome} "
            f"-> {response.status_code} in {process_time:.2f}ms"
        )
        return response
