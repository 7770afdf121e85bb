"""
Shared utilities for route modules.
"""

import logging

from fastapi import Request
from fastapi.responses import HTMLResponse

from ....core.logging_utils import log_event

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


def something_went_wrong(request: Request, exc: Exception) -> HTMLResponse:
    """Plain 500 page used when the docker CLI itself fails."""
    log_event(
        request.app.state.logger,
        logging.ERROR,
        "web.request_failed",
        path=request.url.path,
        exc=exc,
    )
    return HTMLResponse(f"Something went wrong: {exc}", status_code=500)
