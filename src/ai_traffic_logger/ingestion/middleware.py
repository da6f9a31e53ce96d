"""
WSGI middleware that runs the ingestion gate ahead of the application.

Usage:
    from ai_traffic_logger.ingestion import AITrafficMiddleware

    app = AITrafficMiddleware(app, gate)
"""

import logging
from typing import Any, Callable, Iterable, Optional, Sequence

from .context import RequestContext
from .gate import IngestionGate

logger = logging.getLogger(__name__)

WSGIApp = Callable[[dict, Callable], Iterable[bytes]]


class AITrafficMiddleware:
    """
    Wrap a WSGI application and log AI traffic before handling requests.

    A failure inside the gate is logged and the request proceeds; logging
    can cost a missed entry, never a broken response.
    """

    def __init__(
        self,
        app: WSGIApp,
        gate: IngestionGate,
        internal_path_prefixes: Optional[Sequence[str]] = None,
    ):
        self.app = app
        self.gate = gate
        if internal_path_prefixes is None:
            internal_path_prefixes = gate.settings.internal_path_prefixes
        self.internal_path_prefixes = list(internal_path_prefixes)

    def __call__(self, environ: dict, start_response: Callable) -> Any:
        try:
            ctx = RequestContext.from_wsgi_environ(
                environ, self.internal_path_prefixes
            )
            self.gate.handle(ctx)
        except Exception as e:
            logger.error(f"AI traffic logging failed for request: {e}")

        return self.app(environ, start_response)
