"""
Request context passed from the host HTTP layer to the ingestion gate.
"""

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Sequence

from ..config.constants import DEFAULT_INTERNAL_PATH_PREFIXES, DEFAULT_REQUEST_METHOD

# X-Requested-With value marking XHR calls made by the admin UI
ASYNC_CALLBACK_VALUE = "xmlhttprequest"

# WSGI environ key set by the pipeline's own background jobs
BACKGROUND_ENVIRON_KEY = "ai_traffic_logger.background"


def _headers_from_environ(environ: Mapping[str, Any]) -> dict[str, str]:
    """Rebuild HTTP header names from WSGI HTTP_* keys."""
    headers = {}
    for key, value in environ.items():
        if key.startswith("HTTP_"):
            name = "-".join(part.capitalize() for part in key[5:].split("_"))
            headers[name] = str(value)
    return headers


def is_internal_path(path: str, prefixes: Sequence[str]) -> bool:
    """Check whether path falls under one of the internal prefixes."""
    for prefix in prefixes:
        prefix = prefix.rstrip("/")
        if not prefix:
            continue
        if path == prefix or path.startswith(prefix + "/"):
            return True
    return False


@dataclass(frozen=True)
class RequestContext:
    """
    The parts of an inbound request the gate needs.

    Attributes:
        user_agent: User-Agent header, may be empty
        referrer: Referer header, may be empty
        request_path: Mount point and path plus query string
        method: HTTP verb
        remote_addr: Direct connection address
        headers: Request headers, used for client IP resolution
        is_admin: Request targets the administrative UI
        is_background: Request comes from a scheduled job
        is_async_callback: Request is an async callback (XHR)
    """

    user_agent: str = ""
    referrer: str = ""
    request_path: str = "/"
    method: str = DEFAULT_REQUEST_METHOD
    remote_addr: Optional[str] = None
    headers: Mapping[str, str] = field(default_factory=dict)
    is_admin: bool = False
    is_background: bool = False
    is_async_callback: bool = False

    @property
    def is_internal(self) -> bool:
        """Internal requests are never logged."""
        return self.is_admin or self.is_background or self.is_async_callback

    @classmethod
    def from_wsgi_environ(
        cls,
        environ: Mapping[str, Any],
        internal_path_prefixes: Optional[Sequence[str]] = None,
    ) -> "RequestContext":
        """
        Build a context from a WSGI environ.

        Args:
            environ: WSGI environment dictionary
            internal_path_prefixes: Path prefixes treated as admin requests
        """
        if internal_path_prefixes is None:
            internal_path_prefixes = DEFAULT_INTERNAL_PATH_PREFIXES

        # Full path as the client sent it, including any mount point
        path = (environ.get("SCRIPT_NAME") or "") + (environ.get("PATH_INFO") or "")
        path = path or "/"
        query = environ.get("QUERY_STRING") or ""
        request_path = f"{path}?{query}" if query else path

        requested_with = environ.get("HTTP_X_REQUESTED_WITH") or ""

        return cls(
            user_agent=environ.get("HTTP_USER_AGENT") or "",
            referrer=environ.get("HTTP_REFERER") or "",
            request_path=request_path,
            method=environ.get("REQUEST_METHOD") or DEFAULT_REQUEST_METHOD,
            remote_addr=environ.get("REMOTE_ADDR") or None,
            headers=_headers_from_environ(environ),
            is_admin=is_internal_path(path, internal_path_prefixes),
            is_background=bool(environ.get(BACKGROUND_ENVIRON_KEY)),
            is_async_callback=requested_with.lower() == ASYNC_CALLBACK_VALUE,
        )
