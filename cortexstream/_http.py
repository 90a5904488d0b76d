"""Thin streaming transport wrapping requests.Session with auth and error mapping."""

import logging
from typing import Any

import requests

from ._exceptions import STATUS_MAP, APIError
from .streaming import AbortSignal

logger = logging.getLogger(__name__)

DEFAULT_CHAT_PATH = "/api/chat"


def raise_for_status(resp: requests.Response) -> None:
    """Map a non-2xx response to a typed exception carrying the body text."""
    if resp.ok:
        return
    try:
        body = resp.text
    except Exception as e:
        logger.debug("Failed to read error body: %s", e)
        body = ""
    body = body or "Unknown error"

    resp.close()
    exc_cls = STATUS_MAP.get(resp.status_code, APIError)
    raise exc_cls(f"HTTP {resp.status_code}: {body}", status_code=resp.status_code, body=body)


class ChatTransport:
    """
    POSTs a chat request and returns the streaming SSE response.

    Matches the session's transport contract: ``transport(body, signal)``.
    Aborting ``signal`` closes the response, which unblocks a pending read.
    Requests are never retried.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: int = 300,
        path: str = DEFAULT_CHAT_PATH,
    ):
        self._session = requests.Session()
        self._session.headers["Content-Type"] = "application/json"
        self._session.headers["Accept"] = "text/event-stream"
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"
        self._url = f"{base_url.rstrip('/')}/{path.lstrip('/')}"
        self._timeout = timeout

    @property
    def url(self) -> str:
        return self._url

    def __call__(self, body: dict[str, Any], signal: AbortSignal) -> requests.Response:
        try:
            resp = self._session.post(self._url, json=body, stream=True, timeout=self._timeout)
        except (requests.Timeout, requests.ConnectionError) as e:
            logger.warning("Chat request to %s failed: %s", self._url, e)
            raise APIError(str(e), status_code=None) from e

        signal.add_listener(resp.close)
        return resp

    def close(self) -> None:
        self._session.close()
