"""
High-level client for the agent chat endpoint.

Reads its configuration from keyword arguments, falling back to the
CORTEX_CHAT_BASE_URL and CORTEX_CHAT_TOKEN environment variables.
"""

from __future__ import annotations

from collections.abc import Callable
import os
from typing import Any

from ._exceptions import BackendError
from ._http import DEFAULT_CHAT_PATH, ChatTransport
from ._types import StreamSnapshot, StreamState
from .session import StreamSession

DEFAULT_BASE_URL = "http://localhost:3000"


def _unwrap_thread_id(thread_id: Any) -> Any:
    if isinstance(thread_id, dict):
        return thread_id.get("thread_id") or thread_id.get("threadId") or thread_id.get("id")
    return thread_id


def build_chat_request(
    message: str,
    *,
    thread_id: Any = None,
    parent_message_id: int | None = None,
    agent_id: str | None = None,
) -> dict[str, Any]:
    """Build the JSON body for one user turn."""
    body: dict[str, Any] = {
        "messages": [{"role": "user", "content": [{"type": "text", "text": message}]}],
        "stream": True,
        "parent_message_id": parent_message_id if parent_message_id is not None else 0,
    }
    thread_id = _unwrap_thread_id(thread_id)
    if thread_id is not None:
        body["thread_id"] = thread_id
    if agent_id is not None:
        body["agent_id"] = agent_id
    return body


class CortexChat:
    """
    Client for streaming agent answers.

    Usage:
        chat = CortexChat(base_url="http://localhost:3000")
        snapshot = chat.ask("Revenue by region last quarter?")
        print(snapshot.final_answer.text)
        if snapshot.final_answer.table:
            print(snapshot.final_answer.table.headers)
    """

    def __init__(
        self,
        base_url: str | None = None,
        token: str | None = None,
        timeout: int = 300,
        path: str = DEFAULT_CHAT_PATH,
    ):
        base_url = base_url or os.environ.get("CORTEX_CHAT_BASE_URL", DEFAULT_BASE_URL)
        token = token or os.environ.get("CORTEX_CHAT_TOKEN")
        self.transport = ChatTransport(base_url=base_url, token=token, timeout=timeout, path=path)

    def session(self, on_update: Callable[[StreamSnapshot], Any] | None = None) -> StreamSession:
        """Create a session bound to this client's transport."""
        return StreamSession(self.transport, on_update=on_update)

    def ask(
        self,
        message: str,
        *,
        thread_id: Any = None,
        parent_message_id: int | None = None,
        agent_id: str | None = None,
        on_update: Callable[[StreamSnapshot], Any] | None = None,
    ) -> StreamSnapshot:
        """
        Stream one turn and return the final snapshot.

        Raises:
            BackendError: If the session ended in the ``error`` state.
        """
        body = build_chat_request(
            message, thread_id=thread_id, parent_message_id=parent_message_id, agent_id=agent_id
        )
        snapshot = self.session(on_update=on_update).start(body)
        if snapshot.stream_state == StreamState.ERROR:
            raise BackendError(snapshot.error or "Unknown streaming error")
        return snapshot

    def close(self) -> None:
        self.transport.close()
