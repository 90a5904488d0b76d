"""
Stream session lifecycle: ``idle -> streaming -> done | error``.

A :class:`StreamSession` wires the transport, the SSE frame reader and a
:class:`ContentAggregator` together. Each call to :meth:`StreamSession.start`
or :meth:`StreamSession.reset` allocates a fresh aggregator and abort signal,
so nothing from an earlier turn leaks into the next one.
"""

from __future__ import annotations

from collections.abc import Callable, Generator
import logging
import threading
from typing import TYPE_CHECKING, Any, Protocol

from ._exceptions import StreamAborted
from ._http import raise_for_status
from ._types import StreamSnapshot, StreamState
from .aggregator import ContentAggregator
from .streaming import AbortSignal, iter_events

if TYPE_CHECKING:
    import requests

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Issues the chat request and returns the streaming response."""

    def __call__(self, body: dict[str, Any], signal: AbortSignal) -> requests.Response: ...


class _Run:
    """State owned by one start/reset cycle."""

    def __init__(self) -> None:
        self.aggregator = ContentAggregator()
        self.signal = AbortSignal()


class StreamSession:
    """
    One conversational turn streamed from the agent backend.

    Usage:
        session = StreamSession(ChatTransport("http://localhost:3000"))
        for snapshot in session.stream(build_chat_request("Top 5 regions?")):
            print(snapshot.stream_state, snapshot.agent_status)
        print(session.snapshot.final_answer.text)

    ``stop()`` may be called between iterations, from an ``on_update``
    callback, or from another thread.
    """

    def __init__(
        self,
        transport: Transport,
        on_update: Callable[[StreamSnapshot], Any] | None = None,
    ):
        self._transport = transport
        self._on_update = on_update
        self._lock = threading.Lock()
        self._run = _Run()

    @property
    def snapshot(self) -> StreamSnapshot:
        """Latest published snapshot of the current run."""
        return self._run.aggregator.snapshot

    @property
    def state(self) -> StreamState:
        return self.snapshot.stream_state

    def reset(self) -> None:
        """Abandon the current run and return to ``idle`` with empty state."""
        with self._lock:
            previous, self._run = self._run, _Run()
        previous.signal.abort()
        self._notify(self._run)

    def stop(self) -> None:
        """Cancel the transport and force ``done``, keeping the answer so far."""
        run = self._run
        run.signal.abort()
        run.aggregator.publish(stream_state=StreamState.DONE)
        self._notify(run)

    def start(self, request_body: dict[str, Any]) -> StreamSnapshot:
        """Stream one turn to completion and return the final snapshot."""
        snapshot = self.snapshot
        for snapshot in self.stream(request_body):
            pass
        return snapshot

    def stream(self, request_body: dict[str, Any]) -> Generator[StreamSnapshot, None, None]:
        """
        Start a turn and yield every new snapshot as events are applied.

        Closing the generator before it is exhausted stops the session.
        """
        self.reset()
        run = self._run
        reader = self._read(run, request_body)
        last: StreamSnapshot | None = None

        try:
            run.aggregator.publish(stream_state=StreamState.STREAMING)
            last = self._notify(run)
            yield last
            for snapshot in reader:
                last = snapshot
                yield snapshot
        except StreamAborted:
            logger.debug("Stream aborted")
        except Exception as e:
            if run.signal.aborted:
                logger.debug("Read ended after abort: %s", e)
            else:
                logger.warning("Stream failed: %s", e)
                message = getattr(e, "message", None) or str(e) or "Streaming connection error"
                run.aggregator.publish(stream_state=StreamState.ERROR, error=message)
        finally:
            reader.close()
            aggregator = run.aggregator
            if aggregator.snapshot.stream_state == StreamState.STREAMING or (
                run.signal.aborted and aggregator.snapshot.stream_state != StreamState.DONE
            ):
                aggregator.publish(stream_state=StreamState.DONE)
            run.signal.abort()

        if run.aggregator.snapshot is not last:
            yield self._notify(run)

    def _read(
        self, run: _Run, request_body: dict[str, Any]
    ) -> Generator[StreamSnapshot, None, None]:
        response = self._transport(request_body, run.signal)
        try:
            raise_for_status(response)
            chunks = response.iter_content(chunk_size=None)
            for event in iter_events(chunks, signal=run.signal):
                run.signal.raise_if_aborted()
                logger.debug("SSE event %s", event.event or "<unnamed>")
                before = run.aggregator.snapshot
                finished = run.aggregator.apply(event)
                if run.aggregator.snapshot is not before:
                    yield self._notify(run)
                if finished:
                    return
        finally:
            response.close()

    def _notify(self, run: _Run) -> StreamSnapshot:
        snapshot = run.aggregator.snapshot
        if self._on_update is not None and run is self._run:
            self._on_update(snapshot)
        return snapshot
