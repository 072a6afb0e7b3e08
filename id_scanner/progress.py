"""
One-way progress channel.

The pipeline publishes status tokens; callers observe them. Nothing a
consumer does with an event can influence the pipeline.
"""
import logging
import queue
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterator, List, Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressEvent:
    """A single status update from the pipeline."""
    token: str
    detail: Dict = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


class ProgressChannel:
    """
    Thread-safe, one-way event channel.

    Producers (recognition workers, the capture loop) call ``publish``.
    Consumers either drain the buffered events or register listeners that
    are invoked synchronously on publish. Listener exceptions are logged
    and discarded.
    """

    def __init__(self, maxsize: int = 0):
        self._events: "queue.Queue[ProgressEvent]" = queue.Queue(maxsize=maxsize)
        self._listeners: List[Callable[[ProgressEvent], None]] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Callable[[ProgressEvent], None]):
        with self._lock:
            self._listeners.append(listener)

    def publish(self, token: str, **detail):
        event = ProgressEvent(token=token, detail=detail)
        try:
            self._events.put_nowait(event)
        except queue.Full:
            logger.debug(f"Progress buffer full, dropping buffered event {token}")

        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.warning(f"Progress listener failed on '{token}': {e}")

    def drain(self) -> List[ProgressEvent]:
        """Return and remove every buffered event."""
        events = []
        while True:
            try:
                events.append(self._events.get_nowait())
            except queue.Empty:
                return events

    def __iter__(self) -> Iterator[ProgressEvent]:
        return iter(self.drain())

    def tokens(self) -> List[str]:
        return [event.token for event in self.drain()]


def null_channel() -> ProgressChannel:
    """Channel for callers that do not care about progress."""
    return ProgressChannel(maxsize=256)


def ensure_channel(channel: Optional[ProgressChannel]) -> ProgressChannel:
    return channel if channel is not None else null_channel()
