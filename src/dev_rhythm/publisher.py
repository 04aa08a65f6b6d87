"""Per-second ticker and asynchronous delivery to subscribers."""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections import defaultdict
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

Subscriber = Callable[[Any], None]

_STOP = object()


class EventBus:
    """Deliver events to subscribers on a dispatcher thread.

    ``publish`` only enqueues, so a slow subscriber never delays the caller.
    With ``synchronous=True`` events are delivered inline instead.
    """

    def __init__(self, *, synchronous: bool = False) -> None:
        self.synchronous = synchronous
        self._subscribers: defaultdict[type, list[Subscriber]] = defaultdict(list)
        self._lock = threading.Lock()
        self._queue: "queue.Queue[Any]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None

    def subscribe(self, event_type: type, callback: Subscriber) -> Callable[[], None]:
        with self._lock:
            self._subscribers[event_type].append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers[event_type]:
                    self._subscribers[event_type].remove(callback)

        return unsubscribe

    def publish(self, event: Any) -> None:
        if self.synchronous:
            self._deliver(event)
        else:
            self._queue.put(event)

    def start(self) -> None:
        if self.synchronous:
            return
        with self._lock:
            if self._thread and self._thread.is_alive():
                return
            self._thread = threading.Thread(
                target=self._run, name="dev-rhythm-dispatch", daemon=True
            )
            self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        with self._lock:
            thread = self._thread
            self._thread = None
        if thread is None:
            return
        self._queue.put(_STOP)
        thread.join(timeout=timeout)

    def flush(self) -> None:
        """Block until every queued event has been delivered."""
        if self.synchronous:
            return
        with self._lock:
            thread = self._thread
        # Nothing drains the queue once the dispatcher is gone.
        if thread is None or not thread.is_alive():
            return
        self._queue.join()

    def _run(self) -> None:
        while True:
            event = self._queue.get()
            try:
                if event is _STOP:
                    return
                self._deliver(event)
            finally:
                self._queue.task_done()

    def _deliver(self, event: Any) -> None:
        with self._lock:
            callbacks = list(self._subscribers.get(type(event), ()))
        for callback in callbacks:
            try:
                callback(event)
            except Exception:
                logger.exception("Subscriber %r failed on %s.", callback, type(event).__name__)


class Ticker:
    """Call ``callback`` at a fixed rate on a daemon thread."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], None],
        *,
        name: str = "dev-rhythm-ticker",
    ) -> None:
        self.interval = interval
        self.callback = callback
        self.name = name
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.debug("Ticker %s started every %.3fs.", self.name, self.interval)

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return
        # The callback itself may stop the ticker; never join ourselves.
        if thread is not threading.current_thread():
            thread.join(timeout=timeout)
        self._thread = None
        logger.debug("Ticker %s stopped.", self.name)

    def is_running(self) -> bool:
        return bool(self._thread and self._thread.is_alive() and not self._stop_event.is_set())

    def _run(self) -> None:
        deadline = time.monotonic()
        while not self._stop_event.is_set():
            try:
                self.callback()
            except Exception:
                logger.exception("Tick callback failed.")
            deadline += self.interval
            delay = deadline - time.monotonic()
            if delay < 0:
                deadline = time.monotonic()
                delay = 0
            self._stop_event.wait(delay)
