"""
Lifetime signal and alive-client accounting.

A Lifetime bounds how long pooled tool servers may stay up. Resource
owners register a release callback with after() when the resource goes
live; cancel() fires every callback once, each on its own thread, so
one slow subprocess does not hold up the others. An external drainer
watches an AliveCounter until it reaches zero.
"""

from __future__ import annotations

import logging
import signal
import threading
from typing import Callable

logger = logging.getLogger(__name__)


def recover(fn: Callable[[], object], what: str = "cleanup") -> None:
    """Run a cleanup step. Failures are logged and swallowed."""
    try:
        fn()
    except Exception as e:
        logger.warning(f"recovered from failure during {what}: {e}")


class AliveCounter:
    """Counts live tool-server clients. Never goes negative."""

    def __init__(self):
        self._value = 0
        self._lock = threading.Lock()

    def increment(self) -> int:
        with self._lock:
            self._value += 1
            return self._value

    def decrement(self) -> int:
        with self._lock:
            if self._value == 0:
                logger.error("alive client counter decremented below zero; ignoring")
                return 0
            self._value -= 1
            return self._value

    def load(self) -> int:
        return self._value


class Lifetime:
    """
    Cancellation signal with after-cancel callbacks.

    Usage:
        lifetime = Lifetime.on_interrupt()
        stop = lifetime.after(lambda: client.close())
        ...
        lifetime.cancel()   # or Ctrl+C
        lifetime.join()
    """

    def __init__(self):
        self._cancelled = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: dict[int, Callable[[], None]] = {}
        self._next_key = 0
        self._threads: list[threading.Thread] = []

    @classmethod
    def on_interrupt(cls) -> "Lifetime":
        """Create a Lifetime that is cancelled by SIGINT (Ctrl+C)."""
        lifetime = cls()

        def _handler(signum, frame):
            logger.info("Interrupt received, cancelling lifetime")
            lifetime.cancel()

        signal.signal(signal.SIGINT, _handler)
        return lifetime

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def wait(self, timeout: float | None = None) -> bool:
        return self._cancelled.wait(timeout)

    def after(self, callback: Callable[[], None]) -> Callable[[], bool]:
        """
        Run callback once when the lifetime is cancelled.

        If it is already cancelled, callback is scheduled right away.

        Returns:
            A stop function. Calling it unregisters the callback and
            returns True if that prevented the callback from running.
        """
        with self._lock:
            if not self._cancelled.is_set():
                key = self._next_key
                self._next_key += 1
                self._callbacks[key] = callback

                def stop() -> bool:
                    with self._lock:
                        return self._callbacks.pop(key, None) is not None

                return stop

        self._spawn(callback)
        return lambda: False

    def cancel(self) -> None:
        """Cancel the lifetime. Only the first call fires callbacks."""
        with self._lock:
            if self._cancelled.is_set():
                return
            self._cancelled.set()
            callbacks = list(self._callbacks.values())
            self._callbacks.clear()

        logger.debug(f"Lifetime cancelled, running {len(callbacks)} callbacks")
        for callback in callbacks:
            self._spawn(callback)

    def join(self, timeout: float | None = None) -> None:
        """Wait for callback threads started so far."""
        with self._lock:
            threads = list(self._threads)
        for thread in threads:
            thread.join(timeout)

    def _spawn(self, callback: Callable[[], None]) -> None:
        thread = threading.Thread(target=recover, args=(callback, "lifetime callback"), daemon=True)
        with self._lock:
            self._threads.append(thread)
        thread.start()
