"""
Blocking bridge from synchronous callers to async storage I/O.

The host database calls the replicator from its own thread and expects
write/commit to return only once the remote round trip is done. The
BlockingBridge owns a dedicated daemon thread running an asyncio event
loop; run() submits a coroutine to that loop and blocks the caller until
it completes.

Invariants:
    - All coroutines of one session execute on the same loop, so the
      aiobotocore client is created and used on a single loop
    - run() re-raises the coroutine's exception in the calling thread
    - run() must not be called from the bridge's own loop thread

How to change safely:
    - Keep commit latency visible: never return before the coroutine ends
    - Stop the bridge only after closing clients bound to its loop
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
import threading
from typing import Any, Awaitable, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class BlockingBridge:
    """Dedicated event loop thread with a blocking submit call.

    Example:
        >>> bridge = BlockingBridge()
        >>> bridge.start()
        >>> bridge.run(store.put(key, data))
        >>> bridge.stop()
    """

    def __init__(self, name: str = "bottomless-io") -> None:
        self.name = name
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._thread: Optional[threading.Thread] = None
        self._started = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the loop thread. Idempotent."""
        if self.is_running:
            return
        self._loop = asyncio.new_event_loop()
        self._started.clear()
        self._thread = threading.Thread(target=self._run_loop, name=self.name, daemon=True)
        self._thread.start()
        self._started.wait()
        logger.debug("Blocking bridge started", extra={"thread": self.name})

    def _run_loop(self) -> None:
        asyncio.set_event_loop(self._loop)
        self._loop.call_soon(self._started.set)
        try:
            self._loop.run_forever()
        finally:
            self._loop.close()

    def run(self, coro: Awaitable[T], timeout: Optional[float] = None) -> T:
        """Run a coroutine on the bridge loop and wait for its result.

        Args:
            coro: Coroutine to execute
            timeout: Optional seconds to wait; None blocks until done

        Returns:
            The coroutine's result

        Raises:
            RuntimeError: If the bridge is not running or called from its
                own thread
            concurrent.futures.TimeoutError: If timeout elapses first
        """
        if not self.is_running:
            raise RuntimeError("Blocking bridge is not running")
        if threading.current_thread() is self._thread:
            raise RuntimeError("BlockingBridge.run() called from the bridge thread")

        future = asyncio.run_coroutine_threadsafe(coro, self._loop)
        try:
            return future.result(timeout)
        except concurrent.futures.TimeoutError:
            future.cancel()
            raise

    def stop(self, timeout: float = 5.0) -> None:
        """Stop the loop and join the thread."""
        if not self.is_running:
            return
        self._loop.call_soon_threadsafe(self._loop.stop)
        self._thread.join(timeout)
        self._thread = None
        logger.debug("Blocking bridge stopped", extra={"thread": self.name})

    def __enter__(self) -> "BlockingBridge":
        self.start()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.stop()
