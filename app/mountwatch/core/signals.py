"""One-shot signalling primitives.

CompleteOnce is a completion cell that can be resolved exactly once and
observed by a single consumer. CancellationToken fans one cancel() call out
to every registered teardown callback. Both are meant to be used from a
single event loop thread.
"""

import asyncio
import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)


class CompleteOnce:
    """A completion cell that resolves at most once.

    Any number of producers may call resolve(); only the first call has an
    effect. The single consumer either registers a callback with
    on_complete() or awaits wait().

    Example:
        >>> done = CompleteOnce()
        >>> done.on_complete(lambda: print("gone"))
        >>> done.resolve()
        gone
        True
        >>> done.resolve()
        False
    """

    def __init__(self) -> None:
        self._resolved = False
        self._callback: Callable[[], None] | None = None
        self._event: asyncio.Event | None = None

    @property
    def resolved(self) -> bool:
        """Whether resolve() has been called."""
        return self._resolved

    def on_complete(self, callback: Callable[[], None]) -> None:
        """Register the consumer callback.

        If the cell is already resolved the callback runs immediately.

        Args:
            callback: Zero-argument callable to run on resolution.

        Raises:
            RuntimeError: If a consumer callback is already registered.
        """
        if self._callback is not None:
            msg = "CompleteOnce already has a consumer"
            raise RuntimeError(msg)
        self._callback = callback
        if self._resolved:
            callback()

    def resolve(self) -> bool:
        """Resolve the cell.

        Returns:
            True if this call resolved the cell, False if it was already
            resolved.
        """
        if self._resolved:
            return False
        self._resolved = True
        if self._event is not None:
            self._event.set()
        if self._callback is not None:
            self._callback()
        return True

    async def wait(self) -> None:
        """Wait until the cell is resolved."""
        if self._resolved:
            return
        if self._event is None:
            self._event = asyncio.Event()
        await self._event.wait()


class CancellationToken:
    """Runs every registered teardown callback once, on the first cancel().

    Callbacks registered after cancellation run immediately, so a resource
    created while a cancel was racing with setup is still released.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._callbacks: list[Callable[[], None]] = []

    @property
    def cancelled(self) -> bool:
        """Whether cancel() has been called."""
        return self._cancelled

    def register(self, callback: Callable[[], None]) -> None:
        """Register a teardown callback.

        Args:
            callback: Zero-argument callable run on cancellation.
        """
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def cancel(self) -> bool:
        """Cancel the token, running all teardown callbacks in order.

        Every callback runs even if an earlier one raises; the first error
        is re-raised after all callbacks have run.

        Returns:
            True if this call cancelled the token, False if it was already
            cancelled.
        """
        if self._cancelled:
            return False
        self._cancelled = True
        callbacks, self._callbacks = self._callbacks, []

        first_error: Exception | None = None
        for callback in callbacks:
            try:
                callback()
            except Exception as e:
                logger.warning("Teardown callback failed: %s", e)
                if first_error is None:
                    first_error = e
        if first_error is not None:
            raise first_error
        return True
