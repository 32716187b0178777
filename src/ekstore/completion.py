"""Bridge completion-callback backend calls onto asyncio futures."""

import asyncio
import logging
import threading
import weakref

logger = logging.getLogger(__name__)


class Completion:
    """
    One-shot completion callback bound to an asyncio future.

    The backend may invoke ``resolve``/``reject`` from any thread, any number
    of times; only the first call is delivered. Until then the completion
    keeps strong references to ``keepalive`` (predicate, calendar handles). It
    holds only a weak reference to ``owner`` and drops the result when the
    owner has been closed or collected by the time the callback fires.
    """

    def __init__(self, owner, keepalive=(), loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop or asyncio.get_running_loop()
        self.future: asyncio.Future = self._loop.create_future()
        self._owner = weakref.ref(owner)
        self._keepalive = tuple(keepalive)
        self._lock = threading.Lock()
        self._called = False

    @property
    def called(self) -> bool:
        return self._called

    def resolve(self, value=None) -> None:
        self._schedule(self._settle, value, None)

    def reject(self, error: BaseException) -> None:
        self._schedule(self._settle, None, error)

    def _schedule(self, settle, value, error) -> None:
        with self._lock:
            if self._called:
                logger.debug("Ignoring repeated completion callback")
                return
            self._called = True
        try:
            self._loop.call_soon_threadsafe(settle, value, error)
        except RuntimeError:
            logger.debug("Event loop closed before completion was delivered")

    def _settle(self, value, error) -> None:
        self._keepalive = ()
        if self.future.done():
            return
        owner = self._owner()
        if owner is None or getattr(owner, "closed", False):
            logger.debug("Dropping completion for a closed session")
            self.future.cancel()
            return
        if error is not None:
            self.future.set_exception(error)
        else:
            self.future.set_result(value)

    def cancel(self) -> None:
        """Cancel the waiting future; a later callback becomes a no-op."""
        with self._lock:
            self._called = True
        self._keepalive = ()
        if not self.future.done():
            self.future.cancel()
