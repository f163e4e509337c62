"""
One-shot authorization gate.

A fresh gate is created for each connection attempt. It is signaled exactly
once, either open (authorized) or failed with an exception; later signals
are ignored.
"""

import asyncio
import logging
from typing import Optional

from ..core.errors import AuthorizationTimeout, ErrorCode

logger = logging.getLogger(__name__)


def _consume_exception(future: asyncio.Future) -> None:
    # Keeps asyncio from reporting a failure nobody awaited
    if not future.cancelled():
        future.exception()


class AuthorizationGate:
    """Awaitable that resolves when the session is authorized."""

    def __init__(self):
        self._future: asyncio.Future = asyncio.get_running_loop().create_future()
        self._future.add_done_callback(_consume_exception)

    @property
    def is_signaled(self) -> bool:
        return self._future.done()

    @property
    def is_open(self) -> bool:
        return self._future.done() and not self._future.cancelled() \
            and self._future.exception() is None

    @property
    def failure(self) -> Optional[BaseException]:
        """The exception the gate failed with, None if open or pending."""
        if not self._future.done() or self._future.cancelled():
            return None
        return self._future.exception()

    def raise_if_failed(self) -> None:
        error = self.failure
        if error is not None:
            raise error

    def open(self) -> bool:
        """Signal success. Returns False if already signaled."""
        if self._future.done():
            logger.debug("Authorization gate already signaled, ignoring open")
            return False
        self._future.set_result(None)
        return True

    def fail(self, error: BaseException) -> bool:
        """Signal failure. Returns False if already signaled."""
        if self._future.done():
            logger.debug(f"Authorization gate already signaled, ignoring failure: {error}")
            return False
        self._future.set_exception(error)
        return True

    async def wait(self, timeout: Optional[float] = None) -> None:
        """
        Wait until the gate is signaled.

        Raises:
            The failure the gate was signaled with, or AuthorizationTimeout
            if nothing arrives within timeout seconds.
        """
        try:
            await asyncio.wait_for(asyncio.shield(self._future), timeout)
        except asyncio.TimeoutError:
            self.fail(AuthorizationTimeout(
                f"Not authorized within {timeout}s",
                code=ErrorCode.E4003_AUTHORIZATION_TIMEOUT,
                context={'timeout': timeout},
            ))
            # Another waiter may have signaled first
            await self._future
