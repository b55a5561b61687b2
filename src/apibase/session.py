"""Session latch -- lazy, single-flight sign-in for an API client.

:class:`SessionLatch` gates every outgoing call on a one-time sign-in. The
state only moves forward (``UNAUTHENTICATED`` -> ``AUTHENTICATING`` ->
``AUTHENTICATED``) except when the sign-in hook fails, in which case it
rolls back to ``UNAUTHENTICATED`` so the next call tries again.

An :class:`asyncio.Lock` guarantees that concurrent first calls run the hook
exactly once; the losers wait for the winner and then observe its outcome.
If the winner failed, the next waiter to acquire the lock retries.

The hook may issue calls through the same client (for example a
``POST /login``). Those nested calls run in the sign-in's context (a
:class:`~contextvars.ContextVar` that tasks spawned by the hook inherit),
so :meth:`SessionLatch.ensure_signed_in` returns immediately for them and
they go out without credentials.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from contextvars import ContextVar
from typing import Optional

from apibase.models import SessionState
from apibase.output import get_output

# Set while a latch runs its sign-in hook; tasks spawned by the hook inherit it.
_signing_in: ContextVar[Optional["SessionLatch"]] = ContextVar("apibase_signing_in", default=None)


class SessionLatch:
    """Tracks sign-in state and runs the sign-in hook at most once at a time.

    Args:
        sign_in: Zero-argument coroutine function establishing whatever
            session or token state credential injection relies on.
    """

    def __init__(self, sign_in: Callable[[], Awaitable[None]]) -> None:
        self._sign_in = sign_in
        self._state = SessionState.UNAUTHENTICATED
        self._lock = asyncio.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def is_signed_in(self) -> bool:
        return self._state is SessionState.AUTHENTICATED

    async def ensure_signed_in(self) -> None:
        """Sign in if no sign-in has succeeded yet.

        Raises:
            Exception: Whatever the sign-in hook raised; the state is rolled
                back to ``UNAUTHENTICATED`` first.
        """
        if self._state is SessionState.AUTHENTICATED:
            return
        if _signing_in.get() is self:
            return

        async with self._lock:
            if self._state is SessionState.AUTHENTICATED:
                return

            output = get_output()
            self._state = SessionState.AUTHENTICATING
            token = _signing_in.set(self)
            output.debug("Signing in")
            try:
                await self._sign_in()
            except BaseException:
                self._state = SessionState.UNAUTHENTICATED
                output.debug("Sign-in failed; the next call will retry")
                raise
            finally:
                _signing_in.reset(token)
            self._state = SessionState.AUTHENTICATED
            output.debug("Signed in")
