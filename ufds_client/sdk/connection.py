"""
Connection Manager - Bind handshake, backoff and lifecycle signals.

Owns the one directory session of a DirectoryClient. Blocking transport
calls run on a worker thread pool so the event loop never waits on the
network.

Signals:
- connect / ready: session bound
- error: retries exhausted or bind credentials rejected
- timeout: a call on the bound session timed out (not fatal)
- close: session released by close()
"""

import asyncio
import functools
import inspect
import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional, Set

from ldap3.core import results
from ldap3.core.exceptions import (
    LDAPBindError,
    LDAPOperationResult,
    LDAPResponseTimeoutError,
    LDAPSocketReceiveError,
)

from ufds_client.config import RetryPolicy
from ufds_client.errors import DirectoryError, InternalError, InvalidCredentialsError, translate_error
from ufds_client.ports.directory_port import DirectoryPort

logger = logging.getLogger(__name__)

SIGNALS = ("connect", "ready", "error", "timeout", "close")

IDLE = "idle"
CONNECTING = "connecting"
BOUND = "bound"
FAILED = "failed"
CLOSED = "closed"


def _is_auth_failure(exc: BaseException) -> bool:
    if isinstance(exc, LDAPBindError):
        return True
    return isinstance(exc, LDAPOperationResult) and exc.result == results.RESULT_INVALID_CREDENTIALS


def _is_timeout(exc: BaseException) -> bool:
    if isinstance(exc, (LDAPResponseTimeoutError, TimeoutError)):
        return True
    return isinstance(exc, LDAPSocketReceiveError) and "timed out" in str(exc)


def _backoff_level(attempt: int) -> int:
    if attempt == 0:
        return logging.INFO
    if attempt < 5:
        return logging.WARNING
    return logging.ERROR


class ConnectionManager:
    """
    Lifecycle of a single bound directory session.

    Example:
        manager = ConnectionManager(transport, RetryPolicy(retries=3))
        manager.on("ready", lambda: print("bound"))
        await manager.connect()
        entries = await manager.call("search", "o=smartdc", "base", "(o=*)")
        await manager.close()
    """

    def __init__(
        self,
        transport: DirectoryPort,
        retry: Optional[RetryPolicy] = None,
        max_connections: int = 5,
        bind_dn: str = "",
        log: Optional[logging.Logger] = None,
    ):
        """
        Initialize connection manager.

        Args:
            transport: Directory session adapter
            retry: Backoff policy for the initial bind
            max_connections: Worker threads available for transport calls
            bind_dn: Identity being bound (for log context only)
            log: Logger (default: module logger)
        """
        self._transport = transport
        self._retry = retry or RetryPolicy()
        self._bind_dn = bind_dn
        self._log = log or logger
        self._executor = ThreadPoolExecutor(max_workers=max_connections, thread_name_prefix="ufds")
        self._subscribers: Dict[str, List[Callable]] = {}
        self._pending: Set[asyncio.Future] = set()
        self._abort = asyncio.Event()
        self._connecting: Optional[asyncio.Future] = None
        self._state = IDLE

    @property
    def state(self) -> str:
        return self._state

    @property
    def bound(self) -> bool:
        return self._state == BOUND

    @property
    def transport(self) -> DirectoryPort:
        return self._transport

    def on(self, signal: str, callback: Callable) -> Callable:
        """
        Subscribe to a lifecycle signal.

        Coroutine callbacks are scheduled as tasks; plain callables run
        inline. Returns the callback so it can be used as a decorator.
        """
        if signal not in SIGNALS:
            raise ValueError(f"unknown signal {signal!r}; expected one of {', '.join(SIGNALS)}")
        self._subscribers.setdefault(signal, []).append(callback)
        return callback

    def _emit(self, signal: str, *args: Any) -> None:
        for callback in list(self._subscribers.get(signal, [])):
            try:
                if inspect.iscoroutinefunction(callback):
                    task = asyncio.ensure_future(callback(*args))
                    self._pending.add(task)
                    task.add_done_callback(self._pending.discard)
                else:
                    callback(*args)
            except Exception:
                self._log.error("ufds: %s subscriber %r failed", signal, callback, exc_info=True)

    async def _run(self, func: Callable, *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, functools.partial(func, *args))

    async def offload(self, func: Callable, *args: Any) -> Any:
        """Run a blocking callable on the session's worker threads."""
        if self._state != BOUND:
            raise InternalError("not connected")
        return await self._run(func, *args)

    async def connect(self) -> None:
        """
        Bind the session, retrying with exponential backoff.

        Concurrent callers share one bind loop.

        Raises:
            InvalidCredentialsError: Bind credentials rejected (no retry)
            DirectoryError: Retries exhausted or closed while connecting
        """
        if self._state == CLOSED:
            raise InternalError("client is closed")

        if self._connecting is None:
            self._connecting = asyncio.ensure_future(self._bind_loop())
        await asyncio.shield(self._connecting)

    async def _bind_loop(self) -> None:
        self._state = CONNECTING
        attempt = 0

        while True:
            try:
                await self._run(self._transport.bind)
            except Exception as exc:
                if self._abort.is_set():
                    self._executor.shutdown(wait=False)
                    raise InternalError("closed while connecting", cause=exc)

                if _is_auth_failure(exc):
                    self._log.error("ufds: invalid credentials for %s; aborting", self._bind_dn)
                    self._fail(InvalidCredentialsError(
                        f"invalid credentials for {self._bind_dn}", cause=exc,
                    ))

                if self._retry.exhausted(attempt):
                    self._log.error("ufds: giving up after %d attempts: %s", attempt + 1, exc)
                    self._fail(translate_error(exc))

                delay = self._retry.delay(attempt)
                self._log.log(
                    _backoff_level(attempt),
                    "ufds: connection attempt failed (attempt=%d, delay=%dms): %s",
                    attempt, int(delay * 1000), exc,
                )
                attempt += 1

                try:
                    await asyncio.wait_for(self._abort.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    continue

                self._executor.shutdown(wait=False)
                raise InternalError("closed while connecting")

            if self._abort.is_set():
                await self._run(self._transport.unbind)
                self._executor.shutdown(wait=False)
                raise InternalError("closed while connecting")

            self._state = BOUND
            self._log.debug("ufds: connected and bound as %s", self._bind_dn)
            self._emit("connect")
            self._emit("ready")
            return

    def _fail(self, err: DirectoryError) -> None:
        self._state = FAILED
        self._emit("error", err)
        raise err

    async def call(self, operation: str, *args: Any) -> Any:
        """
        Run a transport operation on the bound session.

        Args:
            operation: DirectoryPort method name (add, delete, modify, search, compare)
            *args: Arguments for the operation

        Returns:
            The operation's result

        Raises:
            InternalError: Session is not bound
        """
        if self._state != BOUND:
            raise InternalError("not connected")

        try:
            return await self._run(getattr(self._transport, operation), *args)
        except Exception as exc:
            if _is_timeout(exc):
                self._log.warning("ufds: %s timed out: %s", operation, exc)
                self._emit("timeout", exc)
            raise

    async def close(self) -> None:
        """
        Release the session.

        Closing while still connecting aborts the bind loop. Closing a
        client that never connected succeeds.

        Raises:
            DirectoryError: Unbind failed (translated)
        """
        previous, self._state = self._state, CLOSED

        if previous == CONNECTING:
            self._abort.set()
            return

        if previous != BOUND:
            self._executor.shutdown(wait=False)
            return

        try:
            await self._run(self._transport.unbind)
        except Exception as exc:
            raise translate_error(exc)
        finally:
            self._executor.shutdown(wait=False)

        self._log.debug("ufds: session closed")
        self._emit("close")
