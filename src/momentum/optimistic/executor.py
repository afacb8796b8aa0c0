"""Optimistic updates — apply locally, confirm remotely, roll back on failure.

Learn: Every optimistic operation is a triple:

    apply       — the local mutation the UI should show right away
    rollback    — the inverse, run if the server says no
    remote_call — the request that makes it real

Ordering within one operation is strict: apply happens before the remote
call is dispatched, and on failure rollback completes before the caller
sees the error. The error is re-raised unchanged, so an AuthExpired is
still an AuthExpired; presenting it is the caller's job.

Across operations there is no ordering. Two operations on the same entity
can interleave, and a snapshot-based rollback (OptimisticState) can then
undo a write that actually succeeded. Pass `key=` with `serialize=True` to
queue operations per entity instead.
"""

import asyncio
import inspect
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Optional, TypeVar, Union

import structlog

logger = structlog.get_logger()

T = TypeVar("T")
S = TypeVar("S")

Mutation = Callable[[], Any]  # sync or async


class OperationStatus(str, Enum):
    PENDING = "pending"
    APPLIED = "applied"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"
    ABORTED = "aborted"  # apply itself raised; nothing to undo


@dataclass
class PendingOptimisticOperation(Generic[T]):
    """One in-flight operation. Always ends CONFIRMED or ROLLED_BACK."""

    apply: Mutation
    rollback: Mutation
    remote_call: Callable[[], Awaitable[T]]
    label: str = "optimistic"
    status: OperationStatus = OperationStatus.PENDING
    result: Optional[T] = None
    error: Optional[BaseException] = field(default=None, repr=False)


async def _run(mutation: Mutation) -> Any:
    result = mutation()
    if inspect.isawaitable(result):
        result = await result
    return result


class OptimisticExecutor:
    """Runs optimistic operations with guaranteed rollback on failure."""

    def __init__(self, serialize: bool = False):
        self.serialize = serialize
        self.pending = 0
        self.last_error: Optional[BaseException] = None
        self._locks: dict[str, asyncio.Lock] = {}
        self._lock_users: dict[str, int] = {}

    @property
    def is_busy(self) -> bool:
        return self.pending > 0

    async def execute(
        self,
        apply: Mutation,
        rollback: Mutation,
        remote_call: Callable[[], Awaitable[T]],
        *,
        key: Optional[str] = None,
        label: str = "optimistic",
        on_success: Optional[Callable[[T], Any]] = None,
        on_error: Optional[Callable[[BaseException], Any]] = None,
    ) -> T:
        """Apply, call, and roll back if the call fails. Returns the remote result."""
        op: PendingOptimisticOperation[T] = PendingOptimisticOperation(
            apply=apply, rollback=rollback, remote_call=remote_call, label=label
        )
        if self.serialize and key is not None:
            lock = self._locks.setdefault(key, asyncio.Lock())
            self._lock_users[key] = self._lock_users.get(key, 0) + 1
            try:
                async with lock:
                    return await self._execute(op, on_success, on_error)
            finally:
                # Holders and waiters both count; the last one out drops the lock.
                self._lock_users[key] -= 1
                if not self._lock_users[key]:
                    del self._lock_users[key]
                    del self._locks[key]
        return await self._execute(op, on_success, on_error)

    async def _execute(
        self,
        op: PendingOptimisticOperation[T],
        on_success: Optional[Callable[[T], Any]],
        on_error: Optional[Callable[[BaseException], Any]],
    ) -> T:
        self.pending += 1
        self.last_error = None
        try:
            try:
                await _run(op.apply)
            except Exception as e:
                op.status = OperationStatus.ABORTED
                op.error = e
                self.last_error = e
                logger.warning("optimistic.apply_failed", label=op.label, error=str(e))
                raise
            op.status = OperationStatus.APPLIED

            try:
                op.result = await op.remote_call()
            except (Exception, asyncio.CancelledError) as e:
                op.error = e
                self.last_error = e
                await self._rollback(op)
                logger.warning(
                    "optimistic.rolled_back",
                    label=op.label,
                    error_type=type(e).__name__,
                    error=str(e),
                )
                if on_error is not None and isinstance(e, Exception):
                    await self._callback(op, "on_error", lambda: on_error(e))
                raise

            op.status = OperationStatus.CONFIRMED
            logger.debug("optimistic.confirmed", label=op.label)
            if on_success is not None:
                await self._callback(op, "on_success", lambda: on_success(op.result))
            return op.result
        finally:
            self.pending -= 1

    async def _callback(self, op: PendingOptimisticOperation, name: str, fn: Mutation) -> None:
        # Callback failures never replace the outcome of the remote call.
        try:
            await _run(fn)
        except Exception:
            logger.exception("optimistic.callback_failed", label=op.label, callback=name)

    async def _rollback(self, op: PendingOptimisticOperation) -> None:
        try:
            await _run(op.rollback)
        except Exception:
            # The local state is now unknown; the remote error still wins.
            logger.exception("optimistic.rollback_failed", label=op.label)
        op.status = OperationStatus.ROLLED_BACK


class OptimisticState(Generic[S]):
    """A single value with optimistic updates and snapshot rollback.

    update() snapshots the value just before applying the new one, and a
    failed call restores that exact snapshot. With two overlapping updates
    the snapshot is shared, so the later rollback wins even over an update
    that succeeded in between.
    """

    def __init__(self, initial: S, executor: Optional[OptimisticExecutor] = None):
        self.value: S = initial
        self.previous: S = initial
        self.executor = executor or OptimisticExecutor()

    def set(self, value: S) -> None:
        """Set the value directly (e.g. to a server-confirmed figure)."""
        self.value = value

    async def update(
        self,
        new_value: Union[S, Callable[[S], S]],
        remote_call: Callable[[], Awaitable[T]],
        *,
        confirm: Optional[Callable[[T], Optional[S]]] = None,
        label: str = "optimistic_state",
    ) -> T:
        """Optimistically move to `new_value` (or `new_value(current)`).

        `confirm` maps the remote result to the authoritative value; when it
        returns a value, that value replaces the optimistic guess.
        """
        computed = new_value(self.value) if callable(new_value) else new_value

        def apply() -> None:
            self.previous = self.value
            self.value = computed

        def rollback() -> None:
            self.value = self.previous

        result = await self.executor.execute(apply, rollback, remote_call, label=label)
        if confirm is not None:
            confirmed = confirm(result)
            if confirmed is not None:
                self.value = confirmed
        return result
