"""Virtual user pool: one asyncio task per simulated client."""

from __future__ import annotations

import asyncio
import contextlib
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import TYPE_CHECKING

from stageload._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = get_logger("engine.pool")


class VirtualUserState(Enum):
    """Lifecycle of a virtual user."""

    RUNNING = auto()
    STOPPING = auto()
    STOPPED = auto()


@dataclass
class VirtualUser:
    """A simulated client looping over iterations until told to stop.

    Attributes:
        id: Unique, increasing identifier within the pool.
        state: Current lifecycle state.
        iterations: Completed iterations.
    """

    id: int
    state: VirtualUserState = VirtualUserState.RUNNING
    iterations: int = 0
    _stop_event: asyncio.Event = field(default_factory=asyncio.Event, repr=False)
    _task: asyncio.Task[None] | None = field(default=None, repr=False)

    def request_stop(self) -> None:
        """Ask the user to exit after its current iteration."""
        if self.state is VirtualUserState.RUNNING:
            self.state = VirtualUserState.STOPPING
        self._stop_event.set()

    @property
    def stop_requested(self) -> bool:
        return self._stop_event.is_set()


class VirtualUserPool:
    """Keeps the number of running virtual users equal to a target.

    Each user runs ``iteration()``, then waits *sleep_seconds*, until it is
    signalled. Signalled users finish the iteration in progress; a pending
    sleep ends early. Users never share state except through whatever the
    iteration itself records.

    Args:
        iteration: Zero-argument coroutine function run once per iteration.
        sleep_seconds: Pause between a user's iterations.
    """

    def __init__(
        self,
        iteration: Callable[[], Awaitable[object]],
        sleep_seconds: float = 1.0,
    ) -> None:
        self._iteration = iteration
        self._sleep_seconds = sleep_seconds
        self._users: list[VirtualUser] = []
        self._next_user_id = 0
        self._peak_running = 0
        self._force_cancelled = 0

    @property
    def running_count(self) -> int:
        """Users that have not been signalled to stop."""
        return sum(1 for u in self._users if u.state is VirtualUserState.RUNNING)

    @property
    def active_count(self) -> int:
        """Users whose task has not finished, including those draining."""
        return sum(1 for u in self._users if u._task is not None and not u._task.done())

    @property
    def peak_running(self) -> int:
        return self._peak_running

    @property
    def users(self) -> list[VirtualUser]:
        return list(self._users)

    def reconcile(self, target: int) -> int:
        """Spawn or signal users so that *target* users are running.

        Scaling down signals the most recently started users first; they
        exit once their current iteration completes.

        Args:
            target: Desired number of running users.

        Returns:
            The change in running users (positive when spawning).
        """
        self._prune()
        running = [u for u in self._users if u.state is VirtualUserState.RUNNING]
        current = len(running)

        if target > current:
            for _ in range(target - current):
                self._spawn()
        elif target < current:
            for user in reversed(running[target:]):
                user.request_stop()

        self._peak_running = max(self._peak_running, self.running_count)
        if target != current:
            logger.debug("Reconciled pool: %d -> %d running users", current, target)
        return target - current

    def stop_all(self) -> None:
        """Signal every user to exit after its current iteration."""
        for user in self._users:
            user.request_stop()

    def cancel_all(self) -> int:
        """Cancel every user task that is still running, without waiting.

        Returns:
            Number of tasks cancelled.
        """
        tasks = [u._task for u in self._users if u._task is not None and not u._task.done()]
        for task in tasks:
            task.cancel()
        self._force_cancelled += len(tasks)
        return len(tasks)

    async def drain(self, timeout: float) -> int:
        """Stop every user and wait for their tasks to finish.

        Users still busy after *timeout* seconds are cancelled. A concurrent
        :meth:`cancel_all` ends the wait early.

        Args:
            timeout: Seconds to wait before force-cancelling.

        Returns:
            Number of users that had to be cancelled, including any
            cancelled through :meth:`cancel_all`.
        """
        self.stop_all()
        tasks = [u._task for u in self._users if u._task is not None and not u._task.done()]
        pending: set[asyncio.Task[None]] = set()
        if tasks:
            _done, pending = await asyncio.wait(tasks, timeout=timeout)
            for task in pending:
                task.cancel()
            if pending:
                logger.warning(
                    "Cancelled %d virtual users still busy after %.1fs",
                    len(pending),
                    timeout,
                )
                await asyncio.wait(pending)
        self._prune()
        logger.debug("All virtual users shut down")
        return len(pending) + self._force_cancelled

    def _spawn(self) -> VirtualUser:
        user = VirtualUser(id=self._next_user_id)
        self._next_user_id += 1
        user._task = asyncio.create_task(self._run_user(user), name=f"virtual-user-{user.id}")
        self._users.append(user)
        return user

    def _prune(self) -> None:
        self._users = [u for u in self._users if u.state is not VirtualUserState.STOPPED]

    async def _run_user(self, user: VirtualUser) -> None:
        # A user always completes at least one iteration, even if signalled before it started.
        try:
            while True:
                try:
                    await self._iteration()
                except asyncio.CancelledError:
                    raise
                except Exception:
                    logger.warning("Iteration failed for user %d", user.id, exc_info=True)
                user.iterations += 1

                if user.stop_requested:
                    break
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(user._stop_event.wait(), timeout=self._sleep_seconds)
                if user.stop_requested:
                    break
        finally:
            user.state = VirtualUserState.STOPPED
