"""Cooperative jobs and the scheduler that interleaves them with ticks.

A job is an explicit resumable state machine: each ``resume()`` performs one
bounded unit of work and reports ``PENDING`` or ``Done(value)``. The
scheduler resumes every running job at most ``max_resumes_per_tick`` times
per tick, so no job can occupy a whole simulation step. Timers are the other
suspension point: one-shot countdowns decremented once per tick.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Generic, TypeVar, Union

from tick_harvest.types import JobStateError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class _Pending:
    __slots__ = ()

    def __repr__(self) -> str:
        return "PENDING"


PENDING = _Pending()


@dataclass(frozen=True, slots=True)
class Done(Generic[T]):
    value: T


Outcome = Union[_Pending, Done[Any]]


class Job(ABC):
    """Base class for resumable computations.

    Subclasses implement ``step()``. Jobs only read external state while
    running and commit nothing until they return ``Done``, so abandoning a
    job has no side effects.
    """

    def __init__(self) -> None:
        self._finished = False
        self._resumes = 0

    @property
    def finished(self) -> bool:
        return self._finished

    @property
    def resumes(self) -> int:
        return self._resumes

    def resume(self) -> Outcome:
        if self._finished:
            raise JobStateError(f"{type(self).__name__} was resumed after Done")
        self._resumes += 1
        outcome = self.step()
        if isinstance(outcome, Done):
            self._finished = True
        return outcome

    @abstractmethod
    def step(self) -> Outcome:
        """Perform one bounded unit of work."""


class CompletedJob(Job):
    """A job that is Done with *value* on its first resume."""

    def __init__(self, value: Any) -> None:
        super().__init__()
        self._value = value

    def step(self) -> Outcome:
        return Done(self._value)


class JobStatus(Enum):
    RUNNING = "running"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


ErrorCallback = Callable[[BaseException], None]


class JobHandle:
    """Scheduler-side record of a started job."""

    __slots__ = ("job", "name", "on_done", "on_error", "status", "result", "error")

    def __init__(
        self,
        job: Job,
        name: str,
        on_done: Callable[[Any], None] | None,
        on_error: ErrorCallback | None,
    ) -> None:
        self.job = job
        self.name = name
        self.on_done = on_done
        self.on_error = on_error
        self.status = JobStatus.RUNNING
        self.result: Any = None
        self.error: BaseException | None = None

    @property
    def done(self) -> bool:
        return self.status is not JobStatus.RUNNING

    def __repr__(self) -> str:
        return f"JobHandle({self.name!r}, {self.status.value})"


@dataclass
class Timer:
    """One-shot countdown. Fires when remaining reaches 0."""

    name: str
    remaining: int
    callback: Callable[[], None]
    on_error: ErrorCallback | None = None
    cancelled: bool = False
    fired: bool = False

    @property
    def done(self) -> bool:
        return self.cancelled or self.fired


class JobScheduler:
    def __init__(self, max_resumes_per_tick: int = 8) -> None:
        if max_resumes_per_tick <= 0:
            raise ValueError("max_resumes_per_tick must be positive")
        self._max_resumes = max_resumes_per_tick
        self._jobs: list[JobHandle] = []
        self._timers: list[Timer] = []
        self._tick_number = 0

    @property
    def tick_number(self) -> int:
        return self._tick_number

    @property
    def max_resumes_per_tick(self) -> int:
        return self._max_resumes

    def jobs(self) -> tuple[JobHandle, ...]:
        return tuple(self._jobs)

    def timers(self) -> tuple[Timer, ...]:
        return tuple(self._timers)

    def start(
        self,
        job: Job,
        on_done: Callable[[Any], None] | None = None,
        on_error: ErrorCallback | None = None,
        name: str = "",
    ) -> JobHandle:
        """Register *job*. It is first resumed on the next ``run_tick()``."""
        handle = JobHandle(job, name or type(job).__name__, on_done, on_error)
        self._jobs.append(handle)
        return handle

    def wait(
        self,
        ticks: int,
        callback: Callable[[], None],
        on_error: ErrorCallback | None = None,
        name: str = "wait",
    ) -> Timer:
        """Call *callback* after *ticks* calls of ``run_tick()``."""
        if ticks < 0:
            raise ValueError(f"ticks must be >= 0, got {ticks}")
        timer = Timer(name=name, remaining=ticks, callback=callback, on_error=on_error)
        self._timers.append(timer)
        return timer

    def cancel(self, item: JobHandle | Timer) -> None:
        """Drop a job or timer. Its callbacks never fire. Idempotent."""
        if isinstance(item, Timer):
            if not item.done:
                item.cancelled = True
            if item in self._timers:
                self._timers.remove(item)
            return
        if item.status is JobStatus.RUNNING:
            item.status = JobStatus.CANCELLED
        if item in self._jobs:
            self._jobs.remove(item)

    def resume(self, handle: JobHandle) -> Outcome:
        """Perform one unit of work on *handle*'s job.

        Delivers ``on_done`` on completion. An exception from the job marks
        the handle FAILED and propagates to the caller.
        """
        if handle.status is not JobStatus.RUNNING:
            raise JobStateError(f"{handle!r} is not running")
        try:
            outcome = handle.job.resume()
        except Exception as exc:
            handle.status = JobStatus.FAILED
            handle.error = exc
            self._forget(handle)
            raise
        if isinstance(outcome, Done):
            handle.status = JobStatus.DONE
            handle.result = outcome.value
            self._forget(handle)
            if handle.on_done is not None:
                handle.on_done(outcome.value)
        return outcome

    def run_tick(self) -> None:
        """Advance one tick: count timers down, then resume running jobs.

        Timers created by callbacks during this pass count down from the
        next tick; jobs started by timer callbacks are resumed in this pass,
        jobs started by job callbacks on the next one.
        Failures are logged and routed to ``on_error``; they never escape.
        """
        self._tick_number += 1

        for timer in list(self._timers):
            if timer.done:
                continue
            timer.remaining -= 1
            if timer.remaining > 0:
                continue
            self._timers.remove(timer)
            timer.fired = True
            try:
                timer.callback()
            except Exception as exc:
                logger.exception("timer %r callback failed", timer.name)
                if timer.on_error is not None:
                    timer.on_error(exc)

        for handle in list(self._jobs):
            for _ in range(self._max_resumes):
                if handle.status is not JobStatus.RUNNING:
                    break
                try:
                    outcome = self.resume(handle)
                except Exception as exc:
                    handle.status = JobStatus.FAILED
                    handle.error = exc
                    logger.exception("job %r failed", handle.name)
                    if handle.on_error is not None:
                        handle.on_error(exc)
                    break
                if isinstance(outcome, Done):
                    break

    def _forget(self, handle: JobHandle) -> None:
        if handle in self._jobs:
            self._jobs.remove(handle)
