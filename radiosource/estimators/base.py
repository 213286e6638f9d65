"""
Base classes for lockable radio source estimators.

An estimator instance holds its configuration and readings, and runs one
estimation at a time. While estimate() is running the instance is locked:
every mutator fails with LockedError instead of blocking, including mutators
invoked from listener callbacks (which run synchronously on the caller's
thread).
"""

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, Optional

from radiosource.exceptions import LockedError


class EstimatorState(Enum):
    """Lifecycle state of an estimator instance.

    IDLE: configuration or readings are incomplete.
    READY: estimate() may be called.
    RUNNING: an estimation is in progress (instance locked).
    """

    IDLE = "idle"
    READY = "ready"
    RUNNING = "running"


class EstimationOutcome(Enum):
    """Outcome of the last finished estimate() call."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class EstimatorListener:
    """Receives lifecycle notifications from an estimator.

    Subclass and override the callbacks of interest; the defaults do nothing.
    Any object providing some of these methods may be used as a listener.
    """

    def on_estimate_start(self, estimator: Any) -> None:
        """Called once estimation starts, after readiness is validated."""

    def on_estimate_end(self, estimator: Any) -> None:
        """Called exactly once when a started estimation terminates."""


class LockableEstimator(ABC):
    """Abstract base class for estimators guarded by a running flag."""

    def __init__(self, listener: Optional[Any] = None):
        """
        Initialize lock state.

        Args:
            listener: Optional object receiving lifecycle callbacks.
        """
        self._mutex = threading.Lock()
        self._running = False
        self._listener = listener
        self._last_outcome: Optional[EstimationOutcome] = None

    @property
    def is_locked(self) -> bool:
        """True while estimate() is running."""
        return self._running

    @property
    def listener(self) -> Optional[Any]:
        return self._listener

    @listener.setter
    def listener(self, value: Optional[Any]) -> None:
        self._check_unlocked()
        self._listener = value

    @property
    @abstractmethod
    def is_ready(self) -> bool:
        """True when estimate() can be called."""

    @property
    def state(self) -> EstimatorState:
        if self._running:
            return EstimatorState.RUNNING
        return EstimatorState.READY if self.is_ready else EstimatorState.IDLE

    @property
    def last_outcome(self) -> Optional[EstimationOutcome]:
        """Outcome of the last estimate() call that got past readiness checks."""
        return self._last_outcome

    @abstractmethod
    def estimate(self) -> Any:
        """Run the estimation and return its result."""

    def _check_unlocked(self) -> None:
        if self._running:
            raise LockedError("Estimator is locked while estimation is in progress")

    @contextmanager
    def _locked(self) -> Iterator[None]:
        """Hold the running flag for the duration of the block."""
        with self._mutex:
            if self._running:
                raise LockedError("Estimation already in progress")
            self._running = True
        try:
            yield
        finally:
            with self._mutex:
                self._running = False

    def _notify(self, event: str, *args: Any) -> None:
        if self._listener is None:
            return
        callback = getattr(self._listener, event, None)
        if callback is not None:
            callback(self, *args)
