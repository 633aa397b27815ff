"""
Bounded time, panic safe execution of feature handlers.

``Timeout`` races a feature handler against the invocation deadline. The handler
runs on its own thread and reports back through a single slot queue; the caller
waits on that queue for at most the remaining budget. A handler that overruns is
abandoned rather than killed, since Python threads cannot be preempted: its late
result lands in the queue slot and is discarded with the queue.

Cancellation would need a cooperative token passed into the handler, which the
runner does not provide.
"""

import queue
import threading
import traceback
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol, Tuple

from sls.handlers.models.env_vars import DEFAULT_FEATURE_TIMEOUT_MS, get_timeout_env_vars
from sls.handlers.models.invocation import Invocation
from sls.handlers.utils.failures import BaseServiceError, InvocationTimeoutError, PanicError

HandlerFn = Callable[[], Any]

_SUCCESS = 'success'
_FAILURE = 'failure'


@dataclass(frozen=True)
class TimeoutConfig:
    """Runner settings; ``period_ms`` is reserved for the platform before the deadline."""

    period_ms: int = DEFAULT_FEATURE_TIMEOUT_MS

    @classmethod
    def from_env(cls) -> 'TimeoutConfig':
        env_vars = get_timeout_env_vars()
        return cls(period_ms=env_vars.SLS_FEATURE_HANDLER_TIMEOUT)


class TimeoutCapturing(Protocol):
    """Anything able to run a handler under the invocation time constraint."""

    def with_time_constraint(self, invocation: Invocation, fn: HandlerFn) -> Any:
        ...


class Timeout:
    """Runs a zero argument handler under the invocation deadline."""

    def __init__(self, config: Optional[TimeoutConfig] = None) -> None:
        self.config = config or TimeoutConfig()

    @property
    def period_seconds(self) -> float:
        return self.config.period_ms / 1000.0

    def budget(self, invocation: Invocation) -> Optional[float]:
        """Seconds the handler may run, ``None`` when the invocation has no deadline."""
        remaining = invocation.remaining_seconds()
        if remaining is None:
            return None
        return remaining - self.period_seconds

    def with_time_constraint(self, invocation: Invocation, fn: HandlerFn) -> Any:
        """
        Execute ``fn`` and return its result.

        Raises:
            InvocationTimeoutError: the budget elapsed before ``fn`` finished
            PanicError: ``fn`` raised something other than a ``BaseServiceError``
            BaseServiceError: whatever failure ``fn`` raised itself
        """
        log = invocation.logger
        budget = self.budget(invocation)
        if budget is None:
            log.warning('no deadline in invocation, timeout cannot be captured')
            return self._unwrap(self._execute(invocation, fn))

        if budget <= 0:
            raise InvocationTimeoutError('invocation timeout, deadline already reached')

        completed: 'queue.Queue[Tuple[str, Any]]' = queue.Queue(maxsize=1)
        worker = threading.Thread(
            target=self._run_feature,
            args=(invocation, fn, completed),
            name=f'sls-feature-{invocation.trigger}',
            daemon=True,
        )
        worker.start()

        try:
            kind, value = completed.get(timeout=budget)
        except queue.Empty:
            raise InvocationTimeoutError('invocation timeout') from None

        return self._unwrap((kind, value))

    @staticmethod
    def _unwrap(outcome: Tuple[str, Any]) -> Any:
        kind, value = outcome
        if kind == _FAILURE:
            raise value
        return value

    @classmethod
    def _run_feature(cls, invocation: Invocation, fn: HandlerFn, completed: queue.Queue) -> None:
        outcome = cls._execute(invocation, fn)
        # single producer and a one slot queue: never blocks, even after the caller gave up
        completed.put_nowait(outcome)

    @staticmethod
    def _execute(invocation: Invocation, fn: HandlerFn) -> Tuple[str, Any]:
        try:
            return _SUCCESS, fn()
        except BaseServiceError as e:
            return _FAILURE, e
        # SystemExit and KeyboardInterrupt from handler code are panics too
        except BaseException as e:
            stack = traceback.format_exc().splitlines()
            panic = PanicError(recovered=repr(e), stack=stack)
            panic.__cause__ = e
            invocation.logger.error(
                str(panic),
                extra={
                    'recover': repr(e),
                    'stack': stack,
                    'panic': True,
                },
            )
            return _FAILURE, panic
