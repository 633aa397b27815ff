"""
Request scoped invocation context.

An ``Invocation`` is built once at request entry by a front controller, passed
by parameter to the feature handler, and dropped when the request completes.
"""

import time
from dataclasses import dataclass, field
from typing import Any, List, Optional

from aws_lambda_powertools.logging import Logger


@dataclass
class Invocation:
    """Per request data shared between a front controller and its feature."""

    event: Any
    logger: Logger
    trigger: str
    lambda_context: Any = None
    # time.monotonic() value by which processing must complete, None when unknown
    deadline: Optional[float] = None
    trace_id: str = ''
    user_id: str = ''
    roles: List[str] = field(default_factory=list)
    api_version: str = ''

    @classmethod
    def from_lambda_context(
        cls,
        event: Any,
        lambda_context: Any,
        logger: Logger,
        trigger: str,
        **kwargs: Any,
    ) -> 'Invocation':
        """Build an invocation whose deadline comes from the Lambda context."""
        deadline = None
        remaining = getattr(lambda_context, 'get_remaining_time_in_millis', None)
        if callable(remaining):
            millis = remaining()
            if isinstance(millis, (int, float)):
                deadline = time.monotonic() + millis / 1000.0

        return cls(
            event=event,
            logger=logger,
            trigger=trigger,
            lambda_context=lambda_context,
            deadline=deadline,
            **kwargs,
        )

    def has_deadline(self) -> bool:
        return self.deadline is not None

    def remaining_seconds(self) -> Optional[float]:
        """Seconds left until the deadline, negative once it has passed."""
        if self.deadline is None:
            return None
        return self.deadline - time.monotonic()
