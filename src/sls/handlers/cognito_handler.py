"""
Cognito user pool front controller for pre sign-up triggers.

Cognito expects the (possibly modified) trigger event back on success and
treats any raised error as a rejected sign-up, so failures are logged and then
re-raised unchanged.
"""

import time
from typing import Any, Dict, Optional, Protocol

from aws_lambda_powertools.logging import Logger
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.data_classes.cognito_user_pool_event import PreSignUpTriggerEvent

from sls.handlers.models.invocation import Invocation
from sls.handlers.runner import Timeout, TimeoutCapturing, TimeoutConfig
from sls.handlers.utils.failures import BaseServiceError, is_panic, is_timeout
from sls.handlers.utils.observability import invocation_keys, invocation_logging, metrics, resolve_trace_id
from sls.handlers.utils.observability import logger as default_logger
from sls.models.feature import LambdaTrigger


class PreSignupFeature(Protocol):
    """A feature attached to a user pool pre sign-up trigger."""

    def run(self, invocation: Invocation, event: PreSignUpTriggerEvent) -> None:
        ...


class PreSignupRunner:
    """Front controller for Cognito pre sign-up triggers."""

    def __init__(
        self,
        feature: PreSignupFeature,
        timeout: Optional[TimeoutCapturing] = None,
        logger: Optional[Logger] = None,
    ) -> None:
        self.feature = feature
        self.timeout = timeout or Timeout(TimeoutConfig.from_env())
        self.logger = logger or default_logger
        self._entry = self.logger.inject_lambda_context(self.handle)

    def __call__(self, event: Dict[str, Any], lambda_context: Any) -> Dict[str, Any]:
        return self._entry(event, lambda_context)

    def handle(self, event: Dict[str, Any], lambda_context: Any) -> Dict[str, Any]:
        start = time.perf_counter()
        signup_event = PreSignUpTriggerEvent(event)
        trace_id = resolve_trace_id()
        trigger = LambdaTrigger.COGNITO.value

        invocation = Invocation.from_lambda_context(
            event=signup_event,
            lambda_context=lambda_context,
            logger=self.logger,
            trigger=trigger,
            trace_id=trace_id,
            user_id=event.get('userName') or '',
        )

        keys = invocation_keys(trigger, trace_id)
        keys['client_metadata'] = signup_event.request.client_metadata
        keys['user_attributes'] = signup_event.request.user_attributes

        with invocation_logging(self.logger, **keys) as log:
            try:
                self.timeout.with_time_constraint(
                    invocation,
                    lambda: self.feature.run(invocation, signup_event),
                )
            except BaseServiceError as e:
                elapsed_ms = int((time.perf_counter() - start) * 1000)
                if is_timeout(e):
                    metrics.add_metric(name='PreSignupTimeout', unit=MetricUnit.Count, value=1)
                    log.error(str(e), extra={'elapsed_ms': elapsed_ms, 'timeout': True})
                elif is_panic(e):
                    # the runner already logged the panic with its stack
                    metrics.add_metric(name='PreSignupPanic', unit=MetricUnit.Count, value=1)
                    log.error(str(e), extra={'elapsed_ms': elapsed_ms, 'panic': True})
                else:
                    metrics.add_metric(name='PreSignupFailure', unit=MetricUnit.Count, value=1)
                    log.error('[PreSignupRunner FAILED]', extra={'elapsed_ms': elapsed_ms, 'error': e.to_dict()})
                raise

            elapsed_ms = int((time.perf_counter() - start) * 1000)
            log.info('pre sign-up completed', extra={'elapsed_ms': elapsed_ms})

        return signup_event.raw_event
