"""
Centralized observability utilities for Lambda front controllers.

This module provides configured instances of AWS Lambda Powertools for logging,
tracing, and metrics collection, plus the helpers that attach per-invocation
keys to the shared logger.
"""

import logging
import os
import sys
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Mapping, Optional, TextIO

from aws_lambda_powertools.logging import Logger
from aws_lambda_powertools.metrics import Metrics
from aws_lambda_powertools.tracing import Tracer

# Metrics namespace for front controller counters
METRICS_NAMESPACE = 'SlsToolkit'

# Lambda runtime env var carrying the X-Ray trace header
TRACE_ID_ENV_VAR = '_X_AMZN_TRACE_ID'
TRACE_ID_HEADER = 'x-amzn-trace-id'

# JSON output format, service name can be set by environment variable "POWERTOOLS_SERVICE_NAME"
logger: Logger = Logger()

# Service name can be set by environment variable "POWERTOOLS_SERVICE_NAME"
# Disabled by setting POWERTOOLS_TRACE_DISABLED to "True"
tracer: Tracer = Tracer()

# Namespace and service name can be set by environment variables:
# - POWERTOOLS_METRICS_NAMESPACE
# - POWERTOOLS_SERVICE_NAME
metrics = Metrics(namespace=METRICS_NAMESPACE)


def parse_trace_id(header: Optional[str]) -> str:
    """
    Extract the root trace id from an X-Ray trace header.

    The header looks like
    ``Root=1-5abc5ca4-f07ab5d0a2c2b2f0730acb08;Parent=200406d9510e71a3;Sampled=0``
    and only the ``Root`` value is returned. Missing or malformed headers give ``""``.
    """
    if not header:
        return ''

    pairs = {}
    for part in header.split(';'):
        sub = part.split('=')
        if len(sub) == 2:
            pairs[sub[0].strip()] = sub[1].strip()

    return pairs.get('Root', '')


def resolve_trace_id(headers: Optional[Mapping[str, str]] = None) -> str:
    """Trace id from the Lambda runtime, falling back to the request headers."""
    header = os.environ.get(TRACE_ID_ENV_VAR)
    if not header and headers:
        lowered = {k.lower(): v for k, v in headers.items()}
        header = lowered.get(TRACE_ID_HEADER)

    return parse_trace_id(header)


def invocation_keys(trigger: str, trace_id: str = '') -> Dict[str, Any]:
    """
    Log keys that identify a single invocation.

    Function name, ARN and request id come from ``Logger.inject_lambda_context``
    at the entry point; these are the keys it does not add.
    """
    return {
        'amzn_trace_id': trace_id,
        'invocation_type': trigger,
    }


@contextmanager
def invocation_logging(log: Logger, **keys: Any) -> Iterator[Logger]:
    """
    Append keys to ``log`` for the duration of one invocation.

    Keys with ``None`` values are skipped. The keys are removed on exit whatever
    the outcome of the invocation.
    """
    keys = {k: v for k, v in keys.items() if v is not None}
    log.append_keys(**keys)
    try:
        yield log
    finally:
        log.remove_keys(list(keys))


def configure_cli_logging(log: Logger, verbose: bool = False, stream: Optional[TextIO] = None) -> None:
    """
    Point the shared logger at a terminal session.

    Command output owns stdout, so log records go to ``stream`` (stderr by
    default), and only warnings show up unless ``verbose`` is set.
    """
    log.setLevel('DEBUG' if verbose else 'WARNING')
    handler = log.registered_handler
    if isinstance(handler, logging.StreamHandler):
        handler.setStream(stream or sys.stderr)
