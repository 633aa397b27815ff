"""
API Gateway front controller.

``RestRunner`` adapts an API Gateway proxy event to a feature handler: it sets
up the invocation log keys, runs the feature under the invocation deadline and
turns the outcome into a proxy response. Features return a ``Success`` or raise
a ``BaseServiceError``; anything else they raise is reported as a panic.

The runner is a plain callable with the Lambda signature so it can be wrapped
by ``metrics.log_metrics`` at the function entry point::

    lambda_handler = metrics.log_metrics(RestRunner(MyFeature()))
"""

import json
import time
from dataclasses import dataclass, field
from http import HTTPStatus
from typing import Any, Callable, Dict, Optional, Protocol

from aws_lambda_powertools.logging import Logger, correlation_paths
from aws_lambda_powertools.metrics import MetricUnit
from aws_lambda_powertools.utilities.data_classes import APIGatewayProxyEvent
from pydantic import BaseModel

from sls.handlers.models.env_vars import get_rest_handler_env_vars
from sls.handlers.models.invocation import Invocation
from sls.handlers.runner import Timeout, TimeoutCapturing, TimeoutConfig
from sls.handlers.utils.failures import (
    BaseServiceError,
    SystemFailureError,
    get_http_status_code,
    is_panic,
    is_timeout,
    wrap,
)
from sls.handlers.utils.observability import (
    invocation_keys,
    invocation_logging,
    metrics,
    resolve_trace_id,
)
from sls.handlers.utils.observability import logger as default_logger
from sls.models.feature import LambdaTrigger
from sls.models.output import ErrorResponse

JSON_MEDIA_TYPE = 'application/json'
PLAIN_TEXT_MEDIA_TYPE = 'text/plain'
HEADER_ACCESS_CTRL_ALLOW_ORIGIN = 'Access-Control-Allow-Origin'
HEADER_CONTENT_TYPE = 'Content-Type'

SuccessFn = Callable[[int, Any, Logger, APIGatewayProxyEvent], Dict[str, Any]]


@dataclass
class Success:
    """
    Successful outcome of a REST feature.

    ``success_fn`` lets a feature take full control of the proxy response; it is
    called as ``success_fn(status_code, body, logger, event)``. ``serializer``
    replaces the default JSON encoding of non string bodies.
    """

    status_code: int = HTTPStatus.OK.value
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    success_fn: Optional[SuccessFn] = None
    serializer: Optional[Callable[[Any], str]] = None

    def add_header(self, key: str, value: str) -> None:
        self.headers[key] = value

    def add_headers(self, headers: Dict[str, str]) -> None:
        for key, value in headers.items():
            self.add_header(key, value)


def ok(body: Any) -> Success:
    return Success(status_code=HTTPStatus.OK.value, body=body)


def no_content() -> Success:
    return Success(status_code=HTTPStatus.NO_CONTENT.value)


class RestFeature(Protocol):
    """A feature served through API Gateway."""

    def run(self, invocation: Invocation, event: APIGatewayProxyEvent) -> Success:
        ...


def _reason_phrase(status_code: int) -> str:
    try:
        return HTTPStatus(status_code).phrase
    except ValueError:
        return 'Unknown Status'


def _serialize_body(body: Any, serializer: Optional[Callable[[Any], str]]) -> str:
    if serializer is not None:
        return serializer(body)
    if body is None:
        return ''
    if isinstance(body, BaseModel):
        return body.model_dump_json()
    return json.dumps(body, default=str)


def request_log_keys(event: APIGatewayProxyEvent, invocation: Optional[Invocation] = None) -> Dict[str, Any]:
    """Log keys describing the HTTP request behind an invocation."""
    request_context = event.request_context
    headers = {k.lower(): v for k, v in (event.headers or {}).items()}

    keys: Dict[str, Any] = {
        'api_gateway_request_id': request_context.request_id,
        'method': event.http_method,
        'path': event.path,
        'resource_path': request_context.resource_path,
        'client_name': headers.get('x-client-name', 'unknown'),
        'client_version': headers.get('x-client-version'),
        'path_parameters': event.path_parameters,
        'query_parameters': event.query_string_parameters,
        'user_arn': request_context.identity.user_arn or None,
    }

    if invocation is not None and invocation.user_id:
        keys['user_id'] = invocation.user_id
        keys['roles'] = invocation.roles

    return keys


def process_failure(
    error: BaseException,
    log: Logger,
    event: APIGatewayProxyEvent,
    elapsed_ms: int,
) -> Dict[str, Any]:
    """
    Convert a failed invocation into an API Gateway proxy response.

    The body is always JSON with the request id, so clients can quote it when
    reporting problems. Server side failures are logged as errors, client side
    failures as warnings.
    """
    status_code = get_http_status_code(error)
    request_id = event.request_context.request_id or ''

    extra: Dict[str, Any] = {
        'status': status_code,
        'body': event.body,
        'elapsed_ms': elapsed_ms,
    }
    if is_timeout(error):
        extra['timeout'] = True
    if is_panic(error):
        extra['panic'] = True
    if isinstance(error, BaseServiceError):
        extra['error'] = error.to_dict()

    if status_code >= HTTPStatus.INTERNAL_SERVER_ERROR:
        log.error(str(error), extra=extra)
    else:
        log.warning(str(error), extra=extra)

    failed = ErrorResponse(
        message=_reason_phrase(status_code),
        id=request_id,
        status=status_code,
    )
    if isinstance(error, BaseServiceError):
        if error.rest_message:
            failed.message = error.rest_message
        if error.fields:
            failed.fields = dict(error.fields)

    return {
        'statusCode': status_code,
        'headers': {
            HEADER_ACCESS_CTRL_ALLOW_ORIGIN: '*',
            HEADER_CONTENT_TYPE: JSON_MEDIA_TYPE,
        },
        'body': failed.to_json(),
    }


def process_success(success: Optional[Success], log: Logger, event: APIGatewayProxyEvent) -> Dict[str, Any]:
    """Convert a feature ``Success`` into an API Gateway proxy response."""
    if success is None:
        raise SystemFailureError('feature returned no success value')

    # feature decided to take full control of the response going back to apigw
    if success.success_fn is not None:
        try:
            return success.success_fn(success.status_code, success.body, log, event)
        except Exception as e:
            raise wrap(e, f'success_fn failed ({success.status_code})') from e

    code = HTTPStatus.OK.value
    if HTTPStatus.OK <= success.status_code < HTTPStatus.BAD_REQUEST:
        code = success.status_code

    headers = dict(success.headers)
    headers.setdefault(HEADER_ACCESS_CTRL_ALLOW_ORIGIN, '*')

    response: Dict[str, Any] = {'statusCode': code, 'headers': headers}
    if code == HTTPStatus.NO_CONTENT:
        return response

    if isinstance(success.body, str):
        headers[HEADER_CONTENT_TYPE] = PLAIN_TEXT_MEDIA_TYPE
        response['body'] = success.body
        return response

    headers[HEADER_CONTENT_TYPE] = JSON_MEDIA_TYPE
    try:
        response['body'] = _serialize_body(success.body, success.serializer)
    except (TypeError, ValueError) as e:
        raise SystemFailureError(f'could not serialize response body: {e}') from e
    except Exception as e:
        raise wrap(e, 'serializer failed') from e

    return response


def _identity(event: APIGatewayProxyEvent) -> Dict[str, Any]:
    """User id and roles from a Cognito user pool authorizer, when present."""
    authorizer = (event.raw_event.get('requestContext') or {}).get('authorizer') or {}
    claims = authorizer.get('claims') or {}
    groups = claims.get('cognito:groups') or []
    if isinstance(groups, str):
        groups = [g for g in groups.replace(',', ' ').split() if g]

    return {
        'user_id': claims.get('sub', ''),
        'roles': list(groups),
    }


class RestRunner:
    """Front controller for API Gateway proxy integrations."""

    def __init__(
        self,
        feature: RestFeature,
        timeout: Optional[TimeoutCapturing] = None,
        logger: Optional[Logger] = None,
        app_name: Optional[str] = None,
    ) -> None:
        if timeout is None or app_name is None:
            env_vars = get_rest_handler_env_vars()
            if timeout is None:
                timeout = Timeout(TimeoutConfig(period_ms=env_vars.SLS_FEATURE_HANDLER_TIMEOUT))
            if app_name is None:
                app_name = env_vars.APP_NAME

        self.feature = feature
        self.timeout = timeout
        self.logger = logger or default_logger
        self.app_name = app_name
        self._entry = self.logger.inject_lambda_context(
            self.handle,
            correlation_id_path=correlation_paths.API_GATEWAY_REST,
        )

    def __call__(self, event: Dict[str, Any], lambda_context: Any) -> Dict[str, Any]:
        return self._entry(event, lambda_context)

    def handle(self, event: Dict[str, Any], lambda_context: Any) -> Dict[str, Any]:
        start = time.perf_counter()
        proxy_event = APIGatewayProxyEvent(event)
        trace_id = resolve_trace_id(proxy_event.headers)

        invocation = Invocation.from_lambda_context(
            event=proxy_event,
            lambda_context=lambda_context,
            logger=self.logger,
            trigger=LambdaTrigger.APIGW.value,
            trace_id=trace_id,
            **_identity(proxy_event),
        )

        keys = invocation_keys(LambdaTrigger.APIGW.value, trace_id)
        keys.update(request_log_keys(proxy_event, invocation))
        if self.app_name:
            keys['app_name'] = self.app_name

        with invocation_logging(self.logger, **keys) as log:
            try:
                success = self.timeout.with_time_constraint(
                    invocation,
                    lambda: self.feature.run(invocation, proxy_event),
                )
                response = process_success(success, log, proxy_event)
            except BaseServiceError as e:
                elapsed_ms = int((time.perf_counter() - start) * 1000)
                self._count_failure(e)
                return process_failure(e, log, proxy_event, elapsed_ms)

            elapsed_ms = int((time.perf_counter() - start) * 1000)
            log.info(proxy_event.path, extra={'status': response.get('statusCode'), 'elapsed_ms': elapsed_ms})
            return response

    @staticmethod
    def _count_failure(error: BaseServiceError) -> None:
        if is_timeout(error):
            metrics.add_metric(name='RestFeatureTimeout', unit=MetricUnit.Count, value=1)
        elif is_panic(error):
            metrics.add_metric(name='RestFeaturePanic', unit=MetricUnit.Count, value=1)
        else:
            metrics.add_metric(name='RestFeatureFailure', unit=MetricUnit.Count, value=1)
