"""
SSM Parameter Store client used to manage microservice configuration.

Values are always handled as strings, and ``""`` is a valid value. Backend
errors are translated into toolkit failures: a missing parameter becomes a
``NotFoundError``, everything else a ``SystemFailureError``.
"""

from typing import Any, Callable, Dict, Iterator, List, Optional, Protocol, Tuple

from aws_lambda_powertools.metrics import MetricUnit
from botocore.exceptions import BotoCoreError, ClientError

from sls.handlers.utils.failures import (
    BaseServiceError,
    ConflictError,
    InvalidParamError,
    MultiError,
    NotFoundError,
    SystemFailureError,
    wrap,
)
from sls.handlers.utils.observability import logger, metrics, tracer

PARAMETER_NOT_FOUND = 'ParameterNotFound'
PARAMETER_TYPE_STRING = 'String'
PARAMETER_TYPE_SECURE_STRING = 'SecureString'
PARAMETER_TIER_STANDARD = 'Standard'


class PathPaging(Protocol):
    """Pages through the results of a GetParametersByPath call."""

    def has_more_pages(self) -> bool:
        ...

    def next_page(self) -> Dict[str, Any]:
        ...


PathPagerFactory = Callable[[Any, Dict[str, Any]], PathPaging]


class PathPager:
    """
    ``PathPaging`` over the boto3 ``get_parameters_by_path`` paginator.

    Pages are fetched one ahead so ``has_more_pages`` can answer before the
    page is handed out. A failed page ends the paginator, so paging stops after
    the first error.
    """

    def __init__(self, api: Any, request: Dict[str, Any]) -> None:
        paginator = api.get_paginator('get_parameters_by_path')
        self._pages: Iterator[Dict[str, Any]] = iter(paginator.paginate(**request))
        self._page: Optional[Dict[str, Any]] = None
        self._error: Optional[Exception] = None
        self._done = False

    def _fetch(self) -> None:
        if self._done or self._page is not None or self._error is not None:
            return
        try:
            self._page = next(self._pages)
        except StopIteration:
            self._done = True
        except Exception as e:
            self._error = e
            self._done = True

    def has_more_pages(self) -> bool:
        self._fetch()
        return self._page is not None or self._error is not None

    def next_page(self) -> Dict[str, Any]:
        self._fetch()
        if self._error is not None:
            error, self._error = self._error, None
            raise error

        page, self._page = self._page, None
        return page or {}


def new_path_pager(api: Any, request: Dict[str, Any]) -> PathPaging:
    return PathPager(api, request)


def ensure_path_prefix(key: str) -> str:
    """Prepend ``/`` when missing."""
    if not key.startswith('/'):
        return '/' + key
    return key


def _is_parameter_not_found(error: Exception) -> bool:
    if isinstance(error, ClientError):
        return error.response.get('Error', {}).get('Code') == PARAMETER_NOT_FOUND
    return False


def _to_failure(error: Exception, message: str) -> Exception:
    if _is_parameter_not_found(error):
        failure = NotFoundError(f'{message}: {error}')
    else:
        failure = SystemFailureError(f'{message}: {error}')
    failure.__cause__ = error
    return failure


class ParameterStore:
    """Parameter store client over a boto3 ``ssm`` client."""

    def __init__(
        self,
        api: Any,
        is_encrypted: bool = False,
        path_pager_factory: Optional[PathPagerFactory] = None,
    ) -> None:
        if api is None:
            raise InvalidParamError('api is None, an initialized ssm client is required')

        self.api = api
        self.is_encrypted = is_encrypted
        self.path_pager_factory = path_pager_factory or new_path_pager

    def set_encryption(self, value: bool) -> None:
        self.is_encrypted = value

    @staticmethod
    def ensure_path_prefix(key: str) -> str:
        return ensure_path_prefix(key)

    @tracer.capture_method
    def param(self, key: str) -> str:
        """
        Retrieve a single parameter value.

        Raises:
            InvalidParamError: ``key`` is empty
            NotFoundError: the parameter does not exist
            SystemFailureError: any other backend failure
        """
        if not key:
            raise InvalidParamError('key is empty, a non empty key is required')

        key = ensure_path_prefix(key)
        try:
            out = self.api.get_parameter(Name=key, WithDecryption=self.is_encrypted)
        except (ClientError, BotoCoreError) as e:
            raise _to_failure(e, f'get_parameter failed ({key})') from e

        return (out or {}).get('Parameter', {}).get('Value') or ''

    def params(self, *keys: str) -> Dict[str, str]:
        """
        Retrieve several parameters one at a time.

        Failures do not stop the batch; they are raised together as a
        ``MultiError`` whose ``partial`` holds the values that were read.
        """
        result: Dict[str, str] = {}
        failed = MultiError()
        for key in keys:
            try:
                result[ensure_path_prefix(key)] = self.param(key)
            except BaseServiceError as e:
                failed.append(wrap(e, 'param failed'))

        if failed.error_or_none():
            failed.partial = result
            raise failed
        return result

    @tracer.capture_method
    def path(self, prefix: str, recursive: bool = True) -> Dict[str, str]:
        """
        Retrieve every parameter under ``prefix``.

        Page failures are collected rather than failing fast; when any occurred
        a ``MultiError`` is raised with the parameters from the good pages as
        ``partial``.
        """
        if not prefix:
            raise InvalidParamError('path is empty')

        request = {
            'Path': ensure_path_prefix(prefix),
            'WithDecryption': self.is_encrypted,
            'Recursive': recursive,
        }
        pager = self.path_pager_factory(self.api, request)
        return self.resolve_path_pages(pager)

    def resolve_path_pages(self, pager: PathPaging) -> Dict[str, str]:
        result: Dict[str, str] = {}
        failed = MultiError()
        while pager.has_more_pages():
            try:
                page = pager.next_page()
            except (ClientError, BotoCoreError) as e:
                failed.append(_to_failure(e, 'get_parameters_by_path page failed'))
                continue
            except SystemFailureError as e:
                failed.append(e)
                continue

            for p in page.get('Parameters') or []:
                name, value = p.get('Name'), p.get('Value')
                if name is None or value is None:
                    continue
                result[name] = value

        if failed.error_or_none():
            logger.warning('parameter path resolved partially', extra={
                'failed_pages': len(failed),
                'resolved': len(result),
            })
            metrics.add_metric(name='ParameterPathPageFailure', unit=MetricUnit.Count, value=len(failed))
            failed.partial = result
            raise failed
        return result

    @tracer.capture_method
    def collect(self, *keys: str) -> Tuple[Dict[str, str], List[str]]:
        """
        Retrieve many parameters in one call, regardless of hierarchy.

        Returns the found values and the keys the backend reported as invalid.
        """
        if not keys:
            raise InvalidParamError('keys must have at least one key')

        keys = tuple(ensure_path_prefix(k) for k in keys)
        try:
            out = self.api.get_parameters(Names=list(keys), WithDecryption=self.is_encrypted)
        except (ClientError, BotoCoreError) as e:
            raise SystemFailureError(f'get_parameters failed ({list(keys)}): {e}') from e

        result = {}
        for p in out.get('Parameters') or []:
            name, value = p.get('Name'), p.get('Value')
            if name is None or value is None:
                continue
            result[name] = value

        invalid = [k for k in out.get('InvalidParameters') or [] if k]
        return result, invalid

    @tracer.capture_method
    def delete(self, key: str) -> str:
        """Remove a parameter and return its old value; a missing parameter is a ``NotFoundError``."""
        if key:
            key = ensure_path_prefix(key)
        try:
            old = self.param(key)
        except (NotFoundError, InvalidParamError, SystemFailureError) as e:
            raise wrap(e, f'param failed ({key})')

        try:
            self.api.delete_parameter(Name=key)
        except (ClientError, BotoCoreError) as e:
            raise _to_failure(e, f'delete_parameter failed ({key})') from e

        logger.info('parameter deleted', extra={'key': key})
        return old

    @tracer.capture_method
    def put(self, key: str, value: str, overwrite: bool = False) -> str:
        """
        Write a parameter only when it is missing or differs.

        Returns the previous value, ``""`` when there was none. An existing,
        differing value is only replaced when ``overwrite`` is set, otherwise a
        ``ConflictError`` is raised and nothing is written. Read and write are
        two calls, so concurrent writers may interleave.
        """
        if key:
            key = ensure_path_prefix(key)

        exists = True
        try:
            old = self.param(key)
        except NotFoundError:
            exists, old = False, ''
        except (InvalidParamError, SystemFailureError) as e:
            raise wrap(e, 'param failed')

        if exists and old == value:
            return old

        if exists and not overwrite:
            raise ConflictError(f'param ({key}) exists but overwrite is false')

        try:
            self.api.put_parameter(
                Name=key,
                Value=value,
                Type=PARAMETER_TYPE_SECURE_STRING if self.is_encrypted else PARAMETER_TYPE_STRING,
                Overwrite=exists and overwrite,
                Tier=PARAMETER_TIER_STANDARD,
            )
        except (ClientError, BotoCoreError) as e:
            raise SystemFailureError(f'put_parameter failed ({key}): {e}') from e

        logger.info('parameter written', extra={'key': key, 'overwrite': exists})
        return old
