"""
Service and feature parameter operations.

Every parameter of a service lives under ``/<app_title>/``; a feature's
parameters are ``/<app_title>/<ENV_NAME>`` for each env var it declares.
Keys given without the app title are qualified with it.
"""

import json
from typing import Dict, List, Tuple

from sls.dal import ParamStorage
from sls.handlers.utils.failures import (
    BaseServiceError,
    ConflictError,
    InvalidParamError,
    InvalidStateError,
    MultiError,
    SystemFailureError,
    ValidationError,
    wrap,
)
from sls.handlers.utils.observability import logger
from sls.models.configurable import param_path
from sls.models.feature import Feature
from sls.models.service import MicroService


def _require_app_title(app_title: str) -> None:
    if not app_title:
        raise InvalidParamError('app_title is empty, should be the name of the micro-service')


def qualify_key(store: ParamStorage, app_title: str, key: str) -> str:
    """Parameter path of ``key``, prefixed with the app title when it is missing."""
    _require_app_title(app_title)
    if not key:
        raise InvalidParamError('key is empty')

    bare = key.lstrip('/')
    if not bare.startswith(f'{app_title}/'):
        bare = f'{app_title}/{bare}'
    return store.ensure_path_prefix(bare)


def strip_app_title(app_title: str, params: Dict[str, str]) -> Dict[str, str]:
    """Drop the ``/<app_title>/`` prefix from every key."""
    prefix = f'/{app_title}/'
    return {k.replace(prefix, '', 1): v for k, v in params.items()}


def service_params(store: ParamStorage, app_title: str) -> Dict[str, str]:
    _require_app_title(app_title)
    return store.path(app_title)


def feature_params(store: ParamStorage, app_title: str, feature: Feature) -> Dict[str, str]:
    """
    Stored values of a feature's env vars.

    Defaults are excluded, so env vars with defaults the local environment does
    not override are not looked up.
    """
    _require_app_title(app_title)
    if not feature.has_config():
        raise InvalidStateError(f'[{feature.name}] feature configuration is not initialized')

    feature.config.set_exclude_defaults(True)
    result = {}
    for env_name in feature.config.env_names():
        key = param_path(app_title, env_name)
        try:
            result[key] = store.param(key)
        except BaseServiceError as e:
            raise wrap(e, f'param failed ({app_title}, {feature.name}, {key})')

    return result


def param(store: ParamStorage, app_title: str, key: str) -> str:
    return store.param(qualify_key(store, app_title, key))


def put_param(store: ParamStorage, app_title: str, key: str, value: str, overwrite: bool = False) -> Dict[str, str]:
    """Write one parameter, returning ``{path: previous value}``."""
    path = qualify_key(store, app_title, key)
    try:
        old = store.put(path, value, overwrite)
    except BaseServiceError as e:
        raise wrap(e, f'put failed ({app_title}, {key})')
    return {path: old}


def delete_param(store: ParamStorage, app_title: str, key: str) -> Dict[str, str]:
    """Delete one parameter, returning ``{path: deleted value}``."""
    path = qualify_key(store, app_title, key)
    try:
        old = store.delete(path)
    except BaseServiceError as e:
        raise wrap(e, f'delete failed ({app_title}, {key})')
    return {path: old}


def _delete_all(store: ParamStorage, params: Dict[str, str]) -> Dict[str, str]:
    deleted: Dict[str, str] = {}
    failed = MultiError()
    for key in sorted(params):
        try:
            store.delete(key)
        except BaseServiceError as e:
            failed.append(wrap(e, f'delete failed ({key})'))
            continue
        deleted[key] = params[key]

    if failed.error_or_none():
        failed.partial = deleted
        raise failed
    return deleted


def delete_all_service_params(store: ParamStorage, app_title: str) -> Dict[str, str]:
    params = service_params(store, app_title)
    logger.info('deleting service params', extra={'app_title': app_title, 'count': len(params)})
    return _delete_all(store, params)


def delete_all_feature_params(store: ParamStorage, app_title: str, feature: Feature) -> Dict[str, str]:
    params = feature_params(store, app_title, feature)
    logger.info('deleting feature params', extra={
        'app_title': app_title,
        'feature': feature.name,
        'count': len(params),
    })
    return _delete_all(store, params)


def read_params_from_file(path: str) -> Dict[str, str]:
    """Load a JSON object of parameter names to string values."""
    try:
        with open(path, encoding='utf-8') as f:
            data = json.load(f)
    except OSError as e:
        raise SystemFailureError(f'could not read params file ({path}): {e}') from e
    except json.JSONDecodeError as e:
        raise ValidationError(f'params file ({path}) is not valid json: {e}') from e

    if not isinstance(data, dict):
        raise ValidationError(f'params file ({path}) must hold a json object')

    invalid = {k: 'value must be a string' for k, v in data.items() if not isinstance(v, str)}
    if invalid:
        raise ValidationError(f'params file ({path}) has non string values', fields=invalid)

    return data


def read_params_from_service(service: MicroService) -> Dict[str, str]:
    """
    Collect parameter values from the local environment for every feature.

    Two features resolving the same parameter to different values is a
    ``ConflictError``.
    """
    params: Dict[str, str] = {}
    app_title = service.app_title
    for feature in service.sorted_features():
        if not feature.has_config():
            raise InvalidStateError(f'[{feature.name}] feature configuration is not initialized')

        for key, value in feature.config.collect_params_from_env(app_title).items():
            existing = params.get(key)
            if existing is not None and existing != value:
                raise ConflictError(
                    f'param ({key}) has two different values ({existing}, {value}) at feature ({feature.name})'
                )
            params[key] = value

    return params


def import_params(
    store: ParamStorage,
    app_title: str,
    params: Dict[str, str],
    overwrite: bool = False,
) -> Tuple[Dict[str, str], List[BaseServiceError]]:
    """
    Write every parameter, continuing past failures.

    Returns a backup map of the previous values (``""`` for new parameters)
    and the failures, in key order.
    """
    backup: Dict[str, str] = {}
    errors: List[BaseServiceError] = []
    for key in sorted(params):
        try:
            backup.update(put_param(store, app_title, key, params[key], overwrite))
        except BaseServiceError as e:
            errors.append(e)

    if errors:
        logger.warning('params import finished with failures', extra={
            'app_title': app_title,
            'imported': len(backup),
            'failed': len(errors),
        })
    return backup, errors
