"""
Environment reports for features and whole services.

A service report merges the env vars of all its features into one map. Two
features sharing an env var must agree on its value; disagreements are
reported next to the merged map instead of failing the report.
"""

from typing import Any, Dict, Tuple

from sls.handlers.utils.failures import InvalidStateError, wrap
from sls.handlers.utils.observability import logger
from sls.models.service import MicroService

# feature key -> {env name: conflicting value}
EnvConflicts = Dict[str, Dict[str, str]]


def feature_env_report(config: Any, skip_defaults: bool = False, names_only: bool = False) -> Dict[str, str]:
    """
    Env vars of one feature configuration.

    ``config`` must provide the ``DefaultsPolicy`` and ``EnvReporter``
    capabilities. With ``names_only`` every value is ``""``.
    """
    if config is None:
        raise InvalidStateError('feature configuration is not initialized')

    config.set_exclude_defaults(skip_defaults)
    if names_only:
        return {name: '' for name in config.env_names()}

    return dict(config.env_to_map())


def service_env_report(
    service: MicroService,
    skip_defaults: bool = False,
    names_only: bool = False,
    with_trigger: bool = False,
) -> Tuple[Dict[str, str], EnvConflicts]:
    """
    Merge the env reports of every feature of ``service``.

    Features are visited in name order and the first one to report an env var
    decides its merged value. A later feature reporting a different value has
    the conflict recorded under its key (``name`` or ``trigger_name``).
    """
    merged: Dict[str, str] = {}
    conflicts: EnvConflicts = {}

    for feature in service.sorted_features():
        key = feature.name_with_trigger if with_trigger else feature.name
        try:
            envs = feature_env_report(feature.config, skip_defaults, names_only)
        except InvalidStateError as e:
            raise wrap(e, f'feature_env_report failed ({key})')

        for env_name, value in envs.items():
            if env_name not in merged:
                merged[env_name] = value
                continue
            if merged[env_name] != value:
                conflicts.setdefault(key, {})[env_name] = value

    if conflicts:
        logger.warning('service env vars disagree between features', extra={
            'service': service.name.qualified_name,
            'conflicts': conflicts,
        })

    return merged, conflicts
