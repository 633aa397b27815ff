"""
Configuration capabilities of a feature.

A feature's runtime configuration is described by an environment variable
model (a pydantic ``BaseModel`` subclass). The tooling needs three things from it,
expressed as separate protocols so callers depend only on what they use:

- ``EnvReporter``: which env vars exist and what they are currently set to
- ``ParamCollector``: how those env vars map onto parameter store paths
- ``DefaultsPolicy``: whether values equal to their defaults are reported

``EnvModelConfig`` implements all three over a pydantic model.
"""

import os
from typing import Dict, List, Optional, Protocol, Tuple, Type

from aws_lambda_env_modeler import get_environment_variables
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError
from pydantic.fields import FieldInfo

from sls.handlers.utils.failures import ValidationError


class EnvReporter(Protocol):
    def env_names(self) -> List[str]:
        ...

    def env_to_map(self) -> Dict[str, str]:
        ...


class ParamCollector(Protocol):
    def collect_params_from_env(self, app_title: str) -> Dict[str, str]:
        ...


class DefaultsPolicy(Protocol):
    def set_exclude_defaults(self, value: bool) -> None:
        ...

    def is_defaults_excluded(self) -> bool:
        ...


def param_path(app_title: str, env_name: str) -> str:
    """Parameter store path of an env var: ``/<app_title>/<ENV_NAME>``."""
    return f'/{app_title.strip("/")}/{env_name}'


def _to_env_value(value: object) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


class EnvModelConfig:
    """Feature configuration backed by an environment variable model."""

    def __init__(self, model: Type[BaseModel], exclude_defaults: bool = False) -> None:
        self.model = model
        self._exclude_defaults = exclude_defaults

    def __repr__(self) -> str:
        return f'EnvModelConfig({self.model.__name__})'

    def _fields(self) -> List[Tuple[str, FieldInfo]]:
        return [(info.alias or name, info) for name, info in self.model.model_fields.items()]

    @staticmethod
    def _default(info: FieldInfo) -> Optional[str]:
        if info.is_required():
            return None
        if info.default_factory is not None:
            return _to_env_value(info.default_factory())
        return _to_env_value(info.default)

    def set_exclude_defaults(self, value: bool) -> None:
        self._exclude_defaults = value

    def is_defaults_excluded(self) -> bool:
        return self._exclude_defaults

    def _reported(self) -> List[Tuple[str, str]]:
        """
        Env names with their current values, after applying the defaults policy.

        Values come from the process environment, falling back to the field
        default. With defaults excluded, a field that has a default is reported
        only when the environment overrides it with a different value.
        """
        reported = []
        for env_name, info in self._fields():
            default = self._default(info)
            current = os.environ.get(env_name)

            if self._exclude_defaults and default is not None:
                if current is None or current == default:
                    continue

            if current is None:
                current = default if default is not None else ''
            reported.append((env_name, current))

        return reported

    def env_names(self) -> List[str]:
        return [name for name, _ in self._reported()]

    def env_to_map(self) -> Dict[str, str]:
        return dict(self._reported())

    def collect_params_from_env(self, app_title: str) -> Dict[str, str]:
        return {param_path(app_title, name): value for name, value in self._reported()}

    def process_env(self) -> BaseModel:
        """Validate the process environment against the model."""
        try:
            return get_environment_variables(model=self.model)
        except ValueError as e:
            # the modeler reports pydantic failures as a ValueError caused by them
            cause = e if isinstance(e, PydanticValidationError) else e.__cause__
            fields = {}
            if isinstance(cause, PydanticValidationError):
                fields = {'.'.join(str(p) for p in err['loc']): err['msg'] for err in cause.errors()}
            raise ValidationError(f'environment does not satisfy {self.model.__name__}', fields=fields) from e
