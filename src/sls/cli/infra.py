"""
Infrastructure command runtime.

``Infra`` holds what every command needs: how to build the service, the AWS
clients and the output streams. Commands report results as JSON on stdout (or
in a file) and anything worth a second look, like env conflicts or import
failures, as JSON on stderr.
"""

import importlib
import json
import os
import sys
from typing import Annotated, Any, Callable, Dict, Optional, TextIO, Tuple

from pydantic import BaseModel, Field

from sls.dal import LambdaDeployments, ParamStorage, new_lambda_deployer, new_param_store, new_session
from sls.handlers.utils.failures import (
    BaseServiceError,
    InvalidParamError,
    InvalidStateError,
    SystemFailureError,
    is_not_found,
    wrap,
)
from sls.models.feature import Feature, to_lambda_trigger
from sls.models.naming import DEFAULT_REGION
from sls.models.service import MicroService

ServiceConstructor = Callable[['CmdConfig'], MicroService]
ConfigHook = Callable[[MicroService], Any]

DEFAULT_CONFIG_HOOK = 'configure_service'


class CmdConfig(BaseModel):
    """Settings shared by every infra command."""

    env: Annotated[str, Field(description='Application env', min_length=1)]
    aws_region: Annotated[str, Field(default=DEFAULT_REGION.value, description='AWS region of the service')] = DEFAULT_REGION.value
    aws_profile: Annotated[Optional[str], Field(default=None, description='AWS credentials profile')] = None
    root_dir: Annotated[str, Field(default='.', description='Service repository root')] = '.'
    app: Annotated[str, Field(default='', description='Service label, defaults to the root dir name')] = ''
    verbose: bool = False
    is_all: Annotated[bool, Field(default=False, description='Apply to the whole service')] = False
    skip_defaults: bool = False
    with_trigger: Annotated[bool, Field(
        default=False,
        description='Feature names are given with their trigger, e.g. apigw_feature'
    )] = False
    is_text: Annotated[bool, Field(default=False, description='Use plain text instead of json')] = False
    is_qualified_name: Annotated[bool, Field(default=False, description='Display names as fully qualified')] = False
    is_encrypt: Annotated[bool, Field(default=True, description='Use decryption for parameter store')] = True
    config_module: Annotated[str, Field(
        default='',
        description='Module, or module:function, attaching env configurations to the features'
    )] = ''

    @property
    def app_label(self) -> str:
        return self.app or os.path.basename(os.path.abspath(self.root_dir))


def expand_path(path: str) -> str:
    """Resolve a leading ``~`` to the home directory."""
    return os.path.expanduser(path) if path else path


def load_config_hook(reference: str) -> ConfigHook:
    """
    Resolve ``module`` or ``module:function`` to the function attaching env
    configurations to the features of a service.

    The module must be importable, e.g. installed with the service or on
    ``PYTHONPATH``. Without ``:function`` the hook is ``configure_service``.
    """
    module_name, _, attr = reference.partition(':')
    attr = attr or DEFAULT_CONFIG_HOOK
    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise InvalidParamError(f'config module ({module_name}) could not be imported: {e}') from e

    hook = getattr(module, attr, None)
    if not callable(hook):
        raise InvalidParamError(f'config module ({module_name}) has no callable ({attr})')
    return hook


def filesystem_service(config: CmdConfig) -> MicroService:
    """
    Service from the repository layout under ``config.root_dir``.

    Discovered features have no env configuration until the config module
    hook attaches one with ``MicroService.configure_feature``.
    """
    service = MicroService.new(
        root_dir=os.path.abspath(config.root_dir),
        env=config.env,
        app=config.app_label,
        region=config.aws_region,
    )
    service.load_features_from_filesystem()
    if config.config_module:
        load_config_hook(config.config_module)(service)
    return service


class Infra:
    """Shared runtime of the infra commands."""

    def __init__(
        self,
        service_constructor: ServiceConstructor = filesystem_service,
        pstore: Optional[ParamStorage] = None,
        lambda_api: Optional[LambdaDeployments] = None,
        stdout: Optional[TextIO] = None,
        stderr: Optional[TextIO] = None,
    ) -> None:
        if service_constructor is None:
            raise InvalidStateError('service_constructor is None, it is required for all commands')

        self.service_constructor = service_constructor
        self.pstore = pstore
        self.lambda_api = lambda_api
        self.stdout = stdout or sys.stdout
        self.stderr = stderr or sys.stderr

    def param_store(self, config: CmdConfig) -> ParamStorage:
        if self.pstore is None:
            self.pstore = new_param_store(new_session(config.aws_profile, config.aws_region), config.is_encrypt)
        elif hasattr(self.pstore, 'set_encryption'):
            self.pstore.set_encryption(config.is_encrypt)
        return self.pstore

    def deployer(self, config: CmdConfig) -> LambdaDeployments:
        if self.lambda_api is None:
            self.lambda_api = new_lambda_deployer(new_session(config.aws_profile, config.aws_region))
        return self.lambda_api

    def load_service(self, config: CmdConfig) -> MicroService:
        try:
            return self.service_constructor(config)
        except BaseServiceError as e:
            raise wrap(e, 'service constructor failed')

    def load_feature(self, config: CmdConfig, name: str) -> Tuple[MicroService, Feature]:
        """
        Find a feature by name.

        When names include the trigger and the plain lookup fails, ``name`` is
        read as ``<trigger>_<feature>`` and looked up again without the trigger.
        """
        if not name:
            raise InvalidParamError('feature name is missing')

        service = self.load_service(config)
        try:
            return service, service.feature(name)
        except BaseServiceError as e:
            if not is_not_found(e) or not config.with_trigger:
                raise wrap(e, f'feature lookup failed ({name})')
            not_found = e

        trigger, sep, feature_name = name.partition('_')
        if not sep or not feature_name:
            raise wrap(not_found, 'invalid format, should be (<trigger>_<feature>)')

        to_lambda_trigger(trigger)
        try:
            return service, service.feature(feature_name)
        except BaseServiceError as e:
            raise wrap(e, f'feature lookup failed, even when taking into account the trigger ({trigger}, {feature_name})')

    def feature_key(self, config: CmdConfig, feature: Feature) -> str:
        return feature.display_name(with_trigger=config.with_trigger, qualified=config.is_qualified_name)

    def display(self, data: str) -> None:
        self.stdout.write(data)
        if not data.endswith('\n'):
            self.stdout.write('\n')

    def display_error(self, data: str) -> None:
        self.stderr.write(data)
        if not data.endswith('\n'):
            self.stderr.write('\n')

    def display_json(self, data: Any) -> None:
        self.display(json.dumps(data, default=_to_json))

    def display_error_json(self, data: Any) -> None:
        self.display_error(json.dumps(data, default=_to_json))

    def display_text(self, data: Dict[str, Any], title: Optional[str] = None) -> None:
        lines = [title] if title else []
        lines.extend(f'{k}: {v}' for k, v in sorted(data.items()))
        self.display('\n'.join(lines))

    def write_json(self, path: str, data: Any) -> None:
        target = expand_path(path)
        try:
            with open(target, 'w', encoding='utf-8') as f:
                json.dump(data, f, default=_to_json)
        except OSError as e:
            raise SystemFailureError(f'could not write json file ({target}): {e}') from e

    def output(self, config: CmdConfig, data: Dict[str, Any], file: Optional[str] = None, title: Optional[str] = None) -> None:
        """Send a command result to ``file``, or stdout as text or json."""
        if file:
            self.write_json(file, data)
        elif config.is_text:
            self.display_text(data, title)
        else:
            self.display_json(data)

    def check_failure(self, error: Optional[BaseException]) -> int:
        """Report ``error`` on stderr; the exit code the command should end with."""
        if error is None:
            return 0
        self.stderr.write(f'[infra] {error}\n')
        return 1


def _to_json(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump(mode='json')
    if isinstance(value, BaseServiceError):
        return value.to_dict()
    return str(value)
