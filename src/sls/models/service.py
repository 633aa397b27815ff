"""
Microservice model: a named collection of features plus the code layout used
to find, build and deploy them.

The layout assumes:

1. ``app`` is under the root directory
2. ``lambdas`` is under ``app``, with one directory per trigger kind
3. ``infra`` is under the root directory
4. ``build`` and ``terraform`` are under ``infra``
"""

import os
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from sls.handlers.utils.failures import (
    InvalidParamError,
    NotFoundError,
    SystemFailureError,
    ValidationError,
    wrap,
)
from sls.handlers.utils.observability import logger
from sls.models.build import BuildSettings
from sls.models.feature import Feature, LambdaTrigger, to_lambda_trigger
from sls.models.naming import DEFAULT_REGION, ServiceName

DEFAULT_APP_DIR_NAME = 'app'
DEFAULT_LAMBDA_DIR_NAME = 'lambdas'
DEFAULT_INFRA_DIR_NAME = 'infra'
DEFAULT_BUILD_DIR_NAME = 'build'
DEFAULT_TERRAFORM_DIR_NAME = 'terraform'
DEFAULT_LAMBDA_GO_FILE = 'main.go'


@dataclass(frozen=True)
class CodeLayout:
    """Directories where a service keeps the code needed to build and deploy its lambdas."""

    root: str
    app: str = DEFAULT_APP_DIR_NAME
    lambdas: str = DEFAULT_LAMBDA_DIR_NAME
    infra: str = DEFAULT_INFRA_DIR_NAME
    build: str = DEFAULT_BUILD_DIR_NAME
    terraform: str = DEFAULT_TERRAFORM_DIR_NAME

    @property
    def root_dir(self) -> str:
        return self.root

    @property
    def app_dir(self) -> str:
        return os.path.join(self.root, self.app)

    @property
    def lambdas_dir(self) -> str:
        return os.path.join(self.app_dir, self.lambdas)

    @property
    def infra_dir(self) -> str:
        return os.path.join(self.root, self.infra)

    @property
    def build_dir(self) -> str:
        return os.path.join(self.infra_dir, self.build)

    @property
    def terraform_dir(self) -> str:
        return os.path.join(self.infra_dir, self.terraform)

    def trigger_dir(self, trigger: LambdaTrigger) -> str:
        return os.path.join(self.lambdas_dir, trigger.value)


@dataclass
class MicroService:
    """A deployable service and the features it is made of."""

    layout: CodeLayout
    name: ServiceName
    features: Dict[str, Feature] = field(default_factory=dict)

    @classmethod
    def new(cls, root_dir: str, env: str, app: str, region: Optional[str] = None) -> 'MicroService':
        if not root_dir:
            raise ValidationError(f'root_dir for ({app}) is empty')

        try:
            name = ServiceName.new(region or DEFAULT_REGION.value, env, app)
        except (InvalidParamError, ValidationError) as e:
            raise wrap(e, 'service name is invalid')

        return cls(layout=CodeLayout(root=root_dir), name=name)

    def __str__(self) -> str:
        return self.name.qualified_name

    @property
    def app_title(self) -> str:
        return self.name.app_title

    def feature(self, name: str) -> Feature:
        try:
            return self.features[name]
        except KeyError:
            raise NotFoundError(f'feature ({name})') from None

    def sorted_features(self) -> List[Feature]:
        return [self.features[name] for name in sorted(self.features)]

    def add_feature(self, trigger: LambdaTrigger, name: str, config: Optional[object] = None) -> Feature:
        if not name:
            raise InvalidParamError('[name] feature name is empty')

        feature = Feature(
            name=name,
            qualified_name=f'{self.name.qualified_name}-{trigger.value}_{name}',
            trigger=trigger,
            config=config,
        )
        self.features[name] = feature
        return feature

    def configure_feature(self, name: str, config: object) -> Feature:
        """Attach the env configuration of a feature, typically after filesystem discovery."""
        feature = self.feature(name)
        feature.config = config
        return feature

    def load_features_from_filesystem(self) -> List[Feature]:
        """
        Register every feature found under the lambdas directory.

        Each directory under ``app/lambdas`` must be named after a trigger kind;
        each of its subdirectories holding a ``main.go`` is a feature.
        """
        lambdas_dir = self.layout.lambdas_dir
        try:
            trigger_dirs = sorted(e.name for e in os.scandir(lambdas_dir) if e.is_dir())
        except OSError as e:
            raise SystemFailureError(f'could not read lambdas dir ({lambdas_dir}): {e}') from e

        loaded = []
        for dir_name in trigger_dirs:
            try:
                trigger = to_lambda_trigger(dir_name)
            except ValidationError as e:
                raise wrap(e, 'invalid lambda trigger directory name')
            loaded.extend(self._add_by_trigger(trigger))

        logger.debug('features loaded from filesystem', extra={
            'service': self.name.qualified_name,
            'features': [f.name_with_trigger for f in loaded],
        })
        return loaded

    def _add_by_trigger(self, trigger: LambdaTrigger) -> List[Feature]:
        trigger_dir = self.layout.trigger_dir(trigger)
        try:
            entries = sorted((e for e in os.scandir(trigger_dir) if e.is_dir()), key=lambda e: e.name)
        except OSError as e:
            raise SystemFailureError(f'could not read trigger dir ({trigger_dir}): {e}') from e

        added = []
        for entry in entries:
            if not os.path.isfile(os.path.join(entry.path, DEFAULT_LAMBDA_GO_FILE)):
                continue
            added.append(self.add_feature(trigger, entry.name))
        return added

    def new_build_settings(self, feature: Feature, code_dir: Optional[str] = None) -> BuildSettings:
        return BuildSettings(
            code_dir=code_dir or os.path.join(self.layout.lambdas_dir, feature.code_dir),
            build_dir=self.layout.build_dir,
            bin_name=feature.binary_name,
            zip_name=feature.zip_name,
        )
