"""
Features of a microservice.

A feature is one Lambda function. Its source lives under
``app/lambdas/<trigger>/<name>`` and it is deployed as
``<service qualified name>-<trigger>_<name>``.
"""

import os
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from sls.handlers.utils.failures import ValidationError

DEFAULT_BINARY_NAME = 'bootstrap'
DEFAULT_BINARY_ZIP_NAME = 'deployment.zip'


class LambdaTrigger(str, Enum):
    """Kinds of event sources a feature can be attached to."""
    APIGW = 'apigw'
    DDB = 'ddb'
    DIRECT = 'direct'
    COGNITO = 'cognito'
    S3 = 's3'
    SNS = 'sns'
    SQS = 'sqs'
    GQL = 'gql'
    SFN = 'sfn'
    KINESIS = 'kinesis'
    EVENTS = 'events'

    def __str__(self) -> str:
        return self.value


def to_lambda_trigger(value: str) -> LambdaTrigger:
    try:
        return LambdaTrigger(value.strip().lower())
    except ValueError:
        raise ValidationError(f'lambda trigger ({value}) is not supported') from None


@dataclass
class Feature:
    """A Lambda function belonging to a microservice."""

    name: str
    qualified_name: str
    trigger: LambdaTrigger
    # EnvModelConfig (or any Configurable) describing the feature's env vars
    config: Optional[Any] = None
    binary_name: str = DEFAULT_BINARY_NAME
    zip_name: str = DEFAULT_BINARY_ZIP_NAME

    @property
    def name_with_trigger(self) -> str:
        return f'{self.trigger.value}_{self.name}'

    @property
    def code_dir(self) -> str:
        """Source directory relative to the service lambdas directory."""
        return os.path.join(self.trigger.value, self.name)

    def has_config(self) -> bool:
        return self.config is not None

    def display_name(self, with_trigger: bool = False, qualified: bool = False) -> str:
        if qualified:
            return self.qualified_name
        if with_trigger:
            return self.name_with_trigger
        return self.name
