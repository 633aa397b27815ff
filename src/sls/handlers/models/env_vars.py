"""
Environment variable models for front controller configuration.

This module defines Pydantic models for environment variables read by the
handler runners, providing type safety and validation.
"""

from typing import Annotated

from aws_lambda_env_modeler import get_environment_variables
from pydantic import BaseModel, Field

# Milliseconds reserved for the Lambda platform before the invocation deadline
DEFAULT_FEATURE_TIMEOUT_MS = 100


class TimeoutEnvVars(BaseModel):
    """Environment variables for the handler runner."""

    SLS_FEATURE_HANDLER_TIMEOUT: Annotated[int, Field(
        default=DEFAULT_FEATURE_TIMEOUT_MS,
        description='Safety margin in milliseconds subtracted from the invocation deadline',
        ge=0,
        le=60000
    )] = DEFAULT_FEATURE_TIMEOUT_MS


class RestHandlerEnvVars(TimeoutEnvVars):
    """Environment variables for API Gateway handlers."""

    APP_NAME: Annotated[str, Field(
        default='',
        description='Application name reported in request logs'
    )] = ''


def get_timeout_env_vars() -> TimeoutEnvVars:
    """
    Get typed environment variables for the handler runner.

    Returns:
        Validated environment variables model instance
    """
    return get_environment_variables(model=TimeoutEnvVars)


def get_rest_handler_env_vars() -> RestHandlerEnvVars:
    return get_environment_variables(model=RestHandlerEnvVars)
