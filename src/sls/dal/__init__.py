"""
Data Access Layer (DAL) for the AWS stores the tooling works against.

This module provides the interfaces the logic layer depends on and the factory
functions that build boto3 backed implementations.
"""

from typing import Dict, List, Optional, Protocol, Tuple, runtime_checkable

import boto3

from sls.dal.lambda_deploy import CodePayload, FeatureSettings, LambdaDeployer
from sls.dal.pstore import ParameterStore
from sls.models.output import FeatureUpdateReport


@runtime_checkable
class ParamStorage(Protocol):
    """Protocol defining the parameter store interface."""

    def param(self, key: str) -> str:
        """Retrieve one parameter value."""
        ...

    def path(self, prefix: str, recursive: bool = True) -> Dict[str, str]:
        """Retrieve every parameter under a path."""
        ...

    def collect(self, *keys: str) -> Tuple[Dict[str, str], List[str]]:
        """Retrieve many parameters, reporting the unknown ones."""
        ...

    def delete(self, key: str) -> str:
        """Remove a parameter, returning its old value."""
        ...

    def put(self, key: str, value: str, overwrite: bool = False) -> str:
        """Create or update a parameter, returning its old value."""
        ...

    def ensure_path_prefix(self, key: str) -> str:
        ...


@runtime_checkable
class LambdaDeployments(Protocol):
    """Protocol defining the Lambda deployment interface."""

    def update_code(self, payload: CodePayload) -> FeatureUpdateReport:
        ...

    def update_config(self, settings: FeatureSettings) -> FeatureUpdateReport:
        ...


def new_session(profile: Optional[str] = None, region: Optional[str] = None) -> boto3.session.Session:
    """boto3 session for the given profile and region, falling back to the default chain."""
    return boto3.session.Session(profile_name=profile or None, region_name=region or None)


def new_param_store(session: boto3.session.Session, is_encrypted: bool = True) -> ParameterStore:
    return ParameterStore(session.client('ssm'), is_encrypted=is_encrypted)


def new_lambda_deployer(session: boto3.session.Session) -> LambdaDeployer:
    return LambdaDeployer(session.client('lambda'))
