"""
Lambda deployment client: pushes new code packages and environment
configuration to already provisioned functions.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from botocore.exceptions import BotoCoreError, ClientError

from sls.handlers.utils.failures import InvalidParamError, SystemFailureError
from sls.handlers.utils.observability import logger, tracer
from sls.models.output import FeatureUpdateReport


@dataclass
class CodePayload:
    qualified_name: str
    zip_file: bytes
    dry_run: bool = False
    publish: bool = False


@dataclass
class FeatureSettings:
    """Configuration pushed to a function; unset values are left untouched."""

    qualified_name: str
    env_vars: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[int] = None
    role: Optional[str] = None


class LambdaDeployer:
    """Lambda deployment client over a boto3 ``lambda`` client."""

    def __init__(self, api: Any) -> None:
        if api is None:
            raise InvalidParamError('api is None, an initialized lambda client is required')
        self.api = api

    @tracer.capture_method
    def update_code(self, payload: CodePayload) -> FeatureUpdateReport:
        if not payload.qualified_name:
            raise InvalidParamError('qualified_name is empty')

        try:
            out = self.api.update_function_code(
                FunctionName=payload.qualified_name,
                ZipFile=payload.zip_file,
                DryRun=payload.dry_run,
                Publish=payload.publish,
            )
        except (ClientError, BotoCoreError) as e:
            raise SystemFailureError(f'update_function_code failed ({payload.qualified_name}): {e}') from e

        report = FeatureUpdateReport.from_lambda_response(out)
        logger.info('feature code updated', extra={
            'function_name': payload.qualified_name,
            'code_sha256': report.code_sha256,
            'code_size': report.code_size,
        })
        return report

    @tracer.capture_method
    def update_config(self, settings: FeatureSettings) -> FeatureUpdateReport:
        if not settings.qualified_name:
            raise InvalidParamError('qualified_name is empty')

        request: Dict[str, Any] = {
            'FunctionName': settings.qualified_name,
            'Environment': {'Variables': dict(settings.env_vars)},
        }
        if settings.timeout is not None:
            request['Timeout'] = settings.timeout
        if settings.role:
            request['Role'] = settings.role

        try:
            out = self.api.update_function_configuration(**request)
        except (ClientError, BotoCoreError) as e:
            raise SystemFailureError(f'update_function_configuration failed ({settings.qualified_name}): {e}') from e

        report = FeatureUpdateReport.from_lambda_response(out)
        if report.env_error:
            logger.warning('lambda reported an environment error', extra={
                'function_name': settings.qualified_name,
                'env_error': report.env_error,
            })
        return report
