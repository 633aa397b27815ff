"""
Output models for adapter responses and deployment reports using Pydantic.

This module defines the models used for structuring what the toolkit hands
back to callers: the JSON body of a failed API Gateway request and the report
produced after updating a Lambda function.
"""

from typing import Annotated, Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ErrorResponse(BaseModel):
    """JSON body returned to API Gateway when a feature fails."""

    message: Annotated[str, Field(
        description='HTTP reason phrase, or the message the failure chose to expose',
        examples=['Not Found']
    )]

    fields: Annotated[Optional[Dict[str, str]], Field(
        default=None,
        description='Per field validation messages'
    )] = None

    id: Annotated[str, Field(
        description='Request id used to find request details in the logs',
        examples=['c6af9ac6-7b61-11e6-9a41-93e8deadbeef']
    )]

    status: Annotated[int, Field(
        description='HTTP status code of the response',
        examples=[404]
    )]

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)


class FeatureUpdateReport(BaseModel):
    """Summary of a Lambda function after a code or configuration update."""

    model_config = ConfigDict(populate_by_name=True)

    code_sha256: Annotated[str, Field(default='', alias='CodeSha256')] = ''
    code_size: Annotated[int, Field(default=0, alias='CodeSize')] = 0
    description: Annotated[str, Field(default='', alias='Description')] = ''
    env_error: Annotated[Optional[str], Field(
        default=None,
        description='Error reported by Lambda while applying environment variables'
    )] = None
    lambda_arn: Annotated[str, Field(default='', alias='FunctionArn')] = ''
    lambda_name: Annotated[str, Field(default='', alias='FunctionName')] = ''
    last_modified: Annotated[str, Field(default='', alias='LastModified')] = ''
    last_update_status: Annotated[str, Field(default='', alias='LastUpdateStatus')] = ''
    last_update_reason: Annotated[str, Field(default='', alias='LastUpdateStatusReason')] = ''
    last_update_reason_code: Annotated[str, Field(default='', alias='LastUpdateStatusReasonCode')] = ''
    package_type: Annotated[str, Field(default='', alias='PackageType')] = ''
    revision_id: Annotated[str, Field(default='', alias='RevisionId')] = ''
    role: Annotated[str, Field(default='', alias='Role')] = ''
    state: Annotated[str, Field(default='', alias='State')] = ''
    state_reason: Annotated[str, Field(default='', alias='StateReason')] = ''
    state_reason_code: Annotated[str, Field(default='', alias='StateReasonCode')] = ''
    timeout: Annotated[int, Field(default=0, alias='Timeout')] = 0
    version: Annotated[str, Field(default='', alias='Version')] = ''

    @classmethod
    def from_lambda_response(cls, response: Optional[Dict[str, Any]]) -> 'FeatureUpdateReport':
        """
        Build a report from an UpdateFunctionCode or UpdateFunctionConfiguration response.

        Unknown keys such as ``ResponseMetadata`` are ignored. An environment error
        returned by Lambda is surfaced as ``env_error`` rather than raised.
        """
        if not response:
            return cls()

        known = {
            field.alias: response[field.alias]
            for field in cls.model_fields.values()
            if field.alias and response.get(field.alias) is not None
        }
        report = cls.model_validate(known)

        env_error = (response.get('Environment') or {}).get('Error') or {}
        if env_error.get('Message'):
            report.env_error = env_error['Message']

        return report
