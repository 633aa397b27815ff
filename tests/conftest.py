"""
Pytest configuration and shared fixtures for the serverless toolkit.

This module provides common test fixtures used across unit and integration
tests: Lambda contexts, trigger events, a service laid out on disk and a
mocked SSM backend.
"""

import os
from typing import Any, Dict, Generator
from unittest.mock import Mock

import boto3
import pytest
from aws_lambda_powertools.utilities.typing import LambdaContext
from moto import mock_aws


@pytest.fixture(scope="session", autouse=True)
def test_environment():
    """Set up test environment variables."""
    os.environ.update({
        "AWS_DEFAULT_REGION": "us-east-1",
        "AWS_REGION": "us-east-1",
        "AWS_ACCESS_KEY_ID": "test",
        "AWS_SECRET_ACCESS_KEY": "test",
        "POWERTOOLS_SERVICE_NAME": "test-sls-toolkit",
        "POWERTOOLS_METRICS_NAMESPACE": "TestSlsToolkit",
        "POWERTOOLS_TRACE_DISABLED": "true",  # Disable X-Ray in tests
        "LOG_LEVEL": "DEBUG",
        "LAMBDA_ENV_MODELER_DISABLE_CACHE": "true",
    })
    os.environ.pop("_X_AMZN_TRACE_ID", None)


@pytest.fixture
def lambda_context():
    """Mock Lambda context with a generous remaining time."""
    context = Mock(spec=LambdaContext)
    context.function_name = "use1-test-orders-apigw_create"
    context.function_version = "$LATEST"
    context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:use1-test-orders-apigw_create"
    context.memory_limit_in_mb = 128
    context.aws_request_id = "test-request-id"
    context.get_remaining_time_in_millis.return_value = 30000
    return context


@pytest.fixture
def context_factory():
    """Build Lambda contexts with a chosen remaining time."""
    def make_context(remaining_ms: Any) -> Mock:
        context = Mock(spec=LambdaContext)
        context.function_name = "test-function"
        context.function_version = "$LATEST"
        context.invoked_function_arn = "arn:aws:lambda:us-east-1:123456789012:function:test-function"
        context.aws_request_id = "short-request-id"
        context.get_remaining_time_in_millis.return_value = remaining_ms
        return context

    return make_context


@pytest.fixture
def api_gateway_event() -> Dict[str, Any]:
    """API Gateway proxy event for ``POST /orders``."""
    return {
        "resource": "/orders",
        "path": "/orders",
        "httpMethod": "POST",
        "headers": {
            "Content-Type": "application/json",
            "X-Client-Name": "web",
            "X-Client-Version": "1.2.0",
        },
        "multiValueHeaders": {},
        "queryStringParameters": None,
        "multiValueQueryStringParameters": None,
        "pathParameters": None,
        "stageVariables": None,
        "requestContext": {
            "resourceId": "abc123",
            "resourcePath": "/orders",
            "httpMethod": "POST",
            "requestId": "apigw-request-id",
            "path": "/test/orders",
            "accountId": "123456789012",
            "stage": "test",
            "identity": {
                "sourceIp": "127.0.0.1",
                "userAgent": "pytest",
                "userArn": None,
            },
            "authorizer": {
                "claims": {
                    "sub": "user-123",
                    "cognito:groups": "admin,editor",
                },
            },
        },
        "body": '{"item": "book"}',
        "isBase64Encoded": False,
    }


@pytest.fixture
def pre_signup_event() -> Dict[str, Any]:
    """Cognito user pool pre sign-up trigger event."""
    return {
        "version": "1",
        "region": "us-east-1",
        "userPoolId": "us-east-1_example",
        "userName": "jane",
        "callerContext": {
            "awsSdkVersion": "aws-sdk-unknown-unknown",
            "clientId": "client-id",
        },
        "triggerSource": "PreSignUp_SignUp",
        "request": {
            "userAttributes": {"email": "jane@example.com"},
            "validationData": None,
            "clientMetadata": {"origin": "web"},
        },
        "response": {
            "autoConfirmUser": False,
            "autoVerifyEmail": False,
            "autoVerifyPhone": False,
        },
    }


@pytest.fixture
def service_root(tmp_path):
    """
    Service repository with three features on disk.

    ``apigw/create`` and ``apigw/list`` and ``sqs/notify`` have a ``main.go``;
    ``apigw/docs`` has none and is not a feature.
    """
    lambdas = tmp_path / "orders" / "app" / "lambdas"
    for trigger, name in (("apigw", "create"), ("apigw", "list"), ("sqs", "notify")):
        feature_dir = lambdas / trigger / name
        feature_dir.mkdir(parents=True)
        (feature_dir / "main.go").write_text("package main\n")
    (lambdas / "apigw" / "docs").mkdir()
    (tmp_path / "orders" / "infra" / "build").mkdir(parents=True)
    return tmp_path / "orders"


@pytest.fixture
def ssm_client() -> Generator[Any, None, None]:
    """SSM client backed by moto."""
    with mock_aws():
        yield boto3.client("ssm", region_name="us-east-1")
