"""
Unit tests for the domain models.

This module tests resource naming, features, the microservice layout and
filesystem discovery, feature env configuration and deployment reports.
"""

from typing import Annotated

import pytest
from pydantic import BaseModel, Field

from sls.handlers.utils.failures import (
    InvalidParamError,
    NotFoundError,
    SystemFailureError,
    ValidationError,
)
from sls.models.configurable import EnvModelConfig, param_path
from sls.models.feature import Feature, LambdaTrigger, to_lambda_trigger
from sls.models.naming import Prefix, Region, ServiceName, region_code, to_region
from sls.models.output import ErrorResponse, FeatureUpdateReport
from sls.models.service import MicroService


class OrdersEnvVars(BaseModel):
    TABLE_NAME: Annotated[str, Field(min_length=1)]
    PAGE_SIZE: Annotated[int, Field(default=20)] = 20
    TRACING_ENABLED: Annotated[bool, Field(default=False)] = False


class TestNaming:
    """Test cases for region codes, prefixes and service names."""

    @pytest.mark.parametrize("region,code", [
        ("us-east-1", "use1"),
        ("eu-west-3", "euw3"),
        ("ap-southeast-2", "aps2"),
        ("us-gov-east-1", ""),
        ("local", ""),
    ])
    def test_region_code(self, region, code):
        """Test compressing region names."""
        assert region_code(region) == code

    def test_to_region_accepts_name_and_code(self):
        """Test resolving regions from names and codes."""
        assert to_region("us-west-2") is Region.US_WEST_2
        assert to_region("usw2") is Region.US_WEST_2

    def test_to_region_unknown(self):
        """Test that unmapped regions are rejected."""
        with pytest.raises(ValidationError):
            to_region("mars-north-1")

    def test_prefix(self):
        """Test the prefix string and its parts."""
        prefix = Prefix.new("us-east-1", "prod")

        assert str(prefix) == "use1-prod"
        assert prefix.aws_region == "us-east-1"
        assert prefix.region_code == "use1"
        assert prefix.is_valid()
        assert Prefix.default("dev") == Prefix.new("us-east-1", "dev")

    @pytest.mark.parametrize("region,env", [("", "prod"), ("us-east-1", "")])
    def test_prefix_requires_region_and_env(self, region, env):
        """Test that empty inputs are rejected."""
        with pytest.raises(InvalidParamError):
            Prefix.new(region, env)

    def test_prefix_unknown_region_keeps_kind(self):
        """Test that an unknown region stays a validation failure."""
        with pytest.raises(ValidationError, match="to_region failed"):
            Prefix.new("xx-yy-9", "prod")

    def test_service_name(self):
        """Test qualified service names."""
        name = ServiceName.new("eu-west-1", "staging", "orders")

        assert name.qualified_name == "euw1-staging-orders"
        assert name.app_title == "orders"
        assert str(name) == "euw1-staging-orders"


class TestFeature:
    """Test cases for features and triggers."""

    def test_to_lambda_trigger(self):
        """Test parsing trigger names."""
        assert to_lambda_trigger("apigw") is LambdaTrigger.APIGW
        assert to_lambda_trigger(" SQS ") is LambdaTrigger.SQS

    def test_unknown_trigger(self):
        """Test that unsupported triggers are rejected."""
        with pytest.raises(ValidationError):
            to_lambda_trigger("ftp")

    def test_display_name(self):
        """Test the names a feature can be displayed with."""
        feature = Feature(name="create", qualified_name="use1-prod-orders-apigw_create", trigger=LambdaTrigger.APIGW)

        assert feature.display_name() == "create"
        assert feature.display_name(with_trigger=True) == "apigw_create"
        assert feature.display_name(with_trigger=True, qualified=True) == "use1-prod-orders-apigw_create"
        assert feature.code_dir == "apigw/create"
        assert not feature.has_config()


class TestMicroService:
    """Test cases for MicroService."""

    def test_new_requires_root_dir(self):
        """Test that a root directory is required."""
        with pytest.raises(ValidationError):
            MicroService.new("", "prod", "orders")

    def test_new_with_invalid_name(self, tmp_path):
        """Test that naming failures keep their kind."""
        with pytest.raises(InvalidParamError, match="service name is invalid"):
            MicroService.new(str(tmp_path), "", "orders")

    def test_layout(self, tmp_path):
        """Test the directories derived from the root."""
        service = MicroService.new(str(tmp_path), "prod", "orders")

        assert service.layout.lambdas_dir == str(tmp_path / "app" / "lambdas")
        assert service.layout.build_dir == str(tmp_path / "infra" / "build")
        assert service.layout.terraform_dir == str(tmp_path / "infra" / "terraform")
        assert str(service) == "use1-prod-orders"

    def test_add_and_find_feature(self, tmp_path):
        """Test registering features by hand."""
        service = MicroService.new(str(tmp_path), "prod", "orders")
        service.add_feature(LambdaTrigger.SQS, "notify")

        feature = service.feature("notify")

        assert feature.qualified_name == "use1-prod-orders-sqs_notify"
        with pytest.raises(NotFoundError):
            service.feature("missing")

    def test_load_features_from_filesystem(self, service_root):
        """Test discovering features from the lambdas directory."""
        service = MicroService.new(str(service_root), "prod", "orders")

        loaded = service.load_features_from_filesystem()

        assert [f.name_with_trigger for f in loaded] == ["apigw_create", "apigw_list", "sqs_notify"]
        assert [f.name for f in service.sorted_features()] == ["create", "list", "notify"]

    def test_invalid_trigger_directory(self, service_root):
        """Test that unknown trigger directories stop discovery."""
        (service_root / "app" / "lambdas" / "ftp").mkdir()
        service = MicroService.new(str(service_root), "prod", "orders")

        with pytest.raises(ValidationError, match="invalid lambda trigger directory name"):
            service.load_features_from_filesystem()

    def test_missing_lambdas_directory(self, tmp_path):
        """Test that an unreadable layout is a system failure."""
        service = MicroService.new(str(tmp_path), "prod", "orders")

        with pytest.raises(SystemFailureError):
            service.load_features_from_filesystem()

    def test_build_settings(self, service_root):
        """Test build settings derived from the layout."""
        service = MicroService.new(str(service_root), "prod", "orders")
        service.load_features_from_filesystem()

        settings = service.new_build_settings(service.feature("create"))

        assert settings.code_dir == str(service_root / "app" / "lambdas" / "apigw" / "create")
        assert settings.build_dir == str(service_root / "infra" / "build")
        assert settings.bin_name == "bootstrap"
        assert settings.zip_name == "deployment.zip"


class TestEnvModelConfig:
    """Test cases for feature configuration backed by an env model."""

    def test_param_path(self):
        """Test parameter paths of env vars."""
        assert param_path("orders", "TABLE_NAME") == "/orders/TABLE_NAME"
        assert param_path("/orders/", "TABLE_NAME") == "/orders/TABLE_NAME"

    def test_env_to_map_with_defaults(self, monkeypatch):
        """Test that defaults are reported when included."""
        monkeypatch.setenv("TABLE_NAME", "orders-table")
        monkeypatch.delenv("PAGE_SIZE", raising=False)
        monkeypatch.delenv("TRACING_ENABLED", raising=False)
        config = EnvModelConfig(OrdersEnvVars)

        assert config.env_to_map() == {
            "TABLE_NAME": "orders-table",
            "PAGE_SIZE": "20",
            "TRACING_ENABLED": "false",
        }

    def test_excluded_defaults(self, monkeypatch):
        """Test that only overridden defaults are reported when excluded."""
        monkeypatch.setenv("TABLE_NAME", "orders-table")
        monkeypatch.setenv("PAGE_SIZE", "20")
        monkeypatch.setenv("TRACING_ENABLED", "true")
        config = EnvModelConfig(OrdersEnvVars)

        config.set_exclude_defaults(True)

        assert config.is_defaults_excluded()
        assert config.env_names() == ["TABLE_NAME", "TRACING_ENABLED"]
        assert config.collect_params_from_env("orders") == {
            "/orders/TABLE_NAME": "orders-table",
            "/orders/TRACING_ENABLED": "true",
        }

    def test_required_env_unset(self, monkeypatch):
        """Test that unset required env vars are reported empty."""
        monkeypatch.delenv("TABLE_NAME", raising=False)
        config = EnvModelConfig(OrdersEnvVars, exclude_defaults=True)

        assert config.env_to_map() == {"TABLE_NAME": ""}
        assert config.collect_params_from_env("orders") == {"/orders/TABLE_NAME": ""}

    def test_process_env_failure(self, monkeypatch):
        """Test that an invalid environment becomes a validation failure with fields."""

        class StrictEnvVars(BaseModel):
            QUEUE_URL: Annotated[str, Field(min_length=1)]

        monkeypatch.delenv("QUEUE_URL", raising=False)

        with pytest.raises(ValidationError) as exc_info:
            EnvModelConfig(StrictEnvVars).process_env()

        assert "QUEUE_URL" in exc_info.value.fields


class TestOutputModels:
    """Test cases for output models."""

    def test_error_response_skips_missing_fields(self):
        """Test that an error without field details omits them."""
        body = ErrorResponse(message="Not Found", id="req-1", status=404).to_json()

        assert body == '{"message":"Not Found","id":"req-1","status":404}'

    def test_feature_update_report_from_response(self):
        """Test building a report from a Lambda API response."""
        report = FeatureUpdateReport.from_lambda_response({
            "FunctionName": "use1-prod-orders-apigw_create",
            "CodeSha256": "abc=",
            "CodeSize": 1024,
            "Timeout": 30,
            "Environment": {"Variables": {}, "Error": {"ErrorCode": "X", "Message": "too large"}},
            "ResponseMetadata": {"HTTPStatusCode": 200},
        })

        assert report.lambda_name == "use1-prod-orders-apigw_create"
        assert report.code_sha256 == "abc="
        assert report.code_size == 1024
        assert report.timeout == 30
        assert report.env_error == "too large"

    def test_feature_update_report_empty(self):
        """Test that an empty response gives an empty report."""
        assert FeatureUpdateReport.from_lambda_response(None) == FeatureUpdateReport()
