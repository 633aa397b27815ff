"""
Unit tests for service and feature parameter operations.

The parameter store is replaced with an in-memory implementation so the tests
focus on key qualification, batching and import semantics.
"""

import json
from typing import Annotated

import pytest
from pydantic import BaseModel, Field

from sls.dal import ParamStorage
from sls.handlers.utils.failures import (
    ConflictError,
    InvalidParamError,
    InvalidStateError,
    MultiError,
    NotFoundError,
    SystemFailureError,
    ValidationError,
    is_not_found,
)
from sls.logic import params
from sls.models.configurable import EnvModelConfig
from sls.models.feature import LambdaTrigger
from sls.models.service import MicroService

from tests.fakes import MemoryStore


class NotifyEnvVars(BaseModel):
    TOPIC_ARN: Annotated[str, Field(min_length=1)]
    BATCH_SIZE: Annotated[int, Field(default=10)] = 10


@pytest.fixture
def feature(tmp_path):
    service = MicroService.new(str(tmp_path), "prod", "orders")
    return service.add_feature(LambdaTrigger.SQS, "notify", EnvModelConfig(NotifyEnvVars))


class TestKeys:
    """Test cases for key qualification."""

    def test_memory_store_is_param_storage(self):
        """Test the in-memory store satisfies the storage protocol."""
        assert isinstance(MemoryStore(), ParamStorage)

    @pytest.mark.parametrize("key,expected", [
        ("TABLE_NAME", "/orders/TABLE_NAME"),
        ("/TABLE_NAME", "/orders/TABLE_NAME"),
        ("orders/TABLE_NAME", "/orders/TABLE_NAME"),
        ("/orders/TABLE_NAME", "/orders/TABLE_NAME"),
    ])
    def test_qualify_key(self, key, expected):
        """Test that keys end up under the app title exactly once."""
        assert params.qualify_key(MemoryStore(), "orders", key) == expected

    def test_qualify_key_requires_app_title(self):
        """Test that the app title is required."""
        with pytest.raises(InvalidParamError):
            params.qualify_key(MemoryStore(), "", "TABLE_NAME")

    def test_strip_app_title(self):
        """Test removing the service prefix from keys."""
        assert params.strip_app_title("orders", {"/orders/A": "1", "/orders/B/C": "2"}) == {"A": "1", "B/C": "2"}


class TestReads:
    """Test cases for reading parameters."""

    def test_service_params(self):
        """Test reading every parameter of a service."""
        store = MemoryStore({"/orders/A": "1", "/billing/A": "2"})

        assert params.service_params(store, "orders") == {"/orders/A": "1"}

    def test_feature_params_skip_defaults(self, feature, monkeypatch):
        """Test that only the feature's non default env vars are read."""
        monkeypatch.delenv("BATCH_SIZE", raising=False)
        store = MemoryStore({"/orders/TOPIC_ARN": "arn:topic", "/orders/BATCH_SIZE": "50"})

        assert params.feature_params(store, "orders", feature) == {"/orders/TOPIC_ARN": "arn:topic"}

    def test_feature_params_missing_value(self, feature):
        """Test that a missing parameter keeps its not found kind."""
        with pytest.raises(NotFoundError) as exc_info:
            params.feature_params(MemoryStore(), "orders", feature)

        assert is_not_found(exc_info.value)
        assert "notify" in str(exc_info.value)

    def test_feature_params_without_config(self, feature):
        """Test that unconfigured features are rejected."""
        feature.config = None

        with pytest.raises(InvalidStateError):
            params.feature_params(MemoryStore(), "orders", feature)


class TestWrites:
    """Test cases for writing and deleting parameters."""

    def test_put_param_returns_previous_value(self):
        """Test the backup returned by a write."""
        store = MemoryStore({"/orders/A": "1"})

        assert params.put_param(store, "orders", "A", "2", overwrite=True) == {"/orders/A": "1"}
        assert store.values["/orders/A"] == "2"

    def test_put_param_conflict(self):
        """Test that differing values are not replaced without overwrite."""
        store = MemoryStore({"/orders/A": "1"})

        with pytest.raises(ConflictError, match="put failed"):
            params.put_param(store, "orders", "A", "2")

        assert store.values["/orders/A"] == "1"

    def test_delete_param(self):
        """Test deleting one qualified parameter."""
        store = MemoryStore({"/orders/A": "1"})

        assert params.delete_param(store, "orders", "A") == {"/orders/A": "1"}
        assert store.values == {}

    def test_delete_all_service_params_partial(self):
        """Test that a failing delete does not stop the others."""
        store = MemoryStore({"/orders/A": "1", "/orders/B": "2", "/orders/C": "3"}, failing={"/orders/B"})

        with pytest.raises(MultiError) as exc_info:
            params.delete_all_service_params(store, "orders")

        assert exc_info.value.partial == {"/orders/A": "1", "/orders/C": "3"}
        assert len(exc_info.value) == 1
        assert store.values == {"/orders/B": "2"}

    def test_delete_all_feature_params(self, feature, monkeypatch):
        """Test deleting only the parameters of one feature."""
        monkeypatch.delenv("BATCH_SIZE", raising=False)
        store = MemoryStore({"/orders/TOPIC_ARN": "arn:topic", "/orders/OTHER": "x"})

        assert params.delete_all_feature_params(store, "orders", feature) == {"/orders/TOPIC_ARN": "arn:topic"}
        assert store.values == {"/orders/OTHER": "x"}


class TestImport:
    """Test cases for importing parameters."""

    def test_read_params_from_file(self, tmp_path):
        """Test loading parameters from a JSON file."""
        path = tmp_path / "params.json"
        path.write_text(json.dumps({"A": "1", "B": ""}))

        assert params.read_params_from_file(str(path)) == {"A": "1", "B": ""}

    def test_read_params_from_missing_file(self, tmp_path):
        """Test that unreadable files are system failures."""
        with pytest.raises(SystemFailureError):
            params.read_params_from_file(str(tmp_path / "missing.json"))

    @pytest.mark.parametrize("content", ["not json", "[1, 2]", '{"A": 1}'])
    def test_read_params_from_invalid_file(self, tmp_path, content):
        """Test that files not holding a string map are rejected."""
        path = tmp_path / "params.json"
        path.write_text(content)

        with pytest.raises(ValidationError):
            params.read_params_from_file(str(path))

    def test_read_params_from_service(self, tmp_path, monkeypatch):
        """Test collecting values from the local environment."""
        monkeypatch.setenv("TOPIC_ARN", "arn:topic")
        monkeypatch.setenv("BATCH_SIZE", "25")
        service = MicroService.new(str(tmp_path), "prod", "orders")
        service.add_feature(LambdaTrigger.SQS, "notify", EnvModelConfig(NotifyEnvVars))
        service.add_feature(LambdaTrigger.DIRECT, "replay", EnvModelConfig(NotifyEnvVars))

        assert params.read_params_from_service(service) == {
            "/orders/TOPIC_ARN": "arn:topic",
            "/orders/BATCH_SIZE": "25",
        }

    def test_read_params_from_service_conflict(self, tmp_path, monkeypatch):
        """Test that features disagreeing on a value are a conflict."""

        class ReplayEnvVars(BaseModel):
            TOPIC_ARN: Annotated[str, Field(default="arn:replay")] = "arn:replay"

        monkeypatch.delenv("TOPIC_ARN", raising=False)
        monkeypatch.delenv("BATCH_SIZE", raising=False)
        service = MicroService.new(str(tmp_path), "prod", "orders")
        service.add_feature(LambdaTrigger.SQS, "notify", EnvModelConfig(NotifyEnvVars))
        service.add_feature(LambdaTrigger.DIRECT, "replay", EnvModelConfig(ReplayEnvVars))

        with pytest.raises(ConflictError):
            params.read_params_from_service(service)

    def test_import_params_continues_past_failures(self):
        """Test that an import reports failures and keeps a backup of the rest."""
        store = MemoryStore({"/orders/A": "old", "/orders/B": "keep"}, failing={"/orders/C"})

        backup, errors = params.import_params(store, "orders", {"A": "new", "B": "keep", "C": "3", "D": "4"}, overwrite=False)

        assert backup == {"/orders/B": "keep", "/orders/D": ""}
        assert len(errors) == 2
        assert isinstance(errors[0], ConflictError)
        assert isinstance(errors[1], SystemFailureError)
        assert store.values["/orders/B"] == "keep"

    def test_import_params_overwrite(self):
        """Test that overwrite replaces values and backs up the old ones."""
        store = MemoryStore({"/orders/A": "old"})

        backup, errors = params.import_params(store, "orders", {"A": "new"}, overwrite=True)

        assert backup == {"/orders/A": "old"}
        assert errors == []
        assert store.values["/orders/A"] == "new"
