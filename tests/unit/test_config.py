"""
Unit tests for environment-driven configuration.
"""

import pytest

from dbaas.bottomless.config import (
    BottomlessConfig,
    ObservabilityConfig,
    ReplicatorConfig,
    S3Config,
)

ENV_VARS = [
    "LIBSQL_BOTTOMLESS_ENDPOINT",
    "LIBSQL_BOTTOMLESS_BUCKET",
    "LIBSQL_BOTTOMLESS_PAGE_SIZE",
    "LIBSQL_BOTTOMLESS_LIST_PAGE_SIZE",
    "AWS_REGION",
    "AWS_DEFAULT_REGION",
    "AWS_ACCESS_KEY_ID",
    "AWS_SECRET_ACCESS_KEY",
    "LOG_LEVEL",
    "LOG_FORMAT",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


class TestFromEnv:
    """Tests for BottomlessConfig.from_env."""

    def test_defaults(self):
        config = BottomlessConfig.from_env()

        assert config.s3.endpoint_url == "http://localhost:9000"
        assert config.s3.bucket == "bottomless"
        assert config.s3.region == "us-east-1"
        assert config.s3.access_key_id is None
        assert config.replicator.page_size == 4096
        assert config.replicator.list_page_size == 1000
        assert config.observability.log_format == "text"

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("LIBSQL_BOTTOMLESS_ENDPOINT", "http://minio:9000")
        monkeypatch.setenv("LIBSQL_BOTTOMLESS_BUCKET", "backups")
        monkeypatch.setenv("AWS_REGION", "eu-west-1")
        monkeypatch.setenv("AWS_ACCESS_KEY_ID", "key")
        monkeypatch.setenv("AWS_SECRET_ACCESS_KEY", "secret")
        monkeypatch.setenv("LIBSQL_BOTTOMLESS_LIST_PAGE_SIZE", "50")
        monkeypatch.setenv("LOG_FORMAT", "json")

        config = BottomlessConfig.from_env()

        assert config.s3.endpoint_url == "http://minio:9000"
        assert config.s3.bucket == "backups"
        assert config.s3.region == "eu-west-1"
        assert config.s3.access_key_id == "key"
        assert config.s3.secret_access_key == "secret"
        assert config.replicator.list_page_size == 50
        assert config.observability.log_format == "json"

    def test_empty_endpoint_means_aws(self, monkeypatch):
        monkeypatch.setenv("LIBSQL_BOTTOMLESS_ENDPOINT", "")

        assert BottomlessConfig.from_env().s3.endpoint_url is None

    def test_unsupported_page_size(self, monkeypatch):
        monkeypatch.setenv("LIBSQL_BOTTOMLESS_PAGE_SIZE", "8192")

        with pytest.raises(ValueError, match="page size"):
            BottomlessConfig.from_env()

    def test_invalid_log_format(self, monkeypatch):
        monkeypatch.setenv("LOG_FORMAT", "xml")

        with pytest.raises(ValueError, match="LOG_FORMAT"):
            BottomlessConfig.from_env()


class TestValidate:
    def test_empty_bucket(self):
        config = BottomlessConfig(s3=S3Config(bucket=""))

        with pytest.raises(ValueError):
            config.validate()

    def test_non_positive_list_page_size(self):
        config = BottomlessConfig(replicator=ReplicatorConfig(list_page_size=0))

        with pytest.raises(ValueError):
            config.validate()

    def test_valid(self):
        BottomlessConfig(observability=ObservabilityConfig(log_format="json")).validate()

    def test_log_config_redacts_secrets(self, caplog):
        config = BottomlessConfig(
            s3=S3Config(access_key_id="AKIA-visible", secret_access_key="very-secret")
        )

        with caplog.at_level("INFO"):
            config.log_config()

        record = caplog.records[-1]
        assert record.credentials == "explicit"
        assert "very-secret" not in str(record.__dict__)
