"""Tests for AWS client construction."""

from pathlib import Path

import pytest

from natgw_lifecycle.utils.aws_client import AWSClientManager
from natgw_lifecycle.utils.errors import ConfigurationError


@pytest.fixture(autouse=True)
def isolated_aws_config(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setenv("AWS_CONFIG_FILE", str(tmp_path / "config"))
    monkeypatch.setenv("AWS_SHARED_CREDENTIALS_FILE", str(tmp_path / "credentials"))
    for name in ("AWS_PROFILE", "AWS_DEFAULT_PROFILE", "AWS_REGION", "AWS_DEFAULT_REGION"):
        monkeypatch.delenv(name, raising=False)


class TestAWSClientManager:
    """Tests for AWSClientManager."""

    def test_client_is_cached(self) -> None:
        manager = AWSClientManager(region="us-east-1")

        client = manager.get_client("ec2")

        assert manager.get_client("ec2") is client
        assert client.meta.region_name == "us-east-1"

    def test_adaptive_retries(self) -> None:
        client = AWSClientManager(region="eu-west-1", max_attempts=3).get_client("ec2")

        assert client.meta.config.retries["mode"] == "adaptive"

    def test_missing_region(self) -> None:
        with pytest.raises(ConfigurationError, match="No AWS region configured"):
            AWSClientManager().get_client("ec2")

    def test_missing_profile(self) -> None:
        with pytest.raises(ConfigurationError, match="AWS profile not found: nowhere"):
            AWSClientManager(profile="nowhere", region="us-east-1").get_client("ec2")
