"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
import yaml

from natgw_lifecycle.config import Config, ConfigValidationError, GatewayConfig, WaiterConfig
from natgw_lifecycle.provisioners.models import ConnectivityType

VALID_CONFIG = {
    "project": {"name": "network-core", "region": "us-east-1"},
    "tags": {
        "default": {"Project": "network", "ManagedBy": "natgw"},
        "ignore": {"keys": ["LastScanned"], "key_prefixes": ["kubernetes.io/"]},
    },
    "waiter": {"create_timeout": 300, "interval": 2},
    "max_workers": 8,
    "gateways": {
        "egress-a": {
            "subnet_id": "subnet-0a1b2c3d",
            "allocation_id": "eipalloc-0a1b2c3d",
            "tags": {"Name": "egress-a"},
        },
        "internal-b": {
            "subnet_id": "subnet-0b1b2c3d",
            "connectivity_type": "private",
        },
    },
}


def write_config(tmp_path: Path, data) -> Path:
    path = tmp_path / "natgw.yaml"
    path.write_text(yaml.safe_dump(data))
    return path


def error_locations(exc_info) -> list:
    return [tuple(error["loc"]) for error in exc_info.value.errors]


class TestConfigLoad:
    """Tests for Config.load."""

    def test_valid_config(self, tmp_path: Path) -> None:
        config = Config(str(write_config(tmp_path, VALID_CONFIG))).load()

        assert config.project.name == "network-core"
        assert config.max_workers == 8
        assert config.waiter.create_timeout == 300
        assert config.waiter.delete_timeout == 1800
        assert set(config.gateways) == {"egress-a", "internal-b"}
        assert config.gateways["internal-b"].connectivity_type == ConnectivityType.PRIVATE

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            Config(str(tmp_path / "missing.yaml")).load()

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / "natgw.yaml"
        path.write_text("project: [unclosed")

        with pytest.raises(ConfigValidationError, match="Failed to parse YAML"):
            Config(str(path)).load()

    def test_defaults(self) -> None:
        config = Config("natgw.yaml").load_dict({"project": {"name": "p", "region": "eu-west-1"}})

        assert config.gateways == {}
        assert config.max_workers == 4
        assert config.waiter == WaiterConfig()


class TestConfigValidation:
    """Tests for Config.validate error collection."""

    def test_missing_project(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            Config("natgw.yaml").load_dict({"gateways": {}})

        assert ("project",) in error_locations(exc_info)

    def test_invalid_region(self) -> None:
        with pytest.raises(ConfigValidationError) as exc_info:
            Config("natgw.yaml").load_dict({"project": {"name": "p", "region": "mars"}})

        assert ("project", "region") in error_locations(exc_info)

    def test_errors_are_collected(self) -> None:
        """Test every problem is reported at once."""
        data = {
            "project": {"name": "p", "region": "us-east-1"},
            "max_workers": 0,
            "gateways": {
                "Bad_Name": {"subnet_id": "subnet-1"},
                "no-subnet": {},
                "bad-subnet": {"subnet_id": "sn-1"},
            },
        }

        with pytest.raises(ConfigValidationError) as exc_info:
            Config("natgw.yaml").load_dict(data)

        locations = error_locations(exc_info)
        assert ("max_workers",) in locations
        assert ("gateways", "Bad_Name") in locations
        assert ("gateways", "no-subnet", "subnet_id") in locations
        assert ("gateways", "bad-subnet", "subnet_id") in locations
        assert "bad-subnet" in str(exc_info.value)

    def test_private_gateway_with_allocation(self) -> None:
        data = {
            "project": {"name": "p", "region": "us-east-1"},
            "gateways": {
                "internal": {
                    "subnet_id": "subnet-1",
                    "connectivity_type": "private",
                    "allocation_id": "eipalloc-1",
                }
            },
        }

        with pytest.raises(ConfigValidationError, match="private NAT gateways"):
            Config("natgw.yaml").load_dict(data)

    def test_reserved_tag_prefix(self) -> None:
        data = {
            "project": {"name": "p", "region": "us-east-1"},
            "gateways": {"egress": {"subnet_id": "subnet-1", "tags": {"aws:owner": "x"}}},
        }

        with pytest.raises(ConfigValidationError, match="reserved"):
            Config("natgw.yaml").load_dict(data)

    def test_too_many_tags_after_merge(self) -> None:
        """Test the tag limit applies to defaults and resource tags together."""
        data = {
            "project": {"name": "p", "region": "us-east-1"},
            "tags": {"default": {f"default{i}": "v" for i in range(30)}},
            "gateways": {"egress": {"subnet_id": "subnet-1", "tags": {f"own{i}": "v" for i in range(21)}}},
        }

        with pytest.raises(ConfigValidationError) as exc_info:
            Config("natgw.yaml").load_dict(data)

        assert error_locations(exc_info) == [("gateways", "egress", "tags")]

    def test_waiter_interval_bounds(self) -> None:
        data = {
            "project": {"name": "p", "region": "us-east-1"},
            "waiter": {"interval": 60, "max_interval": 10},
        }

        with pytest.raises(ConfigValidationError, match="max_interval"):
            Config("natgw.yaml").load_dict(data)

    def test_not_a_mapping(self) -> None:
        with pytest.raises(ConfigValidationError, match="mapping"):
            Config("natgw.yaml").load_dict(["project"])


class TestConfigAccessors:
    """Tests for gateway selection and model conversion."""

    @pytest.fixture
    def config(self) -> Config:
        return Config("natgw.yaml").load_dict(VALID_CONFIG)

    def test_get_gateways(self, config: Config) -> None:
        assert set(config.get_gateways()) == {"egress-a", "internal-b"}
        assert set(config.get_gateways(["egress-a"])) == {"egress-a"}

    def test_get_unknown_gateway(self, config: Config) -> None:
        with pytest.raises(ConfigValidationError, match="not defined: egress-z"):
            config.get_gateways(["egress-z"])

    def test_to_descriptor(self, config: Config) -> None:
        descriptor = config.gateways["egress-a"].to_descriptor()

        assert descriptor.subnet_id == "subnet-0a1b2c3d"
        assert descriptor.allocation_id == "eipalloc-0a1b2c3d"
        assert descriptor.connectivity_type == ConnectivityType.PUBLIC
        assert descriptor.tags == {"Name": "egress-a"}

    def test_tag_manager(self, config: Config) -> None:
        manager = config.tags.tag_manager()

        assert manager.desired_tags_all({"Name": "a"}) == {"Project": "network", "ManagedBy": "natgw", "Name": "a"}
        assert manager.observed_tags_all({"LastScanned": "x", "kubernetes.io/role": "y"}) == {}

    def test_poll_policies(self, config: Config) -> None:
        create_policy = config.waiter.create_policy()
        delete_policy = config.waiter.delete_policy()

        assert create_policy.timeout == 300
        assert create_policy.interval == 2
        assert delete_policy.timeout == 1800
        assert delete_policy.classifier.absent_is_success
        assert not create_policy.classifier.absent_is_success

    def test_gateway_config_defaults(self) -> None:
        gateway = GatewayConfig(subnet_id="subnet-1")

        assert gateway.connectivity_type == ConnectivityType.PUBLIC
        assert gateway.allocation_id is None
