"""Tests for settings file loading."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest
import yaml

from kvnet.errors import InvalidResourceIdentifier
from kvnet.settings import MAX_SETTINGS_FILE_SIZE_BYTES, SettingsLoadError, load_settings

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"
SUBNET_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/net-rg"
    "/providers/Microsoft.Network/virtualNetworks/kvsample/subnets/subnet-0"
)


def settings_data(**overrides: Any) -> dict[str, Any]:
    data: dict[str, Any] = {
        "tenantId": "00000000-0000-0000-0000-000000000002",
        "subscriptionId": SUBSCRIPTION_ID,
        "vault": {"resourceGroup": "kv-samples", "name": "samplevault"},
        "network": {"subnetResourceId": SUBNET_ID, "ipAddress": "198.51.100.0/24"},
    }
    data.update(overrides)
    return data


def write_settings(tmp_path: Path, data: Any) -> Path:
    path = tmp_path / "sample.yaml"
    path.write_text(yaml.dump(data))
    return path


class TestLoadSettings:
    """Tests for load_settings()."""

    def test_load_valid_settings(self, tmp_path: Path) -> None:
        """Test loading a minimal settings file."""
        path = write_settings(tmp_path, settings_data(timing={"dnsSettleSeconds": 0}))

        with patch.dict(os.environ, {}, clear=True):
            config = load_settings(path)

        assert config.vault_name == "samplevault"
        assert config.vault_resource_group == "kv-samples"
        assert config.ip_address == "198.51.100.0/24"
        assert config.dns_settle_seconds == 0
        assert config.subnet.child_name == "subnet-0"
        assert config.client_secret is None

    def test_secret_comes_from_environment(self, tmp_path: Path) -> None:
        """Test that the client secret is read from AZURE_CLIENT_SECRET."""
        path = write_settings(
            tmp_path, settings_data(clientId="11111111-1111-1111-1111-111111111111")
        )

        with patch.dict(os.environ, {"AZURE_CLIENT_SECRET": "s3cret"}, clear=True):
            config = load_settings(path)

        assert config.uses_client_secret is True

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test that a missing file is reported."""
        with pytest.raises(SettingsLoadError) as exc_info:
            load_settings(tmp_path / "missing.yaml")

        assert "not found" in str(exc_info.value)

    def test_oversized_file(self, tmp_path: Path) -> None:
        """Test that files above the size limit are rejected before parsing."""
        path = tmp_path / "big.yaml"
        path.write_text("#" * (MAX_SETTINGS_FILE_SIZE_BYTES + 1))

        with pytest.raises(SettingsLoadError) as exc_info:
            load_settings(path)

        assert "maximum size" in str(exc_info.value)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        """Test that malformed YAML is reported."""
        path = tmp_path / "bad.yaml"
        path.write_text("vault: [unclosed")

        with pytest.raises(SettingsLoadError) as exc_info:
            load_settings(path)

        assert "Invalid YAML" in str(exc_info.value)

    def test_not_a_mapping(self, tmp_path: Path) -> None:
        """Test that a top-level list is rejected."""
        path = write_settings(tmp_path, ["a", "b"])

        with pytest.raises(SettingsLoadError) as exc_info:
            load_settings(path)

        assert "mapping" in str(exc_info.value)

    def test_unknown_field(self, tmp_path: Path) -> None:
        """Test that unknown fields are rejected."""
        path = write_settings(tmp_path, settings_data(unexpected=True))

        with pytest.raises(SettingsLoadError) as exc_info:
            load_settings(path)

        assert "unexpected" in str(exc_info.value)

    def test_invalid_subnet_id(self, tmp_path: Path) -> None:
        """Test that a malformed subnet id is reported as InvalidResourceIdentifier."""
        path = write_settings(
            tmp_path,
            settings_data(network={"subnetResourceId": "/subscriptions/x/resourceGroups/rg"}),
        )

        with pytest.raises(InvalidResourceIdentifier) as exc_info:
            load_settings(path)

        assert "/subscriptions/x/resourceGroups/rg" in str(exc_info.value)

    def test_cross_field_validation(self, tmp_path: Path) -> None:
        """Test that Config validation failures surface as SettingsLoadError."""
        path = write_settings(tmp_path, settings_data(tenantId="not-a-guid"))

        with patch.dict(os.environ, {}, clear=True):
            with pytest.raises(SettingsLoadError) as exc_info:
                load_settings(path)

        assert "AZURE_TENANT_ID" in str(exc_info.value)
