"""Tests for the kvnet command line interface."""

from __future__ import annotations

import os
from pathlib import Path
from unittest import mock

import yaml
from click.testing import CliRunner

from kvnet.cli import cli

SUBSCRIPTION_ID = "00000000-0000-0000-0000-000000000001"
SUBNET_ID = (
    f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/net-rg"
    "/providers/Microsoft.Network/virtualNetworks/kvsample/subnets/subnet-0"
)


class TestParseIdCommand:
    """Tests for 'kvnet parse-id'."""

    def test_subnet_id(self) -> None:
        """Test that the coordinates of a subnet id are shown."""
        result = CliRunner().invoke(cli, ["parse-id", SUBNET_ID])

        assert result.exit_code == 0
        assert "net-rg" in result.output
        assert "subnet-0" in result.output
        assert "VNet or subnet: yes" in result.output

    def test_non_network_id(self) -> None:
        """Test that other resource types parse but are flagged."""
        vault_id = f"/subscriptions/{SUBSCRIPTION_ID}/resourceGroups/rg/providers/Microsoft.KeyVault/vaults/kv"

        result = CliRunner().invoke(cli, ["parse-id", vault_id])

        assert result.exit_code == 0
        assert "VNet or subnet: no" in result.output

    def test_invalid_id(self) -> None:
        """Test that an invalid id is reported as a CLI error."""
        result = CliRunner().invoke(cli, ["parse-id", "/subscriptions/x"])

        assert result.exit_code != 0
        assert "not valid" in result.output


class TestInfoCommand:
    """Tests for 'kvnet info'."""

    def test_info_from_environment(self) -> None:
        """Test that the effective configuration is shown without secrets."""
        env = {
            "AZURE_TENANT_ID": "00000000-0000-0000-0000-000000000002",
            "AZURE_SUBSCRIPTION_ID": SUBSCRIPTION_ID,
            "AZURE_CLIENT_ID": "11111111-1111-1111-1111-111111111111",
            "AZURE_CLIENT_SECRET": "s3cret",
            "VAULT_RESOURCE_GROUP": "kv-samples",
            "VNET_SUBNET_RESOURCE_ID": SUBNET_ID,
        }
        with mock.patch.dict(os.environ, env, clear=True):
            result = CliRunner().invoke(cli, ["info"])

        assert result.exit_code == 0
        assert "kv-samples/keyvaultsample" in result.output
        assert "net-rg/kvsample" in result.output
        assert "application secret" in result.output
        assert "s3cret" not in result.output

    def test_info_invalid_configuration(self) -> None:
        """Test that configuration errors are reported."""
        with mock.patch.dict(os.environ, {}, clear=True):
            result = CliRunner().invoke(cli, ["info"])

        assert result.exit_code != 0
        assert "Configuration validation failed" in result.output


class TestRunCommand:
    """Tests for 'kvnet run'."""

    def test_run_passes_exit_code(self) -> None:
        """Test that the workflow exit code becomes the process exit code."""

        async def fake_main(settings_file: object = None, ip_address: object = None) -> int:
            return 2

        with (
            mock.patch.dict(os.environ, {}, clear=True),
            mock.patch("kvnet.cli.run_main", side_effect=fake_main) as run_main,
        ):
            result = CliRunner().invoke(cli, ["run"])

        assert result.exit_code == 2
        run_main.assert_called_once_with(None, ip_address=None)

    def test_run_ip_address_override(self) -> None:
        """Test that --ip-address is handed to main() without touching the environment."""

        async def fake_main(settings_file: object = None, ip_address: object = None) -> int:
            return 0

        with (
            mock.patch.dict(os.environ, {}, clear=True),
            mock.patch("kvnet.cli.run_main", side_effect=fake_main) as run_main,
        ):
            result = CliRunner().invoke(cli, ["run", "--ip-address", "198.51.100.0/24"])
            assert "ACL_IP_ADDRESS" not in os.environ

        assert result.exit_code == 0
        run_main.assert_called_once_with(None, ip_address="198.51.100.0/24")

    def test_run_ip_address_overrides_settings_file(self, tmp_path: Path) -> None:
        """Test that --ip-address wins over the IP rule of a settings file."""
        path = tmp_path / "sample.yaml"
        path.write_text(
            yaml.dump(
                {
                    "tenantId": "00000000-0000-0000-0000-000000000002",
                    "subscriptionId": SUBSCRIPTION_ID,
                    "vault": {"resourceGroup": "kv-samples"},
                    "network": {"subnetResourceId": SUBNET_ID, "ipAddress": "203.0.113.10"},
                }
            )
        )

        with (
            mock.patch.dict(os.environ, {}, clear=True),
            mock.patch("kvnet.main.setup_logging"),
            mock.patch("kvnet.main.run_workflow", new_callable=mock.AsyncMock) as run_workflow,
        ):
            run_workflow.return_value = 0
            result = CliRunner().invoke(
                cli, ["run", "--settings", str(path), "--ip-address", "198.51.100.0/24"]
            )

        assert result.exit_code == 0
        config = run_workflow.call_args.args[0]
        assert config.ip_address == "198.51.100.0/24"
        assert config.vault_resource_group == "kv-samples"

    def test_run_invalid_ip_address(self) -> None:
        """Test that an invalid --ip-address is a configuration error."""
        env = {
            "AZURE_TENANT_ID": "00000000-0000-0000-0000-000000000002",
            "AZURE_SUBSCRIPTION_ID": SUBSCRIPTION_ID,
            "VAULT_RESOURCE_GROUP": "kv-samples",
            "VNET_SUBNET_RESOURCE_ID": SUBNET_ID,
        }
        with (
            mock.patch.dict(os.environ, env, clear=True),
            mock.patch("kvnet.main.setup_logging"),
            mock.patch("kvnet.main.run_workflow", new_callable=mock.AsyncMock) as run_workflow,
        ):
            result = CliRunner().invoke(cli, ["run", "--ip-address", "not-an-address"])

        assert result.exit_code == 1
        run_workflow.assert_not_called()
