"""End-to-end tests for the provisioning pipeline against a fake host."""

import json
import tempfile
from unittest.mock import patch

import click
import httpx
import pytest
from click.testing import CliRunner

from pisurveillance.errors import (
    DeviceNotFoundError,
    InstallError,
    OperatorInputError,
    ResourceError,
    StartupError,
)
from pisurveillance.provisioning.operator import ClickOperator
from pisurveillance.provisioning.pipeline import ProvisioningPipeline

ALL_STAGES = [
    "preflight",
    "camera",
    "dependencies",
    "storage",
    "service",
    "remote_access",
    "hardening",
    "summary",
]


@pytest.fixture(autouse=True)
def scratch_dir(tmp_path, monkeypatch):
    """Create workspaces under tmp_path so their removal can be checked."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


@pytest.fixture
def sshd_config(path_resolver):
    path = path_resolver.get_sshd_config_path()
    path.parent.mkdir(parents=True)
    path.write_text("#PasswordAuthentication yes\n")
    return path


class TestProvisioningPipeline:
    """Test whole-pipeline behaviour."""

    def test_fresh_host_completes(self, config, host, sshd_config, scratch_dir):
        """Should run every stage, exit 0 and report one local web address."""
        report = ProvisioningPipeline(config, host).run()

        assert report.exit_code == 0
        assert [r.stage for r in report.results] == ALL_STAGES
        assert all(r.ok for r in report.results)
        assert report.summary.web_url == "http://192.168.1.50:8080"
        assert list(scratch_dir.iterdir()) == []

    def test_low_disk_halts_after_preflight(self, config, host, runner, scratch_dir):
        """Should stop with ResourceError before any change is made."""
        host.inspector.check_disk_space.side_effect = lambda path, minimum: (
            500_000 >= minimum,
            f"Low disk space: 500000 KB free, below {minimum} KB minimum.",
        )

        report = ProvisioningPipeline(config, host).run()

        assert report.exit_code == 1
        assert report.failed_stage == "preflight"
        assert isinstance(report.results[-1].error, ResourceError)
        assert runner.calls == []
        host.packages.install.assert_not_called()
        host.services.enable_service.assert_not_called()
        assert list(scratch_dir.iterdir()) == []

    def test_missing_camera_halts_after_verification(self, config, host, runner):
        """Should stop with DeviceNotFoundError before installing anything."""
        runner.respond("lsusb", stdout="Bus 001 Device 002: ID 0bda:8153 Realtek USB Ethernet\n")

        report = ProvisioningPipeline(config, host).run()

        assert report.exit_code == 1
        assert [r.stage for r in report.results] == ["preflight", "camera"]
        assert isinstance(report.results[-1].error, DeviceNotFoundError)
        host.packages.refresh_index.assert_not_called()
        assert report.summary is None

    def test_startup_failure_removes_workspace(self, config, host, scratch_dir):
        """Should halt on StartupError and still remove the workspace."""
        host.services.get_service_status.return_value = "failed"

        report = ProvisioningPipeline(config, host).run()

        assert report.failed_stage == "service"
        assert isinstance(report.results[-1].error, StartupError)
        assert list(scratch_dir.iterdir()) == []

    def test_remote_access_failure_is_soft(self, config_factory, host, sshd_config):
        """Should warn about remote access and still finish with exit 0."""
        config = config_factory(remote_access={"method": "tailscale"})
        host.http_client = lambda: httpx.Client(
            transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )

        report = ProvisioningPipeline(config, host).run()

        assert report.exit_code == 0
        assert [r.stage for r in report.warnings] == ["remote_access"]
        assert report.results[-1].stage == "summary"
        assert report.summary.remote_web_url is None

    def test_tunnel_waits_for_token(self, config_factory, host, runner, operator, sshd_config):
        """Should keep asking until a non-empty token is supplied."""
        config = config_factory(
            remote_access={"method": None, "tunnel_hostname": "cam.example.com"}
        )
        operator.choices.append("2")
        operator.secrets.extend(["", "", "tok123"])
        runner.binaries.add("cloudflared")
        runner.respond(
            "cloudflared",
            "tunnel",
            "list",
            stdout=json.dumps([{"id": "6ff42ae2-765d-4adf-8112-31c55c1551ef", "name": "pi-surveillance"}]),
        )

        report = ProvisioningPipeline(config, host).run()

        assert report.exit_code == 0
        assert len(operator.secrets) == 0
        service_installs = [c for c in runner.calls if c[:3] == ["cloudflared", "service", "install"]]
        assert service_installs == [["cloudflared", "service", "install", "tok123"]]
        assert report.summary.remote_web_url == "https://cam.example.com"

    def test_unattended_tunnel_is_soft(self, config_factory, host, runner, sshd_config):
        """Should skip a configured tunnel without an operator and still harden the host."""
        config = config_factory(remote_access={"method": "cloudflared"})
        host.operator = ClickOperator()

        with CliRunner().isolation(input=""):
            report = ProvisioningPipeline(config, host).run()

        assert report.exit_code == 0
        assert [r.stage for r in report.warnings] == ["remote_access"]
        assert isinstance(report.warnings[0].error, InstallError)
        hardening = next(r for r in report.results if r.stage == "hardening")
        assert hardening.ok
        assert runner.ran("ufw", "--force", "enable")
        assert report.summary is not None

    def test_closed_input_during_prompt_is_soft(self, config_factory, host, runner, sshd_config):
        """Should treat a prompt reaching end of input as a remote-access warning."""
        config = config_factory(remote_access={"method": "cloudflared"})
        host.operator = ClickOperator()
        runner.binaries.add("cloudflared")

        with (
            patch.object(ClickOperator, "is_attended", return_value=True),
            patch("pisurveillance.provisioning.operator.click.prompt", side_effect=click.Abort()),
        ):
            report = ProvisioningPipeline(config, host).run()

        assert report.exit_code == 0
        assert isinstance(report.warnings[0].error, OperatorInputError)
        assert runner.ran("ufw", "--force", "enable")
        assert report.results[-1].stage == "summary"

    def test_rerun_is_idempotent(self, config_factory, host, runner, path_resolver, sshd_config):
        """Should not duplicate mounts, declarations or installs on a provisioned host."""
        config = config_factory(storage={"mode": "ephemeral"})
        fstab = path_resolver.get_fstab_path()
        fstab.parent.mkdir(parents=True, exist_ok=True)
        fstab.write_text("proc /proc proc defaults 0 0\n")

        assert ProvisioningPipeline(config, host).run().exit_code == 0

        # The first run left packages installed, the unit declared and tmpfs mounted
        host.packages.reset_mock()
        host.packages.is_installed.return_value = True
        host.services.declare_service.return_value = False
        host.inspector.is_mount_point.return_value = True
        mounts_before = runner.count("mount")

        report = ProvisioningPipeline(config, host).run()

        assert report.exit_code == 0
        assert sum(line.startswith("tmpfs") for line in fstab.read_text().splitlines()) == 1
        assert runner.count("mount") == mounts_before
        host.packages.refresh_index.assert_not_called()
        host.packages.install.assert_not_called()
        host.services.daemon_reload.assert_called_once()
        host.services.reload_service.assert_called_once_with("ssh")
