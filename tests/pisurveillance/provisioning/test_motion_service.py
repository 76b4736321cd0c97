"""Tests for daemon configuration and supervised startup."""

import pytest

from pisurveillance.errors import CommandError, StartupError
from pisurveillance.provisioning.motion_service import (
    build_declaration,
    configure_service,
    render_daemon_config,
    wait_until_active,
)


@pytest.fixture
def motioneye_config(config_factory):
    return config_factory(daemon={"web_layer": "motioneye", "web_port": 8765})


class TestRenderDaemonConfig:
    """Test motion.conf and motioneye.conf rendering."""

    def test_renders_motion_conf(self, config, host, path_resolver):
        """Should template camera, detection, storage and port settings."""
        path = render_daemon_config(config, host)

        content = path.read_text()
        assert path == path_resolver.get_motion_config_path()
        assert "videodevice /dev/video0" in content
        assert "width 640" in content
        assert "threshold 1500" in content
        assert f"target_dir {config.storage.path}" in content
        assert "stream_port 8081" in content
        assert "webcontrol_port 8080" in content
        assert "daemon off" in content

    def test_backs_up_differing_config(self, config, host, path_resolver):
        """Should keep the operator's previous motion.conf as a backup."""
        conf = path_resolver.get_motion_config_path()
        conf.parent.mkdir(parents=True)
        conf.write_text("# packaged default\n")

        render_daemon_config(config, host)

        assert (conf.parent / "motion.conf.backup").read_text() == "# packaged default\n"

    def test_unchanged_config_is_not_rewritten(self, config, host, path_resolver):
        """Should neither back up nor rewrite an identical file."""
        render_daemon_config(config, host)
        render_daemon_config(config, host)

        assert not (path_resolver.get_motion_config_path().parent / "motion.conf.backup").exists()

    def test_renders_motioneye_conf(self, motioneye_config, host, path_resolver):
        """Should configure motionEye's port and media path."""
        path = render_daemon_config(motioneye_config, host)

        content = path.read_text()
        assert path == path_resolver.get_motioneye_config_path()
        assert "port 8765" in content
        assert f"media_path {motioneye_config.storage.path}" in content


class TestBuildDeclaration:
    """Test supervision declarations per variant."""

    def test_motion_gets_drop_in(self, config, host):
        """Should only override supervision policy for the packaged motion unit."""
        declaration = build_declaration(config, host)

        assert declaration.name == "motion"
        assert declaration.drop_in is True
        assert declaration.restart_sec == 5

    def test_motioneye_gets_full_unit(self, motioneye_config, host, runner):
        """Should declare a complete unit running meyectl."""
        runner.binaries.add("meyectl")

        declaration = build_declaration(motioneye_config, host)

        assert declaration.name == "motioneye"
        assert declaration.drop_in is False
        assert declaration.exec_start.startswith("/usr/bin/meyectl startserver -c ")


class TestWaitUntilActive:
    """Test startup polling."""

    def test_returns_immediately_when_active(self, host, clock):
        """Should not sleep when the unit is already active."""
        assert wait_until_active("motion", 15.0, 1.0, host) is True
        assert clock.sleeps == []

    def test_returns_as_soon_as_active(self, host, clock):
        """Should stop polling on the first active status."""
        host.services.get_service_status.side_effect = ["activating", "activating", "active"]

        assert wait_until_active("motion", 15.0, 1.0, host) is True
        assert clock.sleeps == [1.0, 1.0]

    def test_times_out(self, host, clock):
        """Should give up once the timeout has elapsed."""
        host.services.get_service_status.return_value = "failed"

        assert wait_until_active("motion", 3.0, 1.0, host) is False
        assert clock.now == pytest.approx(3.0)


class TestConfigureService:
    """Test the service stage."""

    def test_starts_motion(self, config, host):
        """Should declare, enable and restart the motion unit."""
        unit = configure_service(config, host)

        assert unit == "motion"
        host.services.daemon_reload.assert_called_once()
        host.services.enable_service.assert_called_once_with("motion")
        host.services.restart_service.assert_called_once_with("motion")
        host.services.stop_service.assert_not_called()

    def test_skips_daemon_reload_when_declaration_exists(self, config, host):
        """Should not reload systemd when nothing was declared."""
        host.services.declare_service.return_value = False

        configure_service(config, host)

        host.services.daemon_reload.assert_not_called()

    def test_stops_instance_holding_port(self, config, host):
        """Should stop a running instance bound to the web port before restarting."""
        host.inspector.is_port_in_use.return_value = True

        configure_service(config, host)

        host.services.stop_service.assert_called_once_with("motion")
        host.inspector.is_port_in_use.assert_called_once_with(8080)

    def test_startup_timeout(self, config, host):
        """Should raise StartupError pointing at the journal."""
        host.services.get_service_status.return_value = "failed"

        with pytest.raises(StartupError) as exc_info:
            configure_service(config, host)

        assert "journalctl -u motion" in exc_info.value.hint

    def test_start_failure(self, config, host):
        """Should wrap systemctl failures in StartupError."""
        host.services.restart_service.side_effect = CommandError(
            ["systemctl", "restart", "motion"], 1, "Job for motion.service failed."
        )

        with pytest.raises(StartupError, match="Job for motion.service failed"):
            configure_service(config, host)

    def test_motioneye_disables_standalone_motion(self, motioneye_config, host):
        """Should disable the packaged motion unit and start motionEye."""
        host.services.is_service_present.return_value = True

        unit = configure_service(motioneye_config, host)

        assert unit == "motioneye"
        host.services.disable_service.assert_called_once_with("motion")
        host.services.restart_service.assert_called_once_with("motioneye")
        host.inspector.is_port_in_use.assert_called_once_with(8765)
