"""Daemon configuration and supervised startup."""

import logging
from pathlib import Path

from jinja2 import TemplateError

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import CommandError, ConfigError, StartupError
from pisurveillance.provisioning.context import Host
from pisurveillance.provisioning.files import render_template, write_if_changed
from pisurveillance.system.service_strategies import ServiceDeclaration

logger = logging.getLogger(__name__)

MEYECTL_FALLBACK = "/usr/local/bin/meyectl"


def render_daemon_config(config: SurveillanceConfig, host: Host) -> Path:
    """Render the daemon configuration file, backing up a differing original.

    Returns:
        Path of the configuration file

    Raises:
        ConfigError: If the template cannot be rendered or the file cannot be written
    """
    paths = host.paths
    if config.daemon.web_layer == "motioneye":
        target = paths.get_motioneye_config_path()
        template_name = "motioneye.conf.j2"
        context = {"conf_dir": str(target.parent), "log_dir": str(paths.motion_log_dir)}
    else:
        target = paths.get_motion_config_path()
        template_name = "motion.conf.j2"
        context = {"motion_log": str(paths.get_motion_log_path())}

    try:
        content = render_template(
            paths,
            template_name,
            camera=config.camera,
            daemon=config.daemon,
            storage=config.storage,
            **context,
        )
        if not write_if_changed(target, content, backup=True):
            logger.info("%s unchanged", target)
    except (OSError, TemplateError) as e:
        raise ConfigError(f"Could not write {target}: {e}") from e
    return target


def build_declaration(config: SurveillanceConfig, host: Host) -> ServiceDeclaration:
    """Describe how the unit serving the web-control port is supervised.

    The motion package ships its own unit, so only a supervision override is
    declared for it. motionEye installed through pip ships none.
    """
    daemon = config.daemon
    if daemon.web_layer == "motioneye":
        meyectl = host.runner.which("meyectl") or MEYECTL_FALLBACK
        config_path = host.paths.get_motioneye_config_path()
        return ServiceDeclaration(
            name=daemon.unit_name,
            description="motionEye surveillance web interface",
            exec_start=f"{meyectl} startserver -c {config_path}",
            restart_sec=daemon.restart_sec,
            start_limit_burst=daemon.start_limit_burst,
            start_limit_interval=daemon.start_limit_interval,
        )
    return ServiceDeclaration(
        name=daemon.unit_name,
        restart_sec=daemon.restart_sec,
        start_limit_burst=daemon.start_limit_burst,
        start_limit_interval=daemon.start_limit_interval,
        drop_in=True,
    )


def wait_until_active(unit: str, timeout: float, interval: float, host: Host) -> bool:
    """Poll the unit until it is active or the timeout elapses.

    Returns:
        True as soon as the unit reports active, False on timeout
    """
    deadline = host.clock() + timeout
    while True:
        if host.services.get_service_status(unit) == "active":
            return True
        if host.clock() >= deadline:
            return False
        host.sleep(interval)


def stop_standalone_motion(host: Host) -> None:
    """Keep the packaged motion unit from competing with motionEye for the camera."""
    if not host.services.is_service_present("motion"):
        return
    try:
        host.services.disable_service("motion")
        logger.info("Disabled standalone motion unit; motionEye launches motion itself")
    except CommandError as e:
        logger.warning("Could not disable standalone motion unit: %s", e)


def configure_service(config: SurveillanceConfig, host: Host) -> str:
    """Configure, enable and start the daemon, then wait for it to come up.

    Returns:
        Name of the supervised unit

    Raises:
        ConfigError: If the daemon configuration cannot be written
        StartupError: If the unit cannot be started or never becomes active
    """
    daemon = config.daemon
    unit = daemon.unit_name
    render_daemon_config(config, host)

    try:
        if daemon.web_layer == "motioneye":
            stop_standalone_motion(host)

        if host.services.declare_service(build_declaration(config, host)):
            host.services.daemon_reload()
        host.services.enable_service(unit)

        if host.inspector.is_port_in_use(daemon.web_port):
            logger.info("Port %d already bound, stopping %s before restart", daemon.web_port, unit)
            host.services.stop_service(unit)
        host.services.restart_service(unit)
    except (OSError, TemplateError, CommandError) as e:
        raise StartupError(f"Could not start {unit}: {e}", hint=f"journalctl -u {unit}") from e

    if not wait_until_active(unit, daemon.startup_timeout, daemon.poll_interval, host):
        raise StartupError(
            f"{unit} did not become active within {daemon.startup_timeout:g} seconds.",
            hint=f"Check the daemon log: journalctl -u {unit}",
        )
    logger.info("%s service is running", unit)
    return unit
