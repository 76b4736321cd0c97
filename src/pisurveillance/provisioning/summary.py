"""Final access summary and runbook."""

import logging
from dataclasses import dataclass, field

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.provisioning.context import Host
from pisurveillance.provisioning.remote_access import RemoteAccessResult

logger = logging.getLogger(__name__)


@dataclass
class AccessSummary:
    """How to reach and operate the provisioned appliance."""

    local_ip: str
    web_url: str
    stream_url: str | None
    remote: RemoteAccessResult
    remote_web_url: str | None
    remote_stream_url: str | None
    storage_path: str
    storage_mode: str
    daemon_log: str
    setup_log: str
    commands: list[tuple[str, str]] = field(default_factory=list)


def build_summary(
    config: SurveillanceConfig, host: Host, remote: RemoteAccessResult
) -> AccessSummary:
    """Collect access URLs and operational commands for the operator."""
    daemon = config.daemon
    unit = daemon.unit_name
    local_ip = host.inspector.get_ip_address()

    stream_url = f"http://{local_ip}:{daemon.stream_port}" if daemon.uses_stream_port else None
    remote_web_url = None
    remote_stream_url = None
    if remote.url:
        remote_web_url = remote.url
    elif remote.enabled and remote.address:
        remote_web_url = f"http://{remote.address}:{daemon.web_port}"
        if daemon.uses_stream_port:
            remote_stream_url = f"http://{remote.address}:{daemon.stream_port}"

    daemon_log = host.paths.motion_log_dir / f"{unit}.log"
    commands = [
        ("Check service status", f"systemctl status {unit}"),
        ("View service journal", f"journalctl -u {unit} -f"),
        ("Restart service", f"systemctl restart {unit}"),
        ("View daemon log", f"tail -f {daemon_log}"),
        ("Check disk usage", f"df -h {config.storage.path}"),
    ]

    return AccessSummary(
        local_ip=local_ip,
        web_url=f"http://{local_ip}:{daemon.web_port}",
        stream_url=stream_url,
        remote=remote,
        remote_web_url=remote_web_url,
        remote_stream_url=remote_stream_url,
        storage_path=config.storage.path,
        storage_mode=config.storage.mode,
        daemon_log=str(daemon_log),
        setup_log=config.logging.log_file,
        commands=commands,
    )


def log_summary(summary: AccessSummary) -> None:
    logger.info("=== Surveillance setup complete ===")
    logger.info("Web interface: %s", summary.web_url)
    if summary.stream_url:
        logger.info("Live stream: %s", summary.stream_url)
    if summary.remote_web_url:
        logger.info("Remote access (%s): %s", summary.remote.method, summary.remote_web_url)
    if summary.remote_stream_url:
        logger.info("Remote stream: %s", summary.remote_stream_url)
    logger.info("Recordings: %s (%s)", summary.storage_path, summary.storage_mode)
    if summary.storage_mode == "ephemeral":
        logger.warning("Recordings are kept in RAM and are lost on reboot")
    logger.info("Setup log: %s", summary.setup_log)

    logger.info("Useful commands:")
    for description, command in summary.commands:
        logger.info("  %s: %s", description, command)
