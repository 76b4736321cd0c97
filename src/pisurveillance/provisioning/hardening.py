"""Security hardening: firewall, remote login, intrusion prevention, tuning."""

import logging
import re

from jinja2 import TemplateError

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import CommandError, FirewallError
from pisurveillance.provisioning.context import Host
from pisurveillance.provisioning.files import render_template, write_if_changed

logger = logging.getLogger(__name__)

SSHD_DIRECTIVES = {
    "PasswordAuthentication": "no",
    "PermitRootLogin": "no",
}


def configure_firewall(config: SurveillanceConfig, host: Host) -> None:
    """Allow remote login and the service ports, then enable the firewall.

    Raises:
        FirewallError: If any firewall rule cannot be applied
    """
    rules = []
    if config.hardening.allow_ssh:
        rules.append(["ufw", "allow", "ssh"])
    for port in config.service_ports:
        rules.append(["ufw", "allow", f"{port}/tcp"])
    rules.append(["ufw", "--force", "enable"])

    for cmd in rules:
        try:
            host.runner.run(cmd)
        except CommandError as e:
            raise FirewallError(f"Firewall configuration failed: {e}") from e
    logger.info("Firewall enabled for ports %s", ", ".join(map(str, config.service_ports)))


def set_directive(text: str, key: str, value: str) -> str:
    """Set an sshd_config directive, uncommenting it or appending it as needed."""
    pattern = re.compile(rf"^[ \t]*#?[ \t]*{key}[ \t]+.*$", re.MULTILINE)
    line = f"{key} {value}"
    text, count = pattern.subn(line, text)
    if count == 0:
        if text and not text.endswith("\n"):
            text += "\n"
        text += line + "\n"
    return text


def harden_ssh(config: SurveillanceConfig, host: Host) -> None:
    """Disable password and root logins, reloading sshd only if a file changed.

    sshd keeps the first value it reads for a directive, and the main file
    includes sshd_config.d before its own settings. Where that directory
    exists the directives also go into an early-sorting drop-in.
    """
    sshd_config = host.paths.get_sshd_config_path()
    if not sshd_config.exists():
        logger.warning("%s not found, skipping remote login hardening", sshd_config)
        return

    hardened = sshd_config.read_text()
    for key, value in SSHD_DIRECTIVES.items():
        hardened = set_directive(hardened, key, value)
    drop_in = host.paths.get_sshd_drop_in_path()
    drop_in_content = "".join(f"{key} {value}\n" for key, value in SSHD_DIRECTIVES.items())

    try:
        changed = write_if_changed(sshd_config, hardened, backup=True)
        if drop_in.parent.is_dir():
            changed = write_if_changed(drop_in, drop_in_content) or changed
        if not changed:
            logger.info("Remote login already hardened")
            return
        host.services.reload_service(config.hardening.ssh_service)
    except (OSError, CommandError) as e:
        raise FirewallError(f"Remote login hardening failed: {e}") from e
    logger.info("Disabled password and root logins over SSH")


def enable_intrusion_prevention(host: Host) -> None:
    """Install fail2ban if needed and turn on its sshd jail."""
    try:
        if not host.packages.is_installed("fail2ban"):
            host.packages.install(["fail2ban"])

        jail = host.paths.get_fail2ban_jail_path()
        if jail.exists():
            logger.info("Keeping existing %s", jail)
        else:
            write_if_changed(jail, render_template(host.paths, "jail.local.j2"))

        host.services.enable_service("fail2ban")
        host.services.restart_service("fail2ban")
    except (OSError, TemplateError, CommandError) as e:
        raise FirewallError(f"Intrusion prevention setup failed: {e}") from e
    logger.info("fail2ban protecting SSH")


def set_performance_governor(host: Host) -> None:
    """Pin the CPU frequency governor to performance, now and at boot."""
    write_if_changed(host.paths.get_cpufrequtils_path(), 'GOVERNOR="performance"\n')
    for governor in host.paths.get_cpu_governor_paths():
        try:
            governor.write_text("performance\n")
        except OSError as e:
            logger.warning("Could not set %s: %s", governor, e)
    logger.info("CPU governor set to performance")


def disable_unused_services(config: SurveillanceConfig, host: Host) -> None:
    """Disable background services the appliance does not need."""
    for service in config.hardening.disable_services:
        if not host.services.is_service_present(service):
            logger.debug("%s not installed, nothing to disable", service)
            continue
        try:
            host.services.disable_service(service)
            logger.info("Disabled %s", service)
        except CommandError as e:
            logger.warning("Could not disable %s: %s", service, e)


def harden_system(config: SurveillanceConfig, host: Host) -> None:
    """Apply firewall rules and security hardening.

    Raises:
        FirewallError: If the firewall, SSH or fail2ban configuration fails
    """
    configure_firewall(config, host)
    harden_ssh(config, host)
    enable_intrusion_prevention(host)

    if config.hardening.performance_governor:
        try:
            set_performance_governor(host)
        except OSError as e:
            logger.warning("Could not configure CPU governor: %s", e)
    disable_unused_services(config, host)
