import abc
import logging
from dataclasses import dataclass, field
from pathlib import Path

from jinja2 import Template

from pisurveillance.errors import CommandError
from pisurveillance.system.command_runner import CommandRunner
from pisurveillance.system.path_resolver import PathResolver

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ServiceDeclaration:
    """Desired definition of a supervised process.

    With drop_in=True only the supervision policy is declared, as an override
    of a unit the distribution package already ships.
    """

    name: str
    description: str = ""
    exec_start: str = ""
    user: str = "root"
    after: str = "network-online.target"
    restart: str = "always"
    restart_sec: int = 5
    start_limit_burst: int = 5
    start_limit_interval: int = 300
    environment: dict[str, str] = field(default_factory=dict)
    drop_in: bool = False


class ServiceManagementStrategy(abc.ABC):
    """Abstract Base Class for service management strategies.

    Defines the interface the pipeline uses to declare, start and supervise
    daemons.
    """

    @abc.abstractmethod
    def start_service(self, service_name: str) -> None:
        """Start a specified system service."""
        pass

    @abc.abstractmethod
    def stop_service(self, service_name: str) -> None:
        """Stop a specified system service."""
        pass

    @abc.abstractmethod
    def restart_service(self, service_name: str) -> None:
        """Restarts a specified system service."""
        pass

    @abc.abstractmethod
    def reload_service(self, service_name: str) -> None:
        """Ask a running service to reload its configuration."""
        pass

    @abc.abstractmethod
    def enable_service(self, service_name: str) -> None:
        """Enable a specified system service to start on boot."""
        pass

    @abc.abstractmethod
    def disable_service(self, service_name: str) -> None:
        """Disables a specified system service and stops it."""
        pass

    @abc.abstractmethod
    def get_service_status(self, service_name: str) -> str:
        """Return the status of a specified system service."""
        pass

    @abc.abstractmethod
    def is_service_present(self, service_name: str) -> bool:
        """Return whether a unit file for the service exists."""
        pass

    @abc.abstractmethod
    def daemon_reload(self) -> None:
        """Reload daemon configuration (if applicable)."""
        pass

    @abc.abstractmethod
    def declare_service(self, declaration: ServiceDeclaration) -> bool:
        """Write the service declaration if it is absent.

        Returns:
            True if a declaration was written, False if one was already in place.
        """
        pass


class EmbeddedSystemdStrategy(ServiceManagementStrategy):
    """Service management strategy for systems using systemd (e.g., Raspberry Pi OS)."""

    def __init__(self, runner: CommandRunner, path_resolver: PathResolver) -> None:
        self.runner = runner
        self.path_resolver = path_resolver

    def _run_systemctl_command(self, action: str, service_name: str = "") -> None:
        """Run a systemctl command with optional service name."""
        cmd = ["systemctl", action]
        if service_name:
            cmd.append(service_name)
        try:
            self.runner.run(cmd)
        except CommandError as e:
            if service_name:
                logger.error("Error running systemctl %s on %s: %s", action, service_name, e)
            else:
                logger.error("Error running systemctl %s: %s", action, e)
            raise
        if service_name:
            logger.debug("systemctl %s %s completed", action, service_name)

    def start_service(self, service_name: str) -> None:
        """Start a specified system service."""
        self._run_systemctl_command("start", service_name)

    def stop_service(self, service_name: str) -> None:
        """Stop a specified system service."""
        self._run_systemctl_command("stop", service_name)

    def restart_service(self, service_name: str) -> None:
        """Restart a specified system service."""
        self._run_systemctl_command("restart", service_name)

    def reload_service(self, service_name: str) -> None:
        """Reload a service, restarting it if it does not support reload."""
        self._run_systemctl_command("reload-or-restart", service_name)

    def enable_service(self, service_name: str) -> None:
        """Enable a specified system service to start on boot."""
        self._run_systemctl_command("enable", service_name)

    def disable_service(self, service_name: str) -> None:
        """Disable a specified system service and stop it now."""
        self.runner.run(["systemctl", "disable", "--now", service_name])

    def get_service_status(self, service_name: str) -> str:
        """Return the status of a specified system service."""
        result = self.runner.run(["systemctl", "is-active", service_name], check=False)
        if result.returncode == 0:
            return "active"
        return result.stdout.strip() or "unknown"

    def is_service_present(self, service_name: str) -> bool:
        """Check whether systemd knows a unit file for the service."""
        unit = service_name if "." in service_name else f"{service_name}.service"
        result = self.runner.run(
            ["systemctl", "list-unit-files", "--no-legend", unit],
            check=False,
        )
        return result.returncode == 0 and bool(result.stdout.strip())

    def daemon_reload(self) -> None:
        """Reload systemd daemon configuration."""
        self._run_systemctl_command("daemon-reload")

    def get_declaration_path(self, declaration: ServiceDeclaration) -> Path:
        """Get the unit or drop-in path a declaration is written to."""
        systemd_dir = self.path_resolver.get_systemd_dir()
        if declaration.drop_in:
            return systemd_dir / f"{declaration.name}.service.d" / "override.conf"
        return systemd_dir / f"{declaration.name}.service"

    def render_declaration(self, declaration: ServiceDeclaration) -> str:
        """Render the unit file text for a declaration."""
        template_name = "systemd-override.conf.j2" if declaration.drop_in else "systemd.service.j2"
        template_path = self.path_resolver.get_template_file_path(template_name)
        template = Template(template_path.read_text(), keep_trailing_newline=True)
        return template.render(**vars(declaration))

    def declare_service(self, declaration: ServiceDeclaration) -> bool:
        """Write the unit (or drop-in) for a declaration unless one already exists."""
        unit_path = self.get_declaration_path(declaration)
        if unit_path.exists():
            if unit_path.read_text() != self.render_declaration(declaration):
                logger.info("Keeping existing service declaration %s", unit_path)
            return False

        unit_path.parent.mkdir(parents=True, exist_ok=True)
        unit_path.write_text(self.render_declaration(declaration))
        logger.info("Declared supervised service %s at %s", declaration.name, unit_path)
        return True
