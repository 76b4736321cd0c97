"""Collaborators a provisioning run acts through."""

import time
from collections.abc import Callable
from dataclasses import dataclass

import httpx

from pisurveillance.provisioning.operator import ClickOperator, Operator
from pisurveillance.system.command_runner import CommandRunner
from pisurveillance.system.package_manager import AptPackageManager, PackageManager, PipInstaller
from pisurveillance.system.path_resolver import PathResolver
from pisurveillance.system.service_strategies import (
    EmbeddedSystemdStrategy,
    ServiceManagementStrategy,
)
from pisurveillance.system.status import SystemInspector

HTTP_TIMEOUT = 60.0


def default_http_client() -> httpx.Client:
    """Create the HTTP client used for installer and release downloads."""
    return httpx.Client(follow_redirects=True, timeout=HTTP_TIMEOUT)


@dataclass
class Host:
    """The target host as seen by the stages.

    Every external effect goes through one of these attributes, so a test can
    swap any of them for a fake.
    """

    runner: CommandRunner
    packages: PackageManager
    pip: PipInstaller
    services: ServiceManagementStrategy
    inspector: SystemInspector
    paths: PathResolver
    operator: Operator
    http_client: Callable[[], httpx.Client] = default_http_client
    sleep: Callable[[float], None] = time.sleep
    clock: Callable[[], float] = time.monotonic

    @classmethod
    def create(
        cls, path_resolver: PathResolver | None = None, operator: Operator | None = None
    ) -> "Host":
        """Build a Host wired to the real system (apt, systemd, the terminal)."""
        runner = CommandRunner()
        paths = path_resolver or PathResolver()
        return cls(
            runner=runner,
            packages=AptPackageManager(runner),
            pip=PipInstaller(runner),
            services=EmbeddedSystemdStrategy(runner, paths),
            inspector=SystemInspector(),
            paths=paths,
            operator=operator or ClickOperator(),
        )
