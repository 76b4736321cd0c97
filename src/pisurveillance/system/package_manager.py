import abc
import logging

from pisurveillance.system.command_runner import CommandRunner

logger = logging.getLogger(__name__)


class PackageManager(abc.ABC):
    """Abstract Base Class for system package managers.

    Implementations raise CommandError when the underlying tool fails; the
    dependency stage decides how to retry or report it.
    """

    @abc.abstractmethod
    def refresh_index(self) -> None:
        """Refresh the package index from the configured sources."""
        pass

    @abc.abstractmethod
    def install(self, names: list[str]) -> None:
        """Install the given packages in a single transaction."""
        pass

    @abc.abstractmethod
    def is_installed(self, name: str) -> bool:
        """Return whether a package is already installed."""
        pass


class AptPackageManager(PackageManager):
    """Package manager for Debian-based systems (e.g., Raspberry Pi OS)."""

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def refresh_index(self) -> None:
        """Run apt-get update."""
        self.runner.run(["apt-get", "update", "-q"])

    def install(self, names: list[str]) -> None:
        """Install packages with apt-get; already installed packages are left as they are."""
        if not names:
            return
        self.runner.run(["apt-get", "install", "-y", "--no-install-recommends", *names])
        logger.info("Installed packages: %s", ", ".join(names))

    def is_installed(self, name: str) -> bool:
        """Check dpkg's status database for the package."""
        result = self.runner.run(
            ["dpkg-query", "-W", "-f=${Status}", name],
            check=False,
        )
        return result.returncode == 0 and "install ok installed" in result.stdout


class PipInstaller:
    """Installs Python-distributed daemons system-wide with pip."""

    def __init__(self, runner: CommandRunner) -> None:
        self.runner = runner

    def is_installed(self, command: str) -> bool:
        """Return whether the console script a distribution provides is on PATH."""
        return self.runner.which(command) is not None

    def install(self, names: list[str]) -> None:
        """Install distributions into the system interpreter."""
        self.runner.run(
            ["python3", "-m", "pip", "install", "--break-system-packages", *names],
        )
        logger.info("Installed Python packages: %s", ", ".join(names))
