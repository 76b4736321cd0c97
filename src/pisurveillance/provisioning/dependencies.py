"""Dependency installation: system packages and the motion daemon's web layer."""

import logging

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import CommandError, InstallError, PackageManagerError
from pisurveillance.provisioning.context import Host

logger = logging.getLogger(__name__)

MOTIONEYE_DISTRIBUTION = "motioneye"
MOTIONEYE_COMMAND = "meyectl"


def refresh_package_index(retries: int, delay: float, host: Host) -> None:
    """Refresh the package index, retrying transient failures.

    Raises:
        PackageManagerError: If every attempt fails
    """
    for attempt in range(1, retries + 1):
        try:
            host.packages.refresh_index()
            return
        except CommandError as e:
            if attempt == retries:
                raise PackageManagerError(
                    f"Package index refresh failed after {retries} attempts: {e}"
                ) from e
            logger.warning(
                "Package index refresh failed (attempt %d/%d): %s; retrying in %gs",
                attempt,
                retries,
                e,
                delay,
            )
            host.sleep(delay)


def install_packages(names: list[str], retries: int, delay: float, host: Host) -> None:
    """Install the packages that are not yet present in one batch.

    Raises:
        PackageManagerError: If the index refresh or the install fails
    """
    missing = [name for name in names if not host.packages.is_installed(name)]
    if not missing:
        logger.info("All %d system packages already installed", len(names))
        return

    refresh_package_index(retries, delay, host)
    logger.info("Installing %s", ", ".join(missing))
    try:
        host.packages.install(missing)
    except CommandError as e:
        raise PackageManagerError(f"Package installation failed: {e}") from e


def ensure_daemon(config: SurveillanceConfig, host: Host) -> None:
    """Make sure the motion daemon and, for motionEye, its web layer are installed.

    Raises:
        InstallError: If the daemon is missing or the web layer cannot be installed
    """
    if host.runner.which("motion") is None:
        raise InstallError(
            "The motion daemon is not installed.",
            hint="Check that the 'motion' package is available for this distribution.",
        )

    if config.daemon.web_layer != "motioneye":
        return

    if host.pip.is_installed(MOTIONEYE_COMMAND):
        logger.info("motionEye already installed")
        return

    logger.info("Installing motionEye web layer")
    try:
        host.pip.install([MOTIONEYE_DISTRIBUTION])
    except CommandError as e:
        raise InstallError(f"motionEye installation failed: {e}") from e
    if not host.pip.is_installed(MOTIONEYE_COMMAND):
        raise InstallError(f"motionEye installed but '{MOTIONEYE_COMMAND}' is not on PATH.")


def install_dependencies(config: SurveillanceConfig, host: Host) -> None:
    """Install system packages, then verify the daemon."""
    packages = config.packages
    install_packages(config.required_packages, packages.update_retries, packages.retry_delay, host)
    ensure_daemon(config, host)
