"""USB camera verification: presence on the bus, then a live one-frame capture."""

import logging
import subprocess

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import (
    CommandError,
    DeviceNotFoundError,
    DeviceStreamError,
    PackageManagerError,
)
from pisurveillance.provisioning.context import Host

logger = logging.getLogger(__name__)

DIAGNOSTIC_LINES = 20


def find_camera(vendor_match: str, host: Host) -> str:
    """Return the lsusb line of the first device whose description matches the vendor.

    Raises:
        DeviceNotFoundError: If no attached USB device matches
    """
    try:
        result = host.runner.run(["lsusb"])
    except CommandError as e:
        raise DeviceNotFoundError(
            f"Could not enumerate USB devices: {e}", hint="Install usbutils and re-run."
        ) from e

    devices = [line.strip() for line in result.stdout.splitlines() if line.strip()]
    for line in devices:
        if vendor_match.lower() in line.lower():
            return line

    logger.warning("Available USB devices:")
    for line in devices:
        logger.warning("  %s", line)
    raise DeviceNotFoundError(f"No USB device matching '{vendor_match}' detected.")


def ensure_v4l_utils(host: Host) -> None:
    """Install v4l-utils when the v4l2-ctl tool is missing."""
    if host.runner.which("v4l2-ctl") is not None:
        return
    logger.info("Installing v4l-utils for camera introspection")
    try:
        host.packages.install(["v4l-utils"])
    except CommandError as e:
        raise PackageManagerError(f"Could not install v4l-utils: {e}") from e


def log_capture_formats(config: SurveillanceConfig, host: Host) -> None:
    """Log the video devices and the formats the camera supports."""
    device = config.camera.video_device
    for title, cmd in (
        ("Available video devices", ["v4l2-ctl", "--list-devices"]),
        (f"Formats supported by {device}", ["v4l2-ctl", f"--device={device}", "--list-formats-ext"]),
    ):
        result = host.runner.run(cmd, check=False)
        logger.info("%s:", title)
        for line in result.stdout.splitlines()[:DIAGNOSTIC_LINES]:
            logger.info("  %s", line)


def release_camera(config: SurveillanceConfig, host: Host) -> None:
    """Stop daemons from an earlier run that would hold the device open."""
    for unit in dict.fromkeys(["motion", config.daemon.unit_name]):
        if host.services.get_service_status(unit) == "active":
            logger.info("Stopping %s to free the camera for the capture test", unit)
            host.services.stop_service(unit)


def run_capture_test(config: SurveillanceConfig, host: Host) -> None:
    """Pull exactly one frame from the camera into /dev/null within the timeout.

    Raises:
        DeviceStreamError: If no frame arrives in time or the capture errors
    """
    device = config.camera.video_device
    timeout = config.camera.capture_timeout
    cmd = [
        "v4l2-ctl",
        f"--device={device}",
        "--stream-mmap",
        "--stream-count=1",
        "--stream-to=/dev/null",
    ]
    try:
        result = host.runner.run(cmd, check=False, timeout=timeout)
    except subprocess.TimeoutExpired as e:
        raise DeviceStreamError(f"No frame from {device} within {timeout:g} seconds.") from e
    except CommandError as e:
        raise DeviceStreamError(f"Capture test on {device} could not run: {e}") from e

    if result.returncode != 0:
        detail = (result.stderr or result.stdout).strip().splitlines()
        reason = detail[-1] if detail else f"exit status {result.returncode}"
        raise DeviceStreamError(f"Capture test on {device} failed: {reason}")


def verify_camera(config: SurveillanceConfig, host: Host) -> str:
    """Confirm the camera is attached and streams a frame.

    Returns:
        The lsusb description of the detected camera

    Raises:
        DeviceNotFoundError: If no USB device matches the configured vendor
        DeviceStreamError: If the device is present but cannot stream
    """
    camera = find_camera(config.camera.vendor_match, host)
    logger.info("Webcam detected: %s", camera)

    ensure_v4l_utils(host)
    log_capture_formats(config, host)
    release_camera(config, host)
    run_capture_test(config, host)
    logger.info("Captured a test frame from %s", config.camera.video_device)
    return camera
