"""Error taxonomy for the provisioning pipeline.

Every hard-gate failure is a ProvisioningError subclass. Each carries an
optional remediation hint that the pipeline driver logs alongside the
message, e.g. "check kernel module" or "consult the daemon log".
"""


class ProvisioningError(Exception):
    """Base class for all provisioning failures."""

    stage_hint: str | None = None

    def __init__(self, message: str, hint: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.hint = hint if hint is not None else self.stage_hint

    def __str__(self) -> str:
        return self.message


class PrivilegeError(ProvisioningError):
    """The pipeline is not running with administrative privilege."""

    stage_hint = "Re-run the command with sudo."


class ResourceError(ProvisioningError):
    """The host lacks the disk space required to provision."""

    stage_hint = "Free up disk space or use a larger SD card."


class DeviceNotFoundError(ProvisioningError):
    """No attached USB device matches the expected camera vendor."""

    stage_hint = "Check the USB cable and that the camera is listed by lsusb."


class DeviceStreamError(ProvisioningError):
    """The camera is present but did not deliver a frame in time."""

    stage_hint = "Check the uvcvideo kernel module and that no other process holds the device."


class PackageManagerError(ProvisioningError):
    """The system package manager failed to refresh or install."""

    stage_hint = "Check network connectivity and /etc/apt/sources.list."


class InstallError(ProvisioningError):
    """The motion-detection daemon or its web layer could not be installed."""


class StorageError(ProvisioningError):
    """The capture directory or its backing storage could not be prepared."""


class ConfigError(ProvisioningError):
    """Configuration could not be loaded, validated, or rendered."""


class StartupError(ProvisioningError):
    """A supervised daemon failed to reach the active state in time."""


class FirewallError(ProvisioningError):
    """The firewall or remote-login hardening could not be applied."""


class CommandError(ProvisioningError):
    """An external command exited unsuccessfully."""

    def __init__(self, cmd: list[str], returncode: int, stderr: str = "") -> None:
        detail = stderr.strip().splitlines()[-1] if stderr.strip() else f"exit status {returncode}"
        super().__init__(f"`{' '.join(cmd)}` failed: {detail}")
        self.cmd = cmd
        self.returncode = returncode
        self.stderr = stderr


class OperatorInputError(ProvisioningError):
    """An interactive prompt was aborted or its input stream closed."""

    stage_hint = (
        "Run the setup from an interactive terminal or set the answer in the configuration file."
    )
