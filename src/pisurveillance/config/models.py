"""Configuration models for pi-surveillance.

All models are frozen: the configuration is built once when the pipeline
starts and handed to every stage unchanged.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

DEFAULT_PACKAGES = (
    "v4l-utils",
    "motion",
    "ffmpeg",
    "curl",
    "wget",
    "ufw",
    "fail2ban",
    "logrotate",
)

# Build dependencies motionEye needs when installed through pip
MOTIONEYE_PACKAGES = (
    "python3-pip",
    "python3-dev",
    "libcurl4-openssl-dev",
    "libssl-dev",
    "libjpeg-dev",
    "zlib1g-dev",
)


class FrozenModel(BaseModel):
    """Base for immutable configuration sections."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class PreflightConfig(FrozenModel):
    """Resource thresholds checked before any change is made."""

    min_disk_kb: int = Field(default=1_048_576, ge=0)
    min_memory_mb: int = Field(default=900, ge=0)
    disk_path: str = "/"


class CameraConfig(FrozenModel):
    """USB camera detection and capture settings."""

    vendor_match: str = "logitech"
    video_device: str = "/dev/video0"
    width: int = Field(default=640, gt=0)
    height: int = Field(default=480, gt=0)
    framerate: int = Field(default=15, gt=0)
    capture_timeout: float = Field(default=5.0, gt=0)

    @field_validator("vendor_match")
    @classmethod
    def validate_vendor_match(cls, v: str) -> str:
        """Reject an empty vendor string, which would match any device."""
        if not v.strip():
            raise ValueError("vendor_match must not be empty")
        return v.strip()


class PackagesConfig(FrozenModel):
    """System packages and package-index retry policy."""

    system: tuple[str, ...] = DEFAULT_PACKAGES
    update_retries: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=5.0, ge=0)


class DaemonConfig(FrozenModel):
    """Motion daemon, its optional web layer, and supervision policy."""

    web_layer: Literal["motion", "motioneye"] = "motion"
    web_port: int = Field(default=8080, ge=1, le=65535)
    stream_port: int = Field(default=8081, ge=1, le=65535)

    # Motion detection
    threshold: int = Field(default=1500, gt=0)
    minimum_motion_frames: int = Field(default=1, ge=1)
    event_gap: int = Field(default=60, ge=0)
    pre_capture: int = Field(default=2, ge=0)
    post_capture: int = Field(default=2, ge=0)
    quality: int = Field(default=85, ge=1, le=100)
    stream_maxrate: int = Field(default=5, ge=1)
    camera_name: str = "Camera 1"

    # Supervision
    service_user: str = "motion"
    restart_sec: int = Field(default=5, ge=0)
    start_limit_burst: int = Field(default=5, ge=1)
    start_limit_interval: int = Field(default=300, ge=1)
    startup_timeout: float = Field(default=15.0, gt=0)
    poll_interval: float = Field(default=1.0, gt=0)

    @property
    def uses_stream_port(self) -> bool:
        """Whether the live stream is served on its own port."""
        return self.web_layer == "motion"

    @property
    def unit_name(self) -> str:
        """Name of the supervised unit serving the web-control port."""
        return "motioneye" if self.web_layer == "motioneye" else "motion"

    @model_validator(mode="after")
    def validate_ports(self) -> "DaemonConfig":
        """Web and stream ports must differ when both are served."""
        if self.uses_stream_port and self.web_port == self.stream_port:
            raise ValueError(f"web_port and stream_port must differ (both {self.web_port})")
        return self


class StorageConfig(FrozenModel):
    """Where captures are written and what backs that directory."""

    mode: Literal["persistent", "ephemeral"] = "persistent"
    path: str = "/var/lib/motion"
    tmpfs_size: str = "512M"

    @field_validator("path")
    @classmethod
    def validate_path(cls, v: str) -> str:
        """Capture path must be absolute."""
        if not v.startswith("/"):
            raise ValueError(f"storage path must be absolute, got '{v}'")
        return v.rstrip("/") or "/"

    @field_validator("tmpfs_size")
    @classmethod
    def validate_tmpfs_size(cls, v: str) -> str:
        """Size must be something tmpfs understands, e.g. 512M or 1G."""
        if not v[:-1].isdigit() or v[-1].upper() not in "KMG%":
            raise ValueError(f"Invalid tmpfs size '{v}'. Use a number with K, M, G or % suffix.")
        return v


class RemoteAccessConfig(FrozenModel):
    """Remote access method; None means ask the operator."""

    method: Literal["none", "tailscale", "cloudflared"] | None = None
    tunnel_name: str = "pi-surveillance"
    tunnel_hostname: str | None = None


class HardeningConfig(FrozenModel):
    """Firewall, remote-login and background-service hardening."""

    allow_ssh: bool = True
    ssh_service: str = "ssh"
    performance_governor: bool = False
    disable_services: tuple[str, ...] = ()


class LoggingConfig(FrozenModel):
    """Setup log destination and its rotation policy."""

    level: str = "INFO"
    log_file: str = "/var/log/pi_surveillance_setup.log"
    rotate_period: Literal["daily", "weekly", "monthly"] = "weekly"
    rotate_keep: int = Field(default=4, ge=1)

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Accept standard logging level names only."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level '{v}'")
        return level


class SurveillanceConfig(FrozenModel):
    """Complete configuration for one provisioning run."""

    preflight: PreflightConfig = Field(default_factory=PreflightConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    packages: PackagesConfig = Field(default_factory=PackagesConfig)
    daemon: DaemonConfig = Field(default_factory=DaemonConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    remote_access: RemoteAccessConfig = Field(default_factory=RemoteAccessConfig)
    hardening: HardeningConfig = Field(default_factory=HardeningConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @property
    def service_ports(self) -> list[int]:
        """TCP ports the firewall must allow for the surveillance services."""
        ports = [self.daemon.web_port]
        if self.daemon.uses_stream_port:
            ports.append(self.daemon.stream_port)
        return ports

    @property
    def required_packages(self) -> list[str]:
        """System packages for this variant, in install order, without duplicates."""
        names = list(self.packages.system)
        if self.daemon.web_layer == "motioneye":
            names.extend(MOTIONEYE_PACKAGES)
        return list(dict.fromkeys(names))
