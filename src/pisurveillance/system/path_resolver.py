import os
from pathlib import Path


class PathResolver:
    """Central authority for every file the provisioning pipeline reads or writes.

    Uses environment variables for the roots with the Raspberry Pi OS layout as
    default, so tests and alternative distributions can redirect them.
    """

    def __init__(self) -> None:
        """Initialize PathResolver with environment-based configuration."""
        self.etc_dir = Path(os.getenv("PISURVEILLANCE_ETC", "/etc"))
        self.sys_dir = Path(os.getenv("PISURVEILLANCE_SYS", "/sys"))
        self.bin_dir = Path(os.getenv("PISURVEILLANCE_BIN", "/usr/local/bin"))
        self.motion_log_dir = Path(os.getenv("PISURVEILLANCE_MOTION_LOG", "/var/log/motion"))
        self.root_home = Path(os.getenv("PISURVEILLANCE_ROOT_HOME", "/root"))

    def get_config_path(self) -> Path:
        """Get the path to the pipeline's own YAML configuration.

        Checks PISURVEILLANCE_CONFIG environment variable first, then falls back to default.
        """
        config_path = os.getenv("PISURVEILLANCE_CONFIG")
        if config_path:
            return Path(config_path)
        return self.etc_dir / "pi-surveillance" / "config.yaml"

    def get_template_dir(self) -> Path:
        """Get the directory holding the jinja2 templates and YAML presets."""
        return Path(__file__).resolve().parent.parent / "config_templates"

    def get_template_file_path(self, template_name: str) -> Path:
        """Get the path to a template file in config_templates directory.

        Args:
            template_name: Name of the template file (e.g., 'motion.conf.j2')

        Returns:
            Path to the template file
        """
        return self.get_template_dir() / template_name

    def get_motion_config_path(self) -> Path:
        """Get the path to motion's daemon configuration."""
        return self.etc_dir / "motion" / "motion.conf"

    def get_motioneye_config_path(self) -> Path:
        """Get the path to the motionEye web layer configuration."""
        return self.etc_dir / "motioneye" / "motioneye.conf"

    def get_motion_log_path(self) -> Path:
        """Get the path motion writes its own log to."""
        return self.motion_log_dir / "motion.log"

    def get_systemd_dir(self) -> Path:
        """Get the directory for locally declared systemd units."""
        return self.etc_dir / "systemd" / "system"

    def get_fstab_path(self) -> Path:
        """Get the persistent mount table."""
        return self.etc_dir / "fstab"

    def get_logrotate_path(self) -> Path:
        """Get the log-rotation policy file for the setup log."""
        return self.etc_dir / "logrotate.d" / "pi-surveillance"

    def get_sshd_config_path(self) -> Path:
        """Get the remote-login daemon configuration."""
        return self.etc_dir / "ssh" / "sshd_config"

    def get_sshd_drop_in_path(self) -> Path:
        """Get the drop-in that sorts ahead of other sshd_config.d overrides."""
        return self.etc_dir / "ssh" / "sshd_config.d" / "00-pi-surveillance.conf"

    def get_fail2ban_jail_path(self) -> Path:
        """Get the local fail2ban jail overrides."""
        return self.etc_dir / "fail2ban" / "jail.local"

    def get_cpufrequtils_path(self) -> Path:
        """Get the cpufrequtils defaults file read at boot."""
        return self.etc_dir / "default" / "cpufrequtils"

    def get_cpu_governor_paths(self) -> list[Path]:
        """Get the sysfs scaling governor files for every CPU core."""
        return sorted(self.sys_dir.glob("devices/system/cpu/cpu[0-9]*/cpufreq/scaling_governor"))

    def get_cloudflared_config_path(self) -> Path:
        """Get the tunnel client's ingress configuration."""
        return self.etc_dir / "cloudflared" / "config.yml"

    def get_cloudflared_binary_path(self) -> Path:
        """Get where the tunnel client binary is installed."""
        return self.bin_dir / "cloudflared"

    def get_cloudflared_credentials_dir(self) -> Path:
        """Get the directory holding the tunnel origin certificate and credentials."""
        return self.root_home / ".cloudflared"
