"""Host inspection utilities.

This module provides static methods for inspecting the resources and network
state the provisioning gates depend on.
"""

import os
import platform
import socket

import psutil


class SystemInspector:
    """Static utilities for inspecting the host.

    Provides methods for checking:
    - Administrative privilege
    - Free disk space and total memory
    - CPU core count and machine architecture
    - Mount points and bound TCP ports
    - The primary local IP address
    """

    @staticmethod
    def is_privileged() -> bool:
        """Return whether the process runs with an effective UID of root."""
        return os.geteuid() == 0

    @staticmethod
    def get_free_disk_kb(path: str = "/") -> int:
        """Get free disk space in KB for the filesystem holding path."""
        return psutil.disk_usage(path).free // 1024

    @staticmethod
    def check_disk_space(path: str, min_free_kb: int) -> tuple[bool, str]:
        """Check if free disk space meets a minimum.

        Args:
            path: Path to check disk space for
            min_free_kb: Minimum free space required, in KB

        Returns:
            Tuple of (is_ok, message) indicating if space is sufficient
        """
        free_kb = SystemInspector.get_free_disk_kb(path)
        if free_kb < min_free_kb:
            return False, f"Low disk space: {free_kb} KB free, below {min_free_kb} KB minimum."
        return True, f"Disk space is sufficient: {free_kb} KB free."

    @staticmethod
    def get_total_memory_mb() -> int:
        """Get total physical memory in MB."""
        return psutil.virtual_memory().total // 1024 // 1024

    @staticmethod
    def check_memory(min_total_mb: int) -> tuple[bool, str]:
        """Check if total memory meets a recommended floor.

        Args:
            min_total_mb: Recommended total memory, in MB

        Returns:
            Tuple of (is_ok, message)
        """
        total_mb = SystemInspector.get_total_memory_mb()
        if total_mb < min_total_mb:
            return False, f"Low memory: {total_mb} MB total, below recommended {min_total_mb} MB."
        return True, f"Memory is sufficient: {total_mb} MB total."

    @staticmethod
    def get_cpu_count() -> int:
        """Get the number of logical CPU cores."""
        return psutil.cpu_count() or 1

    @staticmethod
    def get_machine() -> str:
        """Get the machine architecture as reported by uname (e.g., aarch64)."""
        return platform.machine()

    @staticmethod
    def is_mount_point(path: str) -> bool:
        """Return whether a filesystem is mounted at path."""
        return os.path.ismount(path)

    @staticmethod
    def is_port_in_use(port: int, host: str = "127.0.0.1") -> bool:
        """Return whether something is accepting TCP connections on the port."""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.settimeout(1)
            return s.connect_ex((host, port)) == 0

    @staticmethod
    def get_ip_address() -> str:
        """Get the primary IP address of this machine.

        Returns:
            str: IP address or 'unknown' if not connected
        """
        try:
            # Create a socket to determine the route to the internet
            with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
                s.connect(("8.8.8.8", 80))
                return s.getsockname()[0]
        except OSError:
            return "unknown"
