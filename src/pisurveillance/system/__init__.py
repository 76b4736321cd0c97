"""System domain package.

This package contains the host-facing collaborators of the pipeline:
- CommandRunner: Runs external commands
- PackageManager: apt and pip installers
- PathResolver: Path resolution for every file the pipeline touches
- ServiceStrategies: systemd service declaration and control
- SystemInspector: Host resource and network inspection
- Workspace: Scoped scratch directory with guaranteed cleanup
"""

from pisurveillance.system.command_runner import CommandRunner
from pisurveillance.system.package_manager import AptPackageManager, PackageManager, PipInstaller
from pisurveillance.system.path_resolver import PathResolver
from pisurveillance.system.service_strategies import (
    EmbeddedSystemdStrategy,
    ServiceDeclaration,
    ServiceManagementStrategy,
)
from pisurveillance.system.status import SystemInspector
from pisurveillance.system.workspace import Workspace

__all__ = [
    "AptPackageManager",
    "CommandRunner",
    "EmbeddedSystemdStrategy",
    "PackageManager",
    "PathResolver",
    "PipInstaller",
    "ServiceDeclaration",
    "ServiceManagementStrategy",
    "SystemInspector",
    "Workspace",
]
