"""Preflight gate: privilege and resource checks before anything is changed."""

import logging

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import PrivilegeError, ResourceError
from pisurveillance.provisioning.context import Host
from pisurveillance.system.workspace import Workspace

logger = logging.getLogger(__name__)


def run_preflight(config: SurveillanceConfig, host: Host) -> Workspace:
    """Verify the host can be provisioned.

    Args:
        config: Pipeline configuration
        host: Target host collaborators

    Returns:
        A Workspace for the run; the caller enters it so its removal is guaranteed

    Raises:
        PrivilegeError: If not running as root
        ResourceError: If free disk space is below the configured minimum
    """
    if not host.inspector.is_privileged():
        raise PrivilegeError("This command must be run as root (sudo).")

    preflight = config.preflight
    disk_ok, disk_message = host.inspector.check_disk_space(
        preflight.disk_path, preflight.min_disk_kb
    )
    if not disk_ok:
        raise ResourceError(disk_message)
    logger.info(disk_message)

    # Low memory slows motion down but does not stop it from working
    memory_ok, memory_message = host.inspector.check_memory(preflight.min_memory_mb)
    if memory_ok:
        logger.info(memory_message)
    else:
        logger.warning("%s Expect reduced frame rates.", memory_message)

    logger.info("CPU cores: %d", host.inspector.get_cpu_count())
    return Workspace()
