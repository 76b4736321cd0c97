"""Capture storage: the capture directory, its tmpfs backing, and log rotation."""

import logging
from pathlib import Path

from jinja2 import TemplateError

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import CommandError, StorageError
from pisurveillance.provisioning.context import Host
from pisurveillance.provisioning.files import render_template, write_if_changed

logger = logging.getLogger(__name__)


def fstab_entry(config: SurveillanceConfig, uid: int, gid: int) -> str:
    """Return the mount-table line that backs the capture path with RAM.

    The mount options carry the owner so every boot mounts it owned by that account.
    """
    storage = config.storage
    return (
        f"tmpfs {storage.path} tmpfs "
        f"defaults,noatime,nosuid,nodev,size={storage.tmpfs_size},mode=0755,"
        f"uid={uid},gid={gid} 0 0"
    )


def lookup_account_ids(user: str, host: Host) -> tuple[int, int]:
    """Resolve the numeric user and group ids of a service account."""
    uid = host.runner.run(["id", "-u", user]).stdout.strip()
    gid = host.runner.run(["id", "-g", user]).stdout.strip()
    return int(uid), int(gid)


def has_fstab_entry(fstab: Path, mount_point: str) -> bool:
    """Check whether any active mount-table line targets the mount point."""
    if not fstab.exists():
        return False
    for line in fstab.read_text().splitlines():
        fields = line.split()
        if not fields or fields[0].startswith("#"):
            continue
        if len(fields) > 1 and fields[1].rstrip("/") == mount_point:
            return True
    return False


def mount_ram_storage(config: SurveillanceConfig, host: Host) -> None:
    """Back the capture path with tmpfs, now and at every boot.

    An existing mount at the path is left as it is.
    """
    path = config.storage.path
    if host.inspector.is_mount_point(path):
        logger.info("%s is already mounted, leaving it in place", path)
        return

    fstab = host.paths.get_fstab_path()
    if has_fstab_entry(fstab, path):
        logger.info("Mount table already has an entry for %s", path)
    else:
        uid, gid = lookup_account_ids(config.daemon.service_user, host)
        with fstab.open("a") as f:
            f.write(fstab_entry(config, uid, gid) + "\n")
        logger.info("Added tmpfs entry for %s (%s) to %s", path, config.storage.tmpfs_size, fstab)

    host.runner.run(["mount", path])
    logger.info("Mounted tmpfs at %s", path)


def set_owner(path: Path, user: str, host: Host) -> None:
    host.runner.run(["chown", "-R", f"{user}:{user}", str(path)])


def write_logrotate_policy(config: SurveillanceConfig, host: Host) -> None:
    """Install the rotation policy for the setup log."""
    logging_config = config.logging
    content = render_template(
        host.paths,
        "logrotate.j2",
        log_file=logging_config.log_file,
        period=logging_config.rotate_period,
        keep=logging_config.rotate_keep,
    )
    write_if_changed(host.paths.get_logrotate_path(), content)


def configure_storage(config: SurveillanceConfig, host: Host) -> None:
    """Prepare the capture directory and the daemon log directory.

    Raises:
        StorageError: If a directory, mount, or policy file cannot be set up
    """
    path = Path(config.storage.path)
    user = config.daemon.service_user
    try:
        path.mkdir(parents=True, exist_ok=True)
        if config.storage.mode == "ephemeral":
            mount_ram_storage(config, host)
        set_owner(path, user, host)
        logger.info("Capture storage ready at %s (%s)", path, config.storage.mode)

        log_dir = host.paths.motion_log_dir
        log_dir.mkdir(parents=True, exist_ok=True)
        set_owner(log_dir, user, host)

        write_logrotate_policy(config, host)
    except (OSError, CommandError, TemplateError, ValueError) as e:
        raise StorageError(f"Could not prepare storage at {path}: {e}") from e
