"""Template rendering and idempotent file writes shared by the stages."""

import logging
import shutil
from pathlib import Path

from jinja2 import Template

from pisurveillance.system.path_resolver import PathResolver

logger = logging.getLogger(__name__)


def render_template(paths: PathResolver, template_name: str, **context: object) -> str:
    """Render one of the packaged templates."""
    template_path = paths.get_template_file_path(template_name)
    template = Template(template_path.read_text(), keep_trailing_newline=True)
    return template.render(**context)


def write_if_changed(path: Path, content: str, backup: bool = False) -> bool:
    """Write content to path unless it already holds exactly that.

    Args:
        path: Destination file
        content: Desired file content
        backup: Copy differing existing content to '<name>.backup' first

    Returns:
        True if the file was written
    """
    if path.exists():
        if path.read_text() == content:
            logger.debug("%s already up to date", path)
            return False
        if backup:
            backup_path = path.with_name(f"{path.name}.backup")
            shutil.copy2(path, backup_path)
            logger.info("Backed up %s to %s", path, backup_path)

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    logger.info("Wrote %s", path)
    return True
