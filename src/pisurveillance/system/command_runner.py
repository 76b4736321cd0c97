"""Thin seam between the pipeline and the host's external commands."""

import logging
import os
import shutil
import subprocess

from pisurveillance.errors import CommandError

logger = logging.getLogger(__name__)


class CommandRunner:
    """Runs external commands with a non-interactive environment.

    Every stage talks to apt, systemctl, ufw and friends through this class so
    that tests can substitute a recording fake.
    """

    def __init__(self, extra_env: dict[str, str] | None = None) -> None:
        self.env = {**os.environ, "DEBIAN_FRONTEND": "noninteractive", **(extra_env or {})}

    def run(
        self,
        cmd: list[str],
        *,
        check: bool = True,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        interactive: bool = False,
    ) -> subprocess.CompletedProcess[str]:
        """Run a command and return its completed process.

        Args:
            cmd: Command and arguments
            check: Raise CommandError on a non-zero exit status
            timeout: Seconds before subprocess.TimeoutExpired is raised
            env: Extra environment variables for this command only
            interactive: Inherit the terminal so the operator sees prompts and URLs

        Returns:
            The completed process; stdout and stderr are empty when interactive

        Raises:
            CommandError: If the command is missing, or exits non-zero with check=True
            subprocess.TimeoutExpired: If the timeout elapses
        """
        logger.debug("Running: %s", " ".join(cmd))
        run_env = {**self.env, **(env or {})}
        try:
            if interactive:
                result = subprocess.run(
                    cmd, check=False, timeout=timeout, env=run_env, text=True
                )
                result.stdout, result.stderr = "", ""
            else:
                result = subprocess.run(
                    cmd,
                    check=False,
                    timeout=timeout,
                    env=run_env,
                    stdin=subprocess.DEVNULL,
                    capture_output=True,
                    text=True,
                )
        except FileNotFoundError as e:
            raise CommandError(cmd, 127, f"{cmd[0]}: command not found") from e

        if check and result.returncode != 0:
            raise CommandError(cmd, result.returncode, result.stderr or result.stdout or "")
        return result

    def which(self, name: str) -> str | None:
        """Return the full path of an executable, or None when it is not installed."""
        return shutil.which(name)
