"""Scoped scratch directory for downloads made during provisioning."""

import atexit
import logging
import shutil
import signal
import tempfile
from pathlib import Path
from types import FrameType, TracebackType
from typing import Any

logger = logging.getLogger(__name__)

# Signals that end the run; converting them to SystemExit unwinds context managers
_EXIT_SIGNALS = (signal.SIGTERM, signal.SIGHUP)


def _exit_on_signal(signum: int, frame: FrameType | None) -> None:
    """Turn a termination signal into SystemExit so cleanup code runs."""
    logger.warning("Signal %s received, aborting setup", signum)
    raise SystemExit(128 + signum)


class Workspace:
    """Temporary directory removed on every exit path.

    Use as a context manager. While held, SIGTERM and SIGHUP unwind the stack
    like SIGINT does, and an atexit hook covers interpreter shutdown.
    """

    def __init__(self, prefix: str = "pi-surveillance-") -> None:
        self.prefix = prefix
        self.path: Path | None = None
        self._previous_handlers: dict[int, Any] = {}

    def __enter__(self) -> "Workspace":
        self.path = Path(tempfile.mkdtemp(prefix=self.prefix))
        logger.debug("Created workspace %s", self.path)
        atexit.register(self.cleanup)
        for signum in _EXIT_SIGNALS:
            try:
                self._previous_handlers[signum] = signal.signal(signum, _exit_on_signal)
            except ValueError:
                # signal handlers can only be installed from the main thread
                logger.debug("Not in main thread; signal %s not trapped", signum)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        for signum, handler in self._previous_handlers.items():
            signal.signal(signum, handler)
        self._previous_handlers.clear()
        atexit.unregister(self.cleanup)
        self.cleanup()

    def cleanup(self) -> None:
        """Remove the workspace directory and everything in it."""
        if self.path is not None and self.path.exists():
            shutil.rmtree(self.path, ignore_errors=True)
            logger.debug("Removed workspace %s", self.path)

    def file(self, name: str) -> Path:
        """Get a path for a scratch file inside the workspace."""
        if self.path is None:
            raise RuntimeError("Workspace is not active")
        return self.path / name
