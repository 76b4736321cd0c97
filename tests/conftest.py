import subprocess
from collections import defaultdict, deque
from pathlib import Path
from typing import Any
from unittest.mock import create_autospec

import pytest

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import CommandError
from pisurveillance.provisioning.context import Host
from pisurveillance.provisioning.operator import Operator
from pisurveillance.system.package_manager import PackageManager, PipInstaller
from pisurveillance.system.path_resolver import PathResolver
from pisurveillance.system.service_strategies import ServiceManagementStrategy
from pisurveillance.system.status import SystemInspector

LOGITECH_LSUSB = (
    "Bus 001 Device 001: ID 1d6b:0002 Linux Foundation 2.0 root hub\n"
    "Bus 001 Device 004: ID 046d:0825 Logitech, Inc. Webcam C270\n"
)


class FakeCommandRunner:
    """Records commands and answers them from scripted responses.

    Responses are matched on a command prefix. Several responses for one
    prefix are consumed in order and the last one repeats.
    """

    def __init__(self) -> None:
        self.calls: list[list[str]] = []
        self.interactive_calls: list[list[str]] = []
        self.binaries: set[str] = {"motion", "v4l2-ctl"}
        self._responses: dict[tuple[str, ...], deque] = defaultdict(deque)
        self._seeded: set[tuple[str, ...]] = set()

    def seed(self, *prefix: str, **kwargs: Any) -> None:
        """Register a fixture default that a test's first respond() replaces."""
        self.respond(*prefix, **kwargs)
        self._seeded.add(prefix)

    def respond(
        self,
        *prefix: str,
        stdout: str = "",
        stderr: str = "",
        returncode: int = 0,
        raises: BaseException | None = None,
    ) -> None:
        if prefix in self._seeded:
            self._seeded.discard(prefix)
            self._responses[prefix].clear()
        self._responses[prefix].append((stdout, stderr, returncode, raises))

    def _lookup(self, cmd: list[str]) -> tuple[str, str, int, BaseException | None]:
        matches = [p for p in self._responses if tuple(cmd[: len(p)]) == p]
        if not matches:
            return "", "", 0, None
        queue = self._responses[max(matches, key=len)]
        return queue.popleft() if len(queue) > 1 else queue[0]

    def run(
        self,
        cmd: list[str],
        *,
        check: bool = True,
        timeout: float | None = None,
        env: dict[str, str] | None = None,
        interactive: bool = False,
    ) -> subprocess.CompletedProcess:
        self.calls.append(list(cmd))
        if interactive:
            self.interactive_calls.append(list(cmd))
        stdout, stderr, returncode, raises = self._lookup(cmd)
        if raises is not None:
            raise raises
        if check and returncode != 0:
            raise CommandError(cmd, returncode, stderr)
        return subprocess.CompletedProcess(cmd, returncode, stdout, stderr)

    def which(self, name: str) -> str | None:
        return f"/usr/bin/{name}" if name in self.binaries else None

    def ran(self, *prefix: str) -> bool:
        return any(tuple(call[: len(prefix)]) == prefix for call in self.calls)

    def count(self, *prefix: str) -> int:
        return sum(1 for call in self.calls if tuple(call[: len(prefix)]) == prefix)


class FakeOperator(Operator):
    """Operator answering from queued replies."""

    def __init__(self, attended: bool = True) -> None:
        self.attended = attended
        self.choices: deque[str] = deque()
        self.answers: deque[str] = deque()
        self.secrets: deque[str] = deque()
        self.prompts: list[str] = []

    def is_attended(self) -> bool:
        return self.attended

    def choose(self, prompt: str, options: dict[str, str]) -> str:
        self.prompts.append(prompt)
        return self.choices.popleft()

    def ask(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.answers.popleft()

    def ask_secret(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.secrets.popleft()


class FakeClock:
    """Monotonic clock advanced only by sleep."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def path_resolver(tmp_path: Path) -> PathResolver:
    """Provide a PathResolver whose writable roots live under tmp_path.

    Templates still resolve to the packaged config_templates directory.
    """
    resolver = PathResolver()
    resolver.etc_dir = tmp_path / "etc"
    resolver.sys_dir = tmp_path / "sys"
    resolver.bin_dir = tmp_path / "bin"
    resolver.motion_log_dir = tmp_path / "log" / "motion"
    resolver.root_home = tmp_path / "root"
    return resolver


@pytest.fixture
def runner() -> FakeCommandRunner:
    runner = FakeCommandRunner()
    runner.seed("lsusb", stdout=LOGITECH_LSUSB)
    runner.seed("id", "-u", stdout="113\n")
    runner.seed("id", "-g", stdout="118\n")
    return runner


@pytest.fixture
def operator() -> FakeOperator:
    return FakeOperator()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def inspector():
    """SystemInspector mock describing a healthy, freshly imaged board."""
    inspector = create_autospec(SystemInspector, instance=True)
    inspector.is_privileged.return_value = True
    inspector.check_disk_space.return_value = (True, "Disk space is sufficient: 8000000 KB free.")
    inspector.check_memory.return_value = (True, "Memory is sufficient: 3800 MB total.")
    inspector.get_cpu_count.return_value = 4
    inspector.get_machine.return_value = "aarch64"
    inspector.is_mount_point.return_value = False
    inspector.is_port_in_use.return_value = False
    inspector.get_ip_address.return_value = "192.168.1.50"
    return inspector


@pytest.fixture
def services():
    services = create_autospec(ServiceManagementStrategy, instance=True)
    services.get_service_status.return_value = "active"
    services.is_service_present.return_value = False
    services.declare_service.return_value = True
    return services


@pytest.fixture
def host(path_resolver, runner, operator, clock, inspector, services) -> Host:
    packages = create_autospec(PackageManager, instance=True)
    packages.is_installed.return_value = False
    pip = create_autospec(PipInstaller, instance=True)
    pip.is_installed.return_value = True
    return Host(
        runner=runner,
        packages=packages,
        pip=pip,
        services=services,
        inspector=inspector,
        paths=path_resolver,
        operator=operator,
        sleep=clock.sleep,
        clock=clock,
    )


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = dict(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


@pytest.fixture
def config_factory(tmp_path: Path):
    """Build configurations whose storage and setup log live under tmp_path.

    Usage:
        config = config_factory(daemon={"web_layer": "motioneye", "web_port": 8765})
    """

    def _create_config(**sections: Any) -> SurveillanceConfig:
        base = {
            "storage": {"path": str(tmp_path / "captures")},
            "logging": {"log_file": str(tmp_path / "log" / "pi_surveillance_setup.log")},
            "remote_access": {"method": "none"},
        }
        return SurveillanceConfig.model_validate(_merge(base, sections))

    return _create_config


@pytest.fixture
def config(config_factory) -> SurveillanceConfig:
    return config_factory()
