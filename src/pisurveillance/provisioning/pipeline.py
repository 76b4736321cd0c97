"""Pipeline driver: runs the stages in order and decides what a failure means."""

import logging
from collections.abc import Callable
from contextlib import ExitStack
from dataclasses import dataclass, field
from typing import Any

from pisurveillance.config.models import SurveillanceConfig
from pisurveillance.errors import ProvisioningError
from pisurveillance.provisioning.camera import verify_camera
from pisurveillance.provisioning.context import Host
from pisurveillance.provisioning.dependencies import install_dependencies
from pisurveillance.provisioning.hardening import harden_system
from pisurveillance.provisioning.motion_service import configure_service
from pisurveillance.provisioning.preflight import run_preflight
from pisurveillance.provisioning.remote_access import (
    SOFT_ERRORS,
    RemoteAccessResult,
    configure_remote_access,
)
from pisurveillance.provisioning.storage import configure_storage
from pisurveillance.provisioning.summary import AccessSummary, build_summary, log_summary

logger = logging.getLogger(__name__)

STAGE_TITLES = {
    "preflight": "Preflight checks",
    "camera": "Verifying USB webcam",
    "dependencies": "Installing dependencies",
    "storage": "Configuring storage",
    "service": "Configuring motion service",
    "remote_access": "Configuring remote access",
    "hardening": "Applying security hardening",
    "summary": "Access summary",
}


@dataclass
class StageResult:
    """Outcome of a single stage."""

    stage: str
    ok: bool
    message: str = ""
    error: Exception | None = None
    fatal: bool = True


@dataclass
class PipelineReport:
    """Outcome of a full run."""

    results: list[StageResult] = field(default_factory=list)
    exit_code: int = 0
    summary: AccessSummary | None = None

    @property
    def halted(self) -> bool:
        return any(not result.ok and result.fatal for result in self.results)

    @property
    def failed_stage(self) -> str | None:
        for result in self.results:
            if not result.ok and result.fatal:
                return result.stage
        return None

    @property
    def warnings(self) -> list[StageResult]:
        return [result for result in self.results if not result.ok and not result.fatal]


class ProvisioningPipeline:
    """Run the provisioning stages against a host.

    Hard stages stop the run on the first ProvisioningError. Remote access is
    soft: its failures are logged as warnings and the run continues. The
    scratch workspace acquired by preflight is removed however the run ends.
    """

    def __init__(self, config: SurveillanceConfig, host: Host) -> None:
        self.config = config
        self.host = host
        self.report = PipelineReport()

    def _announce(self, stage: str) -> None:
        position = list(STAGE_TITLES).index(stage) + 1
        logger.info("[%d/%d] %s...", position, len(STAGE_TITLES), STAGE_TITLES[stage])

    def _run_stage(self, stage: str, action: Callable[[], Any]) -> Any:
        self._announce(stage)
        try:
            value = action()
        except ProvisioningError as e:
            logger.error("%s failed: %s", STAGE_TITLES[stage], e)
            if e.hint:
                logger.error("Hint: %s", e.hint)
            self.report.results.append(StageResult(stage, False, str(e), e))
            self.report.exit_code = 1
            return None
        self.report.results.append(StageResult(stage, True))
        return value

    def _run_soft_stage(self, stage: str, action: Callable[[], Any]) -> Any:
        self._announce(stage)
        try:
            value = action()
        except SOFT_ERRORS as e:
            logger.warning("%s failed: %s; continuing without it", STAGE_TITLES[stage], e)
            if isinstance(e, ProvisioningError) and e.hint:
                logger.warning("Hint: %s", e.hint)
            self.report.results.append(StageResult(stage, False, str(e), e, fatal=False))
            return None
        self.report.results.append(StageResult(stage, True))
        return value

    def run(self) -> PipelineReport:
        """Run every stage in order and return the report."""
        config, host = self.config, self.host
        with ExitStack() as stack:
            workspace = self._run_stage(
                "preflight", lambda: stack.enter_context(run_preflight(config, host))
            )
            if self.report.halted:
                return self.report

            for stage, action in (
                ("camera", verify_camera),
                ("dependencies", install_dependencies),
                ("storage", configure_storage),
                ("service", configure_service),
            ):
                self._run_stage(stage, lambda action=action: action(config, host))
                if self.report.halted:
                    return self.report

            remote = self._run_soft_stage(
                "remote_access", lambda: configure_remote_access(config, host, workspace)
            )
            if remote is None:
                remote = RemoteAccessResult(method="none")

            self._run_stage("hardening", lambda: harden_system(config, host))
            if self.report.halted:
                return self.report

            self._announce("summary")
            summary = build_summary(config, host, remote)
            log_summary(summary)
            self.report.summary = summary
            self.report.results.append(StageResult("summary", True))
        return self.report
