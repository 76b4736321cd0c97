"""Provisioning stages and the pipeline that runs them.

Each stage is a plain function taking the immutable SurveillanceConfig and a
Host bundle of collaborators. Stages raise ProvisioningError subclasses;
ProvisioningPipeline turns those into a PipelineReport and an exit code.
"""

from pisurveillance.provisioning.context import Host
from pisurveillance.provisioning.operator import ClickOperator, Operator
from pisurveillance.provisioning.pipeline import PipelineReport, ProvisioningPipeline, StageResult

__all__ = [
    "ClickOperator",
    "Host",
    "Operator",
    "PipelineReport",
    "ProvisioningPipeline",
    "StageResult",
]
