"""pi-surveillance configuration package.

This package provides the immutable pipeline configuration:
- Pydantic models for every stage's tunables
- YAML loading with validation
- Bundled presets for the motion and motionEye variants
"""

from .manager import ConfigManager
from .models import SurveillanceConfig

__all__ = [
    "ConfigManager",
    "SurveillanceConfig",
]
