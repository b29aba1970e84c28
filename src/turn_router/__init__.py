"""Turn router package: query complexity routing and tool progress tracking."""

from .config import ClassifierConfig, ModelSettings, TrackerConfig
from .types import ComplexityDecision, ToolExecutionRecord

__all__ = [
    "ClassifierConfig",
    "ComplexityDecision",
    "ModelSettings",
    "ToolExecutionRecord",
    "TrackerConfig",
]
