"""Shared domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Classification(str, Enum):
    SIMPLE = "SIMPLE"
    COMPLEX = "COMPLEX"


class ClassificationStage(str, Enum):
    """Which classifier stage produced a decision."""

    HEURISTIC = "heuristic"
    MODEL = "model"
    SAFETY_NET = "safety_net"
    FALLBACK = "fallback"


class ToolStatus(str, Enum):
    PENDING = "pending"
    STARTING = "starting"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ToolStatus.COMPLETED, ToolStatus.FAILED)


# Forward order of the non-terminal states.
ACTIVE_STATUSES: tuple[ToolStatus, ...] = (
    ToolStatus.PENDING,
    ToolStatus.STARTING,
    ToolStatus.EXECUTING,
)


@dataclass(slots=True, frozen=True)
class ComplexityDecision:
    """Outcome of classifying one user turn."""

    classification: Classification
    reasoning: str
    confidence: float
    stage: ClassificationStage = ClassificationStage.MODEL

    @property
    def is_complex(self) -> bool:
        return self.classification is Classification.COMPLEX


@dataclass(slots=True)
class ToolExecutionRecord:
    """Live state of a single tool invocation within a turn."""

    id: str
    name: str
    display_name: str
    status: ToolStatus
    start_time: datetime
    parameters: dict[str, Any] = field(default_factory=dict)
    end_time: datetime | None = None
    result: Any = None
    error: str | None = None
    progress: float | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal


@dataclass(slots=True)
class Turn:
    """One prior conversation message used as classifier context."""

    role: str
    content: str
