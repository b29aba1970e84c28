"""Glue between the classifier, the tool progress monitor and the responder."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Any

from turn_router.agent.classifier import (
    ComplexityClassifier,
    HistoryItem,
    should_use_learning_loop,
)
from turn_router.config import ModelSettings
from turn_router.progress.monitor import ToolProgressMonitor
from turn_router.progress.parser import ConversationMessage, ParseReport
from turn_router.types import ComplexityDecision, ToolExecutionRecord


class ResponsePath(str, Enum):
    DIRECT = "direct"
    LEARNING_LOOP = "learning_loop"


@dataclass(slots=True, frozen=True)
class TurnPlan:
    decision: ComplexityDecision
    path: ResponsePath


@dataclass(slots=True)
class ProgressSnapshot:
    records: list[ToolExecutionRecord]
    is_active: bool
    report: ParseReport | None = None


class ConversationOrchestrator:
    """Picks a response path per turn and exposes live tool progress."""

    def __init__(
        self,
        *,
        classifier: ComplexityClassifier,
        monitor: ToolProgressMonitor | None = None,
    ) -> None:
        self.classifier = classifier
        self.monitor = monitor or ToolProgressMonitor()

    async def plan_turn(
        self,
        message: str,
        history: Sequence[HistoryItem] | None = None,
        model_settings: ModelSettings | None = None,
    ) -> TurnPlan:
        decision = await self.classifier.classify(
            message,
            history or [],
            model_settings=model_settings,
        )
        path = ResponsePath.LEARNING_LOOP if should_use_learning_loop(decision) else ResponsePath.DIRECT
        return TurnPlan(decision=decision, path=path)

    def observe(
        self, messages: Sequence[ConversationMessage | Mapping[str, Any]]
    ) -> ProgressSnapshot:
        report = self.monitor.sync(messages)
        return ProgressSnapshot(
            records=self.monitor.records,
            is_active=self.monitor.is_active,
            report=report,
        )

    def snapshot(self) -> ProgressSnapshot:
        return ProgressSnapshot(records=self.monitor.records, is_active=self.monitor.is_active)
