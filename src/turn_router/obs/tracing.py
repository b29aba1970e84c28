"""Decision tracing and latency accounting for the classifier."""

from __future__ import annotations

import time
import uuid
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone

from turn_router.types import Classification, ClassificationStage, ComplexityDecision


@dataclass(slots=True)
class DecisionTrace:
    trace_id: str
    timestamp_utc: str
    message: str
    classification: Classification
    reasoning: str
    confidence: float
    stage: ClassificationStage
    model_called: bool
    latency_ms: float


class DecisionLog:
    """In-memory store of classification decisions for API-level observability.

    Only the most recent `max_records` traces are kept.
    """

    def __init__(self, *, max_records: int = 1000) -> None:
        self._records: dict[str, DecisionTrace] = {}
        self._max_records = max_records

    def record(
        self,
        *,
        message: str,
        decision: ComplexityDecision,
        model_called: bool,
        latency_ms: float,
    ) -> DecisionTrace:
        trace = DecisionTrace(
            trace_id=str(uuid.uuid4()),
            timestamp_utc=datetime.now(timezone.utc).isoformat(),
            message=message,
            classification=decision.classification,
            reasoning=decision.reasoning,
            confidence=decision.confidence,
            stage=decision.stage,
            model_called=model_called,
            latency_ms=latency_ms,
        )
        self._records[trace.trace_id] = trace
        while len(self._records) > self._max_records:
            del self._records[next(iter(self._records))]
        return trace

    def get(self, trace_id: str) -> DecisionTrace:
        trace = self._records.get(trace_id)
        if trace is None:
            raise KeyError(f"Trace not found: {trace_id}")
        return trace

    def list_recent(self, limit: int = 20) -> list[DecisionTrace]:
        if limit <= 0:
            return []
        return list(self._records.values())[-limit:]

    def summary(self) -> dict[str, float | int]:
        """Aggregate routing metrics for dashboard display."""
        records = list(self._records.values())
        total = len(records)
        by_class = Counter(record.classification for record in records)
        by_stage = Counter(record.stage for record in records)

        summary: dict[str, float | int] = {
            "total_decisions": total,
            "simple_count": by_class[Classification.SIMPLE],
            "complex_count": by_class[Classification.COMPLEX],
            "model_calls": sum(1 for record in records if record.model_called),
        }
        for stage in ClassificationStage:
            summary[f"{stage.value}_count"] = by_stage[stage]

        if total == 0:
            summary["avg_latency_ms"] = 0.0
            summary["p95_latency_ms"] = 0.0
            return summary

        latencies = sorted(record.latency_ms for record in records)
        p95_index = max(0, int((len(latencies) * 0.95) - 1))
        summary["avg_latency_ms"] = sum(latencies) / total
        summary["p95_latency_ms"] = latencies[p95_index]
        return summary


class Timer:
    """Simple context timer used around classification."""

    def __init__(self) -> None:
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> "Timer":
        self._start = time.perf_counter()
        return self

    def __exit__(self, exc_type: object, exc: object, tb: object) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000.0
