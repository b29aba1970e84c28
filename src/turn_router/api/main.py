"""FastAPI entrypoint for classification, tool progress and trace endpoints."""

from __future__ import annotations

from dataclasses import asdict
from typing import Any

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, Field

from turn_router.agent.classifier import ComplexityClassifier
from turn_router.agent.invoker import create_default_invoker
from turn_router.agent.orchestrator import ConversationOrchestrator, ProgressSnapshot
from turn_router.config import ClassifierConfig, ModelSettings, TrackerConfig
from turn_router.obs.tracing import DecisionLog
from turn_router.progress.monitor import ToolProgressMonitor
from turn_router.progress.parser import ConversationMessage


class HistoryTurn(BaseModel):
    role: str
    content: str


class ClassifyRequest(BaseModel):
    message: str = Field(min_length=1)
    recent_history: list[HistoryTurn] = Field(default_factory=list, max_length=3)
    model_settings: ModelSettings | None = None


class SyncRequest(BaseModel):
    messages: list[ConversationMessage] = Field(default_factory=list)


app = FastAPI(title="Turn Router", version="0.1.0")

_decision_log = DecisionLog()
_invoker = create_default_invoker()
_classifier = ComplexityClassifier(
    model_invoker=_invoker,
    config=ClassifierConfig(),
    decision_log=_decision_log,
)
_orchestrator = ConversationOrchestrator(
    classifier=_classifier,
    monitor=ToolProgressMonitor(config=TrackerConfig()),
)


def _progress_payload(snapshot: ProgressSnapshot) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "records": [asdict(record) for record in snapshot.records],
        "is_active": snapshot.is_active,
    }
    if snapshot.report is not None:
        payload["applied"] = snapshot.report.applied
        payload["skipped"] = snapshot.report.skipped
    return payload


@app.get("/health")
def health() -> dict[str, Any]:
    return {
        "status": "ok",
        "llm_configured": _invoker is not None,
        "classifier_mode": "model" if _invoker is not None else "heuristic",
        "trace_count": _decision_log.summary()["total_decisions"],
    }


@app.post("/classify")
async def classify(request: ClassifyRequest) -> dict[str, Any]:
    plan = await _orchestrator.plan_turn(
        request.message,
        [turn.model_dump() for turn in request.recent_history],
        model_settings=request.model_settings,
    )
    return {
        "classification": plan.decision.classification.value,
        "reasoning": plan.decision.reasoning,
        "confidence": plan.decision.confidence,
        "stage": plan.decision.stage.value,
        "path": plan.path.value,
    }


@app.post("/tools/sync")
def sync_tools(request: SyncRequest) -> dict[str, Any]:
    return _progress_payload(_orchestrator.observe(request.messages))


@app.get("/tools")
def tools() -> dict[str, Any]:
    return _progress_payload(_orchestrator.snapshot())


@app.delete("/tools")
def clear_tools() -> dict[str, Any]:
    _orchestrator.monitor.tracker.clear()
    return _progress_payload(_orchestrator.snapshot())


@app.get("/traces")
def traces(limit: int = 20) -> dict[str, Any]:
    records = [asdict(record) for record in _decision_log.list_recent(limit=limit)]
    return {"items": records}


@app.get("/traces/{trace_id}")
def trace_detail(trace_id: str) -> dict[str, Any]:
    try:
        record = _decision_log.get(trace_id)
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return asdict(record)


@app.get("/metrics")
def metrics() -> dict[str, Any]:
    return _decision_log.summary()
