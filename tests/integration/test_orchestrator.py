import json

import pytest

from turn_router.agent.classifier import ComplexityClassifier
from turn_router.agent.orchestrator import ConversationOrchestrator, ResponsePath
from turn_router.obs.tracing import DecisionLog
from turn_router.types import ClassificationStage, ToolStatus


@pytest.mark.asyncio
async def test_turn_routes_and_tracks_tool_progress(simple_invoker) -> None:
    log = DecisionLog()
    orchestrator = ConversationOrchestrator(
        classifier=ComplexityClassifier(model_invoker=simple_invoker, decision_log=log),
    )

    direct = await orchestrator.plan_turn("What is the capital of France?")
    loop = await orchestrator.plan_turn("What are the biggest M&A deals of 2025?")

    assert direct.path is ResponsePath.DIRECT
    assert loop.path is ResponsePath.LEARNING_LOOP
    assert loop.decision.stage is ClassificationStage.HEURISTIC
    assert len(simple_invoker.calls) == 1
    assert log.summary()["total_decisions"] == 2

    messages = [
        {"role": "user", "content": "What are the biggest M&A deals of 2025?"},
        {
            "role": "tool",
            "messageType": "tool-executing",
            "content": json.dumps({"toolName": "web-search", "status": "executing", "progress": 30}),
        },
    ]
    snapshot = orchestrator.observe(messages)
    assert snapshot.is_active
    assert snapshot.records[0].status is ToolStatus.EXECUTING

    messages.append(
        {
            "role": "tool",
            "messageType": "tool-executing",
            "content": json.dumps({"toolName": "web-search", "status": "completed", "result": ["deal"]}),
        }
    )
    snapshot = orchestrator.observe(messages)
    assert not snapshot.is_active
    assert [record.status for record in snapshot.records] == [ToolStatus.COMPLETED]
    assert orchestrator.snapshot().records == snapshot.records
