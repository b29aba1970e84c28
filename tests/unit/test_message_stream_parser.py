import json

from turn_router.progress.monitor import ToolProgressMonitor
from turn_router.progress.parser import ConversationMessage, MessageStreamParser
from turn_router.progress.tracker import ToolExecutionTracker
from turn_router.types import ToolStatus


def _tool_message(**payload) -> dict:
    return {"role": "tool", "messageType": "tool-executing", "content": json.dumps(payload)}


def _user(content: str = "Find the latest AI news") -> dict:
    return {"role": "user", "content": content}


def test_non_json_content_is_skipped_without_mutation() -> None:
    tracker = ToolExecutionTracker()
    parser = MessageStreamParser(tracker)

    report = parser.parse(
        [{"role": "tool", "messageType": "tool-executing", "content": "not-json"}]
    )

    assert tracker.records == []
    assert report.skipped == 1
    assert report.applied == 0


def test_executing_then_completed_yields_single_record() -> None:
    tracker = ToolExecutionTracker()
    parser = MessageStreamParser(tracker)

    parser.parse(
        [
            _user(),
            _tool_message(toolName="web-search", status="executing", displayName="Web Search", parameters={"q": "ai"}),
            _tool_message(toolName="web-search", status="executing", progress=50),
            _tool_message(toolName="web-search", status="completed", result={"hits": 4}),
        ]
    )

    [record] = tracker.records
    assert record.status is ToolStatus.COMPLETED
    assert record.display_name == "Web Search"
    assert record.parameters == {"q": "ai"}
    assert record.result == {"hits": 4}
    assert record.end_time is not None
    assert not tracker.is_active


def test_replaying_the_log_is_a_no_op(clock) -> None:
    tracker = ToolExecutionTracker(clock=clock)
    parser = MessageStreamParser(tracker)
    log = [
        _user(),
        _tool_message(toolName="web-search", status="executing"),
        _tool_message(toolName="web-search", status="completed", result="ok"),
        _tool_message(toolName="web-search", status="executing"),
        _tool_message(name="github-tools", status="failed", error="rate limited"),
    ]

    parser.parse(log)
    first_pass = tracker.records
    parser.parse(log)
    parser.parse(log)

    assert tracker.records == first_pass
    assert [(r.name, r.status) for r in first_pass] == [
        ("web-search", ToolStatus.COMPLETED),
        ("web-search", ToolStatus.EXECUTING),
        ("github-tools", ToolStatus.FAILED),
    ]


def test_growing_log_advances_the_same_record() -> None:
    tracker = ToolExecutionTracker()
    parser = MessageStreamParser(tracker)
    log = [_user(), _tool_message(toolName="web-search", status="executing", progress=10)]

    parser.parse(log)
    assert tracker.records[0].status is ToolStatus.EXECUTING
    assert tracker.is_active

    log.append(_tool_message(toolName="web-search", status="executing", progress=60))
    parser.parse(log)
    assert tracker.records[0].progress == 60.0

    log.append(_tool_message(toolName="web-search", status="completed"))
    parser.parse(log)

    [record] = tracker.records
    assert record.status is ToolStatus.COMPLETED
    assert not tracker.is_active


def test_terminal_event_without_start_is_compensated() -> None:
    tracker = ToolExecutionTracker()
    parser = MessageStreamParser(tracker)

    parser.parse([_user(), _tool_message(toolName="knowledge-search", status="completed", result=[1])])

    [record] = tracker.records
    assert record.name == "knowledge-search"
    assert record.display_name == "Knowledge Search"
    assert record.status is ToolStatus.COMPLETED


def test_envelope_aliases_and_call_ids() -> None:
    tracker = ToolExecutionTracker()
    parser = MessageStreamParser(tracker)

    parser.parse(
        [
            _user(),
            _tool_message(name="web-search", status="executing", params={"q": "x"}, toolCallId="call_1"),
            _tool_message(name="web-search", status="completed", id="call_1", endTime="2025-03-01T10:00:00Z"),
        ]
    )

    [record] = tracker.records
    assert record.id == "call_1"
    assert record.parameters == {"q": "x"}
    assert record.end_time.year == 2025


def test_folded_call_ids_replay_cleanly() -> None:
    tracker = ToolExecutionTracker()
    parser = MessageStreamParser(tracker)
    log = [
        _user(),
        _tool_message(toolName="web-search", status="executing", id="a"),
        _tool_message(toolName="web-search", status="executing", id="b"),
        _tool_message(toolName="web-search", status="completed", id="b"),
    ]

    parser.parse(log)
    parser.parse(log)

    [record] = tracker.records
    assert record.id == "a"
    assert record.status is ToolStatus.COMPLETED


def test_invalid_envelopes_are_skipped_and_rest_processed() -> None:
    tracker = ToolExecutionTracker()
    parser = MessageStreamParser(tracker)

    report = parser.parse(
        [
            _user(),
            _tool_message(toolName="web-search", status="paused"),
            _tool_message(status="executing"),
            _tool_message(toolName="web-search", status="executing", progress=150),
            {"role": "tool", "messageType": "tool-executing", "content": "{broken"},
            _tool_message(toolName="jira-tools", status="executing"),
        ]
    )

    assert report.skipped == 4
    assert report.applied == 1
    assert [record.name for record in tracker.records] == ["jira-tools"]


def test_other_message_types_are_ignored() -> None:
    tracker = ToolExecutionTracker()
    parser = MessageStreamParser(tracker)

    report = parser.parse(
        [
            ConversationMessage(role="assistant", content=json.dumps({"toolName": "x", "status": "executing"}), message_type="response"),
            ConversationMessage(role="assistant", content="Here is your answer."),
        ]
    )

    assert tracker.records == []
    assert report.skipped == 0


def test_monitor_clears_on_fresh_session() -> None:
    monitor = ToolProgressMonitor()
    monitor.sync([_user(), _tool_message(toolName="web-search", status="executing")])
    assert monitor.is_active

    monitor.sync([])

    assert monitor.records == []
    assert monitor.is_active is False


def test_monitor_keeps_records_while_user_message_present() -> None:
    monitor = ToolProgressMonitor()
    log = [_user(), _tool_message(toolName="web-search", status="executing")]
    monitor.sync(log)

    monitor.sync(log + [{"role": "assistant", "content": "Searching..."}])

    assert len(monitor.records) == 1
