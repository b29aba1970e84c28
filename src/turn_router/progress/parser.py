"""Replays tool-status events from the conversation log into a tracker."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from turn_router.config import TrackerConfig
from turn_router.errors import ToolEventParseError
from turn_router.progress.events import (
    ToolCompletedEvent,
    ToolExecutingEvent,
    ToolFailedEvent,
    parse_tool_event,
)
from turn_router.progress.tracker import ToolExecutionTracker
from turn_router.types import ToolStatus

logger = logging.getLogger(__name__)


class ConversationMessage(BaseModel):
    """A message from the conversation log as delivered by the store."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    id: str | None = None
    role: str = ""
    content: Any = ""
    message_type: str | None = Field(default=None, alias="messageType")


@dataclass(slots=True)
class ParseReport:
    """Outcome of one pass over the log."""

    applied: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)


class MessageStreamParser:
    """Drives a `ToolExecutionTracker` from `tool-executing` messages.

    The whole log is replayed on every call. Each tool call gets a correlation
    id that depends only on its position in the log (the envelope id when
    present, otherwise `<tool name>:<n>` for the n-th call of that tool), so a
    replay addresses the same records and the tracker turns it into a no-op.
    """

    def __init__(
        self,
        tracker: ToolExecutionTracker,
        *,
        config: TrackerConfig | None = None,
    ) -> None:
        self.tracker = tracker
        self.config = config or TrackerConfig()

    def parse(self, messages: Iterable[ConversationMessage | Mapping[str, Any]]) -> ParseReport:
        report = ParseReport()
        open_calls: dict[str, str] = {}
        call_counts: dict[str, int] = {}

        for index, raw in enumerate(messages):
            try:
                message = _coerce_message(raw)
            except ToolEventParseError as exc:
                self._skip(report, index, exc)
                continue
            if message.message_type != self.config.message_type:
                continue
            try:
                event = parse_tool_event(message.content)
            except ToolEventParseError as exc:
                self._skip(report, index, exc)
                continue

            if isinstance(event, ToolExecutingEvent):
                self._apply_executing(event, open_calls, call_counts)
            else:
                self._apply_terminal(event, open_calls, call_counts)
            report.applied += 1

        return report

    def _apply_executing(
        self,
        event: ToolExecutingEvent,
        open_calls: dict[str, str],
        call_counts: dict[str, int],
    ) -> None:
        name = event.tool_name
        call_id = open_calls.get(name)
        if call_id is None or (event.call_id is not None and event.call_id != call_id):
            call_id = event.call_id or _next_call_id(name, call_counts)
            call_id = self.tracker.start(
                name,
                event.display_name,
                event.parameters,
                tool_id=call_id,
                start_time=event.start_time,
            )
            open_calls[name] = call_id

        self.tracker.update(
            call_id,
            status=ToolStatus.EXECUTING,
            progress=event.progress,
            parameters=event.parameters or None,
        )

    def _apply_terminal(
        self,
        event: ToolCompletedEvent | ToolFailedEvent,
        open_calls: dict[str, str],
        call_counts: dict[str, int],
    ) -> None:
        name = event.tool_name
        call_id = event.call_id or open_calls.get(name) or _next_call_id(name, call_counts)
        if open_calls.get(name) == call_id:
            del open_calls[name]

        if isinstance(event, ToolCompletedEvent):
            self.tracker.complete(
                call_id,
                event.result,
                name=name,
                display_name=event.display_name,
                parameters=event.parameters,
                end_time=event.end_time,
            )
        else:
            self.tracker.fail(
                call_id,
                event.error,
                name=name,
                display_name=event.display_name,
                parameters=event.parameters,
                end_time=event.end_time,
            )

    @staticmethod
    def _skip(report: ParseReport, index: int, exc: ToolEventParseError) -> None:
        report.skipped += 1
        report.errors.append(f"message {index}: {exc}")
        logger.warning("Skipping tool message %d: %s", index, exc)


def _next_call_id(name: str, call_counts: dict[str, int]) -> str:
    count = call_counts.get(name, 0) + 1
    call_counts[name] = count
    return f"{name}:{count}"


def _coerce_message(raw: ConversationMessage | Mapping[str, Any]) -> ConversationMessage:
    if isinstance(raw, ConversationMessage):
        return raw
    try:
        return ConversationMessage.model_validate(raw)
    except ValidationError as exc:
        raise ToolEventParseError(f"malformed message: {exc.error_count()} errors") from exc
