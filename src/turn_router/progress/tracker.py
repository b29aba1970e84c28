"""Per-turn registry of tool executions and their lifecycle.

State machine::

    pending -> starting -> executing -> completed | failed

`completed` and `failed` are terminal: once a record reaches either, every
further mutation addressed to it is ignored.
"""

from __future__ import annotations

import logging
import re
import uuid
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from turn_router.errors import ToolReferenceError
from turn_router.types import ACTIVE_STATUSES, ToolExecutionRecord, ToolStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]
TrackerObserver = Callable[["ToolExecutionTracker"], None]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def humanize_tool_name(name: str) -> str:
    """`execute_web_search` -> `Web Search`."""
    stem = name[len("execute_") :] if name.startswith("execute_") else name
    words = [word for word in re.split(r"[_\-\s]+", stem) if word]
    if not words:
        return name
    return " ".join(word[:1].upper() + word[1:] for word in words)


class ToolExecutionTracker:
    """Tracks tool calls for the active turn.

    At most one non-terminal record exists per tool name; `start` on a name
    that is already running returns the running record's id.
    """

    def __init__(self, *, clock: Clock | None = None) -> None:
        self._records: dict[str, ToolExecutionRecord] = {}
        # Requested ids that were folded into an already running record.
        self._aliases: dict[str, str] = {}
        self._clock = clock or _utcnow
        self._observer: TrackerObserver | None = None

    def set_observer(self, observer: TrackerObserver | None) -> None:
        """Set an optional callback invoked after each state change."""
        self._observer = observer

    @property
    def records(self) -> list[ToolExecutionRecord]:
        """Snapshot of all records in start order."""
        return [replace(record, parameters=dict(record.parameters)) for record in self._records.values()]

    @property
    def is_active(self) -> bool:
        return any(record.status in ACTIVE_STATUSES for record in self._records.values())

    def get(self, tool_id: str) -> ToolExecutionRecord | None:
        record = self._lookup(tool_id)
        if record is None:
            return None
        return replace(record, parameters=dict(record.parameters))

    def start(
        self,
        name: str,
        display_name: str | None = None,
        parameters: dict[str, Any] | None = None,
        *,
        tool_id: str | None = None,
        start_time: datetime | None = None,
    ) -> str:
        if tool_id is not None:
            known = self._lookup(tool_id)
            if known is not None:
                return known.id

        running = self._find_running(name)
        if running is not None:
            logger.debug("Tool %s already running as %s", name, running.id)
            if tool_id is not None:
                self._aliases[tool_id] = running.id
            return running.id

        record = ToolExecutionRecord(
            id=tool_id or f"tool-{uuid.uuid4().hex[:12]}",
            name=name,
            display_name=display_name or humanize_tool_name(name),
            status=ToolStatus.STARTING,
            start_time=start_time or self._clock(),
            parameters=dict(parameters or {}),
            progress=0.0,
        )
        self._records[record.id] = record
        logger.info("Started tool %s (%s)", name, record.id)
        self._notify()
        return record.id

    def update(
        self,
        tool_id: str,
        *,
        progress: float | None = None,
        parameters: dict[str, Any] | None = None,
        status: ToolStatus | None = None,
    ) -> None:
        """Mutate a running record. Unknown or terminal ids are ignored.

        `progress` is clamped to [0, 100] and replaces the current value.
        `status` only moves forward through the non-terminal states; use
        `complete`/`fail` for terminal transitions.
        """
        if status is not None and status.is_terminal:
            raise ValueError("Use complete() or fail() for terminal transitions")

        record = self._lookup(tool_id)
        if record is None or record.is_terminal:
            return

        changed = False
        if status is not None and ACTIVE_STATUSES.index(status) > ACTIVE_STATUSES.index(
            record.status
        ):
            record.status = status
            changed = True
        if progress is not None:
            clamped = min(max(float(progress), 0.0), 100.0)
            if clamped != record.progress:
                record.progress = clamped
                changed = True
        if parameters is not None:
            merged = {**record.parameters, **parameters}
            if merged != record.parameters:
                record.parameters = merged
                changed = True

        if changed:
            logger.debug("Updated tool %s: status=%s progress=%s", tool_id, record.status.value, record.progress)
            self._notify()

    def complete(
        self,
        tool_id: str,
        result: Any = None,
        *,
        name: str | None = None,
        display_name: str | None = None,
        parameters: dict[str, Any] | None = None,
        end_time: datetime | None = None,
    ) -> str:
        """Mark a call completed and return the id actually transitioned.

        An unknown id is first started under `name`, so a completion never
        shows up without a matching start.
        """
        record = self._resolve(tool_id, name, display_name, parameters)
        if record.is_terminal:
            return record.id
        record.status = ToolStatus.COMPLETED
        record.end_time = end_time or self._clock()
        record.result = result
        record.progress = 100.0
        logger.info("Completed tool %s (%s)", record.name, record.id)
        self._notify()
        return record.id

    def fail(
        self,
        tool_id: str,
        error: str,
        *,
        name: str | None = None,
        display_name: str | None = None,
        parameters: dict[str, Any] | None = None,
        end_time: datetime | None = None,
    ) -> str:
        """Mark a call failed; same compensation rules as `complete`."""
        record = self._resolve(tool_id, name, display_name, parameters)
        if record.is_terminal:
            return record.id
        record.status = ToolStatus.FAILED
        record.end_time = end_time or self._clock()
        record.error = error
        logger.warning("Tool %s (%s) failed: %s", record.name, record.id, error)
        self._notify()
        return record.id

    def clear(self) -> None:
        if not self._records:
            return
        logger.info("Clearing %d tool records", len(self._records))
        self._records.clear()
        self._aliases.clear()
        self._notify()

    def _resolve(
        self,
        tool_id: str,
        name: str | None,
        display_name: str | None,
        parameters: dict[str, Any] | None,
    ) -> ToolExecutionRecord:
        record = self._lookup(tool_id)
        if record is not None:
            return record
        if name is None:
            raise ToolReferenceError(tool_id)
        logger.info("Terminal event for unknown tool id %s, starting %s first", tool_id, name)
        started_id = self.start(name, display_name, parameters, tool_id=tool_id)
        return self._records[started_id]

    def _lookup(self, tool_id: str) -> ToolExecutionRecord | None:
        record = self._records.get(tool_id)
        if record is None and tool_id in self._aliases:
            record = self._records.get(self._aliases[tool_id])
        return record

    def _find_running(self, name: str) -> ToolExecutionRecord | None:
        for record in self._records.values():
            if record.name == name and not record.is_terminal:
                return record
        return None

    def _notify(self) -> None:
        if self._observer is not None:
            self._observer(self)
