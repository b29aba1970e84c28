"""Wire envelopes for tool-status events embedded in conversation messages.

A `tool-executing` message carries a JSON object such as::

    {"toolName": "web-search", "status": "executing", "progress": 40}

Envelopes are validated into a union keyed on `status`. Anything that does not
validate is rejected here and never reaches the tracker.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    field_validator,
)

from turn_router.errors import ToolEventParseError


class _ToolEventBase(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", coerce_numbers_to_str=True)

    tool_name: str = Field(
        min_length=1, validation_alias=AliasChoices("toolName", "name", "tool_name")
    )
    display_name: str | None = Field(
        default=None, validation_alias=AliasChoices("displayName", "display_name")
    )
    parameters: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("parameters", "params")
    )
    call_id: str | None = Field(
        default=None, validation_alias=AliasChoices("id", "toolCallId", "tool_call_id")
    )
    start_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("startTime", "start_time")
    )

    @field_validator("parameters", mode="before")
    @classmethod
    def _null_parameters(cls, value: Any) -> Any:
        return {} if value is None else value


class ToolExecutingEvent(_ToolEventBase):
    status: Literal["executing"]
    progress: float | None = Field(default=None, ge=0.0, le=100.0)


class ToolCompletedEvent(_ToolEventBase):
    status: Literal["completed"]
    result: Any = None
    end_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("endTime", "end_time")
    )


class ToolFailedEvent(_ToolEventBase):
    status: Literal["failed"]
    error: str = "Tool execution failed"
    end_time: datetime | None = Field(
        default=None, validation_alias=AliasChoices("endTime", "end_time")
    )


ToolEvent = Annotated[
    Union[ToolExecutingEvent, ToolCompletedEvent, ToolFailedEvent],
    Field(discriminator="status"),
]

_TOOL_EVENT_ADAPTER: TypeAdapter[ToolEvent] = TypeAdapter(ToolEvent)


def parse_tool_event(content: Any) -> ToolExecutingEvent | ToolCompletedEvent | ToolFailedEvent:
    """Decode one message body into a tool event or raise `ToolEventParseError`."""
    if not isinstance(content, str):
        raise ToolEventParseError(f"content is {type(content).__name__}, not a string")
    text = content.strip()
    if not text.startswith("{"):
        raise ToolEventParseError(f"content is not a JSON object: {text[:80]!r}")
    try:
        payload = json.loads(text)
    except ValueError as exc:
        raise ToolEventParseError(f"invalid JSON: {exc}") from exc
    try:
        return _TOOL_EVENT_ADAPTER.validate_python(payload)
    except ValidationError as exc:
        raise ToolEventParseError(
            f"invalid tool event ({exc.error_count()} errors): {payload!r}"
        ) from exc
