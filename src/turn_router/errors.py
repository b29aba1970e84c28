"""Error taxonomy for classification and tool progress tracking.

None of these escape the public entry points except `ToolReferenceError`,
which signals a caller bug (a terminal transition for an unknown id with no
tool name to compensate with).
"""

from __future__ import annotations


class TurnRouterError(Exception):
    """Base class for all turn router errors."""


class ClassificationTransportError(TurnRouterError):
    """The model invoker failed, timed out, or is not configured."""


class ClassificationFormatError(TurnRouterError):
    """The model answered, but not with a usable classification."""


class ToolEventParseError(TurnRouterError):
    """A tool-status message could not be turned into a valid event."""


class ToolReferenceError(TurnRouterError, KeyError):
    """A terminal transition referenced an unknown tool execution id."""
