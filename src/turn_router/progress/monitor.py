"""Keeps a tracker in sync with a conversation's message log."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any

from turn_router.config import TrackerConfig
from turn_router.progress.parser import ConversationMessage, MessageStreamParser, ParseReport
from turn_router.progress.tracker import ToolExecutionTracker
from turn_router.types import ToolExecutionRecord

logger = logging.getLogger(__name__)


class ToolProgressMonitor:
    """Owns the tracker/parser pair for one conversation.

    Call `sync` with the full log whenever it changes. A log without any user
    message is a fresh session and wipes the tracker before replaying.
    """

    def __init__(
        self,
        tracker: ToolExecutionTracker | None = None,
        *,
        config: TrackerConfig | None = None,
    ) -> None:
        self.config = config or TrackerConfig()
        self.tracker = tracker or ToolExecutionTracker()
        self.parser = MessageStreamParser(self.tracker, config=self.config)

    @property
    def records(self) -> list[ToolExecutionRecord]:
        return self.tracker.records

    @property
    def is_active(self) -> bool:
        return self.tracker.is_active

    def sync(self, messages: Sequence[ConversationMessage | Mapping[str, Any]]) -> ParseReport:
        if not any(_role(message) == self.config.user_role for message in messages):
            logger.debug("No user message in context, clearing tool progress")
            self.tracker.clear()
        return self.parser.parse(messages)


def _role(message: ConversationMessage | Mapping[str, Any]) -> str | None:
    if isinstance(message, ConversationMessage):
        return message.role
    if isinstance(message, Mapping):
        return message.get("role")
    return None
