import asyncio
from datetime import datetime, timedelta, timezone
from typing import Any

import pytest

SIMPLE_REPLY = '{"classification": "SIMPLE", "reasoning": "general knowledge", "confidence": 0.9}'
COMPLEX_REPLY = '{"classification": "COMPLEX", "reasoning": "needs research", "confidence": 0.8}'


class StubInvoker:
    """Model invoker returning a canned reply and recording every call."""

    def __init__(self, reply: str = SIMPLE_REPLY, *, error: Exception | None = None, delay: float = 0.0) -> None:
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls: list[dict[str, Any]] = []

    async def __call__(self, messages, *, temperature, max_tokens, settings=None) -> str:
        self.calls.append(
            {
                "messages": list(messages),
                "temperature": temperature,
                "max_tokens": max_tokens,
                "settings": settings,
            }
        )
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class FakeClock:
    """Deterministic clock advancing one second per reading."""

    def __init__(self) -> None:
        self.now = datetime(2025, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def make_invoker():
    return StubInvoker


@pytest.fixture
def simple_invoker() -> StubInvoker:
    return StubInvoker(SIMPLE_REPLY)


@pytest.fixture
def complex_invoker() -> StubInvoker:
    return StubInvoker(COMPLEX_REPLY)


@pytest.fixture
def failing_invoker() -> StubInvoker:
    return StubInvoker(error=ConnectionError("model proxy unreachable"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
