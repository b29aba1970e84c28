"""Three-stage query complexity classifier.

Stages, first match wins:

1. heuristic pre-filter (no model call);
2. model classification with a strict JSON answer;
3. safety net, re-checking a SIMPLE model verdict against current-data patterns.

Any model-stage failure drops to a deterministic fallback heuristic, so
`classify` always returns a decision.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
from collections.abc import Mapping, Sequence
from typing import Any, Literal

from langchain_core.messages import BaseMessage
from langchain_core.prompts import ChatPromptTemplate
from pydantic import BaseModel, Field, ValidationError

from turn_router.agent.heuristics import (
    SAFETY_NET_RULES,
    fallback_reason,
    first_match,
    prefilter_rules,
)
from turn_router.agent.invoker import ModelInvoker
from turn_router.config import ClassifierConfig, ModelSettings
from turn_router.errors import ClassificationFormatError, ClassificationTransportError
from turn_router.obs.tracing import DecisionLog, Timer
from turn_router.types import (
    Classification,
    ClassificationStage,
    ComplexityDecision,
    Turn,
)

logger = logging.getLogger(__name__)

_CLASSIFICATION_PROMPT = """
You are a query complexity classifier for an AI agent system.

Classify the query as either SIMPLE or COMPLEX:

SIMPLE: Can be answered with general knowledge, no external data needed.
COMPLEX: Requires current/real-time information, web search, multiple tools, or multi-step reasoning.

Key indicators for COMPLEX:
- Current events, news, recent developments
- Time-sensitive queries ("today", "latest", "recent", specific recent years)
- Requests for up-to-date information
- Multi-step research or analysis tasks
- Queries that would benefit from web search or external tools

Examples:
"What's the capital of France?" -> SIMPLE
"Latest AI developments in 2025" -> COMPLEX
"How to learn programming?" -> SIMPLE
"Major news stories today" -> COMPLEX
"What are the biggest M&A deals of 2025?" -> COMPLEX

Recent conversation context:
{context}

Query to classify: "{query}"

Respond with JSON only:
{{"classification": "SIMPLE" or "COMPLEX", "reasoning": "brief explanation", "confidence": 0.0-1.0}}
""".strip()

_PROMPT = ChatPromptTemplate.from_messages(
    [
        ("system", _CLASSIFICATION_PROMPT),
        ("human", "{query}"),
    ]
)

_CODE_BLOCK = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", flags=re.IGNORECASE | re.DOTALL)
_BRACES = re.compile(r"\{.*\}", flags=re.DOTALL)

HistoryItem = Turn | Mapping[str, Any]


class ModelVerdict(BaseModel):
    classification: Literal["SIMPLE", "COMPLEX"]
    reasoning: str | None = None
    confidence: float | None = Field(default=None, allow_inf_nan=False)


class ComplexityClassifier:
    """Decides whether a user query needs a direct answer or the learning loop."""

    def __init__(
        self,
        *,
        model_invoker: ModelInvoker | None = None,
        config: ClassifierConfig | None = None,
        decision_log: DecisionLog | None = None,
    ) -> None:
        self.model_invoker = model_invoker
        self.config = config or ClassifierConfig()
        self.decision_log = decision_log
        self._prefilter = prefilter_rules(self.config.heuristic_years)

    async def classify(
        self,
        message: str,
        recent_history: Sequence[HistoryItem] | None = None,
        model_invoker: ModelInvoker | None = None,
        model_settings: ModelSettings | None = None,
    ) -> ComplexityDecision:
        """Classify one user message. Never raises.

        `model_invoker` overrides the instance invoker for this call only.
        """

        invoker = model_invoker or self.model_invoker
        model_called = False
        with Timer() as timer:
            try:
                decision, model_called = await self._run_stages(
                    str(message), recent_history or [], invoker, model_settings
                )
            except Exception:
                # A rule or prompt bug must not take the turn down with it.
                logger.exception("Complexity classification crashed, using fallback")
                decision = self.fallback(str(message))

        logger.info(
            "Classified query as %s via %s (confidence=%.2f)",
            decision.classification.value,
            decision.stage.value,
            decision.confidence,
        )
        if self.decision_log is not None:
            self.decision_log.record(
                message=str(message),
                decision=decision,
                model_called=model_called,
                latency_ms=timer.elapsed_ms,
            )
        return decision

    def prefilter(self, message: str) -> ComplexityDecision | None:
        match = first_match(message, self._prefilter)
        if match is None:
            return None
        return ComplexityDecision(
            classification=Classification.COMPLEX,
            reasoning=f"Heuristic pre-filter: {match.rule.reason} ({match.matched_text!r})",
            confidence=match.rule.confidence,
            stage=ClassificationStage.HEURISTIC,
        )

    def safety_net(self, message: str) -> ComplexityDecision | None:
        match = first_match(message, SAFETY_NET_RULES)
        if match is None:
            return None
        return ComplexityDecision(
            classification=Classification.COMPLEX,
            reasoning=f"safety net override: {match.rule.reason}",
            confidence=self.config.safety_net_confidence,
            stage=ClassificationStage.SAFETY_NET,
        )

    def fallback(self, message: str) -> ComplexityDecision:
        reason = fallback_reason(message, word_limit=self.config.fallback_word_limit)
        if reason is None:
            return ComplexityDecision(
                classification=Classification.SIMPLE,
                reasoning="Fallback: appears to be a general knowledge query",
                confidence=self.config.fallback_confidence,
                stage=ClassificationStage.FALLBACK,
            )
        return ComplexityDecision(
            classification=Classification.COMPLEX,
            reasoning=f"Fallback: {reason}",
            confidence=self.config.fallback_confidence,
            stage=ClassificationStage.FALLBACK,
        )

    def build_messages(
        self, message: str, recent_history: Sequence[HistoryItem]
    ) -> list[BaseMessage]:
        return _PROMPT.format_messages(
            context=_format_context(recent_history, self.config.history_window),
            query=message,
        )

    async def _run_stages(
        self,
        message: str,
        recent_history: Sequence[HistoryItem],
        invoker: ModelInvoker | None,
        model_settings: ModelSettings | None,
    ) -> tuple[ComplexityDecision, bool]:
        decision = self.prefilter(message)
        if decision is not None:
            return decision, False

        try:
            decision = await self._model_stage(message, recent_history, invoker, model_settings)
        except ClassificationTransportError as exc:
            logger.warning("Model classification unavailable: %s", exc)
            return self.fallback(message), invoker is not None
        except ClassificationFormatError as exc:
            logger.warning("Model classification unusable: %s", exc)
            return self.fallback(message), True

        if decision.classification is Classification.SIMPLE:
            override = self.safety_net(message)
            if override is not None:
                logger.info("Safety net overrode SIMPLE verdict: %s", override.reasoning)
                return override, True
        return decision, True

    async def _model_stage(
        self,
        message: str,
        recent_history: Sequence[HistoryItem],
        invoker: ModelInvoker | None,
        model_settings: ModelSettings | None,
    ) -> ComplexityDecision:
        if invoker is None:
            raise ClassificationTransportError("no model invoker configured")

        messages = self.build_messages(message, recent_history)
        try:
            raw = await asyncio.wait_for(
                invoker(
                    messages,
                    temperature=self.config.temperature,
                    max_tokens=self.config.max_tokens,
                    settings=model_settings,
                ),
                timeout=self.config.model_timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise ClassificationTransportError(
                f"model call timed out after {self.config.model_timeout_seconds}s"
            ) from exc
        except Exception as exc:
            raise ClassificationTransportError(f"{type(exc).__name__}: {exc}") from exc

        verdict = parse_model_verdict(raw)
        confidence = verdict.confidence
        if confidence is None:
            confidence = self.config.default_model_confidence
        return ComplexityDecision(
            classification=Classification(verdict.classification),
            reasoning=verdict.reasoning or "No reasoning provided",
            confidence=min(max(confidence, 0.0), 1.0),
            stage=ClassificationStage.MODEL,
        )


def parse_model_verdict(raw: Any) -> ModelVerdict:
    """Parse the model's reply into a verdict or raise `ClassificationFormatError`."""
    if not isinstance(raw, str) or not raw.strip():
        raise ClassificationFormatError("empty classification response")
    try:
        payload = json.loads(extract_json(raw))
    except (ValueError, TypeError) as exc:
        raise ClassificationFormatError(f"response is not JSON: {raw[:120]!r}") from exc
    if not isinstance(payload, dict):
        raise ClassificationFormatError("response JSON is not an object")
    try:
        return ModelVerdict.model_validate(payload)
    except ValidationError as exc:
        raise ClassificationFormatError(f"invalid classification: {payload!r}") from exc


def extract_json(content: str) -> str:
    """Pull a JSON object out of a reply that may wrap it in fences or prose."""
    stripped = content.strip()
    try:
        json.loads(stripped)
        return stripped
    except ValueError:
        pass

    block = _CODE_BLOCK.search(stripped)
    if block:
        return block.group(1)

    braces = _BRACES.search(stripped)
    if braces:
        return braces.group(0)
    return stripped


def should_use_learning_loop(decision: ComplexityDecision) -> bool:
    return decision.is_complex


async def classify(
    message: str,
    recent_history: Sequence[HistoryItem] | None,
    model_invoker: ModelInvoker | None,
    model_settings: ModelSettings | None = None,
    *,
    config: ClassifierConfig | None = None,
) -> ComplexityDecision:
    """Functional entry point; see `ComplexityClassifier.classify`."""
    classifier = ComplexityClassifier(model_invoker=model_invoker, config=config)
    return await classifier.classify(message, recent_history, model_settings=model_settings)


def _format_context(history: Sequence[HistoryItem], window: int) -> str:
    if window <= 0:
        return "No prior context"
    lines: list[str] = []
    for item in list(history)[-window:]:
        if isinstance(item, Turn):
            role, content = item.role, item.content
        else:
            role = str(item.get("role", "unknown"))
            content = str(item.get("content", ""))
        lines.append(f"{role}: {content}")
    return "\n".join(lines) or "No prior context"
