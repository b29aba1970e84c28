"""Deterministic rule sets used by the complexity classifier.

Three independent lists live here:

- the pre-filter, evaluated before any model call;
- the safety net, evaluated only after the model answers SIMPLE;
- the fallback rules, used when the model stage fails.

The pre-filter and the safety net both look for "needs current data" and
overlap on purpose; they are kept separate so the safety net can stay narrow.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class PatternRule:
    """A named regex rule. `reason` ends up in the decision reasoning."""

    reason: str
    pattern: re.Pattern[str]
    confidence: float = 0.85

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


@dataclass(slots=True, frozen=True)
class RuleMatch:
    rule: PatternRule
    matched_text: str


def _rule(reason: str, pattern: str, confidence: float = 0.85) -> PatternRule:
    return PatternRule(reason, re.compile(pattern, flags=re.IGNORECASE), confidence)


def year_rule(years: Iterable[str]) -> PatternRule:
    alternatives = "|".join(re.escape(year) for year in years)
    return _rule("time-sensitive year reference", rf"\b(?:{alternatives})\b", 0.9)


PREFILTER_RULES: tuple[PatternRule, ...] = (
    _rule("recency keyword", r"\b(?:today|recent|recently|latest|breaking)\b", 0.9),
    _rule(
        "news request",
        r"\b(?:news|headlines|current events)\b"
        r"|\b(?:update me|catch me up) on\b"
        r"|\btell me about (?:recent|latest) (?:news|events)\b",
    ),
    _rule(
        "market or financial data",
        r"\b(?:stocks?|share prices?|stock prices?|market cap(?:italization)?|earnings"
        r"|ipos?|m&a|mergers?|acquisitions?|exchange rates?|interest rates?"
        r"|crypto(?:currency|currencies)?|bitcoin|nasdaq|s&p 500|dow jones)(?!\w)",
    ),
)

SAFETY_NET_RULES: tuple[PatternRule, ...] = (
    _rule(
        "asks what is happening now",
        r"\bwhat'?s (?:happening|going on) (?:in the world|right now|now|today)\b"
        r"|\bwhat is (?:happening|going on) (?:in the world|right now|now|today)\b",
        0.8,
    ),
    _rule(
        "summary of current events",
        r"\bsummari[sz]e\b.*\b(?:today|this week|this month|news|headlines)\b",
        0.8,
    ),
    _rule(
        "major events in a recent year",
        r"\bmajor (?:events|news|stories|developments)\b.*\b202[4-5]\b",
        0.8,
    ),
    _rule(
        "top stories request",
        r"\btop (?:\w+ )?(?:news|stories|headlines|trends)\b",
        0.8,
    ),
    _rule(
        "current state request",
        r"\b(?:right now|currently|this week|this month|this year|as of now)\b",
        0.8,
    ),
)

ANALYSIS_RULE = _rule(
    "analysis or research task",
    r"\b(?:compare|comparison|analy[sz]e|analysis|research|investigate|strategy"
    r"|strategies|evaluate|assess|comprehensive|in-depth|thorough"
    r"|explain in detail|pros and cons)\b",
    0.6,
)

TIME_SENSITIVE_RULE = _rule(
    "time-sensitive wording",
    r"\b(?:today|latest|recent|current|currently|news|now|202\d)\b",
    0.6,
)


def first_match(text: str, rules: Sequence[PatternRule]) -> RuleMatch | None:
    """Return the first rule in `rules` that matches `text`, in list order."""
    for rule in rules:
        found = rule.pattern.search(text)
        if found is not None:
            return RuleMatch(rule=rule, matched_text=found.group(0))
    return None


def prefilter_rules(years: Iterable[str]) -> tuple[PatternRule, ...]:
    years = tuple(years)
    if not years:
        return PREFILTER_RULES
    return (year_rule(years), *PREFILTER_RULES)


def fallback_reason(text: str, *, word_limit: int) -> str | None:
    """Reason the fallback heuristic treats `text` as complex, or None."""
    word_count = len(text.split())
    if word_count > word_limit:
        return f"long query ({word_count} words)"
    question_count = text.count("?")
    if question_count > 1:
        return f"multiple questions ({question_count})"
    for rule in (ANALYSIS_RULE, TIME_SENSITIVE_RULE):
        if rule.matches(text):
            return rule.reason
    return None
