"""Query routing: decide which knowledge sources a question needs.

The router is an ordered table of rules. Each rule inspects the query and
history and either declines or returns a confidence; the first rule that
fires produces the RoutingDecision.
"""

import re
from collections.abc import Callable
from dataclasses import dataclass, replace

from ..memory.conversation import is_meta_question, last_message
from ..models import Message, RoutingDecision

REFINEMENT_KEYWORDS = {
    "only": 0.9, "just": 0.85, "specifically": 0.9, "particularly": 0.85,
    "solely": 0.9, "exclusively": 0.9,
    "without": 0.7, "excluding": 0.8, "except": 0.75, "not including": 0.8,
    "narrow down": 0.85, "focus on": 0.8, "limit to": 0.85, "filter": 0.75,
    "more specifically": 0.9, "to be clear": 0.8, "i mean": 0.85,
}
REFINEMENT_TARGET = re.compile(r"\b(only|just|specifically)\s+(his|her|their|its|the)\b")
REFINEMENT_TARGET_WEIGHT = 0.95

CONTEXT_KEYWORDS = {
    "previously": 0.9, "earlier": 0.85, "before": 0.75, "last time": 0.9,
    "just now": 0.85, "compared to": 0.8, "versus": 0.75, "vs": 0.75,
    "like you said": 0.9, "as mentioned": 0.9, "based on": 0.85,
    "following": 0.75, "continuing": 0.8, "also": 0.6, "additionally": 0.7,
}

PRONOUNS = [
    "he", "she", "they", "it", "his", "her", "their", "its", "him", "them",
    "himself", "herself", "themselves",
]
_PRONOUN_RE = re.compile(r"\b(" + "|".join(PRONOUNS) + r")\b")

# Keyword rules fire only above this confidence
KEYWORD_THRESHOLD = 0.7


def _keyword_pattern(phrase: str) -> re.Pattern:
    return re.compile(r"\b" + re.escape(phrase).replace(r"\ ", r"\s+") + r"\b")


_REFINEMENT_RES = {kw: _keyword_pattern(kw) for kw in REFINEMENT_KEYWORDS}
_CONTEXT_RES = {kw: _keyword_pattern(kw) for kw in CONTEXT_KEYWORDS}


@dataclass(frozen=True)
class RuleHit:
    confidence: float
    matched: list[str]


def _strongest(query: str, patterns: dict[str, re.Pattern], weights: dict[str, float]) -> RuleHit | None:
    matched = [kw for kw, pattern in patterns.items() if pattern.search(query)]
    if not matched:
        return None
    return RuleHit(max(weights[kw] for kw in matched), matched)


def detect_meta(query: str, history: list[Message]) -> RuleHit | None:
    return RuleHit(0.95, ["meta"]) if is_meta_question(query) else None


def detect_refinement(query: str, history: list[Message]) -> RuleHit | None:
    hit = _strongest(query, _REFINEMENT_RES, REFINEMENT_KEYWORDS)
    target = REFINEMENT_TARGET.search(query)
    if target:
        matched = (hit.matched if hit else []) + [target.group(0)]
        hit = RuleHit(REFINEMENT_TARGET_WEIGHT, matched)
    if hit and hit.confidence > KEYWORD_THRESHOLD:
        return hit
    return None


def detect_pronoun(query: str, history: list[Message]) -> RuleHit | None:
    if not history:
        return None
    found = list(dict.fromkeys(_PRONOUN_RE.findall(query)))
    return RuleHit(0.85, found) if found else None


def detect_context_reference(query: str, history: list[Message]) -> RuleHit | None:
    hit = _strongest(query, _CONTEXT_RES, CONTEXT_KEYWORDS)
    if hit and hit.confidence > KEYWORD_THRESHOLD:
        return hit
    return None


@dataclass(frozen=True)
class Rule:
    route_type: str
    detect: Callable[[str, list[Message]], RuleHit | None]
    search_documents: bool
    search_memory: bool
    attach_last_answer: bool
    reasoning: str


RULES = [
    Rule("meta", detect_meta, False, True, False,
         "Question about the conversation itself"),
    Rule("refinement", detect_refinement, True, True, True,
         "Refines the previous answer"),
    Rule("hybrid", detect_pronoun, True, True, False,
         "Pronouns refer back to earlier turns"),
    Rule("hybrid", detect_context_reference, True, True, False,
         "Refers to earlier context"),
]

DEFAULT_DECISION = RoutingDecision(
    search_documents=True,
    search_memory=False,
    attach_last_answer=False,
    route_type="document",
    confidence=0.8,
    reasoning="Standalone question about the documents",
)


def route(query_text: str, conversation_history: list[Message] | None = None) -> RoutingDecision:
    """Classify a query into a routing decision. First matching rule wins."""
    history = conversation_history or []
    query = query_text.lower().strip()
    for rule in RULES:
        hit = rule.detect(query, history)
        if hit is None:
            continue
        matched = ", ".join(hit.matched)
        return RoutingDecision(
            search_documents=rule.search_documents,
            search_memory=rule.search_memory,
            attach_last_answer=rule.attach_last_answer,
            route_type=rule.route_type,
            confidence=hit.confidence,
            reasoning=f"{rule.reasoning} ({matched})",
            matched=list(hit.matched),
        )
    return replace(DEFAULT_DECISION, matched=[])


@dataclass
class RoutedContext:
    """Conversation material to hand to the answer prompt."""
    history: list[Message]
    last_answer: str | None = None


def build_enhanced_context(
    decision: RoutingDecision,
    history: list[Message],
    max_messages: int = 10,
) -> RoutedContext:
    """Select the history (and previous answer) a routing decision asks for."""
    if not decision.search_memory:
        return RoutedContext(history=[])
    context = RoutedContext(history=history[-max_messages:])
    if decision.attach_last_answer:
        previous = last_message(history, "assistant")
        context.last_answer = previous.content if previous else None
    return context
