"""Cross-session memory: rolling conversation summaries and their search."""

import logging
import re
from datetime import datetime, timezone
from typing import Any

from ..errors import CompletionFailure, ModelParseFailure
from ..llm import CompletionClient, parse_json_response
from ..models import ConversationSummary, SessionHit, utcnow
from ..storage.records import RecordStore
from .conversation import format_conversation_for_prompt

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """Summarize this part of a conversation between a user and an assistant that answers questions about the user's documents.

Conversation:
{conversation}

Respond in this exact JSON format:
{{
  "summary": "2-3 sentence summary of what was discussed",
  "key_topics": ["topic"],
  "entities": ["people, companies or products mentioned"],
  "decisions": ["conclusions or decisions reached"]
}}"""

SEARCH_STOPWORDS = {
    "what", "did", "we", "discuss", "talk", "about", "the", "a", "an", "last",
    "week", "month", "time", "session", "chat", "conversation", "previous",
    "ago", "days", "weeks", "months", "our", "talked", "discussed",
}


def humanize_age(moment: datetime, now: datetime | None = None) -> str:
    """'just now', '5 minutes ago', '3 days ago', '2 months ago'."""
    now = now or utcnow()
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    seconds = max(0, int((now - moment).total_seconds()))
    for unit, size in (("year", 31_536_000), ("month", 2_592_000), ("week", 604_800),
                       ("day", 86_400), ("hour", 3_600), ("minute", 60)):
        if seconds >= size:
            count = seconds // size
            return f"{count} {unit}{'s' if count != 1 else ''} ago"
    return "just now"


def search_keywords(query: str) -> list[str]:
    words = re.findall(r"[a-z0-9][a-z0-9'-]*", query.lower())
    return [w for w in words if len(w) > 3 and w not in SEARCH_STOPWORDS]


class SessionMemory:
    """Summarizes conversations every few turns and searches the summaries."""

    def __init__(self, config: dict[str, Any], records: RecordStore, llm: CompletionClient):
        mem = config.get("memory", {})
        self.every_turns = mem.get("summary_every_turns", 3)
        self.window = mem.get("summary_window", 6)
        self.min_messages = mem.get("summary_min_messages", 4)
        self.records = records
        self.llm = llm

    def _last_turn_end(self, conversation_id: str) -> int:
        summaries = self.records.list_summaries(conversation_id)
        return summaries[-1].turn_end if summaries else 0

    def should_summarize(self, conversation_id: str) -> bool:
        """True once enough new turns have passed since the last summary."""
        current_turn = len(self.records.list_messages(conversation_id)) // 2
        return current_turn - self._last_turn_end(conversation_id) >= self.every_turns

    def summarize(self, conversation_id: str, tenant_id: str, user_id: str) -> ConversationSummary | None:
        """Summarize the next window of unsummarized messages.

        Returns None (and stores nothing) when there are too few messages or
        the model call fails, so the window is retried later.
        """
        messages = self.records.list_messages(conversation_id)
        start = self._last_turn_end(conversation_id) * 2
        window = messages[start:start + self.window]
        if len(window) < self.min_messages:
            return None

        prompt = SUMMARY_PROMPT.format(conversation=format_conversation_for_prompt(window, len(window)))
        try:
            completion = self.llm.complete(prompt, max_tokens=500)
            data = parse_json_response(completion.text)
        except (CompletionFailure, ModelParseFailure) as e:
            logger.warning(f"Deferring summary of conversation {conversation_id}: {e}")
            return None

        summary_text = str(data.get("summary") or "").strip()
        if not summary_text:
            logger.warning(f"Empty summary for conversation {conversation_id}; deferring")
            return None

        summary = ConversationSummary(
            conversation_id=conversation_id,
            tenant_id=tenant_id,
            user_id=user_id,
            summary_text=summary_text,
            key_topics=_str_list(data.get("key_topics")),
            entities=_str_list(data.get("entities")),
            decisions=_str_list(data.get("decisions")),
            message_count=len(window),
            turn_start=start // 2,
            turn_end=(start + len(window)) // 2,
            period_start=window[0].created_at,
            period_end=window[-1].created_at,
        )
        self.records.add_summary(summary)
        logger.info(
            f"Summarized conversation {conversation_id} turns {summary.turn_start}-{summary.turn_end}"
        )
        return summary

    def search_user_history(
        self,
        tenant_id: str,
        user_id: str,
        query: str,
        limit: int = 5,
    ) -> list[SessionHit]:
        """Past summaries mentioning the query's keywords, most recent first."""
        keywords = search_keywords(query)
        summaries = self.records.list_user_summaries(tenant_id, user_id)
        hits = []
        for summary in summaries:
            haystack = " ".join([summary.summary_text, *summary.key_topics, *summary.entities]).lower()
            relevance = sum(1 for kw in keywords if kw in haystack) if keywords else 1
            if relevance == 0:
                continue
            moment = summary.period_end or summary.created_at
            hits.append(SessionHit(
                summary=summary,
                relevance=relevance,
                time_ago=humanize_age(moment),
                date=moment.strftime("%B %d, %Y"),
            ))
            if len(hits) >= limit:
                break
        return hits


def _str_list(value) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value if str(v).strip()]


def format_session_results(hits: list[SessionHit]) -> str:
    """Render past-session hits for the user."""
    if not hits:
        return "I couldn't find anything about that in your previous conversations."
    lines = ["Here's what I found in your previous conversations:", ""]
    for hit in hits:
        s = hit.summary
        lines.append(f"{hit.time_ago} ({hit.date}): {s.summary_text}")
        if s.key_topics:
            lines.append(f"   Topics: {', '.join(s.key_topics)}")
        if s.decisions:
            lines.append(f"   Decisions: {', '.join(s.decisions)}")
        lines.append("")
    return "\n".join(lines).strip()
