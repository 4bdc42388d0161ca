"""One chat turn: route the question and dispatch it to the right answerer."""

import logging
from dataclasses import dataclass, field
from typing import Any

from .errors import EmbeddingFailure, NotFound
from .memory.conversation import (
    build_meta_response,
    format_conversation_for_prompt,
    is_session_memory_query,
    search_conversation_history,
)
from .memory.sessions import SessionMemory, format_session_results
from .models import Conversation, Message, RoutingDecision, Snippet, Source
from .qa import RETRIEVAL_ERROR_ANSWER, Answerer
from .query.access import DocumentAccess
from .query.entities import EntitySearch, format_entity_results
from .query.names import NameMatcher, extract_requested_name, generate_response
from .query.router import build_enhanced_context, route
from .storage.records import RecordStore

logger = logging.getLogger(__name__)

HISTORY_LIMIT = 20
TITLE_CHARS = 60


@dataclass
class ChatTurn:
    """What the user gets back for one question."""
    conversation_id: str
    answer: str
    kind: str = "document"  # document | meta | session | entity | name_guard | error
    sources: list[Source] = field(default_factory=list)
    decision: RoutingDecision | None = None


class ChatService:
    """Stores the conversation and picks how each question gets answered."""

    def __init__(
        self,
        config: dict[str, Any],
        records: RecordStore,
        answerer: Answerer,
        entity_search: EntitySearch,
        name_matcher: NameMatcher,
        session_memory: SessionMemory,
    ):
        self.history_limit = config.get("memory", {}).get("history_messages", HISTORY_LIMIT)
        self.records = records
        self.answerer = answerer
        self.entity_search = entity_search
        self.name_matcher = name_matcher
        self.session_memory = session_memory
        self.access = DocumentAccess(records)

    def _conversation(self, query: str, tenant_id: str, user_id: str, conversation_id: str | None) -> Conversation:
        if conversation_id:
            conversation = self.records.get_conversation(tenant_id, conversation_id)
            if conversation is None:
                raise NotFound(f"Conversation {conversation_id} not found")
            return conversation
        return self.records.save_conversation(Conversation(
            tenant_id=tenant_id,
            user_id=user_id,
            title=query.strip()[:TITLE_CHARS],
        ))

    def ask(
        self,
        query: str,
        tenant_id: str,
        user_id: str,
        conversation_id: str | None = None,
    ) -> ChatTurn:
        """Answer one question inside a conversation.

        Args:
            query: The user's message.
            tenant_id: Tenant whose documents and memory are used.
            user_id: The caller; drives permission checks.
            conversation_id: Existing conversation to continue, or None to start one.

        Returns:
            ChatTurn with the answer text, its kind and any cited sources.

        Raises:
            NotFound: If ``conversation_id`` does not exist in the tenant.
        """
        conversation = self._conversation(query, tenant_id, user_id, conversation_id)
        history = self.records.list_messages(conversation.id)[-self.history_limit:]
        self.records.add_message(Message(conversation_id=conversation.id, role="user", content=query))

        turn = self._dispatch(query, tenant_id, user_id, conversation.id, history)

        self.records.add_message(Message(conversation_id=conversation.id, role="assistant", content=turn.answer))
        self._maybe_summarize(conversation)
        return turn

    def _dispatch(self, query, tenant_id, user_id, conversation_id, history) -> ChatTurn:
        if is_session_memory_query(query):
            hits = self.session_memory.search_user_history(tenant_id, user_id, query)
            return ChatTurn(conversation_id, format_session_results(hits), kind="session")

        decision = route(query, history)
        logger.info(f"Routed query as {decision.route_type} ({decision.confidence:.2f}): {decision.reasoning}")

        if decision.route_type == "meta":
            text = build_meta_response(query, history) or self._recall(query, history)
            return ChatTurn(conversation_id, text, kind="meta", decision=decision)

        info = self.entity_search.detect(query)
        if info.is_entity_query:
            result = self.entity_search.search(query, info, tenant_id, user_id)
            text = format_entity_results(result, is_count=info.is_count_query)
            return ChatTurn(conversation_id, text, kind="entity", decision=decision)

        try:
            snippets = self._visible_snippets(query, tenant_id, user_id)
        except EmbeddingFailure as e:
            logger.error(f"Query embedding failed for tenant {tenant_id}: {e}")
            return ChatTurn(conversation_id, RETRIEVAL_ERROR_ANSWER, kind="error", decision=decision)

        requested = extract_requested_name(query)
        if requested and snippets:
            matches = self.name_matcher.find_matches(requested, snippets, tenant_id, user_id)
            if not matches.has_exact_match:
                return ChatTurn(conversation_id, generate_response(matches), kind="name_guard", decision=decision)

        context = build_enhanced_context(decision, history)
        answer = self.answerer.answer(
            query,
            tenant_id,
            user_id=user_id,
            history=context.history,
            last_answer=context.last_answer,
            snippets=snippets,
        )
        kind = "error" if answer.error else "document"
        return ChatTurn(conversation_id, answer.answer, kind=kind, sources=answer.sources, decision=decision)

    def _recall(self, query: str, history: list[Message]) -> str:
        found = search_conversation_history(history, query)
        if found:
            positions = {m.id: i for i, m in enumerate(history)}
            found.sort(key=lambda m: positions[m.id])
            return ("Here's what I found earlier in our conversation:\n\n"
                    + format_conversation_for_prompt(found, len(found)))
        return "Here's the recent part of our conversation:\n\n" + format_conversation_for_prompt(history, 6)

    def _visible_snippets(self, query: str, tenant_id: str, user_id: str) -> list[Snippet]:
        snippets = self.answerer.retrieve(query, tenant_id)
        visible = [s for s in snippets
                   if self.access.readable_document(tenant_id, s.document_id, user_id) is not None]
        if len(visible) != len(snippets):
            logger.info(f"Dropped {len(snippets) - len(visible)} snippet(s) the user may not read")
        return visible

    def _maybe_summarize(self, conversation: Conversation) -> None:
        try:
            if self.session_memory.should_summarize(conversation.id):
                self.session_memory.summarize(conversation.id, conversation.tenant_id, conversation.user_id)
        except Exception as e:
            logger.warning(f"Summarizing conversation {conversation.id} failed: {e}")
