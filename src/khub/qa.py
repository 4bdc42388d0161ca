"""Grounded question answering over a tenant's documents."""

import logging
from typing import Any

from .embeddings.embedder import Embedder
from .errors import CompletionFailure, EmbeddingFailure, ModelParseFailure, VectorStoreUnavailable
from .llm import CompletionClient, parse_json_response
from .models import Answer, Message, QueryLog, Snippet, Source
from .memory.conversation import format_conversation_for_prompt
from .query.intent import detect_intent, formatting_instructions
from .query.prompts import ANSWER_SYSTEM_PROMPT, build_answer_prompt
from .storage.gateway import VectorGateway
from .storage.records import RecordStore

logger = logging.getLogger(__name__)

NO_DOCUMENTS_ANSWER = "I don't know — no relevant documents found."
RETRIEVAL_ERROR_ANSWER = "Sorry, something went wrong while searching your documents. Please try again."
FALLBACK_EXCERPT_CHARS = 300


class Answerer:
    """Retrieves snippets for a question and asks the model for a cited answer."""

    def __init__(
        self,
        config: dict[str, Any],
        records: RecordStore,
        embedder: Embedder,
        gateway: VectorGateway,
        llm: CompletionClient,
    ):
        retrieval = config.get("retrieval", {})
        self.top_k = retrieval.get("top_k", 15)
        self.max_snippets = retrieval.get("max_snippets", 6)
        self.excerpt_chars = retrieval.get("excerpt_chars", 800)
        self.records = records
        self.embedder = embedder
        self.gateway = gateway
        self.llm = llm

    def retrieve(
        self,
        query: str,
        tenant_id: str,
        top_k: int | None = None,
        filter: dict[str, Any] | None = None,
    ) -> list[Snippet]:
        """Embed the query and resolve the nearest chunks, in match order.

        Vector index failures count as no matches. Embedding failures
        propagate so the caller can abort the turn.
        """
        vector = self.embedder.embed(query)
        try:
            matches = self.gateway.query(vector, top_k or self.top_k, tenant_id, filter)
        except VectorStoreUnavailable as e:
            logger.error(f"Vector search unavailable for tenant {tenant_id}: {e}")
            return []
        if not matches:
            return []

        chunk_ids = [m.metadata.get("chunk_id", m.id) for m in matches]
        chunks = self.records.get_chunks(tenant_id, chunk_ids)
        documents = {}
        snippets = []
        for match, chunk_id in zip(matches, chunk_ids):
            chunk = chunks.get(chunk_id)
            if chunk is None:
                # Vector outlived its chunk row
                continue
            if chunk.document_id not in documents:
                documents[chunk.document_id] = self.records.get_document(tenant_id, chunk.document_id)
            document = documents[chunk.document_id]
            snippets.append(Snippet(
                chunk_id=chunk.id,
                document_id=chunk.document_id,
                text=chunk.text,
                char_start=chunk.char_start,
                char_end=chunk.char_end,
                score=match.score,
                document_title=document.title if document else "",
                doc_type=document.doc_type if document else "",
            ))
        return snippets

    def answer(
        self,
        query: str,
        tenant_id: str,
        top_k: int | None = None,
        user_id: str | None = None,
        history: list[Message] | None = None,
        last_answer: str | None = None,
        snippets: list[Snippet] | None = None,
    ) -> Answer:
        """Answer a question from retrieved snippets.

        Args:
            query: The user's question.
            tenant_id: Tenant whose documents are searched.
            top_k: Number of vector matches to fetch.
            user_id: Recorded with the query log.
            history: Conversation messages to show the model, if routing asked for them.
            last_answer: Previous answer being refined, if any.
            snippets: Already retrieved snippets; skips retrieval when given.

        Returns:
            Answer with cited sources. Never raises for service failures.
        """
        top_k = top_k or self.top_k
        if snippets is None:
            try:
                snippets = self.retrieve(query, tenant_id, top_k)
            except EmbeddingFailure as e:
                logger.error(f"Query embedding failed for tenant {tenant_id}: {e}")
                return Answer(answer=RETRIEVAL_ERROR_ANSWER, error=e.code)

        if not snippets:
            result = Answer(answer=NO_DOCUMENTS_ANSWER, sources=[])
            self._log_query(query, tenant_id, user_id, top_k, [], None)
            return result

        prompt_snippets = snippets[:self.max_snippets]
        prompt = build_answer_prompt(
            query,
            prompt_snippets,
            excerpt_chars=self.excerpt_chars,
            conversation=format_conversation_for_prompt(history) if history else None,
            last_answer=last_answer,
            formatting=formatting_instructions(detect_intent(query)),
        )

        try:
            completion = self.llm.complete(prompt, system=ANSWER_SYSTEM_PROMPT)
        except CompletionFailure as e:
            logger.error(f"Completion failed for tenant {tenant_id}: {e}")
            result = Answer(
                answer=RETRIEVAL_ERROR_ANSWER,
                sources=fallback_sources(snippets),
                error=e.code,
            )
            self._log_query(query, tenant_id, user_id, top_k, snippets, None)
            return result

        text, sources = parse_answer(completion.text, prompt_snippets, snippets)
        self._log_query(query, tenant_id, user_id, top_k, snippets, completion.model)
        return Answer(
            answer=text,
            sources=sources,
            raw_model_output=completion.text,
            model=completion.model,
        )

    def _log_query(self, query, tenant_id, user_id, top_k, snippets, model) -> None:
        try:
            self.records.log_query(QueryLog(
                tenant_id=tenant_id,
                user_id=user_id,
                query_text=query,
                top_k=top_k,
                result_chunk_ids=[s.chunk_id for s in snippets],
                result_count=len(snippets),
                model=model,
            ))
        except Exception as e:
            logger.warning(f"Failed to record query log: {e}")


def _to_source(number: int, snippet: Snippet, excerpt_chars: int) -> Source:
    return Source(
        id=number,
        chunk_id=snippet.chunk_id,
        document_id=snippet.document_id,
        title=snippet.document_title,
        excerpt=snippet.text[:excerpt_chars],
        char_start=snippet.char_start,
        char_end=snippet.char_end,
        score=snippet.score,
    )


def fallback_sources(snippets: list[Snippet]) -> list[Source]:
    """Cite every retrieved snippet with a short excerpt."""
    return [_to_source(i, s, FALLBACK_EXCERPT_CHARS) for i, s in enumerate(snippets, 1)]


def _source_number(item) -> int | None:
    value = item.get("id") if isinstance(item, dict) else item
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_answer(
    raw: str,
    prompt_snippets: list[Snippet],
    all_snippets: list[Snippet] | None = None,
) -> tuple[str, list[Source]]:
    """Turn model output into (answer text, sources).

    Source ids are the 1-based snippet numbers from the prompt. Unparseable
    output, or output without resolvable sources, cites every snippet.
    """
    all_snippets = all_snippets if all_snippets is not None else prompt_snippets
    try:
        data = parse_json_response(raw)
    except ModelParseFailure:
        logger.warning("Model answer was not valid JSON; citing all snippets")
        text = (raw or "").strip() or NO_DOCUMENTS_ANSWER
        return text, fallback_sources(all_snippets)

    text = str(data.get("answer") or "").strip() or (raw or "").strip()
    sources = []
    seen = set()
    for item in data.get("sources") or []:
        number = _source_number(item)
        if number is None or not 1 <= number <= len(prompt_snippets) or number in seen:
            continue
        seen.add(number)
        sources.append(_to_source(number, prompt_snippets[number - 1], FALLBACK_EXCERPT_CHARS))

    if not sources:
        return text, fallback_sources(all_snippets)
    return text, sources
