"""Tests for chat turn orchestration."""

import pytest

from khub.errors import NotFound
from khub.models import RawDocument
from khub.services import LOCAL_CONNECTOR_ID, build_services, ensure_local_connector

from conftest import TENANT, USER, FakeEmbedder, FakeLLM

SUMMARY_REPLY = '{"summary": "Small talk about the conversation itself.", "key_topics": ["meta"]}'


@pytest.fixture
def make_services(config, records):
    def make(replies=None):
        cfg = dict(config, storage_backend="memory")
        return build_services(cfg, records=records, embedder=FakeEmbedder(), llm=FakeLLM(replies))
    return make


def _ingest(services, title, text, connector_id="org-drive", connector_type="google_drive"):
    raw = RawDocument(title=title, extracted_text=text, external_id=title)
    result = services.pipeline.process(raw, TENANT, connector_id=connector_id, connector_type=connector_type)
    assert result.success
    return result.document_id


def test_document_question_starts_a_conversation(make_services, records):
    services = make_services(['{"answer": "It is 50000 dollars.", "sources": [{"id": 1}]}'])
    _ingest(services, "budget.txt", "The marketing budget for 2024 is 50000 dollars.")

    turn = services.chat.ask("What is the marketing budget?", TENANT, USER)

    assert turn.kind == "document"
    assert turn.answer == "It is 50000 dollars."
    assert turn.sources[0].title == "budget.txt"
    assert turn.decision.route_type == "document"
    conversation = records.get_conversation(TENANT, turn.conversation_id)
    assert conversation.title == "What is the marketing budget?"
    assert [m.role for m in records.list_messages(turn.conversation_id)] == ["user", "assistant"]


def test_meta_question_is_answered_from_history(make_services):
    services = make_services()
    first = services.chat.ask("What is the budget?", TENANT, USER)
    turn = services.chat.ask("What was my last question?", TENANT, USER, conversation_id=first.conversation_id)

    assert turn.kind == "meta"
    assert turn.answer == 'Your last question was: "What is the budget?"'


def test_meta_recall_quotes_matching_history(make_services):
    services = make_services()
    first = services.chat.ask("What is the marketing budget?", TENANT, USER)
    services.chat.ask("Summarize the hiring plan", TENANT, USER, conversation_id=first.conversation_id)

    turn = services.chat.ask("Remind me about the budget", TENANT, USER, conversation_id=first.conversation_id)

    assert turn.kind == "meta"
    assert turn.answer.startswith("Here's what I found earlier in our conversation:")
    assert "User: What is the marketing budget?" in turn.answer
    assert "hiring" not in turn.answer


def test_entity_question(make_services):
    services = make_services()
    _ingest(services, "Jane_Doe_Resume.pdf",
            "JANE DOE\njane@example.com\nExperience Education Skills\nLaravel, PHP")

    turn = services.chat.ask("How many people know Laravel?", TENANT, USER)

    assert turn.kind == "entity"
    assert turn.answer.startswith("1 person in your knowledge base match this criteria.")


def test_unknown_person_is_not_invented(make_services):
    services = make_services(['{"answer": "Jane Doe is a pilot.", "sources": [1]}'])
    _ingest(services, "contract.txt", "Signed by Peter Parker on behalf of the company.")

    turn = services.chat.ask("Tell me about Jane Doe", TENANT, USER)

    assert turn.kind == "name_guard"
    assert "Peter Parker" in turn.answer
    assert services.llm.prompts == []


def test_personal_documents_stay_out_of_the_prompt(make_services, records):
    services = make_services(['{"answer": "ok", "sources": []}'])
    _ingest(services, "public.txt", "The office opens at nine.")
    _ingest(services, "secret.txt", "The office safe code is 4321.",
            connector_id="my-dropbox", connector_type="dropbox")

    services.chat.ask("When does the office open?", TENANT, USER)
    assert "4321" not in services.llm.prompts[0]

    records.grant_permission("my-dropbox", USER)
    services.llm.replies.append('{"answer": "ok", "sources": []}')
    services.chat.ask("When does the office open?", TENANT, USER)
    assert "4321" in services.llm.prompts[1]


def test_session_memory_question(make_services):
    services = make_services()
    turn = services.chat.ask("What did we discuss last week?", TENANT, USER)
    assert turn.kind == "session"
    assert "previous conversations" in turn.answer


def test_unknown_conversation(make_services):
    services = make_services()
    with pytest.raises(NotFound):
        services.chat.ask("hello", TENANT, USER, conversation_id="missing")


def test_conversation_of_another_tenant_is_not_found(make_services):
    services = make_services()
    turn = services.chat.ask("What did I ask?", TENANT, USER)
    with pytest.raises(NotFound):
        services.chat.ask("hello", "other-tenant", USER, conversation_id=turn.conversation_id)


def test_summary_after_three_turns(make_services, records):
    services = make_services([SUMMARY_REPLY])
    turn = services.chat.ask("What did I ask?", TENANT, USER)
    for _ in range(2):
        services.chat.ask("What was my last question?", TENANT, USER, conversation_id=turn.conversation_id)

    summaries = records.list_summaries(turn.conversation_id)
    assert len(summaries) == 1
    assert summaries[0].turn_end == 3
    assert summaries[0].user_id == USER


def test_summary_failure_does_not_break_the_turn(make_services, records):
    services = make_services(["not json"])
    turn = services.chat.ask("What did I ask?", TENANT, USER)
    for _ in range(2):
        last = services.chat.ask("What was my last question?", TENANT, USER, conversation_id=turn.conversation_id)
    assert last.kind == "meta"
    assert records.list_summaries(turn.conversation_id) == []


def test_ensure_local_connector_is_idempotent(records):
    first = ensure_local_connector(records, TENANT)
    second = ensure_local_connector(records, TENANT)
    assert first.id == second.id == LOCAL_CONNECTOR_ID
    assert first.scope == "organization"
