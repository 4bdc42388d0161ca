"""Tests for entity-aware search."""

import pytest

from khub.models import RawDocument
from khub.query.entities import EntitySearch, detect, extract_keywords, format_entity_results

from conftest import TENANT, USER


def _resume(name, email, skills):
    return f"""{name.upper()}
{email} | Phone: +1 555 010 2000

Professional Summary
Developer with experience in {skills}.

Experience
Senior Developer at Acme

Education
BSc Computer Science

Skills
{skills}
"""


@pytest.fixture
def people(pipeline):
    def add(title, text, connector_id="org-drive", connector_type="google_drive", external_id=None):
        raw = RawDocument(title=title, extracted_text=text, external_id=external_id or title)
        result = pipeline.process(raw, TENANT, connector_id=connector_id, connector_type=connector_type)
        assert result.success
        return result.document_id

    add("Jane_Doe_Resume.pdf", _resume("Jane Doe", "jane@example.com", "PHP, Laravel, Vue"))
    add("John Smith CV.pdf", _resume("John Smith", "john@example.com", "Laravel, React, Docker"))
    add("Maria_Garcia_Resume.pdf", _resume("Maria Garcia", "maria@example.com", "Python, Django"))
    add("Quarterly report.txt", "Revenue grew 10% in Q3. Laravel is mentioned but nobody is named.")
    return add


def test_detect_count_query():
    info = detect("How many people know Laravel?")
    assert info.is_entity_query
    assert info.is_count_query
    assert info.entity_type == "person"
    assert info.intent == "skill_search"
    assert info.keywords == ["laravel"]


@pytest.mark.parametrize("query", [
    "What is the project budget?",
    "List the action items from the meeting",
    "Who is Jane Doe?",
    "What are the key findings?",
])
def test_ordinary_questions_are_not_entity_queries(query):
    assert not detect(query).is_entity_query


@pytest.mark.parametrize("query, entity_type", [
    ("Which developers have React experience?", "person"),
    ("List all companies we work with", "company"),
    ("Show me all products", "product"),
    ("Give me list of all the candidates", "person"),
])
def test_detect_entity_types(query, entity_type):
    info = detect(query)
    assert info.is_entity_query
    assert info.entity_type == entity_type


def test_extract_keywords_drops_stopwords():
    assert extract_keywords("who knows docker and kubernetes?") == ["docker", "kubernetes"]


def test_count_people_with_skill(people, records):
    search = EntitySearch(records)
    info = detect("How many people know Laravel?")
    result = search.search("How many people know Laravel?", info, TENANT, USER)

    assert result.total == 2
    assert sorted(result.names) == ["Jane Doe", "John Smith"]
    assert all(e.matched_attributes == ["laravel"] for e in result.entities)

    text = format_entity_results(result, is_count=True)
    assert text.startswith("2 people in your knowledge base match this criteria.")
    assert "• Jane Doe" in text
    assert "Maria Garcia" not in text


def test_entities_deduplicate_by_email(people, records):
    people("Jane Doe Resume 2023.pdf",
           _resume("Jane Doe", "JANE@example.com", "Laravel, Kubernetes"))
    search = EntitySearch(records)
    info = detect("Who knows Laravel?")
    result = search.search("Who knows Laravel?", info, TENANT, USER)

    assert result.total == 2
    jane = next(e for e in result.entities if e.name == "Jane Doe")
    assert "kubernetes" in jane.all_attributes


def test_personal_documents_need_a_grant(people, records):
    people("Ana Lopez Resume.pdf", _resume("Ana Lopez", "ana@example.com", "Laravel"),
           connector_id="my-dropbox", connector_type="dropbox")
    search = EntitySearch(records)
    info = detect("Who knows Laravel?")

    assert search.search("q", info, TENANT, USER).total == 2
    assert search.search("q", info, TENANT, None).total == 2

    records.grant_permission("my-dropbox", USER)
    assert search.search("q", info, TENANT, USER).total == 3
    assert search.search("q", info, TENANT, "someone-else").total == 2


def test_other_tenants_are_invisible(people, records):
    search = EntitySearch(records)
    info = detect("Who knows Laravel?")
    assert search.search("q", info, "other-tenant", USER).total == 0


def test_detailed_results(people, records):
    search = EntitySearch(records)
    info = detect("Which developers know Laravel?")
    text = format_entity_results(search.search("q", info, TENANT, USER))

    assert text.startswith("Found 2 people matching your query:")
    assert "Matched Skills: Laravel" in text
    assert "Email: jane@example.com" in text


def test_no_results_message(records):
    search = EntitySearch(records)
    info = detect("How many people know Cobol?")
    result = search.search("q", info, TENANT, USER)
    assert format_entity_results(result, is_count=True) == "0 people in your knowledge base match this criteria."


def test_extract_phone_skips_date_ranges():
    from khub.query.people import extract_phone

    assert extract_phone("Acme 2018 2019 2020\nPhone: +1 555 010 2000") == "+1 555 010 2000"
    assert extract_phone("Employed 2019 - 2024") is None
