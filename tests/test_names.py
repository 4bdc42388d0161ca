"""Tests for the name matching guard."""

from khub.models import Document, Snippet
from khub.query.names import (
    NameMatcher,
    extract_names,
    extract_requested_name,
    generate_response,
    has_partial_match,
)

from conftest import TENANT, USER


def _snippet(document_id, text, title=""):
    return Snippet(chunk_id=f"chunk-{document_id}", document_id=document_id, text=text,
                   char_start=0, char_end=len(text), score=0.9, document_title=title)


def _add_document(records, document_id, connector_id="org-drive", title="doc.pdf"):
    records.save_document(Document(id=document_id, tenant_id=TENANT, title=title, connector_id=connector_id))


def test_extract_requested_name():
    assert extract_requested_name("Tell me about Jane Doe") == "Jane Doe"
    assert extract_requested_name("who is john smith?") == "John Smith"
    assert extract_requested_name("Does Maria Garcia know Python?") == "Maria Garcia"
    assert extract_requested_name("What is the budget?") is None
    assert extract_requested_name("Tell me about the project") is None


def test_extract_names():
    names = extract_names("JANE DOE\nsenior developer, reviewed by John Smith (john@example.com)")
    assert "Jane Doe" in names
    assert "John Smith" in names


def test_extract_names_rejects_headings():
    assert extract_names("Work Experience\nEducation Skills") == []


def test_has_partial_match():
    assert has_partial_match("jane doe", "jane smith")
    assert has_partial_match("jon", "jonathan reyes")
    assert not has_partial_match("al bo", "alan boyd")
    assert not has_partial_match("jane doe", "john smith")


def test_no_user_fails_closed(records):
    _add_document(records, "d1")
    result = NameMatcher(records).find_matches("Jane Doe", [_snippet("d1", "Jane Doe is here")], TENANT, None)
    assert result.no_matches
    assert result.confidence == 0.0
    assert result.all_found_names == []


def test_exact_match(records):
    _add_document(records, "d1")
    result = NameMatcher(records).find_matches(
        "Jane Doe", [_snippet("d1", "Report prepared by Jane Doe for the board.")], TENANT, USER
    )
    assert result.has_exact_match
    assert result.confidence == 1.0
    assert generate_response(result) == "I found information about Jane Doe in the available documents."


def test_partial_match(records):
    _add_document(records, "d1")
    result = NameMatcher(records).find_matches(
        "Jane Doe", [_snippet("d1", "Signed by Jane Smith on Monday.")], TENANT, USER
    )
    assert not result.has_exact_match
    assert result.partial_matches == ["Jane Smith"]
    assert result.confidence == 0.6
    assert "similar names: Jane Smith" in generate_response(result)


def test_no_match_lists_known_names(records):
    _add_document(records, "d1")
    result = NameMatcher(records).find_matches(
        "Jane Doe", [_snippet("d1", "Signed by Peter Parker on Monday.")], TENANT, USER
    )
    assert result.confidence == 0.0
    assert result.all_found_names == ["Peter Parker"]
    assert "Peter Parker" in generate_response(result)


def test_nothing_found_message(records):
    result = NameMatcher(records).find_matches("Jane Doe", [], TENANT, USER)
    assert result.no_matches
    assert "don't have any information about Jane Doe" in generate_response(result)


def test_personal_snippets_need_a_grant(records):
    _add_document(records, "private", connector_id="my-dropbox")
    snippets = [_snippet("private", "Jane Doe salary details")]
    matcher = NameMatcher(records)

    assert matcher.find_matches("Jane Doe", snippets, TENANT, USER).no_matches

    records.grant_permission("my-dropbox", USER)
    assert matcher.find_matches("Jane Doe", snippets, TENANT, USER).has_exact_match


def test_snippets_from_other_tenants_are_ignored(records):
    records.save_document(Document(id="foreign", tenant_id="other", title="x", connector_id="org-drive"))
    result = NameMatcher(records).find_matches("Jane Doe", [_snippet("foreign", "Jane Doe")], TENANT, USER)
    assert result.no_matches


def test_names_from_document_title(records):
    _add_document(records, "d1", title="Jane_Doe_Resume.pdf")
    result = NameMatcher(records).find_matches(
        "Jane Doe", [_snippet("d1", "php laravel vue", title="Jane_Doe_Resume.pdf")], TENANT, USER
    )
    assert result.has_exact_match
