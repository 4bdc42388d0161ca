"""Name matching guard against answers about people who are not in the documents.

Before the model is asked about a named person, the retrieved snippets are
checked for that name. Only snippets the caller may read are considered, and
a call without a user identity finds nothing.
"""

import logging
import re

from ..models import NameMatchResult, Snippet
from ..storage.records import RecordStore
from .access import DocumentAccess
from .people import NAME_BEFORE_CONTACT, NAME_BEFORE_EMAIL, looks_like_person_name, name_from_title

logger = logging.getLogger(__name__)

ALL_CAPS_NAME = re.compile(r"\b([A-Z]{2,}\s+[A-Z]{2,}(?:\s+[A-Z]{2,})?)\b")
PROPER_CASE_NAME = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,3})\b")

REQUEST_PATTERNS = [
    re.compile(r"\b(?:tell me about|who is|information (?:on|about)|details (?:on|about))\s+([A-Za-z][A-Za-z .'-]+?)\s*[?.!]*$", re.IGNORECASE),
    re.compile(r"\b(?i:does|did|has|is)\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,3})\b"),
    re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+){1,3})'s\b"),
]

EXACT_CONFIDENCE = 1.0
PARTIAL_CONFIDENCE = 0.6
MIN_TOKEN_LENGTH = 3


def extract_requested_name(query: str) -> str | None:
    """The person a question asks about, if it names one."""
    for pattern in REQUEST_PATTERNS:
        match = pattern.search(query.strip())
        if match:
            name = match.group(1).strip()
            if looks_like_person_name(name):
                return " ".join(w.capitalize() if w.islower() else w for w in name.split())
    return None


def extract_names(text: str, document_title: str = "") -> list[str]:
    """Plausible person names in a snippet and its document title."""
    names = [m.title() for m in ALL_CAPS_NAME.findall(text)]
    names += PROPER_CASE_NAME.findall(text)
    names += NAME_BEFORE_EMAIL.findall(text)
    names += NAME_BEFORE_CONTACT.findall(text)
    if document_title:
        title_name = name_from_title(document_title)
        if title_name:
            names.append(title_name)
    return [n for n in dict.fromkeys(names) if looks_like_person_name(n)]


def has_partial_match(requested: str, found: str) -> bool:
    """True when a name token of either side overlaps a token of the other."""
    for want in requested.lower().split():
        for have in found.lower().split():
            if len(want) < MIN_TOKEN_LENGTH or len(have) < MIN_TOKEN_LENGTH:
                continue
            if want == have or want in have or have in want:
                return True
    return False


class NameMatcher:
    """Checks whether a requested person appears in the caller's snippets."""

    def __init__(self, records: RecordStore, access: DocumentAccess | None = None):
        self.records = records
        self.access = access or DocumentAccess(records)

    def _visible(self, snippets: list[Snippet], tenant_id: str, user_id: str) -> list[Snippet]:
        visible = []
        for snippet in snippets:
            if self.access.readable_document(tenant_id, snippet.document_id, user_id) is not None:
                visible.append(snippet)
        return visible

    def find_matches(
        self,
        requested_name: str,
        snippets: list[Snippet],
        tenant_id: str,
        user_id: str | None,
    ) -> NameMatchResult:
        """Classify the requested name as an exact, partial or missing match.

        Args:
            requested_name: The person the user asked about.
            snippets: Retrieved snippets to look in.
            tenant_id: Tenant the snippets must belong to.
            user_id: The caller. Without it nothing is searched.

        Returns:
            NameMatchResult with confidence 1.0 (exact), 0.6 (partial) or 0.0.
        """
        requested = requested_name.strip()
        if not user_id:
            logger.warning("Name matching called without a user id; returning no matches")
            return NameMatchResult(requested_name=requested)

        visible = self._visible(snippets, tenant_id, user_id)
        if len(visible) != len(snippets):
            logger.info(f"Name matching: {len(snippets) - len(visible)} snippet(s) hidden from user {user_id}")

        wanted = requested.lower()
        exact, partial, found = [], [], []
        for snippet in visible:
            for name in extract_names(snippet.text, snippet.document_title):
                found.append(name)
                if name.lower() == wanted:
                    exact.append(name)
                elif has_partial_match(wanted, name):
                    partial.append(name)

        if exact:
            confidence = EXACT_CONFIDENCE
        elif partial:
            confidence = PARTIAL_CONFIDENCE
        else:
            confidence = 0.0
        return NameMatchResult(
            requested_name=requested,
            exact_matches=list(dict.fromkeys(exact)),
            partial_matches=list(dict.fromkeys(partial)),
            all_found_names=list(dict.fromkeys(found)),
            confidence=confidence,
        )


def generate_response(result: NameMatchResult) -> str:
    """User-facing text that only mentions names actually found."""
    name = result.requested_name
    if result.has_exact_match:
        return f"I found information about {name} in the available documents."
    if result.has_partial_match:
        similar = ", ".join(result.partial_matches)
        return (
            f"I don't have specific information about {name}, but I found similar names: "
            f"{similar}. Would you like me to tell you about any of these people instead?"
        )
    if result.all_found_names:
        others = ", ".join(result.all_found_names)
        return (
            f"I don't have information about {name} in the available documents. However, I do "
            f"have information about: {others}. Would you like me to tell you about any of these people instead?"
        )
    return (
        f"I don't have any information about {name} in the available documents. "
        "The documents don't contain any person information that I can share."
    )
