"""Person-name heuristics shared by entity search and name matching."""

import re

from ..ingest.classifier import PHONE_RE

MAX_NAME_LENGTH = 50
MAX_WORD_LENGTH = 15

# Words that show a "name" is really a document title or a resume heading
NAME_BLACKLIST = {
    "document", "untitled", "spreadsheet", "project", "programming", "technical",
    "issues", "certificate", "links", "data", "promo", "contest", "thanks",
    "study", "file", "resume", "cv", "pdf", "docx", "txt", "phone", "email",
    "address", "objective", "experience", "education", "skills", "work", "job",
    "company", "new", "copy", "draft", "final", "template",
}

_FILE_EXTENSION = re.compile(r"\.(pdf|docx?|txt|csv|md|rtf)$", re.IGNORECASE)
_TITLE_NOISE = re.compile(r"\b(resume|cv|curriculum vitae|cover\s+letter|final|draft|copy)\b", re.IGNORECASE)

ALL_CAPS_LINE = re.compile(r"^([A-Z]{2,}\s+[A-Z]{2,}(?:\s+[A-Z]{2,})?)\s", re.MULTILINE)
NAME_BEFORE_EMAIL = re.compile(r"([A-Z][a-z]+\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\s+.*?[a-z0-9._%+-]+@")
NAME_BEFORE_CONTACT = re.compile(
    r"([A-Z][a-z]+\s+[A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\s+.*?(?:Telephone:|Phone:|Tel:|Email:|\+?\d{3})"
)

EMAIL = re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b")


def looks_like_person_name(name: str | None) -> bool:
    """Plausibility filter that rejects titles, headings and junk."""
    if not name:
        return False
    name = name.strip()
    if len(name) > MAX_NAME_LENGTH or "(" in name or ")" in name:
        return False
    words = name.split()
    if len(words) < 2:
        return False
    if any(len(w) > MAX_WORD_LENGTH for w in words):
        return False
    return not any(w.lower().strip(".,-_") in NAME_BLACKLIST for w in words)


def clean_title(title: str) -> str:
    """Strip file extension, resume/CV wording and separators from a title."""
    cleaned = _FILE_EXTENSION.sub("", title or "")
    cleaned = re.sub(r"[_\-]+", " ", cleaned)
    cleaned = _TITLE_NOISE.sub(" ", cleaned)
    return re.sub(r"\s+", " ", cleaned).strip()


def name_from_title(title: str) -> str | None:
    """A 2-4 word person name taken from a document title, title-cased."""
    cleaned = clean_title(title)
    words = [w for w in cleaned.split() if w.isalpha()]
    if 2 <= len(words) <= 4:
        return " ".join(w.capitalize() for w in words)
    return None


def extract_person_name(title: str, text: str) -> str | None:
    """Best guess at the person a document is about.

    Tries the title first, then the opening of the text: an all-caps name
    line, a name followed by an email, a name followed by a contact label.
    """
    candidate = name_from_title(title)
    if looks_like_person_name(candidate):
        return candidate

    head = text[:500]
    for pattern in (ALL_CAPS_LINE, NAME_BEFORE_EMAIL, NAME_BEFORE_CONTACT):
        match = pattern.search(head)
        if match:
            name = match.group(1)
            if name.isupper():
                name = name.title()
            if looks_like_person_name(name):
                return name
    return None


def extract_email(text: str) -> str | None:
    match = EMAIL.search(text)
    return match.group(0) if match else None


def extract_phone(text: str) -> str | None:
    match = PHONE_RE.search(text)
    return match.group(0).strip() if match else None
