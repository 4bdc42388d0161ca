"""Rule-based document classification.

Rules are ordered ``(predicate, doc_type)`` tables evaluated top to bottom;
the first predicate that fires decides the document type.
"""

import re
from collections.abc import Callable

from ..models import Classification

MAX_TAGS = 10
WORDS_PER_MINUTE = 200

# (pattern over the lowercased filename, doc_type)
FILENAME_RULES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"resume|(?<![a-z])cv(?![a-z])|curriculum"), "resume"),
    (re.compile(r"cover.*letter|application"), "cover_letter"),
    (re.compile(r"contract|agreement|terms"), "contract"),
    (re.compile(r"report|analysis|summary"), "report"),
    (re.compile(r"invoice|receipt|bill"), "financial"),
    (re.compile(r"proposal|pitch|deck"), "proposal"),
    (re.compile(r"meeting|notes|minutes"), "meeting_notes"),
]

RESUME_KEYWORDS = ["experience", "education", "skills", "professional summary", "work history"]


def _looks_like_resume(text: str, filename: str, mime: str) -> bool:
    return sum(1 for kw in RESUME_KEYWORDS if kw in text) >= 3


def _looks_like_contract(text: str, filename: str, mime: str) -> bool:
    return ("whereas" in text and "hereinafter" in text) or "terms and conditions" in text


def _looks_financial(text: str, filename: str, mime: str) -> bool:
    return "invoice" in text or "total amount" in text or "payment due" in text


def _is_presentation(text: str, filename: str, mime: str) -> bool:
    return "presentation" in mime or ".ppt" in filename


def _is_spreadsheet(text: str, filename: str, mime: str) -> bool:
    return "spreadsheet" in mime or ".xls" in filename


def _looks_technical(text: str, filename: str, mime: str) -> bool:
    if "readme" in filename or "documentation" in filename:
        return True
    return "function" in text and "class" in text


def _is_text(text: str, filename: str, mime: str) -> bool:
    return mime.startswith("text/")


# (predicate(lowered text, lowered filename, lowered mime), doc_type)
CONTENT_RULES: list[tuple[Callable[[str, str, str], bool], str]] = [
    (_looks_like_resume, "resume"),
    (_looks_like_contract, "contract"),
    (_looks_financial, "financial"),
    (_is_presentation, "presentation"),
    (_is_spreadsheet, "spreadsheet"),
    (_looks_technical, "technical_doc"),
    (_is_text, "text_document"),
]

DEFAULT_DOC_TYPE = "general_document"

TECH_VOCABULARY = [
    "react", "vue", "angular", "next.js", "nuxt", "laravel", "django", "flask",
    "fastapi", "express", "node.js", "python", "php", "javascript", "typescript",
    "java", "golang", "rust", "docker", "kubernetes", "jenkins", "github actions",
    "aws", "azure", "gcp", "digitalocean", "mongodb", "postgresql", "mysql",
    "redis", "elasticsearch", "figma", "sketch", "adobe xd", "photoshop",
    "illustrator", "tailwind", "bootstrap", "sass", "css", "git", "ci/cd",
    "agile", "scrum",
]

_TECH_PATTERNS = [
    (term, re.compile(r"(?<![a-z0-9])" + re.escape(term) + r"(?![a-z0-9])"))
    for term in TECH_VOCABULARY
]

EMAIL_RE = re.compile(r"[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}")
# Needs a leading +, a bracketed area code or dashed/dotted 3-3-4 groups, so
# runs of years such as "2018 2019 2020" never read as a number.
PHONE_RE = re.compile(
    r"(?<![\w+])(?:"
    r"\+\d{1,3}[\s.-]?\(?\d{1,4}\)?(?:[\s.-]?\d{2,4}){2,3}"
    r"|\(\d{2,4}\)\s?\d{3,4}[\s.-]?\d{3,4}"
    r"|\d{3}[.-]\d{3}[.-]\d{4}"
    r")(?!\d)"
)
YEAR_RE = re.compile(r"\b(?:19|20)\d{2}\b")
URL_RE = re.compile(r"https?://[^\s]+")
WORD_RE = re.compile(r"[A-Za-z][A-Za-z'-]*")

ENGLISH_MARKERS = ["the", "and", "is", "in", "to", "of", "for"]
_ENGLISH_RES = [re.compile(rf"\b{w}\b") for w in ENGLISH_MARKERS]


def detect_doc_type(text: str, filename: str = "", mime_type: str = "") -> str:
    """Return the first matching doc type: filename rules, then content/MIME rules."""
    name = filename.lower()
    for pattern, doc_type in FILENAME_RULES:
        if pattern.search(name):
            return doc_type

    lowered = text.lower()
    mime = (mime_type or "").lower()
    for predicate, doc_type in CONTENT_RULES:
        if predicate(lowered, name, mime):
            return doc_type
    return DEFAULT_DOC_TYPE


def extract_tags(text: str, doc_type: str) -> list[str]:
    """doc_type plus recognised technology terms, deduplicated, at most 10."""
    lowered = text.lower()
    tags = [doc_type]
    for term, pattern in _TECH_PATTERNS:
        if term not in tags and pattern.search(lowered):
            tags.append(term)
    return tags[:MAX_TAGS]


def _unique(items: list[str]) -> list[str]:
    return list(dict.fromkeys(items))


def detect_language(text: str) -> str:
    sample = text[:500].lower()
    hits = sum(1 for r in _ENGLISH_RES if r.search(sample))
    return "en" if hits >= 4 else "unknown"


def extract_metadata(text: str) -> dict:
    """Pull contact details, years, links and reading stats out of text."""
    metadata: dict = {}

    if emails := _unique(EMAIL_RE.findall(text)):
        metadata["emails"] = emails

    if phones := _unique(m.strip() for m in PHONE_RE.findall(text)):
        metadata["phones"] = phones[:3]

    if years := _unique(YEAR_RE.findall(text)):
        metadata["years_mentioned"] = years

    if urls := _unique(URL_RE.findall(text)):
        metadata["urls"] = urls[:5]

    word_count = len(WORD_RE.findall(text))
    metadata["word_count"] = word_count
    metadata["reading_time_minutes"] = max(1, round(word_count / WORDS_PER_MINUTE))
    metadata["language"] = detect_language(text)
    return metadata


def classify(text: str, filename: str = "", mime_type: str = "") -> Classification:
    """Classify a document by filename, content and MIME type.

    Never raises; empty text yields the default classification.
    """
    if not text or not text.strip():
        return Classification()

    doc_type = detect_doc_type(text, filename, mime_type)
    return Classification(
        doc_type=doc_type,
        tags=extract_tags(text, doc_type),
        metadata=extract_metadata(text),
    )
