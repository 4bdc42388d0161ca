"""Entity-aware search across all of a tenant's documents.

Vector search only ever sees the top few chunks, which cannot answer
"how many people know Laravel?". Entity queries are detected up front and
answered by scanning every candidate document instead.
"""

import logging
import re

from ..models import Document, EntityQuery, EntityRecord, EntitySearchResult
from ..storage.records import RecordStore
from .access import DocumentAccess
from .people import clean_title, extract_email, extract_person_name, extract_phone

logger = logging.getLogger(__name__)

# An action must be paired with an entity noun; bare "list" or "what" never match
DETECTION_PATTERNS = [
    re.compile(r"\b(who (knows?|has|uses?|works?))\b"),
    re.compile(r"\b(which (people|persons?|users?|developers?|candidates?))\b"),
    re.compile(r"\b(how many|count|number of)\s+(people|persons?|users?|developers?|candidates?)\b"),
    re.compile(
        r"\b(list|find|get|show)(\s+me)?(\s+list)?(\s+of)?(\s+all)?(\s+the)?(\s+unique)?"
        r"\s+(people|persons?|users?|developers?|candidates?|companies|vendors?|products?)\b"
    ),
    re.compile(
        r"\b(give\s+me)(\s+list)?(\s+of)?(\s+all)?(\s+the)?(\s+unique)?"
        r"\s+(people|persons?|users?|developers?|candidates?)\b"
    ),
    re.compile(r"^(people|users?|developers?|candidates?|companies|products?) (who|that|with)\b"),
    re.compile(r"\b(unique|all|every)\s+(people|persons?|users?|developers?)\b"),
]

COUNT_PATTERN = re.compile(r"\b(how many|count|number of)\b")

ENTITY_TYPE_RULES = [
    # "who knows X" asks about people even without a person noun
    ("person", re.compile(
        r"^who\b|\b(people|persons?|users?|individuals?|candidates?|developers?|engineers?"
        r"|designers?|managers?|employees?)\b"
    )),
    ("company", re.compile(r"\b(companies|organizations?|businesses?|vendors?|clients?|partners?)\b")),
    ("product", re.compile(r"\b(products?|services?|tools?|solutions?|apps?|platforms?)\b")),
]

# (intent, pattern, extract keywords)
INTENT_RULES = [
    ("skill_search", re.compile(
        r"\b(with|has|have|knows?|skilled in|proficient in|experienced in)\b.*"
        r"\b(skills?|experience|expertise|knowledge)\b"
    ), True),
    ("skill_search", re.compile(r"\b(knows?|uses?|works? with)\b"), True),
    ("experience_search", re.compile(r"\b(years? of experience|work experience|background in)\b"), False),
    ("location_search", re.compile(r"\b(in|from|located in|based in)\b.*\b(city|country|location)\b"), False),
]
DEFAULT_INTENT = "general_person_search"

KEYWORD_STOPWORDS = {
    "who", "what", "which", "where", "when", "how", "many", "much", "count", "number",
    "know", "knows", "use", "uses", "has", "have", "with", "about", "the", "list",
    "all", "find", "get", "show", "give", "people", "users", "person", "user",
    "developers", "developer", "candidates", "candidate", "skills", "skill",
    "experience", "expertise", "knowledge", "and", "for", "their", "that", "both",
    "either", "neither", "not", "but", "worked", "works", "work", "based",
    "located", "from", "are", "does", "can", "unique", "every", "any",
}

PERSON_DOC_TYPES = {"resume", "cv", "cover_letter"}
NOISE_ATTRIBUTES = {"resume", "cv", "cover", "letter", "cover_letter"}
MAX_OTHER_SKILLS = 10
SUMMARY_CHARS = 200


def extract_keywords(query: str) -> list[str]:
    """Query words that could name a skill or attribute."""
    words = [w.strip("?.,!;:\"'()") for w in query.lower().split()]
    return [w for w in words if len(w) > 2 and w not in KEYWORD_STOPWORDS]


def detect(query: str) -> EntityQuery:
    """Classify a query as a multi-document entity question or not."""
    q = query.lower().strip()
    is_count = bool(COUNT_PATTERN.search(q))
    if not any(p.search(q) for p in DETECTION_PATTERNS):
        return EntityQuery(is_entity_query=False, is_count_query=is_count)

    entity_type = next((t for t, p in ENTITY_TYPE_RULES if p.search(q)), "entity")

    intent, keywords = DEFAULT_INTENT, extract_keywords(q)
    for name, pattern, wants_keywords in INTENT_RULES:
        if pattern.search(q):
            intent = name
            keywords = extract_keywords(q) if wants_keywords else []
            break

    logger.info(f"Entity query detected: type={entity_type} intent={intent} keywords={keywords}")
    return EntityQuery(
        is_entity_query=True,
        entity_type=entity_type,
        intent=intent,
        keywords=keywords,
        is_count_query=is_count,
        confidence=0.9,
    )


def _union(first: list[str], second: list[str]) -> list[str]:
    return list(dict.fromkeys([*first, *second]))


class EntitySearch:
    """Scans a tenant's visible documents for entities matching a query."""

    def __init__(self, records: RecordStore, access: DocumentAccess | None = None):
        self.records = records
        self.access = access or DocumentAccess(records)

    detect = staticmethod(detect)

    def _candidates(self, info: EntityQuery, tenant_id: str, user_id: str | None) -> list[Document]:
        documents = [d for d in self.records.list_documents(tenant_id) if self.access.can_read(d, user_id)]
        if info.entity_type != "person":
            return documents
        resumes = [d for d in documents if d.doc_type in PERSON_DOC_TYPES]
        with_emails = [d for d in documents
                       if d.doc_type not in PERSON_DOC_TYPES and d.metadata.get("emails")]
        return resumes + with_emails

    def _document_text(self, document: Document) -> str:
        return " ".join(c.text for c in self.records.list_chunks(document.tenant_id, document.id))

    def _entity_from(self, document: Document, info: EntityQuery) -> EntityRecord | None:
        text = self._document_text(document)
        if info.entity_type == "person":
            name = extract_person_name(document.title, text)
            if name is None:
                return None
        else:
            name = clean_title(document.title) or document.title

        matched: list[str] = []
        if info.intent == "skill_search" and info.keywords:
            lowered = text.lower()
            matched = [kw for kw in info.keywords if kw in lowered]
            if not matched:
                return None

        connector = (self.records.get_connector(document.tenant_id, document.connector_id)
                     if document.connector_id else None)
        return EntityRecord(
            name=name,
            document_id=document.id,
            document_title=document.title,
            matched_attributes=matched,
            all_attributes=list(document.tags),
            email=extract_email(text),
            phone=extract_phone(text),
            summary=text[:SUMMARY_CHARS] + ("..." if len(text) > SUMMARY_CHARS else ""),
            source_type=connector.type if connector else "unknown",
        )

    def search(
        self,
        query: str,
        info: EntityQuery,
        tenant_id: str,
        user_id: str | None = None,
    ) -> EntitySearchResult:
        """Find distinct entities matching the query across candidate documents.

        Entities are deduplicated by email, then name; duplicates merge their
        attribute lists.
        """
        by_key: dict[str, EntityRecord] = {}
        for document in self._candidates(info, tenant_id, user_id):
            entity = self._entity_from(document, info)
            if entity is None:
                continue
            key = (entity.email or "").lower() or entity.name.lower() or f"doc:{document.id}"
            existing = by_key.get(key)
            if existing is None:
                by_key[key] = entity
            else:
                existing.matched_attributes = _union(existing.matched_attributes, entity.matched_attributes)
                existing.all_attributes = _union(existing.all_attributes, entity.all_attributes)

        entities = list(by_key.values())
        logger.info(f"Entity search for {query!r} in tenant {tenant_id}: {len(entities)} found")
        return EntitySearchResult(entities=entities, total=len(entities), entity_type=info.entity_type)


_LABELS = {
    "person": ("person", "people"),
    "company": ("company", "companies"),
    "product": ("product", "products"),
}


def other_attributes(entity: EntityRecord) -> list[str]:
    matched = {m.lower() for m in entity.matched_attributes}
    others = [a for a in entity.all_attributes
              if a.lower() not in matched and a.lower() not in NOISE_ATTRIBUTES]
    return others[:MAX_OTHER_SKILLS]


def format_entity_results(result: EntitySearchResult, is_count: bool = False) -> str:
    """Render entity search results as chat text; count queries list names only."""
    singular, plural = _LABELS.get(result.entity_type or "", ("result", "results"))
    label = singular if result.total == 1 else plural

    if result.total == 0:
        return f"0 {plural} in your knowledge base match this criteria."

    if is_count:
        names = "\n".join(f"• {name}" for name in result.names)
        return f"{result.total} {label} in your knowledge base match this criteria.\n\n{names}"

    lines = [f"Found {result.total} {label} matching your query:", ""]
    for entity in result.entities:
        lines.append(entity.name)
        if entity.matched_attributes:
            lines.append("   Matched Skills: " + ", ".join(a.capitalize() for a in entity.matched_attributes))
        if others := other_attributes(entity):
            lines.append("   Other Skills: " + ", ".join(a.capitalize() for a in others))
        if entity.email:
            lines.append(f"   Email: {entity.email}")
        if entity.phone:
            lines.append(f"   Phone: {entity.phone}")
        lines.append("")
    return "\n".join(lines).strip()
