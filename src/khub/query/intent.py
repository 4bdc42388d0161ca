"""Query intent detection, used to shape how answers are structured."""

import re
from dataclasses import dataclass, field

INTENT_RULES: list[tuple[str, re.Pattern]] = [
    ("skills", re.compile(r"\b(skill|technolog|tech stack|know|proficient|expert)")),
    ("experience", re.compile(r"\b(experience|work|job|position|role|employment)")),
    ("projects", re.compile(r"\b(project|built|developed|created|designed|portfolio)")),
    ("education", re.compile(r"\b(education|degree|universit|college|certification|trained)")),
    ("contact", re.compile(r"\b(contact|email|phone|address|reach|linkedin|github)")),
    ("summary", re.compile(r"\b(summary|overview|about|tell me|who is|profile)")),
    ("comparison", re.compile(r"\b(compare|versus|vs|difference|better|similar)\b")),
    ("list", re.compile(r"\b(list|all|every|enumerate|what are)\b")),
    ("financial", re.compile(r"\b(price|cost|invoice|payment|budget|revenue)")),
    ("timeline", re.compile(r"\b(when|timeline|history|latest|recent|last|first)\b")),
]

FORMATTING = {
    "skills": (
        "Group the skills you find (technical, design, infrastructure, methodologies) "
        "and mention proficiency only where the snippets state it."
    ),
    "experience": (
        "List roles most recent first with organization, title, dates and key "
        "responsibilities when the snippets give them."
    ),
    "projects": "For each project give its purpose, the tools used and any stated outcome.",
    "education": "List degrees, institutions, certifications and dates that appear in the snippets.",
    "financial": "Quote amounts, currencies, dates and terms exactly as written.",
    "comparison": "Name the items compared, then their similarities and differences.",
    "summary": "Give a short overview of the most relevant facts.",
}
DEFAULT_FORMATTING = "Answer directly and keep the structure simple."


@dataclass
class QueryIntent:
    primary: str = "general"
    intents: list[str] = field(default_factory=list)


def detect_intent(query: str) -> QueryIntent:
    q = query.lower()
    intents = [name for name, pattern in INTENT_RULES if pattern.search(q)]
    if not intents:
        return QueryIntent(primary="general", intents=["general"])
    return QueryIntent(primary=intents[0], intents=intents)


def formatting_instructions(intent: QueryIntent) -> str:
    return FORMATTING.get(intent.primary, DEFAULT_FORMATTING)
