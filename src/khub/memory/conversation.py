"""In-conversation memory: meta-question detection and history helpers."""

import re

from ..models import Message

META_PATTERNS = [
    re.compile(r"\b(what (did|was|were) (i|we|the last thing))\b.*\b(ask|say|discuss|talk)"),
    re.compile(r"\b(you (said|mentioned|told|explained))\b"),
    re.compile(r"\b(last (thing|question|query|message))\b.*\b(asked?|said)\b"),
    re.compile(r"\b(remind me|recall|remember)\b"),
    re.compile(r"\b(our (conversation|discussion|chat))\b"),
    re.compile(r"\b(what was (my|the) (last|previous) (question|query|thing))\b"),
    re.compile(r"\b(go back|look back)\b"),
    re.compile(r"\b(you answered|your (answer|response))\b"),
]

SESSION_PATTERNS = [
    re.compile(r"\b(last (week|month|time|session|chat))\b"),
    re.compile(r"\b(previous (conversation|chat|session))\b"),
    re.compile(r"\b((weeks?|months?|days?) ago)\b"),
    re.compile(r"\b(in our (past|previous|earlier) (conversations?|chats?))\b"),
    re.compile(r"\b(across (all|our) (conversations?|chats?))\b"),
]

HISTORY_STOPWORDS = {
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "was", "one",
    "our", "out", "get", "has", "how", "what", "when", "where", "who", "why",
    "did", "does", "this", "that", "with", "from", "have", "about", "tell", "me",
}


def is_session_memory_query(query: str) -> bool:
    """True when the question is about earlier conversations, not this one."""
    q = query.lower()
    return any(p.search(q) for p in SESSION_PATTERNS)


def is_meta_question(query: str) -> bool:
    """True for questions about the current conversation itself."""
    q = query.lower()
    if is_session_memory_query(q):
        return False
    return any(p.search(q) for p in META_PATTERNS)


def last_message(history: list[Message], role: str) -> Message | None:
    for message in reversed(history):
        if message.role == role:
            return message
    return None


def format_conversation_for_prompt(history: list[Message], max_messages: int = 10) -> str:
    """Render the tail of a conversation as ``User:`` / ``Assistant:`` lines."""
    lines = []
    for message in history[-max_messages:]:
        speaker = "User" if message.role == "user" else "Assistant"
        lines.append(f"{speaker}: {message.content}")
    return "\n".join(lines)


def extract_keywords(text: str) -> list[str]:
    words = re.findall(r"[a-z0-9][a-z0-9'-]*", text.lower())
    return [w for w in words if len(w) > 2 and w not in HISTORY_STOPWORDS]


def search_conversation_history(history: list[Message], query: str, limit: int = 5) -> list[Message]:
    """Messages sharing the most keywords with the query, best first."""
    keywords = set(extract_keywords(query))
    if not keywords:
        return []
    scored = []
    for position, message in enumerate(history):
        content = message.content.lower()
        score = sum(1 for kw in keywords if kw in content)
        if score:
            scored.append((score, position, message))
    scored.sort(key=lambda item: (-item[0], -item[1]))
    return [message for _, _, message in scored[:limit]]


def build_meta_response(query: str, history: list[Message]) -> str | None:
    """Answer simple questions about the conversation straight from history.

    Returns None when the question needs the model.
    """
    q = query.lower()
    user_messages = [m for m in history if m.role == "user"]
    assistant_messages = [m for m in history if m.role == "assistant"]

    if not history:
        return "We haven't discussed anything yet in this conversation."

    if re.search(r"\b(what (did|was) (i|my)|last (question|query|thing)|previous (question|query))", q):
        if not user_messages:
            return "You haven't asked anything yet in this conversation."
        return f'Your last question was: "{user_messages[-1].content}"'

    if re.search(r"\b(you (said|answered|told|mentioned)|your (answer|response))\b", q):
        if not assistant_messages:
            return "I haven't answered anything yet in this conversation."
        return f'My last answer was: "{assistant_messages[-1].content}"'

    if re.search(r"\b(what (did|have) we (discuss|talk)|our (conversation|discussion|chat))", q):
        topics = [m.content for m in user_messages[-5:]]
        if not topics:
            return None
        listed = "\n".join(f"- {t}" for t in topics)
        return f"So far in this conversation you asked about:\n{listed}"

    return None
