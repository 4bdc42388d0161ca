"""Prompt templates for grounded question answering."""

from ..models import Snippet

ANSWER_SYSTEM_PROMPT = (
    "You answer questions about an organization's documents. Use ONLY the numbered "
    "snippets you are given. Never invent people, facts or figures that are not in them."
)

ANSWER_PROMPT = """{context_blocks}Snippets:
{snippets}

Question: {question}

Rules:
- Answer only from the snippets above.
- Say "I don't know" only if none of the snippets is relevant to the question.
- Cite every snippet you used by its number.
- {formatting}

Respond in this exact JSON format:
{{
  "answer": "your answer",
  "sources": [
    {{"id": 1, "document_id": "document id", "char_start": 0, "char_end": 100}}
  ]
}}"""

CONVERSATION_BLOCK = """Recent conversation:
{conversation}

"""

LAST_ANSWER_BLOCK = """The user is refining this previous answer:
{last_answer}

"""


def format_snippet(number: int, snippet: Snippet, excerpt_chars: int) -> str:
    excerpt = snippet.text[:excerpt_chars]
    title = snippet.document_title or "Untitled"
    return (
        f"[{number}] {title} (document {snippet.document_id}, "
        f"chars {snippet.char_start}-{snippet.char_end})\n{excerpt}"
    )


def build_answer_prompt(
    question: str,
    snippets: list[Snippet],
    excerpt_chars: int = 800,
    conversation: str | None = None,
    last_answer: str | None = None,
    formatting: str = "Answer directly and keep the structure simple.",
) -> str:
    """Assemble the answer prompt. Snippets are numbered from 1 in the given order."""
    blocks = ""
    if conversation:
        blocks += CONVERSATION_BLOCK.format(conversation=conversation)
    if last_answer:
        blocks += LAST_ANSWER_BLOCK.format(last_answer=last_answer)

    numbered = "\n\n".join(
        format_snippet(i, s, excerpt_chars) for i, s in enumerate(snippets, 1)
    )
    return ANSWER_PROMPT.format(
        context_blocks=blocks,
        snippets=numbered,
        question=question,
        formatting=formatting,
    )
