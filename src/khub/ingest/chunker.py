"""Overlapping text chunking that keeps track of source offsets.

Every chunk is an exact slice of the input (``text[char_start:char_end]``),
so offsets can always be resolved back to the original document.
"""

import re
from collections.abc import Callable

from ..models import ChunkSpan

_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_NUMBERED = re.compile(r"^\s*\d+[.)]\s+")
_BULLET = re.compile(r"^\s*[-*•]\s+")

# Structured detection thresholds
_MIN_MARKER_LINES = 3
_MIN_QUESTION_RATIO = 0.3

Span = tuple[int, int]


def estimate_tokens(text: str) -> int:
    """Rough token estimate (~4 chars per token)."""
    return len(text) // 4


def is_structured(text: str) -> bool:
    """True for list-heavy or question-dense text (FAQs, checklists)."""
    lines = [ln for ln in text.splitlines() if ln.strip()]
    if not lines:
        return False
    numbered = sum(1 for ln in lines if _NUMBERED.match(ln))
    bullets = sum(1 for ln in lines if _BULLET.match(ln))
    questions = sum(1 for ln in lines if ln.rstrip().endswith("?"))
    if numbered >= _MIN_MARKER_LINES or bullets >= _MIN_MARKER_LINES:
        return True
    return questions >= _MIN_MARKER_LINES and questions / len(lines) >= _MIN_QUESTION_RATIO


def _is_marker(line: str) -> bool:
    return bool(_NUMBERED.match(line) or _BULLET.match(line)) or line.rstrip().endswith("?")


def _sentence_spans(text: str, lo: int, hi: int) -> list[Span]:
    spans = []
    start = lo
    for m in _SENTENCE_BREAK.finditer(text, lo, hi):
        spans.append((start, m.end()))
        start = m.end()
    if start < hi:
        spans.append((start, hi))
    return spans


def _line_spans(text: str, lo: int, hi: int) -> list[Span]:
    spans = []
    start = lo
    while start < hi:
        nl = text.find("\n", start, hi)
        end = hi if nl == -1 else nl + 1
        spans.append((start, end))
        start = end
    return spans


def _wrap(text: str, spans: list[Span], limit: int) -> list[Span]:
    """Hard-split spans longer than limit, preferring the last space."""
    out = []
    for start, end in spans:
        while end - start > limit:
            cut = text.rfind(" ", start + 1, start + limit)
            cut = start + limit if cut == -1 else cut + 1
            out.append((start, cut))
            start = cut
        out.append((start, end))
    return out


def _pack(
    text: str,
    units: list[Span],
    overlap_chars: int,
    should_close: Callable[[int, int, Span], bool],
) -> list[ChunkSpan]:
    """Greedily group units into chunks, seeding each with the previous tail.

    should_close(chunk_start, chunk_end, next_unit) decides whether the
    current chunk ends before next_unit.
    """
    chunks: list[ChunkSpan] = []
    chunk_start: int | None = None
    chunk_end = 0
    prev_start = 0

    for unit in units:
        if chunk_start is not None and should_close(chunk_start, chunk_end, unit):
            chunks.append(ChunkSpan(text[chunk_start:chunk_end], chunk_start, chunk_end))
            prev_start = chunk_start
            chunk_start = None
        if chunk_start is None:
            if chunks:
                chunk_start = max(0, prev_start, unit[0] - overlap_chars)
            else:
                chunk_start = unit[0]
        chunk_end = unit[1]

    if chunk_start is not None and chunk_end > chunk_start:
        chunks.append(ChunkSpan(text[chunk_start:chunk_end], chunk_start, chunk_end))
    return chunks


def chunk_text(
    text: str,
    target_chars: int = 2000,
    overlap_chars: int = 200,
) -> list[ChunkSpan]:
    """Split text into overlapping chunks with original-document offsets.

    Prose is split on sentence boundaries and a chunk closes once the next
    sentence would push it past target_chars. Structured text (lists, FAQs)
    is split line by line: a new chunk starts at a list/question marker once
    the current chunk is over half the target, and always before it would
    exceed 1.5x the target.

    Args:
        text: The document text.
        target_chars: Preferred chunk size in characters.
        overlap_chars: Characters of the previous chunk repeated at the start
            of the next one.

    Returns:
        Chunks in document order. Empty for empty or whitespace-only text.
    """
    if target_chars <= 0:
        raise ValueError("target_chars must be positive")
    if overlap_chars < 0 or overlap_chars >= target_chars:
        raise ValueError("overlap_chars must be >= 0 and smaller than target_chars")

    if not text.strip():
        return []
    lo, hi = 0, len(text)

    if is_structured(text):
        units = _wrap(text, _line_spans(text, lo, hi), target_chars)
        hard_limit = target_chars * 1.5

        def should_close(start: int, end: int, unit: Span) -> bool:
            if unit[1] - start > hard_limit:
                return True
            return _is_marker(text[unit[0]:unit[1]]) and end - start > target_chars / 2
    else:
        units = _wrap(text, _sentence_spans(text, lo, hi), target_chars)

        def should_close(start: int, end: int, unit: Span) -> bool:
            return unit[1] - start > target_chars

    return _pack(text, units, overlap_chars, should_close)
