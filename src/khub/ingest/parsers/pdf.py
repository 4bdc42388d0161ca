"""PDF file parser."""

import re
from pathlib import Path

# Lines that must stay on their own instead of being folded into a paragraph
_STANDALONE = [
    re.compile(r"^[-*•]\s"),
    re.compile(r"^\d+[.)]\s"),
    re.compile(r"^[A-Z][A-Z &/-]{2,40}$"),  # section headings such as "EXPERIENCE"
    re.compile(r"^\S+@\S+\.\w+$"),
]


class PdfParser:
    """Parse PDF files using pypdf."""

    def parse(self, file_path: Path) -> str:
        from pypdf import PdfReader

        reader = PdfReader(str(file_path))
        pages = []
        for page in reader.pages:
            text = page.extract_text() or ""
            if text.strip():
                pages.append(self._reflow(text))
        return "\n\n".join(pages)

    @staticmethod
    def _reflow(text: str) -> str:
        """Fold hard-wrapped lines back into paragraphs.

        Blank lines end a paragraph; list items, headings and bare email
        lines are kept on their own line.
        """
        out: list[str] = []
        para: list[str] = []
        for raw in text.splitlines():
            line = raw.strip()
            if not line or any(p.match(line) for p in _STANDALONE):
                if para:
                    out.append(" ".join(para))
                    para = []
                if line:
                    out.append(line)
                continue
            para.append(line)
        if para:
            out.append(" ".join(para))
        return "\n".join(out)
