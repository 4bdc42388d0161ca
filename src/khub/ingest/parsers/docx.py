"""DOCX file parser."""

from pathlib import Path


class DocxParser:
    """Parse DOCX files using python-docx, tables included."""

    def parse(self, file_path: Path) -> str:
        from docx import Document

        doc = Document(str(file_path))
        blocks = [p.text for p in doc.paragraphs if p.text.strip()]
        for table in doc.tables:
            for row in table.rows:
                cells = [c.text.strip() for c in row.cells if c.text.strip()]
                if cells:
                    blocks.append(" | ".join(cells))
        return "\n\n".join(blocks)
