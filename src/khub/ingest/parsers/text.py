"""Plain text file parser."""

from pathlib import Path


class TextParser:
    """Read plain text files, tolerating bad encodings."""

    def parse(self, file_path: Path) -> str:
        return file_path.read_text(encoding="utf-8", errors="replace")
