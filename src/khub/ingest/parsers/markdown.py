"""Markdown file parser."""

import json
import re
from pathlib import Path

_FRONT_MATTER = re.compile(r"^---\s*\n(.*?)\n---\s*\n", re.DOTALL)


class MarkdownParser:
    """Parse markdown, dropping YAML front matter from the indexed text."""

    def parse(self, file_path: Path) -> str:
        text = file_path.read_text(encoding="utf-8", errors="replace")
        return self.strip_front_matter(text)

    @staticmethod
    def front_matter(text: str) -> dict:
        """Return the YAML front matter as a JSON-safe dict ({} if absent or invalid).

        Dates and other YAML scalars without a JSON form become strings.
        """
        import yaml

        match = _FRONT_MATTER.match(text)
        if not match:
            return {}
        try:
            data = yaml.safe_load(match.group(1))
        except yaml.YAMLError:
            return {}
        if not isinstance(data, dict):
            return {}
        return json.loads(json.dumps(data, default=str))

    @staticmethod
    def strip_front_matter(text: str) -> str:
        match = _FRONT_MATTER.match(text)
        return text[match.end():] if match else text
