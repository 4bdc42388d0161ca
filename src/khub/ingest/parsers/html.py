"""HTML file parser."""

from pathlib import Path


class HtmlParser:
    """Parse HTML files using BeautifulSoup."""

    def parse(self, file_path: Path) -> str:
        return self.parse_markup(file_path.read_text(encoding="utf-8", errors="replace"))

    @staticmethod
    def parse_markup(markup: str) -> str:
        from bs4 import BeautifulSoup

        soup = BeautifulSoup(markup, "lxml")
        # Page chrome never carries document content
        for tag in soup(["script", "style", "nav", "footer", "header", "noscript"]):
            tag.decompose()
        return soup.get_text(separator="\n", strip=True)
