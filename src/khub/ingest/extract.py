"""Text extraction adapters, one per connector type.

Each connector type lists the places its payload may carry content, tried in
order until one yields text. Unsupported or unreadable content produces an
empty string; the pipeline decides what that means.
"""

import logging
import mimetypes
import tempfile
from pathlib import Path

import httpx

from ..errors import UnsupportedConnector
from ..models import RawDocument
from .parsers import MIME_SUFFIXES, PARSERS, parser_for
from .parsers.html import HtmlParser
from .parsers.markdown import MarkdownParser

logger = logging.getLogger(__name__)

CONNECTOR_SOURCES = {
    "manual_upload": ("extracted_text", "tmp_path", "content"),
    "google_drive": ("extracted_text", "content", "tmp_path", "source_url"),
    "dropbox": ("extracted_text", "content", "tmp_path", "source_url"),
    "notion": ("extracted_text", "content"),
    "slack": ("extracted_text", "content"),
}


def raw_from_file(path: Path, user_id: str | None = None) -> RawDocument:
    """Describe a local file as a manual upload; the external id is its absolute path.

    Markdown front matter is kept in the document metadata under ``front_matter``.
    """
    path = Path(path).resolve()
    mime_type, _ = mimetypes.guess_type(path.name)
    metadata = {}
    if PARSERS.get(path.suffix.lower()) is MarkdownParser:
        front_matter = MarkdownParser.front_matter(path.read_text(encoding="utf-8", errors="replace"))
        if front_matter:
            metadata["front_matter"] = front_matter
    return RawDocument(
        title=path.name,
        external_id=str(path),
        mime_type=mime_type or "text/plain",
        tmp_path=str(path),
        size=path.stat().st_size,
        metadata=metadata,
        user_id=user_id,
    )


def collect_files(directory: Path) -> list[Path]:
    """Supported files under a directory, recursively, skipping hidden ones."""
    return sorted(
        p for p in Path(directory).rglob("*")
        if p.is_file() and p.suffix.lower() in PARSERS and not p.name.startswith(".")
    )


def _base_mime(mime_type: str | None) -> str:
    return (mime_type or "").split(";")[0].strip().lower()


def parse_path(path: Path, mime_type: str = "") -> str:
    """Run the parser registered for a file; empty string when there is none."""
    parser_cls = parser_for(path.suffix, mime_type)
    if parser_cls is None:
        logger.info(f"No parser for {path.name} ({mime_type or 'unknown type'})")
        return ""
    try:
        return parser_cls().parse(path)
    except Exception as e:
        logger.warning(f"Failed to parse {path.name}: {e}")
        return ""


def parse_bytes(data: bytes, mime_type: str = "", filename: str = "") -> str:
    """Spool bytes to a temporary file and parse it."""
    suffix = Path(filename).suffix or MIME_SUFFIXES.get(_base_mime(mime_type), "")
    if parser_for(suffix, mime_type) is None:
        logger.info(f"Unsupported content for {filename or 'payload'} ({mime_type})")
        return ""
    with tempfile.TemporaryDirectory() as tmp:
        path = Path(tmp) / f"document{suffix}"
        path.write_bytes(data)
        return parse_path(path, mime_type)


class TextExtractor:
    """Turns a connector payload into plain text."""

    def __init__(self, timeout: float = 30.0, client: httpx.Client | None = None):
        self.timeout = timeout
        self._client = client

    def extract(self, raw: RawDocument, connector_type: str) -> str:
        """Extract text from a raw document.

        Raises:
            UnsupportedConnector: connector_type has no adapter.
        """
        sources = CONNECTOR_SOURCES.get(connector_type)
        if sources is None:
            raise UnsupportedConnector(f"Unsupported connector type: {connector_type}")

        for source in sources:
            text = getattr(self, f"_from_{source}")(raw)
            if text and text.strip():
                return text
        return ""

    def _from_extracted_text(self, raw: RawDocument) -> str:
        return raw.extracted_text or ""

    def _from_tmp_path(self, raw: RawDocument) -> str:
        if not raw.tmp_path:
            return ""
        path = Path(raw.tmp_path)
        if not path.is_file():
            logger.warning(f"Upload file missing: {path}")
            return ""
        if not path.suffix and Path(raw.title).suffix:
            # Temp uploads lose their extension; borrow the original name's
            parser_cls = parser_for(Path(raw.title).suffix, raw.mime_type)
            if parser_cls is None:
                return ""
            try:
                return parser_cls().parse(path)
            except Exception as e:
                logger.warning(f"Failed to parse {raw.title}: {e}")
                return ""
        return parse_path(path, raw.mime_type)

    def _from_content(self, raw: RawDocument) -> str:
        content = raw.content
        if not content:
            return ""
        if isinstance(content, bytes):
            return parse_bytes(content, raw.mime_type, raw.title)
        if _base_mime(raw.mime_type) == "text/html":
            return HtmlParser.parse_markup(content)
        return content

    def _from_source_url(self, raw: RawDocument) -> str:
        if not raw.source_url:
            return ""
        try:
            data, mime_type = self.download(raw.source_url)
        except httpx.HTTPError as e:
            logger.warning(f"Download failed for {raw.title}: {e}")
            return ""
        return parse_bytes(data, raw.mime_type or mime_type, raw.title)

    def download(self, url: str) -> tuple[bytes, str]:
        """Fetch a remote file. Returns (body, content type)."""
        if self._client is not None:
            response = self._client.get(url, timeout=self.timeout, follow_redirects=True)
        else:
            response = httpx.get(url, timeout=self.timeout, follow_redirects=True)
        response.raise_for_status()
        return response.content, response.headers.get("content-type", "")
