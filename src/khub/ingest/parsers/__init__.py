"""Text extractors for uploaded and downloaded files."""

from .docx import DocxParser
from .html import HtmlParser
from .markdown import MarkdownParser
from .pdf import PdfParser
from .text import TextParser

PARSERS = {
    ".md": MarkdownParser,
    ".markdown": MarkdownParser,
    ".txt": TextParser,
    ".text": TextParser,
    ".log": TextParser,
    ".csv": TextParser,
    ".json": TextParser,
    ".html": HtmlParser,
    ".htm": HtmlParser,
    ".pdf": PdfParser,
    ".docx": DocxParser,
}

MIME_PARSERS = {
    "text/plain": TextParser,
    "text/csv": TextParser,
    "application/json": TextParser,
    "text/markdown": MarkdownParser,
    "text/html": HtmlParser,
    "application/pdf": PdfParser,
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": DocxParser,
}

# Suffix used when raw bytes have to be spooled to disk for a parser
MIME_SUFFIXES = {
    "text/plain": ".txt",
    "text/csv": ".csv",
    "application/json": ".json",
    "text/markdown": ".md",
    "text/html": ".html",
    "application/pdf": ".pdf",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ".docx",
}


def parser_for(suffix: str = "", mime_type: str = ""):
    """Pick a parser class by file suffix, falling back to the MIME type."""
    parser_cls = PARSERS.get(suffix.lower())
    if parser_cls is None and mime_type:
        parser_cls = MIME_PARSERS.get(mime_type.split(";")[0].strip().lower())
    return parser_cls


__all__ = ["PARSERS", "MIME_PARSERS", "MIME_SUFFIXES", "parser_for",
           "MarkdownParser", "TextParser", "HtmlParser", "PdfParser", "DocxParser"]
