"""
Page text extraction. Chunking only needs an ordered list of page strings.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Protocol, Union

PAGE_BREAK = "\f"


class PageExtractor(Protocol):
    def extract_pages(self, source: Union[str, Path]) -> List[str]:
        ...


class PlainTextExtractor:
    """Reads a UTF-8 text file whose pages are separated by form feeds."""

    def __init__(self, page_break: str = PAGE_BREAK):
        self.page_break = page_break

    def extract_pages(self, source: Union[str, Path]) -> List[str]:
        text = Path(source).read_text(encoding="utf-8")
        return split_pages(text, self.page_break)


def split_pages(text: str, page_break: str = PAGE_BREAK) -> List[str]:
    """Split on page breaks. Empty pages are kept so page numbers stay aligned."""
    pages = text.split(page_break)
    if pages and not pages[-1].strip():
        pages.pop()
    return pages
