from __future__ import annotations

from typing import List
from urllib.parse import urldefrag, urljoin

from bs4 import BeautifulSoup

from ..models import ExtractedContent
from .base import ContentExtractor

NON_CONTENT_TAGS = ("script", "style", "noscript", "template")
SKIPPED_HREF_PREFIXES = ("#", "javascript:", "mailto:", "tel:")


class HtmlContentExtractor(ContentExtractor):
    """Plain-text and link extraction with BeautifulSoup.

    Each non-empty line of visible text becomes its own paragraph, separated
    by a blank line, so paragraph-based change classification sees the
    page's block structure.
    """

    def __init__(self, parser: str = "lxml", *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._parser = parser

    def extract(self, html: str, base_url: str) -> ExtractedContent:
        soup = BeautifulSoup(html or "", self._parser)
        for tag in soup(list(NON_CONTENT_TAGS)):
            tag.decompose()

        title = soup.title.get_text(strip=True) if soup.title else None
        lines = (" ".join(line.split()) for line in soup.get_text("\n").splitlines())
        text = "\n\n".join(line for line in lines if line)
        return ExtractedContent(text=text, links=self._links(soup, base_url), title=title)

    @staticmethod
    def _links(soup: BeautifulSoup, base_url: str) -> List[str]:
        links: List[str] = []
        seen = set()
        for anchor in soup.find_all("a", href=True):
            href = anchor["href"].strip()
            if not href or href.lower().startswith(SKIPPED_HREF_PREFIXES):
                continue
            absolute, _ = urldefrag(urljoin(base_url, href))
            if absolute not in seen:
                seen.add(absolute)
                links.append(absolute)
        return links
