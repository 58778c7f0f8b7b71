"""
Web page parser for extracting the title, body text and links.
"""

import re
import logging
from typing import List, Optional
from dataclasses import dataclass, field
from bs4 import BeautifulSoup, Comment


class ParseError(Exception):
    """Raised when a document cannot be parsed at all."""
    pass


@dataclass
class ParsedContent:
    """Container for parsed web page content."""
    url: str
    title: Optional[str] = None
    content: str = ""
    # Raw href values in document order, duplicates included
    links: List[str] = field(default_factory=list)
    word_count: int = 0


class ContentParser:
    """
    Parses HTML content to extract the title, visible body text and links.
    """

    def __init__(self, features: str = 'lxml'):
        self.features = features
        self.logger = logging.getLogger(__name__)

        self.whitespace_pattern = re.compile(r'\s+')

    def parse(self, url: str, html_content: str) -> ParsedContent:
        """
        Parse HTML content and extract structured data.

        Args:
            url: The URL of the page
            html_content: Raw HTML content

        Returns:
            ParsedContent object with extracted data

        Raises:
            ParseError: if the markup cannot be parsed
        """
        if html_content is None:
            raise ParseError(f"No content to parse for {url}")

        try:
            soup = BeautifulSoup(html_content, self.features)

            parsed_content = ParsedContent(url=url)

            self._extract_title(soup, parsed_content)
            self._extract_links(soup, parsed_content)

            # Script/style text is not body text
            for script in soup(["script", "style", "noscript"]):
                script.decompose()
            for comment in soup.find_all(string=lambda text: isinstance(text, Comment)):
                comment.extract()

            self._extract_body_text(soup, parsed_content)

        except Exception as e:
            raise ParseError(f"Error parsing content from {url}: {e}") from e

        parsed_content.word_count = len(parsed_content.content.split())

        self.logger.debug(f"Parsed content from {url}: {parsed_content.word_count} words, "
                          f"{len(parsed_content.links)} links")

        return parsed_content

    def _extract_title(self, soup: BeautifulSoup, parsed_content: ParsedContent):
        """Extract the text of the first title element."""
        title_tag = soup.find('title')
        if title_tag:
            parsed_content.title = self._clean_text(title_tag.get_text())

    def _extract_body_text(self, soup: BeautifulSoup, parsed_content: ParsedContent):
        """Extract all text under the body element."""
        body = soup.find('body')
        if not body:
            parsed_content.content = ""
            return

        text_content = body.get_text(separator=' ', strip=True)
        parsed_content.content = self._clean_text(text_content)

    def _extract_links(self, soup: BeautifulSoup, parsed_content: ParsedContent):
        """Collect raw anchor hrefs. Resolution happens later against the page URL."""
        parsed_content.links = [
            link['href'] for link in soup.find_all('a', href=True)
        ]

    def _clean_text(self, text: str) -> str:
        """Collapse runs of whitespace."""
        if not text:
            return ""

        return self.whitespace_pattern.sub(' ', text.strip())
