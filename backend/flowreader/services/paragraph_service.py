"""
FlowReader Paragraph Service - paragraph extraction and context snippets
"""
import logging
import re
from typing import List, Optional
from flowreader.core.config import settings
from flowreader.models.content import CharRange, Paragraph

logger = logging.getLogger(__name__)

# CRLF must be tried before its single-character parts
PARAGRAPH_SEPARATOR = re.compile(r"\r\n|[\n\r\u2028\u2029\u0085]")

class ParagraphService:
    """Splits plain text into paragraphs and builds/matches context snippets"""

    def extract_paragraphs(self, text: str) -> List[Paragraph]:
        """
        Split text into paragraph spans
        Args:
            text: Plain-text projection of a chapter
        Returns:
            Ordered paragraphs; ranges exclude the separator, blank lines give empty paragraphs
        """
        paragraphs = []
        start = 0

        for match in PARAGRAPH_SEPARATOR.finditer(text):
            paragraphs.append(Paragraph(range=CharRange(start=start, end=match.start()), index=len(paragraphs)))
            start = match.end()

        if start < len(text):
            paragraphs.append(Paragraph(range=CharRange(start=start, end=len(text)), index=len(paragraphs)))

        return paragraphs

    def find_paragraph(self, paragraphs: List[Paragraph], offset: int) -> Optional[Paragraph]:
        return next((p for p in paragraphs if p.contains(offset)), None)

    def clean_snippet(self, text: str) -> str:
        return text.replace("\n", " ").strip()

    def extract_context_snippet(self, text: str, offset: int, length: Optional[int] = None) -> str:
        """
        Window of text centred on offset, newlines collapsed and trimmed
        Args:
            text: Page plain text
            offset: Addressed character
            length: Window size, defaults to CONTEXT_SNIPPET_LENGTH
        Returns:
            Cleaned snippet, possibly empty
        """
        length = length or settings.CONTEXT_SNIPPET_LENGTH
        start = min(max(0, offset - length // 2), len(text))

        return self.clean_snippet(text[start:start + length])

    def snippet_prefix(self, snippet: str, word_count: Optional[int] = None) -> str:
        word_count = word_count or settings.SNIPPET_PREFIX_WORDS
        return " ".join(self.clean_snippet(snippet).split()[:word_count])

    def find_exact(self, snippet: str, text: str) -> Optional[int]:
        """Start offset of the cleaned snippet in text, newlines treated as spaces"""
        clean = self.clean_snippet(snippet)
        if not clean: return None

        index = text.replace("\n", " ").find(clean)
        return index if index != -1 else None

    def find_prefix(self, snippet: str, text: str, min_chars: Optional[int] = None) -> Optional[int]:
        """Start offset of the snippet's leading words, when long enough to be distinctive"""
        min_chars = min_chars or settings.SNIPPET_PREFIX_MIN_CHARS
        prefix = self.snippet_prefix(snippet)
        if len(prefix) < min_chars: return None

        index = text.replace("\n", " ").find(prefix)
        return index if index != -1 else None

    def find_offset_by_context(self, snippet: str, text: str) -> Optional[int]:
        found = self.find_exact(snippet, text)
        if found is None: found = self.find_prefix(snippet, text)
        return found

paragraph_service = ParagraphService()
