"""
FlowReader Text Extraction Utility - markup to styled text conversion
"""
import logging
import re
from typing import List, Optional, Tuple
from bs4 import BeautifulSoup, SoupStrainer
from bs4.element import Comment, Declaration, Doctype, NavigableString, ProcessingInstruction, Tag
from flowreader.core.exceptions import SourceUnavailableException
from flowreader.models.content import StyledText, TextRun

logger = logging.getLogger(__name__)

SKIPPED_TAGS = {'script', 'style', 'head', 'meta', 'link', 'title', 'noscript'}
BLOCK_TAGS = {
    'p', 'div', 'section', 'article', 'aside', 'header', 'footer', 'nav', 'main',
    'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'li', 'ul', 'ol', 'dl', 'dt', 'dd',
    'blockquote', 'pre', 'table', 'tr', 'figure', 'figcaption', 'hr', 'body',
}
STYLE_TAGS = {
    'b': 'bold', 'strong': 'bold',
    'i': 'italic', 'em': 'italic', 'cite': 'italic',
    'u': 'underline',
    'code': 'code', 'pre': 'code', 'kbd': 'code',
    'a': 'link',
    'sup': 'superscript', 'sub': 'subscript',
    'h1': 'heading', 'h2': 'heading', 'h3': 'heading', 'h4': 'heading', 'h5': 'heading', 'h6': 'heading',
}
IGNORED_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)
WHITESPACE = re.compile(r'\s+')

class _RunBuilder:
    """Accumulates styled runs, merging neighbours that share styles"""

    def __init__(self):
        self.runs: List[List] = []

    @property
    def ends_with_break(self) -> bool:
        return not self.runs or self.runs[-1][0].endswith('\n')

    def append(self, text: str, styles: Tuple[str, ...]) -> None:
        if not text: return
        if self.runs and self.runs[-1][1] == styles: self.runs[-1][0] += text
        else: self.runs.append([text, styles])

    def rstrip_spaces(self) -> None:
        while self.runs:
            self.runs[-1][0] = self.runs[-1][0].rstrip(' ')
            if self.runs[-1][0]: return
            self.runs.pop()

    def line_break(self, force: bool = False) -> None:
        self.rstrip_spaces()
        if self.runs and (force or not self.ends_with_break): self.append('\n', ())

    def build(self) -> StyledText:
        self.rstrip_spaces()
        while self.runs and self.runs[-1][0].endswith('\n'):
            self.runs[-1][0] = self.runs[-1][0].rstrip('\n')
            self.rstrip_spaces()
        return StyledText(runs=[TextRun(text=text, styles=styles) for text, styles in self.runs if text])

class TextExtractionUtil:
    """Utility for converting chapter markup into styled text"""

    def convert_html(self, html_content: str) -> Tuple[StyledText, str]:
        """
        Convert chapter markup into styled runs by walking the parsed tag tree
        Args:
            html_content: XHTML/HTML content of one chapter
        Returns:
            Tuple of (styled text, plain-text projection)
        """
        if html_content is None:
            raise SourceUnavailableException("Chapter markup is missing")

        try:
            soup = BeautifulSoup(html_content, 'html.parser')
            root = soup.body or soup
            builder = _RunBuilder()
            self._walk(root, builder, (), preformatted=False)
            styled = builder.build()

            return styled, styled.plain

        except SourceUnavailableException: raise
        except Exception as e:
            logger.error(f"Error converting chapter markup: {str(e)}")
            raise SourceUnavailableException(f"Failed to convert chapter markup: {str(e)}")

    def _walk(self, node: Tag, builder: _RunBuilder, styles: Tuple[str, ...], preformatted: bool) -> None:
        for child in node.children:
            if isinstance(child, IGNORED_STRINGS): continue

            if isinstance(child, NavigableString):
                self._append_text(str(child), builder, styles, preformatted)
                continue

            if not isinstance(child, Tag) or child.name in SKIPPED_TAGS: continue

            if child.name == 'br':
                builder.line_break(force=True)
                continue

            is_block = child.name in BLOCK_TAGS
            child_styles = styles
            style = STYLE_TAGS.get(child.name)
            if style and style not in styles: child_styles = tuple(sorted(styles + (style,)))

            if is_block: builder.line_break()
            self._walk(child, builder, child_styles, preformatted or child.name == 'pre')
            if is_block: builder.line_break()

    def _append_text(self, text: str, builder: _RunBuilder, styles: Tuple[str, ...], preformatted: bool) -> None:
        if preformatted:
            builder.append(text.replace('\r\n', '\n').replace('\r', '\n'), styles)
            return

        text = WHITESPACE.sub(' ', text)
        if builder.ends_with_break or (builder.runs and builder.runs[-1][0].endswith(' ')): text = text.lstrip(' ')
        builder.append(text, styles)

    def extract_text(self, html_content: str) -> str:
        """Plain-text projection of chapter markup"""
        return self.convert_html(html_content)[1]

    def extract_title(self, html_content: str) -> Optional[str]:
        """
        First heading of the chapter, falling back to the document <title>
        Args:
            html_content: XHTML/HTML content of one chapter
        Returns:
            Title text or None
        """
        try:
            parse_only = SoupStrainer(['title', 'h1', 'h2', 'h3'])
            soup = BeautifulSoup(html_content, 'html.parser', parse_only=parse_only)

            for tag in ['h1', 'h2', 'h3', 'title']:
                element = soup.find(tag)
                if element:
                    title = WHITESPACE.sub(' ', element.get_text()).strip()
                    if title: return title

            return None

        except Exception as e:
            logger.error(f"Error extracting chapter title: {str(e)}")
            return None

text_extraction_util = TextExtractionUtil()
