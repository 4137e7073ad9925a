"""
FlowReader Location Service - creating and resolving stable reading positions
"""
import logging
from typing import Callable, Dict, List, Optional, Tuple
from flowreader.core.config import settings
from flowreader.models.content import BookModel, Page
from flowreader.models.position import Position
from flowreader.services.paragraph_service import paragraph_service

logger = logging.getLogger(__name__)

Resolution = Tuple[int, int]
ChapterPages = List[Tuple[int, Page]]
ResolveStrategy = Callable[[BookModel, Position, ChapterPages], Optional[Resolution]]

def chapter_paragraph_starts(chapter_pages: ChapterPages) -> Dict[int, int]:
    """Chapter-relative start of every paragraph visible on the chapter's pages"""
    starts = {}
    for _, page in chapter_pages:
        for paragraph in page.paragraphs:
            start = page.chapter_character_range.start + paragraph.start
            if paragraph.index not in starts or start < starts[paragraph.index]:
                starts[paragraph.index] = start
    return starts

def page_for_chapter_offset(chapter_pages: ChapterPages, chapter_offset: int) -> Optional[Resolution]:
    """
    Page owning a chapter-relative offset
    Args:
        chapter_pages: (page index, page) pairs of one chapter in segment order
        chapter_offset: Offset from the chapter start
    Returns:
        (page index, local offset); the chapter end maps onto the last page
    """
    for page_index, page in chapter_pages:
        char_range = page.chapter_character_range
        if char_range.contains(chapter_offset): return page_index, chapter_offset - char_range.start

    if chapter_pages:
        page_index, page = chapter_pages[-1]
        if chapter_offset == page.chapter_character_range.end: return page_index, page.character_count

    return None

def anchored_chapter_offset(chapter_pages: ChapterPages, position: Position) -> Optional[int]:
    """Chapter offset named by the position's paragraph anchor, if that paragraph still exists"""
    starts = chapter_paragraph_starts(chapter_pages)
    # paragraph 0 always opens the chapter, even when it is empty and on no page
    start = starts.get(position.paragraph_index, 0 if position.paragraph_index == 0 else None)
    if start is None: return None
    return start + position.character_offset

def snippet_covers(chapter_pages: ChapterPages, snippet: str, chapter_offset: int) -> bool:
    """Whether the snippet occurs in the chapter text within one snippet window of chapter_offset"""
    window = max(len(snippet), settings.CONTEXT_SNIPPET_LENGTH)
    chapter_text = "".join(page.plain_text for _, page in chapter_pages).replace("\n", " ")
    found = chapter_text.find(snippet, max(0, chapter_offset - window))
    return found != -1 and found <= chapter_offset + window

def resolve_by_snippet(book: BookModel, position: Position, chapter_pages: ChapterPages) -> Optional[Resolution]:
    snippet = paragraph_service.clean_snippet(position.context_snippet)
    if not snippet: return None

    # the anchored character wins while the text around it still matches
    anchor = anchored_chapter_offset(chapter_pages, position)
    if anchor is not None and snippet_covers(chapter_pages, snippet, anchor):
        anchored = page_for_chapter_offset(chapter_pages, anchor)
        if anchored is not None: return anchored

    for page_index, page in chapter_pages:
        found = paragraph_service.find_exact(snippet, page.plain_text)
        if found is not None: return page_index, found

    return None

def resolve_by_snippet_prefix(book: BookModel, position: Position, chapter_pages: ChapterPages) -> Optional[Resolution]:
    if not position.context_snippet.strip(): return None

    for page_index, page in chapter_pages:
        found = paragraph_service.find_prefix(position.context_snippet, page.plain_text)
        if found is not None: return page_index, found

    return None

def resolve_by_progress(book: BookModel, position: Position, chapter_pages: ChapterPages) -> Optional[Resolution]:
    chapter_length = book.chapter_length(position.chapter_index) or chapter_pages[-1][1].chapter_character_range.end
    target = round(position.chapter_progress * chapter_length)
    return page_for_chapter_offset(chapter_pages, target)

def resolve_to_chapter_start(book: BookModel, position: Position, chapter_pages: ChapterPages) -> Optional[Resolution]:
    return chapter_pages[0][0], 0

RESOLVE_STRATEGIES: Tuple[Tuple[str, ResolveStrategy], ...] = (
    ("snippet", resolve_by_snippet),
    ("snippet_prefix", resolve_by_snippet_prefix),
    ("progress", resolve_by_progress),
    ("chapter_start", resolve_to_chapter_start),
)

class LocationService:
    """
    Service for turning (page, offset) pairs into stable positions and back
    """

    def __init__(self, strategies: Tuple[Tuple[str, ResolveStrategy], ...] = RESOLVE_STRATEGIES):
        self.strategies = strategies

    def create_position(self, book: BookModel, page_index: int, local_offset: int) -> Position:
        """
        Create a position for a character on a page
        Args:
            book: Processed book snapshot
            page_index: Index into book.pages
            local_offset: Character offset within the page
        Returns:
            Position for the addressed character, book start for an unknown page
        """
        if not 0 <= page_index < book.page_count: return Position.book_start()

        page = book.pages[page_index]
        chapter_index = page.chapter_index
        chapter_pages = book.pages_for_chapter(chapter_index)
        clamped_offset = min(max(0, local_offset), page.character_count)
        chapter_offset = page.chapter_character_range.start + clamped_offset

        paragraph_index, character_offset = self._attribute_paragraph(page, chapter_pages, clamped_offset, chapter_offset)

        chapter_length = book.chapter_length(chapter_index) or chapter_pages[-1][1].chapter_character_range.end
        book_index = book.book_index

        return Position(
            chapter_index=chapter_index,
            paragraph_index=paragraph_index,
            character_offset=character_offset,
            context_snippet=paragraph_service.extract_context_snippet(page.plain_text, clamped_offset),
            chapter_progress=book_index.chapter_progress(chapter_index, chapter_offset, chapter_length),
            book_progress=book_index.book_progress(book_index.global_offset(chapter_index, chapter_offset))
        )

    def _attribute_paragraph(self, page: Page, chapter_pages: ChapterPages, local_offset: int, chapter_offset: int) -> Tuple[int, int]:
        """
        Paragraph rank and offset-into-paragraph for a character.
        Falls back to the last paragraph starting before the character, then to
        a synthetic paragraph 0 anchored at the chapter start.
        """
        starts = chapter_paragraph_starts(chapter_pages)
        paragraph = page.paragraph_at(local_offset)

        if paragraph is None:
            preceding = [index for index, start in starts.items() if start <= chapter_offset]
            if not preceding: return 0, chapter_offset
            index = max(preceding, key=lambda i: (starts[i], i))
            return index, chapter_offset - starts[index]

        return paragraph.index, chapter_offset - starts[paragraph.index]

    def locate_chapter_offset(self, book: BookModel, chapter_index: int, chapter_offset: int) -> Optional[Resolution]:
        """
        Walk a chapter's pages consuming their lengths to find the page owning an absolute chapter offset
        Args:
            book: Processed book snapshot
            chapter_index: Chapter to look in
            chapter_offset: Offset from the chapter start
        Returns:
            (page index, local offset), or None if the chapter has no pages
        """
        first_page = book.first_page_index(chapter_index)
        if first_page is None: return None

        target_page = first_page
        remaining = max(0, chapter_offset)

        for page_index in range(first_page, book.page_count):
            page = book.pages[page_index]
            if page.chapter_index != chapter_index: break

            target_page = page_index
            if remaining < page.character_count: break
            remaining -= page.character_count

        return target_page, min(remaining, book.pages[target_page].character_count)

    def create_position_for_chapter_offset(self, book: BookModel, chapter_index: int, chapter_offset: int) -> Position:
        """Legacy path: position from a chapter index and an absolute chapter offset"""
        located = self.locate_chapter_offset(book, chapter_index, chapter_offset)
        if located is None: return Position.book_start()
        return self.create_position(book, *located)

    def resolve_position(self, book: BookModel, position: Position) -> Resolution:
        """
        Resolve a stored position to (page index, local offset)
        Args:
            book: Processed book snapshot
            position: Previously created or decoded position
        Returns:
            First successful strategy result; book start if the chapter has no pages
        """
        chapter_pages = book.pages_for_chapter(position.chapter_index)
        if not chapter_pages:
            logger.info(f"Chapter {position.chapter_index} has no pages, resolving to book start")
            return 0, 0

        for name, strategy in self.strategies:
            result = strategy(book, position, chapter_pages)
            if result is not None:
                logger.debug(f"Position in chapter {position.chapter_index} resolved by {name}: {result}")
                return result

        return chapter_pages[0][0], 0

    def get_percentage(self, position: Position) -> float:
        """Book progress as a percentage (0-100)"""
        return min(100.0, max(0.0, position.book_progress * 100.0))

location_service = LocationService()
