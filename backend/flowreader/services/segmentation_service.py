"""
FlowReader Segmentation Service - splitting chapters into bounded pages
"""
import logging
from typing import List, Optional
from flowreader.core.config import settings
from flowreader.models.content import CharRange, Page, Paragraph, StyledText

logger = logging.getLogger(__name__)

class SegmentationService:
    """
    Service for cutting a chapter into pages of at most MAX_SEGMENT_CHARS characters.
    Segmentation depends only on the chapter text, never on rendering width or font.
    """

    def __init__(self, max_segment_chars: Optional[int] = None, newline_search_window: Optional[int] = None):
        config = settings.get_segmentation_config()
        self.max_segment_chars = self.clamp_budget(max_segment_chars if max_segment_chars is not None else config["max_segment_chars"])
        self.newline_search_window = newline_search_window if newline_search_window is not None else config["newline_search_window"]

    @staticmethod
    def clamp_budget(max_segment_chars: int) -> int:
        """Page budgets below one character are raised to one"""
        if max_segment_chars < 1:
            logger.warning(f"Segment budget {max_segment_chars} is not positive, using 1")
            return 1
        return max_segment_chars

    def find_break_point(self, text: str, paragraphs: List[Paragraph], current_start: int, max_segment_chars: int) -> int:
        """
        Pick where the segment starting at current_start ends
        Args:
            text: Plain text of the whole chapter
            paragraphs: Chapter paragraphs in offset order
            current_start: Start of the segment being built
            max_segment_chars: Character budget for the segment
        Returns:
            Exclusive end offset, always greater than current_start
        """
        total_length = len(text)
        target_end = min(current_start + max(max_segment_chars, 1), total_length)
        if target_end >= total_length: return total_length

        # 1: last paragraph end in (current_start, target_end]
        for paragraph in reversed(paragraphs):
            if current_start < paragraph.end <= target_end: return paragraph.end

        # 2: newline within the look-back window, cut just after it
        window_start = max(current_start, target_end - self.newline_search_window)
        newline = text.rfind("\n", window_start, target_end)
        if newline != -1: return newline + 1

        # 3: hard cut
        return target_end

    def rebase_paragraphs(self, paragraphs: List[Paragraph], start: int, end: int) -> List[Paragraph]:
        """Paragraphs overlapping [start, end), clipped and shifted to page-local offsets"""
        local = []
        for paragraph in paragraphs:
            if paragraph.end <= start or paragraph.start >= end: continue
            local.append(Paragraph(range=paragraph.range.clipped(start, end).shifted(-start), index=paragraph.index))
        return local

    def segment(
        self,
        text: StyledText,
        paragraphs: List[Paragraph],
        chapter_index: int,
        chapter_title: str,
        max_segment_chars: Optional[int] = None
    ) -> List[Page]:
        """
        Split a chapter into pages, preferring paragraph boundaries
        Args:
            text: Styled text of the chapter
            paragraphs: Paragraphs extracted from the chapter's plain text
            chapter_index: Reading-order index of the chapter
            chapter_title: Title shown for the chapter
            max_segment_chars: Character budget per page
        Returns:
            Pages in segment order covering the chapter without gaps
        """
        max_segment_chars = self.max_segment_chars if max_segment_chars is None else self.clamp_budget(max_segment_chars)
        plain = text.plain
        total_length = len(plain)

        if total_length == 0: return []

        if total_length <= max_segment_chars:
            return [Page(
                styled_content=text,
                chapter_index=chapter_index,
                chapter_title=chapter_title,
                segment_index=0,
                is_first_segment=True,
                is_last_segment=True,
                chapter_character_range=CharRange(start=0, end=total_length),
                paragraphs=list(paragraphs)
            )]

        pages = []
        current_start = 0

        while current_start < total_length:
            break_point = self.find_break_point(plain, paragraphs, current_start, max_segment_chars)

            pages.append(Page(
                styled_content=text.slice(current_start, break_point),
                chapter_index=chapter_index,
                chapter_title=chapter_title,
                segment_index=len(pages),
                is_first_segment=current_start == 0,
                is_last_segment=break_point >= total_length,
                chapter_character_range=CharRange(start=current_start, end=break_point),
                paragraphs=self.rebase_paragraphs(paragraphs, current_start, break_point)
            ))

            current_start = break_point

        logger.debug(f"Chapter {chapter_index} split into {len(pages)} pages")

        return pages