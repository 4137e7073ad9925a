"""
FlowReader Book Content Pydantic Models
"""
from typing import Callable, Dict, List, Optional, Tuple
from pydantic import BaseModel, Field

class CharRange(BaseModel):
    """Half-open character interval [start, end)"""
    start: int
    end: int

    class Config:
        """Pydantic config"""
        frozen = True

    def contains(self, offset: int) -> bool:
        return self.start <= offset < self.end

    def shifted(self, delta: int) -> "CharRange":
        return CharRange(start=self.start + delta, end=self.end + delta)

    def clipped(self, lower: int, upper: int) -> "CharRange":
        return CharRange(start=max(lower, self.start), end=min(upper, self.end))

class Paragraph(BaseModel):
    """Paragraph span with its chapter-relative rank"""
    range: CharRange
    index: int

    class Config:
        """Pydantic config"""
        frozen = True

    @property
    def start(self) -> int:
        return self.range.start

    @property
    def end(self) -> int:
        return self.range.end

    def contains(self, offset: int) -> bool:
        return self.range.contains(offset)

class TextRun(BaseModel):
    """Run of text sharing one set of style tags"""
    text: str
    styles: Tuple[str, ...] = ()

    class Config:
        """Pydantic config"""
        frozen = True

class StyledText(BaseModel):
    """
    Styled text payload produced by the markup converter.
    The engine only relies on its length, its plain-text projection and slicing.
    """
    runs: List[TextRun] = Field(default_factory=list)

    class Config:
        """Pydantic config"""
        frozen = True

    @classmethod
    def from_plain(cls, text: str) -> "StyledText":
        return cls(runs=[TextRun(text=text)] if text else [])

    @property
    def plain(self) -> str:
        return "".join(run.text for run in self.runs)

    def __len__(self) -> int:
        return len(self.plain)

    def slice(self, start: int, end: int) -> "StyledText":
        """
        Cut [start, end) out of the styled text keeping each run's styles
        Args:
            start: Inclusive start offset
            end: Exclusive end offset
        Returns:
            New StyledText covering the requested span
        """
        start = max(0, start)
        end = min(len(self), end)
        runs = []
        position = 0

        for run in self.runs:
            run_start, run_end = position, position + len(run.text)
            position = run_end
            if run_end <= start: continue
            if run_start >= end: break

            piece = run.text[max(start, run_start) - run_start:min(end, run_end) - run_start]
            if piece: runs.append(TextRun(text=piece, styles=run.styles))

        return StyledText(runs=runs)

class ChapterSource(BaseModel):
    """
    One reading-order unit handed to the parser. Supply exactly one of
    pre-converted styled text, raw markup, or a loader returning markup.
    """
    title: Optional[str] = None
    styled: Optional[StyledText] = None
    html: Optional[str] = None
    loader: Optional[Callable[[], str]] = None

class Page(BaseModel):
    """Bounded slice of one chapter, the unit of lazy rendering"""
    styled_content: StyledText
    chapter_index: int
    chapter_title: str
    segment_index: int
    is_first_segment: bool
    is_last_segment: bool
    chapter_character_range: CharRange
    paragraphs: List[Paragraph] = Field(default_factory=list)

    class Config:
        """Pydantic config"""
        frozen = True

    @property
    def character_count(self) -> int:
        return len(self.styled_content)

    @property
    def plain_text(self) -> str:
        return self.styled_content.plain

    def paragraph_at(self, offset: int) -> Optional[Paragraph]:
        """First page-local paragraph containing offset"""
        return next((p for p in self.paragraphs if p.contains(offset)), None)

    def character_offset_for_paragraph(self, paragraph_index: int) -> Optional[int]:
        """Page-local start of the paragraph with the given chapter rank"""
        for paragraph in self.paragraphs:
            if paragraph.index == paragraph_index: return paragraph.start
        return None

class BookIndex(BaseModel):
    """Cumulative per-chapter offsets over the whole book"""
    chapter_start_offsets: List[int] = Field(default_factory=list)
    chapter_indices: List[int] = Field(default_factory=list)
    total_character_count: int = 0

    class Config:
        """Pydantic config"""
        frozen = True

    def start_offset(self, chapter_index: int) -> int:
        """Global offset of a chapter's first character, 0 for unknown chapters"""
        try:
            return self.chapter_start_offsets[self.chapter_indices.index(chapter_index)]
        except ValueError:
            return 0

    def global_offset(self, chapter_index: int, chapter_offset: int) -> int:
        return self.start_offset(chapter_index) + chapter_offset

    @staticmethod
    def chapter_progress(chapter_index: int, offset_within_chapter: int, chapter_length: int) -> float:
        if chapter_length <= 0: return 0.0
        return offset_within_chapter / chapter_length

    def book_progress(self, global_offset: int) -> float:
        if self.total_character_count <= 0: return 0.0
        return global_offset / self.total_character_count

class BookIndexBuilder:
    """Accumulates chapter lengths in chapter order"""

    def __init__(self):
        self.chapter_start_offsets: List[int] = []
        self.chapter_indices: List[int] = []
        self.total_character_count = 0

    def add_chapter(self, chapter_index: int, chapter_length: int) -> None:
        if self.chapter_indices and chapter_index <= self.chapter_indices[-1]:
            raise ValueError(f"Chapter {chapter_index} added out of order")

        self.chapter_start_offsets.append(self.total_character_count)
        self.chapter_indices.append(chapter_index)
        self.total_character_count += chapter_length

    def build(self) -> BookIndex:
        return BookIndex(
            chapter_start_offsets=list(self.chapter_start_offsets),
            chapter_indices=list(self.chapter_indices),
            total_character_count=self.total_character_count
        )

class BookModel(BaseModel):
    """Immutable snapshot of a processed book"""
    pages: List[Page] = Field(default_factory=list)
    chapter_titles: List[str] = Field(default_factory=list)
    book_index: BookIndex = Field(default_factory=BookIndex)
    chapter_lengths: Dict[int, int] = Field(default_factory=dict)
    skipped_chapters: List[int] = Field(default_factory=list)

    class Config:
        """Pydantic config"""
        frozen = True

    @property
    def page_count(self) -> int:
        return len(self.pages)

    def chapter_index_for_page(self, page_index: int) -> int:
        if 0 <= page_index < len(self.pages): return self.pages[page_index].chapter_index
        return 0

    def first_page_index(self, chapter_index: int) -> Optional[int]:
        return next((i for i, page in enumerate(self.pages) if page.chapter_index == chapter_index), None)

    def pages_for_chapter(self, chapter_index: int) -> List[Tuple[int, Page]]:
        return [(i, page) for i, page in enumerate(self.pages) if page.chapter_index == chapter_index]

    def chapter_length(self, chapter_index: int) -> int:
        return self.chapter_lengths.get(chapter_index, 0)
