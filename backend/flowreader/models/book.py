"""
FlowReader Book Pydantic Models
"""
from typing import List
from pydantic import BaseModel

class BookResponse(BaseModel):
    """Response model for a processed book"""
    id: str
    title: str
    total_chapters: int
    total_pages: int
    total_characters: int
    chapter_titles: List[str]
    skipped_chapters: List[int] = []

class BookUploadResponse(BookResponse):
    """Response model for book upload"""
    message: str

class PageResponse(BaseModel):
    """Response model for a single page segment"""
    book_id: str
    page_index: int
    chapter_index: int
    chapter_title: str
    segment_index: int
    is_first_segment: bool
    is_last_segment: bool
    chapter_start: int
    chapter_end: int
    character_count: int
    text: str
