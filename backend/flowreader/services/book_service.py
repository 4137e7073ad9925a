"""
FlowReader Book Service - chapter processing and EPUB chapter sources
"""
import asyncio
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Sequence, Tuple
import ebooklib
from ebooklib import epub
from flowreader.core.config import settings
from flowreader.core.exceptions import BookParsingException, FileStorageException, SourceUnavailableException
from flowreader.models.content import BookIndexBuilder, BookModel, ChapterSource, Page, StyledText
from flowreader.services.paragraph_service import ParagraphService
from flowreader.services.segmentation_service import SegmentationService
from flowreader.services.text_extraction_utility import text_extraction_util

logger = logging.getLogger(__name__)

@dataclass
class ChapterResult:
    """Outcome of processing one chapter"""
    chapter_index: int
    title: str
    pages: List[Page] = field(default_factory=list)
    length: int = 0
    available: bool = True

class BookService:
    """Service for turning chapter sources into a segmented, indexed book"""

    def __init__(self, max_segment_chars: Optional[int] = None):
        self.text_extraction_util = text_extraction_util
        self.paragraph_service = ParagraphService()
        self.segmentation_service = SegmentationService(max_segment_chars=max_segment_chars)

        logger.info(f"Book service initialised with segment size: {self.segmentation_service.max_segment_chars}")

    def _convert_chapter(self, source: ChapterSource, chapter_index: int) -> Tuple[StyledText, Optional[str]]:
        """
        Obtain a chapter's styled text
        Args:
            source: Chapter source as handed in by the caller
            chapter_index: Reading-order index, for error reporting
        Returns:
            Tuple of (styled text, first heading of the markup if any)
        """
        if source.styled is not None: return source.styled, None

        html_content = source.html
        if html_content is None and source.loader is not None:
            try:
                html_content = source.loader()
            except SourceUnavailableException: raise
            except Exception as e:
                raise SourceUnavailableException(f"Failed to load chapter {chapter_index}: {str(e)}", chapter_index=chapter_index)

        if html_content is None:
            raise SourceUnavailableException(f"Chapter {chapter_index} has no content source", chapter_index=chapter_index)

        styled, _ = self.text_extraction_util.convert_html(html_content)
        return styled, self.text_extraction_util.extract_title(html_content)

    def process_chapter(self, source: ChapterSource, chapter_index: int, max_segment_chars: Optional[int] = None) -> Tuple[str, List[Page], int]:
        """
        Paragraph extraction and segmentation for one chapter
        Args:
            source: Chapter source
            chapter_index: Reading-order index of the chapter
            max_segment_chars: Optional override of the page budget
        Returns:
            Tuple of (title, pages, chapter length); empty chapters give no pages
        """
        styled, heading = self._convert_chapter(source, chapter_index)
        title = source.title or heading or f"Chapter {chapter_index + 1}"
        paragraphs = self.paragraph_service.extract_paragraphs(styled.plain)
        pages = self.segmentation_service.segment(styled, paragraphs, chapter_index, title, max_segment_chars)

        return title, pages, len(styled)

    def _try_process(self, source: ChapterSource, chapter_index: int, max_segment_chars: Optional[int]) -> ChapterResult:
        try:
            title, pages, length = self.process_chapter(source, chapter_index, max_segment_chars)
            return ChapterResult(chapter_index, title, pages, length, available=True)
        except SourceUnavailableException as e:
            logger.warning(f"Skipping chapter {chapter_index}: {e.detail}")
            return ChapterResult(chapter_index, source.title or f"Chapter {chapter_index + 1}", [], 0, available=False)

    def _assemble(self, results: List[ChapterResult]) -> BookModel:
        """Sequential reduction of per-chapter results, in chapter order, into a book snapshot"""
        pages: List[Page] = []
        chapter_lengths = {}
        skipped = []
        index_builder = BookIndexBuilder()

        for result in sorted(results, key=lambda r: r.chapter_index):
            if not result.available or result.length == 0:
                if result.available: logger.info(f"Skipping empty chapter {result.chapter_index}: {result.title}")
                skipped.append(result.chapter_index)
                continue

            index_builder.add_chapter(result.chapter_index, result.length)
            chapter_lengths[result.chapter_index] = result.length
            pages.extend(result.pages)

        book_index = index_builder.build()
        logger.info(f"Processed {len(chapter_lengths)} of {len(results)} chapters into {len(pages)} pages ({book_index.total_character_count} characters)")

        return BookModel(
            pages=pages,
            chapter_titles=[r.title for r in sorted(results, key=lambda r: r.chapter_index)],
            book_index=book_index,
            chapter_lengths=chapter_lengths,
            skipped_chapters=skipped
        )

    def parse(self, chapters: Sequence[ChapterSource], max_segment_chars: Optional[int] = None) -> BookModel:
        """
        Process all chapters in reading order into a book snapshot.
        Unavailable and empty chapters are skipped and contribute nothing to the book index.
        Args:
            chapters: Chapter sources in reading order
            max_segment_chars: Optional override of the page budget
        Returns:
            BookModel with pages, chapter titles and the book index
        """
        return self._assemble([self._try_process(source, i, max_segment_chars) for i, source in enumerate(chapters)])

    async def parse_async(self, chapters: Sequence[ChapterSource], max_segment_chars: Optional[int] = None) -> BookModel:
        """
        Segment chapters concurrently in worker threads, then build the book index in chapter order.
        Cancelling the awaiting task abandons the whole pass.
        """
        results = await asyncio.gather(*(
            asyncio.to_thread(self._try_process, source, i, max_segment_chars)
            for i, source in enumerate(chapters)
        ))
        return self._assemble(list(results))

    def reprocess_chapter(self, book: BookModel, chapter_index: int, source: ChapterSource, max_segment_chars: Optional[int] = None) -> BookModel:
        """
        Build a new snapshot with one chapter replaced; the given book is left untouched
        Args:
            book: Current snapshot
            chapter_index: Chapter whose content changed
            source: New source for that chapter
            max_segment_chars: Optional override of the page budget
        Returns:
            New BookModel with the chapter's pages swapped and the index rebuilt
        """
        try:
            title, new_pages, new_length = self.process_chapter(source, chapter_index, max_segment_chars)
        except SourceUnavailableException as e:
            logger.warning(f"Reprocessing chapter {chapter_index} failed: {e.detail}")
            title, new_pages, new_length = source.title or f"Chapter {chapter_index + 1}", [], 0

        chapter_lengths = {i: length for i, length in book.chapter_lengths.items() if i != chapter_index}
        if new_length > 0: chapter_lengths[chapter_index] = new_length

        before = [page for page in book.pages if page.chapter_index < chapter_index]
        after = [page for page in book.pages if page.chapter_index > chapter_index]

        index_builder = BookIndexBuilder()
        for i in sorted(chapter_lengths): index_builder.add_chapter(i, chapter_lengths[i])

        chapter_titles = list(book.chapter_titles)
        if chapter_index < len(chapter_titles): chapter_titles[chapter_index] = title

        skipped = sorted((set(book.skipped_chapters) - {chapter_index}) | (set() if new_length > 0 else {chapter_index}))

        return BookModel(
            pages=before + new_pages + after,
            chapter_titles=chapter_titles,
            book_index=index_builder.build(),
            chapter_lengths=chapter_lengths,
            skipped_chapters=skipped
        )

    def _title_from_path(self, path: str) -> Optional[str]:
        """Readable title from a content file name, e.g. chapter_01.xhtml -> Chapter 01"""
        base_name = Path(path).stem
        if not base_name: return None
        return base_name.replace('_', ' ').replace('-', ' ').title()

    def load_epub_chapters(self, file_path: str) -> List[ChapterSource]:
        """
        Chapter sources for an EPUB in spine (reading) order
        Args:
            file_path: Path to the EPUB file
        Returns:
            One ChapterSource per spine entry; non-document entries fail to load and are skipped by parse
        """
        if not os.path.exists(file_path):
            raise BookParsingException(f"EPUB file not found: {file_path}")

        try:
            book = epub.read_epub(file_path)
        except Exception as e:
            logger.error(f"Failed to read EPUB file: {str(e)}")
            raise BookParsingException(f"Failed to read EPUB file: {str(e)}")

        sources = []
        for spine_index, spine_id in enumerate(book.spine):
            if isinstance(spine_id, tuple): spine_id = spine_id[0]
            item = book.get_item_with_id(spine_id)

            # navigation documents are tables of contents, not reading content
            if item is None or spine_id.startswith('nav') or item.get_type() != ebooklib.ITEM_DOCUMENT:
                sources.append(ChapterSource(title=f"Chapter {spine_index + 1}", loader=self._unavailable(spine_index, spine_id)))
                continue

            title = self._title_from_path(item.file_name) or f"Chapter {spine_index + 1}"
            sources.append(ChapterSource(title=title, loader=self._document_loader(item, spine_index)))

        logger.info(f"Found {len(sources)} spine entries in {file_path}")

        return sources

    def _document_loader(self, item, spine_index: int):
        def load() -> str:
            try:
                return item.get_content().decode('utf-8')
            except UnicodeDecodeError as e:
                raise SourceUnavailableException(f"Chapter {spine_index} is not valid UTF-8: {str(e)}", chapter_index=spine_index)
        return load

    def _unavailable(self, spine_index: int, spine_id: str):
        def load() -> str:
            raise SourceUnavailableException(f"Spine entry {spine_id} is not a readable document", chapter_index=spine_index)
        return load

    def save_uploaded_file(self, file_content: bytes, filename: str, upload_dir: Optional[str] = None) -> str:
        """
        Save uploaded EPUB file to disk without overwriting earlier uploads
        Args:
            file_content: EPUB file content as bytes
            filename: Original filename
            upload_dir: Target directory, defaults to UPLOAD_DIR
        Returns:
            Path to the saved file
        """
        upload_dir = upload_dir or settings.UPLOAD_DIR
        try:
            os.makedirs(upload_dir, exist_ok=True)
            stem = Path(filename).stem.replace(' ', '_') or "book"
            file_path = os.path.join(upload_dir, f"{stem}.epub")

            counter = 1
            while os.path.exists(file_path):
                file_path = os.path.join(upload_dir, f"{stem}_{counter}.epub")
                counter += 1

            with open(file_path, "wb") as f: f.write(file_content)
            logger.info(f"EPUB file saved to {file_path}")

            return file_path

        except OSError as e:
            logger.error(f"Failed to save uploaded file: {str(e)}")
            raise FileStorageException(f"Failed to save uploaded file: {str(e)}")

    def parse_epub(self, file_path: str, max_segment_chars: Optional[int] = None) -> BookModel:
        """Load an EPUB's chapters and process them into a book snapshot"""
        logger.info(f"Parsing EPUB file: {file_path}")
        return self.parse(self.load_epub_chapters(file_path), settings.MAX_SEGMENT_CHARS if max_segment_chars is None else max_segment_chars)

book_service = BookService()
