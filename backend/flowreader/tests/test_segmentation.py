"""
FlowReader Segmentation Tests
Paragraph extraction, page segmentation and book index aggregation
"""
import unittest
import pytest
from flowreader.models.content import BookIndexBuilder, ChapterSource, StyledText, TextRun
from flowreader.services.book_service import BookService
from flowreader.services.paragraph_service import paragraph_service
from flowreader.services.segmentation_service import SegmentationService

def segment_plain(text, max_segment_chars=3000, chapter_index=0):
    service = SegmentationService(max_segment_chars=max_segment_chars)
    return service.segment(StyledText.from_plain(text), paragraph_service.extract_paragraphs(text), chapter_index, "Chapter", max_segment_chars)

def mixed_chapter():
    """Short and long paragraphs, blank lines and one paragraph with no break at all"""
    parts = []
    for i in range(40):
        parts.append(f"Paragraph {i} " + "word " * (i * 7 % 60))
        if i % 9 == 0: parts.append("")
    parts.append("x" * 1300)
    parts.append("closing line")
    return "\n".join(parts)

class TestParagraphExtraction(unittest.TestCase):
    """Paragraph extractor tests"""

    def test_ranges_exclude_separators(self):
        paragraphs = paragraph_service.extract_paragraphs("one\ntwo\nthree")
        self.assertEqual([(p.start, p.end) for p in paragraphs], [(0, 3), (4, 7), (8, 13)])
        self.assertEqual([p.index for p in paragraphs], [0, 1, 2])

    def test_blank_lines_give_empty_paragraphs(self):
        paragraphs = paragraph_service.extract_paragraphs("a\n\nb")
        self.assertEqual([(p.start, p.end) for p in paragraphs], [(0, 1), (2, 2), (3, 4)])

    def test_trailing_separator_adds_nothing(self):
        self.assertEqual(len(paragraph_service.extract_paragraphs("a\nb\n")), 2)
        self.assertEqual(paragraph_service.extract_paragraphs(""), [])

    def test_all_separators(self):
        text = "a\r\nb\rc\u2028d\u2029e\u0085f"
        paragraphs = paragraph_service.extract_paragraphs(text)
        self.assertEqual([text[p.start:p.end] for p in paragraphs], ["a", "b", "c", "d", "e", "f"])

    def test_find_paragraph(self):
        paragraphs = paragraph_service.extract_paragraphs("one\ntwo")
        self.assertEqual(paragraph_service.find_paragraph(paragraphs, 5).index, 1)
        # separator belongs to no paragraph
        self.assertIsNone(paragraph_service.find_paragraph(paragraphs, 3))

    def test_context_snippet(self):
        text = "abcdefghij" * 10
        self.assertEqual(paragraph_service.extract_context_snippet(text, 50, 10), text[45:55])
        self.assertEqual(paragraph_service.extract_context_snippet(text, 0, 10), text[0:10])
        self.assertEqual(paragraph_service.extract_context_snippet("line one\nline two", 8, 50), "line one line two")
        self.assertEqual(paragraph_service.extract_context_snippet("", 0), "")

    def test_find_offset_by_context(self):
        text = "The quick brown fox\njumps over the lazy dog"
        self.assertEqual(paragraph_service.find_offset_by_context("fox jumps", text), 16)
        self.assertEqual(paragraph_service.find_offset_by_context("jumps over the lazy dog and more words", text), 20)
        self.assertIsNone(paragraph_service.find_offset_by_context("a cat", text))
        self.assertIsNone(paragraph_service.find_offset_by_context("", text))

class TestSegmentation(unittest.TestCase):
    """Segmenter tests"""

    def test_cuts_at_last_paragraph_end(self):
        text = "a" * 2950 + "\n" + "b" * 149 + "\n" + "c" * 99
        self.assertEqual(len(text), 3200)

        pages = segment_plain(text, 3000)
        self.assertEqual([p.character_count for p in pages], [2950, 250])
        self.assertEqual(pages[0].chapter_character_range.end, 2950)
        self.assertTrue(pages[0].is_first_segment)
        self.assertTrue(pages[1].is_last_segment)

    def test_short_chapter_is_single_page(self):
        pages = segment_plain("z" * 500, 3000)
        self.assertEqual(len(pages), 1)
        self.assertTrue(pages[0].is_first_segment)
        self.assertTrue(pages[0].is_last_segment)
        self.assertEqual(pages[0].character_count, 500)

    def test_empty_chapter_has_no_pages(self):
        self.assertEqual(segment_plain(""), [])

    def test_newline_fallback(self):
        service = SegmentationService(max_segment_chars=100, newline_search_window=50)
        text = "a" * 80 + "\n" + "b" * 100
        # a paragraph list without the short paragraph forces the newline rule
        break_point = service.find_break_point(text, [], 0, 100)
        self.assertEqual(break_point, 81)

    def test_hard_cut_without_newline_in_window(self):
        service = SegmentationService(max_segment_chars=100, newline_search_window=10)
        text = "a" * 50 + "\n" + "b" * 200
        self.assertEqual(service.find_break_point(text, [], 0, 100), 100)

    def test_non_positive_budget_still_advances(self):
        service = SegmentationService()
        text = "a" * 50
        current_start, break_points = 0, []
        for _ in range(5):
            current_start = service.find_break_point(text, [], current_start, -5)
            break_points.append(current_start)
        self.assertEqual(break_points, [1, 2, 3, 4, 5])
        self.assertEqual(SegmentationService(max_segment_chars=0).max_segment_chars, 1)

    def test_coverage_and_bounds(self):
        text = mixed_chapter()
        for max_segment_chars in (80, 250, 1000):
            pages = segment_plain(text, max_segment_chars)

            self.assertEqual(pages[0].chapter_character_range.start, 0)
            self.assertEqual(pages[-1].chapter_character_range.end, len(text))
            for previous, page in zip(pages, pages[1:]):
                self.assertEqual(previous.chapter_character_range.end, page.chapter_character_range.start)
                self.assertEqual(previous.segment_index + 1, page.segment_index)

            self.assertEqual("".join(p.plain_text for p in pages), text)
            for page in pages: self.assertLessEqual(page.character_count, max_segment_chars)
            self.assertEqual([p.is_first_segment for p in pages], [True] + [False] * (len(pages) - 1))
            self.assertEqual([p.is_last_segment for p in pages], [False] * (len(pages) - 1) + [True])

    def test_page_paragraphs_are_page_local(self):
        text = mixed_chapter()
        paragraphs = paragraph_service.extract_paragraphs(text)
        for page in segment_plain(text, 250):
            for paragraph in page.paragraphs:
                self.assertGreaterEqual(paragraph.start, 0)
                self.assertLessEqual(paragraph.end, page.character_count)
                # clipped span is a piece of the original paragraph
                original = paragraphs[paragraph.index]
                chapter_start = page.chapter_character_range.start + paragraph.start
                self.assertGreaterEqual(chapter_start, original.start)
                self.assertLessEqual(page.chapter_character_range.start + paragraph.end, original.end)

    def test_styles_survive_slicing(self):
        styled = StyledText(runs=[TextRun(text="a" * 60 + "\n", styles=("bold",)), TextRun(text="b" * 60)])
        pages = SegmentationService(max_segment_chars=70).segment(
            styled, paragraph_service.extract_paragraphs(styled.plain), 0, "Chapter", 70
        )
        self.assertEqual(pages[0].styled_content.runs[0].styles, ("bold",))
        self.assertEqual(pages[-1].styled_content.runs[-1].styles, ())
        self.assertEqual("".join(p.plain_text for p in pages), styled.plain)

class TestBookIndex(unittest.TestCase):
    """Book index tests"""

    def test_two_chapters(self):
        builder = BookIndexBuilder()
        builder.add_chapter(0, 1000)
        builder.add_chapter(1, 4000)
        index = builder.build()

        self.assertEqual(index.chapter_start_offsets, [0, 1000])
        self.assertEqual(index.total_character_count, 5000)
        self.assertAlmostEqual(index.book_progress(4500), 0.9)
        self.assertEqual(index.global_offset(1, 3500), 4500)

    def test_out_of_order_chapter_rejected(self):
        builder = BookIndexBuilder()
        builder.add_chapter(2, 10)
        with pytest.raises(ValueError): builder.add_chapter(1, 10)

    def test_zero_lengths(self):
        index = BookIndexBuilder().build()
        self.assertEqual(index.book_progress(10), 0.0)
        self.assertEqual(index.chapter_progress(0, 5, 0), 0.0)
        self.assertEqual(index.start_offset(7), 0)

    def test_skipped_chapters_excluded(self):
        def broken():
            raise OSError("missing resource")

        chapters = [
            ChapterSource(title="One", styled=StyledText.from_plain("a" * 300)),
            ChapterSource(title="Empty", styled=StyledText.from_plain("")),
            ChapterSource(title="Broken", loader=broken),
            ChapterSource(title="Four", html="<p>" + "d" * 700 + "</p>"),
        ]
        book = BookService().parse(chapters, max_segment_chars=250)
        index = book.book_index

        self.assertEqual(index.chapter_start_offsets, [0, 300])
        self.assertEqual(index.chapter_indices, [0, 3])
        self.assertEqual(index.total_character_count, 1000)
        self.assertEqual(book.skipped_chapters, [1, 2])
        self.assertEqual(book.chapter_titles, ["One", "Empty", "Broken", "Four"])
        self.assertEqual({p.chapter_index for p in book.pages}, {0, 3})

        self.assertTrue(all(a <= b for a, b in zip(index.chapter_start_offsets, index.chapter_start_offsets[1:])))
        progress = [index.book_progress(offset) for offset in range(0, 1001, 50)]
        self.assertEqual(progress, sorted(progress))

class TestBookService(unittest.TestCase):
    """Chapter processing tests"""

    def test_non_positive_budget_gives_single_character_pages(self):
        chapters = [ChapterSource(title="Tiny", styled=StyledText.from_plain("abc\ndef"))]
        for max_segment_chars in (-5, 0):
            book = BookService().parse(chapters, max_segment_chars=max_segment_chars)
            self.assertEqual(book.page_count, 7)
            self.assertTrue(all(page.character_count == 1 for page in book.pages))
            self.assertEqual("".join(page.plain_text for page in book.pages), "abc\ndef")

    def test_reprocess_chapter_returns_new_snapshot(self):
        service = BookService()
        chapters = [ChapterSource(title=f"Chapter {i}", styled=StyledText.from_plain(f"chapter {i} " * 50)) for i in range(3)]
        book = service.parse(chapters, max_segment_chars=200)
        pages_before = list(book.pages)

        updated = service.reprocess_chapter(book, 1, ChapterSource(title="Revised", styled=StyledText.from_plain("short")), 200)

        self.assertEqual(book.pages, pages_before)
        self.assertEqual(updated.chapter_titles[1], "Revised")
        self.assertEqual(len(updated.pages_for_chapter(1)), 1)
        self.assertEqual(updated.chapter_length(1), 5)
        self.assertEqual(updated.book_index.total_character_count, book.chapter_length(0) + 5 + book.chapter_length(2))
        self.assertEqual([p.chapter_index for p in updated.pages], sorted(p.chapter_index for p in updated.pages))

    def test_reprocess_to_empty_skips_chapter(self):
        service = BookService()
        chapters = [ChapterSource(title=f"Chapter {i}", styled=StyledText.from_plain("text " * 10)) for i in range(2)]
        book = service.parse(chapters)

        updated = service.reprocess_chapter(book, 0, ChapterSource(title="Gone", styled=StyledText.from_plain("")))
        self.assertEqual(updated.skipped_chapters, [0])
        self.assertEqual(updated.book_index.chapter_indices, [1])
        self.assertIsNone(updated.first_page_index(0))

    def test_book_model_helpers(self):
        chapters = [ChapterSource(title="A", styled=StyledText.from_plain("a" * 450)), ChapterSource(title="B", styled=StyledText.from_plain("b" * 10))]
        book = BookService().parse(chapters, max_segment_chars=200)

        self.assertEqual(book.page_count, 4)
        self.assertEqual(book.chapter_index_for_page(3), 1)
        self.assertEqual(book.chapter_index_for_page(99), 0)
        self.assertEqual(book.first_page_index(1), 3)
        self.assertEqual(book.pages[3].chapter_title, "B")

    def test_untitled_chapter_uses_heading(self):
        chapters = [ChapterSource(html="<h2>The Storm</h2><p>Rain.</p>"), ChapterSource(styled=StyledText.from_plain("Plain."))]
        book = BookService().parse(chapters)
        self.assertEqual(book.chapter_titles, ["The Storm", "Chapter 2"])

    def test_page_helpers(self):
        text = "first paragraph\nsecond one here\nthird"
        page = segment_plain(text)[0]

        self.assertEqual(page.character_offset_for_paragraph(1), 16)
        self.assertIsNone(page.character_offset_for_paragraph(7))
        self.assertEqual(page.paragraph_at(20).index, 1)

@pytest.mark.asyncio
async def test_parse_async_matches_parse():
    chapters = [ChapterSource(title=f"Chapter {i}", styled=StyledText.from_plain(f"line {i}\n" * (40 * i))) for i in range(5)]
    service = BookService()

    concurrent = await service.parse_async(chapters, max_segment_chars=120)
    sequential = service.parse(chapters, max_segment_chars=120)

    assert concurrent.book_index == sequential.book_index
    assert [p.chapter_character_range for p in concurrent.pages] == [p.chapter_character_range for p in sequential.pages]
    assert concurrent.skipped_chapters == [0]
