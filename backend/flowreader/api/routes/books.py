"""
FlowReader Book Management API Routes
"""
import logging
import os
from fastapi import APIRouter, Depends, HTTPException, UploadFile, File, status
from sqlalchemy.orm import Session
from flowreader.db.sqlite import get_db
from flowreader.db.models import Book
from flowreader.core.exceptions import BookNotFoundException, BookParsingException, FileStorageException
from flowreader.models.book import BookResponse, BookUploadResponse, PageResponse
from flowreader.models.content import BookModel
from flowreader.services.book_service import book_service
from flowreader.services.library_service import BookLibrary, get_library

router = APIRouter()
logger = logging.getLogger(__name__)

def load_book_model(book_id: str, db: Session, library: BookLibrary) -> BookModel:
    """
    Processed snapshot for a book, re-parsing the stored file when it is not in memory
    Args:
        book_id: ID of the book
        db: database session
        library: application book library
    Returns:
        BookModel for the book
    """
    book_model = library.find(book_id)
    if book_model is not None: return book_model

    book = db.query(Book).filter(Book.id == book_id).first()
    if not book: raise BookNotFoundException(book_id)

    logger.info(f"Book {book_id} not in memory, re-parsing {book.file_path}")
    book_model = book_service.parse_epub(book.file_path)
    library.put(book_id, book_model)

    return book_model

def book_response(book: Book, book_model: BookModel) -> dict:
    return {
        "id": book.id,
        "title": book.title,
        "total_chapters": len(book_model.chapter_titles),
        "total_pages": book_model.page_count,
        "total_characters": book_model.book_index.total_character_count,
        "chapter_titles": book_model.chapter_titles,
        "skipped_chapters": book_model.skipped_chapters,
    }

@router.post("/upload", status_code=status.HTTP_201_CREATED, response_model=BookUploadResponse)
async def upload_book(file: UploadFile = File(...), db: Session = Depends(get_db), library: BookLibrary = Depends(get_library)):
    """
    Upload and process a new book
    """
    try:
        logger.info(f"Uploaded filename: {file.filename}")
        if not (file.filename or "").lower().endswith('.epub') and file.content_type != 'application/epub+zip':
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Only EPUB files are supported"
            )

        file_content = await file.read()
        file_path = book_service.save_uploaded_file(file_content, file.filename or "book.epub")

        book_model = book_service.parse_epub(file_path)
        if book_model.page_count == 0:
            raise BookParsingException("No readable chapters found in book")

        book = Book(
            title=os.path.splitext(os.path.basename(file.filename or file_path))[0],
            file_path=file_path,
            total_characters=book_model.book_index.total_character_count,
            total_pages=book_model.page_count,
            total_chapters=len(book_model.chapter_titles)
        )
        db.add(book)
        db.commit()
        db.refresh(book)

        library.put(book.id, book_model)

        skipped = len(book_model.skipped_chapters)
        return {
            **book_response(book, book_model),
            "message": f"Book processed successfully ({skipped} chapters skipped)." if skipped else "Book processed successfully.",
        }

    except HTTPException: raise
    except BookParsingException as e:
        logger.error(f"Book parsing error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(e)
        )
    except FileStorageException as e:
        logger.error(f"File storage error: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )
    except Exception as e:
        logger.error(f"Unexpected error during book upload: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"An unexpected error occurred: {str(e)}"
        )

@router.get("/{book_id}", response_model=BookResponse)
async def get_book(book_id: str, db: Session = Depends(get_db), library: BookLibrary = Depends(get_library)):
    """
    Get structure information about a book
    """
    try:
        book = db.query(Book).filter(Book.id == book_id).first()
        if not book: raise BookNotFoundException(book_id)

        return book_response(book, load_book_model(book_id, db, library))

    except HTTPException: raise
    except BookNotFoundException as e:
        logger.error(f"Book not found: {str(e)}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get book details: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get book details: {str(e)}"
        )

@router.get("/{book_id}/pages/{page_index}", response_model=PageResponse)
async def get_page(book_id: str, page_index: int, db: Session = Depends(get_db), library: BookLibrary = Depends(get_library)):
    """
    Get the plain text and chapter placement of one page segment
    """
    try:
        book_model = load_book_model(book_id, db, library)
        if not 0 <= page_index < book_model.page_count:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail=f"Page {page_index} not found"
            )

        page = book_model.pages[page_index]
        return {
            "book_id": book_id,
            "page_index": page_index,
            "chapter_index": page.chapter_index,
            "chapter_title": page.chapter_title,
            "segment_index": page.segment_index,
            "is_first_segment": page.is_first_segment,
            "is_last_segment": page.is_last_segment,
            "chapter_start": page.chapter_character_range.start,
            "chapter_end": page.chapter_character_range.end,
            "character_count": page.character_count,
            "text": page.plain_text,
        }

    except HTTPException: raise
    except BookNotFoundException as e:
        logger.error(f"Book not found: {str(e)}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get page: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get page: {str(e)}"
        )

@router.delete("/{book_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_book(book_id: str, db: Session = Depends(get_db), library: BookLibrary = Depends(get_library)):
    """
    Delete a book from the library
    """
    try:
        book = db.query(Book).filter(Book.id == book_id).first()
        if not book: raise BookNotFoundException(book_id)

        try:
            if book.file_path and os.path.exists(book.file_path): os.remove(book.file_path)
        except OSError as e: logger.warning(f"Error deleting book file: {str(e)}")

        library.remove(book_id)
        db.delete(book)
        db.commit()

        return None

    except HTTPException: raise
    except BookNotFoundException as e:
        logger.error(f"Book not found: {str(e)}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to delete book: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to delete book: {str(e)}"
        )
