"""
FlowReader Reading Progress API Routes
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from flowreader.core.config import settings
from flowreader.core.exceptions import BookNotFoundException, DatabaseException
from flowreader.db.sqlite import get_db, get_metadata_value, set_metadata_value
from flowreader.models.content import BookModel
from flowreader.models.position import Position
from flowreader.models.progress import PositionUpdate, ProgressResponse
from flowreader.services.library_service import BookLibrary, get_library
from flowreader.services.location_service import location_service
from flowreader.api.routes.books import load_book_model

router = APIRouter()
logger = logging.getLogger(__name__)

def progress_response(book_id: str, book_model: BookModel, position: Position) -> dict:
    page_index, local_offset = location_service.resolve_position(book_model, position)
    chapter_title = book_model.pages[page_index].chapter_title if book_model.page_count else ""

    return {
        "book_id": book_id,
        "position": position,
        "page_index": page_index,
        "local_offset": local_offset,
        "chapter_title": chapter_title,
        "completion_percentage": location_service.get_percentage(position)
    }

@router.get("/{book_id}", response_model=ProgressResponse)
async def get_reading_progress(book_id: str, db: Session = Depends(get_db), library: BookLibrary = Depends(get_library)):
    """
    Get the saved reading position for a book, resolved against the current pages
    """
    try:
        book_model = load_book_model(book_id, db, library)

        position = Position.decode(get_metadata_value(db, book_id, settings.POSITION_METADATA_KEY))
        if position is None:
            # nothing usable stored, start at the beginning
            position = Position.book_start()

        return progress_response(book_id, book_model, position)

    except HTTPException: raise
    except BookNotFoundException as e:
        logger.error(f"Book not found: {str(e)}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to get reading progress: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to get reading progress: {str(e)}"
        )

@router.put("/{book_id}", response_model=ProgressResponse)
async def update_reading_progress(book_id: str, position_update: PositionUpdate, db: Session = Depends(get_db), library: BookLibrary = Depends(get_library)):
    """
    Save the reading position for the character at (page_index, local_offset)
    """
    try:
        logger.info(f"Progress update for book {book_id}: page {position_update.page_index}, offset {position_update.local_offset}")

        book_model = load_book_model(book_id, db, library)

        if position_update.page_index >= book_model.page_count:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail=f"Page {position_update.page_index} not found"
            )

        position = location_service.create_position(book_model, position_update.page_index, position_update.local_offset)
        set_metadata_value(db, book_id, settings.POSITION_METADATA_KEY, position.encode())

        return progress_response(book_id, book_model, position)

    except HTTPException: raise
    except BookNotFoundException as e:
        logger.error(f"Book not found: {str(e)}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except DatabaseException as e:
        logger.error(f"Database error saving reading progress: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=e.status_code,
            detail=e.detail
        )
    except Exception as e:
        logger.error(f"Failed to update reading progress: {str(e)}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to update reading progress: {str(e)}"
        )

@router.post("/{book_id}/reset", response_model=ProgressResponse)
async def reset_reading_progress(book_id: str, db: Session = Depends(get_db), library: BookLibrary = Depends(get_library)):
    """
    Reset reading progress for a book
    """
    try:
        book_model = load_book_model(book_id, db, library)

        set_metadata_value(db, book_id, settings.POSITION_METADATA_KEY, None)

        return progress_response(book_id, book_model, Position.book_start())

    except HTTPException: raise
    except BookNotFoundException as e:
        logger.error(f"Book not found: {str(e)}")
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except Exception as e:
        logger.error(f"Failed to reset reading progress: {str(e)}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to reset reading progress: {str(e)}"
        )
