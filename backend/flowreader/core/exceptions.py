"""
FlowReader Custom Exception Classes
"""
from typing import Optional
from fastapi import status

class FlowReaderException(Exception):
    """Base exception for FlowReader application"""

    def __init__(
        self,
        detail: str = "An error occurred",
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    ):
        self.detail = detail
        self.status_code = status_code
        super().__init__(self.detail)

class SourceUnavailableException(FlowReaderException):
    """Exception raised when a chapter's source could not be obtained or converted"""

    def __init__(self, detail: str = "Chapter source unavailable", chapter_index: Optional[int] = None):
        self.chapter_index = chapter_index
        super().__init__(
            detail=detail,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY
        )

class BookNotFoundException(FlowReaderException):
    """Exception raised when a requested book is not found"""

    def __init__(self, book_id: str):
        super().__init__(
            detail=f"Book with ID {book_id} not found",
            status_code=status.HTTP_404_NOT_FOUND
        )

class BookParsingException(FlowReaderException):
    """Exception raised when the book container cannot be parsed"""

    def __init__(self, detail: str = "Failed to parse book file"):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_400_BAD_REQUEST
        )

class DatabaseException(FlowReaderException):
    """Exception raised when database operations fail"""

    def __init__(self, detail: str = "Database operation failed"):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )

class FileStorageException(FlowReaderException):
    """Exception raised when file storage operations fail"""

    def __init__(self, detail: str = "File storage operation failed"):
        super().__init__(
            detail=detail,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
        )
