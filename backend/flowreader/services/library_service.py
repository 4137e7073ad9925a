"""
FlowReader Library Service - in-memory registry of processed book snapshots
"""
import logging
import threading
from typing import Dict, Optional
from fastapi import Request
from flowreader.models.content import BookModel

logger = logging.getLogger(__name__)

class BookLibrary:
    """
    Holds one immutable BookModel per book id. Snapshots are swapped whole,
    never patched, so readers can use a fetched snapshot without locking.
    """

    def __init__(self):
        self._books: Dict[str, BookModel] = {}
        self._lock = threading.Lock()

    def put(self, book_id: str, book: BookModel) -> None:
        with self._lock:
            self._books[book_id] = book
        logger.info(f"Registered book {book_id} with {book.page_count} pages")

    def find(self, book_id: str) -> Optional[BookModel]:
        with self._lock:
            return self._books.get(book_id)

    def remove(self, book_id: str) -> None:
        with self._lock:
            self._books.pop(book_id, None)

def get_library(request: Request) -> BookLibrary:
    """Library owned by the running application"""
    return request.app.state.library
