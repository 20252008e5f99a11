"""Persistence for the books in the user's library."""
import logging
from dataclasses import replace
from typing import Callable, List, Optional

from bookshelf.collection_store import CollectionStore
from bookshelf.models import Book, ShelfStatus, utc_now
from bookshelf.storage import Storage, load_list

logger = logging.getLogger(__name__)

LIBRARY_KEY = "mybooks_library_v1"


def normalize_progress(
    book: Book,
    clock: Callable[[], str] = utc_now,
    previous: Optional[Book] = None
) -> Book:
    """
    Resolve the page-progress invariants of a book about to be written.
    
    Clamps the current page into [0, page_count]. A book whose last page has
    been reached is moved to the read shelf, and a read book always carries
    a finish date. The date is only stamped on a transition to read: if the
    stored record is already read, its finish date is kept.
    
    Args:
        book: Book to check
        clock: Timestamp source for the finish date
        previous: Currently stored record with the same id, if any
        
    Returns:
        A corrected copy, or the same object when nothing needed fixing
    """
    page_count = max(book.page_count, 0)
    current_page = min(max(book.current_page, 0), page_count)
    status = book.status
    date_finished = book.date_finished
    
    def finished_at() -> str:
        if previous is not None and previous.status == ShelfStatus.READ and previous.date_finished:
            return previous.date_finished
        return clock()
    
    if page_count > 0 and current_page == page_count and status != ShelfStatus.READ:
        status = ShelfStatus.READ
        date_finished = finished_at()
    elif status == ShelfStatus.READ and not date_finished:
        date_finished = finished_at()
    
    if (page_count, current_page, status, date_finished) == (
        book.page_count, book.current_page, book.status, book.date_finished
    ):
        return book
    
    return replace(
        book,
        page_count=page_count,
        current_page=current_page,
        status=status,
        date_finished=date_finished
    )


class LibraryStore:
    """Owns the library book records, one per id, in insertion order."""
    
    def __init__(
        self,
        storage: Storage,
        collections: Optional[CollectionStore] = None,
        key: str = LIBRARY_KEY,
        clock: Callable[[], str] = utc_now
    ):
        self.storage = storage
        self.collections = collections
        self.key = key
        self.clock = clock
    
    def get_all(self) -> List[Book]:
        return [Book.from_dict(record) for record in load_list(self.storage, self.key)]
    
    def get(self, book_id: str) -> Optional[Book]:
        for book in self.get_all():
            if book.id == book_id:
                return book
        return None
    
    def save(self, book: Book) -> Book:
        """
        Insert a book or fully replace the record with the same id.
        
        Args:
            book: Book to store
            
        Returns:
            The stored book, after progress invariants were applied
            
        Raises:
            StorageError: If the write fails; stored state is unchanged
        """
        books = self.get_all()
        index = next((i for i, existing in enumerate(books) if existing.id == book.id), None)
        previous = books[index] if index is not None else None
        
        book = normalize_progress(book, self.clock, previous)
        if index is not None:
            books[index] = book
        else:
            books.append(book)
        
        self.storage.set(self.key, [b.to_dict() for b in books])
        logger.info(f"Saved book {book.id} ({book.status.value})")
        return book
    
    def remove(self, book_id: str):
        """Delete a book if present and purge it from every collection."""
        books = self.get_all()
        remaining = [b for b in books if b.id != book_id]
        
        payload = {}
        if len(remaining) != len(books):
            payload[self.key] = [b.to_dict() for b in remaining]
        
        # Library and collections are committed in one write
        if self.collections is not None:
            self.collections.remove_book(book_id, also_write=payload)
        elif payload:
            self.storage.set_many(payload)
        
        if payload:
            logger.info(f"Removed book {book_id}")
