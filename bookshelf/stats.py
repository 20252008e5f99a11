"""Aggregate statistics over a library snapshot."""
import math
from typing import Iterable

from bookshelf.models import Book, LibraryStats, ShelfStatus


def pages_read(book: Book) -> int:
    """Pages counted for one book: all of them once read, else the current page."""
    return book.page_count if book.status == ShelfStatus.READ else book.current_page


def compute_stats(books: Iterable[Book]) -> LibraryStats:
    """
    Summarize a library.
    
    Args:
        books: Library snapshot
        
    Returns:
        LibraryStats with per-shelf counts, total pages read, the average
        rating of rated books and the share of books finished
    """
    stats = LibraryStats()
    rated = 0
    rating_total = 0
    
    for book in books:
        stats.total_books += 1
        stats.pages_read += pages_read(book)
        
        if book.rating > 0:
            rated += 1
            rating_total += book.rating
        
        if book.status == ShelfStatus.READING:
            stats.reading += 1
        elif book.status == ShelfStatus.READ:
            stats.read += 1
        elif book.status == ShelfStatus.WANT_TO_READ:
            stats.want_to_read += 1
        elif book.status == ShelfStatus.ABANDONED:
            stats.abandoned += 1
    
    if rated:
        stats.average_rating = round(rating_total / rated, 1)
    if stats.total_books:
        # Half rounds up
        stats.completion_percent = math.floor(stats.read * 100 / stats.total_books + 0.5)
    
    return stats
