"""User-facing library workflows on top of the stores."""
import logging
import random
from dataclasses import replace
from typing import Callable, List, Optional, Tuple, Union

from bookshelf.collection_store import CollectionStore
from bookshelf.filters import ALL, VIEW_BOOKS, select_shelf, top_categories
from bookshelf.library_store import LibraryStore
from bookshelf.models import (
    Book, CatalogItem, Collection, LibraryStats, ShelfStatus, new_collection, utc_now
)
from bookshelf.parse import book_from_catalog_item
from bookshelf.stats import compute_stats
from bookshelf.storage import Storage

logger = logging.getLogger(__name__)


class Bookshelf:
    """The personal library: books, collections and their derived views.

    All reads go through the two stores; nothing else touches storage.
    """
    
    def __init__(
        self,
        storage: Storage,
        catalog=None,
        clock: Callable[[], str] = utc_now,
        default_language: Optional[str] = None
    ):
        self.catalog = catalog
        self.clock = clock
        self.default_language = default_language
        self.collections = CollectionStore(storage)
        self.library = LibraryStore(storage, collections=self.collections, clock=clock)
    
    # Views
    
    def get_library(self) -> List[Book]:
        return self.library.get_all()
    
    def get_book(self, book_id: str) -> Optional[Book]:
        return self.library.get(book_id)
    
    def get_collections(self) -> List[Collection]:
        return self.collections.get_all()
    
    def get_stats(self) -> LibraryStats:
        return compute_stats(self.library.get_all())
    
    def shelf(
        self,
        view: str = VIEW_BOOKS,
        status: Union[ShelfStatus, str] = ALL,
        collection_id: Optional[str] = None
    ) -> List[Book]:
        return select_shelf(self.get_library(), self.get_collections(), view, status, collection_id)
    
    def top_categories(self, limit: int = 5) -> List[Tuple[str, int]]:
        return top_categories(self.get_library(), limit)
    
    # Books
    
    def _require(self, book_id: str) -> Optional[Book]:
        book = self.library.get(book_id)
        if book is None:
            logger.warning(f"Book not in library: {book_id}")
        return book
    
    def add_to_shelf(self, item: CatalogItem, status: ShelfStatus) -> Book:
        """
        Put a catalog item on a shelf.
        
        The first time an id is shelved the catalog metadata is copied into a
        new Book. Afterwards only the status of the existing record changes.
        """
        existing = self.library.get(item.id)
        if existing is not None:
            return self.set_status(existing.id, status)
        
        book = book_from_catalog_item(
            item, status, now=self.clock(), default_language=self.default_language
        )
        return self.library.save(book)
    
    def set_status(
        self,
        book_id: str,
        status: Union[ShelfStatus, str],
        reason: Optional[str] = None
    ) -> Optional[Book]:
        """
        Move a book to another shelf.
        
        Args:
            book_id: Library book id
            status: Target shelf
            reason: Why the book was abandoned (abandoned shelf only)
            
        Returns:
            Updated book or None if not in the library
        """
        book = self._require(book_id)
        if book is None:
            return None
        
        status = ShelfStatus(status)
        current_page = book.current_page
        
        if status == ShelfStatus.READ:
            current_page = book.page_count
        elif book.page_count > 0 and book.current_page >= book.page_count:
            # A finished book leaving the read shelf starts over
            current_page = 0
        
        updated = replace(book, status=status, current_page=current_page)
        if status == ShelfStatus.READ and book.status != ShelfStatus.READ:
            updated.date_finished = self.clock()
        if status == ShelfStatus.ABANDONED and reason is not None:
            updated.abandon_reason = reason.strip() or None
        
        return self.library.save(updated)
    
    def update_progress(self, book_id: str, page: int) -> Optional[Book]:
        """Record the current page; reaching the last page finishes the book."""
        book = self._require(book_id)
        if book is None:
            return None
        
        page = max(0, min(int(page), book.page_count))
        saved = self.library.save(replace(book, current_page=page))
        
        if saved.status == ShelfStatus.READ and book.status != ShelfStatus.READ:
            logger.info(f"Finished {saved.title}")
        return saved
    
    def rate(self, book_id: str, rating: int) -> Optional[Book]:
        if not 0 <= rating <= 5:
            raise ValueError(f"Rating must be between 0 and 5, got {rating}")
        
        book = self._require(book_id)
        if book is None:
            return None
        return self.library.save(replace(book, rating=rating))
    
    def set_notes(self, book_id: str, notes: str) -> Optional[Book]:
        book = self._require(book_id)
        if book is None:
            return None
        return self.library.save(replace(book, notes=notes))
    
    def toggle_comic(self, book_id: str) -> Optional[Book]:
        book = self._require(book_id)
        if book is None:
            return None
        return self.library.save(replace(book, is_comic=not book.is_comic))
    
    def remove(self, book_id: str):
        self.library.remove(book_id)
    
    # Collections
    
    def _ensure_shelved(self, book_id: str, item: Optional[CatalogItem]):
        # Collections may be filled from a catalog page before the book is shelved
        if item is not None and item.id == book_id and self.library.get(book_id) is None:
            self.add_to_shelf(item, ShelfStatus.WANT_TO_READ)
    
    def create_collection(
        self,
        name: str,
        book_id: Optional[str] = None,
        item: Optional[CatalogItem] = None
    ) -> Collection:
        """
        Create a collection, optionally seeded with one book.
        
        Args:
            name: Collection name (blank names raise ValueError)
            book_id: First member
            item: Catalog item for ``book_id``; shelved as want-to-read if new
            
        Returns:
            The new collection
        """
        collection = new_collection(name, [book_id] if book_id else None)
        
        if book_id:
            self._ensure_shelved(book_id, item)
        
        return self.collections.save(collection)
    
    def toggle_collection(
        self,
        collection_id: str,
        book_id: str,
        item: Optional[CatalogItem] = None
    ) -> Optional[Collection]:
        if self.collections.get(collection_id) is None:
            logger.warning(f"Collection not found: {collection_id}")
            return None
        
        self._ensure_shelved(book_id, item)
        return self.collections.toggle_membership(collection_id, book_id)
    
    def delete_collection(self, collection_id: str):
        self.collections.delete(collection_id)
    
    # Recommendations
    
    def recommend(self, limit: int = 6, rng: random.Random = None) -> List[CatalogItem]:
        """
        Suggest catalog items related to something the user reads.
        
        A random book from the read/reading shelves seeds a catalog search on
        its first category, or its first author. Books already in the library
        are left out.
        
        Args:
            limit: Maximum number of suggestions
            rng: Random source (module random by default)
            
        Returns:
            Catalog items, empty when there is nothing to go on
        """
        if self.catalog is None:
            return []
        
        library = self.get_library()
        seeds = [b for b in library if b.status in (ShelfStatus.READ, ShelfStatus.READING)]
        if not seeds:
            return []
        
        seed = (rng or random).choice(seeds)
        query = (seed.categories[:1] or seed.authors[:1] or [None])[0]
        if not query:
            return []
        
        owned = {b.id for b in library}
        results = self.catalog.search(query)
        return [item for item in results if item.id not in owned][:limit]
