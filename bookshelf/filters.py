"""Query functions deriving shelf and collection views from a library snapshot."""
from typing import Dict, List, Optional, Sequence, Tuple, Union

from bookshelf.models import Book, Collection, ShelfStatus

ALL = "all"

VIEW_BOOKS = "books"
VIEW_COMICS = "comics"
VIEW_COLLECTIONS = "collections"
VIEWS = (VIEW_BOOKS, VIEW_COMICS, VIEW_COLLECTIONS)


def filter_by_comic(books: Sequence[Book], comics: bool = True) -> List[Book]:
    """Books flagged as comics, or with ``comics=False`` everything else."""
    return [b for b in books if (b.is_comic is True) == comics]


def filter_by_status(books: Sequence[Book], status: Union[ShelfStatus, str]) -> List[Book]:
    """Books on one shelf; the ``"all"`` shelf returns every book."""
    if status == ALL:
        return list(books)
    status = ShelfStatus(status)
    return [b for b in books if b.status == status]


def filter_by_collection(books: Sequence[Book], collection: Optional[Collection]) -> List[Book]:
    """
    Books belonging to a collection, in library order.
    
    No selected collection means an empty view, not the whole library.
    """
    if collection is None:
        return []
    members = set(collection.book_ids)
    return [b for b in books if b.id in members]


def shelf_counts(books: Sequence[Book]) -> Dict[str, int]:
    counts = {ALL: len(books)}
    for status in ShelfStatus:
        counts[status.value] = 0
    for book in books:
        counts[book.status.value] += 1
    return counts


def top_categories(books: Sequence[Book], limit: int = 5) -> List[Tuple[str, int]]:
    """
    Most frequent categories across the given books.
    
    Args:
        books: Books in scope
        limit: Number of entries to keep
        
    Returns:
        (category, count) pairs, highest count first; ties keep first-seen order
    """
    counts: Dict[str, int] = {}
    for book in books:
        for category in book.categories:
            counts[category] = counts.get(category, 0) + 1
    
    # sorted() is stable and dicts keep insertion order
    ranked = sorted(counts.items(), key=lambda pair: pair[1], reverse=True)
    return ranked[:max(limit, 0)]


def select_shelf(
    books: Sequence[Book],
    collections: Sequence[Collection],
    view: str = VIEW_BOOKS,
    status: Union[ShelfStatus, str] = ALL,
    collection_id: Optional[str] = None
) -> List[Book]:
    """
    Compose the shelves page view.
    
    Args:
        books: Library snapshot
        collections: Collection snapshot
        view: "books" (non-comics), "comics" or "collections"
        status: Shelf filter for the books/comics views
        collection_id: Selected collection for the collections view
        
    Returns:
        Books to display
    """
    if view == VIEW_COLLECTIONS:
        selected = next((c for c in collections if c.id == collection_id), None)
        return filter_by_collection(books, selected)
    
    if view not in VIEWS:
        raise ValueError(f"Unknown view: {view}")
    
    subset = filter_by_comic(books, comics=(view == VIEW_COMICS))
    return filter_by_status(subset, status)
