"""Tests for shelf and collection filters."""
import pytest

from bookshelf.filters import (
    filter_by_collection, filter_by_comic, filter_by_status,
    select_shelf, shelf_counts, top_categories
)
from bookshelf.models import Book, Collection, ShelfStatus


def library():
    return [
        Book("a", "Watchmen", status=ShelfStatus.READ, is_comic=True, categories=["Comics"]),
        Book("b", "Dune", status=ShelfStatus.READING, categories=["Fiction"]),
        Book("c", "Emma", status=ShelfStatus.WANT_TO_READ, is_comic=False, categories=["Fiction", "Drama"]),
        Book("d", "Akira", status=ShelfStatus.READING, is_comic=True),
    ]


def test_filter_by_comic():
    """Comics are only the books flagged True; unset counts as a book."""
    books = library()
    
    assert [b.id for b in filter_by_comic(books)] == ["a", "d"]
    assert [b.id for b in filter_by_comic(books, comics=False)] == ["b", "c"]


def test_filter_by_status():
    """Exact shelf match, and 'all' returns everything."""
    books = library()
    
    assert [b.id for b in filter_by_status(books, ShelfStatus.READING)] == ["b", "d"]
    assert [b.id for b in filter_by_status(books, "want-to-read")] == ["c"]
    assert filter_by_status(books, "all") == books


def test_filter_by_status_rejects_unknown_shelf():
    """An unknown shelf name is an error."""
    with pytest.raises(ValueError):
        filter_by_status(library(), "borrowed")


def test_filter_by_collection_keeps_library_order():
    """Members come back in library order, missing ids are skipped."""
    collection = Collection("c1", "Mixed", ["d", "ghost", "a"])
    
    assert [b.id for b in filter_by_collection(library(), collection)] == ["a", "d"]


def test_filter_by_collection_nothing_selected():
    """No selected collection shows nothing."""
    assert filter_by_collection(library(), None) == []


def test_shelf_counts():
    """Counts per shelf plus the total."""
    assert shelf_counts(library()) == {
        "all": 4,
        "reading": 2,
        "read": 1,
        "want-to-read": 1,
        "abandoned": 0,
    }


def test_top_categories_ranking():
    """Categories are ranked by count and truncated."""
    books = [
        Book("1", "One", categories=["Fiction"]),
        Book("2", "Two", categories=["Fiction"]),
        Book("3", "Three", categories=["Drama"]),
        Book("4", "Four", categories=["Fiction"]),
        Book("5", "Five", categories=["Drama"]),
    ]
    
    assert top_categories(books, 2) == [("Fiction", 3), ("Drama", 2)]


def test_top_categories_ties_keep_first_seen_order():
    """Equal counts keep the order in which categories first appeared."""
    books = [
        Book("1", "One", categories=["Poetry", "History"]),
        Book("2", "Two", categories=["Art", "History", "Poetry"]),
        Book("3", "Three", categories=["Art"]),
    ]
    
    assert top_categories(books, 5) == [("Poetry", 2), ("History", 2), ("Art", 2)]


def test_top_categories_defaults_to_five():
    """The default limit is five entries."""
    books = [Book(str(i), "B", categories=[f"Cat {i}"]) for i in range(8)]
    
    assert len(top_categories(books)) == 5


def test_select_shelf_views():
    """The books, comics and collections views compose the filters."""
    books = library()
    collections = [Collection("c1", "Favourites", ["c", "a"])]
    
    assert [b.id for b in select_shelf(books, collections)] == ["b", "c"]
    assert [b.id for b in select_shelf(books, collections, "comics", ShelfStatus.READING)] == ["d"]
    assert [b.id for b in select_shelf(books, collections, "collections", collection_id="c1")] == ["a", "c"]
    assert select_shelf(books, collections, "collections") == []
    assert select_shelf(books, collections, "collections", collection_id="gone") == []


def test_select_shelf_unknown_view():
    """Unknown views are rejected."""
    with pytest.raises(ValueError):
        select_shelf(library(), [], "magazines")


def test_empty_library_filters():
    """Every filter over an empty library is empty."""
    collection = Collection("c1", "Anything", ["a"])
    
    assert filter_by_comic([]) == []
    assert filter_by_comic([], comics=False) == []
    assert filter_by_status([], "all") == []
    assert filter_by_status([], ShelfStatus.READ) == []
    assert filter_by_collection([], collection) == []
    assert top_categories([]) == []
    assert select_shelf([], [collection], "collections", collection_id="c1") == []
