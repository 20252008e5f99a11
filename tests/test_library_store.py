"""Tests for the library store."""
import itertools

import pytest

from bookshelf.collection_store import CollectionStore
from bookshelf.library_store import LIBRARY_KEY, LibraryStore, normalize_progress
from bookshelf.models import Book, Collection, ShelfStatus
from bookshelf.storage import MemoryStorage, StorageError

NOW = "2024-05-01T12:00:00+00:00"


def make_book(book_id="b1", **overrides):
    fields = dict(id=book_id, title=f"Book {book_id}", page_count=300, date_added=NOW)
    fields.update(overrides)
    return Book(**fields)


@pytest.fixture
def storage():
    return MemoryStorage()


@pytest.fixture
def store(storage):
    return LibraryStore(storage, collections=CollectionStore(storage), clock=lambda: NOW)


def test_empty_library(store):
    """A fresh store has no books."""
    assert store.get_all() == []
    assert store.get("missing") is None


def test_save_and_get(store):
    """Saved books come back with the same values."""
    book = make_book(authors=["Ursula K. Le Guin"], categories=["Fiction"])
    store.save(book)
    
    assert store.get_all() == [book]
    assert store.get("b1") == book


def test_save_is_idempotent(store):
    """Saving the same value twice changes nothing after the first call."""
    book = make_book()
    store.save(book)
    first = store.get_all()
    store.save(book)
    
    assert store.get_all() == first
    assert len(first) == 1


def test_save_replaces_in_place(store):
    """An upsert fully replaces the record and keeps its position."""
    store.save(make_book("a", notes="old", rating=3))
    store.save(make_book("b"))
    store.save(make_book("a", notes="new"))
    
    books = store.get_all()
    assert [b.id for b in books] == ["a", "b"]
    assert books[0].notes == "new"
    assert books[0].rating == 0


def test_ids_stay_unique(store):
    """No sequence of saves produces two records with the same id."""
    for book_id in ["a", "b", "a", "c", "b", "a"]:
        store.save(make_book(book_id))
    
    ids = [b.id for b in store.get_all()]
    assert ids == ["a", "b", "c"]


def test_insertion_order_survives_new_store(storage, store):
    """Order is persisted, so a second store over the same storage sees it."""
    for book_id in ["z", "m", "a"]:
        store.save(make_book(book_id))
    
    assert [b.id for b in LibraryStore(storage).get_all()] == ["z", "m", "a"]


def test_save_finishes_book_on_last_page(store):
    """Reaching the last page moves the book to read and stamps the date."""
    saved = store.save(make_book(status=ShelfStatus.READING, current_page=300))
    
    assert saved.status == ShelfStatus.READ
    assert saved.date_finished == NOW
    assert store.get("b1").status == ShelfStatus.READ


def test_save_clamps_progress(store):
    """Current page is kept within the page count."""
    assert store.save(make_book("over", status=ShelfStatus.READING, current_page=900)).current_page == 300
    assert store.save(make_book("under", status=ShelfStatus.READING, current_page=-4)).current_page == 0


def test_progress_invariant_holds_after_any_save(store):
    """For every stored book 0 <= current_page <= page_count, and a full book is read."""
    samples = [
        make_book("a", current_page=10),
        make_book("b", current_page=300, status=ShelfStatus.ABANDONED),
        make_book("c", current_page=301, status=ShelfStatus.WANT_TO_READ),
        make_book("d", page_count=0, current_page=5),
    ]
    for book in samples:
        store.save(book)
    
    for book in store.get_all():
        assert 0 <= book.current_page <= book.page_count
        if book.page_count > 0 and book.current_page == book.page_count:
            assert book.status == ShelfStatus.READ
            assert book.date_finished is not None


def test_zero_page_book_is_not_auto_finished(store):
    """A book without a page count never completes by progress alone."""
    saved = store.save(make_book(page_count=0, status=ShelfStatus.READING))
    assert saved.status == ShelfStatus.READING


def test_read_book_gets_finish_date(store):
    """A read record without a finish date is stamped."""
    assert store.save(make_book(status=ShelfStatus.READ)).date_finished == NOW


def test_finish_date_is_kept_when_leaving_read(store):
    """The finish date is not cleared when the status changes later."""
    store.save(make_book(status=ShelfStatus.READ, current_page=300, date_finished="2023-01-01"))
    moved = store.save(make_book(status=ShelfStatus.READING, current_page=0, date_finished="2023-01-01"))
    
    assert moved.status == ShelfStatus.READING
    assert moved.date_finished == "2023-01-01"


def test_normalize_progress_returns_same_object_when_valid():
    """Valid books pass through untouched."""
    book = make_book(current_page=12, status=ShelfStatus.READING)
    assert normalize_progress(book, lambda: NOW) is book


def test_remove_deletes_book(store):
    """Removing a book drops only that record."""
    store.save(make_book("a"))
    store.save(make_book("b"))
    store.remove("a")
    
    assert [b.id for b in store.get_all()] == ["b"]


def test_remove_missing_is_noop(store):
    """Removing an unknown id is not an error."""
    store.save(make_book("a"))
    store.remove("nope")
    
    assert [b.id for b in store.get_all()] == ["a"]


def test_remove_cascades_into_collections(storage, store):
    """After removal no collection references the book."""
    collections = store.collections
    collections.save(Collection("c1", "Favourites", ["a", "b"]))
    collections.save(Collection("c2", "Summer", ["a"]))
    collections.save(Collection("c3", "Other", ["b"]))
    store.save(make_book("a"))
    store.save(make_book("b"))
    
    store.remove("a")
    
    for collection in CollectionStore(storage).get_all():
        assert "a" not in collection.book_ids
    assert collections.get("c1").book_ids == ["b"]
    assert collections.get("c3").book_ids == ["b"]


def test_remove_cleans_dangling_reference_for_absent_book(store):
    """The cascade runs even if the book never made it into the library."""
    store.collections.save(Collection("c1", "Wishlist", ["ghost"]))
    store.remove("ghost")
    
    assert store.collections.get("c1").book_ids == []


def test_failed_save_leaves_state_intact():
    """A write over quota raises and keeps the previous snapshot."""
    storage = MemoryStorage(quota_bytes=2000)
    store = LibraryStore(storage, clock=lambda: NOW)
    store.save(make_book("a"))
    before = storage.get(LIBRARY_KEY)
    
    with pytest.raises(StorageError):
        store.save(make_book("b", description="x" * 5000))
    
    assert storage.get(LIBRARY_KEY) == before
    assert [b.id for b in store.get_all()] == ["a"]


def test_failed_remove_leaves_library_and_collections_intact():
    """Library and collection updates of a removal commit together or not at all."""
    storage = MemoryStorage()
    collections = CollectionStore(storage)
    store = LibraryStore(storage, collections=collections, clock=lambda: NOW)
    store.save(make_book("a"))
    collections.save(Collection("c1", "Favourites", ["a"]))
    
    def fail(items):
        raise StorageError("disk full")
    
    storage.set_many = fail
    with pytest.raises(StorageError):
        store.remove("a")
    
    assert [b.id for b in store.get_all()] == ["a"]
    assert collections.get("c1").book_ids == ["a"]


def test_unexpected_stored_shape_raises(storage):
    """Data of the wrong shape is reported rather than overwritten."""
    storage.set(LIBRARY_KEY, {"schema": 2})
    
    with pytest.raises(StorageError):
        LibraryStore(storage).get_all()


def ticking_clock():
    ticks = itertools.count(1)
    return lambda: f"2024-05-{next(ticks):02d}T12:00:00+00:00"


def test_resaving_a_finished_book_keeps_its_finish_date(storage):
    """Saving the same finished book twice does not move the finish date."""
    store = LibraryStore(storage, clock=ticking_clock())
    book = make_book(status=ShelfStatus.READING, current_page=300)
    
    first = store.save(book)
    snapshot = store.get_all()
    second = store.save(book)
    
    assert first.date_finished == "2024-05-01T12:00:00+00:00"
    assert second.date_finished == first.date_finished
    assert store.get_all() == snapshot


def test_resaving_read_book_without_date_keeps_first_stamp(storage):
    """A read record saved without a date gets stamped once, then keeps it."""
    store = LibraryStore(storage, clock=ticking_clock())
    book = make_book(status=ShelfStatus.READ, current_page=300)
    
    store.save(book)
    store.save(book)
    
    assert store.get("b1").date_finished == "2024-05-01T12:00:00+00:00"
