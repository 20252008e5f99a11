"""Data models for the personal library."""
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any


class ShelfStatus(str, Enum):
    """Primary classification of a library book."""
    READING = "reading"
    READ = "read"
    WANT_TO_READ = "want-to-read"
    ABANDONED = "abandoned"


def utc_now() -> str:
    """Current time as an ISO-8601 string."""
    return datetime.now(timezone.utc).isoformat()


def generate_id() -> str:
    """Collision-resistant identifier for new records."""
    return uuid.uuid4().hex


@dataclass
class CatalogItem:
    """Normalized search/detail result from the book catalog."""
    id: str
    title: str
    subtitle: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    description: Optional[str] = None
    page_count: Optional[int] = None
    language: Optional[str] = None
    categories: List[str] = field(default_factory=list)
    thumbnail: Optional[str] = None
    
    @property
    def authors_str(self) -> str:
        """Format authors as comma-separated string."""
        return ", ".join(self.authors) if self.authors else "Unknown"
    
    @property
    def categories_str(self) -> str:
        """Format categories as comma-separated string."""
        return ", ".join(self.categories) if self.categories else "None"


@dataclass
class Book:
    """A book in the user's library.

    The id mirrors the catalog item the book was created from. Attribute
    names are snake_case; ``to_dict`` produces the persisted camelCase record.
    """
    id: str
    title: str
    subtitle: Optional[str] = None
    authors: List[str] = field(default_factory=list)
    thumbnail: str = ""
    description: str = ""
    page_count: int = 0
    current_page: int = 0
    rating: int = 0  # 0 = unrated
    notes: str = ""
    status: ShelfStatus = ShelfStatus.WANT_TO_READ
    language: str = ""
    categories: List[str] = field(default_factory=list)
    date_added: str = field(default_factory=utc_now)
    date_finished: Optional[str] = None
    abandon_reason: Optional[str] = None
    is_comic: Optional[bool] = None
    
    @property
    def authors_str(self) -> str:
        """Format authors as comma-separated string."""
        return ", ".join(self.authors) if self.authors else "Unknown"
    
    @property
    def categories_str(self) -> str:
        """Format categories as comma-separated string."""
        return ", ".join(self.categories) if self.categories else "None"
    
    @property
    def progress_percent(self) -> int:
        if self.page_count <= 0:
            return 0
        return round(self.current_page * 100 / self.page_count)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "subtitle": self.subtitle,
            "authors": list(self.authors),
            "thumbnail": self.thumbnail,
            "description": self.description,
            "pageCount": self.page_count,
            "currentPage": self.current_page,
            "rating": self.rating,
            "notes": self.notes,
            "status": self.status.value,
            "language": self.language,
            "categories": list(self.categories),
            "dateAdded": self.date_added,
            "dateFinished": self.date_finished,
            "abandonReason": self.abandon_reason,
            "isComic": self.is_comic,
        }
    
    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Book":
        return Book(
            id=data["id"],
            title=data.get("title", "Unknown Title"),
            subtitle=data.get("subtitle"),
            authors=list(data.get("authors") or []),
            thumbnail=data.get("thumbnail") or "",
            description=data.get("description") or "",
            page_count=int(data.get("pageCount") or 0),
            current_page=int(data.get("currentPage") or 0),
            rating=int(data.get("rating") or 0),
            notes=data.get("notes") or "",
            status=ShelfStatus(data.get("status", ShelfStatus.WANT_TO_READ.value)),
            language=data.get("language") or "",
            categories=list(data.get("categories") or []),
            date_added=data.get("dateAdded") or utc_now(),
            date_finished=data.get("dateFinished"),
            abandon_reason=data.get("abandonReason"),
            is_comic=data.get("isComic"),
        )


@dataclass
class Collection:
    """User-named grouping of library books, referenced by id only."""
    id: str
    name: str
    book_ids: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "bookIds": list(self.book_ids),
            "createdAt": self.created_at,
        }
    
    @staticmethod
    def from_dict(data: Dict[str, Any]) -> "Collection":
        return Collection(
            id=data["id"],
            name=data.get("name", ""),
            book_ids=list(data.get("bookIds") or []),
            created_at=data.get("createdAt") or utc_now(),
        )


def new_collection(name: str, book_ids: Optional[List[str]] = None) -> Collection:
    """
    Build a new collection with a fresh id.
    
    Args:
        name: Display name, trimmed; must not be blank
        book_ids: Initial members (duplicates dropped, order kept)
        
    Returns:
        Collection object
        
    Raises:
        ValueError: If the name is blank
    """
    name = (name or "").strip()
    if not name:
        raise ValueError("Collection name must not be empty")
    
    return Collection(
        id=generate_id(),
        name=name,
        book_ids=list(dict.fromkeys(book_ids or [])),
    )


@dataclass
class LibraryStats:
    """Aggregate counts over a library snapshot."""
    total_books: int = 0
    reading: int = 0
    read: int = 0
    want_to_read: int = 0
    abandoned: int = 0
    pages_read: int = 0
    average_rating: float = 0.0  # over rated books only
    completion_percent: int = 0
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalBooks": self.total_books,
            "reading": self.reading,
            "read": self.read,
            "wantToRead": self.want_to_read,
            "abandoned": self.abandoned,
            "pagesRead": self.pages_read,
            "averageRating": self.average_rating,
            "completionPercent": self.completion_percent,
        }
