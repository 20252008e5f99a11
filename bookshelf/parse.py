"""Parse Google Books API responses and map catalog items onto library books."""
import logging
from typing import Dict, Any, List, Optional

from bookshelf.config import Config
from bookshelf.models import Book, CatalogItem, ShelfStatus, utc_now

logger = logging.getLogger(__name__)

COMIC_MARKERS = ("comic", "graphic novel", "manga")


def parse_catalog_item(item: Dict[str, Any]) -> Optional[CatalogItem]:
    """
    Parse a single volume from Google Books API.
    
    Args:
        item: Single item from a search response, or a volume detail response
        
    Returns:
        CatalogItem object or None if parsing fails
    """
    try:
        volume_info = item.get("volumeInfo") or {}
        
        item_id = item.get("id", "")
        if not item_id:
            return None
        
        # Prefer the regular thumbnail, fall back to the small one
        image_links = volume_info.get("imageLinks") or {}
        thumbnail = image_links.get("thumbnail") or image_links.get("smallThumbnail")
        
        return CatalogItem(
            id=item_id,
            title=volume_info.get("title", "Unknown Title"),
            subtitle=volume_info.get("subtitle"),
            authors=volume_info.get("authors", []),
            description=volume_info.get("description"),
            page_count=volume_info.get("pageCount"),
            language=volume_info.get("language"),
            categories=volume_info.get("categories", []),
            thumbnail=thumbnail
        )
    except Exception as e:
        # APIs can be unpredictable, skip the item rather than fail the search
        logger.warning(f"Failed to parse catalog item: {e}")
        return None


def parse_search_response(response_json: Dict[str, Any]) -> List[CatalogItem]:
    """
    Parse full Google Books search response.
    
    Args:
        response_json: Complete API response JSON
        
    Returns:
        List of CatalogItem objects (empty if no items found)
    """
    items = response_json.get("items") or []
    results = []
    
    for item in items:
        parsed = parse_catalog_item(item)
        if parsed:
            results.append(parsed)
    
    return results


def deduplicate_items(items: List[CatalogItem]) -> List[CatalogItem]:
    """
    Remove duplicate catalog items by ID.
    
    Args:
        items: List of CatalogItem objects
        
    Returns:
        Deduplicated list, first occurrence kept
    """
    seen_ids = set()
    unique_items = []
    
    for item in items:
        if item.id not in seen_ids:
            seen_ids.add(item.id)
            unique_items.append(item)
    
    return unique_items


def looks_like_comic(categories: List[str]) -> bool:
    """Guess the comic flag from catalog categories."""
    return any(
        marker in category.lower()
        for category in categories
        for marker in COMIC_MARKERS
    )


def secure_url(url: Optional[str]) -> str:
    if not url:
        return ""
    return url.replace("http:", "https:", 1) if url.startswith("http:") else url


def book_from_catalog_item(
    item: CatalogItem,
    status: ShelfStatus,
    now: Optional[str] = None,
    default_language: Optional[str] = None
) -> Book:
    """
    Build the library record for a catalog item being shelved for the first time.
    
    After this mapping the Book is the only source of truth for the id; the
    catalog item is not consulted again.
    
    Args:
        item: Catalog item chosen by the user
        status: Shelf the user picked
        now: Timestamp to stamp (defaults to the current time)
        default_language: Language when the catalog has none
        
    Returns:
        Book object
    """
    now = now or utc_now()
    page_count = max(item.page_count or 0, 0)
    is_read = status == ShelfStatus.READ
    
    return Book(
        id=item.id,
        title=item.title,
        subtitle=item.subtitle,
        authors=list(item.authors),
        thumbnail=secure_url(item.thumbnail),
        description=item.description or "",
        page_count=page_count,
        current_page=page_count if is_read else 0,
        rating=0,
        notes="",
        status=status,
        language=item.language or default_language or Config.DEFAULT_LANGUAGE,
        categories=list(dict.fromkeys(item.categories)),
        date_added=now,
        date_finished=now if is_read else None,
        is_comic=looks_like_comic(item.categories)
    )
