"""Persistence for user-defined collections."""
import logging
from typing import List, Optional, Dict, Any

from bookshelf.models import Collection
from bookshelf.storage import Storage, load_list

logger = logging.getLogger(__name__)

COLLECTIONS_KEY = "mybooks_collections_v1"


class CollectionStore:
    """Owns the collection records.

    Collections reference books by id only. The references may point at a
    book that is not in the library yet, but never at one that was removed:
    ``remove_book`` strips a deleted id from every collection.
    """
    
    def __init__(self, storage: Storage, key: str = COLLECTIONS_KEY):
        self.storage = storage
        self.key = key
    
    def get_all(self) -> List[Collection]:
        return [Collection.from_dict(record) for record in load_list(self.storage, self.key)]
    
    def get(self, collection_id: str) -> Optional[Collection]:
        for collection in self.get_all():
            if collection.id == collection_id:
                return collection
        return None
    
    def _write(self, collections: List[Collection], also_write: Optional[Dict[str, Any]] = None):
        payload = dict(also_write or {})
        payload[self.key] = [collection.to_dict() for collection in collections]
        self.storage.set_many(payload)
    
    def save(self, collection: Collection) -> Collection:
        """Insert or fully replace the collection with the same id."""
        collections = self.get_all()
        
        for index, existing in enumerate(collections):
            if existing.id == collection.id:
                collections[index] = collection
                break
        else:
            collections.append(collection)
        
        self._write(collections)
        logger.info(f"Saved collection {collection.id} ({collection.name})")
        return collection
    
    def delete(self, collection_id: str):
        collections = self.get_all()
        remaining = [c for c in collections if c.id != collection_id]
        
        if len(remaining) == len(collections):
            return
        
        self._write(remaining)
        logger.info(f"Deleted collection {collection_id}")
    
    def toggle_membership(self, collection_id: str, book_id: str) -> Optional[Collection]:
        """
        Add the book to the collection, or remove it if already a member.
        
        Args:
            collection_id: Target collection
            book_id: Library book id (need not exist in the library yet)
            
        Returns:
            Updated collection, or None if the collection does not exist
        """
        collection = self.get(collection_id)
        if collection is None:
            logger.warning(f"Collection not found: {collection_id}")
            return None
        
        if book_id in collection.book_ids:
            collection.book_ids = [b for b in collection.book_ids if b != book_id]
        else:
            collection.book_ids.append(book_id)
        
        return self.save(collection)
    
    def remove_book(self, book_id: str, also_write: Optional[Dict[str, Any]] = None):
        """
        Drop a deleted book from every collection.
        
        Args:
            book_id: Id of the book being removed
            also_write: Extra key/value pairs committed in the same storage write
        """
        collections = self.get_all()
        touched = 0
        
        for collection in collections:
            if book_id in collection.book_ids:
                collection.book_ids = [b for b in collection.book_ids if b != book_id]
                touched += 1
        
        if touched == 0 and not also_write:
            return
        
        self._write(collections, also_write)
        logger.info(f"Removed book {book_id} from {touched} collection(s)")
