"""Async HTTP client and last-issued-wins search for interactive lookups."""
import asyncio
import httpx
from typing import List, Optional, Dict, Any
import logging

from bookshelf.models import CatalogItem
from bookshelf.parse import parse_catalog_item, parse_search_response, deduplicate_items

logger = logging.getLogger(__name__)


class AsyncGoogleBooksClient:
    """Async catalog client; failures come back as empty results."""
    
    BASE_URL = "https://www.googleapis.com/books/v1/volumes"
    
    def __init__(
        self,
        api_key: Optional[str] = None,
        timeout: int = 10,
        max_concurrent: int = 5
    ):
        """
        Initialize async client.
        
        Args:
            api_key: Optional API key
            timeout: Request timeout
            max_concurrent: Maximum concurrent requests
        """
        self.api_key = api_key
        self.timeout = timeout
        self.semaphore = asyncio.Semaphore(max_concurrent)
        
        # Create async HTTP client
        self.client = httpx.AsyncClient(timeout=timeout)
    
    async def _get_json(self, url: str, params: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if self.api_key:
            params["key"] = self.api_key
        
        # Use semaphore to limit concurrency
        async with self.semaphore:
            try:
                logger.info(f"Async request: {url} {params.get('q', '')}")
                response = await self.client.get(url, params=params)
                
                if response.status_code == 200:
                    return response.json()
                else:
                    logger.warning(f"Status {response.status_code} for {url}")
                    return None
            
            except httpx.HTTPError as e:
                logger.error(f"Async request failed: {e}")
                return None
            except ValueError as e:
                logger.error(f"Invalid JSON from {url}: {e}")
                return None
    
    async def search(self, query: str, max_results: int = 20) -> List[CatalogItem]:
        """
        Search the catalog asynchronously.
        
        Args:
            query: Search query
            max_results: Max results
            
        Returns:
            Catalog items, empty on blank query or failure
        """
        if not query or not query.strip():
            return []
        
        params = {"q": query, "maxResults": max(1, min(max_results, 40))}
        response = await self._get_json(self.BASE_URL, params)
        if not response:
            return []
        return deduplicate_items(parse_search_response(response))
    
    async def get_by_id(self, volume_id: str) -> Optional[CatalogItem]:
        if not volume_id:
            return None
        response = await self._get_json(f"{self.BASE_URL}/{volume_id}", {})
        return parse_catalog_item(response) if response else None
    
    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()
    
    async def __aenter__(self):
        """Async context manager entry."""
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.close()


class LatestSearch:
    """Search box semantics: only the most recently issued query may publish.

    Issuing a search cancels the lookup still in flight, and a lookup that
    finishes after a newer one was issued is discarded.
    """
    
    def __init__(self, client):
        self.client = client
        self.query: Optional[str] = None
        self.results: List[CatalogItem] = []
        self.loading = False
        self._generation = 0
        self._task: Optional[asyncio.Future] = None
    
    async def search(self, query: str) -> Optional[List[CatalogItem]]:
        """
        Run a lookup for ``query``.
        
        Returns:
            The published results, or None if a newer search superseded this one
        """
        self._generation += 1
        generation = self._generation
        
        if self._task is not None and not self._task.done():
            self._task.cancel()
        
        self.loading = True
        task = asyncio.ensure_future(self.client.search(query))
        self._task = task
        
        try:
            items = await task
        except asyncio.CancelledError:
            if generation != self._generation:
                logger.debug(f"Search for {query!r} superseded")
                return None
            raise
        
        if generation != self._generation:
            logger.debug(f"Discarding stale results for {query!r}")
            return None
        
        self.query = query
        self.results = items
        self.loading = False
        return items
