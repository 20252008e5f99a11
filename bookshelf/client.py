"""HTTP client for Google Books API with resilience patterns."""
import time
import random
import requests
from typing import Optional, Dict, Any, List
import logging

from bookshelf.models import CatalogItem
from bookshelf.parse import parse_catalog_item, parse_search_response, deduplicate_items

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {408, 429}


class GoogleBooksClient:
    """Client for Google Books API with timeouts, retries, and backoff.

    Lookups are best-effort: every failure is logged and reported as an
    empty result, never raised.
    """
    
    BASE_URL = "https://www.googleapis.com/books/v1/volumes"
    
    def __init__(
        self, 
        api_key: Optional[str] = None,
        timeout: int = 10,
        max_retries: int = 3,
        base_backoff: float = 1.0
    ):
        """
        Initialize Google Books API client.
        
        Args:
            api_key: Optional API key (increases rate limits)
            timeout: Request timeout in seconds
            max_retries: Maximum number of retry attempts
            base_backoff: Base delay for exponential backoff
        """
        self.api_key = api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.base_backoff = base_backoff
        
        # Create session for connection pooling
        self.session = requests.Session()
    
    def search(self, query: str, max_results: int = 20) -> List[CatalogItem]:
        """
        Search the catalog.
        
        Args:
            query: Search query string (supports operators like inauthor:)
            max_results: Maximum results to return (1-40)
            
        Returns:
            Catalog items, empty on blank query or any failure
        """
        if not query or not query.strip():
            return []
        
        params = {
            "q": query,
            "maxResults": max(1, min(max_results, 40))  # API limit
        }
        
        if self.api_key:
            params["key"] = self.api_key
        
        response = self._make_request_with_retry(self.BASE_URL, params)
        if not response:
            return []
        
        return deduplicate_items(parse_search_response(response))
    
    def get_by_id(self, volume_id: str) -> Optional[CatalogItem]:
        """
        Fetch a single volume.
        
        Args:
            volume_id: Catalog id
            
        Returns:
            CatalogItem or None if unavailable
        """
        if not volume_id:
            return None
        
        params = {"key": self.api_key} if self.api_key else {}
        response = self._make_request_with_retry(f"{self.BASE_URL}/{volume_id}", params)
        if not response:
            return None
        
        return parse_catalog_item(response)
    
    def _make_request_with_retry(
        self, 
        url: str, 
        params: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """
        GET a catalog URL, retrying transient failures.
        
        Rate limits, server errors, timeouts and dropped connections are
        retried with backoff. A 404 means the volume does not exist; other
        4xx answers are rejected requests. Neither is retried.
        
        Args:
            url: Request URL
            params: Query parameters
            
        Returns:
            Response JSON, or None when absent, rejected or out of attempts
        """
        for attempt in range(1, self.max_retries + 1):
            logger.debug(f"GET {url} (attempt {attempt}/{self.max_retries})")
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except (requests.exceptions.Timeout, requests.exceptions.ConnectionError) as e:
                logger.warning(f"Catalog unreachable on attempt {attempt}: {e}")
            except requests.exceptions.RequestException as e:
                logger.error(f"Catalog request failed: {e}")
                return None
            else:
                status = response.status_code
                if status == 200:
                    try:
                        return response.json()
                    except ValueError as e:
                        logger.error(f"Catalog sent invalid JSON: {e}")
                        return None
                if status == 404:
                    logger.info(f"Not in catalog: {url}")
                    return None
                if status not in RETRYABLE_STATUS and status < 500:
                    logger.error(f"Catalog rejected request ({status}): {response.text}")
                    return None
                logger.warning(f"Catalog answered {status} on attempt {attempt}")
            
            if attempt < self.max_retries:
                self._backoff(attempt)
        
        logger.error(f"Catalog lookup abandoned after {self.max_retries} attempts: {url}")
        return None
    
    def _backoff(self, attempt: int):
        """Sleep base * 2^(attempt-1), plus up to as much again in jitter."""
        delay = self.base_backoff * 2 ** (attempt - 1)
        delay += random.uniform(0, delay)
        logger.info(f"Retrying catalog lookup in {delay:.2f}s")
        time.sleep(delay)
    
    def close(self):
        """Close the session."""
        self.session.close()
    
    def __enter__(self):
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
