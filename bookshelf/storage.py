"""Key-addressed storage backends for library state."""
import json
import os
import tempfile
import psycopg2
from psycopg2 import pool
from typing import Optional, Dict, Any
import logging

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """A write or read against the storage medium failed."""


def _encode(key: str, value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError) as e:
        raise StorageError(f"Cannot serialize value for {key}: {e}") from e


class Storage:
    """Interface shared by all backends.

    ``set_many`` is all-or-nothing: either every key is written or the
    previously stored values stay untouched.
    """
    
    def get(self, key: str) -> Optional[Any]:
        raise NotImplementedError
    
    def set_many(self, items: Dict[str, Any]) -> None:
        raise NotImplementedError
    
    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})
    
    def close(self):
        """Release backend resources."""
    
    def __enter__(self):
        """Context manager entry."""
        return self
    
    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()


class MemoryStorage(Storage):
    """In-process storage holding serialized values, with an optional quota."""
    
    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._data: Dict[str, str] = {}
    
    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None
    
    def set_many(self, items: Dict[str, Any]) -> None:
        encoded = {key: _encode(key, value) for key, value in items.items()}
        
        if self.quota_bytes is not None:
            merged = {**self._data, **encoded}
            used = sum(len(k) + len(v.encode("utf-8")) for k, v in merged.items())
            if used > self.quota_bytes:
                raise StorageError(f"Storage quota exceeded ({used} > {self.quota_bytes} bytes)")
        
        self._data.update(encoded)


class JsonFileStorage(Storage):
    """All keys kept in one JSON document, replaced atomically on every write."""
    
    def __init__(self, path: str):
        self.path = path
    
    def _load(self) -> Dict[str, Any]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, ValueError) as e:
            raise StorageError(f"Cannot read {self.path}: {e}") from e
        
        if not isinstance(document, dict):
            raise StorageError(f"Unexpected document in {self.path}")
        return document
    
    def get(self, key: str) -> Optional[Any]:
        return self._load().get(key)
    
    def set_many(self, items: Dict[str, Any]) -> None:
        document = self._load()
        document.update(items)
        payload = _encode(self.path, document)
        
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".bookshelf-", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, self.path)
        except OSError as e:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise StorageError(f"Cannot write {self.path}: {e}") from e
        
        logger.debug(f"Wrote {', '.join(items)} to {self.path}")


class PostgresStorage(Storage):
    """PostgreSQL key/value table with connection pooling."""
    
    def __init__(self, connection_string: str, min_conn: int = 1, max_conn: int = 5):
        """
        Initialize database connection pool.
        
        Args:
            connection_string: PostgreSQL connection string
            min_conn: Minimum connections in pool
            max_conn: Maximum connections in pool
        """
        try:
            self.connection_pool = pool.SimpleConnectionPool(
                min_conn,
                max_conn,
                connection_string
            )
        except psycopg2.Error as e:
            raise StorageError(f"Failed to create connection pool: {e}") from e
        
        logger.info("Database connection pool created successfully")
    
    def init_schema(self):
        """Create the key/value table if it doesn't exist."""
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("""
                    CREATE TABLE IF NOT EXISTS kv_store (
                        key VARCHAR(255) PRIMARY KEY,
                        value JSONB NOT NULL,
                        updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                    )
                """)
                conn.commit()
                logger.info("Database schema initialized successfully")
        except psycopg2.Error as e:
            conn.rollback()
            raise StorageError(f"Failed to initialize schema: {e}") from e
        finally:
            self.connection_pool.putconn(conn)
    
    def get(self, key: str) -> Optional[Any]:
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                cur.execute("SELECT value FROM kv_store WHERE key = %s", (key,))
                row = cur.fetchone()
                # JSONB is automatically deserialized
                return row[0] if row else None
        except psycopg2.Error as e:
            raise StorageError(f"Failed to read {key}: {e}") from e
        finally:
            self.connection_pool.putconn(conn)
    
    def set_many(self, items: Dict[str, Any]) -> None:
        encoded = {key: _encode(key, value) for key, value in items.items()}
        
        conn = self.connection_pool.getconn()
        try:
            with conn.cursor() as cur:
                for key, payload in encoded.items():
                    cur.execute("""
                        INSERT INTO kv_store (key, value, updated_at)
                        VALUES (%s, %s, CURRENT_TIMESTAMP)
                        ON CONFLICT (key) DO UPDATE SET
                            value = EXCLUDED.value,
                            updated_at = CURRENT_TIMESTAMP
                    """, (key, payload))
            conn.commit()
        except psycopg2.Error as e:
            conn.rollback()
            logger.error(f"Failed to write {', '.join(encoded)}: {e}")
            raise StorageError(f"Failed to write {', '.join(encoded)}: {e}") from e
        finally:
            self.connection_pool.putconn(conn)
    
    def close(self):
        """Close all connections in the pool."""
        if self.connection_pool:
            self.connection_pool.closeall()
            logger.info("Database connection pool closed")


def open_storage(config) -> Storage:
    """
    Build the storage backend named by the configuration.
    
    Args:
        config: Config instance
        
    Returns:
        Storage backend ready for use
    """
    backend = config.STORAGE_BACKEND.lower()
    
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return JsonFileStorage(config.DATA_FILE)
    if backend == "postgres":
        storage = PostgresStorage(config.DATABASE_URL)
        storage.init_schema()
        return storage
    
    raise ValueError(f"Unknown storage backend: {config.STORAGE_BACKEND}")


def load_list(storage: Storage, key: str) -> list:
    """Read a record list stored under ``key`` (missing key means empty)."""
    value = storage.get(key)
    if value is None:
        return []
    if not isinstance(value, list):
        raise StorageError(f"Unexpected data stored under {key}: expected a list")
    return value
