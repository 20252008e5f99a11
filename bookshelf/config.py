"""Configuration management."""
import os
from dotenv import load_dotenv

# Load environment variables
load_dotenv()


class Config:
    """Application configuration."""
    
    # Storage
    STORAGE_BACKEND = os.getenv("BOOKSHELF_STORAGE", "file")
    DATA_FILE = os.getenv(
        "BOOKSHELF_DATA_FILE",
        os.path.join(os.path.expanduser("~"), ".bookshelf", "library.json")
    )
    
    # Database (only used by the postgres backend)
    DB_HOST = os.getenv("DB_HOST", "localhost")
    DB_PORT = os.getenv("DB_PORT", "5432")
    DB_NAME = os.getenv("DB_NAME", "booksdb")
    DB_USER = os.getenv("DB_USER", "postgres")
    DB_PASSWORD = os.getenv("DB_PASSWORD", "")
    
    @property
    def DATABASE_URL(self):
        """Build PostgreSQL connection string."""
        return f"postgresql://{self.DB_USER}:{self.DB_PASSWORD}@{self.DB_HOST}:{self.DB_PORT}/{self.DB_NAME}"
    
    # API
    GOOGLE_BOOKS_API_KEY = os.getenv("GOOGLE_BOOKS_API_KEY")
    
    # Defaults
    DEFAULT_TIMEOUT = int(os.getenv("DEFAULT_TIMEOUT", "10"))
    DEFAULT_MAX_RETRIES = int(os.getenv("DEFAULT_MAX_RETRIES", "3"))
    SEARCH_MAX_RESULTS = int(os.getenv("SEARCH_MAX_RESULTS", "20"))
    RECOMMENDATION_LIMIT = int(os.getenv("RECOMMENDATION_LIMIT", "6"))
    TOP_CATEGORIES = int(os.getenv("TOP_CATEGORIES", "5"))
    DEFAULT_LANGUAGE = os.getenv("DEFAULT_LANGUAGE", "he")
    
    # Logging
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
