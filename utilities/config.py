"""
Configuration management using environment variables.
Handles storage, token, password and catalog settings with validation and defaults.
"""

from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings


class AppConfig(BaseSettings):
    """
    Configuration class for the bookshelf core.
    Uses pydantic BaseSettings for environment variable management.
    """

    # MongoDB Configuration
    mongodb_url: str = "mongodb://localhost:27017"
    mongodb_database: str = "bookshelf"
    mongodb_users_collection: str = "users"

    # Token Configuration
    secret_key: str = "your-secret-key-change-in-production"
    algorithm: str = "HS256"
    access_token_expire_minutes: int = 120
    token_clock_skew_seconds: int = 60

    # Password Configuration
    password_hash_iterations: int = 390000
    password_min_length: int = 8

    # Catalog Configuration
    catalog_base_url: str = "https://www.googleapis.com/books/v1/volumes"
    catalog_timeout: int = 10
    catalog_max_results: int = 20
    catalog_rate_limit_per_second: float = 5.0

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "json"
    log_file: Optional[str] = None

    # Development/Testing
    debug: bool = False

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "case_sensitive": False,
        "extra": "ignore",  # Ignore extra fields from .env
    }

    @field_validator('algorithm')
    @classmethod
    def validate_algorithm(cls, v):
        """Only HMAC algorithms are supported with a shared secret."""
        valid_algorithms = ['HS256', 'HS384', 'HS512']
        if v.upper() not in valid_algorithms:
            raise ValueError(f'algorithm must be one of: {valid_algorithms}')
        return v.upper()

    @field_validator('access_token_expire_minutes')
    @classmethod
    def validate_token_lifetime(cls, v):
        """Ensure token lifetime is reasonable."""
        if v < 1 or v > 1440:
            raise ValueError('access_token_expire_minutes must be between 1 and 1440')
        return v

    @field_validator('token_clock_skew_seconds')
    @classmethod
    def validate_clock_skew(cls, v):
        """Ensure clock skew tolerance is small."""
        if v < 0 or v > 300:
            raise ValueError('token_clock_skew_seconds must be between 0 and 300')
        return v

    @field_validator('password_hash_iterations')
    @classmethod
    def validate_hash_iterations(cls, v):
        if v < 1000:
            raise ValueError('password_hash_iterations must be at least 1000')
        return v

    @field_validator('catalog_max_results')
    @classmethod
    def validate_max_results(cls, v):
        """Google Books caps maxResults at 40."""
        if v < 1 or v > 40:
            raise ValueError('catalog_max_results must be between 1 and 40')
        return v

    @field_validator('log_level')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure log level is valid."""
        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if v.upper() not in valid_levels:
            raise ValueError(f'log_level must be one of: {valid_levels}')
        return v.upper()

    @field_validator('log_format')
    @classmethod
    def validate_log_format(cls, v):
        """Ensure log format is valid."""
        valid_formats = ['json', 'console']
        if v.lower() not in valid_formats:
            raise ValueError(f'log_format must be one of: {valid_formats}')
        return v.lower()

    def get_user_agent(self) -> str:
        """Get user agent string for catalog requests."""
        return "Bookshelf-API/1.0"

    def get_headers(self) -> dict:
        """Get default headers for catalog HTTP requests."""
        return {
            "User-Agent": self.get_user_agent(),
            "Accept": "application/json",
        }


# Global configuration instance
config = AppConfig()
