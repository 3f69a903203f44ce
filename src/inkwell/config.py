"""
# Configuration Management Module

Settings for the InkWell API, built on **Pydantic Settings**. Values are validated once at import
time and exposed through the module-level `settings` singleton.

## Loading Hierarchy

Higher layers override lower ones:

```
┌─────────────────────────────────────────────────────────────┐
│  1. Environment variables (highest priority)                │
├─────────────────────────────────────────────────────────────┤
│  2. File named by INKWELL_CONFIG_PATH                       │
├─────────────────────────────────────────────────────────────┤
│  3. .inkwell file (project root)                            │
├─────────────────────────────────────────────────────────────┤
│  4. .env file (project root)                                │
├─────────────────────────────────────────────────────────────┤
│  5. Defaults declared on Settings (lowest priority)         │
└─────────────────────────────────────────────────────────────┘
```

If no file is found the application runs in environment-only mode.

## Configuration Groups

| Group | Purpose |
|-------|---------|
| **Server** | Host, port, debug flag, environment name |
| **JWT** | Signing key, algorithm, token lifetime (days) |
| **MongoDB** | Connection URL, database name, timeouts, optional credentials |
| **Redis** | Rate limiting counters and the shared response cache backend |
| **Cache** | Backend selection, TTL, cached path list |
| **Rate limiting** | Per-IP window for `/api/*` |
| **Content** | Page sizes, slug attempts, tag scan bound |
| **Media** | Avatar upload directory, public URL prefix, size limit |

## Secrets

`SECRET_KEY` is a `SecretStr` and must be supplied from the environment or a config file.
Placeholder values (anything containing `"change"` or `"0000"`) are rejected at startup.

## Usage

```python
from inkwell.config import settings

if settings.is_production:
    ...
secret = settings.SECRET_KEY.get_secret_value()
```
"""

import os
from pathlib import Path
from typing import Any, List, Optional

from dotenv import load_dotenv
from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Constants ---
INKWELL_FILENAME: str = ".inkwell"
DEFAULT_ENV_FILENAME: str = ".env"
CONFIG_ENV_VAR: str = "INKWELL_CONFIG_PATH"
PROJECT_ROOT: Path = Path(__file__).resolve().parent.parent.parent


# --- Config file discovery (no logging) ---
def get_config_path() -> Optional[str]:
    """
    Determine the configuration file path.

    Checks, in order: the `INKWELL_CONFIG_PATH` environment variable, a `.inkwell` file in the
    project root, then a `.env` file in the project root.

    Returns:
        Optional[str]: Path to the first file found, or `None` for environment-only mode.
    """
    env_path: Optional[str] = os.environ.get(CONFIG_ENV_VAR)
    if env_path and os.path.exists(env_path):
        return env_path
    inkwell_path: Path = PROJECT_ROOT / INKWELL_FILENAME
    if inkwell_path.exists():
        return str(inkwell_path)
    env_path_file: Path = PROJECT_ROOT / DEFAULT_ENV_FILENAME
    if env_path_file.exists():
        return str(env_path_file)
    return None


CONFIG_PATH: Optional[str] = get_config_path()
if CONFIG_PATH:
    load_dotenv(dotenv_path=CONFIG_PATH, override=False)


class Settings(BaseSettings):
    """
    Application configuration settings model.

    **Configuration Groups:**
    *   **Server**: Host, port, debug mode, environment.
    *   **Database**: MongoDB connection details.
    *   **Redis**: Connection details for rate limiting and the shared cache.
    *   **Security**: JWT key and token lifetime, bcrypt cost.
    *   **Content**: Pagination, slug generation and search bounds.

    **Validation:**
    Secrets may not be empty or placeholders, the MongoDB URL may not be empty, and numeric
    limits must be positive.
    """

    model_config = SettingsConfigDict(
        env_file=CONFIG_PATH if CONFIG_PATH else None,
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="allow",
    )

    # Server configuration
    HOST: str = "127.0.0.1"
    PORT: int = 5000
    DEBUG: bool = True
    ENVIRONMENT: str = "development"  # development | production | test

    # JWT configuration
    SECRET_KEY: SecretStr = SecretStr("")  # Must be set in .inkwell or environment
    ALGORITHM: str = "HS256"
    JWT_EXPIRE_DAYS: int = 7
    AUTH_COOKIE_NAME: str = "token"
    BCRYPT_ROUNDS: int = 12
    PASSWORD_REQUIRE_COMPLEXITY: bool = False

    # MongoDB configuration
    MONGODB_URL: str = "mongodb://localhost:27017"
    MONGODB_DATABASE: str = "inkwell"
    MONGODB_CONNECTION_TIMEOUT: int = 10000
    MONGODB_SERVER_SELECTION_TIMEOUT: int = 5000
    MONGODB_USERNAME: Optional[str] = None
    MONGODB_PASSWORD: Optional[SecretStr] = None

    # Redis configuration
    # REDIS_URL is the effective URL; built from host/port/db when not given.
    REDIS_URL: Optional[str] = None
    REDIS_HOST: str = "127.0.0.1"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: Optional[SecretStr] = None

    # Response cache
    CACHE_BACKEND: str = "memory"  # memory | redis
    CACHE_TTL_SECONDS: int = 300
    CACHE_MAX_ENTRIES: int = 1000
    CACHE_PATHS: str = "/api/posts,/api/search/"

    # Rate limiting configuration
    RATE_LIMIT_ENABLED: Optional[bool] = None  # None -> on in production only
    RATE_LIMIT_REQUESTS: int = 100
    RATE_LIMIT_PERIOD_SECONDS: int = 15 * 60

    # CORS configuration
    CORS_ORIGINS: str = "http://localhost:3000,http://127.0.0.1:3000"

    # Logging
    DEFAULT_LOG_LEVEL: str = "INFO"

    # Media (avatar uploads)
    MEDIA_ROOT: str = "media"
    MEDIA_URL: str = "/media"
    AVATAR_MAX_BYTES: int = 2 * 1024 * 1024

    # Content
    SLUG_MAX_ATTEMPTS: int = 5
    DEFAULT_PAGE_SIZE: int = 10
    MAX_PAGE_SIZE: int = 50
    ADMIN_MAX_PAGE_SIZE: int = 100
    TAG_SCAN_LIMIT: int = 1000

    @field_validator("SECRET_KEY", mode="before")
    @classmethod
    def no_hardcoded_secrets(cls, v: Any, info: Any) -> Any:
        """
        Validates that the signing secret is not empty or a placeholder.

        Raises:
            ValueError: If the value is empty, whitespace, or looks like a placeholder.
        """
        if not v or "change" in str(v).lower() or "0000" in str(v) or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .inkwell and not hardcoded!")
        return v

    @field_validator("MONGODB_URL", mode="before")
    @classmethod
    def no_empty_urls(cls, v: Any, info: Any) -> Any:
        """Validates that the MongoDB URL is not empty."""
        if not v or not str(v).strip():
            raise ValueError(f"{info.field_name} must be set via environment or .inkwell and not empty!")
        return v

    @field_validator(
        "JWT_EXPIRE_DAYS",
        "CACHE_TTL_SECONDS",
        "CACHE_MAX_ENTRIES",
        "RATE_LIMIT_REQUESTS",
        "RATE_LIMIT_PERIOD_SECONDS",
        "SLUG_MAX_ATTEMPTS",
        "DEFAULT_PAGE_SIZE",
        "MAX_PAGE_SIZE",
        "TAG_SCAN_LIMIT",
        "AVATAR_MAX_BYTES",
        mode="before",
    )
    @classmethod
    def validate_positive_integers(cls, v: Any, info: Any) -> int:
        """Validates that numeric settings are positive integers."""
        if int(v) <= 0:
            raise ValueError(f"{info.field_name} must be a positive integer")
        return int(v)

    @field_validator("CACHE_BACKEND", mode="before")
    @classmethod
    def validate_cache_backend(cls, v: Any) -> str:
        """Validates the response cache backend name."""
        value = str(v).strip().lower()
        if value not in ("memory", "redis"):
            raise ValueError("CACHE_BACKEND must be 'memory' or 'redis'")
        return value

    @property
    def is_production(self) -> bool:
        """True when running with `ENVIRONMENT=production`."""
        return self.ENVIRONMENT.lower() == "production"

    @property
    def rate_limit_active(self) -> bool:
        """Rate limiting defaults to on in production and off elsewhere."""
        if self.RATE_LIMIT_ENABLED is None:
            return self.is_production
        return self.RATE_LIMIT_ENABLED

    @property
    def cors_origins_list(self) -> List[str]:
        """CORS origins parsed from the comma-separated setting."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def cache_paths_list(self) -> List[str]:
        """Cached path rules. Entries ending in `/` match as prefixes, others exactly."""
        return [path.strip() for path in self.CACHE_PATHS.split(",") if path.strip()]


# Global settings instance
settings: Settings = Settings()

# Compute effective REDIS_URL if not explicitly provided.
if not settings.REDIS_URL:
    creds = ""
    if settings.REDIS_PASSWORD:
        creds = f":{settings.REDIS_PASSWORD.get_secret_value()}@"
    settings.REDIS_URL = f"redis://{creds}{settings.REDIS_HOST}:{settings.REDIS_PORT}/{settings.REDIS_DB}"
