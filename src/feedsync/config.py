"""Runtime settings read from the environment.

Values come from environment variables (populated from ``.env`` by the
package ``__init__``).  Settings are resolved when :func:`get_settings` is
called, not at import, so tests can patch the environment freely.
"""

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(frozen=True, env_ignore_empty=True)

    # ── Elasticsearch ──────────────────────────────────────────────────────
    elasticsearch_url: str = "http://localhost:9200"
    elasticsearch_api_key: str | None = None
    elasticsearch_index_prefix: str = ""

    # ── Blob store ─────────────────────────────────────────────────────────
    blob_store_url: str = "http://localhost:8080/v1/storage"
    blob_store_bucket: str = "media"
    blob_store_api_key: str | None = None

    # ── Feed ───────────────────────────────────────────────────────────────
    feed_page_size: int = 10
    recent_posts_limit: int = 20
    query_cache_ttl: int = 0             # seconds; 0 keeps entries until invalidated
    query_cache_max_entries: int = 1024

    log_level: str = "INFO"

    @field_validator("log_level")
    @classmethod
    def _upper(cls, value: str) -> str:
        return value.upper()


def get_settings() -> Settings:
    """Build a :class:`Settings` from the current environment."""
    return Settings()
