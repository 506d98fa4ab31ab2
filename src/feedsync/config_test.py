import os
from unittest.mock import patch

import pytest
from pydantic import ValidationError

from .config import Settings, get_settings


def test_defaults_when_environment_is_empty():
    with patch.dict(os.environ, {}, clear=True):
        settings = get_settings()
        assert settings == Settings()
    assert settings.feed_page_size == 10
    assert settings.recent_posts_limit == 20
    assert settings.elasticsearch_api_key is None


def test_reads_environment():
    env = {
        "ELASTICSEARCH_URL": "http://es:9200",
        "ELASTICSEARCH_API_KEY": "k",
        "FEED_PAGE_SIZE": "25",
        "QUERY_CACHE_TTL": "30",
        "LOG_LEVEL": "debug",
    }
    with patch.dict(os.environ, env, clear=True):
        settings = get_settings()
    assert settings.elasticsearch_url == "http://es:9200"
    assert settings.elasticsearch_api_key == "k"
    assert settings.feed_page_size == 25
    assert settings.query_cache_ttl == 30
    assert settings.log_level == "DEBUG"


def test_blank_values_fall_back_to_defaults():
    with patch.dict(os.environ, {"FEED_PAGE_SIZE": "", "BLOB_STORE_API_KEY": ""}, clear=True):
        settings = get_settings()
    assert settings.feed_page_size == 10
    assert settings.blob_store_api_key is None


def test_invalid_integer_is_rejected():
    with patch.dict(os.environ, {"FEED_PAGE_SIZE": "ten"}, clear=True):
        with pytest.raises(ValidationError, match="feed_page_size"):
            get_settings()


def test_settings_are_immutable():
    with patch.dict(os.environ, {}, clear=True):
        settings = get_settings()
    with pytest.raises(ValidationError):
        settings.feed_page_size = 5
