"""Shared Elasticsearch utilities.

Client construction and response unwrapping used by the document store
and the application lifespan.
"""

import logging

from elastic_transport import ObjectApiResponse
from elasticsearch import AsyncElasticsearch

from ..config import Settings
from .errors import StoreUnavailable

logger = logging.getLogger(__name__)


def create_client(settings: Settings) -> AsyncElasticsearch:
    """Build the application-scoped ``AsyncElasticsearch`` client."""
    kwargs = {}
    if settings.elasticsearch_api_key:
        kwargs["api_key"] = settings.elasticsearch_api_key
    return AsyncElasticsearch(settings.elasticsearch_url, **kwargs)


def unwrap_es_response(resp) -> dict:
    """Unwrap an Elasticsearch response, handling both ObjectApiResponse and dict.

    Raises ``StoreUnavailable`` if the response type is unexpected.
    """
    if isinstance(resp, ObjectApiResponse):
        return resp.body
    elif isinstance(resp, dict):
        return resp
    else:
        logger.error("Unexpected Elasticsearch response type: %s", type(resp))
        raise StoreUnavailable("Invalid Elasticsearch response")
