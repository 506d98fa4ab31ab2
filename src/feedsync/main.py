import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from .config import get_settings
from .lib.blobs import HttpBlobStore
from .lib.cache import QueryCache
from .lib.elasticsearch import create_client
from .lib.errors import StoreUnavailable
from .lib.store import ElasticsearchDocumentStore
from .routers import health, posts, social, users
from .security import verify_api_key

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level,
        format="[%(levelname)s] %(asctime)s %(name)s - %(message)s",
    )

    es = create_client(settings)
    blobs = HttpBlobStore(settings.blob_store_url, settings.blob_store_bucket, settings.blob_store_api_key)
    await blobs.start()

    store = ElasticsearchDocumentStore(es, index_prefix=settings.elasticsearch_index_prefix)
    try:
        await store.ensure_indices()
    except StoreUnavailable:
        logger.exception("Could not ensure Elasticsearch indices at startup")

    app.state.settings = settings
    app.state.store = store
    app.state.blobs = blobs
    app.state.cache = QueryCache(
        default_ttl=settings.query_cache_ttl or None,
        max_entries=settings.query_cache_max_entries,
    )
    logger.info("feedsync started against %s", settings.elasticsearch_url)
    try:
        yield
    finally:
        await blobs.stop()
        await es.close()


app = FastAPI(
    title="feedsync",
    description="Feed synchronization API for an image-sharing social client",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(health.router)
app.include_router(posts.router)
app.include_router(social.router)
app.include_router(users.router)


@app.get("/", dependencies=[Depends(verify_api_key)])
async def root():
    return {"message": "feedsync"}
