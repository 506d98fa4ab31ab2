"""Tests for user lookups."""

import pytest

from .cache import QueryCache
from .store.memory import InMemoryDocumentStore
from .users import UserService, save_record_from_document, user_from_document


@pytest.fixture
def store():
    s = InMemoryDocumentStore()
    s.seed("users", {"id": "u1", "account_id": "acc-1", "name": "Ada", "username": "ada"})
    s.seed("users", {"id": "u2", "account_id": "acc-2"})
    s.seed("saves", {"id": "s1", "user": "u1", "post": "p1"})
    s.seed("saves", {"id": "s2", "user": {"id": "u1", "name": "Ada"}, "post": {"id": "p2", "caption": "partial"}})
    s.seed("saves", {"id": "s3", "user": "u2", "post": "p1"})
    return s


@pytest.fixture
def service(store):
    return UserService(store, QueryCache())


class TestUserFromDocument:
    def test_defaults(self):
        user = user_from_document({"id": "u9"})
        assert user.name == "Unknown"
        assert user.username == ""
        assert user.email == ""
        assert user.image_url == ""
        assert user.bio == ""
        assert user.saves == []


class TestSaveRecordFromDocument:
    def test_embedded_post_reduced_to_id(self):
        record = save_record_from_document({"id": "s", "user": "u1", "post": {"id": "p2", "caption": "x"}})
        assert record.post == "p2"

    def test_record_without_post_is_dropped(self):
        assert save_record_from_document({"id": "s", "user": "u1", "post": None}) is None


class TestUserService:
    @pytest.mark.asyncio
    async def test_get_user(self, service):
        user = await service.get_user("u1")
        assert user.name == "Ada"
        assert user.saves == []

    @pytest.mark.asyncio
    async def test_get_user_with_saves(self, service):
        user = await service.get_user("u1", with_saves=True)
        assert sorted(r.post for r in user.saves) == ["p1", "p2"]
        assert user.save_record_for("p2").id == "s2"
        assert user.save_record_for("p9") is None

    @pytest.mark.asyncio
    async def test_get_missing_user(self, service):
        assert await service.get_user("nobody") is None

    @pytest.mark.asyncio
    async def test_current_user_by_account(self, service):
        user = await service.get_current_user("acc-1")
        assert user.id == "u1"
        assert len(user.saves) == 2

    @pytest.mark.asyncio
    async def test_current_user_defaults(self, service):
        user = await service.get_current_user("acc-2")
        assert user.name == "Unknown"
        assert [r.id for r in user.saves] == ["s3"]

    @pytest.mark.asyncio
    async def test_current_user_unknown_account(self, service):
        assert await service.get_current_user("acc-404") is None

    @pytest.mark.asyncio
    async def test_current_user_is_cached_until_invalidated(self, store):
        cache = QueryCache()
        service = UserService(store, cache)

        await service.get_current_user("acc-1")
        await service.get_current_user("acc-1")
        assert len(store.calls_for("list", "users")) == 1

        cache.invalidate("currentUser")
        await service.get_current_user("acc-1")
        assert len(store.calls_for("list", "users")) == 2

    @pytest.mark.asyncio
    async def test_current_user_store_failure(self, service, store):
        store.fail("list", "users")
        assert await service.get_current_user("acc-1") is None
