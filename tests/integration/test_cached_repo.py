"""CachedRepository integration tests on in-memory SQLite with a dict-backed cache."""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest
from sqlalchemy import select

from rowcache.domain.exceptions import ResourceNotFoundException
from rowcache.infrastructure.cache.keys import cache_key
from rowcache.infrastructure.persistence.database import build_session_factory
from rowcache.infrastructure.persistence.repositories.cached_repo import (
    CachedRepository,
    record_to_dict,
)

PREFIX = "test"


@pytest.fixture
async def account(db_session, account_model):
    account = account_model(slug="acme")
    db_session.add(account)
    await db_session.commit()
    return account


@pytest.fixture
def repo(db_session, user_model, orchestrator) -> CachedRepository:
    repo = CachedRepository(db_session, user_model, orchestrator)
    repo.execute = AsyncMock(wraps=repo.execute)
    return repo


@pytest.fixture
async def user(repo, user_model, account, db_session):
    user = await repo.create(
        user_model(uuid="u-1", account_id=account.id, email="a@b.com", name="Ada")
    )
    await db_session.commit()
    return user


def _key(**mapping) -> str:
    return cache_key(PREFIX, "User", mapping)


async def test_create_assigns_id_and_stores_nothing(user, fake_cache) -> None:
    assert user.id is not None
    assert fake_cache.data == {}


async def test_get_by_id_reads_through_then_hits(repo, user, fake_cache) -> None:
    first = await repo.get_by_id(user.id)
    second = await repo.get_by_id(user.id)
    assert first is user
    assert second is user
    assert repo.execute.await_count == 1
    cached = fake_cache.value(_key(id=user.id))
    assert cached["email"] == "a@b.com"
    assert cached["deleted_at"] is None
    assert fake_cache.value(_key(uuid="u-1")) == _key(id=user.id)
    assert fake_cache.value(_key(account_id=user.account_id, email="a@b.com")) == _key(id=user.id)
    assert fake_cache.ttls[_key(id=user.id)] == 30 * 60


async def test_cached_record_is_rebuilt_without_a_query(repo, user, db_session) -> None:
    await repo.get_by_id(user.id)
    user_id, created_at = user.id, user.created_at
    db_session.expunge_all()
    found = await repo.get_by_id(user_id)
    assert repo.execute.await_count == 1
    assert found is not None
    assert found.uuid == "u-1"
    assert found.name == "Ada"
    assert isinstance(found.created_at, datetime)
    assert found.created_at == created_at
    assert found.deleted_at is None


async def test_secondary_keys_resolve_through_pointer(repo, user) -> None:
    await repo.get_by_id(user.id)
    by_uuid = await repo.find_by(uuid="u-1")
    by_email = await repo.find_by(account_id=user.account_id, email="a@b.com")
    assert by_uuid == [user]
    assert by_email == [user]
    assert repo.execute.await_count == 1


async def test_in_query_needs_every_key(repo, user, user_model, account, db_session) -> None:
    other = await repo.create(user_model(uuid="u-2", account_id=account.id, email="b@b.com"))
    await db_session.commit()
    await repo.get_by_id(user.id)
    stmt = select(user_model).where(user_model.id.in_([user.id, other.id]))
    rows = await repo.find(stmt)
    assert {r.id for r in rows} == {user.id, other.id}
    assert repo.execute.await_count == 2
    again = await repo.find(stmt)
    assert [r.id for r in again] == [user.id, other.id]
    assert repo.execute.await_count == 2


async def test_non_cacheable_query_still_writes_through(repo, user, user_model, fake_cache) -> None:
    rows = await repo.find(select(user_model).where(user_model.name == "Ada").order_by(user_model.id))
    assert rows == [user]
    assert _key(id=user.id) in fake_cache.data
    assert fake_cache.get_calls == []


async def test_update_invalidates_current_and_previous_keys(repo, user, fake_cache) -> None:
    await repo.get_by_id(user.id)
    old_email_key = _key(account_id=user.account_id, email="a@b.com")
    user.email = "new@b.com"
    await repo.update(user)
    assert old_email_key in fake_cache.deleted
    assert fake_cache.data == {}
    assert await repo.find_by(account_id=user.account_id, email="a@b.com") == []
    assert await repo.find_by(account_id=user.account_id, email="new@b.com") == [user]


async def test_soft_delete_invalidates_and_hides_record(repo, user) -> None:
    await repo.get_by_id(user.id)
    await repo.soft_delete(user)
    assert user.deleted_at is not None
    assert await repo.find_by(id=user.id) == []


async def test_soft_deleted_cached_record_fails_null_check(repo, user, fake_cache, db_session) -> None:
    await repo.soft_delete(user)
    await db_session.commit()
    # No soft-delete filter: caches the deleted row.
    assert await repo.get_by_id(user.id) is user
    assert fake_cache.value(_key(id=user.id))["deleted_at"] is not None
    calls = repo.execute.await_count
    assert await repo.find_by(id=user.id) == []
    assert repo.execute.await_count == calls + 1


async def test_delete_invalidates(repo, user, fake_cache) -> None:
    user_id = user.id
    await repo.get_by_id(user_id)
    await repo.delete(user)
    assert fake_cache.data == {}
    assert await repo.get_by_id(user_id) is None


async def test_inactive_entity_is_never_stored(db_session, audit_model, orchestrator, fake_cache) -> None:
    repo = CachedRepository(db_session, audit_model, orchestrator)
    entry = await repo.create(audit_model(message="hello"))
    assert (await repo.get_by_id(entry.id)).message == "hello"
    assert fake_cache.data == {}


async def test_global_switch_off(repo, user, orchestrator, fake_cache) -> None:
    orchestrator.set_cache_active(False)
    await repo.get_by_id(user.id)
    await repo.get_by_id(user.id)
    assert repo.execute.await_count == 2
    assert fake_cache.data == {}


async def test_update_of_missing_detached_record(repo, user_model) -> None:
    ghost = user_model(id=999, uuid="ghost", account_id=1, email="g@b.com")
    with pytest.raises(ResourceNotFoundException):
        await repo.update(ghost)


async def test_update_without_primary_key(repo, user_model) -> None:
    with pytest.raises(ValueError):
        await repo.update(user_model(uuid="x", account_id=1, email="x@b.com"))


async def test_soft_delete_requires_capability(db_session, account_model, orchestrator, account) -> None:
    repo = CachedRepository(db_session, account_model, orchestrator)
    with pytest.raises(TypeError):
        await repo.soft_delete(account)


async def test_model_without_soft_delete_uses_plain_lookup(
    db_session, account_model, orchestrator, account, fake_cache
) -> None:
    repo = CachedRepository(db_session, account_model, orchestrator)
    await repo.get_by_id(account.id)
    assert await repo.find_by(slug="acme") == [account]
    assert fake_cache.value(cache_key(PREFIX, "Account", {"slug": "acme"})) == cache_key(
        PREFIX, "Account", {"id": account.id}
    )


def test_record_to_dict_is_json_safe(user_model) -> None:
    user = user_model(id=1, uuid="u", account_id=2, email="e", deleted_at=datetime(2024, 1, 1))
    record = record_to_dict(user)
    assert record["deleted_at"] == "2024-01-01 00:00:00"
    assert record["id"] == 1
    assert record["name"] is None


async def test_find_one(repo, user, user_model) -> None:
    assert await repo.find_one(select(user_model).where(user_model.uuid == "u-1")) is user
    assert await repo.find_one(select(user_model).where(user_model.uuid == "nope")) is None


async def test_rolled_back_create_is_never_cached(
    db_session, account_model, orchestrator, fake_cache
) -> None:
    """A row read back before a rollback must not outlive the transaction in cache."""
    repo = CachedRepository(db_session, account_model, orchestrator)
    await repo.create(account_model(id=7, slug="ghost"))
    assert (await repo.get_by_id(7)).slug == "ghost"
    await db_session.rollback()
    assert fake_cache.data == {}
    async with build_session_factory(db_session.bind)() as other:
        other_repo = CachedRepository(other, account_model, orchestrator)
        assert await other_repo.get_by_id(7) is None


async def test_reads_after_a_write_are_stored_on_commit(
    db_session, account_model, orchestrator, fake_cache
) -> None:
    repo = CachedRepository(db_session, account_model, orchestrator)
    account = await repo.create(account_model(slug="beta"))
    await repo.get_by_id(account.id)
    assert fake_cache.data == {}
    await db_session.commit()
    assert fake_cache.value(cache_key(PREFIX, "Account", {"id": account.id}))["slug"] == "beta"
    assert fake_cache.value(cache_key(PREFIX, "Account", {"slug": "beta"})) == cache_key(
        PREFIX, "Account", {"id": account.id}
    )


async def test_reads_queued_before_a_later_write_are_dropped(
    repo, user, db_session, fake_cache
) -> None:
    user.name = "Grace"
    await repo.update(user)
    await repo.get_by_id(user.id)
    user.name = "Hopper"
    await repo.update(user)
    await db_session.commit()
    assert _key(id=user.id) not in fake_cache.data


async def test_commit_invalidates_rows_recached_meanwhile(repo, user, db_session, fake_cache) -> None:
    await repo.get_by_id(user.id)
    committed_row = fake_cache.data[_key(id=user.id)]
    user.name = "Grace"
    await repo.update(user)
    assert _key(id=user.id) not in fake_cache.data
    # Another session caches the last committed row before this commit lands.
    fake_cache.data[_key(id=user.id)] = committed_row
    await db_session.commit()
    assert _key(id=user.id) not in fake_cache.data


async def test_unflushed_change_bypasses_cache(repo, user, fake_cache) -> None:
    await repo.get_by_id(user.id)
    lookups = len(fake_cache.get_calls)
    user.name = "Grace"
    assert await repo.get_by_id(user.id) is user
    assert repo.execute.await_count == 2
    assert len(fake_cache.get_calls) == lookups


async def test_rollback_drops_queued_records(repo, user, db_session, fake_cache) -> None:
    user_id = user.id
    user.name = "Grace"
    await repo.update(user)
    await repo.get_by_id(user_id)
    await db_session.rollback()
    assert fake_cache.data == {}
    restored = await repo.get_by_id(user_id)
    assert restored.name == "Ada"
    assert fake_cache.value(_key(id=user_id))["name"] == "Ada"
