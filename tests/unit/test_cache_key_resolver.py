"""Cache key resolver: lookup keys, pointer hop, soft-delete gating, record keys."""

import pytest

from rowcache.application.services.cache_key_resolver import CacheKeyResolver, passes_soft_delete
from rowcache.domain.query.predicate import normalize_clause
from rowcache.domain.query.predicate_set import PredicateSet

PREFIX = "test"
ID_1 = 'test::User::a:1:{s:2:"id";s:1:"1";}'
ID_2 = 'test::User::a:1:{s:2:"id";s:1:"2";}'
UUID_A = 'test::User::a:1:{s:4:"uuid";s:1:"a";}'


def _eq(column: str, value) -> dict:
    return {"type": "Basic", "column": column, "operator": "=", "value": value, "boolean": "and"}


@pytest.fixture
def user(entity_type):
    return entity_type(
        "User", unique_keys=("id", "uuid", ("account_id", "email")), soft_delete="deleted_at"
    )


@pytest.fixture
def resolver(registry, fake_cache) -> CacheKeyResolver:
    return CacheKeyResolver(registry, fake_cache, PREFIX)


def test_lookup_keys_for_registered_signature(resolver, user) -> None:
    predicates = resolver.predicate_set_for(user, [_eq("id", 1)])
    assert resolver.lookup_keys(user, predicates) == [ID_1]


def test_lookup_keys_for_unregistered_signature(resolver, user) -> None:
    predicates = resolver.predicate_set_for(user, [_eq("id", 1), _eq("email", "a@b.com")])
    assert predicates.is_cacheable()
    assert resolver.lookup_keys(user, predicates) == []


def test_lookup_keys_for_empty_set(resolver, user) -> None:
    assert resolver.lookup_keys(user, PredicateSet([])) == []


def test_lookup_keys_when_shape_fails_despite_signature_match(resolver, user) -> None:
    predicates = resolver.predicate_set_for(
        user, [{"type": "Basic", "column": "id", "operator": ">", "value": 1, "boolean": "and"}]
    )
    assert resolver.lookup_keys(user, predicates) == []


async def test_fetch_follows_one_pointer(resolver, fake_cache) -> None:
    await fake_cache.set(ID_1, {"id": 1})
    await fake_cache.set(UUID_A, ID_1)
    assert await resolver.fetch(UUID_A) == {"id": 1}


async def test_fetch_never_follows_a_second_pointer(resolver, fake_cache) -> None:
    other = 'test::User::a:1:{s:5:"other";s:1:"x";}'
    await fake_cache.set(ID_1, {"id": 1})
    await fake_cache.set(other, ID_1)
    await fake_cache.set(UUID_A, other)
    assert await resolver.fetch(UUID_A) is None
    assert fake_cache.get_calls == [UUID_A, other]


async def test_fetch_missing_key(resolver) -> None:
    assert await resolver.fetch(ID_1) is None


async def test_resolve_full_hit(resolver, fake_cache, user) -> None:
    await fake_cache.set(ID_1, {"id": 1, "deleted_at": None})
    await fake_cache.set(ID_2, {"id": 2, "deleted_at": None})
    predicates = resolver.predicate_set_for(
        user, [{"type": "In", "column": "id", "values": [1, 2], "boolean": "and"}]
    )
    assert await resolver.resolve(user, predicates) == [
        {"id": 1, "deleted_at": None},
        {"id": 2, "deleted_at": None},
    ]


async def test_resolve_partial_hit_is_a_miss(resolver, fake_cache, user) -> None:
    await fake_cache.set(ID_1, {"id": 1})
    predicates = resolver.predicate_set_for(
        user, [{"type": "In", "column": "id", "values": [1, 2], "boolean": "and"}]
    )
    assert await resolver.resolve(user, predicates) is None


async def test_resolve_soft_deleted_record_is_a_miss(resolver, fake_cache, user) -> None:
    await fake_cache.set(ID_1, {"id": 1, "deleted_at": None})
    await fake_cache.set(ID_2, {"id": 2, "deleted_at": "2024-01-01 00:00:00"})
    predicates = resolver.predicate_set_for(
        user,
        [
            {"type": "In", "column": "id", "values": [1, 2], "boolean": "and"},
            {"type": "Null", "column": "deleted_at", "boolean": "and"},
        ],
    )
    assert await resolver.resolve(user, predicates) is None


async def test_resolve_not_cacheable_returns_none(resolver, user) -> None:
    predicates = resolver.predicate_set_for(user, [_eq("name", "x")])
    assert await resolver.resolve(user, predicates) is None


@pytest.mark.parametrize(
    "clause,record,expected",
    [
        ({"type": "Null"}, {"deleted_at": None}, True),
        ({"type": "Null"}, {"deleted_at": ""}, True),
        ({"type": "Null"}, {"deleted_at": "2024-01-01"}, False),
        ({"type": "NotNull"}, {"deleted_at": "2024-01-01"}, True),
        ({"type": "NotNull"}, {"deleted_at": None}, False),
        ({"type": "Null"}, {}, False),
        ({"type": "Basic", "operator": "=", "value": "2024-01-01"}, {"deleted_at": "2024-01-01"}, True),
        ({"type": "Basic", "operator": "=", "value": "2024-01-01"}, {"deleted_at": None}, False),
        ({"type": "In", "values": ["x", "y"]}, {"deleted_at": "y"}, True),
        ({"type": "Basic", "operator": ">", "value": "x"}, {"deleted_at": "y"}, False),
    ],
)
def test_passes_soft_delete(clause, record, expected) -> None:
    predicate = normalize_clause({**clause, "column": "deleted_at", "boolean": "and"})
    assert passes_soft_delete(predicate, record) is expected


def test_passes_soft_delete_without_predicate() -> None:
    assert passes_soft_delete(None, {}) is True


def test_keys_for_record(resolver, user) -> None:
    keys = resolver.keys_for_record(
        user, {"id": 1, "uuid": "a", "account_id": 27, "email": "a@b.com", "deleted_at": None}
    )
    assert keys == {
        "account_id,email": 'test::User::a:2:{s:10:"account_id";s:2:"27";s:5:"email";s:7:"a@b.com";}',
        "id": ID_1,
        "uuid": UUID_A,
    }


def test_keys_for_record_skips_incomplete_constraints(resolver, user) -> None:
    keys = resolver.keys_for_record(user, {"id": 1, "uuid": None, "account_id": 27})
    assert keys == {"id": ID_1}
    assert resolver.primary_key_for_record(user, {"uuid": "a"}) is None
    assert resolver.primary_key_for_record(user, {"id": 1}) == ID_1
