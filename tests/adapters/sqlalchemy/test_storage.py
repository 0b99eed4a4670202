"""Exercise the session-bound storage adapter against in-memory SQLite."""

from __future__ import annotations

from typing import cast

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session  # noqa: TC002

from sidepost.adapters.sqlalchemy import SqlAlchemyStorageAdapter
from sidepost.domain.errors import NotFoundError, StorageError
from sidepost.domain.ports import Embedding, StorageAdapter
from sidepost.domain.registry import ResourceRegistry  # noqa: TC001
from tests.support.mappings import Address, Author, Comment, Post, Profile, Tag


def test_adapter_satisfies_the_storage_port(sql_storage: SqlAlchemyStorageAdapter) -> None:
    assert isinstance(sql_storage, StorageAdapter)


def test_save_adds_and_flushes_new_rows(
    sql_registry: ResourceRegistry,
    sql_storage: SqlAlchemyStorageAdapter,
    sqlite_session: Session,
) -> None:
    tags = sql_registry.resource("tags")

    saved = sql_storage.save(tags, sql_storage.new(tags), {"name": "jazz"})

    tag = cast(Tag, saved.object)
    assert saved.ok
    assert tag.id is not None
    assert tag in sqlite_session
    assert sql_storage.load(tags, str(tag.id)) is tag


def test_invalid_new_row_never_joins_the_session(
    sql_registry: ResourceRegistry,
    sql_storage: SqlAlchemyStorageAdapter,
    sqlite_session: Session,
) -> None:
    tags = sql_registry.resource("tags")

    saved = sql_storage.save(tags, sql_storage.new(tags), {"name": ""})

    assert saved.errors == {"name": ("can't be blank",)}
    assert saved.object not in sqlite_session
    assert sqlite_session.scalars(select(Tag)).all() == []


def test_invalid_update_is_not_applied(
    sql_registry: ResourceRegistry,
    sql_storage: SqlAlchemyStorageAdapter,
    sqlite_session: Session,
) -> None:
    tag = Tag(name="jazz")
    sqlite_session.add(tag)
    sqlite_session.flush()

    saved = sql_storage.save(sql_registry.resource("tags"), tag, {"name": ""})

    assert not saved.ok
    assert tag.name == "jazz"


@pytest.mark.parametrize("key", ["404", "not-a-number"])
def test_load_of_unknown_key_raises(
    sql_registry: ResourceRegistry, sql_storage: SqlAlchemyStorageAdapter, key: str
) -> None:
    with pytest.raises(NotFoundError):
        sql_storage.load(sql_registry.resource("tags"), key)


def test_delete_removes_rows_and_ignores_missing_ones(
    sql_registry: ResourceRegistry,
    sql_storage: SqlAlchemyStorageAdapter,
    sqlite_session: Session,
) -> None:
    tags = sql_registry.resource("tags")
    tag = Tag(name="jazz")
    sqlite_session.add(tag)
    sqlite_session.flush()

    sql_storage.delete(tags, str(tag.id))
    sql_storage.delete(tags, "404")

    assert sqlite_session.scalars(select(Tag)).all() == []


def test_many_to_many_associate_is_idempotent(
    sql_registry: ResourceRegistry,
    sql_storage: SqlAlchemyStorageAdapter,
    sqlite_session: Session,
) -> None:
    association = sql_registry.describe("profiles", "tags")
    profile = Profile(name="Ada")
    tag = Tag(name="jazz")
    sqlite_session.add_all([profile, tag])

    sql_storage.associate(profile, tag, association)
    sql_storage.associate(profile, tag, association)

    assert profile.tags == [tag]
    assert sql_storage.related(profile, association) == (tag,)

    sql_storage.disassociate(profile, tag, association)

    assert profile.tags == []


def test_belongs_to_links_through_the_relationship(
    sql_registry: ResourceRegistry, sql_storage: SqlAlchemyStorageAdapter
) -> None:
    association = sql_registry.describe("posts", "author")
    author = Author(name="Grace")
    post = Post(title="Hello")

    sql_storage.associate(author, post, association)
    assert post.author is author

    sql_storage.disassociate(author, post, association)
    assert post.author is None


def test_polymorphic_link_without_relationship_is_a_no_op(
    sql_registry: ResourceRegistry, sql_storage: SqlAlchemyStorageAdapter
) -> None:
    association = sql_registry.describe("comments", "commentable")
    post = Post(title="Hello")
    comment = Comment(body="nice")

    sql_storage.associate(post, comment, association)

    assert sql_storage.related(comment, association) == ()


def test_embedded_rows_are_owned_by_their_parent(
    sql_registry: ResourceRegistry,
    sql_storage: SqlAlchemyStorageAdapter,
    sqlite_session: Session,
) -> None:
    addresses = sql_registry.resource("addresses")
    profile = Profile(name="Ada")
    sqlite_session.add(profile)
    sqlite_session.flush()
    embedding = Embedding(
        parent=profile, association=sql_registry.describe("profiles", "addresses")
    )

    saved = sql_storage.save(
        addresses, sql_storage.new(addresses, embedded_in=embedding), {"city": "Oslo"}
    )
    address = cast(Address, saved.object)

    assert profile.addresses == [address]
    assert sql_storage.load(addresses, str(address.id), embedded_in=embedding) is address

    sql_storage.delete(addresses, str(address.id), embedded_in=embedding)

    assert profile.addresses == []
    assert sqlite_session.scalars(select(Address)).all() == []


def test_engine_failures_are_wrapped(
    sql_registry: ResourceRegistry, sql_storage: SqlAlchemyStorageAdapter
) -> None:
    addresses = sql_registry.resource("addresses")

    with pytest.raises(StorageError):
        # an address outside its profile violates the NOT NULL profile_id column
        sql_storage.save(addresses, sql_storage.new(addresses), {"city": "Oslo"})


def test_transaction_commits_or_rolls_back(
    sql_registry: ResourceRegistry,
    sql_storage: SqlAlchemyStorageAdapter,
    sqlite_session: Session,
) -> None:
    tags = sql_registry.resource("tags")

    with sql_storage.transaction(tags):
        sql_storage.save(tags, sql_storage.new(tags), {"name": "kept"})
    with sql_storage.transaction(tags) as scope:
        sql_storage.save(tags, sql_storage.new(tags), {"name": "discarded"})
        scope.mark_rollback_only()
    with pytest.raises(RuntimeError), sql_storage.transaction(tags):
        sql_storage.save(tags, sql_storage.new(tags), {"name": "failed"})
        raise RuntimeError("boom")

    assert [tag.name for tag in sqlite_session.scalars(select(Tag))] == ["kept"]
