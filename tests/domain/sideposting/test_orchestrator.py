from __future__ import annotations

from typing import TYPE_CHECKING, cast

import pytest

from sidepost.adapters.memory import InMemoryStorageAdapter
from sidepost.domain.errors import MalformedRelationshipError
from sidepost.domain.model import Identity, Operation, PayloadNode, PersistResult
from sidepost.domain.sideposting import PersistenceOrchestrator
from tests.helpers.payloads import node, unidentified
from tests.support.models import Address, Author, Comment, Photo, Post, Profile, Tag

if TYPE_CHECKING:
    from sidepost.domain.model import ResourceDescriptor
    from sidepost.domain.ports import Embedding
    from sidepost.domain.registry import ResourceRegistry


class _CountingStorage(InMemoryStorageAdapter):
    def __init__(self) -> None:
        super().__init__()
        self.loads: list[tuple[str, str]] = []

    def load(
        self,
        resource: ResourceDescriptor,
        key: str,
        *,
        embedded_in: Embedding | None = None,
    ) -> object:
        self.loads.append((resource.type, key))
        return super().load(resource, key, embedded_in=embedded_in)


def _run(
    registry: ResourceRegistry,
    storage: InMemoryStorageAdapter,
    resource_type: str,
    payload: PayloadNode,
) -> PersistResult:
    orchestrator = PersistenceOrchestrator(registry, storage)
    return orchestrator.run(payload, registry.resource(resource_type))


def _children(result: PersistResult, name: str) -> tuple[PersistResult, ...]:
    return cast("tuple[PersistResult, ...]", result.children[name])


def test_create_tree_links_many_to_many_and_embedded_children(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    payload = node(
        attributes={"name": "Ada"},
        tags=[node(temp_id="t1", attributes={"name": "jazz"})],
        addresses=[node(temp_id="a1", attributes={"city": "Oslo"})],
    )

    result = _run(registry, memory_storage, "profiles", payload)

    profile = cast(Profile, result.object)
    tag = cast(Tag, _children(result, "tags")[0].object)
    assert result.ok
    assert result.operation is Operation.CREATE
    assert profile.tag_ids == [tag.id]
    assert tag.profile_ids == [profile.id]
    assert _children(result, "tags")[0].temp_id == "t1"
    assert [address.city for address in profile.addresses] == ["Oslo"]
    assert memory_storage.records("addresses") == []


def test_belongs_to_parent_is_saved_first(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    payload = node(
        attributes={"title": "Hello"},
        author=node(temp_id="a", attributes={"name": "Grace"}),
    )

    result = _run(registry, memory_storage, "posts", payload)

    post = cast(Post, result.object)
    author = cast(Author, cast(PersistResult, result.children["author"]).object)
    assert author.id is not None
    assert post.author_id == author.id
    assert post.author is author
    assert int(author.id) < int(cast(str, post.id))


def test_belongs_to_disassociate_nulls_the_foreign_key(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    author = cast(Author, memory_storage.add(registry.resource("authors"), Author(name="Grace")))
    post = Post(title="Hello", author_id=author.id)
    post.author = author
    memory_storage.add(registry.resource("posts"), post)

    _run(
        registry,
        memory_storage,
        "posts",
        node(id=post.id, author=node(Operation.DISASSOCIATE, id=author.id)),
    )

    assert post.author_id is None
    assert post.author is None
    assert memory_storage.get("authors", author.id) is author


def test_has_many_children_receive_parent_key(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    authors = registry.resource("authors")
    posts = registry.resource("posts")
    author = cast(Author, memory_storage.add(authors, Author(name="Grace")))
    kept = cast(Post, memory_storage.add(posts, Post(title="Kept", author_id=author.id)))
    dropped = cast(Post, memory_storage.add(posts, Post(title="Dropped", author_id=author.id)))

    result = _run(
        registry,
        memory_storage,
        "authors",
        node(
            id=author.id,
            posts=[
                node(temp_id="new", attributes={"title": "Fresh"}),
                node(id=kept.id, attributes={"title": "Edited"}),
                node(Operation.DISASSOCIATE, id=dropped.id),
            ],
        ),
    )

    created = cast(Post, _children(result, "posts")[0].object)
    assert created.author_id == author.id
    assert kept.title == "Edited"
    assert dropped.author_id is None
    association = registry.describe("authors", "posts")
    assert list(memory_storage.related(author, association)) == [kept, created]
    assert author.posts == [created, kept]


def test_destroyed_child_has_no_object(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    author = cast(Author, memory_storage.add(registry.resource("authors"), Author(name="Grace")))
    post = cast(
        Post,
        memory_storage.add(registry.resource("posts"), Post(title="x", author_id=author.id)),
    )

    result = _run(
        registry,
        memory_storage,
        "authors",
        node(id=author.id, posts=[node(Operation.DESTROY, id=post.id)]),
    )

    destroyed = _children(result, "posts")[0]
    assert destroyed.object is None
    assert destroyed.operation is Operation.DESTROY
    assert memory_storage.get("posts", post.id) is None


def test_failed_child_does_not_stop_siblings(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    profile = cast(
        Profile, memory_storage.add(registry.resource("profiles"), Profile(name="Ada"))
    )

    result = _run(
        registry,
        memory_storage,
        "profiles",
        node(
            id=profile.id,
            tags=[
                node(temp_id="bad", attributes={"name": ""}),
                node(temp_id="good", attributes={"name": "jazz"}),
            ],
        ),
    )

    bad, good = _children(result, "tags")
    assert bad.errors == {"name": ("can't be blank",)}
    assert bad.key is None
    assert good.ok
    assert profile.tag_ids == [cast(Tag, good.object).id]
    assert [cast(Tag, tag).name for tag in memory_storage.records("tags")] == ["jazz"]


def test_repeated_temp_id_reuses_the_created_object(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    result = _run(
        registry,
        memory_storage,
        "profiles",
        node(
            attributes={"name": "Ada"},
            tags=[
                node(temp_id="x", attributes={"name": "jazz"}),
                node(temp_id="x", attributes={"name": "jazz"}),
            ],
        ),
    )

    first, second = _children(result, "tags")
    assert first.object is second.object
    assert len(memory_storage.records("tags")) == 1
    assert cast(Profile, result.object).tag_ids == [cast(Tag, first.object).id]


def test_unknown_id_is_left_unresolved(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    profile = cast(
        Profile, memory_storage.add(registry.resource("profiles"), Profile(name="Ada"))
    )

    result = _run(
        registry, memory_storage, "profiles", node(id=profile.id, tags=[node(id="999")])
    )

    missing = _children(result, "tags")[0]
    assert not missing.resolved
    assert (missing.operation, missing.temp_id) == (Operation.UPDATE, None)
    assert missing.ok
    assert profile.tag_ids == []


def test_entities_referenced_twice_are_loaded_once(registry: ResourceRegistry) -> None:
    storage = _CountingStorage()
    profile = cast(Profile, storage.add(registry.resource("profiles"), Profile(name="Ada")))
    tag = cast(Tag, storage.add(registry.resource("tags"), Tag(name="jazz")))

    _run(
        registry,
        storage,
        "profiles",
        node(id=profile.id, tags=[node(id=tag.id), node(id=tag.id)]),
    )

    assert storage.loads.count(("tags", tag.id)) == 1
    assert profile.tag_ids == [tag.id]


def test_polymorphic_parent_sets_key_and_type(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    photo = cast(Photo, memory_storage.add(registry.resource("photos"), Photo(caption="sky")))

    result = _run(
        registry,
        memory_storage,
        "comments",
        node(attributes={"body": "nice"}, commentable=node(id=photo.id, type_="Photo")),
    )

    comment = cast(Comment, result.object)
    assert comment.commentable_id == photo.id
    assert comment.commentable_type == "Photo"
    assert comment.commentable is photo


def test_embedded_records_are_updated_created_and_destroyed_in_place(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    home = Address(id="home", city="Bergen")
    work = Address(id="work", city="Oslo")
    profile = cast(
        Profile,
        memory_storage.add(
            registry.resource("profiles"), Profile(name="Ada", addresses=[home, work])
        ),
    )

    _run(
        registry,
        memory_storage,
        "profiles",
        node(
            id=profile.id,
            addresses=[
                node(id="home", attributes={"city": "Trondheim"}),
                node(Operation.DESTROY, id="work"),
                node(temp_id="cabin", attributes={"city": "Voss"}),
            ],
        ),
    )

    assert [address.city for address in profile.addresses] == ["Trondheim", "Voss"]
    assert profile.addresses[0] is home


def test_malformed_tree_is_rejected_before_any_write(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    payload = node(
        attributes={"name": "Ada"},
        tags=[node(temp_id="t", attributes={"name": "jazz"}), unidentified(name="x")],
    )

    with pytest.raises(MalformedRelationshipError):
        _run(registry, memory_storage, "profiles", payload)

    assert memory_storage.records("profiles") == []
    assert memory_storage.records("tags") == []


def test_entries_without_an_operation_default_from_their_identity(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    profile = cast(
        Profile, memory_storage.add(registry.resource("profiles"), Profile(name="Ada"))
    )
    tag = cast(Tag, memory_storage.add(registry.resource("tags"), Tag(name="old")))
    payload = PayloadNode(
        identity=Identity(durable_id=profile.id),
        relationships={
            "tags": (
                PayloadNode(identity=Identity(temp_id="t1"), attributes={"name": "new"}),
                PayloadNode(identity=Identity(durable_id=tag.id), attributes={"name": "renamed"}),
            )
        },
    )

    result = _run(registry, memory_storage, "profiles", payload)

    created, updated = _children(result, "tags")
    assert result.operation is Operation.UPDATE
    assert created.operation is Operation.CREATE
    assert updated.operation is Operation.UPDATE
    assert tag.name == "renamed"
    assert profile.tag_ids == [cast(Tag, created.object).id, tag.id]


def test_destroyed_many_to_many_entry_leaves_no_dangling_id(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter
) -> None:
    doomed = cast(Tag, memory_storage.add(registry.resource("tags"), Tag(name="C")))
    kept = cast(Tag, memory_storage.add(registry.resource("tags"), Tag(name="A")))
    profile = cast(
        Profile,
        memory_storage.add(
            registry.resource("profiles"),
            Profile(name="Ada", tag_ids=[cast(str, kept.id), cast(str, doomed.id)]),
        ),
    )

    _run(
        registry,
        memory_storage,
        "profiles",
        node(id=profile.id, tags=[node(Operation.DESTROY, id=doomed.id)]),
    )

    assert profile.tag_ids == [kept.id]
    assert memory_storage.get("tags", doomed.id) is None


@pytest.mark.parametrize(
    "root",
    [
        PayloadNode(operation=Operation.UPDATE, attributes={"name": "Ada"}),
        PayloadNode(identity=Identity(durable_id="1", temp_id="t")),
    ],
)
def test_inconsistent_root_is_rejected_before_any_write(
    registry: ResourceRegistry, memory_storage: InMemoryStorageAdapter, root: PayloadNode
) -> None:
    with pytest.raises(MalformedRelationshipError):
        _run(registry, memory_storage, "profiles", root)

    assert memory_storage.records("profiles") == []
