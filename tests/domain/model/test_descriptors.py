from __future__ import annotations

import pytest

from sidepost.domain.model import (
    AssociationDescriptor,
    AssociationKind,
    Operation,
    ResourceDescriptor,
    embeds_one,
    has_one,
    many_to_many,
    polymorphic_belongs_to,
)


def test_polymorphic_defaults_derive_from_name() -> None:
    association = polymorphic_belongs_to("commentable", groups={"Post": "posts"})

    assert association.foreign_key == "commentable_id"
    assert association.discriminator_attribute == "commentable_type"
    assert association.target_type("Post") == "posts"
    assert association.discriminator_for("posts") == "Post"


def test_polymorphic_group_by_overrides_discriminator() -> None:
    association = polymorphic_belongs_to(
        "subject", groups={"post": "posts"}, group_by="subject_kind", foreign_key="subject_ref"
    )

    assert association.discriminator_attribute == "subject_kind"
    assert association.foreign_key == "subject_ref"


def test_polymorphic_without_groups_is_rejected() -> None:
    with pytest.raises(ValueError, match="target groups"):
        AssociationDescriptor(
            name="commentable", kind=AssociationKind.POLYMORPHIC_BELONGS_TO, target={}
        )


def test_single_target_kinds_reject_groups() -> None:
    with pytest.raises(ValueError, match="single resource type"):
        AssociationDescriptor(
            name="author", kind=AssociationKind.BELONGS_TO, target={"a": "authors"}
        )


@pytest.mark.parametrize(
    ("name", "expected"), [("tags", "tag_ids"), ("categories", "category_ids")]
)
def test_many_to_many_id_array_defaults_to_singular_name(name: str, expected: str) -> None:
    association = many_to_many(name, resource=name)

    assert association.foreign_keys_attribute == expected
    assert association.foreign_key is None


def test_needs_foreign_key_only_for_key_holding_kinds() -> None:
    assert has_one("avatar", resource="images").needs_foreign_key
    assert not embeds_one("address", resource="addresses").needs_foreign_key
    assert not many_to_many("tags", resource="tags").needs_foreign_key


def test_resource_validate_without_validator_reports_nothing() -> None:
    resource = ResourceDescriptor.build("things", object)

    assert resource.validate({"anything": None}) == {}


def test_kind_classification() -> None:
    assert AssociationKind.POLYMORPHIC_BELONGS_TO.resolves_before_parent
    assert not AssociationKind.HAS_ONE.resolves_before_parent
    assert AssociationKind.EMBEDS_MANY.is_collection
    assert AssociationKind.EMBEDS_ONE.is_embedded
    assert Operation.DISASSOCIATE.severs_link
    assert not Operation.UPDATE.severs_link
