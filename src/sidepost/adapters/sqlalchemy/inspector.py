"""Foreign-key inference from SQLAlchemy mapper relationships."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import MANYTOONE, ONETOMANY, configure_mappers
from sqlalchemy.orm.exc import UnmappedColumnError

from sidepost.domain.model import AssociationKind

if TYPE_CHECKING:
    from sqlalchemy.orm import Mapper

    from sidepost.domain.model import AssociationDescriptor, ResourceDescriptor

log = logging.getLogger(__name__)


class SqlAlchemySchemaInspector:
    """``SchemaInspector`` reading relationship properties of mapped classes.

    The association name must match a relationship on the resource's class.
    Only single-column joins are inferred; anything else returns ``None``.
    """

    def default_foreign_key(
        self, resource: ResourceDescriptor, association: AssociationDescriptor
    ) -> str | None:
        configure_mappers()
        mapper = cast("Mapper[Any] | None", sa_inspect(resource.model, raiseerr=False))
        if mapper is None:
            return None
        prop = mapper.relationships.get(association.name)
        if prop is None or prop.secondary is not None:
            return None
        pairs = list(prop.local_remote_pairs or ())
        if len(pairs) != 1:
            return None
        local, remote = pairs[0]

        match association.kind:
            case AssociationKind.BELONGS_TO if prop.direction is MANYTOONE:
                holder, column = mapper, local
            case AssociationKind.HAS_MANY | AssociationKind.HAS_ONE if prop.direction is ONETOMANY:
                holder, column = prop.mapper, remote
            case _:
                return None

        try:
            key = holder.get_property_by_column(column).key
        except UnmappedColumnError:
            return None
        log.debug("Inferred foreign key %s for %s.%s", key, resource.type, association.name)
        return key
