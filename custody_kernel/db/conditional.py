"""
Compare-and-swap UPDATE primitive.

Every workflow status write and item custody write goes through
``conditional_update``: the row is updated only while it still matches the
expected prior column values, and the affected-row count tells the caller
whether it won.  This is the sole concurrency guard on shared entities; no
row locks are taken.

The UPDATE is issued without RETURNING so the row count is the driver's
plain affected-row count on every backend.  Loaded instances of the updated
rows have the written columns expired and re-read on next access.
"""

from collections.abc import Collection, Iterable, Mapping
from typing import Any
from uuid import UUID

from sqlalchemy import update
from sqlalchemy.orm import Session

from custody_kernel.logging_config import get_logger

logger = get_logger("db.conditional")


def _predicate(column, expected: Any):
    if expected is None:
        return column.is_(None)
    if isinstance(expected, Collection) and not isinstance(expected, (str, bytes)):
        return column.in_(list(expected))
    return column == expected


def _ids(entity_id: UUID | Collection[UUID]) -> set[UUID]:
    if isinstance(entity_id, Collection) and not isinstance(entity_id, (str, bytes)):
        return set(entity_id)
    return {entity_id}


def expire_loaded(
    session: Session,
    model: type,
    entity_ids: Iterable[UUID],
    columns: Iterable[str],
) -> None:
    """Expire ``columns`` on already-loaded ``model`` rows with these ids."""
    wanted = set(entity_ids)
    names = list(columns)
    for instance in list(session.identity_map.values()):
        if isinstance(instance, model) and instance.id in wanted:
            session.expire(instance, names)


def conditional_update(
    session: Session,
    model: type,
    entity_id: UUID | Collection[UUID],
    expected: Mapping[str, Any],
    values: Mapping[str, Any],
) -> int:
    """
    UPDATE ``model`` SET ``values`` WHERE id = ``entity_id`` AND every
    ``expected`` column matches.  Returns the number of rows updated.

    ``entity_id`` may be a collection to update several rows under the same
    predicate.  An expected value that is a collection matches with IN; a
    None expected value matches IS NULL.
    """
    criteria = [_predicate(model.id, entity_id)]
    criteria.extend(_predicate(getattr(model, name), value) for name, value in expected.items())
    stmt = (
        update(model)
        .where(*criteria)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    rowcount = session.execute(stmt).rowcount
    if rowcount:
        expire_loaded(session, model, _ids(entity_id), values.keys())
    logger.debug(
        "conditional_update",
        extra={
            "table": model.__tablename__,
            "expected": {k: str(v) for k, v in expected.items()},
            "rowcount": rowcount,
        },
    )
    return rowcount
