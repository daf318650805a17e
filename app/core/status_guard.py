# app/core/status_guard.py
from __future__ import annotations

import uuid
from enum import Enum
from typing import Type, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.errors import InvalidState, NotFound

T = TypeVar("T")


def lock_for_update(db: Session, model: Type[T], row_id: uuid.UUID, not_found: str = "Not found.") -> T:
    """
    SELECT ... FOR UPDATE on one row by id. Concurrent writers of the same
    row wait until this transaction ends (no-op on SQLite).
    """
    row = db.execute(
        select(model).where(model.id == row_id).with_for_update()
    ).scalar_one_or_none()
    if row is None:
        raise NotFound(not_found)
    return row


def compare_and_set_status(
    db: Session,
    model: Type[T],
    row_id: uuid.UUID,
    expected: Enum,
    error: Type[InvalidState] = InvalidState,
    message: str = "Status changed concurrently; nothing was applied.",
    **values,
) -> None:
    """
    UPDATE ... WHERE id = :id AND status = :expected.

    The status read earlier in the request is only trusted if it is still
    the stored one; zero rows updated means another transaction moved the
    row first and `error` is raised. Does not commit.
    """
    res = db.execute(
        update(model)
        .where(model.id == row_id, model.status == expected.value)
        .values(**values)
    )
    if res.rowcount != 1:
        raise error(message)
