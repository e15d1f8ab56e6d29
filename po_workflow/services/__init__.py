"""
po_workflow/services

Workflow operations, independent of transport.

Every operation:
- takes the acting User explicitly as its first argument,
- calls security.authorize() before reading or mutating anything,
- raises a typed po_workflow.errors exception before any mutation when a rule fails,
- ends with exactly one commit (mutation + audit entries in one transaction).
"""

from __future__ import annotations

from typing import Any, Iterable, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import MAX_INT

M = TypeVar("M")


def commit() -> None:
    """Commit the unit of work; roll back and re-raise on any database error."""
    try:
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise


def find(model: Type[M], entity_id: int) -> M | None:
    # Ids past the Integer column range cannot exist.
    if isinstance(entity_id, int) and entity_id > MAX_INT:
        return None
    return db.session.get(model, entity_id)


def get_or_raise(model: Type[M], entity_id: int) -> M:
    instance = find(model, entity_id)
    if instance is None:
        raise NotFoundError(model.__name__, entity_id)
    return instance


def check_fields(fields: dict[str, Any], allowed: Iterable[str]) -> None:
    """Reject update payloads carrying fields the operation does not accept."""
    unknown = sorted(set(fields) - set(allowed))
    if unknown:
        raise ValidationError({name: ["Unknown field."] for name in unknown})
