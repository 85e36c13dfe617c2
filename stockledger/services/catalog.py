"""Categories and locations: named buckets that products point at."""

from __future__ import annotations

import logging

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError

from stockledger.context import OwnerContext
from stockledger.errors import (
    BackendError,
    NotFoundError,
    ReferentialIntegrityError,
    ValidationError,
)
from stockledger.extensions import db
from stockledger.models import Category, Location, Product


logger = logging.getLogger(__name__)

_KINDS = {
    Category: ("Category", Product.category_id),
    Location: ("Location", Product.location_id),
}


def _list(ctx: OwnerContext, model) -> list:
    try:
        return (
            model.query.filter_by(owner_id=ctx.owner_id)
            .order_by(func.lower(model.name), model.id)
            .all()
        )
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError(f"Could not load {_KINDS[model][0].lower()} list.") from exc


def _get(ctx: OwnerContext, model, identifier):
    kind = _KINDS[model][0]
    key = str(identifier or "").strip()
    if not key:
        raise NotFoundError(kind, identifier)
    try:
        record = model.query.filter_by(id=key, owner_id=ctx.owner_id).first()
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError(f"Could not load the {kind.lower()}.") from exc
    if record is None:
        raise NotFoundError(kind, key)
    return record


def _add(ctx: OwnerContext, model, name):
    kind = _KINDS[model][0]
    clean_name = str(name or "").strip()
    if not clean_name:
        raise ValidationError(f"{kind} name is required.", fields=["name"])
    if len(clean_name) > 120:
        raise ValidationError(f"{kind} name must be 120 characters or fewer.", fields=["name"])

    try:
        duplicate = (
            model.query.filter(
                model.owner_id == ctx.owner_id,
                func.lower(model.name) == clean_name.lower(),
            ).first()
            is not None
        )
        if duplicate:
            raise ValidationError(f'{kind} "{clean_name}" already exists.', fields=["name"])

        record = model(owner_id=ctx.owner_id, name=clean_name)
        db.session.add(record)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to add %s %r", kind.lower(), clean_name)
        raise BackendError(f"Could not save the {kind.lower()}.") from exc

    logger.info("%s added owner=%s id=%s name=%s", kind, ctx.owner_id, record.id, clean_name)
    return record


def _delete(ctx: OwnerContext, model, identifier) -> None:
    kind, product_column = _KINDS[model]
    record = _get(ctx, model, identifier)

    try:
        reference_count = (
            db.session.query(func.count(Product.id))
            .filter(Product.owner_id == ctx.owner_id, product_column == record.id)
            .scalar()
        ) or 0
    except SQLAlchemyError as exc:
        db.session.rollback()
        raise BackendError(f"Could not check products for the {kind.lower()}.") from exc

    if reference_count:
        logger.warning(
            "%s delete blocked owner=%s id=%s references=%s",
            kind,
            ctx.owner_id,
            record.id,
            reference_count,
        )
        raise ReferentialIntegrityError(kind, reference_count)

    try:
        db.session.delete(record)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Failed to delete %s %s", kind.lower(), record.id)
        raise BackendError(f"Could not delete the {kind.lower()}.") from exc

    logger.info("%s deleted owner=%s id=%s", kind, ctx.owner_id, identifier)


def list_categories(ctx: OwnerContext) -> list[Category]:
    return _list(ctx, Category)


def get_category(ctx: OwnerContext, category_id) -> Category:
    return _get(ctx, Category, category_id)


def add_category(ctx: OwnerContext, name) -> Category:
    return _add(ctx, Category, name)


def delete_category(ctx: OwnerContext, category_id) -> None:
    _delete(ctx, Category, category_id)


def list_locations(ctx: OwnerContext) -> list[Location]:
    return _list(ctx, Location)


def get_location(ctx: OwnerContext, location_id) -> Location:
    return _get(ctx, Location, location_id)


def add_location(ctx: OwnerContext, name) -> Location:
    return _add(ctx, Location, name)


def delete_location(ctx: OwnerContext, location_id) -> None:
    _delete(ctx, Location, location_id)
