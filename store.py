"""
Entity store: the one place catalog code reads and writes the database.

The store is created by the application factory and registered on the app,
so handlers receive it explicitly instead of reaching for the session.
"""

import logging

from flask import current_app
from sqlalchemy import inspect as sa_inspect

logger = logging.getLogger(__name__)


class EntityStore:

    def __init__(self, db):
        self.db = db

    @property
    def session(self):
        return self.db.session

    def find_by_id(self, model, ident, options=()):
        """
        Return the record with this primary key, or None.
        """
        if ident is None:
            return None
        return self.session.get(model, ident, options=list(options))

    def find(self, model, *criteria, order_by=None, options=()):
        """
        Return all records matching the criteria.

        Args:
            order_by: column (or list of columns) to sort on; store order if None.
            options: loader options, e.g. joinedload(Book.author) to populate references.
        """
        query = model.query.filter(*criteria)
        if options:
            query = query.options(*options)
        if order_by is not None:
            if not isinstance(order_by, (list, tuple)):
                order_by = [order_by]
            query = query.order_by(*order_by)
        else:
            query = query.order_by(model.id.asc())
        return query.all()

    def find_one(self, model, *criteria):
        return model.query.filter(*criteria).order_by(model.id.asc()).first()

    def count(self, model, *criteria) -> int:
        return model.query.filter(*criteria).count()

    def insert(self, record):
        self.session.add(record)
        self.session.commit()
        logger.debug("Inserted %r", record)
        return record

    def update_by_id(self, model, ident, values: dict):
        """
        Replace the record's contents with `values`.

        Every column except the primary key is overwritten; columns missing
        from `values` are reset to None. Relationships are only replaced when
        present in `values`.

        Returns:
            The updated record, or None if no record has this id.
        """
        record = self.find_by_id(model, ident)
        if record is None:
            return None

        mapper = sa_inspect(model)
        primary_keys = {column.key for column in mapper.primary_key}
        for attr in mapper.column_attrs:
            if attr.key in primary_keys:
                continue
            setattr(record, attr.key, values.get(attr.key))
        for rel in mapper.relationships:
            if rel.key in values:
                setattr(record, rel.key, values[rel.key])

        self.session.commit()
        logger.debug("Replaced %r", record)
        return record

    def delete_by_id(self, model, ident) -> bool:
        """
        Delete the record with this id. Returns False if there was nothing to delete.
        """
        record = self.find_by_id(model, ident)
        if record is None:
            return False
        self.session.delete(record)
        self.session.commit()
        logger.debug("Deleted %s id=%s", model.__name__, ident)
        return True

    def close(self):
        """
        Release the session and the engine's pooled connections. Needs an app context.
        """
        self.session.remove()
        self.db.engine.dispose()


def get_store() -> EntityStore:
    return current_app.extensions["catalog_store"]
