"""
Create, update and delete steps for catalog entities.

Each step validates the submitted form, talks to the store and returns an
outcome object. Routes in app.py decide how to render or redirect for each
outcome. A missing record aborts with 404; database errors propagate.
"""

import logging
from dataclasses import dataclass, field

from flask import abort

from data_models import Author, Book, Genre, BookInstance
from validation import Draft, validate_author, validate_book, validate_genre, validate_bookinstance

logger = logging.getLogger(__name__)


@dataclass
class Saved:
    record: object


@dataclass
class ValidationFailed:
    draft: Draft
    errors: list = field(default_factory=list)


@dataclass
class DuplicateFound:
    existing: object


@dataclass
class DependentsExist:
    record: object
    dependents: list


@dataclass
class Deleted:
    record_id: int
    existed: bool


def to_id(value, label):
    """
    Turn a submitted reference id into an int, aborting with 400 if it is malformed.
    """
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description=f"Invalid {label} id: {value!r}")


# --- Dependent records ---

def author_books(store, author_id):
    return store.find(Book, Book.author_id == author_id, order_by=Book.title.asc())


def book_instances(store, book_id):
    return store.find(BookInstance, BookInstance.book_id == book_id)


def genre_books(store, genre_id):
    return store.find(Book, Book.genres.any(Genre.id == genre_id), order_by=Book.title.asc())


DEPENDENTS = {
    Author: author_books,
    Book: book_instances,
    Genre: genre_books,
}


# --- Create / update ---

def _save(store, model, values, record_id=None):
    if record_id is None:
        record = store.insert(model(**values))
        logger.info("Created %s %s", model.__name__, record.id)
        return Saved(record)

    record = store.update_by_id(model, record_id, values)
    if record is None:
        abort(404, description=f"{model.__name__} not found")
    logger.info("Updated %s %s", model.__name__, record.id)
    return Saved(record)


def _rejected(model, draft):
    logger.debug("Rejected %s form: %s", model.__name__, [e.msg for e in draft.errors])
    return ValidationFailed(draft, draft.errors)


def save_author(store, form, author_id=None):
    draft = validate_author(form)
    if not draft.is_valid:
        return _rejected(Author, draft)
    return _save(store, Author, dict(draft.values), author_id)


def save_book(store, form, book_id=None):
    """
    Create a book, or replace the one at book_id. Genres missing from the
    form leave the book with no genres.
    """
    draft = validate_book(form)
    if not draft.is_valid:
        return _rejected(Book, draft)

    genre_ids = [to_id(g, "genre") for g in draft["genre"]]
    values = {
        "title": draft["title"],
        "author_id": to_id(draft["author"], "author"),
        "summary": draft["summary"],
        "isbn": draft["isbn"],
        "genres": store.find(Genre, Genre.id.in_(genre_ids)) if genre_ids else [],
    }
    return _save(store, Book, values, book_id)


def save_genre(store, form, genre_id=None):
    """
    Create or rename a genre, unless another genre already has the name.

    The name check and the write are separate statements, so two concurrent
    submissions can still both succeed.
    """
    draft = validate_genre(form)
    if not draft.is_valid:
        return _rejected(Genre, draft)

    existing = store.find_one(Genre, Genre.name == draft["name"])
    if existing is not None:
        logger.info("Genre '%s' already exists as %s", draft["name"], existing.id)
        return DuplicateFound(existing)
    return _save(store, Genre, dict(draft.values), genre_id)


def save_bookinstance(store, form, bookinstance_id=None):
    draft = validate_bookinstance(form)
    if not draft.is_valid:
        return _rejected(BookInstance, draft)

    values = {
        "book_id": to_id(draft["book"], "book"),
        "imprint": draft["imprint"],
        "status": draft["status"],
        "due_back": draft["due_back"],
    }
    return _save(store, BookInstance, values, bookinstance_id)


# --- Delete ---

def delete_record(store, model, record_id, form_id):
    """
    Delete a record unless something still references it.

    Dependents are looked up by the route id, but the record removed is the
    one named in the submitted form. A form without an id falls back to the
    route id.
    """
    record = store.find_by_id(model, record_id)
    find_dependents = DEPENDENTS.get(model)
    dependents = find_dependents(store, record_id) if find_dependents else []
    if dependents:
        logger.info("Not deleting %s %s: %d dependent record(s)",
                    model.__name__, record_id, len(dependents))
        return DependentsExist(record, dependents)

    if form_id is None:
        form_id = record_id
    elif form_id != record_id:
        logger.warning("Delete of %s %s submitted with form id %s",
                       model.__name__, record_id, form_id)

    existed = store.delete_by_id(model, form_id)
    if existed:
        logger.info("Deleted %s %s", model.__name__, form_id)
    return Deleted(form_id, existed)
