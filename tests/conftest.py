"""
Pytest configuration and shared fixtures for the catalog tests.
"""

from datetime import date

import pytest
from flask import template_rendered

from app import create_app
from config import TestConfig
from data_models import db, Author, Book, Genre, BookInstance


@pytest.fixture
def app():
    """A fresh app bound to an in-memory database, with an app context pushed."""
    app = create_app(TestConfig)
    with app.app_context():
        db.create_all()
        yield app
        db.session.rollback()
        db.drop_all()
        app.extensions["catalog_store"].close()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def store(app):
    return app.extensions["catalog_store"]


@pytest.fixture
def captured_templates(app):
    """Record (template name, context) for every template rendered during the test."""
    recorded = []

    def record(sender, template, context, **extra):
        recorded.append((template.name, context))

    template_rendered.connect(record, app)
    try:
        yield recorded
    finally:
        template_rendered.disconnect(record, app)


@pytest.fixture
def make_author(store):
    def _make(first_name="Patrick", family_name="Rothfuss", date_of_birth=date(1973, 6, 6),
              date_of_death=None):
        return store.insert(Author(first_name=first_name, family_name=family_name,
                                   date_of_birth=date_of_birth, date_of_death=date_of_death))
    return _make


@pytest.fixture
def make_genre(store):
    def _make(name="Fantasy"):
        return store.insert(Genre(name=name))
    return _make


@pytest.fixture
def make_book(store, make_author):
    def _make(title="The Name of the Wind", author=None, genres=(),
              summary="A young man grows to be a legend.", isbn="9780756404741"):
        author = author or make_author()
        return store.insert(Book(title=title, author_id=author.id, summary=summary,
                                 isbn=isbn, genres=list(genres)))
    return _make


@pytest.fixture
def make_bookinstance(store, make_book):
    def _make(book=None, imprint="DAW Books, 2007", status="Available", due_back=None):
        book = book or make_book()
        return store.insert(BookInstance(book_id=book.id, imprint=imprint,
                                         status=status, due_back=due_back))
    return _make
