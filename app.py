"""
Local Library - a library catalog built with Flask and SQLAlchemy.

Features:
- Browse authors, books, genres and book copies (list and detail pages)
- Create and update every entity through validated forms
- Delete records only when nothing else references them
- Catalog home page with record counts
"""


import logging
import os

from flask import Blueprint, Flask, request, render_template, redirect, url_for, flash, abort
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from config import Config, basedir
from data_models import db, Author, Book, Genre, BookInstance, BOOK_INSTANCE_STATUSES
from store import EntityStore, get_store
from workflows import (
    Saved, DuplicateFound, DependentsExist,
    save_author, save_book, save_genre, save_bookinstance, delete_record,
    author_books, book_instances, genre_books,
)


logger = logging.getLogger(__name__)

catalog = Blueprint("catalog", __name__, url_prefix="/catalog")


def iso_date(value) -> str:
    """
    Jinja filter: a date as 'YYYY-MM-DD' for <input type="date">, '' for None.
    """
    return value.isoformat() if value else ""


def get_or_404(model, ident, options=()):
    record = get_store().find_by_id(model, ident, options=options)
    if record is None:
        abort(404, description=f"{model.__name__} not found")
    return record


@catalog.route("/")
def index():
    """
    Catalog home page with record counts.
    """
    store = get_store()
    counts = {
        "book_count": store.count(Book),
        "book_instance_count": store.count(BookInstance),
        "book_instance_available_count": store.count(BookInstance, BookInstance.status == "Available"),
        "author_count": store.count(Author),
        "genre_count": store.count(Genre),
    }
    return render_template("index.html", title="Local Library Home", **counts)


# --- Books ---

def render_book_form(title, book=None, errors=None):
    """
    Render the book form with author and genre selectors.

    `book` is either a stored Book or the values of a rejected draft; its
    author and genres are pre-selected.
    """
    store = get_store()
    authors = store.find(Author, order_by=Author.family_name.asc())
    genres = store.find(Genre, order_by=Genre.name.asc())

    if isinstance(book, Book):
        selected_author = str(book.author_id)
        checked_genres = {str(genre.id) for genre in book.genres}
    elif book:
        selected_author = book.get("author", "")
        checked_genres = set(book.get("genre", []))
    else:
        selected_author = ""
        checked_genres = set()

    return render_template("book_form.html", title=title, authors=authors, genres=genres,
                           book=book, selected_author=selected_author,
                           checked_genres=checked_genres, errors=errors)


@catalog.route("/book/create", methods=["GET", "POST"])
def book_create():
    if request.method == "POST":
        outcome = save_book(get_store(), request.form)
        if isinstance(outcome, Saved):
            return redirect(outcome.record.url)
        return render_book_form("Create Book", outcome.draft.values, outcome.errors)

    return render_book_form("Create Book")


@catalog.route("/book/<int:id>/delete", methods=["GET", "POST"])
def book_delete(id):
    store = get_store()

    if request.method == "POST":
        outcome = delete_record(store, Book, id, request.form.get("bookid", type=int))
        if isinstance(outcome, DependentsExist):
            return render_template("book_delete.html", title="Delete Book",
                                   book=outcome.record, book_instances=outcome.dependents)
        flash("Book was deleted successfully.", "success")
        return redirect(url_for("catalog.book_list"))

    book = store.find_by_id(Book, id)
    if book is None:
        return redirect(url_for("catalog.book_list"))
    return render_template("book_delete.html", title="Delete Book",
                           book=book, book_instances=book_instances(store, id))


@catalog.route("/book/<int:id>/update", methods=["GET", "POST"])
def book_update(id):
    if request.method == "POST":
        outcome = save_book(get_store(), request.form, book_id=id)
        if isinstance(outcome, Saved):
            return redirect(outcome.record.url)
        return render_book_form("Update Book", dict(outcome.draft.values, id=id), outcome.errors)

    book = get_or_404(Book, id, options=[joinedload(Book.author), joinedload(Book.genres)])
    return render_book_form("Update Book", book)


@catalog.route("/book/<int:id>")
def book_detail(id):
    book = get_or_404(Book, id, options=[joinedload(Book.author), joinedload(Book.genres)])
    return render_template("book_detail.html", title=book.title,
                           book=book, book_instances=book_instances(get_store(), id))


@catalog.route("/books")
def book_list():
    books = get_store().find(Book, order_by=Book.title.asc(), options=[joinedload(Book.author)])
    return render_template("book_list.html", title="Book List", book_list=books)


# --- Authors ---

@catalog.route("/author/create", methods=["GET", "POST"])
def author_create():
    if request.method == "POST":
        outcome = save_author(get_store(), request.form)
        if isinstance(outcome, Saved):
            return redirect(outcome.record.url)
        return render_template("author_form.html", title="Create Author",
                               author=outcome.draft.values, errors=outcome.errors)

    return render_template("author_form.html", title="Create Author")


@catalog.route("/author/<int:id>/delete", methods=["GET", "POST"])
def author_delete(id):
    store = get_store()

    if request.method == "POST":
        outcome = delete_record(store, Author, id, request.form.get("authorid", type=int))
        if isinstance(outcome, DependentsExist):
            return render_template("author_delete.html", title="Delete Author",
                                   author=outcome.record, author_books=outcome.dependents)
        flash("Author was deleted successfully.", "success")
        return redirect(url_for("catalog.author_list"))

    author = store.find_by_id(Author, id)
    if author is None:
        return redirect(url_for("catalog.author_list"))
    return render_template("author_delete.html", title="Delete Author",
                           author=author, author_books=author_books(store, id))


@catalog.route("/author/<int:id>/update", methods=["GET", "POST"])
def author_update(id):
    if request.method == "POST":
        outcome = save_author(get_store(), request.form, author_id=id)
        if isinstance(outcome, Saved):
            return redirect(outcome.record.url)
        return render_template("author_form.html", title="Update Author",
                               author=dict(outcome.draft.values, id=id), errors=outcome.errors)

    author = get_or_404(Author, id)
    return render_template("author_form.html", title="Update Author", author=author)


@catalog.route("/author/<int:id>")
def author_detail(id):
    """
    Show an author detail page (including their books).
    """
    author = get_or_404(Author, id)
    return render_template("author_detail.html", title="Author Detail",
                           author=author, author_books=author_books(get_store(), id))


@catalog.route("/authors")
def author_list():
    authors = get_store().find(Author, order_by=Author.family_name.asc())
    return render_template("author_list.html", title="Author List", author_list=authors)


# --- Genres ---

@catalog.route("/genre/create", methods=["GET", "POST"])
def genre_create():
    if request.method == "POST":
        outcome = save_genre(get_store(), request.form)
        if isinstance(outcome, Saved):
            return redirect(outcome.record.url)
        if isinstance(outcome, DuplicateFound):
            return redirect(outcome.existing.url)
        return render_template("genre_form.html", title="Create Genre",
                               genre=outcome.draft.values, errors=outcome.errors)

    return render_template("genre_form.html", title="Create Genre")


@catalog.route("/genre/<int:id>/delete", methods=["GET", "POST"])
def genre_delete(id):
    store = get_store()

    if request.method == "POST":
        outcome = delete_record(store, Genre, id, request.form.get("genreid", type=int))
        if isinstance(outcome, DependentsExist):
            return render_template("genre_delete.html", title="Delete Genre",
                                   genre=outcome.record, genre_books=outcome.dependents)
        flash("Genre was deleted successfully.", "success")
        return redirect(url_for("catalog.genre_list"))

    genre = store.find_by_id(Genre, id)
    if genre is None:
        return redirect(url_for("catalog.genre_list"))
    return render_template("genre_delete.html", title="Delete Genre",
                           genre=genre, genre_books=genre_books(store, id))


@catalog.route("/genre/<int:id>/update", methods=["GET", "POST"])
def genre_update(id):
    if request.method == "POST":
        outcome = save_genre(get_store(), request.form, genre_id=id)
        if isinstance(outcome, Saved):
            return redirect(outcome.record.url)
        if isinstance(outcome, DuplicateFound):
            return redirect(outcome.existing.url)
        return render_template("genre_form.html", title="Update Genre",
                               genre=dict(outcome.draft.values, id=id), errors=outcome.errors)

    genre = get_or_404(Genre, id)
    return render_template("genre_form.html", title="Update Genre", genre=genre)


@catalog.route("/genre/<int:id>")
def genre_detail(id):
    genre = get_or_404(Genre, id)
    return render_template("genre_detail.html", title="Genre Detail",
                           genre=genre, genre_books=genre_books(get_store(), id))


@catalog.route("/genres")
def genre_list():
    genres = get_store().find(Genre, order_by=Genre.name.asc())
    return render_template("genre_list.html", title="Genre List", genre_list=genres)


# --- Book instances ---

def render_bookinstance_form(title, bookinstance=None, errors=None):
    books = get_store().find(Book, order_by=Book.title.asc())

    if isinstance(bookinstance, BookInstance):
        selected_book = str(bookinstance.book_id)
    elif bookinstance:
        selected_book = bookinstance.get("book", "")
    else:
        selected_book = ""

    return render_template("bookinstance_form.html", title=title, book_list=books,
                           bookinstance=bookinstance, selected_book=selected_book,
                           statuses=BOOK_INSTANCE_STATUSES, errors=errors)


@catalog.route("/bookinstance/create", methods=["GET", "POST"])
def bookinstance_create():
    if request.method == "POST":
        outcome = save_bookinstance(get_store(), request.form)
        if isinstance(outcome, Saved):
            return redirect(outcome.record.url)
        return render_bookinstance_form("Create BookInstance", outcome.draft.values, outcome.errors)

    return render_bookinstance_form("Create BookInstance")


@catalog.route("/bookinstance/<int:id>/delete", methods=["GET", "POST"])
def bookinstance_delete(id):
    store = get_store()

    if request.method == "POST":
        delete_record(store, BookInstance, id, request.form.get("bookinstanceid", type=int))
        flash("Book copy was deleted successfully.", "success")
        return redirect(url_for("catalog.bookinstance_list"))

    bookinstance = store.find_by_id(BookInstance, id, options=[joinedload(BookInstance.book)])
    if bookinstance is None:
        return redirect(url_for("catalog.bookinstance_list"))
    return render_template("bookinstance_delete.html", title="Delete BookInstance",
                           bookinstance=bookinstance)


@catalog.route("/bookinstance/<int:id>/update", methods=["GET", "POST"])
def bookinstance_update(id):
    if request.method == "POST":
        outcome = save_bookinstance(get_store(), request.form, bookinstance_id=id)
        if isinstance(outcome, Saved):
            return redirect(outcome.record.url)
        return render_bookinstance_form("Update BookInstance",
                                        dict(outcome.draft.values, id=id), outcome.errors)

    bookinstance = get_or_404(BookInstance, id)
    return render_bookinstance_form("Update BookInstance", bookinstance)


@catalog.route("/bookinstance/<int:id>")
def bookinstance_detail(id):
    bookinstance = get_or_404(BookInstance, id, options=[joinedload(BookInstance.book)])
    return render_template("bookinstance_detail.html", title="Book Copy",
                           bookinstance=bookinstance)


@catalog.route("/bookinstances")
def bookinstance_list():
    bookinstances = get_store().find(BookInstance, options=[joinedload(BookInstance.book)])
    return render_template("bookinstance_list.html", title="Book Instance List",
                           bookinstance_list=bookinstances)


# --- Application ---

def configure_logging(app):
    level = app.config.get("LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(levelname)-7s :: %(message)s',
        datefmt='%d-%b-%Y %H:%M:%S',
    )
    app.logger.setLevel(level)


def register_error_handlers(app):

    @app.errorhandler(400)
    def bad_request(error):
        return render_template("error.html", title="Bad Request",
                               message=error.description, status=400), 400

    @app.errorhandler(404)
    def not_found(error):
        return render_template("error.html", title="Not Found",
                               message=error.description, status=404), 404

    @app.errorhandler(SQLAlchemyError)
    def store_failure(error):
        db.session.rollback()
        logger.exception("Database error while handling %s %s", request.method, request.path)
        return render_template("error.html", title="Error",
                               message="Something went wrong while talking to the database.",
                               status=500), 500


def create_app(config_object=Config):
    """
    Application factory: configures the app, the database and the catalog store.
    """
    app = Flask(__name__)
    app.config.from_object(config_object)
    configure_logging(app)

    db.init_app(app)
    app.extensions["catalog_store"] = EntityStore(db)

    app.add_template_filter(iso_date)
    app.register_blueprint(catalog)
    register_error_handlers(app)

    @app.route("/")
    def home():
        return redirect(url_for("catalog.index"))

    logger.debug("Using database %s", app.config["SQLALCHEMY_DATABASE_URI"])
    return app


if __name__ == "__main__":
    app = create_app()
    os.makedirs(os.path.join(basedir, "data"), exist_ok=True)

    with app.app_context():
        db.create_all()

    try:
        app.run(debug=True)
    finally:
        with app.app_context():
            app.extensions["catalog_store"].close()
