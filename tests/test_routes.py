from sqlalchemy.exc import OperationalError

from data_models import Author, Book, Genre, BookInstance


def test_root_redirects_to_catalog(client):
    response = client.get("/")
    assert response.status_code == 302
    assert response.headers["Location"] == "/catalog/"


def test_index_shows_counts(client, captured_templates, make_bookinstance, make_genre):
    make_bookinstance(status="Available")
    make_bookinstance(status="Loaned")
    make_genre()

    response = client.get("/catalog/")
    assert response.status_code == 200
    name, context = captured_templates[0]
    assert name == "index.html"
    assert context["title"] == "Local Library Home"
    assert context["book_count"] == 2
    assert context["book_instance_count"] == 2
    assert context["book_instance_available_count"] == 1
    assert context["author_count"] == 2
    assert context["genre_count"] == 1


def test_author_list_is_sorted_by_family_name(client, captured_templates, make_author):
    make_author("Terry", "Pratchett")
    make_author("Iain", "Banks")

    client.get("/catalog/authors")
    _, context = captured_templates[0]
    assert [a.family_name for a in context["author_list"]] == ["Banks", "Pratchett"]


def test_book_list_is_sorted_by_title(client, captured_templates, make_book):
    make_book(title="Wizard")
    make_book(title="Apprentice")

    response = client.get("/catalog/books")
    _, context = captured_templates[0]
    assert [b.title for b in context["book_list"]] == ["Apprentice", "Wizard"]
    assert b"Rothfuss, Patrick" in response.data


def test_detail_of_missing_record_is_404(client):
    response = client.get("/catalog/author/99")
    assert response.status_code == 404
    assert b"Author not found" in response.data
    assert client.get("/catalog/book/99").status_code == 404
    assert client.get("/catalog/genre/99").status_code == 404
    assert client.get("/catalog/bookinstance/99").status_code == 404


def test_update_form_of_missing_record_is_404(client):
    response = client.get("/catalog/genre/99/update")
    assert response.status_code == 404
    assert b"Genre not found" in response.data


def test_book_detail_lists_copies(client, captured_templates, make_bookinstance):
    copy = make_bookinstance(imprint="Gollancz, 2011")

    response = client.get(f"/catalog/book/{copy.book_id}")
    assert response.status_code == 200
    _, context = captured_templates[0]
    assert [c.id for c in context["book_instances"]] == [copy.id]
    assert b"Gollancz, 2011" in response.data


def test_create_author_redirects_to_detail(client, store):
    response = client.post("/catalog/author/create", data={
        "first_name": "Ursula", "family_name": "LeGuin", "date_of_birth": "1929-10-21",
    })
    assert response.status_code == 302
    author = store.find_one(Author, Author.family_name == "LeGuin")
    assert response.headers["Location"] == author.url


def test_create_author_with_errors_rerenders_form(client, store, captured_templates):
    response = client.post("/catalog/author/create", data={"first_name": "", "family_name": "Le Guin"})
    assert response.status_code == 200
    assert b"First name must be specified." in response.data
    name, context = captured_templates[0]
    assert name == "author_form.html"
    assert context["author"]["family_name"] == "Le Guin"
    assert store.count(Author) == 0


def test_update_author_form_is_prefilled(client, make_author):
    author = make_author()
    response = client.get(f"/catalog/author/{author.id}/update")
    assert response.status_code == 200
    assert b'value="Rothfuss"' in response.data
    assert b'value="1973-06-06"' in response.data


def test_genre_created_twice_redirects_to_first(client, store):
    first = client.post("/catalog/genre/create", data={"name": "Fantasy"})
    second = client.post("/catalog/genre/create", data={"name": "Fantasy"})

    genres = store.find(Genre, Genre.name == "Fantasy")
    assert len(genres) == 1
    assert first.headers["Location"] == genres[0].url
    assert second.headers["Location"] == genres[0].url


def test_genre_name_too_short(client, store):
    response = client.post("/catalog/genre/create", data={"name": "SF"})
    assert response.status_code == 200
    assert b"genre name must contain at least 3 characters" in response.data
    assert store.count(Genre) == 0


def test_book_form_lists_authors_and_genres(client, captured_templates, make_author, make_genre):
    make_author("Iain", "Banks")
    make_genre("Science Fiction")

    response = client.get("/catalog/book/create")
    assert response.status_code == 200
    _, context = captured_templates[0]
    assert [a.family_name for a in context["authors"]] == ["Banks"]
    assert [g.name for g in context["genres"]] == ["Science Fiction"]
    assert context["checked_genres"] == set()


def test_book_update_form_checks_current_genres(client, captured_templates, make_book, make_genre):
    g1, g2 = make_genre("Fantasy"), make_genre("Adventure")
    make_genre("Poetry")
    book = make_book(genres=[g1, g2])

    response = client.get(f"/catalog/book/{book.id}/update")
    assert response.status_code == 200
    _, context = captured_templates[0]
    assert context["checked_genres"] == {str(g1.id), str(g2.id)}
    assert context["selected_author"] == str(book.author_id)
    assert response.data.count(b" checked>") == 2


def test_invalid_book_rerenders_with_checked_genres(client, store, captured_templates, make_genre):
    genre = make_genre()
    response = client.post("/catalog/book/create", data={"title": "", "genre": [str(genre.id)]})
    assert response.status_code == 200
    assert b"Title must not be empty." in response.data
    _, context = captured_templates[0]
    assert context["checked_genres"] == {str(genre.id)}
    assert store.count(Book) == 0


def test_book_update_replaces_genres(client, store, make_book, make_genre):
    book = make_book(genres=[make_genre()])
    response = client.post(f"/catalog/book/{book.id}/update", data={
        "title": "New Title", "author": str(book.author_id), "summary": "S", "isbn": "123",
    })
    assert response.status_code == 302
    assert response.headers["Location"] == f"/catalog/book/{book.id}"
    stored = store.find_by_id(Book, book.id)
    assert stored.title == "New Title"
    assert stored.genres == []


def test_delete_form_of_missing_record_redirects_to_list(client):
    response = client.get("/catalog/author/99/delete")
    assert response.status_code == 302
    assert response.headers["Location"] == "/catalog/authors"


def test_delete_form_shows_dependents(client, captured_templates, make_book):
    book = make_book()
    response = client.get(f"/catalog/author/{book.author_id}/delete")
    assert response.status_code == 200
    _, context = captured_templates[0]
    assert [b.id for b in context["author_books"]] == [book.id]
    assert b"Delete the following books" in response.data


def test_delete_with_dependents_is_refused(client, store, make_bookinstance):
    copy = make_bookinstance()
    response = client.post(f"/catalog/book/{copy.book_id}/delete", data={"bookid": copy.book_id})
    assert response.status_code == 200
    assert b"Delete the following copies" in response.data
    assert store.find_by_id(Book, copy.book_id) is not None
    assert store.find_by_id(BookInstance, copy.id) is not None


def test_delete_without_dependents_redirects_to_list(client, store, make_genre):
    genre_id = make_genre().id
    response = client.post(f"/catalog/genre/{genre_id}/delete", data={"genreid": genre_id})
    assert response.status_code == 302
    assert response.headers["Location"] == "/catalog/genres"
    assert store.find_by_id(Genre, genre_id) is None


def test_delete_bookinstance(client, store, make_bookinstance):
    copy_id = make_bookinstance().id
    assert client.get(f"/catalog/bookinstance/{copy_id}/delete").status_code == 200

    response = client.post(f"/catalog/bookinstance/{copy_id}/delete",
                           data={"bookinstanceid": copy_id}, follow_redirects=True)
    assert response.status_code == 200
    assert b"Book copy was deleted successfully." in response.data
    assert store.find_by_id(BookInstance, copy_id) is None


def test_create_bookinstance(client, store, make_book):
    book = make_book()
    response = client.post("/catalog/bookinstance/create", data={
        "book": str(book.id), "imprint": "DAW", "status": "Reserved", "due_back": "2030-05-01",
    })
    assert response.status_code == 302
    copy = store.find_one(BookInstance, BookInstance.book_id == book.id)
    assert response.headers["Location"] == copy.url
    assert copy.status == "Reserved"


def test_bookinstance_list_keeps_store_order(client, captured_templates, make_book, make_bookinstance):
    book = make_book()
    first = make_bookinstance(book=book, imprint="Second printing")
    second = make_bookinstance(book=book, imprint="First printing")

    client.get("/catalog/bookinstances")
    _, context = captured_templates[0]
    assert [c.id for c in context["bookinstance_list"]] == [first.id, second.id]


def test_malformed_reference_is_bad_request(client):
    response = client.post("/catalog/book/create", data={
        "title": "T", "author": "abc", "summary": "S", "isbn": "1",
    })
    assert response.status_code == 400


def test_store_failure_renders_error_page(client, store, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("database is locked"))

    monkeypatch.setattr(store, "find", broken)
    response = client.get("/catalog/genres")
    assert response.status_code == 500
    assert b"Something went wrong" in response.data
