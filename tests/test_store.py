import threading

import pytest

import store
from data_models import Author, Book, Genre


def test_fetch_parallel_keeps_order(app):
    with app.app_context():
        assert store.fetch_parallel(lambda: "a", lambda: "b", lambda: "c") == ["a", "b", "c"]


def test_fetch_parallel_runs_off_the_request_thread(app):
    with app.app_context():
        (name,) = store.fetch_parallel(lambda: threading.current_thread().name)
    assert name.startswith("catalog-read")


def test_fetch_parallel_propagates_failures(app):
    def failing_read():
        raise RuntimeError("store unavailable")

    with app.app_context():
        with pytest.raises(RuntimeError, match="store unavailable"):
            store.fetch_parallel(lambda: 1, failing_read)


def test_parallel_reads_see_committed_rows(app, make_author, make_book):
    author_id = make_author()
    make_book(title="Persuasion", author_id=author_id)
    make_book(title="Emma", author_id=author_id)

    with app.app_context():
        author, books = store.fetch_parallel(
            lambda: store.find_author(author_id),
            lambda: store.books_by_author(author_id),
        )

    assert author.name == "Austen, Jane"
    assert [book.title for book in books] == ["Emma", "Persuasion"]
    assert books[0].summary == "A novel."


def test_book_choices_are_sorted_titles(app, make_book):
    make_book(title="Sense and Sensibility")
    make_book(title="Mansfield Park")

    with app.app_context():
        assert [row.title for row in store.book_choices()] == ["Mansfield Park", "Sense and Sensibility"]


def test_conditional_author_delete(app, make_author, make_book, count):
    busy = make_author(first_name="Jane", family_name="Austen")
    idle = make_author(first_name="Mary", family_name="Shelley")
    make_book(author_id=busy)

    with app.app_context():
        assert store.delete_author_if_unreferenced(busy) is False
        assert store.delete_author_if_unreferenced(idle) is True
        assert store.delete_author_if_unreferenced(idle) is False

    assert count(Author) == 1


def test_conditional_book_delete_drops_genre_links(app, make_book, make_genre, make_instance, count):
    genre_id = make_genre("Romance")
    kept = make_book(title="Emma", genre_ids=[genre_id])
    dropped = make_book(title="Persuasion", genre_ids=[genre_id])
    make_instance(kept)

    with app.app_context():
        assert store.delete_book_if_unreferenced(kept) is False
        assert store.delete_book_if_unreferenced(dropped) is True
        assert [row.title for row in store.books_in_genre(genre_id)] == ["Emma"]

    assert count(Book) == 1


def test_conditional_genre_delete(app, make_book, make_genre, count):
    used = make_genre("Romance")
    unused = make_genre("Horror")
    make_book(genre_ids=[used])

    with app.app_context():
        assert store.delete_genre_if_unreferenced(used) is False
        assert store.delete_genre_if_unreferenced(unused) is True

    assert count(Genre) == 1


def test_catalog_counts(app, make_author, make_book, make_instance):
    make_author()
    book_id = make_book()
    make_instance(book_id, status="Available")
    make_instance(book_id, status="Loaned")

    with app.app_context():
        counts = store.catalog_counts()

    assert counts == {
        "book_count": 1,
        "book_instance_count": 2,
        "book_instance_available_count": 1,
        "author_count": 1,
        "genre_count": 0,
    }
