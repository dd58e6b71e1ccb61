from datetime import date

import pytest

from app import create_app
from data_models import db, Author, Book, BookInstance, Genre


@pytest.fixture
def app(tmp_path):
    # Each test gets its own SQLite file so parallel reads see committed rows.
    db_file = tmp_path / "library.sqlite"
    app = create_app({
        "TESTING": True,
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_file}",
        "PARALLEL_READ_WORKERS": 2,
    })
    yield app
    with app.app_context():
        db.session.remove()
        db.engine.dispose()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_author(app):
    def make(first_name="Jane", family_name="Austen", date_of_birth=None, date_of_death=None):
        with app.app_context():
            author = Author(first_name=first_name, family_name=family_name,
                            date_of_birth=date_of_birth, date_of_death=date_of_death)
            db.session.add(author)
            db.session.commit()
            return author.id
    return make


@pytest.fixture
def make_genre(app):
    def make(name="Fiction"):
        with app.app_context():
            genre = Genre(name=name)
            db.session.add(genre)
            db.session.commit()
            return genre.id
    return make


@pytest.fixture
def make_book(app):
    def make(title="Emma", author_id=None, genre_ids=(), summary="A novel.", isbn="9780141439587"):
        with app.app_context():
            book = Book(title=title, summary=summary, isbn=isbn, author_id=author_id,
                        genres=[db.session.get(Genre, genre_id) for genre_id in genre_ids])
            db.session.add(book)
            db.session.commit()
            return book.id
    return make


@pytest.fixture
def make_instance(app):
    def make(book_id, imprint="Penguin", status="Available", due_back=date(2030, 1, 1)):
        with app.app_context():
            instance = BookInstance(book_id=book_id, imprint=imprint, status=status, due_back=due_back)
            db.session.add(instance)
            db.session.commit()
            return instance.id
    return make


@pytest.fixture
def count(app):
    def count_rows(model):
        with app.app_context():
            return db.session.query(model).count()
    return count_rows
