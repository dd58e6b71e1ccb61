"""
Record store access for the catalog handlers.

Reads that do not depend on each other can be issued side by side with
fetch_parallel(). Deletes of records that others may reference are single
conditional statements, so the dependent check and the delete cannot be split
by a concurrent write.
"""

import atexit
import logging
import threading
from concurrent.futures import ThreadPoolExecutor

from flask import current_app
from sqlalchemy import delete, exists, func, select
from sqlalchemy.orm import joinedload, selectinload

from data_models import db, Author, Book, BookInstance, Genre, book_genres

logger = logging.getLogger(__name__)

EXECUTOR_KEY = "catalog_reads"

# One pool per worker count, shared by every app in the process.
_executors = {}
_executors_lock = threading.Lock()


def get_executor(max_workers):
    with _executors_lock:
        executor = _executors.get(max_workers)
        if executor is None:
            executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="catalog-read")
            _executors[max_workers] = executor
        return executor


@atexit.register
def shutdown_executors():
    with _executors_lock:
        executors = list(_executors.values())
        _executors.clear()
    for executor in executors:
        executor.shutdown(wait=True)


def init_store(app):
    """
    Attach the thread pool used for parallel reads to the Flask app.
    """
    app.extensions[EXECUTOR_KEY] = get_executor(app.config["PARALLEL_READ_WORKERS"])


def fetch_parallel(*queries):
    """
    Run independent read callables concurrently and return their results in
    the same order.

    Each callable runs in its own application context, so it gets its own
    database session. Returned ORM objects are detached once that session
    closes: callables must load every attribute the caller needs.

    Raises:
        Whatever the first failing callable raised. There is no partial result.
    """
    app = current_app._get_current_object()
    executor = app.extensions[EXECUTOR_KEY]

    def run(query):
        with app.app_context():
            return query()

    logger.debug("Issuing %d reads in parallel", len(queries))
    futures = [executor.submit(run, query) for query in queries]
    return [future.result() for future in futures]


# --- Authors ---

def find_author(author_id):
    return db.session.get(Author, author_id)


def books_by_author(author_id):
    """Books written by an author, projected to id, title and summary."""
    stmt = (
        select(Book.id, Book.title, Book.summary)
        .where(Book.author_id == author_id)
        .order_by(Book.title)
    )
    return db.session.execute(stmt).all()


def author_choices():
    return db.session.scalars(
        select(Author).order_by(Author.family_name, Author.first_name)
    ).all()


def delete_author_if_unreferenced(author_id) -> bool:
    """
    Delete an author only if no book refers to it.

    Returns:
        True when the author was deleted.
    """
    stmt = (
        delete(Author)
        .where(Author.id == author_id, ~exists().where(Book.author_id == author_id))
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    db.session.commit()
    return result.rowcount == 1


# --- Books ---

def find_book(book_id):
    stmt = (
        select(Book)
        .options(joinedload(Book.author), selectinload(Book.genres))
        .where(Book.id == book_id)
    )
    return db.session.scalars(stmt).first()


def book_choices():
    """All books, titles only, sorted by title."""
    return db.session.execute(select(Book.id, Book.title).order_by(Book.title)).all()


def instances_of_book(book_id):
    stmt = (
        select(BookInstance)
        .where(BookInstance.book_id == book_id)
        .order_by(BookInstance.id)
    )
    return db.session.scalars(stmt).all()


def delete_book_if_unreferenced(book_id) -> bool:
    """
    Delete a book only if it has no copies. Its genre links go with it.

    Returns:
        True when the book was deleted.
    """
    stmt = (
        delete(Book)
        .where(Book.id == book_id, ~exists().where(BookInstance.book_id == book_id))
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    deleted = result.rowcount == 1
    if deleted:
        db.session.execute(delete(book_genres).where(book_genres.c.book_id == book_id))
    db.session.commit()
    return deleted


# --- Genres ---

def find_genre(genre_id):
    return db.session.get(Genre, genre_id)


def genre_choices():
    return db.session.scalars(select(Genre).order_by(Genre.name)).all()


def find_genre_by_name(name):
    stmt = select(Genre).where(func.lower(Genre.name) == name.lower())
    return db.session.scalars(stmt).first()


def books_in_genre(genre_id):
    stmt = (
        select(Book.id, Book.title, Book.summary)
        .join(book_genres, book_genres.c.book_id == Book.id)
        .where(book_genres.c.genre_id == genre_id)
        .order_by(Book.title)
    )
    return db.session.execute(stmt).all()


def delete_genre_if_unreferenced(genre_id) -> bool:
    """
    Delete a genre only if no book is filed under it.

    Returns:
        True when the genre was deleted.
    """
    stmt = (
        delete(Genre)
        .where(Genre.id == genre_id, ~exists().where(book_genres.c.genre_id == genre_id))
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    db.session.commit()
    return result.rowcount == 1


# --- Book instances ---

def find_instance(instance_id):
    stmt = (
        select(BookInstance)
        .options(joinedload(BookInstance.book))
        .where(BookInstance.id == instance_id)
    )
    return db.session.scalars(stmt).first()


def delete_instance(instance_id) -> bool:
    result = db.session.execute(
        delete(BookInstance)
        .where(BookInstance.id == instance_id)
        .execution_options(synchronize_session=False)
    )
    db.session.commit()
    return result.rowcount == 1


# --- Home page ---

def _count(model, *criteria):
    def query():
        return db.session.scalar(select(func.count()).select_from(model).where(*criteria))
    return query


def catalog_counts():
    """
    Record counts for the catalog home page, fetched in parallel.
    """
    books, copies, available, authors, genres = fetch_parallel(
        _count(Book),
        _count(BookInstance),
        _count(BookInstance, BookInstance.status == "Available"),
        _count(Author),
        _count(Genre),
    )
    return {
        "book_count": books,
        "book_instance_count": copies,
        "book_instance_available_count": available,
        "author_count": authors,
        "genre_count": genres,
    }
