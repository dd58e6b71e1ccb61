"""
Catalog request handlers: authors, books, genres and book instances.

Every form has a GET view that renders it and a POST view that validates the
submission and either redisplays the form with errors or commits and redirects.
"""

import logging
from datetime import date

from flask import Blueprint, abort, redirect, render_template, request, url_for
from sqlalchemy.orm import joinedload

import store
from data_models import db, Author, Book, BookInstance, Genre, BOOK_INSTANCE_STATUSES
from validators import field, validate

logger = logging.getLogger(__name__)

catalog = Blueprint("catalog", __name__)


AUTHOR_FORM = [
    field("first_name").trim().required(message="First name must be specified.").escape(),
    field("family_name").trim().required(message="Family name must be specified.").escape(),
    field("date_of_birth", "Invalid date of birth.").optional().is_date(),
    field("date_of_death", "Invalid date of death.").optional().is_date(),
]

BOOK_FORM = [
    field("title").trim().required(message="Title must not be empty.").escape(),
    field("author").optional().trim().escape(),
    field("summary").trim().required(message="Summary must not be empty.").escape(),
    field("isbn").trim().required(message="ISBN must not be empty.").escape(),
    field("genre").to_list().escape(),
]

GENRE_FORM = [
    field("name")
    .trim()
    .length(3, 100, message="Genre name must contain between 3 and 100 characters.")
    .escape(),
]

BOOK_INSTANCE_FORM = [
    field("book", "Book must be specified").trim().required().escape(),
    field("imprint", "Imprint must be specified.").trim().required().escape(),
    field("status").escape(),
    field("due_back", "Invalid date.").optional().is_date(),
]


def as_id(value):
    """
    Convert a submitted record id to int. Returns None for anything else.
    """
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def redisplay(values):
    """
    Turn sanitized form values back into strings for the form inputs.
    """
    shown = {}
    for name, value in values.items():
        if value is None:
            shown[name] = ""
        elif isinstance(value, date):
            shown[name] = value.isoformat()
        else:
            shown[name] = value
    return shown


@catalog.route("/")
def index():
    """
    Catalog home page with record counts.
    """
    return render_template("index.html", title="Local Library Home", **store.catalog_counts())


# --- Authors ---

@catalog.route("/authors")
def author_list():
    authors = Author.query.order_by(Author.family_name.asc()).all()
    return render_template("author_list.html", title="Author List", author_list=authors)


@catalog.route("/author/<int:author_id>")
def author_detail(author_id):
    """
    Show an author and their books. Both are fetched in parallel.
    """
    author, author_books = store.fetch_parallel(
        lambda: store.find_author(author_id),
        lambda: store.books_by_author(author_id),
    )
    if author is None:
        abort(404, description="No authors found.")

    return render_template("author_detail.html", title="Author Detail",
                           author=author, author_books=author_books)


@catalog.route("/author/create", methods=["GET"])
def author_create_get():
    return render_template("author_form.html", title="Create Author", form={}, errors=[])


@catalog.route("/author/create", methods=["POST"])
def author_create_post():
    """
    Validate the author form. Redisplay it with errors, or save and redirect.
    """
    result = validate(request.form, AUTHOR_FORM)
    if not result.is_valid:
        return render_template("author_form.html", title="Create Author",
                               form=redisplay(result.values), errors=result.errors)

    author = Author(**result.values)
    db.session.add(author)
    db.session.commit()

    logger.info("Created author %s (%s)", author.id, author.name)
    return redirect(author.url)


@catalog.route("/author/<int:author_id>/delete", methods=["GET"])
def author_delete_get(author_id):
    author, author_books = store.fetch_parallel(
        lambda: store.find_author(author_id),
        lambda: store.books_by_author(author_id),
    )
    if author is None:
        return redirect(url_for("catalog.author_list"))

    return render_template("author_delete.html", title="Delete Author",
                           author=author, author_books=author_books)


@catalog.route("/author/<int:author_id>/delete", methods=["POST"])
def author_delete_post(author_id):
    """
    Delete an author that no book refers to. Otherwise show the books in the way.
    """
    if store.delete_author_if_unreferenced(author_id):
        logger.info("Deleted author %s", author_id)
        return redirect(url_for("catalog.author_list"))

    author, author_books = store.fetch_parallel(
        lambda: store.find_author(author_id),
        lambda: store.books_by_author(author_id),
    )
    if author is None:
        return redirect(url_for("catalog.author_list"))

    logger.warning("Refused to delete author %s: %d dependent books", author_id, len(author_books))
    return render_template("author_delete.html", title="Delete Author",
                           author=author, author_books=author_books)


@catalog.route("/author/<int:author_id>/update", methods=["GET"])
def author_update_get(author_id):
    author = db.get_or_404(Author, author_id, description="Author not found.")
    form = {
        "first_name": author.first_name,
        "family_name": author.family_name,
        "date_of_birth": author.date_of_birth_yyyy_mm_dd,
        "date_of_death": author.date_of_death_yyyy_mm_dd,
    }
    return render_template("author_form.html", title="Update Author", form=form, errors=[])


@catalog.route("/author/<int:author_id>/update", methods=["POST"])
def author_update_post(author_id):
    author = db.get_or_404(Author, author_id, description="Author not found.")

    result = validate(request.form, AUTHOR_FORM)
    if not result.is_valid:
        return render_template("author_form.html", title="Update Author",
                               form=redisplay(result.values), errors=result.errors)

    for name, value in result.values.items():
        setattr(author, name, value)
    db.session.commit()

    logger.info("Updated author %s", author.id)
    return redirect(author.url)


# --- Books ---

def _book_form_context(form, errors, title):
    authors, genres = store.fetch_parallel(store.author_choices, store.genre_choices)
    return dict(title=title, form=form, errors=errors, authors=authors, genres=genres)


def _resolve_book_relations(result):
    """
    Look up the author and genres a valid book form refers to.

    Unknown ids are reported as field errors on the result.
    """
    author_id = None
    if result.values["author"]:
        author_id = as_id(result.values["author"])
        if author_id is None or db.session.get(Author, author_id) is None:
            result.add_error("author", "Author not found.")

    genre_ids = [as_id(value) for value in result.values["genre"]]
    genres = []
    if genre_ids:
        if None in genre_ids:
            result.add_error("genre", "Genre not found.")
        else:
            genres = Genre.query.filter(Genre.id.in_(genre_ids)).all()
            if len(genres) != len(set(genre_ids)):
                result.add_error("genre", "Genre not found.")
    return author_id, genres


@catalog.route("/books")
def book_list():
    books = Book.query.options(joinedload(Book.author)).order_by(Book.title.asc()).all()
    return render_template("book_list.html", title="Book List", book_list=books)


@catalog.route("/book/<int:book_id>")
def book_detail(book_id):
    book, book_instances = store.fetch_parallel(
        lambda: store.find_book(book_id),
        lambda: store.instances_of_book(book_id),
    )
    if book is None:
        abort(404, description="Book not found.")

    return render_template("book_detail.html", title=book.title,
                           book=book, book_instances=book_instances)


@catalog.route("/book/create", methods=["GET"])
def book_create_get():
    return render_template("book_form.html", **_book_form_context({"genre": []}, [], "Create Book"))


@catalog.route("/book/create", methods=["POST"])
def book_create_post():
    result = validate(request.form, BOOK_FORM)
    author_id, genres = None, []
    if result.is_valid:
        author_id, genres = _resolve_book_relations(result)

    if not result.is_valid:
        return render_template("book_form.html",
                               **_book_form_context(redisplay(result.values), result.errors, "Create Book"))

    book = Book(
        title=result.values["title"],
        summary=result.values["summary"],
        isbn=result.values["isbn"],
        author_id=author_id,
        genres=genres,
    )
    db.session.add(book)
    db.session.commit()

    logger.info("Created book %s (%s)", book.id, book.title)
    return redirect(book.url)


@catalog.route("/book/<int:book_id>/delete", methods=["GET"])
def book_delete_get(book_id):
    book, book_instances = store.fetch_parallel(
        lambda: store.find_book(book_id),
        lambda: store.instances_of_book(book_id),
    )
    if book is None:
        return redirect(url_for("catalog.book_list"))

    return render_template("book_delete.html", title="Delete Book",
                           book=book, book_instances=book_instances)


@catalog.route("/book/<int:book_id>/delete", methods=["POST"])
def book_delete_post(book_id):
    """
    Delete a book that has no copies. Otherwise show the copies in the way.
    """
    if store.delete_book_if_unreferenced(book_id):
        logger.info("Deleted book %s", book_id)
        return redirect(url_for("catalog.book_list"))

    book, book_instances = store.fetch_parallel(
        lambda: store.find_book(book_id),
        lambda: store.instances_of_book(book_id),
    )
    if book is None:
        return redirect(url_for("catalog.book_list"))

    logger.warning("Refused to delete book %s: %d copies", book_id, len(book_instances))
    return render_template("book_delete.html", title="Delete Book",
                           book=book, book_instances=book_instances)


@catalog.route("/book/<int:book_id>/update", methods=["GET"])
def book_update_get(book_id):
    book = store.find_book(book_id)
    if book is None:
        abort(404, description="Book not found.")

    form = {
        "title": book.title,
        "author": str(book.author_id) if book.author_id is not None else "",
        "summary": book.summary,
        "isbn": book.isbn,
        "genre": [str(genre.id) for genre in book.genres],
    }
    return render_template("book_form.html", **_book_form_context(form, [], "Update Book"))


@catalog.route("/book/<int:book_id>/update", methods=["POST"])
def book_update_post(book_id):
    book = db.get_or_404(Book, book_id, description="Book not found.")

    result = validate(request.form, BOOK_FORM)
    author_id, genres = None, []
    if result.is_valid:
        author_id, genres = _resolve_book_relations(result)

    if not result.is_valid:
        return render_template("book_form.html",
                               **_book_form_context(redisplay(result.values), result.errors, "Update Book"))

    book.title = result.values["title"]
    book.summary = result.values["summary"]
    book.isbn = result.values["isbn"]
    book.author_id = author_id
    book.genres = genres
    db.session.commit()

    logger.info("Updated book %s", book.id)
    return redirect(book.url)


# --- Genres ---

@catalog.route("/genres")
def genre_list():
    genres = Genre.query.order_by(Genre.name.asc()).all()
    return render_template("genre_list.html", title="Genre List", genre_list=genres)


@catalog.route("/genre/<int:genre_id>")
def genre_detail(genre_id):
    genre, genre_books = store.fetch_parallel(
        lambda: store.find_genre(genre_id),
        lambda: store.books_in_genre(genre_id),
    )
    if genre is None:
        abort(404, description="Genre not found.")

    return render_template("genre_detail.html", title="Genre Detail",
                           genre=genre, genre_books=genre_books)


@catalog.route("/genre/create", methods=["GET"])
def genre_create_get():
    return render_template("genre_form.html", title="Create Genre", form={}, errors=[])


@catalog.route("/genre/create", methods=["POST"])
def genre_create_post():
    """
    Create a genre, unless one with the same name (any case) already exists,
    in which case redirect to it.
    """
    result = validate(request.form, GENRE_FORM)
    if not result.is_valid:
        return render_template("genre_form.html", title="Create Genre",
                               form=redisplay(result.values), errors=result.errors)

    existing = store.find_genre_by_name(result.values["name"])
    if existing is not None:
        return redirect(existing.url)

    genre = Genre(name=result.values["name"])
    db.session.add(genre)
    db.session.commit()

    logger.info("Created genre %s (%s)", genre.id, genre.name)
    return redirect(genre.url)


@catalog.route("/genre/<int:genre_id>/delete", methods=["GET"])
def genre_delete_get(genre_id):
    genre, genre_books = store.fetch_parallel(
        lambda: store.find_genre(genre_id),
        lambda: store.books_in_genre(genre_id),
    )
    if genre is None:
        return redirect(url_for("catalog.genre_list"))

    return render_template("genre_delete.html", title="Delete Genre",
                           genre=genre, genre_books=genre_books)


@catalog.route("/genre/<int:genre_id>/delete", methods=["POST"])
def genre_delete_post(genre_id):
    if store.delete_genre_if_unreferenced(genre_id):
        logger.info("Deleted genre %s", genre_id)
        return redirect(url_for("catalog.genre_list"))

    genre, genre_books = store.fetch_parallel(
        lambda: store.find_genre(genre_id),
        lambda: store.books_in_genre(genre_id),
    )
    if genre is None:
        return redirect(url_for("catalog.genre_list"))

    logger.warning("Refused to delete genre %s: %d books", genre_id, len(genre_books))
    return render_template("genre_delete.html", title="Delete Genre",
                           genre=genre, genre_books=genre_books)


@catalog.route("/genre/<int:genre_id>/update", methods=["GET"])
def genre_update_get(genre_id):
    genre = db.get_or_404(Genre, genre_id, description="Genre not found.")
    return render_template("genre_form.html", title="Update Genre",
                           form={"name": genre.name}, errors=[])


@catalog.route("/genre/<int:genre_id>/update", methods=["POST"])
def genre_update_post(genre_id):
    genre = db.get_or_404(Genre, genre_id, description="Genre not found.")

    result = validate(request.form, GENRE_FORM)
    if not result.is_valid:
        return render_template("genre_form.html", title="Update Genre",
                               form=redisplay(result.values), errors=result.errors)

    genre.name = result.values["name"]
    db.session.commit()

    logger.info("Updated genre %s", genre.id)
    return redirect(genre.url)


# --- Book instances ---

def _validate_book_instance():
    """
    Run the copy form and check that the chosen book exists.

    Returns:
        (result, book_id)
    """
    result = validate(request.form, BOOK_INSTANCE_FORM)
    book_id = as_id(result.values["book"])
    if result.is_valid and (book_id is None or db.session.get(Book, book_id) is None):
        result.add_error("book", "Book must be specified")
    return result, book_id


def _render_book_instance_form(title, form, errors, book_list, selected_book):
    return render_template("bookinstance_form.html", title=title, form=form, errors=errors,
                           book_list=book_list, selected_book=selected_book,
                           statuses=BOOK_INSTANCE_STATUSES)


@catalog.route("/bookinstances")
def bookinstance_list():
    instances = BookInstance.query.options(joinedload(BookInstance.book)).order_by(BookInstance.id).all()
    return render_template("bookinstance_list.html", title="Book Instance List",
                           bookinstance_list=instances)


@catalog.route("/bookinstance/<int:instance_id>")
def bookinstance_detail(instance_id):
    instance = store.find_instance(instance_id)
    if instance is None:
        abort(404, description="No book instances found.")

    return render_template("bookinstance_detail.html", title="Book", bookinstance=instance)


@catalog.route("/bookinstance/create", methods=["GET"])
def bookinstance_create_get():
    return _render_book_instance_form("Create Book Instance", {}, [], store.book_choices(), None)


@catalog.route("/bookinstance/create", methods=["POST"])
def bookinstance_create_post():
    result, book_id = _validate_book_instance()
    if not result.is_valid:
        return _render_book_instance_form("Create Book Instance", redisplay(result.values),
                                          result.errors, store.book_choices(), result.values["book"])

    values = dict(book_id=book_id, imprint=result.values["imprint"], due_back=result.values["due_back"])
    # Without a submitted status the column default applies.
    if "status" in request.form:
        values["status"] = result.values["status"]
    instance = BookInstance(**values)
    db.session.add(instance)
    db.session.commit()

    logger.info("Created book instance %s of book %s", instance.id, book_id)
    return redirect(instance.url)


@catalog.route("/bookinstance/<int:instance_id>/delete", methods=["GET"])
def bookinstance_delete_get(instance_id):
    instance = store.find_instance(instance_id)
    if instance is None:
        return redirect(url_for("catalog.bookinstance_list"))

    return render_template("bookinstance_delete.html", title="Delete Book Instance",
                           bookinstance=instance)


@catalog.route("/bookinstance/<int:instance_id>/delete", methods=["POST"])
def bookinstance_delete_post(instance_id):
    if store.delete_instance(instance_id):
        logger.info("Deleted book instance %s", instance_id)
    return redirect(url_for("catalog.bookinstance_list"))


@catalog.route("/bookinstance/<int:instance_id>/update", methods=["GET"])
def bookinstance_update_get(instance_id):
    instance, book_list = store.fetch_parallel(
        lambda: store.find_instance(instance_id),
        store.book_choices,
    )
    if instance is None:
        abort(404, description="Book copy not found.")

    form = {
        "imprint": instance.imprint,
        "status": instance.status,
        "due_back": instance.due_back_yyyy_mm_dd,
    }
    return _render_book_instance_form("Update Book Instance", form, [], book_list, str(instance.book_id))


@catalog.route("/bookinstance/<int:instance_id>/update", methods=["POST"])
def bookinstance_update_post(instance_id):
    instance = db.get_or_404(BookInstance, instance_id, description="Book copy not found.")

    result, book_id = _validate_book_instance()
    if not result.is_valid:
        return _render_book_instance_form("Update Book Instance", redisplay(result.values),
                                          result.errors, store.book_choices(), result.values["book"])

    instance.book_id = book_id
    instance.imprint = result.values["imprint"]
    instance.status = result.values["status"]
    instance.due_back = result.values["due_back"]
    db.session.commit()

    logger.info("Updated book instance %s", instance.id)
    return redirect(instance.url)
