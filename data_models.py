from datetime import date

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates

db = SQLAlchemy()

BOOK_INSTANCE_STATUSES = ("Available", "Maintenance", "Loaned", "Reserved")
DEFAULT_BOOK_INSTANCE_STATUS = "Maintenance"


class InvalidRecordError(ValueError):
    """
    Raised when a value assigned to a model breaks one of its declared
    constraints (required, max length, enumeration). The record is never written.
    """

    def __init__(self, field, message):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


# --- Derived values. Pure functions of stored fields, computed on read. ---

def full_name(first_name, family_name) -> str:
    """
    "family_name, first_name", or an empty string when either part is missing.
    """
    if first_name and family_name:
        return f"{family_name}, {first_name}"
    return ""


def format_date_med(value) -> str:
    """
    Medium date format, e.g. 'Dec 16, 1775'. Empty string when absent.
    """
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


def format_date_iso(value) -> str:
    """
    ISO 8601 calendar date ('YYYY-MM-DD') as used by <input type="date">.
    """
    return value.isoformat() if value is not None else ""


def author_url(author_id) -> str:
    return f"/catalog/author/{author_id}"


def book_url(book_id) -> str:
    return f"/catalog/book/{book_id}"


def genre_url(genre_id) -> str:
    return f"/catalog/genre/{genre_id}"


def book_instance_url(instance_id) -> str:
    return f"/catalog/bookinstance/{instance_id}"


def _check_text(field, value, max_length=None, min_length=1):
    if value is None or len(value) < min_length:
        raise InvalidRecordError(field, "is required" if min_length == 1
                                 else f"must be at least {min_length} characters")
    if max_length is not None and len(value) > max_length:
        raise InvalidRecordError(field, f"must be at most {max_length} characters")
    return value


book_genres = db.Table(
    "book_genres",
    db.Column("book_id", db.Integer, db.ForeignKey("books.id"), primary_key=True),
    db.Column("genre_id", db.Integer, db.ForeignKey("genres.id"), primary_key=True),
)


class Author(db.Model):
    """
    Author with optional life dates. Books reference authors, not the other
    way round, so deleting an author must first check for dependent books.
    """
    __tablename__ = 'authors'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    first_name = db.Column(db.String(100), nullable=False)
    family_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    date_of_death = db.Column(db.Date, nullable=True)

    @validates("first_name", "family_name")
    def _validate_names(self, key, value):
        return _check_text(key, value, max_length=100)

    @property
    def name(self):
        return full_name(self.first_name, self.family_name)

    @property
    def url(self):
        return author_url(self.id)

    @property
    def date_of_birth_formatted(self):
        return format_date_med(self.date_of_birth)

    @property
    def date_of_death_formatted(self):
        return format_date_med(self.date_of_death)

    @property
    def lifespan(self):
        return f"{self.date_of_birth_formatted} - {self.date_of_death_formatted}"

    @property
    def date_of_birth_yyyy_mm_dd(self):
        return format_date_iso(self.date_of_birth)

    @property
    def date_of_death_yyyy_mm_dd(self):
        return format_date_iso(self.date_of_death)

    def __repr__(self):
        return f"Author(id = {self.id}, name = {self.name})"

    def __str__(self):
        return self.name


class Genre(db.Model):
    __tablename__ = 'genres'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)

    @validates("name")
    def _validate_name(self, key, value):
        return _check_text(key, value, max_length=100, min_length=3)

    @property
    def url(self):
        return genre_url(self.id)

    def __repr__(self):
        return f"<Genre id={self.id} name='{self.name}'>"

    def __str__(self):
        return self.name


class Book(db.Model):
    """
    Book with a title, summary, ISBN, an optional author and any number of genres.
    """
    __tablename__ = 'books'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(200), nullable=False)
    summary = db.Column(db.Text, nullable=False)
    isbn = db.Column(db.String(20), nullable=False)

    author_id = db.Column(db.Integer, db.ForeignKey("authors.id"), nullable=True)

    author = db.relationship("Author")
    genres = db.relationship("Genre", secondary=book_genres, order_by="Genre.name")

    @validates("title", "summary", "isbn")
    def _validate_text(self, key, value):
        return _check_text(key, value)

    @property
    def url(self):
        return book_url(self.id)

    def __repr__(self):
        return f"<Book id={self.id} title='{self.title}'>"

    def __str__(self):
        return self.title


class BookInstance(db.Model):
    """
    A physical copy of a book and its loan status.
    """
    __tablename__ = 'book_instances'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False)
    imprint = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(20), nullable=False, default=DEFAULT_BOOK_INSTANCE_STATUS)
    due_back = db.Column(db.Date, nullable=False, default=date.today)

    book = db.relationship("Book")

    @validates("book_id")
    def _validate_book_id(self, key, value):
        if value is None:
            raise InvalidRecordError(key, "is required")
        return value

    @validates("imprint")
    def _validate_imprint(self, key, value):
        return _check_text(key, value)

    @validates("status")
    def _validate_status(self, key, value):
        if value not in BOOK_INSTANCE_STATUSES:
            raise InvalidRecordError(key, f"'{value}' is not one of {', '.join(BOOK_INSTANCE_STATUSES)}")
        return value

    @validates("due_back")
    def _validate_due_back(self, key, value):
        # A blank due date falls back to the creation date.
        return value if value is not None else date.today()

    @property
    def url(self):
        return book_instance_url(self.id)

    @property
    def due_back_formatted(self):
        return format_date_med(self.due_back)

    @property
    def due_back_yyyy_mm_dd(self):
        return format_date_iso(self.due_back)

    def __repr__(self):
        return f"<BookInstance id={self.id} book_id={self.book_id} status='{self.status}'>"
