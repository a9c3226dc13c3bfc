from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


BOOK_INSTANCE_STATUSES = ("Available", "Maintenance", "Loaned", "Reserved")


def format_date(value):
    """
    Format a date the way list and detail pages show it, e.g. 'Oct 6, 2020'.
    """
    if value is None:
        return ""
    return f"{value:%b} {value.day}, {value.year}"


book_genres = db.Table(
    "book_genres",
    db.Column("book_id", db.Integer, db.ForeignKey("books.id"), primary_key=True),
    db.Column("genre_id", db.Integer, db.ForeignKey("genres.id"), primary_key=True),
)


class Author(db.Model):
    """
    Author model storing names, life dates and related books.
    """
    __tablename__ = 'authors'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    first_name = db.Column(db.String(100), nullable=False)
    family_name = db.Column(db.String(100), nullable=False)
    date_of_birth = db.Column(db.Date, nullable=True)
    date_of_death = db.Column(db.Date, nullable=True)

    books = db.relationship("Book", back_populates="author")

    @property
    def name(self):
        """
        Full name as 'family_name, first_name', empty if either part is missing.
        """
        if self.first_name and self.family_name:
            return f"{self.family_name}, {self.first_name}"
        return ""

    @property
    def url(self):
        return f"/catalog/author/{self.id}"

    @property
    def date_of_birth_formatted(self):
        return format_date(self.date_of_birth)

    @property
    def date_of_death_formatted(self):
        return format_date(self.date_of_death)

    @property
    def lifespan(self):
        if not self.date_of_birth and not self.date_of_death:
            return ""
        return f"{self.date_of_birth_formatted} - {self.date_of_death_formatted}".strip()

    def __repr__(self):
        return f"Author(id = {self.id}, name = {self.name})"

    def __str__(self):
        return self.name


class Book(db.Model):
    """
    Book model storing title, summary, ISBN, author link and genres.
    """
    __tablename__ = 'books'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    title = db.Column(db.String(255), nullable=False)
    summary = db.Column(db.Text, nullable=False)
    isbn = db.Column(db.String(20), nullable=False)

    author_id = db.Column(db.Integer, db.ForeignKey("authors.id"), nullable=False)
    author = db.relationship("Author", back_populates="books")

    genres = db.relationship("Genre", secondary=book_genres, back_populates="books",
                             order_by="Genre.name")
    instances = db.relationship("BookInstance", back_populates="book")

    @property
    def url(self):
        return f"/catalog/book/{self.id}"

    def __repr__(self):
        return f"<Book id={self.id} title='{self.title}'>"

    def __str__(self):
        return self.title


class Genre(db.Model):
    """
    Genre model. Names are meant to be unique but nothing in the schema enforces it.
    """
    __tablename__ = 'genres'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    name = db.Column(db.String(100), nullable=False)

    books = db.relationship("Book", secondary=book_genres, back_populates="genres")

    @property
    def url(self):
        return f"/catalog/genre/{self.id}"

    def __repr__(self):
        return f"<Genre id={self.id} name='{self.name}'>"

    def __str__(self):
        return self.name


class BookInstance(db.Model):
    """
    A physical copy of a book that can be borrowed.
    """
    __tablename__ = 'book_instances'

    id = db.Column(db.Integer, primary_key=True, autoincrement=True)
    imprint = db.Column(db.String(255), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="Maintenance")
    due_back = db.Column(db.Date, nullable=True)

    book_id = db.Column(db.Integer, db.ForeignKey("books.id"), nullable=False)
    book = db.relationship("Book", back_populates="instances")

    @property
    def url(self):
        return f"/catalog/bookinstance/{self.id}"

    @property
    def due_back_formatted(self):
        return format_date(self.due_back)

    def __repr__(self):
        return f"<BookInstance id={self.id} book_id={self.book_id} status='{self.status}'>"

    def __str__(self):
        return f"{self.imprint} ({self.status})"
