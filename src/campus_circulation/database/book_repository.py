"""
Book repository for the Campus Library circulation server.

Read side of the catalog plus the catalog-maintenance writes:

1. **Listing**: role-scoped, filtered book listings joined with the
   borrower's display name
2. **Reports**: currently borrowed books counted per borrower grade
3. **Maintenance**: single create, bulk range generation, CSV import/export

Circulation columns (status, borrower, due date) are never written here;
new books always start out available.
"""

import csv
import io
import logging

from sqlalchemy import func, or_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError

from ..database.schema import Book as BookDB
from ..database.schema import BookStatusEnum
from ..database.schema import User as UserDB
from ..models.book import Book as BookModel
from ..models.book import (
    AUTHOR_MAX_LENGTH,
    CATEGORY_MAX_LENGTH,
    CODE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    BookCreate,
    state_from_columns,
)
from ..models.transaction import GradeCount
from ..policy import BookScope
from .repository import (
    BaseRepository,
    DuplicateError,
    InvalidInputError,
    PaginatedResponse,
    PaginationParams,
)
from .session import safe_commit, safe_query

logger = logging.getLogger(__name__)

CODE_DIGITS = 4
MAX_BULK_RANGE = 10_000
EXPORT_FIELDS = ("unique_code", "title", "author", "category", "status")
IMPORT_FIELDS = ("unique_code", "title", "author", "category")


def format_code(prefix: str, number: int) -> str:
    """``format_code("D", 1) == "D0001"``"""
    return f"{prefix}{str(number).zfill(CODE_DIGITS)}"


def _parse_bound(value: int | str | None) -> int:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError) as e:
        raise InvalidInputError("Invalid range") from e


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    value = value.strip()
    return value or None


FIELD_LIMITS = (
    ("unique_code", CODE_MAX_LENGTH),
    ("title", TITLE_MAX_LENGTH),
    ("author", AUTHOR_MAX_LENGTH),
    ("category", CATEGORY_MAX_LENGTH),
)


def _length_error(row: dict[str, str | None]) -> str | None:
    """Describe the first field of ``row`` that the Book model would reject."""
    for field, limit in FIELD_LIMITS:
        value = row.get(field)
        if field in ("unique_code", "title") and not value:
            return f"{field} is required"
        if value is not None and len(value) > limit:
            return f"{field} must be at most {limit} characters"
    return None


class BookRepository(BaseRepository):
    """Repository for book data access."""

    def get_by_code(self, unique_code: str) -> BookModel | None:
        """Get a book and its borrower's name by unique code."""
        query = self._listing_query().where(BookDB.unique_code == unique_code)
        row = safe_query(
            self.session,
            lambda s: s.execute(query).one_or_none(),
            "Failed to get book by code",
        )
        return self._row_to_model(row) if row is not None else None

    def list_books(
        self, scope: BookScope, pagination: PaginationParams | None = None
    ) -> list[BookModel] | PaginatedResponse[BookModel]:
        """
        List the books inside ``scope``, ordered by id.

        Args:
            scope: Visibility and filters produced by the access policy
            pagination: Optional page request; without it every match is returned

        Returns:
            A list of books, or a paginated response when ``pagination`` is given
        """
        query = self._listing_query()

        if scope.borrower_id is not None:
            query = query.where(BookDB.borrower_id == scope.borrower_id)

        if scope.status is not None:
            query = query.where(BookDB.status == BookStatusEnum(scope.status.value))

        if scope.search:
            needle = scope.search.lower()
            query = query.where(
                or_(
                    func.lower(BookDB.title).contains(needle, autoescape=True),
                    func.lower(BookDB.unique_code).contains(needle, autoescape=True),
                )
            )

        query = query.order_by(BookDB.id.asc())

        if pagination is not None:
            return self._paginate(query, pagination, self._row_to_model)

        return [self._row_to_model(row) for row in self._all(query, "Failed to list books")]

    def create(self, data: BookCreate) -> BookModel:
        """
        Catalog a single book.

        Raises:
            DuplicateError: If the unique code is taken
            InvalidInputError: If a field is blank or too long
        """
        fields = {
            "unique_code": _clean(data.unique_code),
            "title": _clean(data.title),
            "author": _clean(data.author),
            "category": _clean(data.category),
        }
        if error := _length_error(fields):
            raise InvalidInputError(error)

        book = BookDB(**fields, status=BookStatusEnum.AVAILABLE)
        self.session.add(book)

        try:
            self.session.flush()
        except IntegrityError as e:
            self.session.rollback()
            raise DuplicateError(f"Book with code {fields['unique_code']} already exists") from e

        safe_commit(self.session, "create book")
        logger.info("Catalogued book %s", book.unique_code)
        return self._row_to_model((book, None))

    def bulk_create(
        self,
        prefix: str,
        start: int | str,
        end: int | str,
        title: str,
        author: str | None = None,
        category: str | None = None,
    ) -> tuple[int, int]:
        """
        Generate one available book per number in ``[start, end]``.

        Codes are ``prefix`` followed by the number zero-padded to four
        digits. Codes that already exist are skipped; the rest are created.

        Returns:
            ``(created, skipped)`` counts

        Raises:
            InvalidInputError: If the bounds are not integers, are negative,
                are reversed, or span too many codes, or a field is blank or
                too long
        """
        start_num = _parse_bound(start)
        end_num = _parse_bound(end)

        if start_num < 0 or end_num < 0 or start_num > end_num:
            raise InvalidInputError("Invalid range")
        if end_num - start_num + 1 > MAX_BULK_RANGE:
            raise InvalidInputError(f"Range too large (at most {MAX_BULK_RANGE} codes)")

        title = (title or "").strip()
        if not title:
            raise InvalidInputError("Title is required")

        prefix = (prefix or "").strip()
        author = _clean(author)
        category = _clean(category)

        # The highest number yields the longest code in the range
        if error := _length_error(
            {
                "unique_code": format_code(prefix, end_num),
                "title": title,
                "author": author,
                "category": category,
            }
        ):
            raise InvalidInputError(error)

        rows = [
            {
                "unique_code": format_code(prefix, number),
                "title": title,
                "author": author,
                "category": category,
            }
            for number in range(start_num, end_num + 1)
        ]

        created = self._insert_ignoring_duplicates(rows, "bulk create books")
        skipped = len(rows) - created
        if skipped:
            logger.warning(
                "Bulk create %s%s..%s skipped %d existing code(s)",
                prefix,
                format_code("", start_num),
                format_code("", end_num),
                skipped,
            )
        logger.info("Bulk created %d book(s) with prefix '%s'", created, prefix)
        return created, skipped

    def import_csv(self, text: str) -> tuple[int, int, int]:
        """
        Import books from CSV with a ``unique_code,title,author,category`` header.

        Rows without a code or title, rows with over-long fields, and codes
        that already exist are skipped.

        Returns:
            ``(rows_read, imported, skipped)``
        """
        reader = csv.DictReader(io.StringIO(text))
        if reader.fieldnames is None or not {"unique_code", "title"} <= {
            name.strip() for name in reader.fieldnames
        }:
            raise InvalidInputError("CSV must have unique_code and title columns")

        rows: list[dict[str, str | None]] = []
        total = 0
        for record in reader:
            total += 1
            record = {(k or "").strip(): v for k, v in record.items()}
            row = {field: _clean(record.get(field)) for field in IMPORT_FIELDS}
            if error := _length_error(row):
                logger.warning("Skipping CSV row %d: %s", total, error)
                continue
            rows.append(row)

        imported = self._insert_ignoring_duplicates(rows, "import books") if rows else 0
        logger.info("Imported %d of %d CSV row(s)", imported, total)
        return total, imported, total - imported

    def export_csv(self) -> str:
        """Serialize every book as CSV, ordered by id, with a header row."""
        query = select(
            BookDB.unique_code,
            BookDB.title,
            BookDB.author,
            BookDB.category,
            BookDB.status,
        ).order_by(BookDB.id)
        rows = self._all(query, "Failed to export books")

        buffer = io.StringIO()
        writer = csv.writer(buffer, lineterminator="\n")
        writer.writerow(EXPORT_FIELDS)
        for code, title, author, category, status in rows:
            writer.writerow([code, title, author or "", category or "", status.value])
        return buffer.getvalue()

    def unreturned_by_grade(self) -> list[GradeCount]:
        """
        Count currently borrowed books per borrower grade.

        Borrowers without a grade are left out, and so are grades with
        nothing outstanding.
        """
        query = (
            select(UserDB.grade, func.count(BookDB.id))
            .join(UserDB, BookDB.borrower_id == UserDB.id)
            .where(BookDB.status == BookStatusEnum.BORROWED, UserDB.grade.is_not(None))
            .group_by(UserDB.grade)
            .order_by(UserDB.grade)
        )
        rows = self._all(query, "Failed to build unreturned report")
        return [GradeCount(grade=grade, count=count) for grade, count in rows]

    def count(self) -> int:
        return (
            safe_query(
                self.session,
                lambda s: s.execute(select(func.count()).select_from(BookDB)).scalar(),
                "Failed to count books",
            )
            or 0
        )

    def _insert_ignoring_duplicates(self, rows: list[dict], operation: str) -> int:
        """Insert ``rows``, silently skipping unique_code collisions.

        Returns the number of rows actually inserted.
        """
        dialect = self.session.get_bind().dialect.name
        if dialect == "postgresql":
            insert = postgresql.insert
        elif dialect == "sqlite":
            insert = sqlite.insert
        else:
            raise NotImplementedError(f"Unsupported database dialect: {dialect}")

        # Skipped conflicts return no row, so RETURNING counts only this insert
        stmt = (
            insert(BookDB)
            .on_conflict_do_nothing(index_elements=["unique_code"])
            .returning(BookDB.id)
        )
        params = [{**row, "status": BookStatusEnum.AVAILABLE} for row in rows]
        inserted = safe_query(
            self.session,
            lambda s: len(s.execute(stmt, params).all()),
            f"Failed to {operation}",
        )
        safe_commit(self.session, operation)
        return inserted

    def _listing_query(self):
        # Circulation writes bypass the identity map, so always refresh loaded rows
        return (
            select(BookDB, UserDB.name)
            .outerjoin(UserDB, BookDB.borrower_id == UserDB.id)
            .execution_options(populate_existing=True)
        )

    def _row_to_model(self, row) -> BookModel:
        book, borrower_name = row
        return BookModel(
            id=book.id,
            unique_code=book.unique_code,
            title=book.title,
            author=book.author,
            category=book.category,
            state=state_from_columns(book.status.value, book.borrower_id, book.due_date),
            borrower_name=borrower_name,
        )
