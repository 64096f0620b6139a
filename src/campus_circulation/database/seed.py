"""
Demo data for the Campus Library circulation server.

Generates a small but realistic school library:
- one admin account (``admin@school.ac.ke`` / ``admin123``)
- staff across every campus and grade (password ``password``)
- several shelves of numbered copies created through bulk generation
- a handful of open loans, some of them overdue

Everything goes through the repositories, so seeded data obeys the same
circulation invariants as live data.
"""

import logging
import random
from datetime import datetime, timedelta

from faker import Faker
from sqlalchemy.orm import Session

from ..models.user import CAMPUSES, GRADES, Role, UserCreate
from .book_repository import BookRepository, format_code
from .circulation_repository import CirculationRepository
from .repository import DuplicateError
from .user_repository import UserRepository

logger = logging.getLogger(__name__)

fake = Faker()

ADMIN_EMAIL = "admin@school.ac.ke"
ADMIN_PASSWORD = "admin123"
STAFF_PASSWORD = "password"

SHELVES = [
    # (prefix, copies, title, author, category)
    ("D", 12, "Oxford Primary Dictionary", "Oxford University Press", "Reference"),
    ("AT", 8, "Atlas of the World", "National Geographic", "Reference"),
    ("ST", 20, "Kenya Storybook Reader", "Longhorn Publishers", "Fiction"),
    ("MA", 15, "Primary Mathematics", "Kenya Literature Bureau", "Mathematics"),
    ("SC", 15, "Science in Action", "Moran Publishers", "Science"),
    ("HS", 10, "Things Fall Apart", "Chinua Achebe", "Literature"),
]


def seed_database(
    session: Session, num_staff: int = 20, num_loans: int = 15, seed: int = 42
) -> dict[str, int]:
    """
    Populate an empty database with demo users, books and loans.

    Returns:
        Counts of what was created
    """
    Faker.seed(seed)
    rng = random.Random(seed)

    users = UserRepository(session)
    books = BookRepository(session)
    circulation = CirculationRepository(session)

    try:
        users.create(
            UserCreate(
                name="Library Admin",
                email=ADMIN_EMAIL,
                password=ADMIN_PASSWORD,
                role=Role.ADMIN,
                campus=CAMPUSES[0],
            )
        )
    except DuplicateError:
        logger.info("Admin account already exists, keeping it")

    staff_ids = []
    for _ in range(num_staff):
        name = fake.name()
        email = f"{fake.unique.user_name()}@school.ac.ke"
        try:
            staff = users.create(
                UserCreate(
                    name=name,
                    email=email,
                    password=STAFF_PASSWORD,
                    campus=rng.choice(CAMPUSES),
                    grade=rng.choice(GRADES),
                )
            )
        except DuplicateError:
            continue
        staff_ids.append(staff.id)

    created_books = 0
    codes = []
    for prefix, copies, title, author, category in SHELVES:
        created, _ = books.bulk_create(prefix, 1, copies, title, author, category)
        created_books += created
        codes.extend(format_code(prefix, n) for n in range(1, copies + 1))

    loans = 0
    now = datetime.now()
    for code in rng.sample(codes, min(num_loans, len(codes))):
        if not staff_ids:
            break
        # Up to three weeks ago, so some loans are already past due
        borrowed_at = now - timedelta(days=rng.randint(0, 21), hours=rng.randint(0, 8))
        book = books.get_by_code(code)
        if book is None or not book.is_available:
            continue
        circulation.borrow(code, rng.choice(staff_ids), now=borrowed_at)
        loans += 1

    summary = {"staff": len(staff_ids), "books": created_books, "loans": loans}
    logger.info("Seeded demo data: %s", summary)
    return summary
