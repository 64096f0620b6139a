"""Test configuration and fixtures for the Campus Library circulation server.

1. Isolated test databases - every test gets its own SQLite file under tmp_path
2. Configuration overrides - a known signing secret and admin code
3. Ready-made users - one admin and two staff on different campuses and grades
"""

import os
from collections.abc import Generator
from pathlib import Path

import logfire
import pytest
from sqlalchemy.orm import Session

from campus_circulation.config import ServerConfig, reset_config, set_config
from campus_circulation.database.book_repository import BookRepository
from campus_circulation.database.session import DatabaseManager, set_db_manager
from campus_circulation.database.user_repository import UserRepository
from campus_circulation.models import Role, User, UserCreate
from campus_circulation.policy import Caller

ADMIN_PASSWORD = "admin123"
STAFF_PASSWORD = "secret-pass"


def pytest_configure(config):  # noqa: ARG001
    """Spans are created but never exported during tests."""
    logfire.configure(send_to_logfire=False, console=False)


def caller_for(user: User) -> Caller:
    return Caller(id=user.id, role=user.role, campus=user.campus, name=user.name)


# === Test Database Fixtures ===


@pytest.fixture
def test_db_path(tmp_path: Path) -> Path:
    """Each test gets its own database file."""
    return tmp_path / "test_library.db"


@pytest.fixture
def test_database_url(test_db_path: Path) -> str:
    return f"sqlite:///{test_db_path}"


@pytest.fixture
def test_config(test_db_path: Path) -> Generator[ServerConfig, None, None]:
    """Install a test configuration as the process-wide config."""
    reset_config()

    config = ServerConfig(
        server_name="test-campus-library",
        server_version="0.0.1-test",
        database_path=test_db_path,
        jwt_secret="test-signing-secret",
        admin_registration_code="ADMIN123",
        debug=True,
        log_level="DEBUG",
    )
    set_config(config)

    yield config

    reset_config()


@pytest.fixture
def db_manager(test_config: ServerConfig, test_database_url: str) -> Generator[DatabaseManager, None, None]:
    """A fresh schema, installed as the process-wide database manager."""
    manager = DatabaseManager(test_database_url)
    manager.init_database()
    set_db_manager(manager)

    yield manager

    set_db_manager(None)


@pytest.fixture
def test_db_session(db_manager: DatabaseManager) -> Generator[Session, None, None]:
    session = db_manager.create_session()
    try:
        yield session
    finally:
        session.close()


# === Data Fixtures ===


@pytest.fixture
def admin(test_db_session: Session) -> User:
    return UserRepository(test_db_session).create(
        UserCreate(
            name="Amina Odhiambo",
            email="admin@school.ac.ke",
            password=ADMIN_PASSWORD,
            role=Role.ADMIN,
            campus="Main School",
        )
    )


@pytest.fixture
def staff(test_db_session: Session) -> User:
    return UserRepository(test_db_session).create(
        UserCreate(
            name="Jane Wanjiku",
            email="jane@school.ac.ke",
            password=STAFF_PASSWORD,
            campus="Kamulu",
            grade="Grade 5",
        )
    )


@pytest.fixture
def other_staff(test_db_session: Session) -> User:
    return UserRepository(test_db_session).create(
        UserCreate(
            name="Peter Otieno",
            email="peter@school.ac.ke",
            password=STAFF_PASSWORD,
            campus="Diani",
            grade="Grade 6",
        )
    )


@pytest.fixture
def admin_caller(admin: User) -> Caller:
    return caller_for(admin)


@pytest.fixture
def staff_caller(staff: User) -> Caller:
    return caller_for(staff)


@pytest.fixture
def other_caller(other_staff: User) -> Caller:
    return caller_for(other_staff)


@pytest.fixture
def dictionaries(test_db_session: Session) -> list[str]:
    """Three available copies: D0001, D0002, D0003."""
    BookRepository(test_db_session).bulk_create(
        "D", 1, 3, "Oxford Primary Dictionary", "Oxford University Press", "Reference"
    )
    return ["D0001", "D0002", "D0003"]


# === Environment Fixtures ===


@pytest.fixture
def clean_env() -> Generator[None, None, None]:
    """Run without any CAMPUS_LIBRARY_* variables."""
    original_env = os.environ.copy()

    for key in list(os.environ.keys()):
        if key.startswith("CAMPUS_LIBRARY_"):
            del os.environ[key]

    yield

    os.environ.clear()
    os.environ.update(original_env)
