"""
REST API for the Campus Library circulation server.

A FastAPI application consumed by the browser front end. Every request runs
in its own database session; the caller identity comes from the ``token``
cookie or an ``Authorization: Bearer`` header. Errors are returned as
``{"error": <reason>, "kind": <kind>}``.
"""

import logging
from collections.abc import Generator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends, FastAPI, File, Header, Query, Request, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from . import __version__
from .auth import TOKEN_COOKIE, AuthenticationError, decode_token
from .config import get_config
from .database.repository import PaginationParams
from .database.session import get_db_manager, session_scope
from .errors import InvalidInputError, RepositoryException
from .models import (
    AUTHOR_MAX_LENGTH,
    CATEGORY_MAX_LENGTH,
    CODE_MAX_LENGTH,
    TITLE_MAX_LENGTH,
    BookCreate,
    BookStatus,
    UserCreate,
)
from .policy import Caller, authorize_admin_only
from .services import (
    AuthService,
    CatalogService,
    CirculationService,
    ReportService,
    UserService,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    "NotFound": 404,
    "InvalidState": 400,
    "Forbidden": 403,
    "Conflict": 409,
    "InvalidInput": 400,
}


@asynccontextmanager
async def lifespan(app: FastAPI):  # noqa: ARG001
    db_manager = get_db_manager()
    db_manager.init_database()
    try:
        yield
    finally:
        db_manager.close()


app = FastAPI(
    title="Campus Library Circulation API",
    version=__version__,
    lifespan=lifespan,
)


# --- Errors ---


@app.exception_handler(RepositoryException)
async def repository_error_handler(request: Request, exc: RepositoryException):  # noqa: ARG001
    status_code = ERROR_STATUS.get(exc.kind, 500)
    if status_code == 500:
        logger.error("Request failed: %s", exc.reason)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


@app.exception_handler(AuthenticationError)
async def authentication_error_handler(request: Request, exc: AuthenticationError):  # noqa: ARG001
    if exc.missing:
        return JSONResponse(
            status_code=401, content={"error": exc.reason, "kind": "Unauthenticated"}
        )
    return JSONResponse(status_code=403, content={"error": exc.reason, "kind": "Forbidden"})


# --- Dependencies ---


def get_session() -> Generator[Session, None, None]:
    with session_scope() as session:
        yield session


def get_caller(
    request: Request, authorization: Annotated[str | None, Header()] = None
) -> Caller:
    token = request.cookies.get(TOKEN_COOKIE)
    if not token and authorization and authorization.lower().startswith("bearer "):
        token = authorization[len("bearer ") :].strip()
    return decode_token(token)


SessionDep = Annotated[Session, Depends(get_session)]
CallerDep = Annotated[Caller, Depends(get_caller)]


def _set_token_cookie(response: Response, token: str) -> None:
    config = get_config()
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=config.token_ttl_hours * 3600,
        httponly=True,
        samesite="strict",
        secure=config.cookie_secure,
    )


# --- Request bodies ---


class RegisterRequest(UserCreate):
    model_config = ConfigDict(populate_by_name=True)

    admin_code: str | None = Field(None, alias="adminCode")


class LoginRequest(BaseModel):
    email: str
    password: str
    campus: str


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: str
    new_password: str = Field(..., min_length=1, alias="newPassword")


class BulkCreateRequest(BaseModel):
    prefix: str = Field("", max_length=CODE_MAX_LENGTH)
    start: int | str
    end: int | str
    title: str = Field(..., max_length=TITLE_MAX_LENGTH)
    author: str | None = Field(None, max_length=AUTHOR_MAX_LENGTH)
    category: str | None = Field(None, max_length=CATEGORY_MAX_LENGTH)


class BorrowRequest(BaseModel):
    unique_code: str
    user_id: int | None = None


class ReturnRequest(BaseModel):
    unique_code: str


# --- Health ---


@app.get("/health")
def health():
    return {
        "status": "healthy",
        "database": get_db_manager().verify_connection(),
        **get_config().server_info,
    }


# --- Auth ---


@app.post("/api/auth/register")
def register(body: RegisterRequest, response: Response, session: SessionDep):
    user, token = AuthService(session).register(body, admin_code=body.admin_code)
    _set_token_cookie(response, token)
    return {"success": True, "user": user}


@app.post("/api/auth/login")
def login(body: LoginRequest, response: Response, session: SessionDep):
    user, token = AuthService(session).login(body.email, body.password, body.campus)
    _set_token_cookie(response, token)
    return {"success": True, "user": user}


@app.post("/api/auth/logout")
def logout(response: Response):
    response.delete_cookie(TOKEN_COOKIE, httponly=True, samesite="strict")
    return {"success": True}


@app.get("/api/auth/me")
def me(caller: CallerDep, session: SessionDep):
    return {"user": UserService(session, caller).me()}


@app.post("/api/auth/reset-password")
def reset_password(body: ResetPasswordRequest, session: SessionDep):
    AuthService(session).reset_password(body.email, body.new_password)
    return {"success": True, "message": "Password reset successfully"}


# --- Books ---


@app.get("/api/books")
def list_books(
    caller: CallerDep,
    session: SessionDep,
    search: str | None = None,
    status: BookStatus | None = None,
    page: Annotated[int | None, Query(ge=1)] = None,
    page_size: Annotated[int, Query(ge=1, le=100)] = 20,
):
    pagination = PaginationParams(page=page, page_size=page_size) if page else None
    result = CatalogService(session, caller).list_books(
        search=search, status=status, pagination=pagination
    )
    if pagination is None:
        return {"books": result}
    return {
        "books": result.items,
        "total": result.total,
        "page": result.page,
        "page_size": result.page_size,
        "total_pages": result.total_pages,
    }


@app.post("/api/books")
def create_book(body: BookCreate, caller: CallerDep, session: SessionDep):
    return {"success": True, "book": CatalogService(session, caller).create_book(body)}


@app.post("/api/books/bulk")
def bulk_create_books(body: BulkCreateRequest, caller: CallerDep, session: SessionDep):
    created, skipped = CatalogService(session, caller).bulk_create(
        body.prefix, body.start, body.end, body.title, body.author, body.category
    )
    return {"success": True, "created": created, "skipped": skipped}


@app.get("/api/books/{unique_code}/history")
def book_history(unique_code: str, caller: CallerDep, session: SessionDep):
    return {"transactions": CirculationService(session, caller).history(unique_code)}


# --- Circulation ---


@app.post("/api/borrow")
def borrow(body: BorrowRequest, caller: CallerDep, session: SessionDep):
    book = CirculationService(session, caller).borrow(body.unique_code, body.user_id)
    return {"success": True, "book": book}


@app.post("/api/return")
def return_book(body: ReturnRequest, caller: CallerDep, session: SessionDep):
    book = CirculationService(session, caller).return_book(body.unique_code)
    return {"success": True, "book": book}


# --- Users ---


@app.get("/api/users")
def list_users(caller: CallerDep, session: SessionDep):
    return {"users": UserService(session, caller).list_users()}


@app.post("/api/users")
def create_user(body: UserCreate, caller: CallerDep, session: SessionDep):
    return {"success": True, "user": UserService(session, caller).create_user(body)}


# --- Reports ---


@app.get("/api/reports/unreturned")
def unreturned_report(caller: CallerDep, session: SessionDep):
    return {"report": ReportService(session, caller).unreturned_by_grade()}


# --- Import / export ---


@app.post("/api/import/books")
def import_books(
    caller: CallerDep,
    session: SessionDep,
    file: Annotated[UploadFile | None, File()] = None,
):
    authorize_admin_only(caller)
    if file is None:
        raise InvalidInputError("No file uploaded")
    try:
        text = file.file.read().decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise InvalidInputError("CSV file must be UTF-8 encoded") from e
    count, imported, skipped = CatalogService(session, caller).import_csv(text)
    return {"success": True, "count": count, "imported": imported, "skipped": skipped}


@app.get("/api/export/books")
def export_books(caller: CallerDep, session: SessionDep):
    body = CatalogService(session, caller).export_csv()
    return Response(
        content=body,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="books.csv"'},
    )
