import logging
from typing import Iterator, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from models.db import Base
from utils.exception_handlers import DatabaseUnavailable

logger = logging.getLogger("database")


class Database:
    """Engine and session factory built once per process from DATABASE_URL."""

    def __init__(self, url: Optional[str]):
        self.url = url
        self.engine: Optional[Engine] = None
        self._sessionmaker = None
        if url:
            connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
            self.engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
            self._sessionmaker = sessionmaker(bind=self.engine, autoflush=False, expire_on_commit=False)

    @property
    def configured(self) -> bool:
        return self.engine is not None

    def create_all(self) -> None:
        if self.engine is not None:
            Base.metadata.create_all(self.engine)

    def ping(self) -> None:
        if self.engine is None:
            raise DatabaseUnavailable("DATABASE_URL is not configured")
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError as err:
            raise DatabaseUnavailable(describe_database_error(err)) from err

    def session(self) -> Session:
        if self._sessionmaker is None:
            raise DatabaseUnavailable("DATABASE_URL is not configured")
        return self._sessionmaker()

    def dispose(self) -> None:
        if self.engine is not None:
            self.engine.dispose()


def describe_database_error(err: Exception) -> str:
    """Human-readable classification of a connection failure, for logs and CLI output."""
    message = str(err)
    lowered = message.lower()
    if "authentication failed" in lowered or "bad auth" in lowered or "access denied" in lowered:
        return "Database authentication failed. Please check your database credentials."
    if "timed out" in lowered or "timeout" in lowered:
        return "Database connection timed out. Please check your network connection and DATABASE_URL."
    if "could not translate host name" in lowered or "name or service not known" in lowered or "getaddrinfo" in lowered:
        return "Database host not found. Please check your DATABASE_URL."
    return f"Database connection failed: {message}"


def get_db(request: Request) -> Iterator[Session]:
    """FastAPI dependency yielding a session bound to the app's database."""
    database: Database = request.app.state.database
    session = database.session()
    try:
        yield session
    except SQLAlchemyError:
        session.rollback()
        raise
    finally:
        session.close()
