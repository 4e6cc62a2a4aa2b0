"""Database engine and session configuration."""

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from typing import Any

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from src.config import settings


def create_db_engine(url: str, echo: bool = False, **kwargs: Any) -> Engine:
    """엔진 생성. SQLite는 FK 활성화 + 명시적 BEGIN.

    pysqlite 기본 트랜잭션 처리는 SAVEPOINT와 맞지 않으므로
    드라이버의 암묵 트랜잭션을 끄고 SQLAlchemy가 BEGIN을 직접 낸다.
    """
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        connect_args = kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)  # required for SQLite
        kwargs["connect_args"] = connect_args

    db_engine = create_engine(url, echo=echo, **kwargs)

    if is_sqlite:

        @event.listens_for(db_engine, "connect")
        def _on_connect(dbapi_conn, connection_record):
            dbapi_conn.isolation_level = None
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(db_engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return db_engine


engine = create_db_engine(settings.DATABASE_URL, echo=settings.DEBUG)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def get_db() -> Generator[Session, None, None]:
    """Yield a database session and ensure it is closed after use.

    Usage as a FastAPI dependency::

        @app.get("/items")
        def read_items(db: Session = Depends(get_db)):
            ...
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope(session_factory: sessionmaker) -> Iterator[Session]:
    """하나의 트랜잭션 단위. 정상 종료 시 commit, 예외 시 rollback 후 재발생."""
    session = session_factory()
    try:
        yield session
        session.commit()
    except BaseException:
        session.rollback()
        raise
    finally:
        session.close()
