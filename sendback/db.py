# sendback/db.py
from pathlib import Path
from typing import Iterator

from fastapi import Request
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

from sendback import models  # noqa: F401  registers tables before create_all()


def build_engine(database_url: str) -> Engine:
    # SQLite needs this connect arg and a real folder
    connect_args = {"check_same_thread": False} if database_url.startswith("sqlite") else {}
    if database_url.startswith("sqlite:///") and ":memory:" not in database_url:
        Path(database_url[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    return create_engine(database_url, connect_args=connect_args)


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


def get_session(request: Request) -> Iterator[Session]:
    with Session(request.app.state.engine) as session:
        yield session


def open_session(engine: Engine) -> Session:
    """Session outside the dependency system (middleware, scripts)."""
    return Session(engine)
