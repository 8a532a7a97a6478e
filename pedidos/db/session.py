from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from pedidos.db.models import Base


class Database:
    """Long-lived engine + session factory shared by every request.

    Opened once at app construction, disposed on shutdown.
    """

    def __init__(self, url: str) -> None:
        connect_args: dict[str, object] = {}
        if url.startswith("sqlite"):
            # Sessions are used from the threadpool.
            connect_args["check_same_thread"] = False
        # psycopg3 driver uses `postgresql+psycopg://...`
        self.engine: Engine = create_engine(url, pool_pre_ping=True, connect_args=connect_args)
        self._sessionmaker = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

    @contextmanager
    def session(self) -> Iterator[Session]:
        db = self._sessionmaker()
        try:
            yield db
        finally:
            db.close()

    def create_all(self) -> None:
        Base.metadata.create_all(self.engine)

    def dispose(self) -> None:
        self.engine.dispose()


def get_db(request: Request) -> Generator[Session, None, None]:
    database: Database = request.app.state.database
    with database.session() as db:
        yield db
