"""Database configuration and session management"""

import os
from pathlib import Path
from typing import Union

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from .services.log_service import log_service

Base = declarative_base()


def _set_sqlite_pragmas(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Database:
    """
    Two async engines on one SQLite file: a read pool sized to the
    number of CPUs and a single-connection writer that serializes writes.
    """

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)
        url = f"sqlite+aiosqlite:///{self.path}"
        connect_args = {"check_same_thread": False}

        self.read_engine = create_async_engine(
            url,
            echo=False,
            connect_args=connect_args,
            pool_size=os.cpu_count() or 1,
        )
        self.write_engine = create_async_engine(
            url,
            echo=False,
            connect_args=connect_args,
            pool_size=1,
            max_overflow=0,
        )
        for engine in (self.read_engine, self.write_engine):
            event.listen(engine.sync_engine, "connect", _set_sqlite_pragmas)

        self.read_session = sessionmaker(
            self.read_engine, class_=AsyncSession, expire_on_commit=False
        )
        self.write_session = sessionmaker(
            self.write_engine, class_=AsyncSession, expire_on_commit=False
        )

    async def init(self):
        """
        Create missing tables
        Safe to call multiple times - only creates tables that don't exist
        """
        # Import all models to ensure they're registered with Base.metadata
        from . import models  # noqa: F401

        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)

        async with self.write_engine.begin() as conn:

            def create_tables(connection):
                Base.metadata.create_all(connection, checkfirst=True)

            await conn.run_sync(create_tables)
        log_service.get_logger("db").info(f"Database opened at {self.path}")

    async def dispose(self):
        await self.read_engine.dispose()
        await self.write_engine.dispose()
