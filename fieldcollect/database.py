"""
Database layer for fieldcollect.

Provides SQLAlchemy ORM models, async engine/session management, and
snapshot-consistent read transactions for the local SQLite store.
"""

from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator, Optional

from sqlalchemy import Boolean, ForeignKey, Integer, String, event
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from fieldcollect.exceptions import StorageError
from fieldcollect.logging_config import get_logger

logger = get_logger(__name__)

_DEFAULT_DB_PATH = Path.home() / ".fieldcollect" / "fieldcollect.db"
DEFAULT_DB_URL = f"sqlite+aiosqlite:///{_DEFAULT_DB_PATH}"


class Base(DeclarativeBase):
    """Base class for all ORM models."""
    pass


class TaskORM(Base):
    """
    SQLAlchemy ORM model for survey tasks.

    Root of the task aggregate. Child rows reference it through their
    ``task_id`` column.
    """
    __tablename__ = "tasks"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    job_id: Mapped[Optional[str]] = mapped_column(String(64), nullable=True, index=True)
    index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    task_type: Mapped[str] = mapped_column(String(32), nullable=False)
    label: Mapped[str] = mapped_column(String(500), nullable=False)
    is_required: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    multiple_choices: Mapped[list["MultipleChoiceORM"]] = relationship(
        "MultipleChoiceORM",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    options: Mapped[list["OptionORM"]] = relationship(
        "OptionORM",
        back_populates="task",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def __repr__(self) -> str:
        return f"<TaskORM(id={self.id}, label={self.label}, type={self.task_type})>"


class MultipleChoiceORM(Base):
    """SQLAlchemy ORM model for multiple choice definitions."""
    __tablename__ = "multiple_choices"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    task_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    has_other_option: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    task: Mapped[Optional["TaskORM"]] = relationship("TaskORM", back_populates="multiple_choices")

    def __repr__(self) -> str:
        return f"<MultipleChoiceORM(id={self.id}, task_id={self.task_id})>"


class OptionORM(Base):
    """
    SQLAlchemy ORM model for options.

    Options are keyed to the task, not to the multiple choice definition.
    """
    __tablename__ = "options"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    task_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        ForeignKey("tasks.id", ondelete="CASCADE"),
        nullable=True,
        index=True
    )
    index: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    code: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    label: Mapped[str] = mapped_column(String(500), nullable=False)

    task: Mapped[Optional["TaskORM"]] = relationship("TaskORM", back_populates="options")

    def __repr__(self) -> str:
        return f"<OptionORM(id={self.id}, task_id={self.task_id}, code={self.code})>"


def _is_memory_database(database_url: str) -> bool:
    database = make_url(database_url).database
    return not database or database == ":memory:"


class DatabaseManager:
    """
    Manages database connections and session lifecycle.

    Handles async engine creation, session management, and database
    initialization for both production and testing scenarios.

    Every connection runs with SQLite foreign keys enabled and with the
    driver's implicit transaction handling turned off; transactions are
    opened with an explicit ``BEGIN`` so reads are covered too. File
    databases use WAL journaling so readers keep their snapshot while a
    writer commits.
    """

    def __init__(
        self,
        database_url: str = DEFAULT_DB_URL,
        echo: bool = False,
        busy_timeout: float = 5.0,
    ):
        """
        Initialize database manager with connection URL.

        Args:
            database_url: SQLAlchemy database URL (default: local SQLite file)
            echo: Log every emitted SQL statement
            busy_timeout: Seconds SQLite waits on a locked database
        """
        self.database_url = database_url
        self.echo = echo
        self.busy_timeout = busy_timeout
        self.engine: Optional[AsyncEngine] = None
        self.session_maker: Optional[async_sessionmaker[AsyncSession]] = None

    def _install_sqlite_hooks(self, engine: AsyncEngine) -> None:
        use_wal = not _is_memory_database(self.database_url)

        @event.listens_for(engine.sync_engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if use_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN")

    async def initialize(self) -> None:
        """
        Initialize the database engine and create tables.

        Creates the async engine, session maker, and all tables defined
        in the Base metadata.

        Raises:
            StorageError: If the database cannot be opened or its schema created
        """
        try:
            logger.info(f"Initializing database: {self.database_url}")
            if not _is_memory_database(self.database_url):
                Path(make_url(self.database_url).database).parent.mkdir(parents=True, exist_ok=True)

            self.engine = create_async_engine(
                self.database_url,
                echo=self.echo,
                connect_args={"timeout": self.busy_timeout},
            )
            self._install_sqlite_hooks(self.engine)

            self.session_maker = async_sessionmaker(
                self.engine,
                class_=AsyncSession,
                expire_on_commit=False,
            )

            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

            logger.info("Database initialized successfully")
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Failed to initialize database: {e}", exc_info=True)
            await self.close()
            raise StorageError(f"Failed to open database {self.database_url}") from e

    async def close(self) -> None:
        """
        Close the database engine and cleanup resources.
        """
        if self.engine:
            logger.info("Closing database connection")
            try:
                await self.engine.dispose()
                self.engine = None
                self.session_maker = None
                logger.info("Database connection closed successfully")
            except Exception as e:
                logger.error(f"Error closing database connection: {e}", exc_info=True)
                raise

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get an async database session with automatic transaction management.

        Yields:
            AsyncSession for database operations

        Example:
            async with db_manager.get_session() as session:
                service = TaskService(session)
                await service.create_task(task)
        """
        if not self.session_maker:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")

        async with self.session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception as e:
                logger.error(f"Database session error, rolling back: {e}", exc_info=True)
                await session.rollback()
                raise

    @asynccontextmanager
    async def read_snapshot(self) -> AsyncGenerator[AsyncSession, None]:
        """
        Get a session whose reads all observe one point-in-time snapshot.

        The transaction is always rolled back on exit; nothing read through
        this session is ever written.

        Yields:
            AsyncSession bound to a single read transaction
        """
        if not self.session_maker:
            raise RuntimeError("DatabaseManager not initialized. Call initialize() first.")

        async with self.session_maker() as session:
            try:
                yield session
            finally:
                await session.rollback()
