"""
Tests for the database layer.

Tests cover initialization, session management, snapshot sessions, and the
foreign key behaviour of the task tables.
"""

import pytest
from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError

from fieldcollect.database import (
    DatabaseManager,
    MultipleChoiceORM,
    OptionORM,
    TaskORM,
)
from fieldcollect.exceptions import StorageError


class TestDatabaseManager:
    """Tests for DatabaseManager class."""

    @pytest.mark.asyncio
    async def test_initialize_creates_tables(self, db_manager):
        async with db_manager.get_session() as session:
            for orm_class in (TaskORM, MultipleChoiceORM, OptionORM):
                result = await session.execute(select(orm_class))
                assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_foreign_keys_enabled(self, db_manager):
        async with db_manager.get_session() as session:
            result = await session.execute(text("PRAGMA foreign_keys"))
            assert result.scalar_one() == 1

    @pytest.mark.asyncio
    async def test_file_database_uses_wal(self, file_db_manager):
        async with file_db_manager.get_session() as session:
            result = await session.execute(text("PRAGMA journal_mode"))
            assert result.scalar_one().lower() == "wal"

    @pytest.mark.asyncio
    async def test_initialize_creates_parent_directory(self, tmp_path):
        db_path = tmp_path / "nested" / "dir" / "store.db"
        manager = DatabaseManager(f"sqlite+aiosqlite:///{db_path}")

        await manager.initialize()
        try:
            assert db_path.parent.is_dir()
        finally:
            await manager.close()

    @pytest.mark.asyncio
    async def test_initialize_unopenable_database_raises_storage_error(self, tmp_path):
        """A path that is a directory cannot be opened as a database file."""
        manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path}")

        with pytest.raises(StorageError, match="Failed to open database"):
            await manager.initialize()

        assert manager.engine is None

    @pytest.mark.asyncio
    async def test_get_session_auto_commit(self, db_manager):
        async with db_manager.get_session() as session:
            session.add(TaskORM(id="t1", task_type="TEXT", label="Name", index=0, is_required=False))

        async with db_manager.get_session() as session:
            result = await session.execute(select(TaskORM).where(TaskORM.id == "t1"))
            assert result.scalar_one_or_none() is not None

    @pytest.mark.asyncio
    async def test_get_session_auto_rollback_on_error(self, db_manager):
        with pytest.raises(ValueError):
            async with db_manager.get_session() as session:
                session.add(TaskORM(id="t1", task_type="TEXT", label="Name", index=0, is_required=False))
                await session.flush()
                raise ValueError("Simulated error")

        async with db_manager.get_session() as session:
            result = await session.execute(select(TaskORM).where(TaskORM.id == "t1"))
            assert result.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_read_snapshot_never_writes(self, db_manager):
        """Changes made through a snapshot session are rolled back."""
        async with db_manager.read_snapshot() as session:
            session.add(TaskORM(id="t1", task_type="TEXT", label="Name", index=0, is_required=False))
            await session.flush()

        async with db_manager.get_session() as session:
            result = await session.execute(select(TaskORM).where(TaskORM.id == "t1"))
            assert result.scalar_one_or_none() is None

    @pytest.mark.asyncio
    async def test_close_disposes_engine(self):
        manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
        await manager.initialize()
        assert manager.engine is not None

        await manager.close()
        assert manager.engine is None
        assert manager.session_maker is None

    @pytest.mark.asyncio
    async def test_sessions_raise_when_not_initialized(self):
        manager = DatabaseManager("sqlite+aiosqlite:///:memory:")

        with pytest.raises(RuntimeError, match="not initialized"):
            async with manager.get_session():
                pass

        with pytest.raises(RuntimeError, match="not initialized"):
            async with manager.read_snapshot():
                pass


class TestRelations:
    """Tests for the child tables' foreign keys."""

    @pytest.mark.asyncio
    async def test_child_with_unknown_task_rejected(self, db_session):
        db_session.add(OptionORM(id="o1", task_id="missing", index=0, code="x", label="X"))

        with pytest.raises(IntegrityError):
            await db_session.commit()

        await db_session.rollback()

    @pytest.mark.asyncio
    async def test_child_with_null_task_allowed(self, db_session):
        db_session.add(MultipleChoiceORM(id="mc1", task_id=None, type="SELECT_ONE", has_other_option=False))
        await db_session.commit()

        result = await db_session.execute(select(MultipleChoiceORM).where(MultipleChoiceORM.id == "mc1"))
        assert result.scalar_one().task_id is None

    @pytest.mark.asyncio
    async def test_task_label_required(self, db_session):
        db_session.add(TaskORM(id="t1", task_type="TEXT", label=None, index=0, is_required=False))

        with pytest.raises(IntegrityError):
            await db_session.commit()

        await db_session.rollback()
