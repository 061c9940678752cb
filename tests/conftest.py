"""
Pytest configuration and fixtures for fieldcollect tests.

Provides database fixtures, seeding helpers, and model factories.
"""

import pytest
import pytest_asyncio

from fieldcollect.database import DatabaseManager, MultipleChoiceORM, OptionORM, TaskORM
from fieldcollect.models import MultipleChoice, MultipleChoiceType, Option, Task, TaskType


@pytest_asyncio.fixture
async def db_manager():
    """
    Create an in-memory SQLite database for testing.

    In-memory databases share a single connection, so tests that run loads
    concurrently use ``file_db_manager`` instead.
    """
    manager = DatabaseManager("sqlite+aiosqlite:///:memory:")
    await manager.initialize()

    yield manager

    await manager.close()


@pytest_asyncio.fixture
async def file_db_manager(tmp_path):
    """File-backed database (WAL mode) for snapshot and concurrency tests."""
    manager = DatabaseManager(f"sqlite+aiosqlite:///{tmp_path / 'fieldcollect.db'}")
    await manager.initialize()

    yield manager

    await manager.close()


@pytest_asyncio.fixture
async def db_session(db_manager):
    """Provide a database session that commits on exit."""
    async with db_manager.get_session() as session:
        yield session


@pytest.fixture
def sample_task_id():
    return "t1"


async def seed_task(
    manager: DatabaseManager,
    task_id: str,
    multiple_choice_ids=(),
    option_ids=(),
    job_id: str = None,
    index: int = 0,
    task_type: str = "MULTIPLE_CHOICE",
) -> None:
    """
    Insert one task with the given child rows and commit.

    Options get ``index`` values in the order their ids are given.
    """
    async with manager.get_session() as session:
        session.add(TaskORM(
            id=task_id,
            job_id=job_id,
            index=index,
            task_type=task_type,
            label=f"Question {task_id}",
            is_required=False,
        ))
        await session.flush()
        session.add_all([
            MultipleChoiceORM(id=mc_id, task_id=task_id, type="SELECT_ONE", has_other_option=False)
            for mc_id in multiple_choice_ids
        ])
        session.add_all([
            OptionORM(id=option_id, task_id=task_id, index=i, code=option_id, label=f"Option {option_id}")
            for i, option_id in enumerate(option_ids)
        ])


@pytest.fixture
def seed():
    """
    Seeding helper bound as a fixture.

    Example:
        async def test_something(db_manager, seed):
            await seed(db_manager, "t1", multiple_choice_ids=["mc1"])
    """
    return seed_task


@pytest_asyncio.fixture
async def sample_task(db_manager, sample_task_id):
    """Task t1 with multiple choices mc1, mc2 and option o1."""
    await seed_task(db_manager, sample_task_id, ["mc1", "mc2"], ["o1"])
    return sample_task_id


@pytest.fixture
def make_task():
    """Factory fixture for Task models."""
    def _make_task(
        id: str = None,
        label: str = "Test Question",
        job_id: str = None,
        index: int = 0,
        task_type: TaskType = TaskType.TEXT,
        is_required: bool = False,
    ) -> Task:
        fields = dict(
            label=label,
            job_id=job_id,
            index=index,
            task_type=task_type,
            is_required=is_required,
        )
        if id is not None:
            fields["id"] = id
        return Task(**fields)
    return _make_task


@pytest.fixture
def make_multiple_choice():
    """Factory fixture for MultipleChoice models."""
    def _make_multiple_choice(
        id: str = None,
        type: MultipleChoiceType = MultipleChoiceType.SELECT_ONE,
        has_other_option: bool = False,
    ) -> MultipleChoice:
        fields = dict(type=type, has_other_option=has_other_option)
        if id is not None:
            fields["id"] = id
        return MultipleChoice(**fields)
    return _make_multiple_choice


@pytest.fixture
def make_option():
    """Factory fixture for Option models."""
    def _make_option(
        id: str = None,
        index: int = 0,
        code: str = "code",
        label: str = "Test Option",
    ) -> Option:
        fields = dict(index=index, code=code, label=label)
        if id is not None:
            fields["id"] = id
        return Option(**fields)
    return _make_option
