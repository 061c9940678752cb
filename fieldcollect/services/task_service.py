"""
Task service for fieldcollect.

Write path for survey tasks: creating, updating and deleting tasks and
attaching their multiple choice and option rows. Reads of whole aggregates
go through :class:`fieldcollect.services.task_loader.TaskAggregateLoader`.
"""

from typing import Any, List, Optional

from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcollect.database import TaskORM
from fieldcollect.exceptions import NotFound, StorageError
from fieldcollect.logging_config import get_logger
from fieldcollect.models import MultipleChoice, Option, Task
from fieldcollect.services.converters import (
    multiple_choice_to_orm,
    option_to_orm,
    task_from_orm,
    task_to_orm,
)

logger = get_logger(__name__)

_UPDATABLE_FIELDS = ("job_id", "index", "task_type", "label", "is_required")


class TaskService:
    """
    Service layer for task write operations.

    Runs inside the caller's session; the session's context manager commits
    or rolls back.
    """

    def __init__(self, session: AsyncSession) -> None:
        """
        Initialize task service with database session.

        Args:
            session: Active async database session
        """
        self.session = session

    # ==============================================================================
    # VALIDATION HELPERS
    # ==============================================================================

    async def _get_task_or_raise(self, task_id: str) -> TaskORM:
        """
        Get a task by ID or raise an exception.

        Raises:
            NotFound: If task does not exist
        """
        result = await self.session.execute(
            select(TaskORM).where(TaskORM.id == task_id)
        )
        task_orm = result.scalar_one_or_none()
        if not task_orm:
            raise NotFound("Task", task_id)
        return task_orm

    @staticmethod
    def _to_task(task_orm: TaskORM) -> Task:
        """
        Convert a stored row, reporting rows that no longer validate.

        Raises:
            StorageError: If the stored row is invalid
        """
        try:
            return task_from_orm(task_orm)
        except ValidationError as e:
            logger.error(f"Stored task {task_orm.id} is invalid: {e}", exc_info=True)
            raise StorageError(f"Stored task {task_orm.id} is invalid") from e

    # ==============================================================================
    # CREATE OPERATIONS
    # ==============================================================================

    async def create_task(self, task: Task) -> Task:
        """
        Persist a new task.

        Args:
            task: Task to store

        Returns:
            The stored task

        Raises:
            StorageError: If the task cannot be written (e.g. duplicate id)
        """
        try:
            logger.debug(f"Creating task {task.id}: label='{task.label}'")
            self.session.add(task_to_orm(task))
            await self.session.flush()
            logger.info(f"Created task: id={task.id}, type={task.task_type.value}")
            return task
        except SQLAlchemyError as e:
            logger.error(f"Failed to create task {task.id}: {e}", exc_info=True)
            raise StorageError(f"Failed to create task {task.id}") from e

    async def add_multiple_choice(self, task_id: str, multiple_choice: MultipleChoice) -> MultipleChoice:
        """
        Attach a multiple choice definition to a task.

        Args:
            task_id: Owning task
            multiple_choice: Definition to store; its task_id is overwritten

        Returns:
            The stored multiple choice

        Raises:
            NotFound: If the task does not exist
            StorageError: If the row cannot be written
        """
        try:
            await self._get_task_or_raise(task_id)
            stored = multiple_choice.model_copy(update={"task_id": task_id})
            self.session.add(multiple_choice_to_orm(stored))
            await self.session.flush()
            logger.info(f"Added multiple choice {stored.id} to task {task_id}")
            return stored
        except NotFound as e:
            logger.error(f"Failed to add multiple choice - task not found: {e}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to add multiple choice to task {task_id}: {e}", exc_info=True)
            raise StorageError(f"Failed to add multiple choice to task {task_id}") from e

    async def add_option(self, task_id: str, option: Option) -> Option:
        """
        Attach an option to a task.

        Args:
            task_id: Owning task
            option: Option to store; its task_id is overwritten

        Returns:
            The stored option

        Raises:
            NotFound: If the task does not exist
            StorageError: If the row cannot be written
        """
        try:
            await self._get_task_or_raise(task_id)
            stored = option.model_copy(update={"task_id": task_id})
            self.session.add(option_to_orm(stored))
            await self.session.flush()
            logger.info(f"Added option {stored.id} ('{stored.code}') to task {task_id}")
            return stored
        except NotFound as e:
            logger.error(f"Failed to add option - task not found: {e}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to add option to task {task_id}: {e}", exc_info=True)
            raise StorageError(f"Failed to add option to task {task_id}") from e

    # ==============================================================================
    # READ OPERATIONS
    # ==============================================================================

    async def get_task(self, task_id: str) -> Optional[Task]:
        """
        Get a task by its ID.

        Returns:
            Task instance or None if not found

        Raises:
            StorageError: If the read fails or the stored row is invalid
        """
        try:
            result = await self.session.execute(
                select(TaskORM).where(TaskORM.id == task_id)
            )
            task_orm = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read task {task_id}: {e}", exc_info=True)
            raise StorageError(f"Failed to read task {task_id}") from e

        if not task_orm:
            return None
        return self._to_task(task_orm)

    async def list_tasks_for_job(self, job_id: str) -> List[Task]:
        """
        Get every task of a job ordered by index.

        Raises:
            StorageError: If the read fails or a stored row is invalid
        """
        try:
            result = await self.session.execute(
                select(TaskORM)
                .where(TaskORM.job_id == job_id)
                .order_by(TaskORM.index, TaskORM.id)
            )
            task_orms = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"Failed to list tasks for job {job_id}: {e}", exc_info=True)
            raise StorageError(f"Failed to list tasks for job {job_id}") from e

        tasks = [self._to_task(task_orm) for task_orm in task_orms]
        logger.debug(f"Retrieved {len(tasks)} tasks for job {job_id}")
        return tasks

    # ==============================================================================
    # UPDATE OPERATIONS
    # ==============================================================================

    async def update_task(self, task_id: str, **changes: Any) -> Task:
        """
        Update a task's properties.

        Args:
            task_id: Task to update
            **changes: New values for job_id, index, task_type, label or is_required

        Returns:
            Updated Task instance

        Raises:
            ValueError: If no changes are given, a field is unknown, or a value is invalid
            NotFound: If task does not exist
            StorageError: If the update cannot be written
        """
        if not changes:
            raise ValueError("At least one field must be provided")
        unknown = set(changes) - set(_UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")

        try:
            logger.debug(f"Updating task {task_id}: fields={sorted(changes)}")
            task_orm = await self._get_task_or_raise(task_id)

            current = self._to_task(task_orm)
            try:
                updated = Task.model_validate({**current.model_dump(), **changes})
            except ValidationError as e:
                raise ValueError(f"Invalid update for task {task_id}: {e}") from e

            task_orm.job_id = updated.job_id
            task_orm.index = updated.index
            task_orm.task_type = updated.task_type.value
            task_orm.label = updated.label
            task_orm.is_required = updated.is_required
            await self.session.flush()

            logger.info(f"Updated task: id={task_id}, label='{updated.label}'")
            return updated
        except NotFound as e:
            logger.error(f"Failed to update task - not found: {e}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to update task {task_id}: {e}", exc_info=True)
            raise StorageError(f"Failed to update task {task_id}") from e

    # ==============================================================================
    # DELETE OPERATIONS
    # ==============================================================================

    async def delete_task(self, task_id: str) -> None:
        """
        Delete a task and, through the foreign key cascade, its child rows.

        Raises:
            NotFound: If task does not exist
            StorageError: If the delete cannot be written
        """
        try:
            logger.debug(f"Deleting task {task_id}")
            task_orm = await self._get_task_or_raise(task_id)
            await self.session.delete(task_orm)
            await self.session.flush()
            logger.info(f"Deleted task: id={task_id}")
        except NotFound as e:
            logger.error(f"Failed to delete task - not found: {e}")
            raise
        except SQLAlchemyError as e:
            logger.error(f"Failed to delete task {task_id}: {e}", exc_info=True)
            raise StorageError(f"Failed to delete task {task_id}") from e
