"""
Task aggregate loader for fieldcollect.

Loads a task together with its multiple choice and option rows as one
read-only TaskAggregate. The root fetch and both relation scans run inside a
single read transaction, so the aggregate always reflects one snapshot of
the store.
"""

import asyncio
from typing import Callable, List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError

from fieldcollect.database import DatabaseManager, MultipleChoiceORM, OptionORM, TaskORM
from fieldcollect.exceptions import DataAccessError, NotFound, StorageError
from fieldcollect.logging_config import get_logger
from fieldcollect.models import TaskAggregate
from fieldcollect.services.converters import (
    multiple_choice_from_orm,
    option_from_orm,
    task_from_orm,
)
from fieldcollect.services.storage import StorageGateway

logger = get_logger(__name__)

CompletionCallback = Callable[[Optional[TaskAggregate], Optional[DataAccessError]], None]


class TaskAggregateLoader:
    """
    Read-only loader composing tasks with their related child rows.

    Safe to call concurrently: every call opens its own snapshot session and
    takes no exclusive locks.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        default_timeout: Optional[float] = None,
        gateway_factory: Callable[..., StorageGateway] = StorageGateway,
    ) -> None:
        """
        Initialize the loader.

        Args:
            db_manager: Initialized database manager
            default_timeout: Seconds before a load is aborted; None or 0 disables
            gateway_factory: Builds the storage gateway for a snapshot session
        """
        self.db_manager = db_manager
        self.default_timeout = default_timeout
        self.gateway_factory = gateway_factory

    # ==============================================================================
    # INTERNAL HELPERS
    # ==============================================================================

    async def _hydrate(self, gateway: StorageGateway, task_orm: TaskORM) -> TaskAggregate:
        multiple_choices = await gateway.scan_by_index(
            MultipleChoiceORM, "task_id", task_orm.id, order_by=("id",)
        )
        options = await gateway.scan_by_index(
            OptionORM, "task_id", task_orm.id, order_by=("index", "id")
        )

        try:
            return TaskAggregate(
                task=task_from_orm(task_orm),
                multiple_choices=tuple(multiple_choice_from_orm(mc) for mc in multiple_choices),
                options=tuple(option_from_orm(option) for option in options),
            )
        except ValidationError as e:
            logger.error(f"Stored rows for task {task_orm.id} are invalid: {e}", exc_info=True)
            raise StorageError(f"Stored rows for task {task_orm.id} are invalid") from e

    async def _load_one(self, task_id: str) -> TaskAggregate:
        try:
            async with self.db_manager.read_snapshot() as session:
                gateway = self.gateway_factory(session)
                task_orm = await gateway.get_by_id(TaskORM, task_id)
                if task_orm is None:
                    raise NotFound("Task", task_id)
                return await self._hydrate(gateway, task_orm)
        except SQLAlchemyError as e:
            logger.error(f"Read transaction failed for task {task_id}: {e}", exc_info=True)
            raise StorageError(f"Read transaction failed for task {task_id}") from e

    async def _load_job(self, job_id: str) -> List[TaskAggregate]:
        try:
            async with self.db_manager.read_snapshot() as session:
                gateway = self.gateway_factory(session)
                task_orms = await gateway.scan_by_index(
                    TaskORM, "job_id", job_id, order_by=("index", "id")
                )
                return [await self._hydrate(gateway, task_orm) for task_orm in task_orms]
        except SQLAlchemyError as e:
            logger.error(f"Read transaction failed for job {job_id}: {e}", exc_info=True)
            raise StorageError(f"Read transaction failed for job {job_id}") from e

    async def _with_timeout(self, coro, timeout: Optional[float], what: str):
        if timeout is None:
            timeout = self.default_timeout
        if not timeout:
            return await coro
        try:
            return await asyncio.wait_for(coro, timeout)
        except asyncio.TimeoutError as e:
            logger.error(f"Loading {what} timed out after {timeout}s")
            raise StorageError(f"Loading {what} timed out after {timeout}s") from e

    @staticmethod
    def _require_id(value: str, name: str) -> None:
        if value is None or not str(value).strip():
            raise ValueError(f"{name} must be a non-empty string")

    # ==============================================================================
    # READ OPERATIONS
    # ==============================================================================

    async def load(self, task_id: str, timeout: Optional[float] = None) -> TaskAggregate:
        """
        Load a task and its multiple choice and option rows.

        Args:
            task_id: Primary key of the task
            timeout: Seconds before the load is aborted (default: loader default)

        Returns:
            TaskAggregate with possibly empty child sequences

        Raises:
            ValueError: If task_id is blank
            NotFound: If no task has this id
            StorageError: On storage failure or timeout
        """
        self._require_id(task_id, "task_id")
        logger.debug(f"Loading task aggregate {task_id}")

        aggregate = await self._with_timeout(self._load_one(task_id), timeout, f"task {task_id}")

        logger.debug(
            f"Loaded task {task_id}: {len(aggregate.multiple_choices)} multiple choices, "
            f"{len(aggregate.options)} options"
        )
        return aggregate

    async def find(self, task_id: str, timeout: Optional[float] = None) -> Optional[TaskAggregate]:
        """
        Load a task aggregate, returning None when the task does not exist.

        Raises:
            StorageError: On storage failure or timeout
        """
        try:
            return await self.load(task_id, timeout=timeout)
        except NotFound:
            logger.debug(f"Task {task_id} not found")
            return None

    async def load_for_job(self, job_id: str, timeout: Optional[float] = None) -> List[TaskAggregate]:
        """
        Load every task of a job, each with its child rows, from one snapshot.

        Args:
            job_id: Job whose tasks to load
            timeout: Seconds before the load is aborted (default: loader default)

        Returns:
            Aggregates ordered by task index; empty when the job has no tasks

        Raises:
            ValueError: If job_id is blank
            StorageError: On storage failure or timeout
        """
        self._require_id(job_id, "job_id")
        aggregates = await self._with_timeout(self._load_job(job_id), timeout, f"job {job_id}")
        logger.debug(f"Loaded {len(aggregates)} task aggregates for job {job_id}")
        return aggregates

    def load_in_background(
        self,
        task_id: str,
        on_complete: CompletionCallback,
        timeout: Optional[float] = None,
    ) -> "asyncio.Task[Optional[TaskAggregate]]":
        """
        Schedule a load on the running event loop without awaiting it.

        ``on_complete`` is called with ``(aggregate, None)`` on success or
        ``(None, error)`` when the load raises NotFound or StorageError.

        Args:
            task_id: Primary key of the task
            on_complete: Completion callback
            timeout: Seconds before the load is aborted

        Returns:
            The scheduled asyncio task

        Raises:
            ValueError: If task_id is blank
        """
        self._require_id(task_id, "task_id")

        async def _run() -> Optional[TaskAggregate]:
            try:
                aggregate = await self.load(task_id, timeout=timeout)
            except DataAccessError as e:
                on_complete(None, e)
                return None
            on_complete(aggregate, None)
            return aggregate

        return asyncio.create_task(_run())
