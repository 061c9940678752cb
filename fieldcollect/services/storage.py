"""
Key-indexed storage primitives over the local SQLite store.

The loader depends only on ``get_by_id`` and ``scan_by_index``; the schema
itself is owned by :mod:`fieldcollect.database`.
"""

from typing import Any, Optional, Sequence, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from fieldcollect.database import Base
from fieldcollect.exceptions import StorageError
from fieldcollect.logging_config import get_logger

logger = get_logger(__name__)

RowT = TypeVar("RowT", bound=Base)


class StorageGateway:
    """
    Row-level read access bound to one session.

    All reads go through the session's transaction, so a gateway built on a
    snapshot session sees a single consistent state of the store.
    """

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    @staticmethod
    def _indexed_column(table: Type[RowT], column: str):
        columns = table.__table__.c
        if column not in columns:
            raise ValueError(f"{table.__tablename__} has no column '{column}'")
        col = columns[column]
        if not (col.index or col.primary_key):
            raise ValueError(f"Column {table.__tablename__}.{column} is not indexed")
        return col

    async def get_by_id(self, table: Type[RowT], row_id: Any) -> Optional[RowT]:
        """
        Fetch one row by primary key.

        Args:
            table: ORM class of the table
            row_id: Primary key value

        Returns:
            The row, or None when absent

        Raises:
            StorageError: If the underlying store fails
        """
        try:
            result = await self.session.execute(
                select(table).where(list(table.__table__.primary_key.columns)[0] == row_id)
            )
            return result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"Failed to read {table.__tablename__} id={row_id}: {e}", exc_info=True)
            raise StorageError(f"Failed to read {table.__tablename__} id={row_id}") from e

    async def scan_by_index(
        self,
        table: Type[RowT],
        column: str,
        value: Any,
        order_by: Sequence[str] = (),
    ) -> list[RowT]:
        """
        Fetch every row whose indexed ``column`` equals ``value``.

        Args:
            table: ORM class of the table
            column: Name of an indexed column
            value: Value to match
            order_by: Column names giving the result order

        Returns:
            Matching rows; empty when none match

        Raises:
            ValueError: If a column does not exist, or the filter column is not indexed
            StorageError: If the underlying store fails
        """
        col = self._indexed_column(table, column)
        query = select(table).where(col == value)
        for name in order_by:
            if name not in table.__table__.c:
                raise ValueError(f"{table.__tablename__} has no column '{name}'")
            query = query.order_by(table.__table__.c[name])

        try:
            result = await self.session.execute(query)
            rows = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error(
                f"Failed to scan {table.__tablename__}.{column}={value}: {e}", exc_info=True
            )
            raise StorageError(f"Failed to scan {table.__tablename__}.{column}={value}") from e

        logger.debug(f"Scanned {table.__tablename__}.{column}={value}: {len(rows)} rows")
        return rows
