"""
Base repository class with common CRUD operations using async SQLAlchemy.
Also provides the conditional-update primitive every status change goes through.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, delete
from estatehub.database import Base
from typing import TypeVar, Generic, Optional, Dict, Any, Type, Iterable
import uuid
import logging

logger = logging.getLogger(__name__)

ModelType = TypeVar("ModelType", bound=Base)


class BaseRepository(Generic[ModelType]):
    """
    Base repository class providing common CRUD operations.

    Methods taking ``commit`` commit by default; services that group several
    writes into one unit of work pass ``commit=False`` and commit themselves.
    """

    def __init__(self, model: Type[ModelType], db: AsyncSession):
        """
        Initialize repository with model class and database session.

        Args:
            model: SQLAlchemy model class
            db: Async database session
        """
        self.model = model
        self.db = db

    async def create(self, obj_in: Dict[str, Any], commit: bool = True) -> ModelType:
        """
        Create a new record in the database.

        Args:
            obj_in: Dictionary of field values for the new record
            commit: Commit immediately, or only flush into the open transaction

        Returns:
            Created model instance

        Raises:
            Exception: If database operation fails
        """
        try:
            db_obj = self.model(**obj_in)
            self.db.add(db_obj)
            if commit:
                await self.db.commit()
            else:
                await self.db.flush()
            await self.db.refresh(db_obj)
            logger.debug(f"Created {self.model.__name__} with id: {db_obj.id}")
            return db_obj
        except Exception as e:
            if commit:
                await self.db.rollback()
            logger.error(f"Failed to create {self.model.__name__}: {e}")
            raise

    async def get_by_id(self, id: uuid.UUID, fresh: bool = False) -> Optional[ModelType]:
        """
        Get a record by its ID.

        Args:
            id: UUID of the record to retrieve
            fresh: Overwrite any stale copy held in the session identity map

        Returns:
            Model instance if found, None otherwise
        """
        try:
            query = select(self.model).where(self.model.id == id)
            if fresh:
                query = query.execution_options(populate_existing=True)

            result = await self.db.execute(query)
            obj = result.scalar_one_or_none()

            if obj:
                logger.debug(f"Retrieved {self.model.__name__} with id: {id}")
            else:
                logger.debug(f"{self.model.__name__} with id {id} not found")

            return obj
        except Exception as e:
            logger.error(f"Failed to get {self.model.__name__} by id {id}: {e}")
            raise

    async def get_for_update(self, id: uuid.UUID) -> Optional[ModelType]:
        """
        Get a fresh copy of a record and lock its row until the transaction ends.
        SQLite has no row locks; its writers are already serialised.
        """
        query = (
            select(self.model)
            .where(self.model.id == id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def update(self, id: uuid.UUID, obj_in: Dict[str, Any], commit: bool = True) -> Optional[ModelType]:
        """
        Update a record by its ID.

        Args:
            id: UUID of the record to update
            obj_in: Dictionary of field values to update (None values are skipped)
            commit: Commit immediately, or leave the change in the open transaction

        Returns:
            Updated model instance if found, None otherwise

        Raises:
            Exception: If database operation fails
        """
        try:
            update_data = {k: v for k, v in obj_in.items() if v is not None}

            if not update_data:
                logger.warning(f"No valid data provided for updating {self.model.__name__} {id}")
                return await self.get_by_id(id)

            stmt = (
                update(self.model)
                .where(self.model.id == id)
                .values(**update_data)
                .execution_options(synchronize_session=False)
            )
            result = await self.db.execute(stmt)

            if result.rowcount == 0:
                logger.debug(f"{self.model.__name__} with id {id} not found for update")
                return None

            if commit:
                await self.db.commit()

            updated_obj = await self.get_by_id(id, fresh=True)
            logger.debug(f"Updated {self.model.__name__} with id: {id}")
            return updated_obj
        except Exception as e:
            if commit:
                await self.db.rollback()
            logger.error(f"Failed to update {self.model.__name__} {id}: {e}")
            raise

    async def conditional_update(
        self,
        id: uuid.UUID,
        expected_statuses: Iterable[Any],
        values: Dict[str, Any],
        status_field: str = "status",
        extra_conditions: Iterable[Any] = ()
    ) -> bool:
        """
        Apply ``values`` only if the record is still in one of ``expected_statuses``.

        Runs a single ``UPDATE ... WHERE id = ? AND status IN (...)`` so that two
        concurrent callers cannot both move the same record. Never commits.

        Args:
            id: UUID of the record to update
            expected_statuses: Statuses the record may currently be in
            values: Column values to set
            status_field: Name of the status column
            extra_conditions: Further WHERE clauses the row must satisfy

        Returns:
            True if exactly one row changed, False otherwise
        """
        status_column = getattr(self.model, status_field)
        stmt = (
            update(self.model)
            .where(self.model.id == id, status_column.in_(list(expected_statuses)), *extra_conditions)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        changed = result.rowcount == 1

        logger.debug(
            f"Conditional update of {self.model.__name__} {id}: {'applied' if changed else 'no match'}",
            extra={"rowcount": result.rowcount}
        )
        return changed

    async def delete(self, id: uuid.UUID, commit: bool = True) -> bool:
        """
        Delete a record by its ID.

        Args:
            id: UUID of the record to delete
            commit: Commit immediately, or leave the change in the open transaction

        Returns:
            True if record was deleted, False if not found

        Raises:
            Exception: If database operation fails
        """
        try:
            stmt = delete(self.model).where(self.model.id == id).execution_options(synchronize_session=False)
            result = await self.db.execute(stmt)
            if commit:
                await self.db.commit()

            deleted = result.rowcount > 0
            if deleted:
                logger.debug(f"Deleted {self.model.__name__} with id: {id}")
            else:
                logger.debug(f"{self.model.__name__} with id {id} not found for deletion")

            return deleted
        except Exception as e:
            if commit:
                await self.db.rollback()
            logger.error(f"Failed to delete {self.model.__name__} {id}: {e}")
            raise
