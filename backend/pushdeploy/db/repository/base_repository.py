"""
Base repository pattern implementation

Provides abstract base repository class with common CRUD operations
with async support.
"""

from abc import ABC
from typing import Any, Dict, Generic, List, Optional, TypeVar, Type

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

# Generic type variables
ModelType = TypeVar("ModelType")
CreateSchemaType = TypeVar("CreateSchemaType")


class BaseRepository(Generic[ModelType, CreateSchemaType], ABC):
    """
    Asynchronous base Repository class, providing common CRUD operations

    Methods here take an explicit session; subclasses expose public methods
    wrapped with ``async_with_session``.

    Generic parameters:
        ModelType: SQLAlchemy model type
        CreateSchemaType: Schema type for create operations
    """

    def __init__(self, model: Type[ModelType]):
        self.model = model

    async def get_by_id(self, session: AsyncSession, record_id: Any) -> Optional[ModelType]:
        """
        Get single record by primary key

        Args:
            session: Asynchronous database session
            record_id: Record ID

        Returns:
            Model instance or None
        """
        pk_column = list(self.model.__table__.primary_key.columns)[0]
        stmt = select(self.model).where(pk_column == record_id)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_multi(
            self,
            session: AsyncSession,
            skip: int = 0,
            limit: int = 100,
            filters: Dict[str, Any] = None,
            order_by: str = None
    ) -> List[ModelType]:
        """
        Get multiple records

        Args:
            session: Asynchronous database session
            skip: Number of records to skip
            limit: Maximum number of records
            filters: Filter condition dictionary
            order_by: Sort field, "field" or "-field" for descending

        Returns:
            List of model instances
        """
        stmt = select(self.model)
        if filters:
            stmt = self._apply_filters(stmt, filters)
        if order_by:
            stmt = self._apply_order_by(stmt, order_by)

        stmt = stmt.offset(skip).limit(limit)
        result = await session.execute(stmt)
        return list(result.scalars().all())

    async def get_one(self, session: AsyncSession, filters: Dict[str, Any]) -> Optional[ModelType]:
        """Get the first record matching exact filters"""
        stmt = self._apply_filters(select(self.model), filters).limit(1)
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def count(self, session: AsyncSession, filters: Dict[str, Any] = None) -> int:
        """
        Count records

        Args:
            session: Asynchronous database session
            filters: Filter condition dictionary

        Returns:
            Record count
        """
        stmt = select(func.count()).select_from(self.model)
        if filters:
            stmt = self._apply_filters(stmt, filters)

        result = await session.execute(stmt)
        return result.scalar() or 0

    async def create(self, session: AsyncSession, obj_in: CreateSchemaType, **kwargs) -> ModelType:
        """
        Create new record

        Args:
            session: Asynchronous database session
            obj_in: Creation data, a Pydantic model or a dict
            **kwargs: Extra column values

        Returns:
            Created model instance
        """
        if hasattr(obj_in, 'model_dump'):
            obj_data = obj_in.model_dump(exclude_unset=True)
        else:
            obj_data = dict(obj_in) if obj_in else {}
        obj_data.update(kwargs)

        db_obj = self.model(**obj_data)
        session.add(db_obj)
        await session.flush()
        await session.refresh(db_obj)
        return db_obj

    async def update(self, session: AsyncSession, db_obj: ModelType, **values) -> ModelType:
        """
        Update record fields

        Args:
            session: Asynchronous database session
            db_obj: Model instance to update
            **values: Column values to set

        Returns:
            Updated model instance
        """
        if db_obj not in session:
            db_obj = await session.merge(db_obj)

        for field, value in values.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        await session.flush()
        await session.refresh(db_obj)
        return db_obj

    async def delete(self, session: AsyncSession, record_id: Any) -> Optional[ModelType]:
        """
        Delete record

        Args:
            session: Asynchronous database session
            record_id: Record ID

        Returns:
            Deleted model instance or None
        """
        obj = await self.get_by_id(session, record_id)
        if obj:
            await session.delete(obj)
            await session.flush()
        return obj

    def _apply_filters(self, stmt, filters: Dict[str, Any]):
        """
        Apply filter conditions

        Values may be plain (exact match) or a dict of operators:
        {"gte": 1, "lte": 10, "in": [...]}.
        """
        for key, value in filters.items():
            if hasattr(self.model, key) and value is not None:
                column = getattr(self.model, key)

                if isinstance(value, dict):
                    if "gte" in value:
                        stmt = stmt.where(column >= value["gte"])
                    if "lte" in value:
                        stmt = stmt.where(column <= value["lte"])
                    if "gt" in value:
                        stmt = stmt.where(column > value["gt"])
                    if "lt" in value:
                        stmt = stmt.where(column < value["lt"])
                    if "in" in value:
                        stmt = stmt.where(column.in_(value["in"]))
                else:
                    stmt = stmt.where(column == value)

        return stmt

    def _apply_order_by(self, stmt, order_by: str):
        """Apply sorting, "field" or "-field" (descending)"""
        if order_by.startswith("-"):
            field = order_by[1:]
            if hasattr(self.model, field):
                stmt = stmt.order_by(getattr(self.model, field).desc())
        elif hasattr(self.model, order_by):
            stmt = stmt.order_by(getattr(self.model, order_by))

        return stmt
