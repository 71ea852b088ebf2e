"""Base repository with common CRUD operations.

Provides a generic repository pattern for SQLAlchemy models with
async support.

Usage:
    from patternlens.db.repositories.base import BaseRepository

    class PatternRepository(BaseRepository[DetectedPattern, UUID]):
        pass

    repo = PatternRepository(db_session)
    pattern = await repo.get(pattern_id)
    patterns = await repo.list(limit=10, offset=0)
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from patternlens.db.models.base import Base

ModelType = TypeVar("ModelType", bound=Base)
PKType = TypeVar("PKType", bound=UUID | int | str)


class BaseRepository(Generic[ModelType, PKType]):
    """Generic repository for SQLAlchemy models.

    Provides CRUD operations with async support. Subclass to add
    model-specific queries.

    Type Parameters:
        ModelType: The SQLAlchemy model class
        PKType: The type of the primary key (UUID, int, or str)

    Attributes:
        model: The model class
        db: The database session
    """

    model: type[ModelType]

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session.

        Args:
            db: Async SQLAlchemy session
        """
        self.db = db

    def __init_subclass__(cls, **kwargs):
        """Extract model type from generic parameter."""
        super().__init_subclass__(**kwargs)
        for base in getattr(cls, "__orig_bases__", []):
            args = getattr(base, "__args__", None)
            if args and len(args) >= 1:
                first_arg = args[0]
                # Skip TypeVars; only concrete model classes count
                if isinstance(first_arg, type) and issubclass(first_arg, Base):
                    cls.model = first_arg
                    break

    async def get(self, pk: PKType) -> ModelType | None:
        """Get a single record by primary key.

        Args:
            pk: Primary key value

        Returns:
            Model instance or None if not found
        """
        return await self.db.get(self.model, pk)

    async def list(
        self,
        *,
        limit: int = 100,
        offset: int = 0,
        order_by: str | None = None,
        descending: bool = False,
    ) -> list[ModelType]:
        """List records with pagination.

        Args:
            limit: Maximum records to return
            offset: Number of records to skip
            order_by: Column name to order by (default: primary key)
            descending: Sort in descending order

        Returns:
            List of model instances
        """
        stmt = select(self.model)

        if order_by:
            col = getattr(self.model, order_by, None)
            if col is not None:
                stmt = stmt.order_by(col.desc() if descending else col)
        else:
            pk_col = self._get_pk_column()
            stmt = stmt.order_by(pk_col.desc() if descending else pk_col)

        stmt = stmt.limit(limit).offset(offset)

        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def create(self, obj: ModelType, *, commit: bool = True) -> ModelType:
        """Create a new record.

        Args:
            obj: Model instance to create
            commit: Whether to commit the transaction

        Returns:
            Created model instance
        """
        self.db.add(obj)
        if commit:
            await self.db.commit()
            await self.db.refresh(obj)
        else:
            await self.db.flush()
        return obj

    async def update(
        self, obj: ModelType, updates: dict[str, Any], *, commit: bool = True
    ) -> ModelType:
        """Update a record with given values.

        Args:
            obj: Model instance to update
            updates: Dictionary of field: value to update
            commit: Whether to commit the transaction

        Returns:
            Updated model instance
        """
        for field, value in updates.items():
            if hasattr(obj, field):
                setattr(obj, field, value)

        if commit:
            await self.db.commit()
            await self.db.refresh(obj)
        else:
            await self.db.flush()

        return obj

    def _get_pk_column(self):
        """Get the primary key column for this model.

        Raises:
            ValueError: If no primary key found
        """
        mapper = self.model.__mapper__
        pk_cols = mapper.primary_key
        if not pk_cols:
            raise ValueError(f"No primary key found for {self.model.__name__}")
        return pk_cols[0]
