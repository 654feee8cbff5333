from typing import Generic, TypeVar, Optional, Any, Dict
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

ModelType = TypeVar('ModelType')


class BaseRepository(Generic[ModelType]):
    """Row-level CRUD shared by the trip and booking repositories.

    Writes only flush; committing is left to the service that owns the
    unit of work.
    """

    def __init__(self, model: type[ModelType], session: AsyncSession):
        self.model = model
        self.session = session

    async def get(self, id: Any) -> Optional[ModelType]:
        return await self.session.get(self.model, id)

    async def create(self, *, obj_in: Dict[str, Any]) -> ModelType:
        db_obj = self.model(**obj_in)
        self.session.add(db_obj)
        await self.session.flush()
        return db_obj

    async def update(self, *, id: Any, obj_in: Dict[str, Any]) -> Optional[ModelType]:
        """Set the given columns on one row; unknown keys are ignored"""
        db_obj = await self.get(id)
        if not db_obj:
            return None

        for field, value in obj_in.items():
            if hasattr(db_obj, field):
                setattr(db_obj, field, value)

        await self.session.flush()
        return db_obj

    async def delete(self, *, id: Any) -> bool:
        db_obj = await self.get(id)
        if not db_obj:
            return False

        await self.session.delete(db_obj)
        await self.session.flush()
        return True

    async def count(self, **filters: Any) -> int:
        """Count rows, optionally matching ``column=value`` filters"""
        query = select(func.count()).select_from(self.model)
        for key, value in filters.items():
            query = query.where(getattr(self.model, key) == value)

        result = await self.session.execute(query)
        return result.scalar() or 0


class BaseService:
    """Services share one ``AsyncSession`` per request"""

    def __init__(self, session: AsyncSession):
        self.session = session
