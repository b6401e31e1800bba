"""Rating repositories over the rating tables.

Every failure of the database layer surfaces as StoreUnavailable so the
resolver can decide between degrading (reads) and propagating (writes).
"""

from collections.abc import AsyncGenerator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from datetime import timezone
import logging
from typing import Protocol

from sqlalchemy import delete, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ratings_api.models.rating import GoogleRating, TrustpilotRating
from ratings_api.services.errors import StoreUnavailable
from ratings_api.services.records import RatingRecord
from ratings_api.stores.postgres import get_session

logger = logging.getLogger("uvicorn.error")

SessionFactory = Callable[[], AbstractAsyncContextManager[AsyncSession]]
RatingModel = type[TrustpilotRating] | type[GoogleRating]

# RuntimeError covers "Database not initialized"; OSError covers refused/timed-out connections.
_STORE_ERRORS = (SQLAlchemyError, OSError, RuntimeError)


class RatingStore(Protocol):
    """Durable key-value mapping: canonical provider key -> RatingRecord."""

    async def get(self, provider_key: str) -> RatingRecord | None: ...

    async def upsert(self, record: RatingRecord) -> RatingRecord: ...

    async def find_all(self) -> list[RatingRecord]: ...

    async def delete(self, provider_key: str) -> bool: ...

    async def ping(self) -> bool: ...


class SqlRatingStore:
    """Rating store backed by one SQLAlchemy rating table."""

    def __init__(self, model: RatingModel, session_factory: SessionFactory = get_session):
        self.model = model
        self._session_factory = session_factory
        self._has_place_columns = hasattr(model, "review_count")

    @property
    def table(self) -> str:
        return self.model.__tablename__

    @asynccontextmanager
    async def _session(self, action: str) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with self._session_factory() as session:
                yield session
        except _STORE_ERRORS as e:
            raise StoreUnavailable(f"{self.table} {action} failed: {e}") from e

    async def _find_row(self, session: AsyncSession, provider_key: str):
        result = await session.execute(
            select(self.model).where(self.model.provider_key == provider_key)
        )
        return result.scalar_one_or_none()

    def _to_record(self, row) -> RatingRecord:
        last_updated = row.last_updated
        # SQLite drops tzinfo; values are always written in UTC.
        if last_updated is not None and last_updated.tzinfo is None:
            last_updated = last_updated.replace(tzinfo=timezone.utc)
        return RatingRecord(
            provider_key=row.provider_key,
            value=float(row.value),
            last_updated=last_updated,
            review_count=getattr(row, "review_count", None),
            place_id=getattr(row, "place_id", None),
        )

    async def get(self, provider_key: str) -> RatingRecord | None:
        async with self._session("read") as session:
            row = await self._find_row(session, provider_key)
            return self._to_record(row) if row is not None else None

    async def upsert(self, record: RatingRecord) -> RatingRecord:
        """Insert or fully replace the row for record.provider_key.

        A concurrent first insert of the same key loses on the unique index;
        the write is then retried once, which finds the row and updates it.
        """
        try:
            return await self._write(record)
        except StoreUnavailable as e:
            if not isinstance(e.__cause__, IntegrityError):
                raise
            logger.warning(f"{self.table} upsert for {record.provider_key} raced an insert, retrying")
        return await self._write(record)

    async def _write(self, record: RatingRecord) -> RatingRecord:
        async with self._session("upsert") as session:
            row = await self._find_row(session, record.provider_key)
            if row is None:
                row = self.model(provider_key=record.provider_key)
                session.add(row)

            row.value = float(record.value)
            row.last_updated = record.last_updated
            if self._has_place_columns:
                row.place_id = record.place_id
                row.review_count = record.review_count

            await session.flush()
            return self._to_record(row)

    async def find_all(self) -> list[RatingRecord]:
        async with self._session("list") as session:
            result = await session.execute(select(self.model).order_by(self.model.provider_key))
            return [self._to_record(row) for row in result.scalars().all()]

    async def delete(self, provider_key: str) -> bool:
        async with self._session("delete") as session:
            result = await session.execute(
                delete(self.model).where(self.model.provider_key == provider_key)
            )
            return (result.rowcount or 0) > 0

    async def ping(self) -> bool:
        try:
            async with self._session("ping") as session:
                await session.execute(text("SELECT 1"))
        except StoreUnavailable:
            return False
        return True
