"""Base repository with common CRUD operations."""

from datetime import datetime
from typing import Any, Generic, TypeVar, cast
from uuid import UUID

from sqlalchemy import and_, or_
from sqlalchemy.engine import CursorResult
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import SQLModel, select

from src.tapcards.schemas.pagination import decode_cursor, encode_cursor

ModelType = TypeVar("ModelType", bound=SQLModel)


class BaseRepository(Generic[ModelType]):
    """Base repository providing common database operations.

    Repositories handle data access only. Transaction control (commit)
    belongs to the service layer.
    """

    model: type[ModelType]

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, id: UUID) -> ModelType | None:
        """Get a record by its primary key."""
        result = await self.session.execute(
            select(self.model).where(self.model.id == id)  # type: ignore[attr-defined]
        )
        return result.scalar_one_or_none()

    def add(self, entity: ModelType) -> None:
        """Add entity to session (no flush/commit)."""
        self.session.add(entity)

    async def execute_update(self, stmt: Any) -> int:
        """Run a bulk UPDATE/DELETE and return the number of matched rows.

        Loaded instances are not synchronized; callers refresh what they hold.
        """
        result = await self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        return cast(CursorResult[Any], result).rowcount or 0

    async def paginate(
        self,
        query: Any,  # SelectOfScalar or Select - SQLModel/SQLAlchemy query
        cursor: str | None,
        limit: int,
        cursor_field: Any,
    ) -> tuple[list[ModelType], str | None, bool]:
        """Execute cursor-based pagination on a query, newest first.

        Returns:
            Tuple of (items, next_cursor, has_more)

        Note:
            Cursors encode "<value>|<id>" of the last row, with datetimes as
            isoformat(). Rows sharing a value are ordered by id.
        """
        id_field = self.model.id  # type: ignore[attr-defined]
        if cursor:
            try:
                value_str, _, last_id = decode_cursor(cursor).partition("|")
                cursor_value: datetime | UUID | str
                try:
                    cursor_value = datetime.fromisoformat(value_str)
                except ValueError:
                    try:
                        cursor_value = UUID(value_str)
                    except ValueError:
                        cursor_value = value_str
                if last_id:
                    # Rows sharing the cursor value are ordered by id
                    query = query.where(
                        or_(
                            cursor_field < cursor_value,
                            and_(cursor_field == cursor_value, id_field < UUID(last_id)),
                        )
                    )
                else:
                    query = query.where(cursor_field < cursor_value)
            except (ValueError, TypeError):
                # Invalid cursor - ignore and start from beginning
                pass

        query = query.order_by(cursor_field.desc(), id_field.desc())

        # Fetch limit + 1 to determine if there are more results
        query = query.limit(limit + 1)

        result = await self.session.execute(query)
        items = list(result.scalars().all())

        has_more = len(items) > limit
        if has_more:
            items = items[:limit]

        next_cursor = None
        if has_more and items:
            last = items[-1]
            value = getattr(last, cursor_field.key)
            if isinstance(value, datetime):
                next_cursor = encode_cursor(f"{value.isoformat()}|{last.id}")
            elif value is not None:
                next_cursor = encode_cursor(f"{value}|{last.id}")

        return items, next_cursor, has_more
