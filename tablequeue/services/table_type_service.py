"""Service for the table inventory of a restaurant."""
from __future__ import annotations

import logging
from typing import Iterable, List, Optional, Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.database import commit_session
from tablequeue.errors import NotFoundError
from tablequeue.models.restaurant import Restaurant
from tablequeue.models.table_type import TableType
from tablequeue.schemas.table_type import TableTypeCreate, TableTypeUpdate
from tablequeue.services.turnover_analyzer import TurnoverAnalysis

logger = logging.getLogger(__name__)


class TableTypeService:
    """Service for table type reads and writes."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_table_types(
        self,
        restaurant_id: UUID,
        active_only: bool = False,
    ) -> Sequence[TableType]:
        """Table types for a restaurant, smallest capacity first."""
        stmt = (
            select(TableType)
            .where(TableType.restaurant_id == restaurant_id)
            .order_by(TableType.capacity, TableType.name)
        )
        if active_only:
            stmt = stmt.where(TableType.is_active == True)  # noqa: E712

        result = await self.session.execute(stmt)
        return result.scalars().all()

    async def get_table_type(self, table_type_id: UUID) -> TableType:
        table_type = await self.session.get(TableType, table_type_id)
        if table_type is None:
            raise NotFoundError(f"Table type {table_type_id} not found")
        return table_type

    async def create_table_type(
        self,
        restaurant_id: UUID,
        data: TableTypeCreate,
    ) -> TableType:
        restaurant = await self.session.get(Restaurant, restaurant_id)
        if restaurant is None:
            raise NotFoundError(f"Restaurant {restaurant_id} not found")

        table_type = TableType(
            restaurant_id=restaurant_id,
            name=data.name,
            capacity=data.capacity,
            count=data.count,
            estimated_turnover_time=data.estimated_turnover_time,
            is_active=data.is_active,
        )
        self.session.add(table_type)
        await commit_session(self.session)
        return table_type

    async def update_table_type(
        self,
        table_type_id: UUID,
        data: TableTypeUpdate,
    ) -> TableType:
        table_type = await self.get_table_type(table_type_id)

        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(table_type, field, value)

        await commit_session(self.session)
        return table_type

    async def apply_turnover_recommendations(
        self,
        restaurant_id: UUID,
        analyses: Iterable[TurnoverAnalysis],
        table_type_ids: Optional[Iterable[UUID]] = None,
    ) -> List[TableType]:
        """
        Write suggested turnover times back to the inventory.

        Only analyses that carry a recommendation are applied. When
        ``table_type_ids`` is given, other table types are left alone.
        """
        selected = set(table_type_ids) if table_type_ids else None
        by_id = {t.id: t for t in await self.list_table_types(restaurant_id)}

        updated = []
        for analysis in analyses:
            if analysis.recommendation is None:
                continue
            if selected is not None and analysis.table_type_id not in selected:
                continue
            table_type = by_id.get(analysis.table_type_id)
            if table_type is None:
                raise NotFoundError(f"Table type {analysis.table_type_id} not found")

            logger.info(
                "Updating turnover for %s from %s to %s minutes",
                table_type.name,
                table_type.estimated_turnover_time,
                analysis.recommendation.suggested_time,
            )
            table_type.estimated_turnover_time = analysis.recommendation.suggested_time
            updated.append(table_type)

        if updated:
            await commit_session(self.session)
        return updated
