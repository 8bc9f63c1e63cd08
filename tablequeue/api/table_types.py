"""
REST API endpoints for the table inventory.
"""
from __future__ import annotations

from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from tablequeue.database import get_session
from tablequeue.schemas.table_type import TableTypeCreate, TableTypeRead, TableTypeUpdate
from tablequeue.services.table_type_service import TableTypeService

router = APIRouter(prefix="/api/v1", tags=["table-types"])


@router.get("/restaurants/{restaurant_id}/table-types", response_model=List[TableTypeRead])
async def list_table_types(
    restaurant_id: UUID,
    active_only: bool = Query(False, description="Only return active table types"),
    session: AsyncSession = Depends(get_session),
) -> List[TableTypeRead]:
    """Get table types for a restaurant, smallest first."""
    service = TableTypeService(session)
    table_types = await service.list_table_types(restaurant_id, active_only=active_only)
    return [TableTypeRead.model_validate(t) for t in table_types]


@router.post(
    "/restaurants/{restaurant_id}/table-types",
    response_model=TableTypeRead,
    status_code=201,
)
async def create_table_type(
    restaurant_id: UUID,
    data: TableTypeCreate,
    session: AsyncSession = Depends(get_session),
) -> TableTypeRead:
    """Add a table type to a restaurant's inventory."""
    service = TableTypeService(session)
    table_type = await service.create_table_type(restaurant_id, data)
    return TableTypeRead.model_validate(table_type)


@router.patch("/table-types/{table_type_id}", response_model=TableTypeRead)
async def update_table_type(
    table_type_id: UUID,
    data: TableTypeUpdate,
    session: AsyncSession = Depends(get_session),
) -> TableTypeRead:
    """Update capacity, count, turnover time or the active flag."""
    service = TableTypeService(session)
    table_type = await service.update_table_type(table_type_id, data)
    return TableTypeRead.model_validate(table_type)
