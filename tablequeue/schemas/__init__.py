from tablequeue.schemas.restaurant import RestaurantCreate, RestaurantRead, RestaurantUpdate, WaitStatus
from tablequeue.schemas.table_type import TableTypeCreate, TableTypeRead, TableTypeUpdate
from tablequeue.schemas.waitlist import (
    CheckInRequest,
    RemoteWaitlistCreate,
    WaitlistCreate,
    WaitlistRead,
    WaitlistStatus,
    WaitlistStatusUpdate,
)

__all__ = [
    "RestaurantCreate",
    "RestaurantRead",
    "RestaurantUpdate",
    "WaitStatus",
    "TableTypeCreate",
    "TableTypeRead",
    "TableTypeUpdate",
    "CheckInRequest",
    "RemoteWaitlistCreate",
    "WaitlistCreate",
    "WaitlistRead",
    "WaitlistStatus",
    "WaitlistStatusUpdate",
]
