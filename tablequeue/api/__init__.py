# API routes
from tablequeue.api.restaurants import router as restaurants_router
from tablequeue.api.table_types import router as table_types_router
from tablequeue.api.waitlist import router as waitlist_router
from tablequeue.api.analytics import router as analytics_router


__all__ = [
    "restaurants_router",
    "table_types_router",
    "waitlist_router",
    "analytics_router",
]
