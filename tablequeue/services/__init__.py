# Business logic services
from tablequeue.services.analytics_service import AnalyticsService
from tablequeue.services.table_type_service import TableTypeService
from tablequeue.services.waitlist_service import WaitlistService, restaurant_locks
from tablequeue.services import demand_estimator
from tablequeue.services import table_optimizer
from tablequeue.services import turnover_analyzer

__all__ = [
    "AnalyticsService",
    "TableTypeService",
    "WaitlistService",
    "restaurant_locks",
    "demand_estimator",
    "table_optimizer",
    "turnover_analyzer",
]
