"""
sales_services -- Package init and public API.

Responsibility:
    Stateful collaborators that hold database sessions, threads or
    in-memory state: the SQLAlchemy repository, the workflow executor, the
    timed stamping gateway, the display cache and the legacy-row importer.

Architecture position:
    Services -- stateful shell over engines + kernel.

    Dependency direction:
        sales_services/ -> sales_engines/  (allowed)
        sales_services/ -> sales_kernel/   (allowed)
        sales_engines/  -> sales_services/ (FORBIDDEN)
        sales_kernel/   -> sales_services/ (FORBIDDEN)
"""

from sales_kernel.logging_config import get_logger

logger = get_logger("services")

from sales_services.display_cache import DisplayCache, cache_key
from sales_services.legacy_import import LegacyImporter
from sales_services.repository import SqlSalesRepository
from sales_services.stamping import TimedStampingGateway
from sales_services.workflow_executor import GuardExecutor, WorkflowExecutor

__all__ = [
    "DisplayCache",
    "cache_key",
    "LegacyImporter",
    "SqlSalesRepository",
    "TimedStampingGateway",
    "GuardExecutor",
    "WorkflowExecutor",
]
