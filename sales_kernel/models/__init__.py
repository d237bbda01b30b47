"""Kernel ORM models: reference data and the activity log."""

from sales_kernel.models.activity_log import ActivityLogModel
from sales_kernel.models.party import PartyModel, ProductModel, SiteModel

__all__ = [
    "ActivityLogModel",
    "PartyModel",
    "ProductModel",
    "SiteModel",
]
