"""Kernel services: activity log and document numbering."""

from sales_kernel.services.activity_log import (
    ActivityAuditEmitter,
    BoundedActivityLog,
    SqlActivityLogSink,
)
from sales_kernel.services.sequence_service import (
    SequenceService,
    format_document_number,
)

__all__ = [
    "ActivityAuditEmitter",
    "BoundedActivityLog",
    "SqlActivityLogSink",
    "SequenceService",
    "format_document_number",
]
