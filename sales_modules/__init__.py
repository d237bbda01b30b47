"""
Sales Modules.

Thin orchestration layers over the Sales Kernel and Engines.
Each module contains:
- Request and result models (the nouns callers pass in and get back)
- Workflows (state machines)
- ORM persistence for its documents
- A service that owns the transaction boundary

Modules:
- Sales cycle: quotations, orders, deliveries, consolidated invoices,
  credit notes

Actual computation lives in the engines; persistence goes through the
repository in ``sales_services``.
"""

from sales_modules import sales_cycle

__all__ = ["sales_cycle"]
