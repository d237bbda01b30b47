"""
Sales Kernel

Shared core of the sales-cycle engine:
- Typed exceptions with machine-readable codes
- Structured JSON logging
- Pure domain value objects (parties, documents, workflows)
- SQLAlchemy base, engine and kernel tables
- Activity audit log and document numbering
"""

__version__ = "0.1.0"
