"""
Module: sales_engines
Responsibility:
    Package entrypoint re-exporting the sales-cycle engines: the Financial
    Calculator, the Identifier Resolver and the Consolidation Engine.

Architecture position:
    Engines -- calculation layer.  May import sales_kernel (domain, ports,
    exceptions, logging).  MUST NOT import sales_services or sales_modules.

Invariants enforced:
    - Engines never call ``datetime.now()`` or ``date.today()``; time comes
      from an injected Clock.
    - Decimal-only arithmetic: floats are forbidden.
"""

from sales_engines.calculator import compute_line, compute_totals, priced, totals_of
from sales_engines.consolidation import ConsolidationEngine, consolidation_notes
from sales_engines.resolver import (
    NOT_FOUND,
    IdentifierResolver,
    MatchStrategy,
    Resolution,
    ResolutionHints,
    format_site_code,
    normalize_code,
    resolve_in,
)

__all__ = [
    "compute_line",
    "compute_totals",
    "priced",
    "totals_of",
    "ConsolidationEngine",
    "consolidation_notes",
    "NOT_FOUND",
    "IdentifierResolver",
    "MatchStrategy",
    "Resolution",
    "ResolutionHints",
    "format_site_code",
    "normalize_code",
    "resolve_in",
]
