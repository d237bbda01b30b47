"""
Reference entities (``sales_kernel.domain.parties``).

Parties (clients and salespeople), sites (warehouses / branches) and
catalog products.  Documents reference these only by id; the identifier
resolver maps whatever identifier a document carries (surrogate id, legacy
code, display name) back to one of these value objects.
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class PartyKind(Enum):
    """Kinds of party a sales document can reference."""
    CLIENT = "client"
    VENDOR = "vendor"


class EntityKind(Enum):
    """Kinds of reference entity the identifier resolver understands."""
    CLIENT = "client"
    VENDOR = "vendor"
    SITE = "site"
    PRODUCT = "product"


class ActorRole(Enum):
    """Roles that may trigger document transitions."""
    ADMIN = "admin"
    SALES = "sales"
    LOGISTICS = "logistics"
    BILLING = "billing"


@dataclass(frozen=True)
class Party:
    """A client or salesperson.

    ``legacy_code`` is the textual code the legacy store uses (client tax
    code, employee code).  ``credit_term_days`` of None or 0 means no terms
    configured.
    """
    id: str
    kind: PartyKind
    legacy_code: str
    display_name: str
    active: bool = True
    credit_term_days: int | None = None

    @property
    def code(self) -> str:
        return self.legacy_code


@dataclass(frozen=True)
class Site:
    """A warehouse or branch. ``code`` is stored as the legacy store has it."""
    id: str
    code: str
    display_name: str


@dataclass(frozen=True)
class Product:
    """A catalog product."""
    id: str
    code: str
    display_name: str
    last_cost: Decimal | None = None


@dataclass(frozen=True)
class Actor:
    """Whoever triggers an operation (user id plus role)."""
    id: str
    role: ActorRole = ActorRole.SALES
    name: str | None = None

    @property
    def label(self) -> str:
        return self.name or self.id
