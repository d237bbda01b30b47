"""
Module: sales_kernel.models.party
Responsibility: ORM persistence for the reference entities the sales cycle
    resolves against: parties (clients and salespeople), sites (warehouses /
    branches) and catalog products.
Architecture position: Kernel > Models.  May import from db/ and domain/
    value objects only.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - (kind, legacy_code) is unique: a legacy code identifies one client or
      one salesperson.
    - Site codes are stored as the legacy store has them ("2" or "002");
      comparison normalizes both sides in the resolver, never here.

Audit relevance:
    ``active`` is the guard input that blocks invoicing and stamping for an
    inactive client.
"""

from decimal import Decimal

from sqlalchemy import Boolean, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from sales_kernel.db.base import TrackedBase
from sales_kernel.db.types import Name, ShortCode
from sales_kernel.domain.parties import Party, PartyKind, Product, Site


class PartyModel(TrackedBase):
    """
    A client or salesperson.

    Guarantees:
        - legacy_code is unique per kind (uq_party_kind_code).
        - credit_term_days of NULL or 0 means no terms configured.
    """

    __tablename__ = "parties"

    __table_args__ = (
        UniqueConstraint("kind", "legacy_code", name="uq_party_kind_code"),
        Index("idx_party_kind", "kind"),
        Index("idx_party_active", "active"),
    )

    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    legacy_code: Mapped[ShortCode] = mapped_column(nullable=False)
    display_name: Mapped[Name] = mapped_column(nullable=False)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    credit_term_days: Mapped[int | None] = mapped_column(nullable=True)

    def to_dto(self) -> Party:
        """Convert ORM model to frozen dataclass."""
        return Party(
            id=str(self.id),
            kind=PartyKind(self.kind),
            legacy_code=self.legacy_code,
            display_name=self.display_name,
            active=self.active,
            credit_term_days=self.credit_term_days,
        )

    @classmethod
    def from_dto(cls, dto: Party, created_by: str = "system") -> "PartyModel":
        """Create ORM model from frozen dataclass (id assigned on insert)."""
        return cls(
            kind=dto.kind.value,
            legacy_code=dto.legacy_code,
            display_name=dto.display_name,
            active=dto.active,
            credit_term_days=dto.credit_term_days,
            created_by=created_by,
        )

    def __repr__(self) -> str:
        return f"<PartyModel {self.kind} {self.legacy_code}: {self.display_name}>"


class SiteModel(TrackedBase):
    """A warehouse or branch."""

    __tablename__ = "sites"

    __table_args__ = (
        UniqueConstraint("code", name="uq_site_code"),
    )

    code: Mapped[ShortCode] = mapped_column(nullable=False)
    display_name: Mapped[Name] = mapped_column(nullable=False)

    def to_dto(self) -> Site:
        return Site(id=str(self.id), code=self.code, display_name=self.display_name)

    @classmethod
    def from_dto(cls, dto: Site, created_by: str = "system") -> "SiteModel":
        return cls(code=dto.code, display_name=dto.display_name, created_by=created_by)

    def __repr__(self) -> str:
        return f"<SiteModel {self.code}: {self.display_name}>"


class ProductModel(TrackedBase):
    """A catalog product.  ``last_cost`` seeds prices of ad-hoc deliveries."""

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("code", name="uq_product_code"),
    )

    code: Mapped[ShortCode] = mapped_column(nullable=False)
    display_name: Mapped[Name] = mapped_column(nullable=False)
    last_cost: Mapped[Decimal | None] = mapped_column(nullable=True)

    def to_dto(self) -> Product:
        return Product(
            id=str(self.id),
            code=self.code,
            display_name=self.display_name,
            last_cost=self.last_cost,
        )

    @classmethod
    def from_dto(cls, dto: Product, created_by: str = "system") -> "ProductModel":
        return cls(
            code=dto.code,
            display_name=dto.display_name,
            last_cost=dto.last_cost,
            created_by=created_by,
        )

    def __repr__(self) -> str:
        return f"<ProductModel {self.code}: {self.display_name}>"
