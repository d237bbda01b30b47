"""
Module: sales_kernel.db.types
Responsibility: Annotated type aliases for column types, so every model uses
    identical precision for amounts, quantities, codes and free text.  The
    aliases are keys of ``Base.type_annotation_map``; a model declares
    ``Mapped[Money]`` and gets ``Numeric(18, 4)``.
Architecture position: Kernel > DB.  May be imported by models/ and by the
    module ORM files.  MUST NOT import from those layers.
"""

from decimal import Decimal
from typing import Annotated

from sqlalchemy import Numeric, String, Text

# Monetary amount: 2 decimals are enough for COP, 4 keep unit prices exact
Money = Annotated[Decimal, "money"]

# Quantities and percentages
Quantity = Annotated[Decimal, "quantity"]
Percent = Annotated[Decimal, "percent"]

# Legacy codes, document numbers, state values
ShortCode = Annotated[str, "short_code"]

# Display names
Name = Annotated[str, "name"]

# Notes, reasons
LongText = Annotated[str, "long_text"]

COLUMN_TYPES: dict = {
    Money: Numeric(18, 4),
    Quantity: Numeric(18, 4),
    Percent: Numeric(7, 4),
    ShortCode: String(50),
    Name: String(255),
    LongText: Text(),
}
