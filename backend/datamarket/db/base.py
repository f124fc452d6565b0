from decimal import Decimal
from typing import Annotated

import sqlalchemy as sa
from sqlalchemy.orm import DeclarativeBase, mapped_column


# Base class
class Base(DeclarativeBase):
    pass


# Common column types
MONEY = sa.Numeric(18, 8)
Money = Annotated[
    Decimal, mapped_column(MONEY, nullable=False, server_default="0", default=Decimal("0"))
]
Counter = Annotated[int, mapped_column(sa.Integer, nullable=False, server_default="0", default=0)]
