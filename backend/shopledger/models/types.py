from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import Integer
from sqlalchemy.types import TypeDecorator


class FixedDecimal(TypeDecorator):
    """
    Fixed-scale decimal stored as a scaled integer.

    SQLite has no native decimal type; storing 1.250 kg as 1250 keeps stock
    and quantities exact across snapshot round-trips.
    """
    impl = Integer
    cache_ok = True

    def __init__(self, scale: int = 3):
        super().__init__()
        self.scale = scale
        self._factor = Decimal(10) ** scale
        self._quantum = Decimal(1).scaleb(-scale)

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if not isinstance(value, Decimal):
            value = Decimal(str(value))
        return int((value * self._factor).quantize(Decimal(1), rounding=ROUND_HALF_UP))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(value) / self._factor).quantize(self._quantum)
