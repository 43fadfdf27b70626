from __future__ import annotations

from fractions import Fraction

from sqlalchemy import String
from sqlalchemy.types import TypeDecorator


class Rational(TypeDecorator):
    """Exact fraction stored as ``"numerator/denominator"`` text.

    Only compare these values in Python; SQL comparisons on the text form are
    meaningless.
    """

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Fraction(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Fraction(value)
