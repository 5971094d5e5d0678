"""Numeric parsing shared by the upstream adapters."""

from decimal import Decimal, InvalidOperation


def finite_decimal(value: object) -> Decimal:
    """Parse ``value`` as ``Decimal(str(value))``, rejecting NaN and infinities.

    Raises:
        decimal.InvalidOperation: for unparsable or non-finite values, so
            adapters treat them like any other malformed payload.
    """
    result = Decimal(str(value))
    if not result.is_finite():
        raise InvalidOperation(f"non-finite value {value!r}")
    return result
