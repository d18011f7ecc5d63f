"""Position sizing — pure math, no I/O.

Converts a USDT notional into a contract quantity at the entry price.
"""


def calculate_quantity(
    notional_usdt: float,
    entry_price: float,
    leverage: float = 1.0,
) -> float:
    """Calculate position quantity in base-asset units.

    Formula::

        quantity = notional_usdt × leverage / entry_price

    Args:
        notional_usdt: Margin committed to the trade (e.g. 100.0).
        entry_price: Expected fill price.
        leverage: Futures leverage multiplier (>= 1).

    Raises:
        ValueError: If any input is out of range.
    """
    if notional_usdt <= 0:
        raise ValueError(f"notional_usdt must be positive, got {notional_usdt}")
    if entry_price <= 0:
        raise ValueError(f"entry_price must be positive, got {entry_price}")
    if leverage < 1:
        raise ValueError(f"leverage must be >= 1, got {leverage}")

    return notional_usdt * leverage / entry_price
