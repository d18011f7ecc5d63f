"""Exit-type detection from the exchange's order history.

Post-hoc reconciliation: the newest filled order for the position's symbol
tells how the position was closed.  Anything ambiguous is classified as
``MANUAL`` rather than raising.
"""

import logging
from typing import Iterable

from signalcore.broker.models import ExchangeOrder, ExitType, PositionRecord

logger = logging.getLogger("signalcore.exit_type")

_STOP_TYPES = {"Stop", "StopLoss"}
_TP_EXITS = (ExitType.TAKE_PROFIT_1, ExitType.TAKE_PROFIT_2, ExitType.TAKE_PROFIT_3)


def identify_tp_level(price: float, position: PositionRecord) -> int:
    """1-based index of the take-profit nearest to *price* (0 without TPs)."""
    best_index, best_distance = 0, float("inf")
    for index, level in enumerate(position.take_profits, start=1):
        distance = abs(price - level)
        if distance < best_distance:
            best_index, best_distance = index, distance
    return best_index


def determine_exit_type_from_history(
    order_history: Iterable[ExchangeOrder],
    position: PositionRecord,
) -> ExitType:
    """Classify how *position* was closed.

    A reduce-only limit fill is matched to the nearest take-profit by its
    ``fill_price`` (average fill price, falling back to the quoted ``price``),
    not by the quoted price alone.
    """
    filled = sorted(
        (
            o for o in order_history
            if o.symbol == position.symbol and o.order_status == "Filled"
        ),
        key=lambda o: o.updated_time,
        reverse=True,
    )
    if not filled:
        logger.debug("No filled orders for %s, defaulting to MANUAL", position.symbol)
        return ExitType.MANUAL

    last = filled[0]
    if last.stop_order_type in _STOP_TYPES:
        return ExitType.STOP_LOSS
    if last.stop_order_type == "TrailingStop":
        return ExitType.TRAILING_STOP
    if last.order_type == "Limit" and last.reduce_only:
        level = identify_tp_level(last.fill_price, position)
        if 1 <= level <= len(_TP_EXITS):
            return _TP_EXITS[level - 1]
        return ExitType.TAKE_PROFIT_1
    if last.order_type == "Market" and last.reduce_only:
        return ExitType.MANUAL

    logger.debug(
        "Unrecognised closing order %s (%s/%s), defaulting to MANUAL",
        last.order_id, last.order_type, last.stop_order_type or "-",
    )
    return ExitType.MANUAL
