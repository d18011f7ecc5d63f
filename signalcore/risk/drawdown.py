"""Drawdown tracking and minimum-balance guard — pure math, no I/O.

Tracks peak balance and the deepest retracement from it.  New entries are
blocked once the balance falls below ``min_balance_ratio`` of the initial
balance.
"""


class DrawdownTracker:
    """Tracks balance peaks and computes drawdown metrics.

    Args:
        initial_balance: Starting account balance.
        min_balance_ratio: Fraction of the initial balance below which
                           trading stops (e.g. 0.5 for 50 %).
    """

    def __init__(
        self,
        initial_balance: float,
        min_balance_ratio: float = 0.5,
    ) -> None:
        if initial_balance <= 0:
            raise ValueError(
                f"initial_balance must be positive, got {initial_balance}"
            )
        if not 0.0 <= min_balance_ratio <= 1.0:
            raise ValueError(
                f"min_balance_ratio must be within [0, 1], got {min_balance_ratio}"
            )
        self._initial_balance = initial_balance
        self._peak_balance = initial_balance
        self._current_balance = initial_balance
        self._max_drawdown_pct = 0.0
        self._min_balance_ratio = min_balance_ratio

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, balance: float) -> None:
        """Record the balance after a closed trade."""
        self._current_balance = balance
        if balance > self._peak_balance:
            self._peak_balance = balance
        self._max_drawdown_pct = max(self._max_drawdown_pct, self.drawdown_pct)

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_balance(self) -> float:
        return self._peak_balance

    @property
    def current_balance(self) -> float:
        return self._current_balance

    @property
    def drawdown_pct(self) -> float:
        """Current drawdown as a percentage of the peak."""
        return (self._peak_balance - self._current_balance) / self._peak_balance * 100.0

    @property
    def max_drawdown_pct(self) -> float:
        """Largest drawdown seen so far, in percent."""
        return self._max_drawdown_pct

    @property
    def can_trade(self) -> bool:
        """``False`` once the balance drops below the minimum-balance floor."""
        return self._current_balance >= self._initial_balance * self._min_balance_ratio
