"""Grid trading producer — buy near lower grid lines, sell near upper ones."""

from __future__ import annotations

import itertools
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Literal

import numpy as np
import structlog

from decision_core.config.schema import RuleConfig
from decision_core.models import RuleInput, RuleSignal
from decision_core.rules.base import RuleProducer
from decision_core.rules.registry import register

log = structlog.get_logger("rules.grid")

OrderStatus = Literal["pending", "filled", "cancelled"]


@dataclass
class GridOrder:
    order_id: str
    side: Literal["buy", "sell"]
    price: float
    amount: float
    created_at: datetime
    status: OrderStatus = "pending"


@register
class GridRule(RuleProducer):
    """Evenly spaced grid between lower_price and upper_price for one symbol.

    A buy is proposed when price is within ``line_tolerance`` of the grid line
    below it and no buy is pending there; a sell when price is near the line
    above it and earlier grid buys below that line have filled. Orders exist
    only once the caller books a submitted signal with ``record_order``.

    Params: symbol, lower_price, upper_price, grid_count,
    investment_per_grid (quote currency), line_tolerance.
    """

    rule_type = "grid"

    def __init__(self, config: RuleConfig | None = None) -> None:
        super().__init__(config)
        self.symbol = str(self.params.get("symbol", "BTC"))
        self.lower_price = float(self.params.get("lower_price", 0.0))
        self.upper_price = float(self.params.get("upper_price", 0.0))
        self.grid_count = int(self.params.get("grid_count", 10))
        self.investment_per_grid = float(self.params.get("investment_per_grid", 100.0))
        self.line_tolerance = float(self.params.get("line_tolerance", 0.005))
        if self.grid_count < 1 or not 0 < self.lower_price < self.upper_price:
            raise ValueError(
                f"Invalid grid: lower={self.lower_price} upper={self.upper_price} count={self.grid_count}"
            )
        self.grid_lines = np.linspace(self.lower_price, self.upper_price, self.grid_count + 1).tolist()
        self._orders: list[GridOrder] = []
        self._lock = threading.Lock()
        self._seq = itertools.count(1)
        self.realized_pnl = 0.0
        log.info(
            "grid_lines_calculated",
            symbol=self.symbol,
            lines=len(self.grid_lines),
            lower=self.lower_price,
            upper=self.upper_price,
        )

    # ── Order bookkeeping ─────────────────────────────────────

    @property
    def orders(self) -> list[GridOrder]:
        with self._lock:
            return list(self._orders)

    def _bracketing_lines(self, price: float) -> tuple[float, float] | None:
        for low, high in zip(self.grid_lines, self.grid_lines[1:]):
            if low <= price < high:
                return low, high
        return None

    def _same_level(self, a: float, b: float) -> bool:
        return abs(a - b) <= b * 1e-9

    def _has_pending(self, side: str, line: float) -> bool:
        return any(
            o.side == side and o.status == "pending" and self._same_level(o.price, line)
            for o in self._orders
        )

    def _place(self, side: Literal["buy", "sell"], price: float, amount: float, ts: datetime) -> GridOrder:
        order = GridOrder(
            order_id=f"grid-{self.symbol}-{side}-{price:.8g}-{next(self._seq)}",
            side=side,
            price=price,
            amount=amount,
            created_at=ts,
        )
        self._orders.append(order)
        return order

    def record_order(self, signal: RuleSignal) -> GridOrder:
        """Book a pending order for a grid signal the caller has submitted.

        Signals that lose arbitration or fail validation are never booked, so
        they leave their grid line free.
        """
        if signal.rule_type != self.rule_type or signal.symbol != self.symbol or signal.signal_type == "hold":
            raise ValueError(f"Not a {self.symbol} grid order signal: {signal.rule_type} {signal.signal_type}")
        if signal.suggested_price is None or signal.suggested_amount is None:
            raise ValueError("Grid order signal needs a price and an amount")
        price = signal.suggested_price
        # Buys are sized in quote currency, sells in base units.
        amount = signal.suggested_amount / price if signal.signal_type == "buy" else signal.suggested_amount
        with self._lock:
            order = self._place(signal.signal_type, price, amount, signal.timestamp)
        log.info("grid_order_recorded", order_id=order.order_id, side=order.side, price=price, amount=amount)
        return order

    def update_order(self, order_id: str, status: Literal["filled", "cancelled"]) -> GridOrder | None:
        """Mark a pending grid order filled or cancelled; a filled sell books its profit."""
        with self._lock:
            order = next((o for o in self._orders if o.order_id == order_id), None)
            if order is None or order.status != "pending":
                return None
            order.status = status
            if status == "filled" and order.side == "sell":
                bought = [o for o in self._orders if o.side == "buy" and o.status == "filled" and o.price < order.price]
                if bought:
                    cost = sum(o.price * o.amount for o in bought) / sum(o.amount for o in bought)
                    self.realized_pnl += (order.price - cost) * order.amount
                    for o in bought:
                        o.status = "cancelled"
        log.info("grid_order_updated", order_id=order_id, status=status, realized_pnl=self.realized_pnl)
        return order

    def stats(self) -> dict[str, float | int]:
        with self._lock:
            return {
                "total_orders": len(self._orders),
                "pending_orders": sum(1 for o in self._orders if o.status == "pending"),
                "filled_orders": sum(1 for o in self._orders if o.status == "filled"),
                "realized_pnl": self.realized_pnl,
            }

    # ── Signals ───────────────────────────────────────────────

    def generate_signal(self, input: RuleInput) -> list[RuleSignal] | None:
        if not self.enabled:
            return None
        price_data = self.price_data(self.symbol, input)
        if price_data is None:
            log.debug("grid_price_missing", symbol=self.symbol)
            return None

        price = price_data.price
        lines = self._bracketing_lines(price)
        if lines is None:
            log.debug("grid_price_out_of_range", symbol=self.symbol, price=price)
            return None
        lower, upper = lines

        signals: list[RuleSignal] = []
        with self._lock:
            if abs(price - lower) / lower < self.line_tolerance and not self._has_pending("buy", lower):
                signal = self.make_signal(
                    input,
                    signal_type="buy",
                    symbol=self.symbol,
                    reason=f"grid buy near line {lower:.2f}",
                    confidence=0.7,
                    rule_score=0.5,
                    strength="moderate",
                    suggested_price=lower,
                    suggested_amount=self.investment_per_grid,
                )
                if self.accept_signal(signal):
                    signals.append(signal)

            if abs(price - upper) / upper < self.line_tolerance and not self._has_pending("sell", upper):
                held = sum(
                    o.amount for o in self._orders
                    if o.side == "buy" and o.status == "filled" and o.price < upper
                )
                if held > 0:
                    signal = self.make_signal(
                        input,
                        signal_type="sell",
                        symbol=self.symbol,
                        reason=f"grid sell near line {upper:.2f}",
                        confidence=0.7,
                        rule_score=0.5,
                        strength="moderate",
                        suggested_price=upper,
                        suggested_amount=held,
                    )
                    if self.accept_signal(signal):
                        signals.append(signal)

        return signals or None
