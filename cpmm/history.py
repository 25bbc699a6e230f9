"""Trade history aggregation: Swap events to hourly candles.

Rates are quoted as quote-token units per base-token unit. The base/quote
orientation is picked once per series from a token priority table, so a
pair is always charted the same way round regardless of which token the
caller listed first.
"""

from __future__ import annotations

import itertools
from collections.abc import Iterable, Mapping, Sequence
from decimal import Decimal

import structlog

from cpmm.amounts import rate
from cpmm.constants import HOUR_SECONDS, MAX_CANDLES, TOKEN_PRIORITY
from cpmm.models.history import Candle, PriceChange, TradeEvent
from cpmm.models.types import normalize_address

logger = structlog.get_logger()

# Priority given to tokens missing from the table
UNKNOWN_PRIORITY = -1


def choose_orientation(
    token_a: str,
    token_b: str,
    priority: Mapping[str, int] = TOKEN_PRIORITY,
) -> tuple[str, str]:
    """Pick (base, quote) for a pair.

    The token with the higher priority is the quote currency. Ties go to
    token A as quote.
    """
    a, b = normalize_address(token_a), normalize_address(token_b)
    priority_a = priority.get(a, UNKNOWN_PRIORITY)
    priority_b = priority.get(b, UNKNOWN_PRIORITY)
    if priority_a >= priority_b:
        return b, a
    return a, b


def bucket_start(timestamp: int) -> int:
    """Start of the UTC hour containing ``timestamp``."""
    return timestamp - timestamp % HOUR_SECONDS


def order_events(events: Iterable[TradeEvent]) -> list[TradeEvent]:
    """Events in canonical order.

    Sorted by timestamp. Events sharing a timestamp are ordered by block
    position when every one of them has it, and otherwise keep their input
    order.
    """
    ordered: list[TradeEvent] = []
    by_time = sorted(events, key=lambda event: event.block_timestamp)
    for _, group in itertools.groupby(by_time, key=lambda event: event.block_timestamp):
        same_time = list(group)
        positions = [event.position for event in same_time]
        if len(same_time) > 1 and None not in positions:
            same_time.sort(key=lambda event: event.position)
        ordered.extend(same_time)
    return ordered


class TradeHistoryAggregator:
    """Builds OHLC candles for one base/quote orientation.

    Args:
        base_token: Token whose price is charted
        quote_token: Token the price is expressed in
        decimals: Token decimals keyed by address
        max_candles: Most candles returned; a longer series keeps its most
            recent hours
    """

    def __init__(
        self,
        base_token: str,
        quote_token: str,
        decimals: Mapping[str, int],
        max_candles: int = MAX_CANDLES,
    ) -> None:
        self.base_token = normalize_address(base_token)
        self.quote_token = normalize_address(quote_token)
        if self.base_token == self.quote_token:
            raise ValueError("Base and quote tokens must differ")
        if max_candles < 1:
            raise ValueError(f"max_candles must be positive, got {max_candles}")
        self.max_candles = max_candles
        normalized = {normalize_address(token): value for token, value in decimals.items()}
        try:
            self.base_decimals = normalized[self.base_token]
            self.quote_decimals = normalized[self.quote_token]
        except KeyError as e:
            raise ValueError(f"Missing decimals for token {e.args[0]}") from e

    @classmethod
    def for_pair(
        cls,
        token_a: str,
        token_b: str,
        decimals: Mapping[str, int],
        priority: Mapping[str, int] = TOKEN_PRIORITY,
        max_candles: int = MAX_CANDLES,
    ) -> TradeHistoryAggregator:
        """Aggregator oriented by ``choose_orientation``."""
        base, quote = choose_orientation(token_a, token_b, priority)
        return cls(base, quote, decimals, max_candles)

    def trade_rate(self, event: TradeEvent) -> Decimal | None:
        """Quote units per base unit for one trade.

        Returns None for a trade on another pair or with a zero amount.
        """
        if not event.involves(self.base_token, self.quote_token):
            return None
        if event.amount_in <= 0 or event.amount_out <= 0:
            return None

        if normalize_address(event.token_in) == self.base_token:
            # Sold base for quote
            return rate(event.amount_out, self.quote_decimals, event.amount_in, self.base_decimals)
        return rate(event.amount_in, self.quote_decimals, event.amount_out, self.base_decimals)

    def aggregate(self, events: Iterable[TradeEvent], until: int | None = None) -> list[Candle]:
        """Hourly candles for the given events.

        Events are put in ``order_events`` order. Empty hours from the first
        populated hour through the last populated hour, or through the hour
        containing ``until`` when that is later, become flat candles at the
        previous close. Only the last ``max_candles`` hours are returned;
        the first of them opens at the close before it.

        Args:
            events: Swap events in any order
            until: Optional timestamp to extend gap filling to

        Returns:
            Candles ordered by bucket_start; empty when no event applies
        """
        buckets: dict[int, list[Decimal]] = {}
        skipped = 0
        for event in order_events(events):
            trade_rate = self.trade_rate(event)
            if trade_rate is None:
                skipped += 1
                continue
            buckets.setdefault(bucket_start(event.block_timestamp), []).append(trade_rate)

        if skipped:
            logger.debug("trade_events_skipped", count=skipped, base=self.base_token, quote=self.quote_token)
        if not buckets:
            return []

        first = min(buckets)
        last = max(buckets)
        if until is not None:
            last = max(last, bucket_start(until))

        # The first candle opens at its own first rate
        last_close = buckets[first][0]
        window_start = last - (self.max_candles - 1) * HOUR_SECONDS
        if window_start > first:
            earlier = [start for start in buckets if start < window_start]
            last_close = buckets[max(earlier)][-1]
            logger.debug(
                "candles_truncated",
                base=self.base_token,
                quote=self.quote_token,
                dropped_hours=(window_start - first) // HOUR_SECONDS,
            )
            first = window_start

        candles: list[Candle] = []
        for start in range(first, last + HOUR_SECONDS, HOUR_SECONDS):
            rates = buckets.get(start)
            if not rates:
                flat = float(last_close)
                candles.append(Candle(bucket_start=start, open=flat, high=flat, low=flat, close=flat))
                continue

            open_rate = last_close
            close_rate = rates[-1]
            candles.append(
                Candle(
                    bucket_start=start,
                    open=float(open_rate),
                    high=float(max(open_rate, *rates)),
                    low=float(min(open_rate, *rates)),
                    close=float(close_rate),
                )
            )
            last_close = close_rate

        return candles

    def rate_change(self, events: Iterable[TradeEvent]) -> PriceChange | None:
        """Change from the first to the last trade rate on the pair.

        Returns None with fewer than two applicable trades.
        """
        rates = [self.trade_rate(event) for event in order_events(events)]
        applied = [trade_rate for trade_rate in rates if trade_rate is not None]
        if len(applied) < 2:
            return None
        return _change(float(applied[0]), float(applied[-1]))


def price_change(candles: Sequence[Candle]) -> PriceChange | None:
    """Change from the first candle's close to the last candle's close.

    Returns None for an empty series. The percentage is 0 when the first
    close is 0.
    """
    if not candles:
        return None
    return _change(candles[0].close, candles[-1].close)


def _change(first: float, last: float) -> PriceChange:
    change = last - first
    change_pct = (change / first) * 100 if first != 0 else 0.0
    return PriceChange(first_price=first, last_price=last, change=change, change_pct=change_pct)


def recent_trades(events: Iterable[TradeEvent], limit: int = 5) -> list[TradeEvent]:
    """Most recent trades, newest first."""
    if limit < 0:
        raise ValueError(f"limit cannot be negative: {limit}")
    newest_first = list(reversed(order_events(events)))
    return newest_first[:limit]


__all__ = [
    "UNKNOWN_PRIORITY",
    "TradeHistoryAggregator",
    "bucket_start",
    "choose_orientation",
    "order_events",
    "price_change",
    "recent_trades",
]
