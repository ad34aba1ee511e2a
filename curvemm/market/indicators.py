"""Technical indicators — EMA, RSI, Fibonacci levels, phase. Pure functions, no I/O.

Every function degrades on short series instead of raising: a token that
launched minutes ago still gets a defined indicator set computed over the
samples that exist.
"""

from curvemm.market.models import Indicators, MarketPhase, Trend

EMA_FAST = 9
EMA_MEDIUM = 21
EMA_SLOW = 50
RSI_PERIOD = 14
FIB_LOOKBACK = 50

RSI_OVERBOUGHT = 70.0
RSI_OVERSOLD = 30.0


def calculate_ema(prices: list[float], period: int) -> list[float]:
    """Calculate an Exponential Moving Average series.

    Uses ``EMA_today = price × k + EMA_yesterday × (1 - k)`` with
    ``k = 2 / (period + 1)``, seeded with the SMA of the first *period*
    prices. Entries before the seed carry the seed value.

    With fewer than *period* prices every entry equals the simple average
    of the available prices.

    Raises ``ValueError`` on an empty series or a non-positive period.
    """
    if period < 1:
        raise ValueError(f"EMA period must be positive, got {period}")
    if not prices:
        raise ValueError("Need at least one price for EMA")

    if len(prices) < period:
        average = sum(prices) / len(prices)
        return [average] * len(prices)

    k = 2.0 / (period + 1)
    seed = sum(prices[:period]) / period
    ema: list[float] = [seed] * len(prices)

    for i in range(period, len(prices)):
        ema[i] = prices[i] * k + ema[i - 1] * (1 - k)

    return ema


# ── RSI ──────────────────────────────────────────────────────────────────


def calculate_rsi(prices: list[float], period: int = RSI_PERIOD) -> float:
    """Calculate Wilder's Relative Strength Index for the latest price.

    Algorithm (Wilder-smoothed):
        1. delta = price[i] - price[i-1]
        2. Seed average gain/loss = SMA of the first *period* deltas.
        3. Subsequent: avg = (prev_avg × (period-1) + current) / period
        4. RSI = 100 - 100 / (1 + avg_gain / avg_loss)

    With fewer than ``period + 1`` prices the period shrinks to the number
    of deltas available. A series with no movement (or a single price)
    reads a neutral 50. The result is clamped to [0, 100].
    """
    deltas = [prices[i] - prices[i - 1] for i in range(1, len(prices))]
    if not deltas:
        return 50.0
    period = min(period, len(deltas))

    gains = [max(d, 0.0) for d in deltas]
    losses = [abs(min(d, 0.0)) for d in deltas]

    avg_gain = sum(gains[:period]) / period
    avg_loss = sum(losses[:period]) / period
    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (period - 1) + gains[i]) / period
        avg_loss = (avg_loss * (period - 1) + losses[i]) / period

    if avg_loss == 0:
        rsi = 50.0 if avg_gain == 0 else 100.0
    else:
        rsi = 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)
    return min(100.0, max(0.0, rsi))


# ── Fibonacci ────────────────────────────────────────────────────────────


def fibonacci_levels(
    prices: list[float], lookback: int = FIB_LOOKBACK
) -> tuple[float, float, float, float]:
    """Return ``(high, low, fib_382, fib_618)`` over the last *lookback* prices.

    Levels are retracements measured down from the window high.
    """
    if not prices:
        raise ValueError("Need at least one price for Fibonacci levels")
    window = prices[-lookback:]
    high = max(window)
    low = min(window)
    span = high - low
    return high, low, high - span * 0.382, high - span * 0.618


def in_golden_pocket(price: float, fib_382: float, fib_618: float) -> bool:
    """Price sits between the 61.8% and 38.2% retracements."""
    if fib_382 <= fib_618:
        return False
    return fib_618 <= price <= fib_382


def trend_from_emas(fast: float, medium: float, slow: float) -> Trend:
    if fast > medium > slow:
        return Trend.BULLISH
    if fast < medium < slow:
        return Trend.BEARISH
    return Trend.NEUTRAL


# ── Aggregate ────────────────────────────────────────────────────────────


def compute_indicators(prices: list[float]) -> Indicators:
    """Compute the full indicator set from an oldest-first price series."""
    if not prices:
        raise ValueError("Need at least one price to compute indicators")

    price = prices[-1]
    ema_fast = calculate_ema(prices, EMA_FAST)[-1]
    ema_medium = calculate_ema(prices, EMA_MEDIUM)[-1]
    ema_slow = calculate_ema(prices, EMA_SLOW)[-1]
    high, low, fib_382, fib_618 = fibonacci_levels(prices)

    return Indicators(
        price=price,
        ema_fast=ema_fast,
        ema_medium=ema_medium,
        ema_slow=ema_slow,
        rsi=calculate_rsi(prices),
        fib_high=high,
        fib_low=low,
        fib_382=fib_382,
        fib_618=fib_618,
        trend=trend_from_emas(ema_fast, ema_medium, ema_slow),
        in_golden_pocket=in_golden_pocket(price, fib_382, fib_618),
        sample_size=len(prices),
    )


def classify_phase(indicators: Indicators) -> MarketPhase:
    """Map an indicator set onto a ``MarketPhase``.

    Overbought uptrends read as distribution and oversold downtrends as
    accumulation; a directionless market inside the golden pocket is also
    accumulation.
    """
    if indicators.trend is Trend.BULLISH:
        if indicators.rsi >= RSI_OVERBOUGHT:
            return MarketPhase.DISTRIBUTION
        return MarketPhase.TRENDING_UP
    if indicators.trend is Trend.BEARISH:
        if indicators.rsi <= RSI_OVERSOLD:
            return MarketPhase.ACCUMULATING
        return MarketPhase.TRENDING_DOWN
    if indicators.in_golden_pocket:
        return MarketPhase.ACCUMULATING
    return MarketPhase.CONSOLIDATING
