"""
Technical Analysis Module for the Crypto Signal Assistant

This module provides the indicator functions that feed the signal classifier:
Simple and Exponential Moving Averages, RSI, MACD, volatility, momentum and
trend strength. Every function takes a price series ordered oldest first and
returns 0.0 (the "unavailable" sentinel) when the series is too short.
"""

import logging
import math
from typing import Sequence
import numpy as np
import talib as ta

from config.settings import signal_config
from src.data.models import FeatureVector, Quote

logger = logging.getLogger(__name__)


def _as_array(prices: Sequence[float]) -> np.ndarray:
    return np.asarray(prices, dtype=np.float64)


def calculate_sma(prices: Sequence[float], period: int) -> float:
    """Calculate Simple Moving Average for a given period.

    Args:
        prices: List of prices (most recent price should be last)
        period: Number of periods for the moving average

    Returns:
        Average of the last `period` prices, or 0.0 if insufficient data
    """
    if period <= 0 or len(prices) < period:
        return 0.0
    if period == 1:
        return float(prices[-1])

    sma = ta.SMA(_as_array(prices), timeperiod=period)
    return float(sma[-1])


def calculate_ema(prices: Sequence[float], period: int) -> float:
    """Calculate Exponential Moving Average for a given period.

    The average is seeded with the mean of the first `period` prices and then
    smoothed with a factor of 2 / (period + 1) over the remaining prices.

    Args:
        prices: List of prices (most recent price should be last)
        period: Number of periods for the moving average

    Returns:
        EMA value or 0.0 if insufficient data
    """
    if period <= 0 or len(prices) < period:
        return 0.0
    if period == 1:
        return float(prices[-1])

    ema = ta.EMA(_as_array(prices), timeperiod=period)
    return float(ema[-1])


def calculate_rsi(prices: Sequence[float], period: int = 14, trailing: bool = False) -> float:
    """Calculate Relative Strength Index.

    Gains and losses are summed over `period - 1` consecutive deltas. By
    default these are the first deltas of the series; with `trailing=True`
    the most recent deltas are used instead.

    Args:
        prices: List of closing prices (most recent price should be last)
        period: RSI period (default 14)
        trailing: Evaluate the most recent window instead of the leading one

    Returns:
        RSI in [0, 100], 100.0 when there is no loss in the window, or 0.0 if
        insufficient data
    """
    if period <= 0 or len(prices) < period:
        return 0.0

    closes = _as_array(prices)
    window = closes[-period:] if trailing else closes[:period]
    deltas = np.diff(window)

    gain = float(deltas[deltas > 0].sum())
    loss = float(-deltas[deltas < 0].sum())

    if loss == 0:
        return 100.0

    rs = gain / loss
    return 100.0 - (100.0 / (1.0 + rs))


def calculate_macd(prices: Sequence[float], short_period: int = 12, long_period: int = 26) -> float:
    """Calculate MACD as the difference between a short and a long EMA."""
    return calculate_ema(prices, short_period) - calculate_ema(prices, long_period)


def calculate_volatility(prices: Sequence[float], period: int = 10) -> float:
    """Population standard deviation of the last `period` closes."""
    if period <= 0 or len(prices) < period:
        return 0.0

    window = _as_array(prices)[-period:]
    return float(np.std(window))


def calculate_momentum(prices: Sequence[float], period: int = 10) -> float:
    """Difference between the latest close and the close `period` positions from the end."""
    if period <= 0 or len(prices) < period:
        return 0.0

    return float(prices[-1]) - float(prices[-period])


def calculate_trend_strength(sma: float, macd: float) -> float:
    """MACD magnitude as a percentage of the SMA.

    Returns 0.0 when the SMA is unavailable (0) or the ratio is not finite.
    """
    if sma == 0:
        return 0.0

    strength = abs(macd / sma) * 100
    if not math.isfinite(strength):
        return 0.0
    return strength


def calculate_feature_vector(
    open: float,
    high: float,
    low: float,
    close: float,
    volume: float,
    closes: Sequence[float],
    rsi_trailing: bool = False,
) -> FeatureVector:
    """Calculate every indicator over `closes` and combine them with the bar values.

    Args:
        open, high, low, close, volume: Bar values for the current point in time
        closes: Price series the indicators are computed on (oldest first)
        rsi_trailing: Use the trailing RSI window

    Returns:
        FeatureVector for the classifier
    """
    sma = calculate_sma(closes, signal_config.SMA_PERIOD)
    macd = calculate_macd(closes, signal_config.MACD_SHORT_PERIOD, signal_config.MACD_LONG_PERIOD)

    return FeatureVector(
        open=open,
        high=high,
        low=low,
        close=close,
        volume=volume,
        sma=sma,
        rsi=calculate_rsi(closes, signal_config.RSI_PERIOD, trailing=rsi_trailing),
        macd=macd,
        volatility=calculate_volatility(closes, signal_config.VOLATILITY_PERIOD),
        momentum=calculate_momentum(closes, signal_config.MOMENTUM_PERIOD),
        trend_strength=calculate_trend_strength(sma, macd),
    )


def build_snapshot_features(quote: Quote, rsi_trailing: bool = False) -> FeatureVector:
    """Build features from a single quote using the [open, high, low, close] window."""
    window = [quote.open, quote.high, quote.low, quote.close]
    logger.debug(f"Computing snapshot indicators for {quote.symbol} over {window}")

    return calculate_feature_vector(
        open=quote.open,
        high=quote.high,
        low=quote.low,
        close=quote.close,
        volume=quote.volume,
        closes=window,
        rsi_trailing=rsi_trailing,
    )
