"""
History Builder

Converts a chronological sequence of daily OHLCV bars into labelled feature
rows. Indicators for each bar are computed only from the bars seen up to and
including it, so the rows can be used for training without look-ahead.
"""

import logging
from typing import List, Optional, Sequence

from src.analyzers.technical_analysis import calculate_feature_vector
from src.data.models import OHLCV, HistoricalRecord, Signal

logger = logging.getLogger(__name__)

RSI_OVERSOLD = 30.0
RSI_OVERBOUGHT = 70.0


def label_from_rsi(rsi: float, oversold: float = RSI_OVERSOLD, overbought: float = RSI_OVERBOUGHT) -> Signal:
    """Map an RSI reading to a signal.

    Above `overbought` is a sell, below `oversold` is a buy; both thresholds
    themselves are a hold.
    """
    if rsi > overbought:
        return Signal.SELL
    if rsi < oversold:
        return Signal.BUY
    return Signal.HOLD


def build_historical_records(
    symbol: str,
    quotes: Sequence[Optional[OHLCV]],
    oversold: float = RSI_OVERSOLD,
    overbought: float = RSI_OVERBOUGHT,
    rsi_trailing: bool = False,
) -> List[HistoricalRecord]:
    """Build one labelled record per daily bar.

    Args:
        symbol: Symbol the bars belong to
        quotes: Daily bars sorted by date ascending (oldest first)
        oversold: RSI below which a bar is labelled buy
        overbought: RSI above which a bar is labelled sell
        rsi_trailing: Use the trailing RSI window

    Returns:
        Records in input order; an empty list if the input cannot be processed
    """
    if not quotes:
        logger.warning(f"No historical quotes provided for {symbol}")
        return []

    records: List[HistoricalRecord] = []
    closes: List[float] = []

    try:
        for quote in quotes:
            if quote is None:
                logger.warning(f"Skipping empty historical quote for {symbol}")
                continue

            closes.append(quote.close)
            features = calculate_feature_vector(
                open=quote.open,
                high=quote.high,
                low=quote.low,
                close=quote.close,
                volume=quote.volume,
                closes=closes,
                rsi_trailing=rsi_trailing,
            )

            records.append(HistoricalRecord(
                symbol=symbol,
                date=quote.date,
                signal=label_from_rsi(features.rsi, oversold, overbought),
                **features.model_dump(),
            ))

    except Exception as e:
        logger.error(f"Error building historical records for {symbol}: {e}")
        return []

    logger.info(f"Built {len(records)} historical records for {symbol}")
    return records
