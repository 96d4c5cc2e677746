import asyncio
import logging
from typing import Optional
from langchain_core.tools import tool

from config.settings import settings, signal_config
from src.integrations.coinmarketcap_client import coinmarketcap_client, QuoteSourceError
from src.utils.database import db_manager
from src.analyzers.history_builder import build_historical_records
from src.analyzers.signal_classifier import ModelClassifier, create_classifier
from src.analyzers.technical_analysis import build_snapshot_features
from src.analyzers.utils import get_signal_summary, validate_data_sufficiency

logger = logging.getLogger(__name__)

# Shared by the tools and the background monitor
signal_classifier = create_classifier(settings)


def _clean_symbol(symbol: str) -> str:
    return (symbol or "").upper().strip()


@tool
async def get_market_data(symbol: str) -> str:
    """Get the latest market quote for a crypto symbol.

    Use this when the user asks about the current price or volume of a coin.

    Args:
        symbol: Crypto symbol (e.g., 'BTC', 'ETH', 'SOL')

    Returns:
        Formatted string with the latest price and volume
    """
    symbol = _clean_symbol(symbol)
    if not symbol:
        return "❌ Symbol is required."

    logger.info(f"Retrieving latest market data for {symbol}")

    try:
        quote = await coinmarketcap_client.get_latest_quote(symbol)
    except QuoteSourceError as e:
        logger.error(f"Error fetching market data for {symbol}: {e}")
        return f"❌ Error fetching market data for {symbol}."

    price = quote.price if quote.price is not None else quote.close
    return (
        f"📊 {symbol}: Price ${price:,.2f} | Volume {quote.volume:,.0f} | "
        f"Open ${quote.open:,.2f} | High ${quote.high:,.2f} | Low ${quote.low:,.2f} | Close ${quote.close:,.2f}"
    )


@tool
async def train_model(symbol: str, days: Optional[int] = None) -> str:
    """Train the signal model on recent daily history for a crypto symbol.

    Fetches daily OHLCV history, derives indicators and labels for every day,
    stores the labelled rows and retrains the classification model.

    Args:
        symbol: Crypto symbol to train on (e.g., 'BTC')
        days: Number of daily bars to fetch (default: configured history days, max: 365)

    Returns:
        A summary message indicating the result of training
    """
    symbol = _clean_symbol(symbol)
    if not symbol:
        return "❌ Symbol is required."

    if not isinstance(signal_classifier, ModelClassifier):
        return "❌ Training is only available with the model-based classifier."

    days = max(1, min(settings.history_days if days is None else days, 365))
    logger.info(f"Training model on {days} days of {symbol} history")

    try:
        quotes = await coinmarketcap_client.get_historical_data(symbol, days)
    except QuoteSourceError as e:
        logger.error(f"Error fetching historical data for {symbol}: {e}")
        return f"❌ Error fetching historical data for {symbol}."

    records = build_historical_records(
        symbol,
        quotes,
        oversold=settings.rsi_oversold_threshold,
        overbought=settings.rsi_overbought_threshold,
        rsi_trailing=settings.rsi_trailing_window,
    )
    if not records:
        return "❌ No valid data available for training."

    note = ""
    if not validate_data_sufficiency(records, signal_config.SMA_PERIOD):
        note = f" Only {len(records)} days of history; SMA is unavailable for every row."

    try:
        await db_manager.append_historical_records(records)
    except Exception as e:
        logger.error(f"Failed to store historical records for {symbol}: {e}")

    try:
        await asyncio.to_thread(signal_classifier.train, records)
    except ValueError as e:
        return f"❌ {e}"

    return f"✅ Model trained successfully on {len(records)} records for {symbol}.{note}"


@tool
async def predict_signal(symbol: str) -> str:
    """Predict whether to buy, hold or sell a crypto symbol right now.

    Args:
        symbol: Crypto symbol (e.g., 'BTC', 'ETH')

    Returns:
        Indicator summary and the buy/hold/sell decision
    """
    symbol = _clean_symbol(symbol)
    if not symbol:
        return "❌ Symbol is required."

    try:
        quote = await coinmarketcap_client.get_latest_quote(symbol)
    except QuoteSourceError as e:
        logger.error(f"Error fetching market data for {symbol}: {e}")
        return f"❌ Error fetching market data for {symbol}."

    features = build_snapshot_features(quote, rsi_trailing=settings.rsi_trailing_window)
    try:
        signal = signal_classifier.classify(features)
    except Exception as e:
        logger.error(f"Failed to classify {symbol}: {e}")
        return f"❌ Failed to predict a signal for {symbol}."
    logger.info(f"{symbol}: predicted {signal.value}")

    return get_signal_summary(symbol, features, signal)


@tool
async def get_user_holdings(user_id: str) -> str:
    """List the crypto holdings of a user.

    Args:
        user_id: Unique user identifier

    Returns:
        The user's holdings as symbol and USD amount
    """
    try:
        holdings = await db_manager.get_user_holdings(user_id)
    except ValueError as e:
        return f"❌ {e}."
    except Exception as e:
        logger.error(f"Failed to get holdings for {user_id}: {e}")
        return f"❌ Failed to get holdings for {user_id}."

    if not holdings:
        return f"No holdings found for {user_id}."

    lines = [f"• {symbol}: ${amount:,.2f}" for symbol, amount in holdings.items()]
    return f"💼 Holdings for {user_id}:\n" + "\n".join(lines)


@tool
async def update_user_holding(user_id: str, symbol: str, amount: float) -> str:
    """Add a holding for a user or update its amount.

    Held symbols are scanned by the background signal monitor.

    Args:
        user_id: Unique user identifier
        symbol: Crypto symbol (e.g., 'BTC')
        amount: Amount held in USD

    Returns:
        Confirmation message
    """
    try:
        await db_manager.add_or_update_holding(user_id, _clean_symbol(symbol), amount)
    except ValueError as e:
        return f"❌ {e}."
    except Exception as e:
        logger.error(f"Failed to update holding {symbol} for {user_id}: {e}")
        return "❌ Failed to update holding."

    return "✅ Holding updated successfully."


@tool
async def remove_user_holding(user_id: str, symbol: str) -> str:
    """Remove a holding from a user.

    Args:
        user_id: Unique user identifier
        symbol: Crypto symbol to remove

    Returns:
        Confirmation message
    """
    try:
        removed = await db_manager.remove_holding(user_id, _clean_symbol(symbol))
    except ValueError as e:
        return f"❌ {e}."
    except Exception as e:
        logger.error(f"Failed to remove holding {symbol} for {user_id}: {e}")
        return "❌ Failed to remove holding."

    if not removed:
        return f"No {_clean_symbol(symbol)} holding found for {user_id}."
    return "✅ Holding removed successfully."


@tool
async def get_trending_cryptos(limit: int = 5) -> str:
    """List the currently trending crypto symbols.

    Args:
        limit: Number of symbols to return (default: 5)

    Returns:
        Comma-separated list of trending symbols
    """
    try:
        symbols = await coinmarketcap_client.get_trending_cryptos(max(1, min(limit, 50)))
    except QuoteSourceError as e:
        logger.error(f"Failed to fetch trending cryptos: {e}")
        return "❌ Failed to fetch trending cryptos."

    if not symbols:
        return "No trending cryptos found."
    return "🔥 Trending: " + ", ".join(symbols)


ALL_TOOLS = [
    get_market_data,
    train_model,
    predict_signal,
    get_user_holdings,
    update_user_holding,
    remove_user_holding,
    get_trending_cryptos,
]
