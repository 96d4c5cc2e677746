from typing import Sequence
import logging

from src.data.models import FeatureVector, Signal

logger = logging.getLogger(__name__)


def validate_data_sufficiency(market_data: Sequence, required_days: int = 20) -> bool:
    """Validate that we have sufficient data for technical analysis.

    Args:
        market_data: List of market data records
        required_days: Minimum number of days required

    Returns:
        True if sufficient data, False otherwise
    """
    if not market_data:
        return False

    if len(market_data) < required_days:
        logger.warning(f"Insufficient data: {len(market_data)} days available, "
                      f"{required_days} days required")
        return False

    return True


def get_signal_summary(symbol: str, features: FeatureVector, signal: Signal) -> str:
    """Generate a human-readable summary of the indicators behind a signal.

    Indicators that could not be computed (reported as 0) are shown as N/A.

    Args:
        symbol: Crypto symbol
        features: Feature vector the signal was computed from
        signal: Classifier output

    Returns:
        Formatted summary string
    """
    summary = f"Signal Summary for {symbol} (Close: ${features.close:,.2f}):\n\n"

    summary += "📊 PRICE:\n"
    summary += f"• Open ${features.open:,.2f} | High ${features.high:,.2f} | Low ${features.low:,.2f}\n"
    summary += f"• 24h Volume: {features.volume:,.0f}\n"

    summary += "\n📈 INDICATORS:\n"
    summary += f"• 20-period SMA: {_format_indicator(features.sma, '${:,.2f}')}\n"
    summary += f"• 14-period RSI: {_format_indicator(features.rsi, '{:.1f}')}\n"
    summary += f"• MACD (12/26): {_format_indicator(features.macd, '{:+.4f}')}\n"
    summary += f"• Volatility (10): {_format_indicator(features.volatility, '{:.4f}')}\n"
    summary += f"• Momentum (10): {_format_indicator(features.momentum, '{:+.4f}')}\n"
    summary += f"• Trend Strength: {_format_indicator(features.trend_strength, '{:.2f}%')}\n"

    summary += f"\n🎯 DECISION: {signal.value.upper()}\n"
    if signal == Signal.UNKNOWN:
        summary += "No trained model is available. Train the model first.\n"

    return summary


def _format_indicator(value: float, fmt: str) -> str:
    if value == 0:
        return "N/A (insufficient data)"
    return fmt.format(value)
