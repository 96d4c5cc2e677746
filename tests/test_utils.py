import pytest

from src.analyzers.utils import validate_data_sufficiency, get_signal_summary
from src.data.models import FeatureVector, Signal


class TestUtils:
    """Test suite for supporting util functions."""

    def create_features(self, **overrides) -> FeatureVector:
        """Create a feature vector with every indicator populated."""
        values = {
            'open': 100.0,
            'high': 110.0,
            'low': 95.0,
            'close': 105.0,
            'volume': 2500000.0,
            'sma': 98.0,
            'rsi': 64.2,
            'macd': 1.25,
            'volatility': 3.5,
            'momentum': 4.0,
            'trend_strength': 1.28,
        }
        values.update(overrides)
        return FeatureVector(**values)

    def test_validate_data_sufficiency_sufficient(self, make_ohlcv):
        """Test validation with sufficient data."""
        test_data = make_ohlcv([100.0 + i for i in range(30)])

        assert validate_data_sufficiency(test_data, 20) is True

    def test_validate_data_sufficiency_insufficient(self, make_ohlcv):
        """Test validation with insufficient data."""
        test_data = make_ohlcv([100.0 + i for i in range(10)])

        assert validate_data_sufficiency(test_data, 20) is False

    def test_validate_data_sufficiency_no_data(self):
        """Test validation with no data."""
        assert validate_data_sufficiency([], 20) is False
        assert validate_data_sufficiency(None, 20) is False

    def test_get_signal_summary(self):
        """Test signal summary generation."""
        summary = get_signal_summary("BTC", self.create_features(), Signal.BUY)

        assert "Signal Summary for BTC" in summary
        assert "$105.00" in summary  # Close
        assert "$98.00" in summary  # SMA
        assert "64.2" in summary  # RSI
        assert "+1.2500" in summary  # MACD
        assert "1.28%" in summary  # Trend strength
        assert "DECISION: BUY" in summary
        assert "N/A" not in summary

    def test_get_signal_summary_with_unavailable_indicators(self):
        """Indicators reported as 0 are shown as unavailable."""
        features = self.create_features(sma=0.0, rsi=0.0, trend_strength=0.0)

        summary = get_signal_summary("ETH", features, Signal.HOLD)

        assert summary.count("N/A (insufficient data)") == 3
        assert "+1.2500" in summary
        assert "DECISION: HOLD" in summary

    def test_get_signal_summary_unknown(self):
        """An unknown signal tells the user to train the model."""
        summary = get_signal_summary("SOL", self.create_features(), Signal.UNKNOWN)

        assert "DECISION: UNKNOWN" in summary
        assert "Train the model first" in summary


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
