import pytest
import os
import sys
import tempfile
from pathlib import Path

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))
sys.path.insert(0, str(project_root / "src"))

# Set up test environment variables if not already set
if "COINMARKETCAP_API_KEY" not in os.environ:
    os.environ["COINMARKETCAP_API_KEY"] = "test_api_key"

# Keep tests away from any model artifact in the working directory
if "MODEL_PATH" not in os.environ:
    os.environ["MODEL_PATH"] = str(Path(tempfile.mkdtemp(prefix="crypto_signals_")) / "model.pkl")

os.environ.pop("NOTIFICATION_WEBHOOK_URL", None)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and other settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test"
    )
    config.addinivalue_line(
        "markers", "unit: mark test as unit test"
    )


@pytest.fixture
def make_ohlcv():
    """Factory for daily bars from a list of closing prices."""
    from datetime import date, timedelta
    from src.data.models import OHLCV

    def _make(closes, start=date(2024, 1, 1)):
        return [
            OHLCV(
                date=(start + timedelta(days=i)).isoformat(),
                open=close * 0.999,
                high=close * 1.005,
                low=close * 0.995,
                close=close,
                volume=1000000 + i * 10000
            )
            for i, close in enumerate(closes)
        ]

    return _make
